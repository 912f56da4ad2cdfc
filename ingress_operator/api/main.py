"""
Ingress Operator — Intent API

A thin HTTP front for creating, inspecting and deleting IngressController
records. It only writes specs; admission, convergence and status are the
operator's job, so every response reflects whatever the operator has
persisted so far.

  /api/ingresscontrollers   CRUD + per-record event history
  /health                   API server and Redis reachability
  /metrics                  Prometheus exposition
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ingress_operator import __version__
from ingress_operator.api import service
from ingress_operator.api.routers.ingresscontrollers import limiter
from ingress_operator.api.routers.ingresscontrollers import router as ingresscontrollers_router
from ingress_operator.config import settings
from ingress_operator.errors import StoreError
from ingress_operator.events import get_redis

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ingress-api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Intent API {__version__} serving namespace {settings.OPERATOR_NAMESPACE}")
    yield
    logger.info("Intent API shutting down")


app = FastAPI(
    title="Ingress Operator API",
    description="Create and inspect IngressController records reconciled by the ingress operator",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

# slowapi looks the limiter up on app.state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(ingresscontrollers_router, prefix="/api")


def _redis_state() -> str:
    r = get_redis()
    if not r:
        return "disabled"
    try:
        r.ping()
    except Exception as e:
        logger.debug(f"Redis ping failed: {e}")
        return "disconnected"
    return "connected"


def _store_state() -> str:
    try:
        service.list_ingresscontrollers()
    except Exception as e:
        logger.warning(f"API server unreachable: {e}")
        return "unreachable"
    return "connected"


@app.get("/health")
async def health():
    """Liveness plus the reachability of everything the API reads from."""
    store = _store_state()
    return JSONResponse(
        status_code=200 if store == "connected" else 503,
        content={
            "status": "healthy" if store == "connected" else "degraded",
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "apiServer": store,
            "redis": _redis_state(),
            "version": __version__,
        },
    )


@app.get("/metrics", response_class=PlainTextResponse)
async def metrics():
    return PlainTextResponse(content=generate_latest().decode("utf-8"), media_type=CONTENT_TYPE_LATEST)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    # a 409 from the API server is the caller's problem; anything else is ours upstream
    status = 409 if exc.status == 409 else 503
    logger.warning(f"{request.method} {request.url.path} failed against the API server: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc), "code": "STORE_ERROR"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def run():
    uvicorn.run(
        "ingress_operator.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
