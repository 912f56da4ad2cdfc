"""
IngressController API routes — CRUD endpoints for IngressController CRs.

Features:
  - Rate limiting per-IP via slowapi
  - Event history from the Redis Stream the operator writes to
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ingress_operator.api import service
from ingress_operator.api.schemas import (
    ErrorResponse,
    EventEntry,
    IngressControllerCreateRequest,
    IngressControllerListResponse,
    IngressControllerResponse,
)
from ingress_operator.config import settings
from ingress_operator.errors import StoreError
from ingress_operator.events import get_redis, stream_key

logger = logging.getLogger("ingresscontrollers")

router = APIRouter(prefix="/ingresscontrollers", tags=["ingresscontrollers"])
limiter = Limiter(key_func=get_remote_address)


@router.post("", response_model=IngressControllerResponse, status_code=201,
             responses={503: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def create_endpoint(req: IngressControllerCreateRequest, request: Request):
    """Create an IngressController. Idempotent: returns the existing one if the name matches."""
    try:
        return service.create_ingresscontroller(req)
    except StoreError as e:
        logger.error(f"Failed to create ingresscontroller {req.name}: {e}")
        raise


@router.get("", response_model=IngressControllerListResponse)
@limiter.limit(settings.RATE_LIMIT)
async def list_endpoint(request: Request):
    """List all IngressControllers in the operator namespace."""
    items = service.list_ingresscontrollers()
    return IngressControllerListResponse(ingresscontrollers=items, total=len(items))


@router.get("/{name}", response_model=IngressControllerResponse,
            responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def get_endpoint(name: str, request: Request):
    """Get a specific IngressController by name."""
    ic = service.get_ingresscontroller(name)
    if not ic:
        raise HTTPException(status_code=404, detail=f"IngressController '{name}' not found")
    return ic


@router.delete("/{name}", status_code=202,
               responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.RATE_LIMIT)
async def delete_endpoint(name: str, request: Request):
    """Delete an IngressController. Returns 202 Accepted: teardown finishes asynchronously."""
    if not service.delete_ingresscontroller(name):
        raise HTTPException(status_code=404, detail=f"IngressController '{name}' not found")
    return {"message": f"IngressController '{name}' deletion initiated", "status": "accepted"}


@router.get("/{name}/events")
@limiter.limit(settings.RATE_LIMIT)
async def events_endpoint(name: str, request: Request):
    """
    Events recorded for an IngressController (admission, rejection, ...).
    Served from the Redis Stream; empty when Redis is not configured.
    """
    if not service.get_ingresscontroller(name):
        raise HTTPException(status_code=404, detail=f"IngressController '{name}' not found")

    events = []
    r = get_redis()
    if r:
        try:
            for _entry_id, data in r.xrange(stream_key(name), count=50):
                events.append(EventEntry(
                    timestamp=data.get("timestamp", ""),
                    type=data.get("type", ""),
                    reason=data.get("reason", ""),
                    message=data.get("message", ""),
                ))
        except Exception as e:
            logger.debug(f"Redis stream read failed: {e}")

    return {"ingresscontroller": name, "events": [e.model_dump() for e in events]}
