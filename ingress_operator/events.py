"""
Event recording — the operator-visible audit trail.

Events are posted to the API server through kopf's posting machinery and,
when REDIS_URL is set, mirrored to a per-record Redis Stream so the intent
API can serve them without listing core/v1 Events. Recording is fire and
forget: a failure is logged and never reaches the reconcile pass.
"""

import json as _json
import logging
from datetime import datetime, timezone
from typing import Optional

import kopf

from ingress_operator.config import settings

logger = logging.getLogger("events")

NORMAL = "Normal"
WARNING = "Warning"

STREAM_MAXLEN = 100


def stream_key(name: str) -> str:
    return f"ingresscontroller:events:{name}"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Redis client (optional, degrades to no-op when unavailable)
# ---------------------------------------------------------------------------
_redis_client = None


def get_redis():
    """Lazy-init Redis client. Returns None if unavailable."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    if not settings.REDIS_URL:
        return None
    try:
        import redis
        _redis_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        _redis_client.ping()
        logger.info(f"Redis connected: {settings.REDIS_URL}")
        return _redis_client
    except Exception as e:
        logger.warning(f"Redis unavailable (non-fatal): {e}")
        _redis_client = None
        return None


def publish_event(redis_client, name: str, severity: str, reason: str, message: str):
    """Append an event to the record's stream and the global channel."""
    entry = {
        "type": severity,
        "reason": reason,
        "message": message,
        "timestamp": _now(),
        "ingresscontroller": name,
    }
    redis_client.xadd(stream_key(name), entry, maxlen=STREAM_MAXLEN)
    redis_client.publish("ingresscontroller:events", _json.dumps(entry))


class KopfEventRecorder:
    """EventRecorder posting through kopf, mirrored to Redis."""

    def __init__(self, redis_client: Optional[object] = None):
        self._redis = redis_client

    def record(self, obj: dict, severity: str, reason: str, message: str) -> None:
        name = (obj.get("metadata") or {}).get("name", "")
        logger.info(f"[{name}] event {severity}/{reason}: {message}")
        try:
            kopf.event(obj, type=severity, reason=reason, message=message)
        except Exception as e:
            logger.warning(f"[{name}] failed to post event {reason} (non-fatal): {e}")

        r = self._redis if self._redis is not None else get_redis()
        if not r:
            return
        try:
            publish_event(r, name, severity, reason, message)
        except Exception as e:
            logger.debug(f"Redis publish failed (non-fatal): {e}")
