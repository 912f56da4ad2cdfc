"""
Status condition helpers.
"""
from datetime import datetime, timezone
from typing import Optional

from ingress_operator.models import (
    Condition,
    ConditionStatus,
    IngressController,
    IngressControllerStatus,
)

ADMITTED = "Admitted"
AVAILABLE = "Available"
DEGRADED = "Degraded"
LOAD_BALANCER_MANAGED = "LoadBalancerManaged"
LOAD_BALANCER_READY = "LoadBalancerReady"
DNS_MANAGED = "DNSManaged"
DNS_READY = "DNSReady"


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def condition(ctype: str, status: bool, reason: str, message: str = "") -> Condition:
    return Condition(
        type=ctype,
        status=ConditionStatus.TRUE if status else ConditionStatus.FALSE,
        reason=reason,
        message=message,
    )


def _changed(current: Condition, update: Condition) -> bool:
    return (current.status, current.reason, current.message) != (
        update.status, update.reason, update.message
    )


def merge_conditions(conditions: list[Condition], *updates: Condition) -> list[Condition]:
    """
    Upsert conditions by type.

    Existing conditions of other types are kept as they are. A matching
    condition only has status/reason/message overwritten, and its transition
    time only moves when one of those actually changed.
    """
    merged = [c.model_copy() for c in conditions]
    for update in updates:
        for i, c in enumerate(merged):
            if c.type == update.type:
                if _changed(c, update):
                    merged[i] = c.model_copy(update={
                        "status": update.status,
                        "reason": update.reason,
                        "message": update.message,
                        "last_transition_time": _now(),
                    })
                break
        else:
            merged.append(update.model_copy(update={"last_transition_time": _now()}))
    return merged


def find_condition(conditions: list[Condition], ctype: str) -> Optional[Condition]:
    for c in conditions:
        if c.type == ctype:
            return c
    return None


def is_admitted(ic: IngressController) -> bool:
    c = find_condition(ic.status.conditions, ADMITTED)
    return c is not None and c.status == ConditionStatus.TRUE


def _comparable(status: IngressControllerStatus) -> dict:
    data = status.model_dump(mode="json", by_alias=True, exclude_none=True)
    data["conditions"] = sorted(
        ({k: v for k, v in c.items() if k != "lastTransitionTime"} for c in data.get("conditions", [])),
        key=lambda c: c["type"],
    )
    return data


def statuses_equal(a: IngressControllerStatus, b: IngressControllerStatus) -> bool:
    """Compare statuses ignoring condition order and transition times."""
    return _comparable(a) == _comparable(b)
