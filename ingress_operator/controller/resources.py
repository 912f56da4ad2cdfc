"""
Owned resources: one ensure function per variant, dispatched by tag.

Every ensure is an idempotent create-or-update. The desired shape is built
from the record, the current object is read, and then exactly one of
create / update / delete / nothing happens. Updates are only issued when a
field this controller manages differs, so a converged pass writes nothing.
"""
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ingress_operator import manifests
from ingress_operator.config import Settings
from ingress_operator.errors import AlreadyExists, NotFound
from ingress_operator.models import ClusterConfig, IngressController
from ingress_operator.store import (
    CONFIG_MAP,
    DEPLOYMENT,
    DNS_RECORD,
    NAMESPACE,
    POD_DISRUPTION_BUDGET,
    SERVICE,
    SERVICE_MONITOR,
    Kind,
    Store,
    delete_if_present,
    get_optional,
)

logger = logging.getLogger("ingress-operator")


class Owned(str, Enum):
    DEPLOYMENT = "deployment"
    LOAD_BALANCER_SERVICE = "load balancer service"
    INTERNAL_SERVICE = "internal service"
    DNS_RECORD = "wildcard dnsrecord"
    SERVICE_MONITOR = "servicemonitor"
    ACCESS_LOG_CONFIG_MAP = "access log configmap"
    POD_DISRUPTION_BUDGET = "poddisruptionbudget"


@dataclass
class Pass:
    """What one convergence pass knows so far."""
    record: IngressController
    cluster: ClusterConfig
    settings: Settings
    observed: dict = field(default_factory=dict)

    @property
    def operand_namespace(self) -> str:
        return self.settings.OPERAND_NAMESPACE

    @property
    def deployment_ref(self) -> dict:
        return manifests.deployment_ref(self.observed[Owned.DEPLOYMENT])


# ---------------------------------------------------------------------------
# Generic create-or-update
# ---------------------------------------------------------------------------

def _merge_metadata(current: dict, desired: dict) -> dict:
    """Copy of current with desired labels/annotations/ownerReferences laid over it."""
    updated = copy.deepcopy(current)
    md = updated.setdefault("metadata", {})
    want = desired["metadata"]
    for key in ("labels", "annotations"):
        if want.get(key):
            md[key] = {**(md.get(key) or {}), **want[key]}
    if want.get("ownerReferences"):
        md["ownerReferences"] = want["ownerReferences"]
    return updated


def _metadata_changed(current: dict, desired: dict) -> bool:
    md = current.get("metadata") or {}
    want = desired["metadata"]
    for key in ("labels", "annotations"):
        have = md.get(key) or {}
        if any(have.get(k) != v for k, v in (want.get(key) or {}).items()):
            return True
    have_owners = {o.get("uid") for o in md.get("ownerReferences") or []}
    want_owners = {o.get("uid") for o in want.get("ownerReferences") or []}
    return not want_owners <= have_owners


def _deleting(obj: dict) -> bool:
    return bool((obj.get("metadata") or {}).get("deletionTimestamp"))


def _ensure(store: Store, kind: Kind, name: str, namespace: Optional[str],
            desired: Optional[dict],
            changed: Callable[[dict, dict], Optional[dict]]) -> Optional[dict]:
    current = get_optional(store, kind, name, namespace)
    if desired is None:
        if current is not None and not _deleting(current):
            logger.info(f"Deleting stale {kind.kind} {namespace}/{name}")
            delete_if_present(store, kind, name, namespace)
        return None
    if current is None:
        return store.create(kind, desired)
    updated = changed(current, desired)
    if updated is None:
        return current
    return store.update(kind, updated)


def _spec_changed(current: dict, desired: dict) -> Optional[dict]:
    """For kinds whose spec/data is fully owned by this controller."""
    key = "data" if "data" in desired else "spec"
    if current.get(key) == desired[key] and not _metadata_changed(current, desired):
        return None
    updated = _merge_metadata(current, desired)
    updated[key] = desired[key]
    return updated


def _deployment_projection(d: dict) -> dict:
    spec = d.get("spec") or {}
    pod = (spec.get("template") or {}).get("spec") or {}
    return {
        "replicas": spec.get("replicas"),
        "selector": spec.get("selector"),
        "hostNetwork": bool(pod.get("hostNetwork", False)),
        "containers": [
            (c.get("name"), c.get("image"),
             sorted((e["name"], e.get("value", "")) for e in c.get("env") or []))
            for c in pod.get("containers") or []
        ],
        "volumes": sorted(v.get("name") for v in pod.get("volumes") or []),
    }


def _deployment_changed(current: dict, desired: dict) -> Optional[dict]:
    if (_deployment_projection(current) == _deployment_projection(desired)
            and not _metadata_changed(current, desired)):
        return None
    updated = _merge_metadata(current, desired)
    updated["spec"]["replicas"] = desired["spec"]["replicas"]
    updated["spec"]["template"] = desired["spec"]["template"]
    return updated


def _service_projection(s: dict) -> dict:
    spec = s.get("spec") or {}
    return {
        "type": spec.get("type"),
        "selector": spec.get("selector"),
        "ports": sorted(
            (p.get("name"), p.get("port"), str(p.get("targetPort"))) for p in spec.get("ports") or []
        ),
    }


def _service_changed(current: dict, desired: dict) -> Optional[dict]:
    if (_service_projection(current) == _service_projection(desired)
            and not _metadata_changed(current, desired)):
        return None
    updated = _merge_metadata(current, desired)
    for key in ("type", "selector", "ports"):
        updated["spec"][key] = desired["spec"][key]
    if "externalTrafficPolicy" in desired["spec"]:
        updated["spec"]["externalTrafficPolicy"] = desired["spec"]["externalTrafficPolicy"]
    return updated


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

def ensure_namespace(store: Store, name: str) -> None:
    """Create the operand namespace idempotently."""
    if get_optional(store, NAMESPACE, name) is not None:
        return
    try:
        store.create(NAMESPACE, manifests.desired_namespace(name))
        logger.info(f"Namespace {name} created")
    except AlreadyExists:
        logger.info(f"Namespace {name} already exists")


def ensure_deployment(store: Store, p: Pass) -> Optional[dict]:
    ensure_namespace(store, p.operand_namespace)
    desired = manifests.desired_deployment(p.record, p.settings.INGRESS_CONTROLLER_IMAGE,
                                           p.operand_namespace)
    return _ensure(store, DEPLOYMENT, manifests.deployment_name(p.record), p.operand_namespace,
                   desired, _deployment_changed)


def ensure_load_balancer_service(store: Store, p: Pass) -> Optional[dict]:
    desired = manifests.desired_load_balancer_service(
        p.record, p.cluster.infrastructure.platform, p.operand_namespace, p.deployment_ref
    )
    return _ensure(store, SERVICE, manifests.load_balancer_service_name(p.record),
                   p.operand_namespace, desired, _service_changed)


def ensure_dns_record(store: Store, p: Pass) -> Optional[dict]:
    service = p.observed.get(Owned.LOAD_BALANCER_SERVICE)
    desired = None if service is None else manifests.desired_dns_record(p.record, service)
    return _ensure(store, DNS_RECORD, manifests.dns_record_name(p.record), p.record.namespace,
                   desired, _spec_changed)


def ensure_internal_service(store: Store, p: Pass) -> Optional[dict]:
    desired = manifests.desired_internal_service(p.record, p.operand_namespace, p.deployment_ref)
    return _ensure(store, SERVICE, manifests.internal_service_name(p.record),
                   p.operand_namespace, desired, _service_changed)


def ensure_service_monitor(store: Store, p: Pass) -> Optional[dict]:
    if not p.settings.METRICS_INTEGRATION:
        return None
    desired = manifests.desired_service_monitor(p.record, p.operand_namespace, p.deployment_ref)
    return _ensure(store, SERVICE_MONITOR, manifests.service_monitor_name(p.record),
                   p.operand_namespace, desired, _spec_changed)


def ensure_access_log_config_map(store: Store, p: Pass) -> Optional[dict]:
    desired = manifests.desired_access_log_config_map(p.record, p.operand_namespace,
                                                      p.deployment_ref)
    return _ensure(store, CONFIG_MAP, manifests.access_log_config_map_name(p.record),
                   p.operand_namespace, desired, _spec_changed)


def ensure_pod_disruption_budget(store: Store, p: Pass) -> Optional[dict]:
    desired = manifests.desired_pod_disruption_budget(p.record, p.operand_namespace,
                                                      p.deployment_ref)
    return _ensure(store, POD_DISRUPTION_BUDGET, manifests.pod_disruption_budget_name(p.record),
                   p.operand_namespace, desired, _spec_changed)


ENSURE: dict[Owned, Callable[[Store, Pass], Optional[dict]]] = {
    Owned.DEPLOYMENT: ensure_deployment,
    Owned.LOAD_BALANCER_SERVICE: ensure_load_balancer_service,
    Owned.DNS_RECORD: ensure_dns_record,
    Owned.INTERNAL_SERVICE: ensure_internal_service,
    Owned.SERVICE_MONITOR: ensure_service_monitor,
    Owned.ACCESS_LOG_CONFIG_MAP: ensure_access_log_config_map,
    Owned.POD_DISRUPTION_BUDGET: ensure_pod_disruption_budget,
}

# Convergence order. Each variant may name the one it hangs off.
ORDER = (
    Owned.DEPLOYMENT,
    Owned.LOAD_BALANCER_SERVICE,
    Owned.DNS_RECORD,
    Owned.INTERNAL_SERVICE,
    Owned.SERVICE_MONITOR,
    Owned.ACCESS_LOG_CONFIG_MAP,
    Owned.POD_DISRUPTION_BUDGET,
)

REQUIRES: dict[Owned, Owned] = {
    Owned.LOAD_BALANCER_SERVICE: Owned.DEPLOYMENT,
    Owned.DNS_RECORD: Owned.LOAD_BALANCER_SERVICE,
    Owned.INTERNAL_SERVICE: Owned.DEPLOYMENT,
    Owned.SERVICE_MONITOR: Owned.INTERNAL_SERVICE,
    Owned.ACCESS_LOG_CONFIG_MAP: Owned.DEPLOYMENT,
    Owned.POD_DISRUPTION_BUDGET: Owned.DEPLOYMENT,
}


def ensure(store: Store, tag: Owned, p: Pass) -> Optional[dict]:
    return ENSURE[tag](store, p)


# ---------------------------------------------------------------------------
# Teardown primitives
# ---------------------------------------------------------------------------

def _locate(tag: Owned, ic: IngressController, settings: Settings) -> tuple[Kind, str, str]:
    ns = settings.OPERAND_NAMESPACE
    return {
        Owned.DEPLOYMENT: (DEPLOYMENT, manifests.deployment_name(ic), ns),
        Owned.LOAD_BALANCER_SERVICE: (SERVICE, manifests.load_balancer_service_name(ic), ns),
        Owned.DNS_RECORD: (DNS_RECORD, manifests.dns_record_name(ic), ic.namespace),
        Owned.INTERNAL_SERVICE: (SERVICE, manifests.internal_service_name(ic), ns),
        Owned.SERVICE_MONITOR: (SERVICE_MONITOR, manifests.service_monitor_name(ic), ns),
        Owned.ACCESS_LOG_CONFIG_MAP: (CONFIG_MAP, manifests.access_log_config_map_name(ic), ns),
        Owned.POD_DISRUPTION_BUDGET: (POD_DISRUPTION_BUDGET, manifests.pod_disruption_budget_name(ic), ns),
    }[tag]


def current(store: Store, tag: Owned, ic: IngressController, settings: Settings) -> Optional[dict]:
    kind, name, namespace = _locate(tag, ic, settings)
    return get_optional(store, kind, name, namespace)


def delete(store: Store, tag: Owned, ic: IngressController, settings: Settings) -> bool:
    """Request deletion; NotFound counts as done. Returns True if a delete was issued."""
    kind, name, namespace = _locate(tag, ic, settings)
    try:
        store.delete(kind, name, namespace)
    except NotFound:
        return False
    logger.info(f"[{ic.name}] {tag.value} {namespace}/{name} deletion requested")
    return True
