"""
Ingress Operator — kopf entry point.

Architecture (level-triggered reconciliation):
  Watches → ReconcileQueue → Reconciler.reconcile(namespace/name):
    - IngressController changed            → its own key
    - Deployment/Service with owning label → the labelled IngressController
    - DNSRecord changed                    → the IngressController owner
    - Periodic resync timer                → every IngressController

  The reconciler decides, from current state only:
    NotFound → nothing; deleting → teardown; not admitted → admit + requeue;
    admitted → converge owned resources and status.

  Concurrency Control:
    - At most one pass in flight per IngressController
    - MAX_WORKERS passes in parallel across IngressControllers

Run with:
  kopf run -m ingress_operator.operator -n openshift-ingress-operator -n openshift-ingress
"""

import logging
import time
from typing import Optional

import kopf
from prometheus_client import start_http_server

from ingress_operator import metrics
from ingress_operator.config import settings as config
from ingress_operator.controller.reconciler import Reconciler, Request, Result
from ingress_operator.events import KopfEventRecorder
from ingress_operator.kube import KubeStore
from ingress_operator.manifests import OWNING_LABEL
from ingress_operator.queue import ReconcileQueue
from ingress_operator.store import DNS_RECORD, INGRESS_CONTROLLER

logger = logging.getLogger("ingress-operator")

_queue: Optional[ReconcileQueue] = None
_reconciler: Optional[Reconciler] = None


def _observed_reconcile(request: Request) -> Result:
    """Run one pass and record its outcome."""
    started = time.monotonic()
    try:
        result = _reconciler.reconcile(request)
    except Exception:
        metrics.reconcile_total.labels(result="error").inc()
        raise
    finally:
        metrics.reconcile_duration_seconds.observe(time.monotonic() - started)
    metrics.reconcile_total.labels(result="requeue" if result.requeue else "done").inc()
    return result


def owning_request(labels: dict) -> Optional[Request]:
    """Operand objects carry the owning IngressController's name as a label."""
    name = (labels or {}).get(OWNING_LABEL)
    if not name:
        return None
    return Request(config.OPERATOR_NAMESPACE, name)


def owner_request(meta: dict) -> Optional[Request]:
    for ref in meta.get("ownerReferences") or []:
        if ref.get("kind") == INGRESS_CONTROLLER.kind and ref.get("apiVersion", "").startswith(
                INGRESS_CONTROLLER.group):
            return Request(meta.get("namespace", ""), ref["name"])
    return None


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
async def configure(settings: kopf.OperatorSettings, **kwargs):
    global _queue, _reconciler
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING
    # Only the resync timer needs kopf state; the teardown finalizer is managed by the reconciler.
    settings.persistence.finalizer = "ingress.operator.openshift.io/kopf-finalizer"

    _reconciler = Reconciler(KubeStore(), KopfEventRecorder(), config)
    _queue = ReconcileQueue(
        _observed_reconcile,
        workers=config.MAX_WORKERS,
        base_delay=config.REQUEUE_BASE_DELAY,
        max_delay=config.REQUEUE_MAX_DELAY,
    )
    _queue.start()
    start_http_server(config.METRICS_PORT)
    logger.info(
        f"Ingress Operator started (max_workers={config.MAX_WORKERS}, "
        f"operator_ns={config.OPERATOR_NAMESPACE}, operand_ns={config.OPERAND_NAMESPACE})"
    )


@kopf.on.cleanup()
async def shutdown(**kwargs):
    if _queue is not None:
        await _queue.stop()


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------

@kopf.on.event(INGRESS_CONTROLLER.group, INGRESS_CONTROLLER.version, INGRESS_CONTROLLER.plural)
async def ingresscontroller_changed(name, namespace, **kwargs):
    _queue.add(Request(namespace, name))


@kopf.on.event("apps", "v1", "deployments", labels={OWNING_LABEL: kopf.PRESENT})
@kopf.on.event("v1", "services", labels={OWNING_LABEL: kopf.PRESENT})
async def operand_changed(labels, name, logger, **kwargs):
    request = owning_request(labels)
    if request is not None:
        logger.debug(f"queueing ingresscontroller {request} (related: {name})")
        _queue.add(request)


@kopf.on.event(DNS_RECORD.group, DNS_RECORD.version, DNS_RECORD.plural)
async def dnsrecord_changed(meta, **kwargs):
    request = owner_request(meta)
    if request is not None:
        _queue.add(request)


@kopf.timer(INGRESS_CONTROLLER.group, INGRESS_CONTROLLER.version, INGRESS_CONTROLLER.plural,
            interval=config.RESYNC_INTERVAL, idle=config.RESYNC_INTERVAL)
async def resync(name, namespace, **kwargs):
    _queue.add(Request(namespace, name))
