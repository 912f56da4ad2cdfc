"""
Finalizer-gated teardown.

Order matters here: the wildcard DNS record is finalized asynchronously by
the DNS controller, and once our finalizer is gone nothing would be left to
clean it up. So the pass stops while the record is still observable and is
re-entered on the next trigger (the DNS record watch fires when it goes).
"""
import logging
from enum import Enum

from ingress_operator import manifests
from ingress_operator.config import Settings
from ingress_operator.controller import resources
from ingress_operator.controller.resources import Owned
from ingress_operator.errors import aggregate
from ingress_operator.models import IngressController
from ingress_operator.store import INGRESS_CONTROLLER, Store

logger = logging.getLogger("ingress-operator")


class Teardown(str, Enum):
    WAITING = "Waiting"        # DNS record still present; finalizer kept
    FINALIZED = "Finalized"    # finalizer removed (or was never there)


def ensure_deleted(store: Store, ic: IngressController, settings: Settings) -> Teardown:
    """
    Tear down owned resources and release the finalizer.

    Raises AggregateError when any step failed; the finalizer is then left
    in place and the next pass retries.
    """
    errs: list[Exception] = []

    # DrainDependents
    try:
        resources.delete(store, Owned.LOAD_BALANCER_SERVICE, ic, settings)
    except Exception as e:
        errs.append(RuntimeError(f"failed to finalize load balancer service for {ic.namespace}/{ic.name}: {e}"))

    # AwaitDnsTeardown
    try:
        resources.delete(store, Owned.DNS_RECORD, ic, settings)
    except Exception as e:
        errs.append(RuntimeError(f"failed to delete wildcard dnsrecord: {e}"))
    try:
        record = resources.current(store, Owned.DNS_RECORD, ic, settings)
    except Exception as e:
        errs.append(RuntimeError(f"failed to get current wildcard dnsrecord: {e}"))
    else:
        if record is not None:
            logger.info(f"[{ic.name}] waiting for wildcard dnsrecord {manifests.dns_record_name(ic)} to be deleted")
            aggregate(errs)
            return Teardown.WAITING

    # TeardownCompute
    try:
        resources.delete(store, Owned.DEPLOYMENT, ic, settings)
    except Exception as e:
        errs.append(RuntimeError(f"failed to delete deployment for ingress {ic.name}: {e}"))

    # ReleaseFinalizer
    if not errs and manifests.FINALIZER in ic.metadata.finalizers:
        updated = ic.model_copy(deep=True)
        updated.metadata.finalizers = [f for f in updated.metadata.finalizers if f != manifests.FINALIZER]
        try:
            store.update(INGRESS_CONTROLLER, updated.to_dict())
            logger.info(f"[{ic.name}] finalizer {manifests.FINALIZER} removed")
        except Exception as e:
            errs.append(RuntimeError(f"failed to remove finalizer from ingresscontroller {ic.name}: {e}"))

    aggregate(errs)
    return Teardown.FINALIZED
