"""
Convergence — make every owned resource match the admitted record.

Steps are independent: a failure is collected and the pass moves on, so one
broken child (say, a cloud quota error on the load balancer) never blocks
the others, and status still reflects the partial state. A step whose
prerequisite failed is skipped; steps that hang off the deployment report
the skip as their own error.
"""
import logging

from ingress_operator import manifests
from ingress_operator.config import Settings
from ingress_operator.controller.resources import ORDER, REQUIRES, Owned, Pass, ensure
from ingress_operator.controller.status import sync_status
from ingress_operator.errors import AggregateError, DependencyError, aggregate
from ingress_operator.models import ClusterConfig, IngressController
from ingress_operator.store import EVENT, INGRESS_CONTROLLER, Store

logger = logging.getLogger("ingress-operator")


def ensure_finalizer(store: Store, ic: IngressController) -> IngressController:
    """Add the teardown finalizer, then re-read so owner references use a fresh copy."""
    if manifests.FINALIZER in ic.metadata.finalizers:
        return ic
    updated = ic.model_copy(deep=True)
    updated.metadata.finalizers.append(manifests.FINALIZER)
    try:
        store.update(INGRESS_CONTROLLER, updated.to_dict())
    except Exception as e:
        raise AggregateError([RuntimeError(f"failed to update finalizers: {e}")]) from e
    try:
        fresh = store.get(INGRESS_CONTROLLER, ic.name, ic.namespace)
    except Exception as e:
        raise AggregateError([RuntimeError(f"failed to get ingresscontroller: {e}")]) from e
    logger.info(f"[{ic.name}] finalizer {manifests.FINALIZER} added")
    return IngressController.from_dict(fresh)


def converge(store: Store, ic: IngressController, cluster: ClusterConfig,
             settings: Settings) -> None:
    """
    Drive every owned resource toward the record's desired state.

    Raises AggregateError holding every sub-failure of this pass; returns
    normally only when everything converged.
    """
    ic = ensure_finalizer(store, ic)

    p = Pass(record=ic, cluster=cluster, settings=settings)
    errs: list[Exception] = []
    failed: set[Owned] = set()

    for tag in ORDER:
        needs = REQUIRES.get(tag)
        if needs is not None and needs in failed:
            failed.add(tag)
            # deeper skips ride on the upstream error already collected
            if needs is Owned.DEPLOYMENT:
                errs.append(DependencyError(f"skipped {tag.value} for {ic.name}: {needs.value} is unavailable"))
            continue
        try:
            p.observed[tag] = ensure(store, tag, p)
        except Exception as e:
            logger.warning(f"[{ic.name}] failed to ensure {tag.value}: {e}")
            failed.add(tag)
            errs.append(RuntimeError(f"failed to ensure {tag.value} for {ic.name}: {e}"))

    operand_events: list[dict] = []
    try:
        operand_events = store.list(EVENT, namespace=settings.OPERAND_NAMESPACE)
    except Exception as e:
        errs.append(RuntimeError(f"failed to list events in namespace {settings.OPERAND_NAMESPACE!r}: {e}"))

    try:
        sync_status(
            store, ic,
            deployment=p.observed.get(Owned.DEPLOYMENT),
            lb_service=p.observed.get(Owned.LOAD_BALANCER_SERVICE),
            operand_events=operand_events,
            dns_record=p.observed.get(Owned.DNS_RECORD),
            dns_config=cluster.dns,
        )
    except Exception as e:
        errs.append(RuntimeError(f"failed to sync ingresscontroller status: {e}"))

    aggregate(errs)
