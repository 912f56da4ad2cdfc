"""
Reconcile driver — the single entry point per trigger.

    NotFound          -> done (stale trigger)
    DeletionRequested -> teardown -> done
    NotAdmitted       -> admit: rejected -> done, admitted -> requeue
    Admitted          -> converge -> done

Operational failures are raised as ReconcileError; the work queue retries
them with backoff. A successful admission always requeues instead of
converging in the same pass, so convergence only ever sees the persisted,
defaulted record. Admission itself runs one record at a time so that two
records claiming the same domain cannot both be admitted.
"""
import logging
import threading
from dataclasses import dataclass
from typing import NamedTuple, Optional

from ingress_operator import conditions as cond
from ingress_operator import metrics
from ingress_operator.config import Settings
from ingress_operator.controller.admission import Failed, Rejected, admit
from ingress_operator.controller.convergence import converge
from ingress_operator.controller.deletion import Teardown, ensure_deleted
from ingress_operator.errors import NotFound, ReconcileError
from ingress_operator.events import NORMAL, WARNING
from ingress_operator.models import (
    ClusterConfig,
    DNSConfig,
    IngressConfig,
    IngressController,
    InfrastructureConfig,
)
from ingress_operator.store import (
    DNS_CONFIG,
    INFRASTRUCTURE_CONFIG,
    INGRESS_CONFIG,
    INGRESS_CONTROLLER,
    EventRecorder,
    Store,
)

logger = logging.getLogger("ingress-operator")

CLUSTER_CONFIG_NAME = "cluster"


class Request(NamedTuple):
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Result:
    requeue: bool = False
    requeue_after: Optional[float] = None


class Reconciler:
    def __init__(self, store: Store, recorder: EventRecorder, settings: Settings):
        self.store = store
        self.recorder = recorder
        self.settings = settings
        # Admission lists siblings and then writes status; passes for different
        # records run in parallel, so the check-then-write is serialized here.
        self._admission_lock = threading.Lock()

    def reconcile(self, request: Request) -> Result:
        logger.info(f"reconciling {request}")

        try:
            raw = self.store.get(INGRESS_CONTROLLER, request.name, request.namespace)
        except NotFound:
            logger.info(f"ingresscontroller {request} not found; reconciliation will be skipped")
            return Result()
        except Exception as e:
            raise ReconcileError(f"failed to get ingresscontroller {request}: {e}") from e
        ic = IngressController.from_dict(raw)

        if ic.deleting:
            try:
                outcome = ensure_deleted(self.store, ic, self.settings)
            except Exception as e:
                raise ReconcileError(f"failed to ensure ingress deletion: {e}") from e
            if outcome is Teardown.FINALIZED:
                logger.info(f"ingresscontroller {request} was successfully deleted")
            return Result()

        cluster = self._cluster_config()

        if not cond.is_admitted(ic):
            with self._admission_lock:
                result = admit(self.store, ic, cluster, self.settings.OPERATOR_NAMESPACE)
            if isinstance(result, Rejected):
                # one event per rejection, not one per pass over it
                if result.changed:
                    metrics.admissions_total.labels(result="rejected").inc()
                    self.recorder.record(raw, WARNING, "Rejected", result.reason)
                return Result()
            if isinstance(result, Failed):
                raise ReconcileError(f"failed to admit ingresscontroller: {result.error}") from result.error
            metrics.admissions_total.labels(result="admitted").inc()
            self.recorder.record(raw, NORMAL, "Admitted", "ingresscontroller passed validation")
            return Result(requeue=True)

        try:
            converge(self.store, ic, cluster, self.settings)
        except Exception as e:
            raise ReconcileError(f"failed to ensure ingresscontroller: {e}") from e
        return Result()

    def _cluster_config(self) -> ClusterConfig:
        """Read the cluster-wide config objects once per pass."""
        fetched = {}
        for key, kind in (("dns", DNS_CONFIG), ("infrastructure", INFRASTRUCTURE_CONFIG),
                          ("ingress", INGRESS_CONFIG)):
            try:
                fetched[key] = self.store.get(kind, CLUSTER_CONFIG_NAME)
            except Exception as e:
                raise ReconcileError(
                    f"failed to get {kind.kind.lower()} {CLUSTER_CONFIG_NAME!r}: {e}"
                ) from e
        return ClusterConfig(
            dns=DNSConfig.model_validate(fetched["dns"]),
            infrastructure=InfrastructureConfig.model_validate(fetched["infrastructure"]),
            ingress=IngressConfig.model_validate(fetched["ingress"]),
        )
