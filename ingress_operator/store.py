"""
Collaborator interfaces used by the controller.

The controller never talks to the API server directly: it receives a store
(reads + writes) and an event recorder at construction time. Objects are
plain Kubernetes JSON dicts (camelCase keys).
"""
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from ingress_operator.errors import NotFound


@dataclass(frozen=True)
class Kind:
    api_version: str
    kind: str
    plural: str
    namespaced: bool = True

    @property
    def group(self) -> str:
        return self.api_version.rpartition("/")[0]

    @property
    def version(self) -> str:
        return self.api_version.rpartition("/")[2]

    @property
    def snake(self) -> str:
        """PodDisruptionBudget -> pod_disruption_budget (kubernetes client method suffix)."""
        return re.sub(r"(?<!^)(?=[A-Z])", "_", self.kind).lower()


INGRESS_CONTROLLER = Kind("operator.openshift.io/v1", "IngressController", "ingresscontrollers")
DNS_RECORD = Kind("ingress.operator.openshift.io/v1", "DNSRecord", "dnsrecords")
DNS_CONFIG = Kind("config.openshift.io/v1", "DNS", "dnses", namespaced=False)
INFRASTRUCTURE_CONFIG = Kind("config.openshift.io/v1", "Infrastructure", "infrastructures", namespaced=False)
INGRESS_CONFIG = Kind("config.openshift.io/v1", "Ingress", "ingresses", namespaced=False)

NAMESPACE = Kind("v1", "Namespace", "namespaces", namespaced=False)
SERVICE = Kind("v1", "Service", "services")
CONFIG_MAP = Kind("v1", "ConfigMap", "configmaps")
EVENT = Kind("v1", "Event", "events")
DEPLOYMENT = Kind("apps/v1", "Deployment", "deployments")
POD_DISRUPTION_BUDGET = Kind("policy/v1", "PodDisruptionBudget", "poddisruptionbudgets")
SERVICE_MONITOR = Kind("monitoring.coreos.com/v1", "ServiceMonitor", "servicemonitors")


class ReadStore(Protocol):
    def get(self, kind: Kind, name: str, namespace: Optional[str] = None) -> dict:
        """Return the object or raise errors.NotFound."""

    def list(self, kind: Kind, namespace: Optional[str] = None,
             labels: Optional[dict] = None) -> list[dict]:
        ...


class WriteClient(Protocol):
    def create(self, kind: Kind, body: dict) -> dict:
        ...

    def update(self, kind: Kind, body: dict) -> dict:
        """Replace the object; a stale resourceVersion raises errors.Conflict."""

    def update_status(self, kind: Kind, body: dict) -> dict:
        ...

    def delete(self, kind: Kind, name: str, namespace: Optional[str] = None) -> None:
        """Request deletion or raise errors.NotFound."""


class Store(ReadStore, WriteClient, Protocol):
    pass


class EventRecorder(Protocol):
    def record(self, obj: dict, severity: str, reason: str, message: str) -> None:
        """Fire-and-forget; must never raise."""


def get_optional(store: ReadStore, kind: Kind, name: str,
                 namespace: Optional[str] = None) -> Optional[dict]:
    """Like store.get, but NotFound becomes None."""
    try:
        return store.get(kind, name, namespace)
    except NotFound:
        return None


def delete_if_present(store: WriteClient, kind: Kind, name: str,
                      namespace: Optional[str] = None) -> bool:
    """Delete an object, ignore 404. Returns True if a delete was issued."""
    try:
        store.delete(kind, name, namespace)
        return True
    except NotFound:
        return False
