from __future__ import annotations

import copy
import itertools
import uuid
from typing import Optional

from ingress_operator.errors import AlreadyExists, Conflict, NotFound, StoreError
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
    Kind,
)

OPERATOR_NAMESPACE = "openshift-ingress-operator"
DELETION_TIMESTAMP = "2026-10-18T00:00:00Z"


class FakeCluster:
    """
    In-memory ReadStore + WriteClient.

    Mirrors the API server behaviour the controller depends on: uids and
    resourceVersions are assigned on write, stale resourceVersions conflict,
    update and update_status only touch their half of the object, and
    deleting an object with finalizers only marks it for deletion.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict] = {}
        self.writes: list[tuple[str, str, str]] = []
        self.failures: dict[tuple[str, str, Optional[str]], Exception] = {}
        self._versions = itertools.count(1)

    # -- test controls -----------------------------------------------------

    def fail(self, verb: str, kind: Kind, name: Optional[str] = None,
             error: Optional[Exception] = None) -> None:
        self.failures[(verb, kind.kind, name)] = error or StoreError(
            f"injected {verb} failure for {kind.kind} {name or '*'}", status=500
        )

    def heal(self) -> None:
        self.failures.clear()

    def put(self, kind: Kind, body: dict) -> dict:
        """Seed an object without counting it as a controller write."""
        obj = copy.deepcopy(body)
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.kind)
        md = obj.setdefault("metadata", {})
        md.setdefault("uid", str(uuid.uuid4()))
        md["resourceVersion"] = str(next(self._versions))
        self.objects[self._key(kind, md["name"], md.get("namespace"))] = obj
        return copy.deepcopy(obj)

    def set_status(self, kind: Kind, name: str, namespace: Optional[str], status: dict) -> None:
        obj = self.objects[self._key(kind, name, namespace)]
        obj["status"] = copy.deepcopy(status)
        obj["metadata"]["resourceVersion"] = str(next(self._versions))

    def finalize(self, kind: Kind, name: str, namespace: Optional[str] = None) -> None:
        """Play the foreign controller: drop finalizers and let deletion complete."""
        key = self._key(kind, name, namespace)
        obj = self.objects[key]
        obj["metadata"]["finalizers"] = []
        if obj["metadata"].get("deletionTimestamp"):
            del self.objects[key]

    def has(self, kind: Kind, name: str, namespace: Optional[str] = None) -> bool:
        return self._key(kind, name, namespace) in self.objects

    def writes_of(self, verb: str, kind: Kind) -> list[str]:
        return [name for v, k, name in self.writes if v == verb and k == kind.kind]

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _key(kind: Kind, name: str, namespace: Optional[str]) -> tuple[str, str, str]:
        return (kind.kind, (namespace or "") if kind.namespaced else "", name)

    def _check(self, verb: str, kind: Kind, name: str) -> None:
        for key in ((verb, kind.kind, name), (verb, kind.kind, None)):
            if key in self.failures:
                raise self.failures[key]

    def _stored(self, kind: Kind, name: str, namespace: Optional[str]) -> dict:
        key = self._key(kind, name, namespace)
        if key not in self.objects:
            raise NotFound(f"{kind.kind} {namespace}/{name} not found")
        return self.objects[key]

    def _check_version(self, stored: dict, body: dict) -> None:
        want = (body.get("metadata") or {}).get("resourceVersion")
        if want and want != stored["metadata"]["resourceVersion"]:
            raise Conflict(f"{stored['kind']} {stored['metadata']['name']}: the object has been modified")

    def _after_write(self, kind: Kind, obj: dict) -> None:
        md = obj["metadata"]
        md["resourceVersion"] = str(next(self._versions))
        if md.get("deletionTimestamp") and not md.get("finalizers"):
            del self.objects[self._key(kind, md["name"], md.get("namespace"))]

    # -- ReadStore ---------------------------------------------------------

    def get(self, kind: Kind, name: str, namespace: Optional[str] = None) -> dict:
        self._check("get", kind, name)
        return copy.deepcopy(self._stored(kind, name, namespace))

    def list(self, kind: Kind, namespace: Optional[str] = None,
             labels: Optional[dict] = None) -> list[dict]:
        self._check("list", kind, None)
        items = []
        for (k, ns, _), obj in sorted(self.objects.items()):
            if k != kind.kind or (namespace is not None and ns != namespace):
                continue
            have = obj["metadata"].get("labels") or {}
            if labels and any(have.get(lk) != lv for lk, lv in labels.items()):
                continue
            items.append(copy.deepcopy(obj))
        return items

    # -- WriteClient -------------------------------------------------------

    def create(self, kind: Kind, body: dict) -> dict:
        md = body["metadata"]
        self._check("create", kind, md["name"])
        key = self._key(kind, md["name"], md.get("namespace"))
        if key in self.objects:
            raise AlreadyExists(f"{kind.kind} {md['name']} already exists")
        obj = copy.deepcopy(body)
        obj["metadata"]["uid"] = str(uuid.uuid4())
        obj["metadata"]["resourceVersion"] = str(next(self._versions))
        self.objects[key] = obj
        self.writes.append(("create", kind.kind, md["name"]))
        return copy.deepcopy(obj)

    def update(self, kind: Kind, body: dict) -> dict:
        md = body["metadata"]
        self._check("update", kind, md["name"])
        stored = self._stored(kind, md["name"], md.get("namespace"))
        self._check_version(stored, body)
        obj = copy.deepcopy(body)
        obj["metadata"]["uid"] = stored["metadata"]["uid"]
        if stored["metadata"].get("deletionTimestamp"):
            obj["metadata"]["deletionTimestamp"] = stored["metadata"]["deletionTimestamp"]
        if "status" in stored:
            obj["status"] = copy.deepcopy(stored["status"])
        else:
            obj.pop("status", None)
        self.objects[self._key(kind, md["name"], md.get("namespace"))] = obj
        self.writes.append(("update", kind.kind, md["name"]))
        self._after_write(kind, obj)
        return copy.deepcopy(obj)

    def update_status(self, kind: Kind, body: dict) -> dict:
        md = body["metadata"]
        self._check("update_status", kind, md["name"])
        stored = self._stored(kind, md["name"], md.get("namespace"))
        self._check_version(stored, body)
        stored["status"] = copy.deepcopy(body.get("status") or {})
        self.writes.append(("update_status", kind.kind, md["name"]))
        stored["metadata"]["resourceVersion"] = str(next(self._versions))
        return copy.deepcopy(stored)

    def delete(self, kind: Kind, name: str, namespace: Optional[str] = None) -> None:
        self._check("delete", kind, name)
        stored = self._stored(kind, name, namespace)
        self.writes.append(("delete", kind.kind, name))
        if stored["metadata"].get("finalizers"):
            stored["metadata"].setdefault("deletionTimestamp", DELETION_TIMESTAMP)
            stored["metadata"]["resourceVersion"] = str(next(self._versions))
            return
        del self.objects[self._key(kind, name, namespace)]


class RecordingRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, str, str]] = []

    def record(self, obj: dict, severity: str, reason: str, message: str) -> None:
        self.events.append((obj["metadata"]["name"], severity, reason, message))


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def ingresscontroller(name: str, domain: str = "", namespace: str = OPERATOR_NAMESPACE,
                      **spec) -> dict:
    body_spec = dict(spec)
    if domain:
        body_spec["domain"] = domain
    return {
        "apiVersion": INGRESS_CONTROLLER.api_version,
        "kind": INGRESS_CONTROLLER.kind,
        "metadata": {"name": name, "namespace": namespace},
        "spec": body_spec,
    }


def admitted_ingresscontroller(name: str, domain: str, strategy: str = "LoadBalancerService",
                               finalizers: Optional[list] = None, **spec) -> dict:
    body = ingresscontroller(name, **spec)
    if finalizers is not None:
        body["metadata"]["finalizers"] = list(finalizers)
    published = {"type": strategy}
    if strategy == "LoadBalancerService":
        published["loadBalancer"] = {"scope": "External"}
    body["status"] = {
        "domain": domain,
        "endpointPublishingStrategy": published,
        "conditions": [{
            "type": "Admitted",
            "status": "True",
            "reason": "Valid",
            "message": "",
            "lastTransitionTime": "2026-10-01T00:00:00Z",
        }],
    }
    return body


def cluster_config(platform: str = "AWS", domain: str = "apps.example.com",
                   zones: bool = True) -> ClusterConfig:
    dns_spec = {"baseDomain": "example.com"}
    if zones:
        dns_spec["publicZone"] = {"id": "Z123"}
    return ClusterConfig(
        dns=DNSConfig.model_validate({"spec": dns_spec}),
        infrastructure=InfrastructureConfig.model_validate({"status": {"platform": platform}}),
        ingress=IngressConfig.model_validate({"spec": {"domain": domain}}),
    )


def seed_cluster_config(cluster: FakeCluster, config: ClusterConfig) -> None:
    for kind, model in ((DNS_CONFIG, config.dns), (INFRASTRUCTURE_CONFIG, config.infrastructure),
                        (INGRESS_CONFIG, config.ingress)):
        body = model.model_dump(mode="json", by_alias=True, exclude_none=True)
        body["metadata"] = {"name": "cluster"}
        cluster.put(kind, body)


def load(cluster: FakeCluster, name: str, namespace: str = OPERATOR_NAMESPACE) -> IngressController:
    return IngressController.from_dict(cluster.get(INGRESS_CONTROLLER, name, namespace))
