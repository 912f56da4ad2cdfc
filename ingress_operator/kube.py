"""
Kubernetes service layer — the store the controller reads and writes through.

Design principles:
  - One code path for every kind: built-in kinds go through the typed
    clients (CoreV1Api, AppsV1Api, PolicyV1Api), everything else through
    CustomObjectsApi
  - Objects cross this boundary as plain JSON dicts
  - Clean error handling: translates K8s API exceptions to domain errors
"""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from ingress_operator.config import settings
from ingress_operator.errors import AlreadyExists, Conflict, NotFound, StoreError
from ingress_operator.store import Kind

logger = logging.getLogger("kube")

_k8s_loaded = False


def _ensure_k8s():
    """Load kubeconfig exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        try:
            config.load_incluster_config()
        except config.ConfigException:
            config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


def _label_selector(labels: Optional[dict]) -> Optional[str]:
    if not labels:
        return None
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def _translate(e: ApiException, what: str) -> Exception:
    if e.status == 404:
        return NotFound(f"{what} not found")
    if e.status == 409:
        # create and replace both answer 409; the Status body tells them apart
        if '"alreadyexists"' in str(e.body or "").lower():
            return AlreadyExists(f"{what} already exists")
        return Conflict(f"{what}: the object has been modified; please apply your changes to the latest version")
    return StoreError(f"{what}: {e.status} {e.reason}", status=e.status or 0)


class KubeStore:
    """ReadStore + WriteClient backed by the API server."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        if api_client is None:
            _ensure_k8s()
            api_client = client.ApiClient()
        self._client = api_client
        self._typed = {
            "v1": client.CoreV1Api(api_client),
            "apps/v1": client.AppsV1Api(api_client),
            "policy/v1": client.PolicyV1Api(api_client),
        }
        self._custom = client.CustomObjectsApi(api_client)

    # -- helpers -----------------------------------------------------------

    def _to_dict(self, obj, kind: Kind) -> dict:
        if isinstance(obj, dict):
            return obj
        data = self._client.sanitize_for_serialization(obj)
        data.setdefault("apiVersion", kind.api_version)
        data.setdefault("kind", kind.kind)
        return data

    def _typed_call(self, kind: Kind, verb: str, namespace: Optional[str], **kwargs):
        api = self._typed[kind.api_version]
        if kind.namespaced:
            return getattr(api, f"{verb}_namespaced_{kind.snake}")(namespace=namespace, **kwargs)
        return getattr(api, f"{verb}_{kind.snake}")(**kwargs)

    def _custom_call(self, kind: Kind, verb: str, namespace: Optional[str], **kwargs):
        if kind.namespaced:
            method = getattr(self._custom, f"{verb}_namespaced_custom_object")
            return method(kind.group, kind.version, namespace, kind.plural, **kwargs)
        method = getattr(self._custom, f"{verb}_cluster_custom_object")
        return method(kind.group, kind.version, kind.plural, **kwargs)

    def _call(self, kind: Kind, verb: str, namespace: Optional[str], what: str, **kwargs):
        typed = kind.api_version in self._typed
        if not typed:
            verb = {"read": "get"}.get(verb, verb)
        try:
            if typed:
                return self._typed_call(kind, verb, namespace, **kwargs)
            return self._custom_call(kind, verb, namespace, **kwargs)
        except ApiException as e:
            raise _translate(e, what) from e

    # -- ReadStore ---------------------------------------------------------

    def get(self, kind: Kind, name: str, namespace: Optional[str] = None) -> dict:
        what = f"{kind.kind} {namespace}/{name}" if namespace else f"{kind.kind} {name}"
        return self._to_dict(self._call(kind, "read", namespace, what, name=name), kind)

    def list(self, kind: Kind, namespace: Optional[str] = None,
             labels: Optional[dict] = None) -> list[dict]:
        kwargs = {}
        selector = _label_selector(labels)
        if selector:
            kwargs["label_selector"] = selector
        result = self._call(kind, "list", namespace, f"{kind.plural} in {namespace or 'cluster'}", **kwargs)
        items = self._to_dict(result, kind).get("items", [])
        for item in items:
            item.setdefault("apiVersion", kind.api_version)
            item.setdefault("kind", kind.kind)
        return items

    # -- WriteClient -------------------------------------------------------

    def create(self, kind: Kind, body: dict) -> dict:
        md = body["metadata"]
        namespace = md.get("namespace")
        result = self._call(kind, "create", namespace, f"{kind.kind} {md['name']}", body=body)
        logger.info(f"Created {kind.kind} {namespace or ''}/{md['name']}")
        return self._to_dict(result, kind)

    def update(self, kind: Kind, body: dict) -> dict:
        md = body["metadata"]
        namespace = md.get("namespace")
        result = self._call(kind, "replace", namespace, f"{kind.kind} {md['name']}",
                            name=md["name"], body=body)
        logger.info(f"Updated {kind.kind} {namespace or ''}/{md['name']}")
        return self._to_dict(result, kind)

    def update_status(self, kind: Kind, body: dict) -> dict:
        md = body["metadata"]
        namespace = md.get("namespace")
        what = f"{kind.kind} {md['name']} status"
        try:
            if kind.namespaced:
                result = self._custom.replace_namespaced_custom_object_status(
                    kind.group, kind.version, namespace, kind.plural, md["name"], body
                )
            else:
                result = self._custom.replace_cluster_custom_object_status(
                    kind.group, kind.version, kind.plural, md["name"], body
                )
        except ApiException as e:
            raise _translate(e, what) from e
        logger.info(f"Updated {kind.kind} {namespace or ''}/{md['name']} status")
        return result

    def delete(self, kind: Kind, name: str, namespace: Optional[str] = None) -> None:
        self._call(kind, "delete", namespace, f"{kind.kind} {namespace or ''}/{name}", name=name)
        logger.info(f"{kind.kind} {namespace or ''}/{name} deletion initiated")
