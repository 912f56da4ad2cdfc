"""
API service layer — IngressController CRUD for the HTTP surface.

Design principles:
  - Idempotent: create returns the existing record if the name is taken
  - Read-only view of status: the API never writes status, only the operator does
  - Clean error handling: store errors surface as domain errors to the router
"""

import logging
from typing import Optional

from ingress_operator import conditions as cond
from ingress_operator.api.schemas import (
    ConditionView,
    IngressControllerCreateRequest,
    IngressControllerResponse,
)
from ingress_operator.config import settings
from ingress_operator.errors import NotFound
from ingress_operator.kube import KubeStore
from ingress_operator.models import IngressController
from ingress_operator.store import INGRESS_CONTROLLER, Store

logger = logging.getLogger("ingresscontroller_service")

_store: Optional[Store] = None


def get_store() -> Store:
    """Create the KubeStore lazily, once."""
    global _store
    if _store is None:
        _store = KubeStore()
    return _store


def set_store(store: Optional[Store]):
    global _store
    _store = store


def to_response(ic: IngressController) -> IngressControllerResponse:
    strategy = ic.status.endpoint_publishing_strategy or ic.spec.endpoint_publishing_strategy
    scope = None
    if strategy is not None and strategy.load_balancer is not None:
        scope = strategy.load_balancer.scope.value
    return IngressControllerResponse(
        name=ic.name,
        namespace=ic.namespace,
        domain=ic.status.domain or ic.spec.domain or None,
        admitted=cond.is_admitted(ic),
        deleting=ic.deleting,
        strategy=strategy.type.value if strategy is not None else None,
        scope=scope,
        replicas=ic.spec.replicas,
        availableReplicas=ic.status.available_replicas,
        conditions=[
            ConditionView(
                type=c.type,
                status=c.status.value,
                reason=c.reason,
                message=c.message,
                lastTransitionTime=c.last_transition_time,
            )
            for c in ic.status.conditions
        ],
    )


def list_ingresscontrollers() -> list[IngressControllerResponse]:
    items = get_store().list(INGRESS_CONTROLLER, namespace=settings.OPERATOR_NAMESPACE)
    return [to_response(IngressController.from_dict(item)) for item in items]


def get_ingresscontroller(name: str) -> Optional[IngressControllerResponse]:
    try:
        item = get_store().get(INGRESS_CONTROLLER, name, settings.OPERATOR_NAMESPACE)
    except NotFound:
        return None
    return to_response(IngressController.from_dict(item))


def create_ingresscontroller(req: IngressControllerCreateRequest) -> IngressControllerResponse:
    """Create an IngressController. Idempotent: returns the existing one if already created."""
    existing = get_ingresscontroller(req.name)
    if existing:
        logger.info(f"IngressController {req.name} already exists, returning existing (idempotent)")
        return existing

    spec: dict = {}
    if req.domain:
        spec["domain"] = req.domain
    if req.replicas is not None:
        spec["replicas"] = req.replicas
    if req.strategy is not None:
        strategy: dict = {"type": req.strategy.value}
        if req.scope is not None:
            strategy["loadBalancer"] = {"scope": req.scope.value}
        spec["endpointPublishingStrategy"] = strategy

    body = {
        "apiVersion": INGRESS_CONTROLLER.api_version,
        "kind": INGRESS_CONTROLLER.kind,
        "metadata": {"name": req.name, "namespace": settings.OPERATOR_NAMESPACE},
        "spec": spec,
    }
    result = get_store().create(INGRESS_CONTROLLER, body)
    logger.info(f"IngressController {req.name} created (domain={req.domain or 'default'})")
    return to_response(IngressController.from_dict(result))


def delete_ingresscontroller(name: str) -> bool:
    """Delete an IngressController. Returns True if deleted, False if not found."""
    try:
        get_store().delete(INGRESS_CONTROLLER, name, settings.OPERATOR_NAMESPACE)
    except NotFound:
        return False
    logger.info(f"IngressController {name} deletion initiated")
    return True
