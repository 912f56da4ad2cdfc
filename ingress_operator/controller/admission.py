"""
Admission — default and validate a record before anything is built for it.

The outcome is one of three explicit results:
  Admitted()        the record is valid; status carries Admitted=True
  Rejected(reason)  the record is invalid or conflicts with another one;
                    terminal until the user edits it
  Failed(error)     admission could not be completed (store trouble);
                    retried with backoff

Defaulted values land in status and are never changed afterwards, so an
admitted record keeps its domain and publishing strategy for life.
"""
import logging
from dataclasses import dataclass
from typing import Union

from ingress_operator import conditions as cond
from ingress_operator.models import (
    ClusterConfig,
    EndpointPublishingStrategy,
    IngressConfig,
    IngressController,
    InfrastructureConfig,
    LoadBalancerScope,
    LoadBalancerStrategy,
    StrategyType,
)
from ingress_operator.store import INGRESS_CONTROLLER, Store

logger = logging.getLogger("ingress-operator")


@dataclass(frozen=True)
class Admitted:
    pass


@dataclass(frozen=True)
class Rejected:
    reason: str
    # False when the record already carried this rejection
    changed: bool


@dataclass(frozen=True)
class Failed:
    error: Exception


AdmissionResult = Union[Admitted, Rejected, Failed]

# Platforms that get a cloud load balancer by default. Everything else,
# including libvirt and bare metal, falls back to host networking.
PLATFORM_STRATEGIES = {
    "AWS": StrategyType.LOAD_BALANCER_SERVICE,
    "Azure": StrategyType.LOAD_BALANCER_SERVICE,
    "GCP": StrategyType.LOAD_BALANCER_SERVICE,
    "Libvirt": StrategyType.HOST_NETWORK,
}


def set_default_domain(ic: IngressController, ingress_config: IngressConfig) -> bool:
    """Fix status.domain on first admission. Returns True if it was set."""
    if ic.status.domain:
        return False
    ic.status.domain = ic.spec.domain or ingress_config.spec.domain
    return True


def set_default_publishing_strategy(ic: IngressController,
                                    infra_config: InfrastructureConfig) -> bool:
    """Fix status.endpointPublishingStrategy on first admission. Returns True if it was set."""
    if ic.status.endpoint_publishing_strategy is not None:
        return False
    if ic.spec.endpoint_publishing_strategy is not None:
        strategy = ic.spec.endpoint_publishing_strategy.model_copy(deep=True)
    else:
        strategy_type = PLATFORM_STRATEGIES.get(infra_config.platform, StrategyType.HOST_NETWORK)
        strategy = EndpointPublishingStrategy(type=strategy_type)
    if strategy.type == StrategyType.LOAD_BALANCER_SERVICE and strategy.load_balancer is None:
        strategy.load_balancer = LoadBalancerStrategy(scope=LoadBalancerScope.EXTERNAL)
    ic.status.endpoint_publishing_strategy = strategy
    return True


def validate_domain(ic: IngressController) -> list[str]:
    if not ic.status.domain:
        return ["domain is required"]
    return []


def validate_domain_uniqueness(ic: IngressController, existing: list[IngressController]) -> list[str]:
    """Conflicts with any other admitted record holding the same domain (compared by uid)."""
    for other in existing:
        if not cond.is_admitted(other):
            continue
        if other.uid != ic.uid and other.status.domain == ic.status.domain:
            return [f"conflicts with: {other.name}"]
    return []


def _format(problems: list[str]) -> str:
    if len(problems) == 1:
        return problems[0]
    return "[" + ", ".join(problems) + "]"


def admit(store: Store, current: IngressController, cluster: ClusterConfig,
          namespace: str) -> AdmissionResult:
    """Default, validate and persist the outcome. Siblings are the records in namespace."""
    updated = current.model_copy(deep=True)
    set_default_domain(updated, cluster.ingress)
    set_default_publishing_strategy(updated, cluster.infrastructure)

    try:
        siblings = [
            IngressController.from_dict(item)
            for item in store.list(INGRESS_CONTROLLER, namespace=namespace)
        ]
    except Exception as e:
        return Failed(RuntimeError(f"failed to list ingresscontrollers: {e}"))

    problems = validate_domain(updated) + validate_domain_uniqueness(updated, siblings)
    if problems:
        reason = _format(problems)
        updated.status.conditions = cond.merge_conditions(
            updated.status.conditions,
            cond.condition(cond.ADMITTED, False, "Invalid", reason),
        )
        logger.warning(f"[{current.name}] rejected: {reason}")
    else:
        updated.status.conditions = cond.merge_conditions(
            updated.status.conditions,
            cond.condition(cond.ADMITTED, True, "Valid"),
        )

    changed = not cond.statuses_equal(current.status, updated.status)
    if changed:
        try:
            store.update_status(INGRESS_CONTROLLER, updated.to_dict())
        except Exception as e:
            return Failed(RuntimeError(f"failed to update status: {e}"))

    if problems:
        return Rejected(reason, changed=changed)
    logger.info(f"[{current.name}] admitted (domain={updated.status.domain}, "
                f"strategy={updated.status.endpoint_publishing_strategy.type.value})")
    return Admitted()
