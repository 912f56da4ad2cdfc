"""
Status synthesis — fold child observations into the record's conditions.

compute_status is pure; sync_status only writes when the result differs
from what is already stored, so a converged record causes no status
traffic (and no watch events feeding back into the queue).
"""
import logging
from typing import Optional

from ingress_operator import conditions as cond
from ingress_operator.manifests import publishes_load_balancer
from ingress_operator.models import (
    Condition,
    ConditionStatus,
    DNSConfig,
    IngressController,
    IngressControllerStatus,
)
from ingress_operator.store import INGRESS_CONTROLLER, WriteClient

logger = logging.getLogger("ingress-operator")


def selector_string(deployment: Optional[dict]) -> str:
    if deployment is None:
        return ""
    labels = ((deployment.get("spec") or {}).get("selector") or {}).get("matchLabels") or {}
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def available_replicas(deployment: Optional[dict]) -> int:
    if deployment is None:
        return 0
    return int((deployment.get("status") or {}).get("availableReplicas") or 0)


# ---------------------------------------------------------------------------
# Per-observation conditions
# ---------------------------------------------------------------------------

def ingress_available_condition(deployment: Optional[dict]) -> Condition:
    if deployment is None:
        return cond.condition(cond.AVAILABLE, False, "DeploymentMissing",
                              "The router deployment could not be ensured.")
    for c in (deployment.get("status") or {}).get("conditions") or []:
        if c.get("type") == "Available" and c.get("status") == "True":
            return cond.condition(cond.AVAILABLE, True, "DeploymentAvailable")
    return cond.condition(cond.AVAILABLE, False, "DeploymentUnavailable",
                          "The deployment has Available status condition set to False")


def _sync_failure_message(service: dict, operand_events: list[dict]) -> Optional[str]:
    """Latest SyncLoadBalancerFailed message the service controller reported for service."""
    md = service.get("metadata") or {}
    found = None
    for event in operand_events:
        involved = event.get("involvedObject") or {}
        if (event.get("reason") == "SyncLoadBalancerFailed"
                and involved.get("kind") == "Service"
                and involved.get("name") == md.get("name")
                and involved.get("uid", md.get("uid")) == md.get("uid")):
            found = event.get("message", "")
    return found


def load_balancer_conditions(ic: IngressController, service: Optional[dict],
                             operand_events: list[dict]) -> list[Condition]:
    if not publishes_load_balancer(ic):
        return [cond.condition(cond.LOAD_BALANCER_MANAGED, False, "UnsupportedEndpointPublishingStrategy",
                               "The endpoint publishing strategy does not support a load balancer")]

    managed = cond.condition(cond.LOAD_BALANCER_MANAGED, True, "WantedByEndpointPublishingStrategy",
                             "The endpoint publishing strategy supports a managed load balancer")
    if service is None:
        ready = cond.condition(cond.LOAD_BALANCER_READY, False, "LoadBalancerNotFound",
                               "The LoadBalancer service resource is missing")
    elif ((service.get("status") or {}).get("loadBalancer") or {}).get("ingress"):
        ready = cond.condition(cond.LOAD_BALANCER_READY, True, "LoadBalancerProvisioned",
                               "The LoadBalancer service is provisioned")
    else:
        failure = _sync_failure_message(service, operand_events)
        if failure is not None:
            ready = cond.condition(
                cond.LOAD_BALANCER_READY, False, "SyncLoadBalancerFailed",
                f"The service-controller component is reporting SyncLoadBalancerFailed events "
                f"like: {failure}\nThe kube-controller-manager logs may contain more details.",
            )
        else:
            ready = cond.condition(cond.LOAD_BALANCER_READY, False, "LoadBalancerPending",
                                   "The LoadBalancer service is pending")
    return [managed, ready]


def dns_conditions(ic: IngressController, record: Optional[dict],
                   dns_config: DNSConfig) -> list[Condition]:
    if not dns_config.has_zones:
        return [cond.condition(cond.DNS_MANAGED, False, "NoDNSZones",
                               "No DNS zones are defined in the cluster dns config.")]
    if not publishes_load_balancer(ic):
        return [cond.condition(cond.DNS_MANAGED, False, "UnsupportedEndpointPublishingStrategy",
                               "The endpoint publishing strategy doesn't support DNS management.")]

    managed = cond.condition(cond.DNS_MANAGED, True, "Normal", "DNS management is supported and zones are specified in the cluster DNS config.")
    if record is None:
        return [managed, cond.condition(cond.DNS_READY, False, "RecordNotFound",
                                        "The wildcard record resource was not found.")]

    zones = (record.get("status") or {}).get("zones") or []
    failed_zones = []
    for zone in zones:
        for c in zone.get("conditions") or []:
            if c.get("type") == "Failed" and c.get("status") == "True":
                failed_zones.append(zone.get("dnsZone") or {})
    if failed_zones:
        ready = cond.condition(cond.DNS_READY, False, "FailedZones",
                               f"The record failed to provision in some zones: {failed_zones}")
    elif not zones:
        ready = cond.condition(cond.DNS_READY, False, "NoZones",
                               "The record isn't present in any zones.")
    else:
        ready = cond.condition(cond.DNS_READY, True, "NoFailedZones",
                               "The record is provisioned in all reported zones.")
    return [managed, ready]


def degraded_condition(updates: list[Condition]) -> Condition:
    """Degraded when the operand is unavailable or a managed dependency reports failure."""
    by_type = {c.type: c for c in updates}
    problems = []

    available = by_type.get(cond.AVAILABLE)
    if available is not None and available.status != ConditionStatus.TRUE:
        problems.append(f"{available.reason}: {available.message}")
    lb_ready = by_type.get(cond.LOAD_BALANCER_READY)
    if lb_ready is not None and lb_ready.reason == "SyncLoadBalancerFailed":
        problems.append(f"{lb_ready.reason}: {lb_ready.message}")
    dns_ready = by_type.get(cond.DNS_READY)
    if dns_ready is not None and dns_ready.reason == "FailedZones":
        problems.append(f"{dns_ready.reason}: {dns_ready.message}")

    if problems:
        return cond.condition(cond.DEGRADED, True, "OperandsDegraded", "; ".join(problems))
    return cond.condition(cond.DEGRADED, False, "AsExpected")


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

def compute_status(ic: IngressController, deployment: Optional[dict], lb_service: Optional[dict],
                   operand_events: list[dict], dns_record: Optional[dict],
                   dns_config: DNSConfig) -> IngressControllerStatus:
    status = ic.status.model_copy(deep=True)
    status.available_replicas = available_replicas(deployment)
    status.selector = selector_string(deployment)

    updates = [ingress_available_condition(deployment)]
    updates += load_balancer_conditions(ic, lb_service, operand_events)
    updates += dns_conditions(ic, dns_record, dns_config)
    updates.append(degraded_condition(updates))

    status.conditions = cond.merge_conditions(status.conditions, *updates)
    return status


def sync_status(store: WriteClient, ic: IngressController, deployment: Optional[dict],
                lb_service: Optional[dict], operand_events: list[dict],
                dns_record: Optional[dict], dns_config: DNSConfig) -> None:
    status = compute_status(ic, deployment, lb_service, operand_events, dns_record, dns_config)
    if cond.statuses_equal(status, ic.status):
        return
    updated = ic.model_copy(deep=True)
    updated.status = status
    store.update_status(INGRESS_CONTROLLER, updated.to_dict())
    logger.info(f"[{ic.name}] status updated")
