from __future__ import annotations

import pytest

from ingress_operator import conditions as cond
from ingress_operator.controller.admission import (
    Admitted,
    Failed,
    Rejected,
    admit,
    set_default_domain,
    set_default_publishing_strategy,
)
from ingress_operator.models import (
    EndpointPublishingStrategy,
    IngressController,
    InfrastructureConfig,
    LoadBalancerScope,
    StrategyType,
)
from ingress_operator.store import INGRESS_CONTROLLER

from tests.support.cluster import (
    OPERATOR_NAMESPACE,
    admitted_ingresscontroller,
    cluster_config,
    ingresscontroller,
    load,
)


def test_defaults_domain_from_cluster_config(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("default"))

    result = admit(cluster, load(cluster, "default"), config, OPERATOR_NAMESPACE)

    assert result == Admitted()
    stored = load(cluster, "default")
    assert stored.status.domain == "apps.example.com"
    assert stored.status.endpoint_publishing_strategy.type == StrategyType.LOAD_BALANCER_SERVICE
    assert stored.status.endpoint_publishing_strategy.load_balancer.scope == LoadBalancerScope.EXTERNAL
    assert cond.is_admitted(stored)


def test_spec_domain_wins_over_cluster_domain(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("apps2", domain="apps2.example.com"))

    assert admit(cluster, load(cluster, "apps2"), config, OPERATOR_NAMESPACE) == Admitted()
    assert load(cluster, "apps2").status.domain == "apps2.example.com"


def test_duplicate_domain_is_rejected(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, admitted_ingresscontroller("default", "apps.example.com"))
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("other", domain="apps.example.com"))

    result = admit(cluster, load(cluster, "other"), config, OPERATOR_NAMESPACE)

    assert isinstance(result, Rejected)
    assert result.reason == "conflicts with: default"
    stored = load(cluster, "other")
    admitted = cond.find_condition(stored.status.conditions, cond.ADMITTED)
    assert admitted.status.value == "False"
    assert admitted.reason == "Invalid"
    assert admitted.message == "conflicts with: default"
    # the first record is untouched
    assert cond.is_admitted(load(cluster, "default"))


def test_unadmitted_sibling_does_not_conflict(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("first", domain="apps.example.com"))
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("second", domain="apps.example.com"))

    assert admit(cluster, load(cluster, "second"), config, OPERATOR_NAMESPACE) == Admitted()


def test_record_does_not_conflict_with_itself(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, admitted_ingresscontroller("default", "apps.example.com"))

    assert admit(cluster, load(cluster, "default"), config, OPERATOR_NAMESPACE) == Admitted()


def test_empty_domain_is_rejected(cluster) -> None:
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("default"))

    result = admit(cluster, load(cluster, "default"), cluster_config(domain=""), OPERATOR_NAMESPACE)

    assert result == Rejected("domain is required", changed=True)


def test_rejection_is_persisted_once(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, admitted_ingresscontroller("default", "apps.example.com"))
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("other", domain="apps.example.com"))

    first = admit(cluster, load(cluster, "other"), config, OPERATOR_NAMESPACE)
    second = admit(cluster, load(cluster, "other"), config, OPERATOR_NAMESPACE)

    assert first == Rejected("conflicts with: default", changed=True)
    assert second == Rejected("conflicts with: default", changed=False)
    assert cluster.writes_of("update_status", INGRESS_CONTROLLER) == ["other"]


def test_siblings_come_from_the_given_namespace(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, admitted_ingresscontroller("default", "apps.example.com"))
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("stray", domain="apps.example.com", namespace="elsewhere"))

    result = admit(cluster, load(cluster, "stray", "elsewhere"), config, OPERATOR_NAMESPACE)

    assert result == Rejected("conflicts with: default", changed=True)


def test_list_failure_is_an_operational_failure(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("default"))
    cluster.fail("list", INGRESS_CONTROLLER)

    result = admit(cluster, load(cluster, "default"), config, OPERATOR_NAMESPACE)

    assert isinstance(result, Failed)
    assert "failed to list ingresscontrollers" in str(result.error)
    assert cluster.writes == []


def test_status_write_failure_is_an_operational_failure(cluster, config) -> None:
    cluster.put(INGRESS_CONTROLLER, ingresscontroller("default"))
    cluster.fail("update_status", INGRESS_CONTROLLER)

    result = admit(cluster, load(cluster, "default"), config, OPERATOR_NAMESPACE)

    assert isinstance(result, Failed)
    assert "failed to update status" in str(result.error)


def test_defaulted_domain_is_fixed_once_set(cluster, config) -> None:
    body = ingresscontroller("default", domain="new.example.com")
    body["status"] = {"domain": "old.example.com"}
    cluster.put(INGRESS_CONTROLLER, body)

    assert admit(cluster, load(cluster, "default"), config, OPERATOR_NAMESPACE) == Admitted()
    assert load(cluster, "default").status.domain == "old.example.com"


def test_defaults_do_not_move_after_spec_edit() -> None:
    ic = IngressController.from_dict(admitted_ingresscontroller("default", "apps.example.com"))
    ic.spec.domain = "elsewhere.example.com"
    ic.spec.endpoint_publishing_strategy = EndpointPublishingStrategy(type=StrategyType.HOST_NETWORK)

    assert set_default_domain(ic, cluster_config().ingress) is False
    assert set_default_publishing_strategy(ic, cluster_config().infrastructure) is False
    assert ic.status.domain == "apps.example.com"
    assert ic.status.endpoint_publishing_strategy.type == StrategyType.LOAD_BALANCER_SERVICE


@pytest.mark.parametrize(
    "platform, expected",
    [
        ("AWS", StrategyType.LOAD_BALANCER_SERVICE),
        ("Azure", StrategyType.LOAD_BALANCER_SERVICE),
        ("GCP", StrategyType.LOAD_BALANCER_SERVICE),
        ("Libvirt", StrategyType.HOST_NETWORK),
        ("BareMetal", StrategyType.HOST_NETWORK),
        ("", StrategyType.HOST_NETWORK),
    ],
)
def test_publishing_strategy_follows_platform(platform: str, expected: StrategyType) -> None:
    ic = IngressController.from_dict(ingresscontroller("default"))
    infra = InfrastructureConfig.model_validate({"status": {"platform": platform}})

    assert set_default_publishing_strategy(ic, infra) is True
    assert ic.status.endpoint_publishing_strategy.type == expected


def test_explicit_internal_scope_is_kept() -> None:
    ic = IngressController.from_dict(ingresscontroller(
        "internal",
        endpointPublishingStrategy={"type": "LoadBalancerService", "loadBalancer": {"scope": "Internal"}},
    ))

    set_default_publishing_strategy(ic, InfrastructureConfig.model_validate({"status": {"platform": "AWS"}}))

    assert ic.status.endpoint_publishing_strategy.load_balancer.scope == LoadBalancerScope.INTERNAL


def test_explicit_load_balancer_without_scope_defaults_external() -> None:
    ic = IngressController.from_dict(ingresscontroller(
        "lb", endpointPublishingStrategy={"type": "LoadBalancerService"},
    ))

    set_default_publishing_strategy(ic, InfrastructureConfig.model_validate({"status": {"platform": "Libvirt"}}))

    assert ic.status.endpoint_publishing_strategy.type == StrategyType.LOAD_BALANCER_SERVICE
    assert ic.status.endpoint_publishing_strategy.load_balancer.scope == LoadBalancerScope.EXTERNAL
