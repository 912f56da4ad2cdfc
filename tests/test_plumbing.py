from __future__ import annotations

import json

import kopf
import pytest
from kubernetes.client import ApiException

from ingress_operator import events, kube, manifests
from ingress_operator.errors import AlreadyExists, Conflict, NotFound, StoreError
from ingress_operator.controller.reconciler import Request
from ingress_operator.operator import owner_request, owning_request
from ingress_operator.store import DNS_CONFIG, POD_DISRUPTION_BUDGET, SERVICE_MONITOR


class FakeRedis:
    def __init__(self):
        self.streams = {}
        self.published = []

    def xadd(self, key, entry, maxlen=None):
        self.streams.setdefault(key, []).append(entry)

    def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))


IC = {"apiVersion": "operator.openshift.io/v1", "kind": "IngressController",
      "metadata": {"name": "default", "namespace": "openshift-ingress-operator", "uid": "ic-uid"}}


def test_recorder_posts_and_mirrors_to_redis(monkeypatch) -> None:
    posted = []
    monkeypatch.setattr(kopf, "event", lambda obj, **kw: posted.append(kw))
    redis = FakeRedis()

    events.KopfEventRecorder(redis).record(IC, events.WARNING, "Rejected", "conflicts with: other")

    assert posted == [{"type": "Warning", "reason": "Rejected", "message": "conflicts with: other"}]
    [entry] = redis.streams[events.stream_key("default")]
    assert entry["reason"] == "Rejected"
    assert redis.published[0][0] == "ingresscontroller:events"


def test_recorder_never_raises(monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise RuntimeError("no api")

    monkeypatch.setattr(kopf, "event", broken)
    redis = FakeRedis()
    monkeypatch.setattr(redis, "xadd", broken)

    events.KopfEventRecorder(redis).record(IC, events.NORMAL, "Admitted", "ok")


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (404, None, NotFound),
        (409, '{"reason": "AlreadyExists"}', AlreadyExists),
        (409, '{"reason": "Conflict"}', Conflict),
        (500, None, StoreError),
    ],
)
def test_api_errors_translate(status: int, body, expected) -> None:
    err = ApiException(status=status, reason="x")
    err.body = body

    translated = kube._translate(err, "Service ns/router-default")

    assert type(translated) is expected


def test_kind_helpers() -> None:
    assert POD_DISRUPTION_BUDGET.snake == "pod_disruption_budget"
    assert SERVICE_MONITOR.group == "monitoring.coreos.com"
    assert SERVICE_MONITOR.version == "v1"
    assert DNS_CONFIG.namespaced is False
    assert kube._label_selector({"b": "2", "a": "1"}) == "a=1,b=2"
    assert kube._label_selector(None) is None


def test_operand_labels_map_to_record() -> None:
    assert owning_request({manifests.OWNING_LABEL: "default"}) == Request("openshift-ingress-operator", "default")
    assert owning_request({}) is None


def test_owner_reference_maps_to_record() -> None:
    meta = {"namespace": "openshift-ingress-operator",
            "ownerReferences": [{"apiVersion": "operator.openshift.io/v1", "kind": "IngressController",
                                 "name": "default", "uid": "ic-uid"}]}

    assert owner_request(meta) == Request("openshift-ingress-operator", "default")
    assert owner_request({"namespace": "x"}) is None
