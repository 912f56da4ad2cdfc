from __future__ import annotations

import pytest

from ingress_operator.config import Settings
from ingress_operator.models import ClusterConfig

from tests.support.cluster import FakeCluster, RecordingRecorder, cluster_config, seed_cluster_config


@pytest.fixture
def settings() -> Settings:
    return Settings(
        OPERATOR_NAMESPACE="openshift-ingress-operator",
        OPERAND_NAMESPACE="openshift-ingress",
        INGRESS_CONTROLLER_IMAGE="router:test",
        METRICS_INTEGRATION=True,
    )


@pytest.fixture
def config() -> ClusterConfig:
    return cluster_config()


@pytest.fixture
def cluster(config: ClusterConfig) -> FakeCluster:
    fake = FakeCluster()
    seed_cluster_config(fake, config)
    return fake


@pytest.fixture
def recorder() -> RecordingRecorder:
    return RecordingRecorder()
