"""
Pydantic models for the IngressController record and the cluster-wide config
objects it is admitted against.

All models round-trip the Kubernetes JSON form: fields use camelCase aliases
and unknown keys are preserved so that an update never drops data this
controller does not manage.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _KubeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(_KubeModel):
    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: Optional[str] = Field(default=None, alias="lastTransitionTime")


class StrategyType(str, Enum):
    LOAD_BALANCER_SERVICE = "LoadBalancerService"
    HOST_NETWORK = "HostNetwork"
    PRIVATE = "Private"


class LoadBalancerScope(str, Enum):
    EXTERNAL = "External"
    INTERNAL = "Internal"


class LoadBalancerStrategy(_KubeModel):
    scope: LoadBalancerScope = LoadBalancerScope.EXTERNAL


class EndpointPublishingStrategy(_KubeModel):
    type: StrategyType
    load_balancer: Optional[LoadBalancerStrategy] = Field(default=None, alias="loadBalancer")


class AccessLoggingDestination(_KubeModel):
    type: str = "Container"


class AccessLogging(_KubeModel):
    destination: AccessLoggingDestination = Field(default_factory=AccessLoggingDestination)


class IngressControllerLogging(_KubeModel):
    access: Optional[AccessLogging] = None


class IngressControllerSpec(_KubeModel):
    domain: str = ""
    replicas: Optional[int] = None
    endpoint_publishing_strategy: Optional[EndpointPublishingStrategy] = Field(
        default=None, alias="endpointPublishingStrategy"
    )
    logging: Optional[IngressControllerLogging] = None


class IngressControllerStatus(_KubeModel):
    domain: str = ""
    endpoint_publishing_strategy: Optional[EndpointPublishingStrategy] = Field(
        default=None, alias="endpointPublishingStrategy"
    )
    conditions: list[Condition] = Field(default_factory=list)
    available_replicas: int = Field(default=0, alias="availableReplicas")
    selector: str = ""


class ObjectMeta(_KubeModel):
    name: str
    namespace: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: str = Field(default="", alias="resourceVersion")
    deletion_timestamp: Optional[str] = Field(default=None, alias="deletionTimestamp")
    finalizers: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class IngressController(_KubeModel):
    api_version: str = Field(default="operator.openshift.io/v1", alias="apiVersion")
    kind: str = "IngressController"
    metadata: ObjectMeta
    spec: IngressControllerSpec = Field(default_factory=IngressControllerSpec)
    status: IngressControllerStatus = Field(default_factory=IngressControllerStatus)

    @classmethod
    def from_dict(cls, obj: dict) -> "IngressController":
        return cls.model_validate(obj)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def owner_reference(self) -> dict:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }


# ---------------------------------------------------------------------------
# Cluster-wide configuration (config.openshift.io/v1, name "cluster")
# ---------------------------------------------------------------------------

class DNSZone(_KubeModel):
    id: str = ""
    tags: dict[str, str] = Field(default_factory=dict)


class DNSConfigSpec(_KubeModel):
    base_domain: str = Field(default="", alias="baseDomain")
    public_zone: Optional[DNSZone] = Field(default=None, alias="publicZone")
    private_zone: Optional[DNSZone] = Field(default=None, alias="privateZone")


class DNSConfig(_KubeModel):
    spec: DNSConfigSpec = Field(default_factory=DNSConfigSpec)

    @property
    def has_zones(self) -> bool:
        return self.spec.public_zone is not None or self.spec.private_zone is not None


class InfrastructureStatus(_KubeModel):
    platform: str = ""


class InfrastructureConfig(_KubeModel):
    status: InfrastructureStatus = Field(default_factory=InfrastructureStatus)

    @property
    def platform(self) -> str:
        return self.status.platform


class IngressConfigSpec(_KubeModel):
    domain: str = ""


class IngressConfig(_KubeModel):
    spec: IngressConfigSpec = Field(default_factory=IngressConfigSpec)


class ClusterConfig(BaseModel):
    """Everything read once at the top of a pass."""
    dns: DNSConfig
    infrastructure: InfrastructureConfig
    ingress: IngressConfig
