"""
Pydantic models for API request/response validation.
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from ingress_operator.models import LoadBalancerScope, StrategyType


class IngressControllerCreateRequest(BaseModel):
    """Request to create a new IngressController."""
    name: str = Field(
        ...,
        min_length=1,
        max_length=63,
        pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$",
        description="IngressController name (DNS-1123 label)",
        examples=["default", "internal-apps"],
    )
    domain: Optional[str] = Field(
        default=None,
        max_length=253,
        description="Domain to serve; defaults to the cluster ingress domain",
        examples=["apps.example.com"],
    )
    replicas: Optional[int] = Field(default=None, ge=0, le=20)
    strategy: Optional[StrategyType] = Field(
        default=None,
        description="Endpoint publishing strategy; defaults from the cluster platform",
    )
    scope: Optional[LoadBalancerScope] = Field(
        default=None,
        description="Load balancer scope (LoadBalancerService strategy only)",
    )


class ConditionView(BaseModel):
    type: str
    status: str
    reason: str = ""
    message: str = ""
    lastTransitionTime: Optional[str] = None


class IngressControllerResponse(BaseModel):
    """IngressController details returned to dashboards."""
    name: str
    namespace: str
    domain: Optional[str] = None
    admitted: bool = False
    deleting: bool = False
    strategy: Optional[str] = None
    scope: Optional[str] = None
    replicas: Optional[int] = None
    availableReplicas: int = 0
    conditions: List[ConditionView] = []


class IngressControllerListResponse(BaseModel):
    ingresscontrollers: List[IngressControllerResponse]
    total: int


class EventEntry(BaseModel):
    timestamp: str = ""
    type: str = ""
    reason: str = ""
    message: str = ""


class ErrorResponse(BaseModel):
    detail: str
    code: str = "UNKNOWN_ERROR"
