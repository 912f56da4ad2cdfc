"""
Configuration module — all settings from env vars with sensible defaults.
Follows 12-factor app methodology.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"

    # Namespaces: records live in the operator namespace, operands in the operand namespace
    OPERATOR_NAMESPACE: str = os.environ.get("OPERATOR_NAMESPACE", "openshift-ingress-operator")
    OPERAND_NAMESPACE: str = os.environ.get("OPERAND_NAMESPACE", "openshift-ingress")

    # Operand
    INGRESS_CONTROLLER_IMAGE: str = os.environ.get(
        "INGRESS_CONTROLLER_IMAGE", "quay.io/openshift/origin-haproxy-router:latest"
    )
    METRICS_INTEGRATION: bool = os.environ.get("METRICS_INTEGRATION", "true").lower() == "true"

    # Work queue
    MAX_WORKERS: int = int(os.environ.get("MAX_WORKERS", "3"))
    REQUEUE_BASE_DELAY: float = float(os.environ.get("REQUEUE_BASE_DELAY", "5"))
    REQUEUE_MAX_DELAY: float = float(os.environ.get("REQUEUE_MAX_DELAY", "300"))
    RESYNC_INTERVAL: float = float(os.environ.get("RESYNC_INTERVAL", "600"))

    # Observability
    REDIS_URL: str = os.environ.get("REDIS_URL", "")
    METRICS_PORT: int = int(os.environ.get("METRICS_PORT", "8383"))
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "30/minute")

    # API
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8080"))
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")


settings = Settings()
