"""
Desired shapes of the resources an IngressController owns.

Only the fields the controller decides are set here; the API server fills
in the rest. Every builder is a pure function of the record (and, for
dependents, of the object they hang off).
"""
from typing import Optional

from ingress_operator.models import (
    IngressController,
    LoadBalancerScope,
    StrategyType,
)

OWNING_LABEL = "ingresscontroller.operator.openshift.io/owning-ingresscontroller"
DEPLOYMENT_LABEL = "ingresscontroller.operator.openshift.io/deployment-ingresscontroller"
FINALIZER = "ingresscontroller.operator.openshift.io/finalizer-ingresscontroller"
DNS_RECORD_FINALIZER = "operator.openshift.io/ingress-dns"

DEFAULT_REPLICAS = 2
METRICS_PORT = 1936
RSYSLOG_SOCKET = "/var/lib/rsyslog/rsyslog.sock"

# Platform-specific annotations that turn a LoadBalancer service internal.
INTERNAL_LB_ANNOTATIONS = {
    "AWS": {"service.beta.kubernetes.io/aws-load-balancer-internal": "0.0.0.0/0"},
    "Azure": {"service.beta.kubernetes.io/azure-load-balancer-internal": "true"},
    "GCP": {"cloud.google.com/load-balancer-type": "Internal"},
}

RSYSLOG_CONF = f"""$ModLoad imuxsock
$SystemLogSocketName {RSYSLOG_SOCKET}
$ModLoad omstdout.so
*.* :omstdout:
"""


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------

def deployment_name(ic: IngressController) -> str:
    return f"router-{ic.name}"


def load_balancer_service_name(ic: IngressController) -> str:
    return f"router-{ic.name}"


def internal_service_name(ic: IngressController) -> str:
    return f"router-internal-{ic.name}"


def dns_record_name(ic: IngressController) -> str:
    return f"{ic.name}-wildcard"


def access_log_config_map_name(ic: IngressController) -> str:
    return f"rsyslog-conf-{ic.name}"


def pod_disruption_budget_name(ic: IngressController) -> str:
    return f"router-{ic.name}"


def service_monitor_name(ic: IngressController) -> str:
    return f"router-{ic.name}"


def pod_selector(ic: IngressController) -> dict:
    return {DEPLOYMENT_LABEL: ic.name}


def owning_labels(ic: IngressController) -> dict:
    return {OWNING_LABEL: ic.name}


def deployment_ref(deployment: dict) -> dict:
    md = deployment["metadata"]
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "name": md["name"],
        "uid": md.get("uid", ""),
        "controller": True,
    }


def _object(api_version: str, kind: str, name: str, namespace: str,
            labels: dict, owner: Optional[dict] = None) -> dict:
    md = {"name": name, "namespace": namespace, "labels": dict(labels)}
    if owner is not None:
        md["ownerReferences"] = [owner]
    return {"apiVersion": api_version, "kind": kind, "metadata": md}


def access_logging_enabled(ic: IngressController) -> bool:
    logging_spec = ic.spec.logging
    if logging_spec is None or logging_spec.access is None:
        return False
    return logging_spec.access.destination.type == "Container"


def publishes_load_balancer(ic: IngressController) -> bool:
    strategy = ic.status.endpoint_publishing_strategy
    return strategy is not None and strategy.type == StrategyType.LOAD_BALANCER_SERVICE


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def desired_namespace(namespace: str) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": namespace,
            "labels": {"app.kubernetes.io/managed-by": "ingress-operator"},
        },
    }


def desired_deployment(ic: IngressController, image: str, namespace: str) -> dict:
    strategy = ic.status.endpoint_publishing_strategy
    host_network = strategy is not None and strategy.type == StrategyType.HOST_NETWORK
    replicas = ic.spec.replicas if ic.spec.replicas is not None else DEFAULT_REPLICAS

    env = [
        {"name": "ROUTER_SERVICE_NAME", "value": ic.name},
        {"name": "ROUTER_SERVICE_NAMESPACE", "value": namespace},
        {"name": "ROUTER_CANONICAL_HOSTNAME", "value": f"router-{ic.name}.{ic.status.domain}"},
        {"name": "STATS_PORT", "value": str(METRICS_PORT)},
    ]
    containers = [{
        "name": "router",
        "image": image,
        "env": env,
        "ports": [
            {"name": "http", "containerPort": 80},
            {"name": "https", "containerPort": 443},
            {"name": "metrics", "containerPort": METRICS_PORT},
        ],
    }]
    volumes = []
    if access_logging_enabled(ic):
        env.append({"name": "ROUTER_SYSLOG_ADDRESS", "value": RSYSLOG_SOCKET})
        containers.append({
            "name": "logs",
            "image": image,
            "command": ["/sbin/rsyslogd", "-n", "-i", "/tmp/rsyslog.pid", "-f", "/etc/rsyslog/rsyslog.conf"],
            "volumeMounts": [
                {"name": "rsyslog-config", "mountPath": "/etc/rsyslog"},
                {"name": "rsyslog-socket", "mountPath": "/var/lib/rsyslog"},
            ],
        })
        containers[0]["volumeMounts"] = [{"name": "rsyslog-socket", "mountPath": "/var/lib/rsyslog"}]
        volumes = [
            {"name": "rsyslog-config", "configMap": {"name": access_log_config_map_name(ic)}},
            {"name": "rsyslog-socket", "emptyDir": {}},
        ]

    pod_spec = {
        "serviceAccountName": "router",
        "nodeSelector": {"kubernetes.io/os": "linux"},
        "containers": containers,
    }
    if volumes:
        pod_spec["volumes"] = volumes
    if host_network:
        pod_spec["hostNetwork"] = True
        pod_spec["dnsPolicy"] = "ClusterFirstWithHostNet"

    body = _object("apps/v1", "Deployment", deployment_name(ic), namespace, owning_labels(ic))
    body["spec"] = {
        "replicas": replicas,
        "selector": {"matchLabels": pod_selector(ic)},
        "template": {
            "metadata": {"labels": pod_selector(ic)},
            "spec": pod_spec,
        },
    }
    return body


def desired_load_balancer_service(ic: IngressController, platform: str, namespace: str,
                                  owner: dict) -> Optional[dict]:
    """None unless the publishing strategy calls for a load balancer."""
    if not publishes_load_balancer(ic):
        return None
    strategy = ic.status.endpoint_publishing_strategy
    annotations = {}
    if strategy.load_balancer is not None and strategy.load_balancer.scope == LoadBalancerScope.INTERNAL:
        annotations = dict(INTERNAL_LB_ANNOTATIONS.get(platform, {}))

    body = _object("v1", "Service", load_balancer_service_name(ic), namespace,
                   owning_labels(ic), owner)
    if annotations:
        body["metadata"]["annotations"] = annotations
    body["spec"] = {
        "type": "LoadBalancer",
        "externalTrafficPolicy": "Local",
        "selector": pod_selector(ic),
        "ports": [
            {"name": "http", "protocol": "TCP", "port": 80, "targetPort": "http"},
            {"name": "https", "protocol": "TCP", "port": 443, "targetPort": "https"},
        ],
    }
    return body


def desired_internal_service(ic: IngressController, namespace: str, owner: dict) -> dict:
    body = _object("v1", "Service", internal_service_name(ic), namespace,
                   owning_labels(ic), owner)
    body["metadata"]["annotations"] = {
        "service.alpha.openshift.io/serving-cert-secret-name": f"router-metrics-certs-{ic.name}",
    }
    body["spec"] = {
        "type": "ClusterIP",
        "selector": pod_selector(ic),
        "ports": [
            {"name": "http", "protocol": "TCP", "port": 80, "targetPort": "http"},
            {"name": "https", "protocol": "TCP", "port": 443, "targetPort": "https"},
            {"name": "metrics", "protocol": "TCP", "port": METRICS_PORT, "targetPort": METRICS_PORT},
        ],
    }
    return body


def desired_dns_record(ic: IngressController, service: dict) -> Optional[dict]:
    """
    Wildcard record for the domain, pointing at the load balancer.

    None while the load balancer has no ingress point yet. Hostnames (AWS)
    become CNAMEs, IPs become A records.
    """
    ingress = ((service.get("status") or {}).get("loadBalancer") or {}).get("ingress") or []
    if not ingress:
        return None
    point = ingress[0]
    if point.get("hostname"):
        record_type, target = "CNAME", point["hostname"]
    elif point.get("ip"):
        record_type, target = "A", point["ip"]
    else:
        return None

    body = _object("ingress.operator.openshift.io/v1", "DNSRecord", dns_record_name(ic),
                   ic.namespace, owning_labels(ic), ic.owner_reference())
    body["metadata"]["finalizers"] = [DNS_RECORD_FINALIZER]
    body["spec"] = {
        "dnsName": f"*.{ic.status.domain}.",
        "targets": [target],
        "recordType": record_type,
        "recordTTL": 30,
    }
    return body


def desired_service_monitor(ic: IngressController, namespace: str, owner: dict) -> dict:
    svc = internal_service_name(ic)
    body = _object("monitoring.coreos.com/v1", "ServiceMonitor", service_monitor_name(ic),
                   namespace, owning_labels(ic), owner)
    body["spec"] = {
        "namespaceSelector": {"matchNames": [namespace]},
        "selector": {"matchLabels": owning_labels(ic)},
        "endpoints": [{
            "port": "metrics",
            "scheme": "https",
            "interval": "30s",
            "bearerTokenFile": "/var/run/secrets/kubernetes.io/serviceaccount/token",
            "tlsConfig": {
                "caFile": "/etc/prometheus/configmaps/serving-certs-ca-bundle/service-ca.crt",
                "serverName": f"{svc}.{namespace}.svc",
            },
        }],
    }
    return body


def desired_access_log_config_map(ic: IngressController, namespace: str,
                                  owner: dict) -> Optional[dict]:
    """None unless access logs go to a sidecar container."""
    if not access_logging_enabled(ic):
        return None
    body = _object("v1", "ConfigMap", access_log_config_map_name(ic), namespace,
                   owning_labels(ic), owner)
    body["data"] = {"rsyslog.conf": RSYSLOG_CONF}
    return body


def desired_pod_disruption_budget(ic: IngressController, namespace: str, owner: dict) -> dict:
    body = _object("policy/v1", "PodDisruptionBudget", pod_disruption_budget_name(ic),
                   namespace, owning_labels(ic), owner)
    body["spec"] = {
        "maxUnavailable": "50%",
        "selector": {"matchLabels": pod_selector(ic)},
    }
    return body
