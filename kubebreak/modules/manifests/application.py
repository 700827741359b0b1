"""
Sample multi-tier application used by the workshop.

Components: Frontend (nginx), Backend (http-echo), Database (MySQL),
Redis cache, plus an HPA and a NetworkPolicy for the backend.
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

Manifest = Dict[str, Any]

MYSQL_PASSWORD = "workshop123"

# (selector, timeout seconds) waited on after deployment, in order
READINESS_WAITS: List[Tuple[str, int]] = [
    ("app=mysql", 120),
    ("app=redis", 60),
    ("app=backend", 60),
    ("app=frontend", 60),
]


@dataclass
class Component:
    """A named group of manifests applied together."""
    name: str
    description: str
    manifests: List[Manifest] = field(default_factory=list)


def b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def metadata(name: str, namespace: str, labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    meta = {"name": name, "namespace": namespace}
    if labels:
        meta["labels"] = dict(labels)
    return meta


def resources(req_mem: str, req_cpu: str, lim_mem: str, lim_cpu: str) -> Dict[str, Any]:
    return {
        "requests": {"memory": req_mem, "cpu": req_cpu},
        "limits": {"memory": lim_mem, "cpu": lim_cpu},
    }


def namespace_manifest(name: str) -> Manifest:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}


def mysql_component(namespace: str) -> Component:
    labels = {"app": "mysql", "tier": "database"}
    return Component(
        name="mysql",
        description="MySQL database",
        manifests=[
            {
                "apiVersion": "v1",
                "kind": "Secret",
                "metadata": metadata("mysql-secret", namespace),
                "type": "Opaque",
                "data": {"password": b64(MYSQL_PASSWORD)},
            },
            {
                "apiVersion": "v1",
                "kind": "PersistentVolumeClaim",
                "metadata": metadata("mysql-pvc", namespace),
                "spec": {
                    "accessModes": ["ReadWriteOnce"],
                    "resources": {"requests": {"storage": "1Gi"}},
                },
            },
            {
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": metadata("mysql", namespace, labels),
                "spec": {
                    "ports": [{"port": 3306, "targetPort": 3306}],
                    "selector": {"app": "mysql"},
                    "clusterIP": "None",
                },
            },
            {
                "apiVersion": "apps/v1",
                "kind": "StatefulSet",
                "metadata": metadata("mysql", namespace),
                "spec": {
                    "serviceName": "mysql",
                    "replicas": 1,
                    "selector": {"matchLabels": {"app": "mysql"}},
                    "template": {
                        "metadata": {"labels": labels},
                        "spec": {
                            "containers": [{
                                "name": "mysql",
                                "image": "mysql:8.0",
                                "env": [
                                    {
                                        "name": "MYSQL_ROOT_PASSWORD",
                                        "valueFrom": {"secretKeyRef": {"name": "mysql-secret", "key": "password"}},
                                    },
                                    {"name": "MYSQL_DATABASE", "value": "workshop_db"},
                                ],
                                "ports": [{"containerPort": 3306, "name": "mysql"}],
                                "volumeMounts": [{"name": "mysql-storage", "mountPath": "/var/lib/mysql"}],
                                "resources": resources("256Mi", "250m", "512Mi", "500m"),
                                "livenessProbe": {
                                    "exec": {"command": ["mysqladmin", "ping", "-h", "localhost"]},
                                    "initialDelaySeconds": 30,
                                    "periodSeconds": 10,
                                },
                                "readinessProbe": {
                                    "exec": {"command": [
                                        "mysql", "-h", "localhost", "-u", "root",
                                        f"-p{MYSQL_PASSWORD}", "-e", "SELECT 1",
                                    ]},
                                    "initialDelaySeconds": 30,
                                    "periodSeconds": 10,
                                },
                            }],
                            "volumes": [{
                                "name": "mysql-storage",
                                "persistentVolumeClaim": {"claimName": "mysql-pvc"},
                            }],
                        },
                    },
                },
            },
        ],
    )


def redis_component(namespace: str) -> Component:
    labels = {"app": "redis", "tier": "cache"}
    return Component(
        name="redis",
        description="Redis cache",
        manifests=[
            {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": metadata("redis-config", namespace),
                "data": {"redis.conf": "maxmemory 128mb\nmaxmemory-policy allkeys-lru\n"},
            },
            {
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": metadata("redis", namespace, labels),
                "spec": {
                    "ports": [{"port": 6379, "targetPort": 6379}],
                    "selector": {"app": "redis"},
                },
            },
            {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "metadata": metadata("redis", namespace),
                "spec": {
                    "replicas": 1,
                    "selector": {"matchLabels": {"app": "redis"}},
                    "template": {
                        "metadata": {"labels": labels},
                        "spec": {
                            "containers": [{
                                "name": "redis",
                                "image": "redis:7-alpine",
                                "command": ["redis-server", "/etc/redis/redis.conf"],
                                "ports": [{"containerPort": 6379}],
                                "volumeMounts": [{"name": "redis-config", "mountPath": "/etc/redis"}],
                                "resources": resources("128Mi", "100m", "256Mi", "200m"),
                                "livenessProbe": {
                                    "tcpSocket": {"port": 6379},
                                    "initialDelaySeconds": 15,
                                    "periodSeconds": 10,
                                },
                                "readinessProbe": {
                                    "exec": {"command": ["redis-cli", "ping"]},
                                    "initialDelaySeconds": 5,
                                    "periodSeconds": 5,
                                },
                            }],
                            "volumes": [{"name": "redis-config", "configMap": {"name": "redis-config"}}],
                        },
                    },
                },
            },
        ],
    )


def backend_component(namespace: str) -> Component:
    labels = {"app": "backend", "tier": "application"}
    http_get = {"httpGet": {"path": "/", "port": 3000}}
    return Component(
        name="backend",
        description="Backend API",
        manifests=[
            {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": metadata("backend-config", namespace),
                "data": {"API_PORT": "3000", "CACHE_ENABLED": "true", "LOG_LEVEL": "info"},
            },
            {
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": metadata("backend", namespace, labels),
                "spec": {
                    "type": "ClusterIP",
                    "ports": [{"port": 3000, "targetPort": 3000}],
                    "selector": {"app": "backend"},
                },
            },
            {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "metadata": metadata("backend", namespace),
                "spec": {
                    "replicas": 3,
                    "selector": {"matchLabels": {"app": "backend"}},
                    "template": {
                        "metadata": {"labels": dict(labels, version="v1")},
                        "spec": {
                            "containers": [{
                                "name": "backend",
                                "image": "hashicorp/http-echo:latest",
                                "args": [
                                    "-text=Backend API v1.0 - Pod: $(POD_NAME)",
                                    "-listen=:3000",
                                ],
                                "env": [
                                    {"name": "POD_NAME", "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}}},
                                    {"name": "DATABASE_HOST", "value": f"mysql.{namespace}.svc.cluster.local"},
                                    {"name": "REDIS_HOST", "value": f"redis.{namespace}.svc.cluster.local"},
                                ],
                                "envFrom": [{"configMapRef": {"name": "backend-config"}}],
                                "ports": [{"containerPort": 3000}],
                                "resources": resources("64Mi", "50m", "128Mi", "100m"),
                                "livenessProbe": dict(http_get, initialDelaySeconds=10, periodSeconds=10),
                                "readinessProbe": dict(http_get, initialDelaySeconds=5, periodSeconds=5),
                            }],
                        },
                    },
                },
            },
        ],
    )


def nginx_config(namespace: str) -> str:
    return (
        "upstream backend {\n"
        f"    server backend.{namespace}.svc.cluster.local:3000;\n"
        "}\n"
        "\n"
        "server {\n"
        "    listen 80;\n"
        "    server_name _;\n"
        "\n"
        "    location / {\n"
        "        root /usr/share/nginx/html;\n"
        "        index index.html;\n"
        "    }\n"
        "\n"
        "    location /api {\n"
        "        proxy_pass http://backend;\n"
        "        proxy_set_header Host $host;\n"
        "        proxy_set_header X-Real-IP $remote_addr;\n"
        "    }\n"
        "\n"
        "    location /health {\n"
        "        access_log off;\n"
        "        return 200 \"healthy\\n\";\n"
        "        add_header Content-Type text/plain;\n"
        "    }\n"
        "}\n"
    )


def frontend_component(namespace: str, node_port: int = 30080) -> Component:
    labels = {"app": "frontend", "tier": "frontend"}
    http_get = {"httpGet": {"path": "/", "port": 80}}
    return Component(
        name="frontend",
        description="Frontend",
        manifests=[
            {
                "apiVersion": "v1",
                "kind": "Service",
                "metadata": metadata("frontend", namespace, labels),
                "spec": {
                    "type": "NodePort",
                    "ports": [{"port": 80, "targetPort": 80, "nodePort": node_port}],
                    "selector": {"app": "frontend"},
                },
            },
            {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "metadata": metadata("frontend", namespace),
                "spec": {
                    "replicas": 2,
                    "selector": {"matchLabels": {"app": "frontend"}},
                    "template": {
                        "metadata": {"labels": labels},
                        "spec": {
                            "containers": [{
                                "name": "nginx",
                                "image": "nginx:1.25-alpine",
                                "ports": [{"containerPort": 80}],
                                "volumeMounts": [{"name": "nginx-config", "mountPath": "/etc/nginx/conf.d"}],
                                "resources": resources("32Mi", "50m", "64Mi", "100m"),
                                "livenessProbe": dict(http_get, initialDelaySeconds=10, periodSeconds=10),
                                "readinessProbe": dict(http_get, initialDelaySeconds=5, periodSeconds=5),
                            }],
                            "volumes": [{"name": "nginx-config", "configMap": {"name": "nginx-config"}}],
                        },
                    },
                },
            },
            {
                "apiVersion": "v1",
                "kind": "ConfigMap",
                "metadata": metadata("nginx-config", namespace),
                "data": {"default.conf": nginx_config(namespace)},
            },
        ],
    )


def autoscaler_component(namespace: str) -> Component:
    return Component(
        name="backend-hpa",
        description="Horizontal Pod Autoscaler",
        manifests=[{
            "apiVersion": "autoscaling/v2",
            "kind": "HorizontalPodAutoscaler",
            "metadata": metadata("backend-hpa", namespace),
            "spec": {
                "scaleTargetRef": {"apiVersion": "apps/v1", "kind": "Deployment", "name": "backend"},
                "minReplicas": 2,
                "maxReplicas": 10,
                "metrics": [{
                    "type": "Resource",
                    "resource": {
                        "name": "cpu",
                        "target": {"type": "Utilization", "averageUtilization": 70},
                    },
                }],
            },
        }],
    )


def network_policy_component(namespace: str) -> Component:
    def tcp(port):
        return {"protocol": "TCP", "port": port}

    return Component(
        name="backend-netpol",
        description="Network Policies",
        manifests=[{
            "apiVersion": "networking.k8s.io/v1",
            "kind": "NetworkPolicy",
            "metadata": metadata("backend-netpol", namespace),
            "spec": {
                "podSelector": {"matchLabels": {"app": "backend"}},
                "policyTypes": ["Ingress", "Egress"],
                "ingress": [{
                    "from": [{"podSelector": {"matchLabels": {"app": "frontend"}}}],
                    "ports": [tcp(3000)],
                }],
                "egress": [
                    {"to": [{"podSelector": {"matchLabels": {"app": "mysql"}}}], "ports": [tcp(3306)]},
                    {"to": [{"podSelector": {"matchLabels": {"app": "redis"}}}], "ports": [tcp(6379)]},
                    {
                        "to": [{"namespaceSelector": {}}],
                        "ports": [tcp(53), {"protocol": "UDP", "port": 53}],
                    },
                ],
            },
        }],
    )


def application_components(namespace: str, node_port: int = 30080) -> List[Component]:
    """All application components in deployment order."""
    return [
        mysql_component(namespace),
        redis_component(namespace),
        backend_component(namespace),
        frontend_component(namespace, node_port),
        autoscaler_component(namespace),
        network_policy_component(namespace),
    ]
