"""
Canned kubectl responses for workshop cluster states.

Usage:
    def test_status(kubectl_mocker):
        kubectl_mocker.register_scenario("healthy_app")
        # ... test code
"""

import json
import sys
from pathlib import Path

# Ensure tests directory is in path for imports
TESTS_DIR = Path(__file__).parent.parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from conftest import KubectlResponse

# =============================================================================
# Individual Response Builders
# =============================================================================

NODE_NAME = "k8s-master"
NODE_IP = "192.168.56.10"


def pod_list_response(
    name: str,
    status: str,
    ready: str = "1/1",
    restarts: int = 0,
    age: str = "5m",
) -> str:
    """Generate a kubectl get pods output line."""
    return f"{name}   {ready}   {status}   {restarts}   {age}"


def event_line(event_type: str, reason: str, age: str, source: str, message: str) -> str:
    """Generate a kubectl events line."""
    return f"{age}   {event_type}   {reason}   {source}   {message}"


HEALTHY_PODS = "\n".join([
    "NAME                        READY   STATUS    RESTARTS   AGE",
    pod_list_response("backend-6d4f9c7b8-2xkq4", "Running"),
    pod_list_response("backend-6d4f9c7b8-8mz7n", "Running"),
    pod_list_response("backend-6d4f9c7b8-tq9wd", "Running"),
    pod_list_response("frontend-5b7c8d9f6-4hjkl", "Running"),
    pod_list_response("frontend-5b7c8d9f6-9plmn", "Running"),
    pod_list_response("mysql-0", "Running"),
    pod_list_response("redis-7f8d9c6b5-xk2lp", "Running"),
])

BROKEN_PODS = "\n".join([
    "NAME                            READY   STATUS             RESTARTS   AGE",
    pod_list_response("broken-image-7c9f8d6b5-abcde", "ImagePullBackOff", "0/1"),
    pod_list_response("crash-loop-6b8d7c5f4-fghij", "CrashLoopBackOff", "0/1", restarts=4),
    pod_list_response("oom-killed-5a7c6b4e3-klmno", "OOMKilled", "0/1", restarts=2),
])

EVENTS = "\n".join(
    ["LAST SEEN   TYPE      REASON    OBJECT    MESSAGE"]
    + [
        event_line("Normal", "Scheduled", f"{i}m", f"pod/backend-{i}", "Successfully assigned")
        for i in range(15, 0, -1)
    ]
)

COREDNS_CONFIGMAP = {
    "apiVersion": "v1",
    "kind": "ConfigMap",
    "metadata": {
        "name": "coredns",
        "namespace": "kube-system",
        "resourceVersion": "1234",
        "uid": "0f5b7c1e-1111-2222-3333-444455556666",
        "creationTimestamp": "2024-01-01T00:00:00Z",
        "managedFields": [{"manager": "kubeadm"}],
    },
    "data": {
        "Corefile": ".:53 {\n    errors\n    health\n    forward . /etc/resolv.conf\n    cache 30\n}\n",
    },
}

# =============================================================================
# Scenario Definitions
# =============================================================================

HEALTHY_APP = {
    "cluster-info": KubectlResponse(stdout="Kubernetes control plane is running at https://192.168.56.10:6443"),
    "get namespace workshop-app": KubectlResponse(stdout="workshop-app   Active   10m"),
    "jsonpath={.items[0].metadata.name}": KubectlResponse(stdout=NODE_NAME),
    "InternalIP": KubectlResponse(stdout=NODE_IP),
    "get pods": KubectlResponse(stdout=HEALTHY_PODS),
    "get events": KubectlResponse(stdout=EVENTS),
    "get configmap coredns": KubectlResponse(stdout=json.dumps(COREDNS_CONFIGMAP)),
}

BROKEN_PODS_STATE = {
    **HEALTHY_APP,
    "get pods": KubectlResponse(stdout=BROKEN_PODS),
}

NO_NAMESPACE = {
    "cluster-info": KubectlResponse(stdout="Kubernetes control plane is running"),
    "get namespace workshop-app": KubectlResponse(
        stderr='Error from server (NotFound): namespaces "workshop-app" not found',
        returncode=1,
    ),
}

UNREACHABLE = {
    "cluster-info": KubectlResponse(
        stderr="The connection to the server localhost:8080 was refused",
        returncode=1,
    ),
}

SCENARIOS = {
    "healthy_app": HEALTHY_APP,
    "broken_pods": BROKEN_PODS_STATE,
    "no_namespace": NO_NAMESPACE,
    "unreachable": UNREACHABLE,
}
