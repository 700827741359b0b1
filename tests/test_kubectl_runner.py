"""
Tests for the kubectl subprocess wrapper.

Usage:
    pytest tests/test_kubectl_runner.py -v
"""

import json
import subprocess

import pytest
import yaml

from conftest import KubectlResponse
from kubebreak.modules.kubectl import (
    Kubectl,
    KubectlError,
    KubectlNotFound,
    KubectlTimeout,
    to_yaml_stream,
)


@pytest.fixture
def kubectl():
    return Kubectl(namespace="workshop-app", timeout=30)


@pytest.mark.kubectl_mock
class TestRun:

    def test_success_returns_result(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("get pods", KubectlResponse(stdout="pod-a Running"))

        result = kubectl.run(["get", "pods"])

        assert result.success
        assert result.stdout == "pod-a Running"
        assert kubectl_mocker.calls[0].command == ["kubectl", "get", "pods"]

    def test_failure_raises_with_stderr(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("get svc", KubectlResponse(stderr="forbidden", returncode=1))

        with pytest.raises(KubectlError) as exc_info:
            kubectl.run(["get", "svc"])

        assert exc_info.value.result.returncode == 1
        assert "forbidden" in str(exc_info.value)

    def test_failure_tolerated_without_check(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("get svc", KubectlResponse(stderr="boom", returncode=1))
        result = kubectl.run(["get", "svc"], check=False)
        assert not result.success

    def test_not_found_detection(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("get pvc", KubectlResponse(
            stderr='Error from server (NotFound): persistentvolumeclaims "x" not found',
            returncode=1,
        ))
        assert kubectl.run(["get", "pvc", "x"], check=False).not_found

    def test_missing_binary(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("version", FileNotFoundError("kubectl"))
        with pytest.raises(KubectlNotFound):
            kubectl.run(["version"])

    def test_timeout(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("wait", subprocess.TimeoutExpired(["kubectl"], 30))
        with pytest.raises(KubectlTimeout):
            kubectl.run(["wait", "--for=condition=ready", "pod"])

    def test_kubeconfig_prefix(self, kubectl_mocker):
        Kubectl(kubeconfig="/etc/kubernetes/admin.conf").run(["get", "nodes"])
        assert kubectl_mocker.calls[0].command[:3] == [
            "kubectl", "--kubeconfig", "/etc/kubernetes/admin.conf",
        ]


@pytest.mark.kubectl_mock
class TestMutations:

    def test_apply_pipes_yaml_stream(self, kubectl_mocker, kubectl):
        manifests = [
            {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "a"}},
            {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "b"}},
        ]
        kubectl.apply(manifests)

        call = kubectl_mocker.calls[0]
        assert call.command == ["kubectl", "apply", "-f", "-"]
        docs = list(yaml.safe_load_all(call.input))
        assert [d["metadata"]["name"] for d in docs] == ["a", "b"]

    def test_patch_serializes_body(self, kubectl_mocker, kubectl):
        kubectl.patch("service", "backend", {"spec": {"selector": {"app": "x"}}})

        command = kubectl_mocker.calls[0].command
        assert command[:4] == ["kubectl", "patch", "service", "backend"]
        assert command[4:6] == ["-n", "workshop-app"]
        assert json.loads(command[-1]) == {"spec": {"selector": {"app": "x"}}}
        assert "--type" not in command

    def test_patch_type(self, kubectl_mocker, kubectl):
        kubectl.patch("configmap", "coredns", {"data": {}}, namespace="kube-system", patch_type="merge")
        command = kubectl_mocker.calls[0].command
        assert "kube-system" in command
        assert command[command.index("--type") + 1] == "merge"

    def test_delete_ignores_missing(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("delete", KubectlResponse(stderr="NotFound", returncode=1))
        result = kubectl.delete("pod", selector="scenario")
        assert not result.success
        assert kubectl_mocker.calls[0].command == [
            "kubectl", "delete", "pod", "-l", "scenario", "-n", "workshop-app",
        ]

    def test_delete_strict(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("delete", KubectlResponse(stderr="NotFound", returncode=1))
        with pytest.raises(KubectlError):
            kubectl.delete("configmap", "backend-config", ignore_missing=False)

    def test_cluster_scoped_delete_has_no_namespace(self, kubectl_mocker, kubectl):
        kubectl.delete_cluster_scoped("priorityclass", "super-high-priority")
        assert kubectl_mocker.calls[0].command == [
            "kubectl", "delete", "priorityclass", "super-high-priority",
        ]

    def test_scale(self, kubectl_mocker, kubectl):
        kubectl.scale("statefulset", "mysql", 0)
        assert kubectl_mocker.calls[0].command[-1] == "--replicas=0"

    def test_taint_overwrite(self, kubectl_mocker, kubectl):
        kubectl.taint("node-1", "workshop=broken:NoSchedule", overwrite=True)
        assert kubectl_mocker.calls[0].command == [
            "kubectl", "taint", "nodes", "node-1", "workshop=broken:NoSchedule", "--overwrite",
        ]

    def test_untaint_tolerates_absence(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("taint", KubectlResponse(stderr="taint not found", returncode=1))
        result = kubectl.untaint("node-1", "workshop")
        assert not result.success
        assert kubectl_mocker.calls[0].command[-1] == "workshop-"


@pytest.mark.kubectl_mock
class TestQueries:

    def test_wait_ready(self, kubectl_mocker, kubectl):
        kubectl.wait_ready("app=mysql", timeout=120)
        assert kubectl_mocker.calls[0].command == [
            "kubectl", "wait", "--for=condition=ready", "pod", "-l", "app=mysql",
            "-n", "workshop-app", "--timeout=120s",
        ]

    def test_get_json(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("get configmap", KubectlResponse(stdout='{"kind": "ConfigMap"}'))
        assert kubectl.get_json("configmap", "x") == {"kind": "ConfigMap"}

    def test_exists(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("get namespace gone", KubectlResponse(returncode=1, stderr="NotFound"))
        assert kubectl.exists("namespace", "present", namespace="")
        assert not kubectl.exists("namespace", "gone", namespace="")

    def test_node_queries_are_cluster_scoped(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("InternalIP", KubectlResponse(stdout="10.0.0.5\n"))
        assert kubectl.node_internal_ip() == "10.0.0.5"
        assert "-n" not in kubectl_mocker.calls[0].command

    def test_cluster_reachable(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("cluster-info", KubectlResponse(returncode=1, stderr="refused"))
        assert kubectl.cluster_reachable() is False

    def test_cluster_unreachable_without_binary(self, kubectl_mocker, kubectl):
        kubectl_mocker.register("cluster-info", FileNotFoundError("kubectl"))
        assert kubectl.cluster_reachable() is False


def test_to_yaml_stream_keeps_key_order():
    stream = to_yaml_stream([{"kind": "Service", "apiVersion": "v1"}])
    assert stream.index("kind") < stream.index("apiVersion")
