"""
Tests for scenario activation against mocked kubectl.

Usage:
    pytest tests/test_scenarios.py -v
    pytest tests/test_scenarios.py -v -k coredns
"""

import json
from pathlib import Path

import pytest
import yaml

from conftest import KubectlResponse
from kubebreak.errors import ScenarioError
from kubebreak.modules.kubectl import Kubectl, KubectlError
from kubebreak.modules.scenarios import ScenarioContext, get_scenario
from kubebreak.modules.scenarios.networking import (
    BROKEN_COREFILE,
    backup_coredns,
    sanitize_for_restore,
)


@pytest.fixture
def ctx(workshop_config):
    return ScenarioContext(
        kubectl=Kubectl(namespace=workshop_config.namespace),
        config=workshop_config,
    )


def applied_docs(kubectl_mocker):
    return [d for d in yaml.safe_load_all(kubectl_mocker.applied_input()) if d]


def patch_body(call):
    return json.loads(call.command[call.command.index("-p") + 1])


# =============================================================================
# Selection
# =============================================================================

class TestSelection:

    def test_unknown_scenario(self):
        with pytest.raises(ScenarioError, match="Unknown scenario: 9"):
            get_scenario(9)

    def test_select_all_by_default(self):
        assert [b.code for b in get_scenario(1).select()] == ["1a", "1b", "1c"]

    def test_select_subset_keeps_declared_order(self):
        selected = get_scenario(2).select(["2e", "2A"])
        assert [b.code for b in selected] == ["2a", "2e"]

    def test_select_unknown_code(self):
        with pytest.raises(ScenarioError, match="3z"):
            get_scenario(3).select(["3z"])


# =============================================================================
# Scenario 1: Pods
# =============================================================================

@pytest.mark.kubectl_mock
class TestPodScenario:

    def test_creates_three_labelled_deployments(self, kubectl_mocker, ctx, recording_console):
        get_scenario(1).activate(ctx)

        docs = applied_docs(kubectl_mocker)
        by_name = {d["metadata"]["name"]: d for d in docs}
        assert set(by_name) == {"broken-image", "crash-loop", "oom-killed"}
        assert by_name["broken-image"]["spec"]["replicas"] == 2
        assert by_name["crash-loop"]["metadata"]["labels"] == {"scenario": "1b"}
        container = by_name["oom-killed"]["spec"]["template"]["spec"]["containers"][0]
        assert container["resources"]["limits"]["memory"]

    def test_prints_summary(self, kubectl_mocker, ctx, recording_console):
        get_scenario(1).activate(ctx)
        output = recording_console.export_text()
        assert "[BREAKING] Scenario 1a" in output
        assert "Issues Created" in output
        assert "kubectl get pods -n workshop-app" in output

    def test_failure_aborts_remaining_breakages(self, kubectl_mocker, ctx, recording_console):
        kubectl_mocker.register("apply", KubectlResponse(stderr="admission denied", returncode=1))
        with pytest.raises(KubectlError):
            get_scenario(1).activate(ctx)
        assert kubectl_mocker.call_count == 1


# =============================================================================
# Scenario 2: Networking
# =============================================================================

@pytest.mark.kubectl_mock
class TestNetworkingScenario:

    def test_selector_patch(self, kubectl_mocker, ctx, recording_console):
        get_scenario(2).activate(ctx, only=["2a"])
        call = kubectl_mocker.get_calls_matching("patch service backend")[0]
        assert patch_body(call) == {"spec": {"selector": {"app": "wrong-label"}}}

    def test_coredns_backup_then_break(self, kubectl_mocker, ctx, recording_console):
        kubectl_mocker.register_scenario("healthy_app")

        get_scenario(2).activate(ctx, only=["2c"])

        backup = yaml.safe_load(Path(ctx.config.coredns_backup_path).read_text())
        assert "resourceVersion" not in backup["metadata"]
        assert "forward . /etc/resolv.conf" in backup["data"]["Corefile"]

        call = kubectl_mocker.get_calls_matching("patch configmap coredns")[0]
        assert call.command[call.command.index("--type") + 1] == "merge"
        assert patch_body(call) == {"data": {"Corefile": BROKEN_COREFILE}}
        assert kubectl_mocker.was_called_with("rollout restart deployment coredns -n kube-system")

    def test_existing_backup_not_overwritten(self, kubectl_mocker, ctx):
        path = Path(ctx.config.coredns_backup_path)
        path.write_text("healthy: original\n")

        backup_coredns(ctx)

        assert path.read_text() == "healthy: original\n"
        assert not kubectl_mocker.was_called_with("get configmap coredns")

    def test_deny_all_policy(self, kubectl_mocker, ctx, recording_console):
        get_scenario(2).activate(ctx, only=["2d"])
        policy = applied_docs(kubectl_mocker)[0]
        assert policy["metadata"]["name"] == "deny-all"
        assert policy["spec"]["podSelector"] == {}
        assert policy["spec"]["policyTypes"] == ["Ingress", "Egress"]

    def test_frontend_becomes_cluster_ip(self, kubectl_mocker, ctx, recording_console):
        get_scenario(2).activate(ctx, only=["2e"])
        call = kubectl_mocker.get_calls_matching("patch service frontend")[0]
        assert patch_body(call) == {"spec": {"type": "ClusterIP"}}


def test_sanitize_for_restore_strips_server_fields():
    obj = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": "coredns",
            "uid": "abc",
            "resourceVersion": "1",
            "annotations": {"kubectl.kubernetes.io/last-applied-configuration": "{}"},
        },
        "status": {},
        "data": {"Corefile": "x"},
    }
    clean = sanitize_for_restore(obj)
    assert clean["metadata"] == {"name": "coredns"}
    assert "status" not in clean
    assert obj["metadata"]["uid"] == "abc"


# =============================================================================
# Scenario 3: Storage
# =============================================================================

@pytest.mark.kubectl_mock
class TestStorageScenario:

    def test_claim_deleted_after_scale_down(self, kubectl_mocker, ctx, no_sleep, recording_console):
        get_scenario(3).activate(ctx, only=["3a"])

        commands = [c.full_command_str for c in kubectl_mocker.calls]
        assert "--replicas=0" in commands[0]
        assert "delete pvc mysql-pvc" in commands[1]
        assert "--force" in commands[1]
        no_sleep.assert_called_once()

    def test_claim_delete_failure_tolerated(self, kubectl_mocker, ctx, no_sleep, recording_console):
        kubectl_mocker.register("delete pvc", KubectlResponse(stderr="NotFound", returncode=1))
        get_scenario(3).activate(ctx, only=["3a"])

    def test_broken_storage_class(self, kubectl_mocker, ctx, recording_console):
        get_scenario(3).activate(ctx, only=["3b"])
        claim = applied_docs(kubectl_mocker)[0]
        assert claim["spec"]["storageClassName"] == "non-existent-storage-class"
        assert claim["metadata"]["labels"] == {"scenario": "3b"}

    def test_capacity_resources_are_labelled(self, kubectl_mocker, ctx, recording_console):
        get_scenario(3).activate(ctx, only=["3e"])
        for doc in applied_docs(kubectl_mocker):
            assert doc["metadata"]["labels"]["scenario"] == "3e"


# =============================================================================
# Scenario 4: Configuration
# =============================================================================

@pytest.mark.kubectl_mock
class TestConfigurationScenario:

    def test_configmap_delete_is_strict(self, kubectl_mocker, ctx, recording_console):
        kubectl_mocker.register("delete configmap", KubectlResponse(stderr="NotFound", returncode=1))
        with pytest.raises(KubectlError):
            get_scenario(4).activate(ctx, only=["4a"])

    def test_secret_corrupted_and_mysql_restarted(self, kubectl_mocker, ctx, recording_console):
        get_scenario(4).activate(ctx, only=["4b"])
        call = kubectl_mocker.get_calls_matching("patch secret mysql-secret")[0]
        assert patch_body(call) == {"data": {"password": "YnJva2VucGFzc3dvcmQ="}}
        assert kubectl_mocker.was_called_with("rollout restart statefulset mysql")

    def test_full_scenario_order(self, kubectl_mocker, ctx, recording_console):
        applied = get_scenario(4).activate(ctx)
        assert [b.code for b in applied] == ["4a", "4b", "4c", "4d", "4e", "4f"]


# =============================================================================
# Scenario 5: RBAC and nodes
# =============================================================================

@pytest.mark.kubectl_mock
class TestRbacNodesScenario:

    def test_taints_first_node(self, kubectl_mocker, ctx, recording_console):
        kubectl_mocker.register_scenario("healthy_app")
        get_scenario(5).activate(ctx, only=["5d"])
        assert kubectl_mocker.was_called_with(
            "taint nodes k8s-master workshop=broken:NoSchedule --overwrite"
        )

    def test_priority_class_is_cluster_scoped(self, kubectl_mocker, ctx, recording_console):
        get_scenario(5).activate(ctx, only=["5e"])
        docs = applied_docs(kubectl_mocker)
        priority = next(d for d in docs if d["kind"] == "PriorityClass")
        assert "namespace" not in priority["metadata"]
        disruptor = next(d for d in docs if d["kind"] == "Deployment")
        assert disruptor["spec"]["replicas"] == 5

    def test_service_account_is_labelled(self, kubectl_mocker, ctx, recording_console):
        get_scenario(5).activate(ctx, only=["5b"])
        account = next(d for d in applied_docs(kubectl_mocker) if d["kind"] == "ServiceAccount")
        assert account["metadata"]["labels"] == {"scenario": "5b"}
