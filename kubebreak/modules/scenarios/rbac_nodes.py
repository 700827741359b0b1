"""Scenario 5: RBAC, security context and node scheduling issues."""

from kubebreak import console as ui

from .base import Scenario, ScenarioContext, scenario_labels
from .models import Breakage, Difficulty, ScenarioInfo
from .pods import broken_deployment

WORKSHOP_TAINT_KEY = "workshop"
WORKSHOP_TAINT = f"{WORKSHOP_TAINT_KEY}=broken:NoSchedule"
PRIORITY_CLASS = "super-high-priority"

INFO = ScenarioInfo(
    number=5,
    title="RBAC & Nodes",
    difficulty=Difficulty.ADVANCED,
    concepts=["RBAC", "ServiceAccounts", "Security Context", "Taints/Tolerations", "Node scheduling"],
    breakages=[
        Breakage(code="5a", summary="Creating pod with restricted security context",
                 issue="Pod with restrictive security context"),
        Breakage(code="5b", summary="Creating ServiceAccount without permissions",
                 issue="ServiceAccount without RBAC permissions"),
        Breakage(code="5c", summary="Creating pod with node selector that doesn't match",
                 issue="Pod with impossible node selector"),
        Breakage(code="5d", summary="Adding taint to node",
                 issue="Node tainted preventing scheduling"),
        Breakage(code="5e", summary="Creating pod with very high priority that disrupts others",
                 issue="High priority pods disrupting others"),
        Breakage(code="5f", summary="Creating pod with affinity rules that conflict",
                 issue="Conflicting affinity/anti-affinity rules"),
    ],
    troubleshooting=[
        "kubectl get pods -n {namespace} -o wide",
        "kubectl describe pod <pod-name> -n {namespace}",
        "kubectl get nodes --show-labels",
        "kubectl describe node <node-name>",
        "kubectl get priorityclass",
        "kubectl auth can-i --list --as=system:serviceaccount:{namespace}:restricted-sa",
        "kubectl get events -n {namespace} --sort-by='.lastTimestamp'",
    ],
)


def break_security_context(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([{
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": "security-restricted", "namespace": ctx.namespace, "labels": scenario_labels("5a")},
        "spec": {
            "securityContext": {"runAsNonRoot": True, "runAsUser": 1000, "fsGroup": 1000},
            "containers": [{
                "name": "app",
                "image": "nginx:alpine",
                "securityContext": {"allowPrivilegeEscalation": False, "readOnlyRootFilesystem": True},
                "volumeMounts": [
                    {"name": "cache", "mountPath": "/var/cache/nginx"},
                    {"name": "run", "mountPath": "/var/run"},
                ],
            }],
            "volumes": [{"name": "cache", "emptyDir": {}}, {"name": "run", "emptyDir": {}}],
        },
    }])


def break_service_account(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([
        {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {"name": "restricted-sa", "namespace": ctx.namespace, "labels": scenario_labels("5b")},
        },
        broken_deployment(
            "rbac-restricted", ctx.namespace, "5b",
            {
                "image": "bitnami/kubectl:latest",
                "command": ["/bin/sh"],
                "args": ["-c", "while true; do kubectl get pods; sleep 10; done"],
            },
            pod_spec={"serviceAccountName": "restricted-sa"},
        ),
    ])


def break_node_selector(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "unschedulable", ctx.namespace, "5c",
        {"image": "nginx:alpine"},
        replicas=2,
        pod_spec={"nodeSelector": {"disk-type": "ssd", "gpu": "nvidia-v100"}},
    )])


def break_taint(ctx: ScenarioContext) -> None:
    node = ctx.kubectl.first_node_name()
    ctx.kubectl.taint(node, WORKSHOP_TAINT, overwrite=True)
    ui.log_info(f"Node tainted: {node}")


def break_priority(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([
        {
            "apiVersion": "scheduling.k8s.io/v1",
            "kind": "PriorityClass",
            "metadata": {"name": PRIORITY_CLASS},
            "value": 1000000,
            "globalDefault": False,
            "description": "Super high priority that will evict other pods",
        },
        broken_deployment(
            "high-priority-disruptor", ctx.namespace, "5e",
            {
                "image": "nginx:alpine",
                "resources": {"requests": {"memory": "512Mi", "cpu": "500m"}},
            },
            replicas=5,
            pod_spec={"priorityClassName": PRIORITY_CLASS},
        ),
    ])


def break_affinity(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "affinity-conflict", ctx.namespace, "5f",
        {"image": "nginx:alpine"},
        replicas=3,
        pod_spec={"affinity": {
            "podAntiAffinity": {
                "requiredDuringSchedulingIgnoredDuringExecution": [{
                    "labelSelector": {"matchLabels": {"app": "affinity-conflict"}},
                    "topologyKey": "kubernetes.io/hostname",
                }],
            },
            "nodeAffinity": {
                "requiredDuringSchedulingIgnoredDuringExecution": {
                    "nodeSelectorTerms": [{
                        "matchExpressions": [{
                            "key": "kubernetes.io/hostname",
                            "operator": "In",
                            "values": ["non-existent-node"],
                        }],
                    }],
                },
            },
        }},
    )])


SCENARIO = Scenario(INFO, {
    "5a": break_security_context,
    "5b": break_service_account,
    "5c": break_node_selector,
    "5d": break_taint,
    "5e": break_priority,
    "5f": break_affinity,
})
