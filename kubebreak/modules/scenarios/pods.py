"""Scenario 1: Pod CrashLoopBackOff, ImagePullBackOff and OOMKilled."""

from typing import Any, Dict, Optional

from .base import Scenario, ScenarioContext, scenario_labels
from .models import Breakage, Difficulty, ScenarioInfo

INFO = ScenarioInfo(
    number=1,
    title="Pod Issues",
    difficulty=Difficulty.BEGINNER,
    concepts=["Pod lifecycle", "container issues", "image management"],
    breakages=[
        Breakage(code="1a", summary="Deploying pod with non-existent image",
                 issue="ImagePullBackOff - Non-existent image"),
        Breakage(code="1b", summary="Deploying pod with wrong container command",
                 issue="CrashLoopBackOff - Container exits immediately"),
        Breakage(code="1c", summary="Deploying pod with OOMKilled (memory limit too low)",
                 issue="OOMKilled - Memory limit too low"),
    ],
    troubleshooting=[
        "kubectl get pods -n {namespace}",
        "kubectl describe pod <pod-name> -n {namespace}",
        "kubectl logs <pod-name> -n {namespace}",
        "kubectl get events -n {namespace} --sort-by='.lastTimestamp'",
    ],
)


def broken_deployment(
    name: str,
    namespace: str,
    code: str,
    container: Dict[str, Any],
    replicas: int = 1,
    pod_spec: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """A single-container Deployment labelled with its breakage code."""
    spec = dict(pod_spec or {})
    spec["containers"] = [dict({"name": "app"}, **container)]
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "labels": scenario_labels(code)},
        "spec": {
            "replicas": replicas,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": spec,
            },
        },
    }


def break_image(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "broken-image", ctx.namespace, "1a",
        {"image": "nonexistent/fake-image:v99.99.99", "ports": [{"containerPort": 8080}]},
        replicas=2,
    )])


def break_command(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "crash-loop", ctx.namespace, "1b",
        {"image": "busybox:latest", "command": ["/bin/sh"], "args": ["-c", "exit 1"]},
    )])


def break_memory(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "oom-killed", ctx.namespace, "1c",
        {
            "image": "nginx:alpine",
            "resources": {"requests": {"memory": "10Mi"}, "limits": {"memory": "10Mi"}},
        },
    )])


SCENARIO = Scenario(INFO, {
    "1a": break_image,
    "1b": break_command,
    "1c": break_memory,
})
