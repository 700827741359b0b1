"""Scenario 4: ConfigMap, Secrets and resource management issues."""

from kubebreak.modules.manifests.application import b64

from .base import Scenario, ScenarioContext
from .models import Breakage, Difficulty, ScenarioInfo
from .pods import broken_deployment

BROKEN_PASSWORD = "brokenpassword"

INFO = ScenarioInfo(
    number=4,
    title="Configuration",
    difficulty=Difficulty.INTERMEDIATE,
    concepts=["ConfigMaps", "Secrets", "resource limits", "env vars", "probes"],
    breakages=[
        Breakage(code="4a", summary="Deleting ConfigMap that pods depend on",
                 issue="Missing ConfigMap"),
        Breakage(code="4b", summary="Breaking secret by corrupting data",
                 issue="Incorrect Secret data"),
        Breakage(code="4c", summary="Creating pod with invalid environment variable reference",
                 issue="Invalid environment variable references"),
        Breakage(code="4d", summary="Setting unrealistic resource limits",
                 issue="Unrealistic resource requests"),
        Breakage(code="4e", summary="Breaking liveness probe",
                 issue="Broken liveness probe"),
        Breakage(code="4f", summary="Creating invalid readiness probe",
                 issue="Invalid readiness probe"),
    ],
    troubleshooting=[
        "kubectl get configmaps -n {namespace}",
        "kubectl get secrets -n {namespace}",
        "kubectl describe pod <pod-name> -n {namespace}",
        "kubectl get events -n {namespace} --sort-by='.lastTimestamp'",
        "kubectl top pods -n {namespace}",
        "kubectl logs <pod-name> -n {namespace} --previous",
    ],
)


def break_configmap(ctx: ScenarioContext) -> None:
    ctx.kubectl.delete("configmap", "backend-config", namespace=ctx.namespace, ignore_missing=False)


def break_secret(ctx: ScenarioContext) -> None:
    ctx.kubectl.patch("secret", "mysql-secret", {"data": {"password": b64(BROKEN_PASSWORD)}}, namespace=ctx.namespace)
    ctx.kubectl.rollout_restart("statefulset", "mysql", namespace=ctx.namespace)


def break_env_refs(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "broken-env", ctx.namespace, "4c",
        {
            "image": "nginx:alpine",
            "env": [
                {
                    "name": "CONFIG_VALUE",
                    "valueFrom": {"configMapKeyRef": {"name": "non-existent-configmap", "key": "non-existent-key"}},
                },
                {
                    "name": "SECRET_VALUE",
                    "valueFrom": {"secretKeyRef": {"name": "non-existent-secret", "key": "non-existent-key"}},
                },
            ],
        },
    )])


def break_resources(ctx: ScenarioContext) -> None:
    huge = {"memory": "10Gi", "cpu": "8"}
    ctx.kubectl.apply([broken_deployment(
        "resource-limited", ctx.namespace, "4d",
        {"image": "nginx:alpine", "resources": {"requests": dict(huge), "limits": dict(huge)}},
    )])


def break_liveness(ctx: ScenarioContext) -> None:
    ctx.kubectl.patch("deployment", "backend", {
        "spec": {"template": {"spec": {"containers": [{
            "name": "backend",
            "livenessProbe": {
                "httpGet": {"path": "/nonexistent", "port": 3000},
                "initialDelaySeconds": 5,
                "periodSeconds": 5,
            },
        }]}}}
    }, namespace=ctx.namespace)


def break_readiness(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([broken_deployment(
        "broken-probe", ctx.namespace, "4f",
        {
            "image": "nginx:alpine",
            "readinessProbe": {
                "httpGet": {"path": "/ready", "port": 9999},
                "initialDelaySeconds": 1,
                "periodSeconds": 2,
                "failureThreshold": 1,
            },
        },
        replicas=2,
    )])


SCENARIO = Scenario(INFO, {
    "4a": break_configmap,
    "4b": break_secret,
    "4c": break_env_refs,
    "4d": break_resources,
    "4e": break_liveness,
    "4f": break_readiness,
})
