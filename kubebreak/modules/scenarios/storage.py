"""Scenario 3: Storage and StatefulSet issues."""

import logging
import time
from typing import Any, Dict, Optional

from .base import Scenario, ScenarioContext, scenario_labels
from .models import Breakage, Difficulty, ScenarioInfo

logger = logging.getLogger("kubebreak.scenarios.storage")

SCALE_DOWN_GRACE_SECONDS = 5

INFO = ScenarioInfo(
    number=3,
    title="Storage",
    difficulty=Difficulty.INTERMEDIATE,
    concepts=["PV/PVC", "StatefulSets", "storage classes", "volume mounting"],
    breakages=[
        Breakage(code="3a", summary="Deleting PVC while pod is using it",
                 issue="Missing PVC for StatefulSet"),
        Breakage(code="3b", summary="Creating PVC with non-existent storage class",
                 issue="PVC with non-existent storage class"),
        Breakage(code="3c", summary="Breaking StatefulSet by changing serviceName",
                 issue="StatefulSet with wrong serviceName"),
        Breakage(code="3d", summary="Creating pod with wrong volume mount path",
                 issue="Pod with invalid volume mount"),
        Breakage(code="3e", summary="Creating PVC with insufficient storage",
                 issue="PVC requesting more storage than available"),
    ],
    troubleshooting=[
        "kubectl get pvc -n {namespace}",
        "kubectl describe pvc <pvc-name> -n {namespace}",
        "kubectl get pv",
        "kubectl get storageclass",
        "kubectl describe statefulset mysql -n {namespace}",
        "kubectl get events -n {namespace} --sort-by='.lastTimestamp'",
    ],
)


def pvc(name: str, namespace: str, code: str, size: str, storage_class: Optional[str] = None) -> Dict[str, Any]:
    spec = {
        "accessModes": ["ReadWriteOnce"],
        "resources": {"requests": {"storage": size}},
    }
    if storage_class:
        spec["storageClassName"] = storage_class
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": name, "namespace": namespace, "labels": scenario_labels(code)},
        "spec": spec,
    }


def break_claim(ctx: ScenarioContext) -> None:
    ctx.kubectl.scale("statefulset", "mysql", 0, namespace=ctx.namespace)
    time.sleep(SCALE_DOWN_GRACE_SECONDS)
    result = ctx.kubectl.delete(
        "pvc", "mysql-pvc", namespace=ctx.namespace,
        extra_args=["--force", "--grace-period=0"],
    )
    if not result.success:
        logger.warning(f"Could not delete mysql-pvc: {result.stderr.strip()}")


def break_storage_class(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([pvc("broken-pvc", ctx.namespace, "3b", "5Gi", "non-existent-storage-class")])


def break_service_name(ctx: ScenarioContext) -> None:
    ctx.kubectl.patch("statefulset", "mysql", {"spec": {"serviceName": "wrong-service"}}, namespace=ctx.namespace)


def break_mount(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([{
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": "broken-mount", "namespace": ctx.namespace, "labels": scenario_labels("3d")},
        "spec": {
            "containers": [{
                "name": "app",
                "image": "nginx:alpine",
                "volumeMounts": [{
                    "name": "data",
                    "mountPath": "/nonexistent/path/that/will/fail",
                    "subPath": "missing/subdirectory",
                }],
            }],
            "volumes": [{"name": "data", "emptyDir": {}}],
        },
    }])


def break_capacity(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([
        pvc("insufficient-storage", ctx.namespace, "3e", "1000Gi"),
        {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": "large-storage-pod",
                "namespace": ctx.namespace,
                "labels": scenario_labels("3e"),
            },
            "spec": {
                "containers": [{
                    "name": "app",
                    "image": "nginx:alpine",
                    "volumeMounts": [{"name": "storage", "mountPath": "/data"}],
                }],
                "volumes": [{
                    "name": "storage",
                    "persistentVolumeClaim": {"claimName": "insufficient-storage"},
                }],
            },
        },
    ])


SCENARIO = Scenario(INFO, {
    "3a": break_claim,
    "3b": break_storage_class,
    "3c": break_service_name,
    "3d": break_mount,
    "3e": break_capacity,
})
