"""Scenario 2: Service discovery and networking issues."""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from .base import Scenario, ScenarioContext, scenario_labels
from .models import Breakage, Difficulty, ScenarioInfo

logger = logging.getLogger("kubebreak.scenarios.networking")

BROKEN_COREFILE = ".:53 {\n    errors\n    health\n    loop\n    forward . 1.2.3.4\n}\n"

# Server-populated metadata that would make a restored backup conflict on apply
VOLATILE_METADATA = ("resourceVersion", "uid", "creationTimestamp", "managedFields", "selfLink", "generation")

INFO = ScenarioInfo(
    number=2,
    title="Networking",
    difficulty=Difficulty.INTERMEDIATE,
    concepts=["Services", "DNS", "selectors", "endpoints", "NetworkPolicy"],
    breakages=[
        Breakage(code="2a", summary="Breaking service selector",
                 issue="Backend service selector mismatch"),
        Breakage(code="2b", summary="Creating service with wrong port",
                 issue="Service with wrong ports"),
        Breakage(code="2c", summary="Breaking DNS by corrupting CoreDNS config",
                 issue="CoreDNS misconfiguration"),
        Breakage(code="2d", summary="Creating overly restrictive NetworkPolicy",
                 issue="Overly restrictive NetworkPolicy"),
        Breakage(code="2e", summary="Breaking frontend service type",
                 issue="Frontend service type changed from NodePort"),
    ],
    troubleshooting=[
        "kubectl get svc -n {namespace}",
        "kubectl get endpoints -n {namespace}",
        "kubectl describe svc backend -n {namespace}",
        "kubectl exec -it <frontend-pod> -n {namespace} -- curl backend:3000",
        "kubectl get networkpolicies -n {namespace}",
        "kubectl logs -n kube-system -l k8s-app=kube-dns",
    ],
)


def sanitize_for_restore(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Strip server-populated fields so the object can be re-applied later."""
    clean = {k: v for k, v in obj.items() if k != "status"}
    meta = dict(clean.get("metadata", {}))
    for key in VOLATILE_METADATA:
        meta.pop(key, None)
    annotations = dict(meta.get("annotations") or {})
    annotations.pop("kubectl.kubernetes.io/last-applied-configuration", None)
    if annotations:
        meta["annotations"] = annotations
    else:
        meta.pop("annotations", None)
    clean["metadata"] = meta
    return clean


def backup_coredns(ctx: ScenarioContext) -> Path:
    """Save the CoreDNS ConfigMap so a complete cleanup can restore it."""
    path = Path(ctx.config.coredns_backup_path)
    if path.exists():
        # An earlier backup holds the healthy config; keep it
        logger.info(f"CoreDNS backup already present at {path}, not overwriting")
        return path
    configmap = ctx.kubectl.get_json("configmap", "coredns", namespace="kube-system")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(sanitize_for_restore(configmap), f, sort_keys=False)
    logger.info(f"CoreDNS config backed up to {path}")
    return path


def break_selector(ctx: ScenarioContext) -> None:
    ctx.kubectl.patch("service", "backend", {"spec": {"selector": {"app": "wrong-label"}}}, namespace=ctx.namespace)


def break_ports(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([{
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "broken-service", "namespace": ctx.namespace, "labels": scenario_labels("2b")},
        "spec": {
            "type": "ClusterIP",
            "ports": [{"port": 9999, "targetPort": 8888}],
            "selector": {"app": "backend"},
        },
    }])


def break_dns(ctx: ScenarioContext) -> None:
    backup_coredns(ctx)
    ctx.kubectl.patch(
        "configmap", "coredns", {"data": {"Corefile": BROKEN_COREFILE}},
        namespace="kube-system", patch_type="merge",
    )
    ctx.kubectl.rollout_restart("deployment", "coredns", namespace="kube-system")


def break_network_policy(ctx: ScenarioContext) -> None:
    ctx.kubectl.apply([{
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": {"name": "deny-all", "namespace": ctx.namespace},
        "spec": {"podSelector": {}, "policyTypes": ["Ingress", "Egress"]},
    }])


def break_service_type(ctx: ScenarioContext) -> None:
    ctx.kubectl.patch("service", "frontend", {"spec": {"type": "ClusterIP"}}, namespace=ctx.namespace)


SCENARIO = Scenario(INFO, {
    "2a": break_selector,
    "2b": break_ports,
    "2c": break_dns,
    "2d": break_network_policy,
    "2e": break_service_type,
})
