"""Cluster health report."""

import logging
from typing import Optional

from kubebreak import console as ui
from kubebreak.config import ClusterConfig
from kubebreak.errors import PrecheckError
from kubebreak.modules.kubectl import Kubectl

from .prechecks import Prechecks
from .shell import HostShell

logger = logging.getLogger("kubebreak.host.status")

METRICS_SERVER_URL = (
    "https://github.com/kubernetes-sigs/metrics-server/releases/latest/download/components.yaml"
)


def _section(title: str, output: str) -> None:
    ui.log_info(title)
    ui.console.print(output.rstrip(), markup=False)
    ui.console.print()


def show_status(
    config: ClusterConfig,
    shell: Optional[HostShell] = None,
    kubectl: Optional[Kubectl] = None,
) -> None:
    """Print kubelet, node, pod and component status. Failures only warn."""
    shell = shell or HostShell()
    kubectl = kubectl or Kubectl()

    ui.heading("Kubernetes Cluster Status")
    Prechecks(config, shell).check_root()

    if not shell.command_exists("kubectl"):
        raise PrecheckError("Kubernetes is not installed")

    kubelet = shell.run(["systemctl", "status", "kubelet", "--no-pager", "-l"], check=False)
    _section("Kubelet Status:", kubelet.stdout)

    reads = (
        ("Node Status:", ["get", "nodes", "-o", "wide"], "Cannot connect to cluster"),
        ("System Pods Status:", ["get", "pods", "-n", "kube-system"], "Cannot get pods"),
        ("Cluster Information:", ["cluster-info"], "Cannot get cluster info"),
    )
    for title, args, failure in reads:
        result = kubectl.run(args, check=False)
        if result.success:
            _section(title, result.stdout)
        else:
            ui.log_info(title)
            ui.log_error(failure)

    ui.log_info("Resource Usage:")
    top = kubectl.run(["top", "nodes"], check=False)
    if top.success:
        ui.console.print(top.stdout.rstrip(), markup=False)
    else:
        ui.log_warning("Metrics server not installed. Install with:")
        ui.console.print(f"  kubectl apply -f {METRICS_SERVER_URL}")
    ui.console.print()

    components = kubectl.run(["get", "componentstatuses"], check=False)
    if components.success:
        _section("Component Status:", components.stdout)
    else:
        ui.log_info("Component Status:")
        ui.log_warning("Component status API deprecated in recent versions")
