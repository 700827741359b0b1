"""
Workshop manager.

Deploys the sample application, activates scenarios and restores the
cluster afterwards. Every operation is a sequence of kubectl calls; the
first unexpected failure raises and aborts the operation.
"""

import logging
import time
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import httpx
from rich.markdown import Markdown

from kubebreak import console as ui
from kubebreak.config import WorkshopConfig
from kubebreak.errors import ClusterUnreachable, KubebreakError
from kubebreak.modules.kubectl import Kubectl
from kubebreak.modules.manifests import READINESS_WAITS, application_components, namespace_manifest
from kubebreak.modules.scenarios import (
    PRIORITY_CLASS,
    WORKSHOP_TAINT_KEY,
    Breakage,
    ScenarioContext,
    get_scenario,
)

logger = logging.getLogger("kubebreak.workshop")

# Kinds removed by label when cleaning broken resources
LABELLED_KINDS = ["pod", "deployment", "svc", "pvc", "serviceaccount"]

COMMANDS_CHEAT_SHEET = """\
POD TROUBLESHOOTING:
  kubectl get pods -n {ns} -o wide
  kubectl describe pod <pod-name> -n {ns}
  kubectl logs <pod-name> -n {ns}
  kubectl logs <pod-name> -n {ns} --previous
  kubectl exec -it <pod-name> -n {ns} -- sh

EVENTS (MOST USEFUL!):
  kubectl get events -n {ns} --sort-by='.lastTimestamp'
  kubectl get events -n {ns} --watch

SERVICES & NETWORKING:
  kubectl get svc,endpoints -n {ns}
  kubectl describe svc <service-name> -n {ns}
  kubectl exec -it <pod> -n {ns} -- curl <service>:3000
  kubectl exec -it <pod> -n {ns} -- nslookup <service>

STORAGE:
  kubectl get pv,pvc -n {ns}
  kubectl describe pvc <pvc-name> -n {ns}
  kubectl get storageclass

CONFIGURATION:
  kubectl get configmap,secret -n {ns}
  kubectl describe configmap <name> -n {ns}
  kubectl get secret <name> -n {ns} -o yaml

RBAC:
  kubectl get sa,role,rolebinding -n {ns}
  kubectl auth can-i <verb> <resource> --as=<user> -n {ns}

NODES:
  kubectl get nodes --show-labels
  kubectl describe node <node-name>
  kubectl top nodes

RESOURCE USAGE:
  kubectl top pods -n {ns}

DEBUG POD:
  kubectl run debug --image=busybox --rm -it --restart=Never -- sh
"""


class WorkshopManager:
    """Deploy, break, inspect and reset the workshop application."""

    def __init__(self, config: WorkshopConfig, kubectl: Optional[Kubectl] = None):
        self.config = config
        self.namespace = config.namespace
        self.kubectl = kubectl or Kubectl(
            binary=config.kubectl_binary,
            namespace=config.namespace,
            timeout=config.kubectl_timeout,
        )

    # Setup

    def check_cluster(self) -> None:
        """Raise ClusterUnreachable unless kubectl can reach the API server."""
        if not self.kubectl.cluster_reachable():
            ui.log_error("Cannot connect to Kubernetes cluster")
            ui.log_info("Please ensure kubectl is configured")
            raise ClusterUnreachable("Cannot connect to Kubernetes cluster")
        ui.log_success("Connected to Kubernetes cluster")

    def deploy_app(self) -> None:
        """Deploy the sample application and wait for it to become ready."""
        ui.heading("Deploying Workshop Application")

        ui.log_info(f"Creating namespace: {self.namespace}")
        self.kubectl.apply([namespace_manifest(self.namespace)])

        for component in application_components(self.namespace, self.config.node_port):
            ui.log_info(f"Deploying {component.description}...")
            self.kubectl.apply(component.manifests)

        ui.log_info("Waiting for deployments to be ready...")
        for selector, timeout in READINESS_WAITS:
            self.kubectl.wait_ready(selector, namespace=self.namespace, timeout=timeout)

        ui.heading("Application Deployed Successfully!", style="bold green")
        self._print_deploy_summary()

    def _print_deploy_summary(self) -> None:
        ns = self.namespace
        ui.log_info("Deployment Summary:")
        ui.console.print(f"  Namespace: {ns}")
        ui.console.print("  Components:")
        ui.console.print("    - Frontend (nginx): 2 replicas")
        ui.console.print("    - Backend API: 3 replicas (auto-scaling enabled)")
        ui.console.print("    - Redis Cache: 1 replica")
        ui.console.print("    - MySQL Database: 1 replica (StatefulSet)")
        ui.console.print()

        self._print_access_urls(self.kubectl.node_internal_ip())

        ui.log_info("Useful Commands:")
        for command in (
            f"kubectl get all -n {ns}",
            f"kubectl get pods -n {ns} -o wide",
            f"kubectl logs -f deployment/backend -n {ns}",
            f"kubectl describe pod <pod-name> -n {ns}",
        ):
            ui.console.print(f"  {command}", markup=False)
        ui.console.print()

    def _print_access_urls(self, node_ip: str) -> None:
        ui.log_info("Access URLs:")
        ui.console.print(f"  Frontend: {self.config.app_url(node_ip)}")
        ui.console.print(f"  Backend API: {self.config.app_url(node_ip, '/api')}")
        ui.console.print(f"  Health Check: {self.config.app_url(node_ip, '/health')}")
        ui.console.print()

    def check_status(self) -> bool:
        """Print the state of every workshop resource; False if not deployed."""
        ui.log_info("Checking application status...")
        ui.log_info(f"Namespace: {self.namespace}")

        if not self.kubectl.exists("namespace", self.namespace, namespace=""):
            ui.log_error(f"Namespace {self.namespace} does not exist")
            ui.log_info("Deploy the application first")
            return False

        sections = [
            ("Pods", ["get", "pods", "-o", "wide"]),
            ("Services", ["get", "svc"]),
            ("Deployments", ["get", "deployment"]),
            ("StatefulSets", ["get", "statefulset"]),
            ("PVCs", ["get", "pvc"]),
        ]
        for title, args in sections:
            ui.console.print()
            ui.log_info(f"{title}:")
            self._show(self.kubectl.table(args))

        ui.console.print()
        ui.log_info("Recent Events:")
        events = self.kubectl.table(["get", "events", "--sort-by=.lastTimestamp"])
        if events.success:
            ui.console.print("\n".join(events.stdout.rstrip().splitlines()[-10:]), markup=False)
        else:
            self._show(events)
        return True

    def _show(self, result) -> None:
        if result.success:
            ui.console.print(result.stdout.rstrip(), markup=False)
        else:
            ui.log_error(result.stderr.strip() or f"{result.command} failed")

    def test_app(self, client: Optional[httpx.Client] = None) -> Dict[str, bool]:
        """Probe the frontend health endpoint and the proxied backend API."""
        ui.log_info("Testing application...")
        node_ip = self.kubectl.node_internal_ip()
        checks = {
            "/health": ("Frontend Health Check", "Frontend is healthy", "Frontend health check failed"),
            "/api": ("Backend API Test", "Backend is responding", "Backend is not responding"),
        }

        owns_client = client is None
        client = client or httpx.Client(timeout=self.config.http_timeout)
        results = {}
        try:
            for path, (title, ok_message, fail_message) in checks.items():
                url = self.config.app_url(node_ip, path)
                ui.console.print()
                ui.log_info(f"{title}:")
                try:
                    response = client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.debug(f"GET {url} failed: {e}")
                    ui.log_error(f"✗ {fail_message}")
                    results[path] = False
                    continue
                ui.log_success(f"✓ {ok_message}")
                ui.console.print(response.text.strip(), markup=False)
                results[path] = True
        finally:
            if owns_client:
                client.close()

        ui.console.print()
        self._print_access_urls(node_ip)
        return results

    # Scenarios

    def run_scenario(
        self,
        number: int,
        only: Optional[Sequence[str]] = None,
        assume_yes: bool = False,
    ) -> List[Breakage]:
        """Confirm, then activate a scenario. Returns the applied breakages."""
        scenario = get_scenario(number)
        scenario.select(only)

        ui.heading(f"Running: {scenario.info.label}", style="bold yellow")
        if not ui.confirm("This will break things in the cluster. Continue?", assume_yes=assume_yes):
            ui.log_info("Cancelled")
            return []

        applied = scenario.activate(ScenarioContext(kubectl=self.kubectl, config=self.config), only)

        ui.log_success("Scenario activated!")
        ui.log_info("Next steps:")
        ui.console.print("  1. Investigate the issues:")
        ui.console.print(f"     kubectl get pods -n {self.namespace}", markup=False)
        ui.console.print(f"     kubectl describe pod <pod-name> -n {self.namespace}", markup=False)
        ui.console.print("  2. Check the troubleshooting guide")
        ui.console.print("  3. Try to fix the issues")
        ui.console.print("  4. Clean up broken resources")
        ui.console.print()
        return applied

    # Cleanup

    def _remove_node_taint(self) -> None:
        node = self.kubectl.run(
            ["get", "nodes", "-o", "jsonpath={.items[0].metadata.name}"], check=False
        ).stdout.strip()
        if node:
            self.kubectl.untaint(node, WORKSHOP_TAINT_KEY)
        else:
            logger.debug("No node found, skipping taint removal")

    def clean_broken(self) -> None:
        """Delete everything scenarios created; missing resources are ignored."""
        ui.log_info("Cleaning up broken resources...")

        for kind in LABELLED_KINDS:
            ui.log_info(f"Removing {kind} resources with scenario label...")
            self.kubectl.delete(kind, selector="scenario", namespace=self.namespace)

        ui.log_info("Removing NetworkPolicies...")
        self.kubectl.delete("networkpolicy", "deny-all", namespace=self.namespace)

        ui.log_info("Removing PriorityClasses...")
        self.kubectl.delete_cluster_scoped("priorityclass", PRIORITY_CLASS)

        ui.log_info("Removing node taints...")
        self._remove_node_taint()

        ui.log_success("Cleanup completed")
        ui.console.print()
        ui.log_info("Patched core components (backend Service, ConfigMap, Secret, health checks) stay broken.")
        ui.log_info("Reset the application to restore them completely")

    def _wait_namespace_gone(self) -> None:
        deadline = time.monotonic() + self.config.namespace_delete_deadline
        while self.kubectl.exists("namespace", self.namespace, namespace=""):
            if time.monotonic() > deadline:
                raise KubebreakError(
                    f"Namespace {self.namespace} still terminating after "
                    f"{self.config.namespace_delete_deadline}s"
                )
            ui.console.print(".", end="")
            time.sleep(2)
        ui.console.print()

    def reset_app(self, assume_yes: bool = False) -> bool:
        """Delete the namespace, wait for it to disappear and redeploy."""
        ui.log_warning("This will delete and redeploy the entire application")
        if not ui.confirm("Continue?", assume_yes=assume_yes):
            ui.log_info("Cancelled")
            return False

        ui.log_info("Deleting namespace...")
        self.kubectl.delete("namespace", self.namespace, namespace="", extra_args=["--timeout=60s"], timeout=90)

        ui.log_info("Waiting for namespace to be fully deleted...")
        self._wait_namespace_gone()

        ui.log_info("Redeploying application...")
        self.deploy_app()
        return True

    def restore_coredns(self) -> bool:
        """Re-apply the CoreDNS backup taken by the networking scenario."""
        backup = Path(self.config.coredns_backup_path)
        if not backup.exists():
            return False
        ui.log_info("Restoring CoreDNS...")
        result = self.kubectl.apply_file(str(backup), check=False)
        if not result.success:
            ui.log_warning(f"CoreDNS restore failed: {result.stderr.strip()}")
            return False
        self.kubectl.rollout_restart("deployment", "coredns", namespace="kube-system")
        backup.unlink()
        return True

    def complete_cleanup(self, assume_yes: bool = False) -> bool:
        """Remove every trace of the workshop from the cluster."""
        ui.heading("COMPLETE CLEANUP - This will remove EVERYTHING", style="bold red")
        ui.console.print("This will delete:")
        ui.console.print(f"  - {self.namespace} namespace")
        ui.console.print("  - All workshop resources")
        ui.console.print("  - Priority classes")
        ui.console.print("  - Node taints")
        ui.console.print()

        if not ui.confirm("Are you absolutely sure?", expected="DELETE", assume_yes=assume_yes):
            ui.log_info("Cancelled")
            return False

        ui.log_info("Deleting namespace...")
        self.kubectl.delete("namespace", self.namespace, namespace="")

        ui.log_info("Removing priority classes...")
        self.kubectl.delete_cluster_scoped("priorityclass", PRIORITY_CLASS)

        ui.log_info("Removing node taints...")
        self._remove_node_taint()

        self.restore_coredns()

        ui.log_success("Complete cleanup finished")
        ui.log_info("The workshop environment has been removed")
        return True

    # Reference material

    def guide_text(self) -> str:
        if self.config.guide_path:
            path = Path(self.config.guide_path)
            if not path.is_file():
                raise KubebreakError(f"Troubleshooting guide not found: {path}")
            return path.read_text()
        return resources.files("kubebreak.guide").joinpath("TROUBLESHOOTING-GUIDE.md").read_text()

    def view_guide(self, pager: bool = True) -> None:
        markdown = Markdown(self.guide_text())
        if pager:
            with ui.console.pager(styles=True):
                ui.console.print(markdown)
        else:
            ui.console.print(markdown)

    def show_commands(self) -> None:
        ui.console.print()
        ui.log_info("Essential Troubleshooting Commands")
        ui.console.print()
        ui.console.print(COMMANDS_CHEAT_SHEET.format(ns=self.namespace), markup=False)
