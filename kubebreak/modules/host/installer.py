"""
Single-node kubeadm cluster installer for CentOS 9 Stream.

Steps run in a fixed order and stop at the first required failure. Files
are written under ``ClusterConfig.host_root`` so the sequence can be
exercised against a scratch directory.
"""

import logging
import os
import pwd
import time
from pathlib import Path
from typing import Mapping, Optional, Tuple

import httpx

from kubebreak import console as ui
from kubebreak.config import ClusterConfig
from kubebreak.config.provider import split_port_spec
from kubebreak.errors import InstallError
from kubebreak.modules.kubectl import Kubectl, KubectlError, KubectlTimeout

from .cleanup import ClusterCleanup
from .parsers import (
    KERNEL_MODULES,
    SYSCTL_SETTINGS,
    comment_swap_entries,
    count_not_running,
    enable_systemd_cgroup,
    extract_join_command,
    kubernetes_repo,
    node_status,
    rewrite_calico_cidr,
    set_selinux_mode,
)
from .prechecks import Prechecks
from .shell import HostShell, user_home

logger = logging.getLogger("kubebreak.host.installer")

DOCKER_REPO_URL = "https://download.docker.com/linux/centos/docker-ce.repo"
ADMIN_CONF = "/etc/kubernetes/admin.conf"
INIT_LOG = "/tmp/kubeadm-init.log"
JOIN_SCRIPT = "/tmp/kubeadm-join-command.sh"
CALICO_MANIFEST = "/tmp/calico.yaml"
CONTROL_PLANE_TAINT = "node-role.kubernetes.io/control-plane-"
CALICO_POLL_SECONDS = 5
DEFAULT_STORAGE_CLASS_PATCH = {
    "metadata": {"annotations": {"storageclass.kubernetes.io/is-default-class": "true"}}
}


class ClusterInstaller:
    """Install containerd, kubeadm and Calico and bootstrap the control plane."""

    def __init__(
        self,
        config: ClusterConfig,
        shell: Optional[HostShell] = None,
        kubectl: Optional[Kubectl] = None,
        env: Optional[Mapping[str, str]] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config
        self.shell = shell or HostShell()
        self.kubectl = kubectl or Kubectl(kubeconfig=str(config.host_path(ADMIN_CONF)))
        self.env = os.environ if env is None else env
        self.http_client = http_client

    def _write(self, path: str, content: str, mode: Optional[int] = None) -> Path:
        target = self.config.host_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        if mode is not None:
            target.chmod(mode)
        return target

    def primary_ip(self) -> str:
        addresses = self.shell.output(["hostname", "-I"], check=True).split()
        if not addresses:
            raise InstallError("Could not determine the host IP address")
        return addresses[0]

    # Steps

    def update_system(self) -> None:
        self.shell.run_with_progress(["dnf", "update", "-y"], "Updating system packages")
        ui.log_success("System updated")

    def configure_hostname(self, hostname: str) -> str:
        ui.log_info(f"Configuring hostname: {hostname}")
        self.shell.run(["hostnamectl", "set-hostname", hostname])
        ip_addr = self.primary_ip()

        hosts = self.config.host_path("/etc/hosts")
        content = hosts.read_text() if hosts.exists() else ""
        if not any(hostname in line.split()[1:] for line in content.splitlines()):
            if content and not content.endswith("\n"):
                content += "\n"
            self._write("/etc/hosts", f"{content}{ip_addr} {hostname}\n")

        ui.log_success(f"Hostname configured: {hostname} (IP: {ip_addr})")
        return ip_addr

    def disable_swap(self) -> None:
        ui.log_info("Disabling swap...")
        self.shell.run(["swapoff", "-a"])

        fstab = self.config.host_path("/etc/fstab")
        if fstab.exists():
            fstab.write_text(comment_swap_entries(fstab.read_text()))

        if self.shell.output(["swapon", "--show"]).strip():
            raise InstallError("Failed to disable swap")
        ui.log_success("Swap disabled")

    def configure_kernel(self) -> None:
        ui.log_info("Configuring kernel modules and parameters...")
        self._write("/etc/modules-load.d/k8s.conf", KERNEL_MODULES)
        for module in KERNEL_MODULES.split():
            self.shell.run(["modprobe", module])
        self._write("/etc/sysctl.d/k8s.conf", SYSCTL_SETTINGS)
        self.shell.run(["sysctl", "--system"], check=False)
        ui.log_success("Kernel configured")

    def install_containerd(self) -> None:
        ui.log_info("Installing containerd...")
        self.shell.run_with_progress(["dnf", "install", "-y", "yum-utils"], "Installing dependencies")
        self.shell.run(["yum-config-manager", "--add-repo", DOCKER_REPO_URL])
        self.shell.run_with_progress(["dnf", "install", "-y", "containerd.io"], "Installing containerd")

        default_config = self.shell.output(["containerd", "config", "default"], check=True)
        self._write("/etc/containerd/config.toml", enable_systemd_cgroup(default_config))

        self.shell.run(["systemctl", "enable", "--now", "containerd"])
        if not self.shell.service_active("containerd"):
            raise InstallError("Failed to start containerd")
        ui.log_success("containerd installed and running")

    def configure_firewall(self) -> bool:
        ui.log_info("Configuring firewall...")
        if not self.shell.service_active("firewalld"):
            ui.log_info("Firewall not active, skipping configuration")
            return False

        for spec in self.config.firewall_ports:
            port, protocol = split_port_spec(spec)
            self.shell.run(
                ["firewall-cmd", "--permanent", f"--add-port={port}/{protocol}"], check=False
            )
        self.shell.run(["firewall-cmd", "--reload"], check=False)
        ui.log_success("Firewall configured")
        return True

    def disable_selinux(self) -> None:
        ui.log_info("Configuring SELinux...")
        self.shell.run(["setenforce", "0"], check=False)
        selinux = self.config.host_path("/etc/selinux/config")
        if selinux.exists():
            selinux.write_text(set_selinux_mode(selinux.read_text(), "enforcing", "permissive"))
        ui.log_success("SELinux set to permissive mode")

    def install_kubernetes(self) -> None:
        ui.log_info("Installing Kubernetes components...")
        self._write("/etc/yum.repos.d/kubernetes.repo", kubernetes_repo(self.config.k8s_version))
        self.shell.run_with_progress(
            ["dnf", "install", "-y", "kubelet", "kubeadm", "kubectl", "--disableexcludes=kubernetes"],
            "Installing Kubernetes packages",
        )
        self.shell.run(["systemctl", "enable", "--now", "kubelet"])
        ui.log_success("Kubernetes components installed")

    def initialize_cluster(self) -> Optional[str]:
        """
        Run ``kubeadm init`` and save its log and join command.

        Returns the join command, or None when it was not found in the log.
        """
        ui.log_info("Initializing Kubernetes cluster...")
        ui.log_info("This may take 2-3 minutes...")
        ip_addr = self.primary_ip()

        with ui.progress("Running kubeadm init"):
            result = self.shell.run(
                [
                    "kubeadm", "init",
                    f"--pod-network-cidr={self.config.pod_cidr}",
                    f"--apiserver-advertise-address={ip_addr}",
                ],
                check=False,
            )
        log_text = result.stdout + result.stderr
        self._write(INIT_LOG, log_text)

        if not result.success:
            raise InstallError(f"Cluster initialization failed. Check {INIT_LOG} for details")
        ui.log_success("Cluster initialized successfully")

        join_command = extract_join_command(log_text)
        if join_command:
            self._write(JOIN_SCRIPT, join_command + "\n", mode=0o755)
            ui.log_info(f"Join command saved to: {JOIN_SCRIPT}")
        else:
            ui.log_warning(f"No join command found in {INIT_LOG}")
        return join_command

    def configure_kubectl(self) -> None:
        """Copy admin.conf to the invoking user's (and root's) ~/.kube/config."""
        ui.log_info("Configuring kubectl...")
        admin_conf = self.config.host_path(ADMIN_CONF).read_text()
        sudo_user = self.env.get("SUDO_USER")

        home = user_home(sudo_user, self.env)
        kube_config = self._write(f"{home}/.kube/config", admin_conf)
        if sudo_user:
            for path in (kube_config.parent, kube_config):
                os.chown(path, *self._owner(sudo_user))
            self._write("/root/.kube/config", admin_conf)

        ui.log_success("kubectl configured")

    @staticmethod
    def _owner(user: str) -> Tuple[int, int]:
        entry = pwd.getpwnam(user)
        return entry.pw_uid, entry.pw_gid

    def download_calico(self) -> str:
        url = self.config.calico_manifest_url
        try:
            if self.http_client is not None:
                response = self.http_client.get(url)
            else:
                with httpx.Client(follow_redirects=True, timeout=60.0) as client:
                    response = client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise InstallError(f"Failed to download Calico manifest: {e}")
        return response.text

    def install_cni(self) -> bool:
        """Install Calico; returns False when calico-node is not Ready in time."""
        ui.log_info("Installing Calico CNI plugin...")
        manifest = rewrite_calico_cidr(self.download_calico(), self.config.pod_cidr)
        path = self._write(CALICO_MANIFEST, manifest)
        self.kubectl.apply_file(str(path))

        ui.log_info("Waiting for Calico pods to be ready (this may take 2-3 minutes)...")
        elapsed = 0
        while elapsed < self.config.calico_ready_timeout:
            try:
                ready = self.kubectl.wait_ready(
                    "k8s-app=calico-node", namespace="kube-system", timeout=10, check=False
                ).success
            except KubectlTimeout:
                ready = False
            if ready:
                ui.log_success("Calico CNI plugin installed and ready")
                return True
            time.sleep(CALICO_POLL_SECONDS)
            elapsed += CALICO_POLL_SECONDS

        ui.log_warning("Calico pods are taking longer than expected to be ready")
        ui.log_info("You can check status with: kubectl get pods -n kube-system")
        return False

    def install_storage_provisioner(self) -> None:
        ui.log_info("Installing local-path storage provisioner...")
        try:
            self.kubectl.apply_file(self.config.local_path_manifest_url)
        except KubectlError as e:
            raise InstallError(f"Failed to install local-path provisioner: {e}")

        ui.log_info("Waiting for storage provisioner to be ready...")
        waited = self.kubectl.wait_ready(
            "app=local-path-provisioner", namespace="local-path-storage", timeout=120, check=False
        )
        if not waited.success:
            ui.log_warning("Storage provisioner is not ready yet")

        self.kubectl.patch("storageclass", "local-path", DEFAULT_STORAGE_CLASS_PATCH, namespace="")
        ui.log_success("Storage provisioner installed and configured")

    def remove_taint(self) -> None:
        ui.log_info("Removing control-plane taint for single-node cluster...")
        self.kubectl.run(["taint", "nodes", "--all", CONTROL_PLANE_TAINT], check=False)
        ui.log_success("Taint removed")

    def verify_installation(self) -> Tuple[Optional[str], int]:
        """Report node status and non-running system pods; warnings only."""
        ui.log_info("Verifying installation...")
        status = node_status(self.kubectl.run(["get", "nodes", "--no-headers"], check=False).stdout)
        if status == "Ready":
            ui.log_success("Node is Ready")
        else:
            ui.log_warning(f"Node status: {status} (may take a few more minutes)")

        pods = self.kubectl.run(["get", "pods", "-n", "kube-system", "--no-headers"], check=False)
        not_running = count_not_running(pods.stdout)
        if not_running == 0:
            ui.log_success("All system pods are running")
        else:
            ui.log_warning(f"{not_running} system pods are not yet running")
        return status, not_running

    def show_summary(self) -> None:
        for title, args in (
            ("Cluster Information:", ["cluster-info"]),
            ("Node Status:", ["get", "nodes"]),
            ("System Pods:", ["get", "pods", "-n", "kube-system"]),
        ):
            ui.log_info(title)
            ui.console.print(self.kubectl.run(args, check=False).stdout, markup=False)

        ui.log_info("Useful commands:")
        ui.console.print("  kubectl get nodes              # Check node status")
        ui.console.print("  kubectl get pods -A            # Check all pods")
        ui.console.print("  kubectl cluster-info           # Cluster information")

        if self.config.host_path(JOIN_SCRIPT).exists():
            ui.log_info(f"To add worker nodes, run the command in: {JOIN_SCRIPT}")

    # Flow

    def install(
        self,
        hostname: Optional[str] = None,
        assume_yes: bool = False,
        prechecks: Optional[Prechecks] = None,
        cleanup: Optional[ClusterCleanup] = None,
    ) -> bool:
        """
        Full interactive installation.

        Returns False when the operator cancels at the final confirmation.
        """
        ui.heading("Kubernetes Installation Starting")
        prechecks = prechecks or Prechecks(self.config, self.shell, assume_yes=assume_yes)
        prechecks.run_all()

        installed, _ = prechecks.detect_installation()
        if installed:
            if not ui.confirm("Existing installation found. Clean up first?", assume_yes=assume_yes):
                raise InstallError("Cannot proceed with existing installation")
            (cleanup or ClusterCleanup(self.config, self.shell, self.env)).run()
            ui.log_info("Proceeding with installation...")

        ui.log_info("All pre-checks passed. Starting installation...")
        if not hostname:
            hostname = self.config.default_hostname if assume_yes else ui.ask(
                "Enter hostname for this node", default=self.config.default_hostname
            )

        ui.log_info("Installation will use the following settings:")
        ui.log_info(f"  - Hostname: {hostname}")
        ui.log_info(f"  - Pod Network CIDR: {self.config.pod_cidr}")
        ui.log_info(f"  - Kubernetes Version: {self.config.k8s_version}")
        ui.log_info(f"  - Calico Version: {self.config.calico_version}")

        if not ui.confirm("Proceed with installation?", assume_yes=assume_yes):
            ui.log_info("Installation cancelled")
            return False

        ui.log_info("Starting installation (this will take 5-10 minutes)...")
        self.update_system()
        self.configure_hostname(hostname)
        self.disable_swap()
        self.configure_kernel()
        self.install_containerd()
        self.configure_firewall()
        self.disable_selinux()
        self.install_kubernetes()
        self.initialize_cluster()
        self.configure_kubectl()
        self.install_cni()
        self.install_storage_provisioner()
        self.remove_taint()

        ui.log_info(f"Waiting {self.config.stabilize_seconds} seconds for cluster to stabilize...")
        time.sleep(self.config.stabilize_seconds)
        self.verify_installation()

        ui.heading("Installation completed successfully!", style="bold green")
        self.show_summary()
        return True
