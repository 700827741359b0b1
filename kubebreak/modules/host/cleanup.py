"""
SSH-safe cluster removal.

Removes everything the installer put on the host while keeping remote
sessions alive: the default-route interface is never touched, only
KUBE-* and cali-* iptables chains are flushed, and SELinux is not
re-enforced over SSH. Every step tolerates failure.
"""

import logging
import os
import shutil
import time
from typing import List, Mapping, Optional

from kubebreak import console as ui
from kubebreak.config import ClusterConfig

from .parsers import (
    calico_chains,
    default_interface,
    k8s_interfaces,
    kube_chains,
    set_selinux_mode,
    uncomment_swap_entries,
)
from .prechecks import Prechecks
from .shell import HostShell, is_ssh_session, user_home

logger = logging.getLogger("kubebreak.host.cleanup")

STATE_PATHS = [
    "/etc/kubernetes",
    "/var/lib/kubelet",
    "/var/lib/etcd",
    "/etc/cni",
    "/var/lib/cni",
    "/opt/cni",
    "/var/lib/containerd",
    "/etc/containerd",
    "/run/containerd",
    "/var/log/pods",
    "/var/log/containers",
]

REPO_FILES = ["/etc/yum.repos.d/kubernetes.repo", "/etc/yum.repos.d/docker-ce.repo"]
MODULE_FILES = ["/etc/modules-load.d/k8s.conf", "/etc/sysctl.d/k8s.conf"]
TEMP_FILES = ["/tmp/calico.yaml", "/tmp/kubeadm-init.log", "/tmp/kubeadm-join-command.sh"]
LOCAL_PATH_DATA = "/opt/local-path-provisioner"

# (table, chain, comment, target) jump rules kube-proxy adds to built-in chains
KUBE_JUMP_RULES = [
    ("nat", "PREROUTING", "kubernetes service portals", "KUBE-SERVICES"),
    ("nat", "OUTPUT", "kubernetes service portals", "KUBE-SERVICES"),
    ("nat", "POSTROUTING", "kubernetes postrouting rules", "KUBE-POSTROUTING"),
    ("filter", "FORWARD", "kubernetes forwarding rules", "KUBE-FORWARD"),
]


class ClusterCleanup:
    """Undo a cluster installation on the local host."""

    def __init__(
        self,
        config: ClusterConfig,
        shell: Optional[HostShell] = None,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.config = config
        self.shell = shell or HostShell()
        self.env = os.environ if env is None else env
        self.is_ssh = is_ssh_session(self.env)

    def _remove(self, path: str) -> bool:
        target = self.config.host_path(path)
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target, ignore_errors=True)
            return True
        if target.exists() or target.is_symlink():
            target.unlink(missing_ok=True)
            return True
        return False

    def _quiet(self, args: List[str]) -> None:
        self.shell.run(args, check=False)

    # Steps

    def stop_services(self) -> None:
        ui.log_info("Stopping kubelet service...")
        self._quiet(["systemctl", "stop", "kubelet"])
        self._quiet(["systemctl", "disable", "kubelet"])

        if self.shell.command_exists("kubeadm"):
            ui.log_info("Resetting kubeadm configuration...")
            self._quiet(["kubeadm", "reset", "-f"])

    def remove_packages(self) -> None:
        ui.log_info("Removing Kubernetes packages...")
        self._quiet([
            "dnf", "remove", "-y", "kubelet", "kubeadm", "kubectl", "kubernetes-cni", "cri-tools",
            "--disableexcludes=kubernetes",
        ])

        ui.log_info("Removing containerd...")
        self._quiet(["systemctl", "stop", "containerd"])
        self._quiet(["systemctl", "disable", "containerd"])
        self._quiet(["dnf", "remove", "-y", "containerd.io"])

        for repo in REPO_FILES:
            self._remove(repo)

    def remove_state(self) -> None:
        ui.log_info("Removing configuration files and data...")
        for path in STATE_PATHS:
            self._remove(path)

        ui.log_info("Removing local-path storage data...")
        if self._remove(LOCAL_PATH_DATA):
            ui.log_success("Local-path storage data removed")

        sudo_user = self.env.get("SUDO_USER")
        if sudo_user:
            self._remove(f"{user_home(sudo_user, self.env)}/.kube")
        self._remove("/root/.kube")

    def clean_interfaces(self) -> List[str]:
        """Delete Kubernetes-created interfaces; returns the names removed."""
        ui.log_info("Cleaning Kubernetes network interfaces (preserving default interface)...")
        default_iface = default_interface(self.shell.output(["ip", "route"]))
        ui.log_info(f"Default network interface: {default_iface} (will be preserved)")

        removed = []
        for iface in k8s_interfaces(self.shell.output(["ip", "link", "show"]), preserve=default_iface):
            ui.log_info(f"Removing interface: {iface}")
            self._quiet(["ip", "link", "set", iface, "down"])
            self._quiet(["ip", "link", "delete", iface])
            removed.append(iface)

        ui.log_success("Kubernetes network interfaces cleaned")
        return removed

    def _flush_chains(self, binary: str, table: str, chains: List[str]) -> None:
        for chain in chains:
            self._quiet([binary, "-t", table, "-F", chain])
            self._quiet([binary, "-t", table, "-X", chain])

    def clean_iptables(self) -> None:
        ui.log_info("Cleaning iptables rules (preserving SSH and system rules)...")
        if self.is_ssh:
            ui.log_warning("SSH detected - using selective iptables cleanup")

        for table, chain, comment, target in KUBE_JUMP_RULES:
            self._quiet([
                "iptables", "-t", table, "-D", chain,
                "-m", "comment", "--comment", comment, "-j", target,
            ])

        for table in ("nat", "filter"):
            listing = self.shell.output(["iptables", "-t", table, "-L", "-n"])
            self._flush_chains("iptables", table, kube_chains(listing))
            self._flush_chains("iptables", table, calico_chains(listing))

        for table in ("nat", "filter"):
            listing = self.shell.output(["ip6tables", "-t", table, "-L", "-n"])
            self._flush_chains("ip6tables", table, kube_chains(listing))

        ui.log_success("Kubernetes iptables rules cleaned (SSH and system rules preserved)")

    def verify_connectivity(self) -> bool:
        ui.log_info("Verifying network connectivity...")
        if self.shell.service_active("NetworkManager"):
            ui.log_info("Restarting NetworkManager to ensure connectivity...")
            self._quiet(["systemctl", "restart", "NetworkManager"])
            time.sleep(3)

        if self.shell.ok(["ping", "-c", "1", "8.8.8.8"]):
            ui.log_success("Network connectivity verified")
            return True
        ui.log_warning("Network connectivity check failed, but this may be temporary")
        ui.log_info("If you lose connection, run: systemctl restart NetworkManager")
        return False

    def restore_kernel(self) -> None:
        if self.shell.command_exists("ipvsadm"):
            self._quiet(["ipvsadm", "-C"])

        ui.log_info("Removing kernel modules...")
        self._quiet(["rmmod", "overlay"])
        self._quiet(["rmmod", "br_netfilter"])
        for path in MODULE_FILES:
            self._remove(path)
        self._quiet(["sysctl", "--system"])

    def restore_swap(self) -> None:
        ui.log_info("Re-enabling swap...")
        fstab = self.config.host_path("/etc/fstab")
        if not fstab.exists():
            return
        original = fstab.read_text()
        restored = uncomment_swap_entries(original)
        if restored != original:
            fstab.write_text(restored)
            self._quiet(["swapon", "-a"])

    def restore_selinux(self) -> None:
        ui.log_info("Restoring SELinux to enforcing mode...")
        selinux = self.config.host_path("/etc/selinux/config")
        if not selinux.exists():
            return
        selinux.write_text(set_selinux_mode(selinux.read_text(), "permissive", "enforcing"))
        if self.is_ssh:
            ui.log_info("SELinux will be enforced after reboot (preserved for SSH safety)")
        else:
            self._quiet(["setenforce", "1"])

    def remove_temp_files(self) -> None:
        for path in TEMP_FILES:
            self._remove(path)
        self._quiet(["dnf", "clean", "all"])

    def run(self) -> None:
        """Run every cleanup step in order."""
        ui.log_info("Starting SSH-safe Kubernetes cleanup...")
        if self.is_ssh:
            ui.log_info("SSH connection detected - preserving network connectivity")

        self.stop_services()
        self.remove_packages()
        self.remove_state()
        self.clean_interfaces()
        self.clean_iptables()
        self.verify_connectivity()
        self.restore_kernel()
        self.restore_swap()
        self.restore_selinux()
        self.remove_temp_files()

        ui.log_success("Cleanup completed successfully")
        if self.is_ssh:
            ui.log_success("Your SSH connection was preserved throughout cleanup")


def uninstall(
    config: ClusterConfig,
    shell: Optional[HostShell] = None,
    env: Optional[Mapping[str, str]] = None,
    assume_yes: bool = False,
) -> bool:
    """
    Interactive cluster removal.

    Returns False when nothing is installed or the operator declines.
    """
    shell = shell or HostShell()
    cleanup = ClusterCleanup(config, shell, env)
    prechecks = Prechecks(config, shell, assume_yes=assume_yes)

    ui.heading("Kubernetes Cleanup (SSH-Safe)", style="bold yellow")
    prechecks.check_root()

    if cleanup.is_ssh:
        ui.banner(
            "SSH CONNECTION DETECTED",
            "Your connection will be preserved during cleanup.\n"
            "Network connectivity will be maintained.",
        )

    installed, _ = prechecks.detect_installation()
    if not installed:
        ui.log_info("No Kubernetes installation found. Nothing to clean up.")
        return False

    ui.log_warning("This will completely remove:")
    ui.log_warning("  - All Kubernetes components (kubelet, kubeadm, kubectl)")
    ui.log_warning("  - containerd and all containers")
    ui.log_warning("  - All configuration files and data")
    ui.log_warning("  - Kubernetes network configurations")
    ui.log_info("This will be preserved: your SSH connection, system firewall rules, "
                "the default network interface and network connectivity")

    if not ui.confirm("Are you sure you want to proceed?", assume_yes=assume_yes):
        ui.log_info("Cleanup cancelled")
        return False

    cleanup.run()

    ui.log_success("System has been restored to pre-Kubernetes state")
    ui.log_success("  - Swap re-enabled")
    ui.log_success("  - SELinux will be enforcing after reboot")
    ui.log_info("It is recommended to reboot the system: sudo reboot")
    return True
