"""Pre-installation checks for the single-node cluster installer."""

import logging
import os
import re
from typing import Dict, List, Tuple

from kubebreak import console as ui
from kubebreak.config import ClusterConfig
from kubebreak.errors import PrecheckError

from .parsers import (
    find_cidr_conflicts,
    parse_df_available_gb,
    parse_free_gb,
    parse_route_networks,
    ports_in_use,
)
from .shell import HostShell

logger = logging.getLogger("kubebreak.host.prechecks")

K8S_PACKAGES = re.compile(r"^(kubelet|kubeadm|kubectl)-", re.MULTILINE)


class Prechecks:
    """
    Host checks run before installation.

    Hard failures raise PrecheckError. Soft failures (non-Stream OS, busy
    ports) warn and ask the operator whether to continue.
    """

    def __init__(self, config: ClusterConfig, shell: HostShell, assume_yes: bool = False):
        self.config = config
        self.shell = shell
        self.assume_yes = assume_yes

    def check_root(self) -> None:
        if os.geteuid() != 0:
            raise PrecheckError("This command must be run as root or with sudo")

    def check_os(self) -> None:
        release = self.config.host_path("/etc/centos-release")
        if not release.exists():
            raise PrecheckError("The cluster installer is designed for CentOS 9 Stream")

        if "Stream" not in release.read_text():
            ui.log_warning("The cluster installer is optimized for CentOS 9 Stream")
            if not ui.confirm("Continue anyway?", assume_yes=self.assume_yes):
                raise PrecheckError("Unsupported operating system")

    def check_network(self) -> None:
        ui.log_info("Checking network connectivity...")
        if not self.shell.ok(["ping", "-c", "1", "8.8.8.8"]):
            raise PrecheckError("No internet connectivity. Please check your network connection.")
        if not self.shell.ok(["ping", "-c", "1", "google.com"]):
            raise PrecheckError("DNS resolution failed. Please check your DNS settings.")
        ui.log_success("Network connectivity OK")

    def check_resources(self) -> Dict[str, int]:
        """Check CPU, RAM and free disk against the configured minimums."""
        ui.log_info("Checking system resources...")
        try:
            cpu = int(self.shell.output(["nproc"], check=True).strip())
            ram = parse_free_gb(self.shell.output(["free", "-g"], check=True))
            disk = parse_df_available_gb(self.shell.output(["df", "-BG", "/"], check=True))
        except ValueError as e:
            raise PrecheckError(f"Could not determine system resources: {e}")

        minimums = (
            ("CPU cores", cpu, self.config.min_cpu_cores, ""),
            ("RAM", ram, self.config.min_ram_gb, "GB"),
            ("Free disk space", disk, self.config.min_disk_gb, "GB"),
        )
        for label, current, minimum, unit in minimums:
            if current < minimum:
                raise PrecheckError(
                    f"Minimum {minimum}{unit} {label} required. Current: {current}{unit}"
                )
            ui.log_success(f"{label}: {current}{unit} (minimum: {minimum}{unit})")

        return {"cpu_cores": cpu, "ram_gb": ram, "disk_gb": disk}

    def detect_installation(self) -> Tuple[bool, List[str]]:
        """
        Look for an existing Kubernetes installation.

        Returns (installed, components). A running containerd is listed but
        does not on its own count as an installation.
        """
        ui.log_info("Checking for existing Kubernetes installation...")
        components = []
        installed = False

        if self.shell.ok(["pgrep", "-x", "kubelet"]):
            components.append("kubelet process")
            installed = True

        if K8S_PACKAGES.search(self.shell.output(["rpm", "-qa"])):
            components.append("Kubernetes packages")
            installed = True

        if self.config.host_path("/etc/kubernetes").is_dir():
            components.append("/etc/kubernetes directory")
            installed = True

        if self.shell.service_active("containerd"):
            components.append("containerd service")

        if installed:
            ui.log_warning("Existing Kubernetes installation detected:")
            for component in components:
                ui.console.print(f"  - {component}")
        else:
            ui.log_success("No existing Kubernetes installation found")
        return installed, components

    def check_network_conflicts(self) -> None:
        ui.log_info("Checking for network conflicts...")
        networks = parse_route_networks(self.shell.output(["ip", "route", "show"]))
        conflicts = find_cidr_conflicts(networks, self.config.pod_cidr)
        for network in conflicts:
            ui.log_error(
                f"Pod network CIDR ({self.config.pod_cidr}) conflicts with existing network: {network}"
            )
        if conflicts:
            raise PrecheckError(
                "Network conflict detected. Set KUBEBREAK_POD_CIDR to a different "
                "range (e.g., 10.32.0.0/16)"
            )
        ui.log_success("No network conflicts detected")

    def check_ports(self) -> List[int]:
        ui.log_info("Checking required ports...")
        busy = ports_in_use(self.shell.output(["ss", "-tuln"]), self.config.required_ports)
        if not busy:
            ui.log_success("All required ports are available")
            return busy

        for port in busy:
            ui.log_warning(f"Port {port} is already in use")
        ui.log_warning("Some required ports are in use. This may cause issues.")
        if not ui.confirm("Continue anyway?", assume_yes=self.assume_yes):
            raise PrecheckError("Required ports are in use")
        return busy

    def run_all(self) -> None:
        """Run every pre-installation check in order."""
        ui.log_info("Running pre-installation checks...")
        self.check_root()
        self.check_os()
        self.check_network()
        self.check_resources()
        self.check_network_conflicts()
        self.check_ports()
