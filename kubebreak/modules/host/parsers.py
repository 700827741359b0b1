"""
Parsers and text transforms for host command output and config files.

Everything here is pure so the installer and cleanup logic can be tested
without a real host.
"""

import ipaddress
import re
from typing import Iterable, List, Optional

IPV4_CIDR = re.compile(r"\d+\.\d+\.\d+\.\d+/\d+")
K8S_INTERFACE = re.compile(r"cali[^:@\s]+|tunl0|vxlan\.calico|flannel\.1|cni0")
LINK_LINE = re.compile(r"^\d+:\s+([^:\s]+?)(?:@[^:\s]+)?:")
KUBE_CHAIN = re.compile(r"KUBE-[A-Z0-9-]+")
CALICO_CHAIN = re.compile(r"cali-[A-Za-z0-9_-]+")
CALICO_DEFAULT_CIDR = "192.168.0.0/16"


def parse_free_gb(text: str) -> int:
    """Total memory in GB from ``free -g`` output."""
    for line in text.splitlines():
        if line.startswith("Mem:"):
            return int(line.split()[1])
    raise ValueError("No 'Mem:' line in free output")


def parse_df_available_gb(text: str) -> int:
    """Available space in GB from ``df -BG <path>`` output."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("Unexpected df output")
    return int(lines[1].split()[3].rstrip("G"))


def parse_route_networks(text: str) -> List[str]:
    """Unique IPv4 CIDRs appearing in ``ip route show`` output."""
    return sorted(set(IPV4_CIDR.findall(text)))


def find_cidr_conflicts(networks: Iterable[str], pod_cidr: str) -> List[str]:
    """Networks that overlap the pod CIDR."""
    pod_net = ipaddress.ip_network(pod_cidr, strict=False)
    conflicts = []
    for network in networks:
        try:
            net = ipaddress.ip_network(network, strict=False)
        except ValueError:
            continue
        if net.version == pod_net.version and net.overlaps(pod_net):
            conflicts.append(network)
    return conflicts


def ports_in_use(ss_output: str, ports: Iterable[int]) -> List[int]:
    """Ports from ``ports`` that appear as a local listening port in ``ss -tuln``."""
    listening = set()
    for line in ss_output.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 5:
            continue
        _, _, port = fields[4].rpartition(":")
        if port.isdigit():
            listening.add(int(port))
    return [p for p in ports if p in listening]


def default_interface(route_output: str) -> Optional[str]:
    """Device of the first default route in ``ip route`` output."""
    for line in route_output.splitlines():
        fields = line.split()
        if fields and fields[0] == "default" and "dev" in fields:
            index = fields.index("dev") + 1
            if index < len(fields):
                return fields[index]
    return None


def k8s_interfaces(link_output: str, preserve: Optional[str] = None) -> List[str]:
    """
    Kubernetes-created interfaces in ``ip link show`` output.

    Only Calico, Flannel and CNI bridge interfaces match; ``preserve``
    (the default-route interface) is never returned.
    """
    found = []
    for line in link_output.splitlines():
        match = LINK_LINE.match(line)
        if not match:
            continue
        name = match.group(1)
        if K8S_INTERFACE.fullmatch(name) and name != preserve and name not in found:
            found.append(name)
    return found


def kube_chains(iptables_output: str) -> List[str]:
    return sorted(set(KUBE_CHAIN.findall(iptables_output)))


def calico_chains(iptables_output: str) -> List[str]:
    return sorted(set(CALICO_CHAIN.findall(iptables_output)))


def extract_join_command(kubeadm_log: str) -> Optional[str]:
    """The ``kubeadm join`` command (with continuation lines) from init output."""
    lines = kubeadm_log.splitlines()
    for i, line in enumerate(lines):
        if "kubeadm join" in line:
            command = [line.strip()]
            j = i
            while command[-1].endswith("\\") and j + 1 < len(lines):
                j += 1
                command.append(lines[j].strip())
            return "\n".join(command)
    return None


def comment_swap_entries(fstab: str) -> str:
    """Comment out active swap entries in fstab."""
    out = []
    for line in fstab.splitlines(keepends=True):
        if " swap " in line and not line.lstrip().startswith("#"):
            line = "#" + line
        out.append(line)
    return "".join(out)


def uncomment_swap_entries(fstab: str) -> str:
    """Re-enable swap entries commented out by comment_swap_entries."""
    out = []
    for line in fstab.splitlines(keepends=True):
        if line.startswith("#") and " swap " in line:
            line = line[1:]
        out.append(line)
    return "".join(out)


def set_selinux_mode(config: str, current: str, new: str) -> str:
    """Switch ``SELINUX=<current>`` to ``SELINUX=<new>`` in /etc/selinux/config."""
    return re.sub(rf"^SELINUX={current}$", f"SELINUX={new}", config, flags=re.MULTILINE)


def enable_systemd_cgroup(containerd_config: str) -> str:
    return containerd_config.replace("SystemdCgroup = false", "SystemdCgroup = true")


def rewrite_calico_cidr(manifest: str, pod_cidr: str) -> str:
    return manifest.replace(CALICO_DEFAULT_CIDR, pod_cidr)


def node_status(nodes_output: str) -> Optional[str]:
    """STATUS column of the first node in ``kubectl get nodes --no-headers``."""
    for line in nodes_output.splitlines():
        fields = line.split()
        if len(fields) >= 2:
            return fields[1]
    return None


def count_not_running(pods_output: str) -> int:
    """Pods in ``kubectl get pods --no-headers`` output that are not Running."""
    return sum(1 for line in pods_output.splitlines() if line.strip() and "Running" not in line)


def kubernetes_repo(version: str) -> str:
    base = f"https://pkgs.k8s.io/core:/stable:/v{version}/rpm/"
    return (
        "[kubernetes]\n"
        "name=Kubernetes\n"
        f"baseurl={base}\n"
        "enabled=1\n"
        "gpgcheck=1\n"
        f"gpgkey={base}repodata/repomd.xml.key\n"
        "exclude=kubelet kubeadm kubectl cri-tools kubernetes-cni\n"
    )


KERNEL_MODULES = "overlay\nbr_netfilter\n"

SYSCTL_SETTINGS = (
    "net.bridge.bridge-nf-call-iptables  = 1\n"
    "net.bridge.bridge-nf-call-ip6tables = 1\n"
    "net.ipv4.ip_forward                 = 1\n"
)
