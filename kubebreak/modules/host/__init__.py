"""
Host Module - Black Box Interface

Purpose: Install and remove a single-node kubeadm cluster on CentOS 9 Stream
Interface: ClusterInstaller.install(), uninstall(), show_status(), cluster_menu()
Hidden: Package management, kernel and SELinux tuning, kubeadm bootstrap,
        SSH-safe network teardown

Host commands go through HostShell and file edits through
ClusterConfig.host_root, so either can be swapped for testing.
"""

from .cleanup import ClusterCleanup, uninstall
from .installer import ClusterInstaller
from .menu import cluster_menu
from .prechecks import Prechecks
from .shell import HostResult, HostShell, is_ssh_session
from .status import show_status

__all__ = [
    "ClusterCleanup",
    "ClusterInstaller",
    "HostResult",
    "HostShell",
    "Prechecks",
    "cluster_menu",
    "is_ssh_session",
    "show_status",
    "uninstall",
]
