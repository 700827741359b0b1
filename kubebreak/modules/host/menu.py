"""Interactive cluster manager menu."""

from kubebreak import console as ui
from kubebreak.config import ClusterConfig
from kubebreak.errors import KubebreakError

from .cleanup import uninstall
from .installer import ClusterInstaller
from .status import show_status

MENU = """
What would you like to do?

  1) Install Kubernetes cluster
  2) Check cluster status
  3) Cleanup/Remove Kubernetes (SSH-safe)
  4) Exit
"""


def cluster_menu(config: ClusterConfig) -> None:
    """Single-shot menu; an invalid choice is an error."""
    ui.banner("Kubernetes Cluster Manager", "CentOS 9 Stream (SSH-Safe Edition)")
    ui.console.print(MENU)
    choice = ui.ask("Enter your choice (1-4)")

    if choice == "1":
        ClusterInstaller(config).install()
    elif choice == "2":
        show_status(config)
    elif choice == "3":
        uninstall(config)
    elif choice == "4":
        ui.log_info("Exiting...")
    else:
        raise KubebreakError("Invalid choice")
