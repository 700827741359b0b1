"""Exception hierarchy shared by all kubebreak modules."""


class KubebreakError(Exception):
    """Base class for errors reported to the user."""


class ConfigError(KubebreakError):
    """Invalid or unreadable configuration."""


class ClusterUnreachable(KubebreakError):
    """kubectl cannot reach the cluster API server."""


class ScenarioError(KubebreakError):
    """Unknown scenario or breakage code."""


class HostCommandError(KubebreakError):
    """A required host command exited non-zero."""

    def __init__(self, command, returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed ({returncode}): {' '.join(self.command)}"
        if stderr:
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class PrecheckError(KubebreakError):
    """A pre-installation check failed."""


class InstallError(KubebreakError):
    """A cluster installation step failed."""
