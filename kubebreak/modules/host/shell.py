"""
Host command execution.

Thin subprocess wrapper for OS-level commands (dnf, systemctl, iptables,
kubeadm...). Mirrors the kubectl runner: required steps raise on failure,
best-effort steps pass ``check=False``.
"""

import logging
import os
import pwd
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Mapping, Optional

from kubebreak import console as ui
from kubebreak.errors import HostCommandError

logger = logging.getLogger("kubebreak.host.shell")

SSH_ENV_VARS = ("SSH_CONNECTION", "SSH_CLIENT", "SSH_TTY")


def is_ssh_session(env: Optional[Mapping[str, str]] = None) -> bool:
    """True when any of the SSH session variables is set and non-empty."""
    env = os.environ if env is None else env
    return any(env.get(var) for var in SSH_ENV_VARS)


def user_home(user: Optional[str], env: Optional[Mapping[str, str]] = None) -> str:
    """Home directory of ``user``, or of the invoking user when None."""
    env = os.environ if env is None else env
    if user:
        try:
            return pwd.getpwnam(user).pw_dir
        except KeyError:
            return os.path.expanduser(f"~{user}")
    return env.get("HOME") or "/root"


@dataclass
class HostResult:
    """Outcome of a host command."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


class HostShell:
    """Run host commands synchronously."""

    def __init__(self, timeout: int = 1800):
        self.timeout = timeout

    def run(
        self,
        args: List[str],
        check: bool = True,
        input_text: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> HostResult:
        """
        Run a command and capture its output.

        A missing executable is reported as exit code 127, like a shell would.
        """
        args = [str(a) for a in args]
        logger.debug(f"Running: {' '.join(args)}")
        try:
            process = subprocess.run(
                args,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
            result = HostResult(args, process.returncode, process.stdout or "", process.stderr or "")
        except FileNotFoundError:
            result = HostResult(args, 127, "", f"{args[0]}: command not found")
        except subprocess.TimeoutExpired:
            result = HostResult(args, 124, "", "Command timed out")

        if not result.success:
            logger.debug(f"{args[0]} exited {result.returncode}: {result.stderr.strip()}")
            if check:
                raise HostCommandError(args, result.returncode, result.stderr)
        return result

    def ok(self, args: List[str], timeout: Optional[int] = None) -> bool:
        """Run a check command; True on exit status 0."""
        return self.run(args, check=False, timeout=timeout).success

    def output(self, args: List[str], check: bool = False) -> str:
        return self.run(args, check=check).stdout

    def run_with_progress(self, args: List[str], message: str, check: bool = True) -> HostResult:
        """Run a long command behind a spinner."""
        with ui.progress(message):
            return self.run(args, check=check)

    def service_active(self, name: str) -> bool:
        return self.ok(["systemctl", "is-active", "--quiet", name])

    @staticmethod
    def command_exists(name: str) -> bool:
        return shutil.which(name) is not None
