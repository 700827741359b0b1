"""
Shared pytest fixtures for kubebreak tests.

This module provides common fixtures including:
- KubectlMocker: Mock kubectl subprocess calls with canned responses
- HostMocker: Mock every subprocess call (dnf, systemctl, iptables, kubectl)
- recording_console: Capture user-facing output
- workshop_config / cluster_config: Configs pointing at temporary paths
"""

import os
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional, Pattern, Union
from unittest.mock import MagicMock, patch

import pytest
from rich.console import Console

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kubebreak import console as ui
from kubebreak.config import ClusterConfig, WorkshopConfig


# =============================================================================
# Kubectl Mocking Infrastructure
# =============================================================================

@dataclass
class KubectlResponse:
    """Represents a mocked kubectl command response."""
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    def to_completed_process(self) -> MagicMock:
        """Convert to a subprocess.CompletedProcess-like mock."""
        result = MagicMock()
        result.stdout = self.stdout
        result.stderr = self.stderr
        result.returncode = self.returncode
        return result


@dataclass
class KubectlCall:
    """Record of a command made during testing."""
    command: List[str]
    full_command_str: str
    input: Optional[str] = None
    matched_pattern: Optional[str] = None
    response: Optional[KubectlResponse] = None


class KubectlMocker:
    """
    Mock kubectl subprocess calls with pattern-matched responses.

    Usage:
        def test_status(kubectl_mocker):
            kubectl_mocker.register("get pods", KubectlResponse(
                stdout="NAME  STATUS\\nmypod  CrashLoopBackOff"
            ))

            manager.check_status()

            assert kubectl_mocker.was_called_with("get pods")
    """

    binary = "kubectl"

    def __init__(self):
        self._responses = []
        self._call_history: List[KubectlCall] = []
        self._default_response = KubectlResponse()

    def register(
        self,
        pattern: Union[str, Pattern],
        response: KubectlResponse,
        priority: int = 0
    ) -> "KubectlMocker":
        """
        Register a response for commands matching the pattern.

        Args:
            pattern: String (substring match) or regex pattern
            response: KubectlResponse to return when matched
            priority: Higher priority patterns are checked first

        Returns:
            self for chaining
        """
        self._responses.append((pattern, response, priority))
        self._responses.sort(key=lambda x: x[2], reverse=True)
        return self

    def register_scenario(self, scenario_name: str) -> "KubectlMocker":
        """Register all responses for a named canned cluster state."""
        from fixtures.kubectl_scenarios import SCENARIOS

        if scenario_name not in SCENARIOS:
            raise ValueError(
                f"Unknown scenario: {scenario_name}. "
                f"Available: {list(SCENARIOS.keys())}"
            )

        for pattern, response in SCENARIOS[scenario_name].items():
            self.register(pattern, response)

        return self

    def set_default_response(self, response: KubectlResponse) -> "KubectlMocker":
        """Set the default response for unmatched commands."""
        self._default_response = response
        return self

    def _match_target(self, cmd: List[str]) -> str:
        return " ".join(cmd[1:])

    def mock_run(
        self,
        cmd: List[str],
        capture_output: bool = True,
        text: bool = True,
        timeout: Optional[int] = None,
        input: Optional[str] = None,
        **kwargs
    ) -> MagicMock:
        """Side effect for patching subprocess.run."""
        cmd_str = " ".join(cmd)

        if self.binary and cmd[0] != self.binary:
            raise RuntimeError(f"Non-kubectl command blocked: {cmd_str}")

        target = self._match_target(cmd)
        matched_pattern = None
        response = self._default_response

        for pattern, resp, _ in self._responses:
            if isinstance(pattern, str):
                if pattern in target:
                    matched_pattern = pattern
                    response = resp
                    break
            elif pattern.search(target):
                matched_pattern = pattern.pattern
                response = resp
                break

        self._call_history.append(KubectlCall(
            command=list(cmd),
            full_command_str=cmd_str,
            input=input,
            matched_pattern=matched_pattern,
            response=response,
        ))

        if isinstance(response, Exception):
            raise response
        return response.to_completed_process()

    @property
    def calls(self) -> List[KubectlCall]:
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    def was_called_with(self, pattern: str) -> bool:
        """Check if any call contained the given pattern."""
        return any(pattern in call.full_command_str for call in self._call_history)

    def get_calls_matching(self, pattern: str) -> List[KubectlCall]:
        """Get all calls containing the given pattern."""
        return [c for c in self._call_history if pattern in c.full_command_str]

    def applied_input(self) -> str:
        """All YAML piped to ``kubectl apply -f -`` so far."""
        return "\n---\n".join(
            c.input for c in self._call_history if c.input and "apply -f -" in c.full_command_str
        )

    def reset(self):
        """Clear call history (but keep registered responses)."""
        self._call_history = []


class HostMocker(KubectlMocker):
    """
    Mock every subprocess call, matching against the full command line.

    Unmatched commands succeed with empty output.
    """

    binary = None

    def _match_target(self, cmd: List[str]) -> str:
        return " ".join(cmd)


@pytest.fixture
def kubectl_mocker():
    """KubectlMocker with subprocess.run patched."""
    mocker = KubectlMocker()
    with patch("subprocess.run", side_effect=mocker.mock_run):
        yield mocker


@pytest.fixture
def kubectl_mocker_strict():
    """Kubectl mocker that fails on any unregistered command."""
    mocker = KubectlMocker()
    mocker.set_default_response(KubectlResponse(
        stderr="STRICT MODE: No mock registered for this command",
        returncode=127
    ))
    with patch("subprocess.run", side_effect=mocker.mock_run):
        yield mocker


@pytest.fixture
def host_mocker():
    """HostMocker with subprocess.run and shutil.which patched."""
    mocker = HostMocker()
    with patch("subprocess.run", side_effect=mocker.mock_run), \
            patch("shutil.which", return_value="/usr/bin/mock"):
        yield mocker


@pytest.fixture
def no_sleep():
    with patch("time.sleep") as sleep:
        yield sleep


# =============================================================================
# Output and configuration
# =============================================================================

@pytest.fixture
def recording_console():
    """Swap the shared console for a recording one."""
    original = ui.console
    console = Console(record=True, width=160, force_terminal=False, color_system=None)
    ui.set_console(console)
    yield console
    ui.set_console(original)


@pytest.fixture
def workshop_config(tmp_path):
    return WorkshopConfig(coredns_backup_path=str(tmp_path / "coredns-backup.yaml"))


@pytest.fixture
def cluster_config(tmp_path):
    root = tmp_path / "host"
    root.mkdir()
    return ClusterConfig(host_root=str(root), stabilize_seconds=0, calico_ready_timeout=15)


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "kubectl_mock: Tests using mocked kubectl subprocess calls"
    )
    config.addinivalue_line(
        "markers", "host_mock: Tests using mocked host commands"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests spanning several modules"
    )
