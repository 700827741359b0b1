"""
Tests for the click command line interface.

Managers and host operations are replaced with mocks; these tests cover
argument handling, exit codes and error reporting only.

Usage:
    pytest tests/test_cli.py -v
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from kubebreak import __version__
from kubebreak.errors import ClusterUnreachable, PrecheckError
from kubebreak.main import cli


@pytest.fixture
def runner(monkeypatch):
    for var in ("KUBEBREAK_NAMESPACE", "KUBEBREAK_HOST_ROOT", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return CliRunner()


@pytest.fixture
def manager():
    with patch("kubebreak.main.WorkshopManager") as factory:
        yield factory.return_value


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


# =============================================================================
# Workshop commands
# =============================================================================

class TestWorkshopCommands:

    def test_break_with_subset(self, runner, manager):
        result = runner.invoke(cli, ["workshop", "break", "2", "--only", "2c", "--only", "2d", "-y"])

        assert result.exit_code == 0
        manager.check_cluster.assert_called_once()
        manager.run_scenario.assert_called_once_with(2, only=["2c", "2d"], assume_yes=True)

    def test_break_all(self, runner, manager):
        runner.invoke(cli, ["workshop", "break", "5"])
        manager.run_scenario.assert_called_once_with(5, only=None, assume_yes=False)

    def test_break_requires_integer(self, runner, manager):
        result = runner.invoke(cli, ["workshop", "break", "two"])
        assert result.exit_code == 2
        manager.run_scenario.assert_not_called()

    def test_status_failure_exit_code(self, runner, manager):
        manager.check_status.return_value = False
        assert runner.invoke(cli, ["workshop", "status"]).exit_code == 1

    def test_failed_endpoint_exit_code(self, runner, manager):
        manager.test_app.return_value = {"/health": True, "/api": False}
        assert runner.invoke(cli, ["workshop", "test"]).exit_code == 1

    def test_healthy_endpoints(self, runner, manager):
        manager.test_app.return_value = {"/health": True, "/api": True}
        assert runner.invoke(cli, ["workshop", "test"]).exit_code == 0

    def test_unreachable_cluster(self, runner, manager, recording_console):
        manager.check_cluster.side_effect = ClusterUnreachable("Cannot connect to Kubernetes cluster")

        result = runner.invoke(cli, ["workshop", "deploy"])

        assert result.exit_code == 1
        manager.deploy_app.assert_not_called()
        assert "Cannot connect to Kubernetes cluster" in recording_console.export_text()

    def test_reset_and_destroy_pass_yes(self, runner, manager):
        runner.invoke(cli, ["workshop", "reset", "--yes"])
        runner.invoke(cli, ["workshop", "destroy"])
        manager.reset_app.assert_called_once_with(assume_yes=True)
        manager.complete_cleanup.assert_called_once_with(assume_yes=False)

    def test_guide_skips_cluster_check(self, runner, manager):
        result = runner.invoke(cli, ["workshop", "guide", "--no-pager"])
        assert result.exit_code == 0
        manager.check_cluster.assert_not_called()
        manager.view_guide.assert_called_once_with(pager=False)

    def test_menu_without_subcommand(self, runner, manager):
        with patch("kubebreak.main.interactive_menu") as menu:
            result = runner.invoke(cli, ["workshop"])
        assert result.exit_code == 0
        menu.assert_called_once_with(manager)
        manager.check_cluster.assert_not_called()

    def test_scenarios_table(self, runner, recording_console):
        result = runner.invoke(cli, ["workshop", "scenarios"])
        assert result.exit_code == 0
        output = recording_console.export_text()
        assert "Pod Issues" in output
        assert "2a, 2b, 2c, 2d, 2e" in output


# =============================================================================
# Configuration
# =============================================================================

class TestConfigOption:

    def test_yaml_config_reaches_manager(self, runner, tmp_path):
        config = tmp_path / "kubebreak.yaml"
        config.write_text("workshop:\n  namespace: lab\n  node_port: 31000\n")

        with patch("kubebreak.main.WorkshopManager") as factory:
            runner.invoke(cli, ["--config", str(config), "workshop", "commands"])

        workshop_config = factory.call_args[0][0]
        assert workshop_config.namespace == "lab"
        assert workshop_config.node_port == 31000

    def test_missing_config_file(self, runner, tmp_path, recording_console):
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yaml"), "workshop", "commands"])
        assert result.exit_code == 1
        assert "Config file not found" in recording_console.export_text()

    def test_invalid_log_level_env(self, runner, monkeypatch, recording_console):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        result = runner.invoke(cli, ["workshop", "scenarios"])
        assert result.exit_code == 1
        assert "Invalid log level: VERBOSE" in recording_console.export_text()

    def test_wrong_type_in_yaml(self, runner, tmp_path, recording_console):
        config = tmp_path / "kubebreak.yaml"
        config.write_text("workshop:\n  node_port: abc\n")

        with patch("kubebreak.main.WorkshopManager") as factory:
            result = runner.invoke(cli, ["--config", str(config), "workshop", "commands"])

        assert result.exit_code == 1
        factory.assert_not_called()
        assert "'workshop.node_port' must be an integer" in recording_console.export_text()


# =============================================================================
# Cluster commands
# =============================================================================

class TestClusterCommands:

    def test_install_options(self, runner):
        with patch("kubebreak.main.ClusterInstaller") as factory:
            result = runner.invoke(cli, ["cluster", "install", "--hostname", "lab-node", "--yes"])
        assert result.exit_code == 0
        factory.return_value.install.assert_called_once_with(hostname="lab-node", assume_yes=True)

    def test_cleanup(self, runner):
        with patch("kubebreak.main.uninstall") as uninstall:
            runner.invoke(cli, ["cluster", "cleanup", "-y"])
        assert uninstall.call_args.kwargs == {"assume_yes": True}
        assert uninstall.call_args[0][0].pod_cidr == "10.244.0.0/16"

    def test_status_not_root(self, runner, recording_console):
        with patch("kubebreak.main.show_status", side_effect=PrecheckError("This command must be run as root or with sudo")):
            result = runner.invoke(cli, ["cluster", "status"])
        assert result.exit_code == 1
        assert "must be run as root" in recording_console.export_text()

    def test_menu_without_subcommand(self, runner):
        with patch("kubebreak.main.cluster_menu") as menu:
            result = runner.invoke(cli, ["cluster"])
        assert result.exit_code == 0
        menu.assert_called_once()
