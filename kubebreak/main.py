"""
kubebreak command line interface.

``kubebreak workshop`` drives the troubleshooting workshop on an existing
cluster; ``kubebreak cluster`` installs or removes the single-node cluster
it runs on. Either group without a subcommand opens its interactive menu.
"""

import functools
import logging
from typing import Optional, Tuple

import click
from dotenv import load_dotenv
from rich.table import Table

from kubebreak import __version__
from kubebreak import console as ui
from kubebreak.config import ConfigProvider, load_provider
from kubebreak.errors import KubebreakError
from kubebreak.logging_config import configure_logging
from kubebreak.modules.host import ClusterInstaller, cluster_menu, show_status, uninstall
from kubebreak.modules.scenarios import list_scenarios
from kubebreak.modules.workshop import WorkshopManager, interactive_menu

logger = logging.getLogger("kubebreak.cli")


def reports_errors(func):
    """Print KubebreakError to the operator and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KubebreakError as e:
            logger.debug("Command failed", exc_info=True)
            ui.log_error(str(e))
            raise SystemExit(1)

    return wrapper


def _provider(ctx: click.Context) -> ConfigProvider:
    return ctx.find_root().obj


def _manager(ctx: click.Context, check: bool = True) -> WorkshopManager:
    manager = WorkshopManager(_provider(ctx).get_workshop_config())
    if check:
        manager.check_cluster()
    return manager


@click.group()
@click.version_option(__version__, prog_name="kubebreak")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.option(
    "--config", "config_path", type=click.Path(dir_okay=False), default=None,
    help="YAML configuration file layered over the environment.",
)
@click.pass_context
@reports_errors
def cli(ctx: click.Context, debug: bool, config_path: Optional[str]):
    """Kubernetes troubleshooting workshop: break a cluster, then fix it."""
    load_dotenv()
    provider = load_provider(config_path)
    configure_logging("DEBUG" if debug else provider.get_logging_config().level)
    ctx.obj = provider


# Workshop


@cli.group(invoke_without_command=True)
@click.pass_context
@reports_errors
def workshop(ctx: click.Context):
    """Deploy the sample application and run failure scenarios."""
    if ctx.invoked_subcommand is None:
        interactive_menu(_manager(ctx, check=False))


@workshop.command()
@click.pass_context
@reports_errors
def deploy(ctx: click.Context):
    """Deploy the workshop application."""
    _manager(ctx).deploy_app()


@workshop.command()
@click.pass_context
@reports_errors
def status(ctx: click.Context):
    """Show the state of the workshop resources."""
    if not _manager(ctx).check_status():
        raise SystemExit(1)


@workshop.command()
@click.pass_context
@reports_errors
def test(ctx: click.Context):
    """Probe the application over its NodePort."""
    results = _manager(ctx).test_app()
    if not all(results.values()):
        raise SystemExit(1)


@workshop.command(name="break")
@click.argument("number", type=int)
@click.option(
    "--only", "only", multiple=True, metavar="CODE",
    help="Apply only the given breakage codes (e.g. 2c). Repeatable.",
)
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@reports_errors
def break_scenario(ctx: click.Context, number: int, only: Tuple[str, ...], assume_yes: bool):
    """Activate failure scenario NUMBER."""
    _manager(ctx).run_scenario(number, only=list(only) or None, assume_yes=assume_yes)


@workshop.command()
@click.pass_context
@reports_errors
def clean(ctx: click.Context):
    """Delete resources created by scenarios."""
    _manager(ctx).clean_broken()


@workshop.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@reports_errors
def reset(ctx: click.Context, assume_yes: bool):
    """Delete and redeploy the application."""
    _manager(ctx).reset_app(assume_yes=assume_yes)


@workshop.command()
@click.option("--no-pager", is_flag=True, help="Print the guide without a pager.")
@click.pass_context
@reports_errors
def guide(ctx: click.Context, no_pager: bool):
    """Show the troubleshooting guide."""
    _manager(ctx, check=False).view_guide(pager=not no_pager)


@workshop.command()
@click.pass_context
@reports_errors
def commands(ctx: click.Context):
    """Print a kubectl troubleshooting cheat sheet."""
    _manager(ctx, check=False).show_commands()


@workshop.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@reports_errors
def destroy(ctx: click.Context, assume_yes: bool):
    """Remove every trace of the workshop from the cluster."""
    _manager(ctx).complete_cleanup(assume_yes=assume_yes)


@workshop.command()
def scenarios():
    """List the available scenarios and their breakage codes."""
    table = Table(title="Scenarios")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Difficulty")
    table.add_column("Breakages")
    for scenario in list_scenarios():
        info = scenario.info
        table.add_row(str(info.number), info.title, info.difficulty.value, ", ".join(info.codes))
    ui.console.print(table)


# Cluster


@cli.group(invoke_without_command=True)
@click.pass_context
@reports_errors
def cluster(ctx: click.Context):
    """Install, inspect or remove the single-node cluster (run as root)."""
    if ctx.invoked_subcommand is None:
        cluster_menu(_provider(ctx).get_cluster_config())


@cluster.command()
@click.option("--hostname", default=None, help="Node hostname (prompted when omitted).")
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@reports_errors
def install(ctx: click.Context, hostname: Optional[str], assume_yes: bool):
    """Install a single-node kubeadm cluster."""
    ClusterInstaller(_provider(ctx).get_cluster_config()).install(
        hostname=hostname, assume_yes=assume_yes
    )


@cluster.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@reports_errors
def cleanup(ctx: click.Context, assume_yes: bool):
    """Remove Kubernetes from this host without dropping SSH sessions."""
    uninstall(_provider(ctx).get_cluster_config(), assume_yes=assume_yes)


@cluster.command(name="status")
@click.pass_context
@reports_errors
def cluster_status(ctx: click.Context):
    """Show kubelet, node and system pod status."""
    show_status(_provider(ctx).get_cluster_config())


def main():
    cli()


if __name__ == "__main__":
    main()
