"""
Scenario execution.

A Scenario pairs its ScenarioInfo with one action per breakage code.
Actions run in the order the breakages are declared; the first failing
kubectl call aborts the scenario.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from rich.table import Table

from kubebreak import console as ui
from kubebreak.config import WorkshopConfig
from kubebreak.errors import ScenarioError
from kubebreak.modules.kubectl import Kubectl

from .models import Breakage, ScenarioInfo

logger = logging.getLogger("kubebreak.scenarios")


@dataclass
class ScenarioContext:
    """Everything a breakage action needs."""
    kubectl: Kubectl
    config: WorkshopConfig

    @property
    def namespace(self) -> str:
        return self.config.namespace


Action = Callable[[ScenarioContext], None]


def scenario_labels(code: str) -> Dict[str, str]:
    """Labels that mark a resource as created by breakage ``code``."""
    return {"scenario": code}


class Scenario:
    """A fixed, ordered set of breakages."""

    def __init__(self, info: ScenarioInfo, actions: Dict[str, Action]):
        missing = set(info.codes) - set(actions)
        extra = set(actions) - set(info.codes)
        if missing or extra:
            raise ScenarioError(
                f"Scenario {info.number} actions do not match breakages "
                f"(missing: {sorted(missing)}, extra: {sorted(extra)})"
            )
        self.info = info
        self.actions = actions

    @property
    def number(self) -> int:
        return self.info.number

    def select(self, only: Optional[Sequence[str]] = None) -> List[Breakage]:
        """Breakages to apply, in declaration order."""
        if not only:
            return list(self.info.breakages)
        wanted = {code.lower() for code in only}
        unknown = wanted - set(self.info.codes)
        if unknown:
            raise ScenarioError(
                f"Unknown breakage(s) for scenario {self.number}: {', '.join(sorted(unknown))}. "
                f"Available: {', '.join(self.info.codes)}"
            )
        return [b for b in self.info.breakages if b.code in wanted]

    def activate(self, ctx: ScenarioContext, only: Optional[Sequence[str]] = None) -> List[Breakage]:
        """Apply the selected breakages and print the learner summary."""
        selected = self.select(only)

        ui.heading(f"BREAKING SCENARIO {self.number}: {self.info.title}", style="bold yellow")

        for breakage in selected:
            ui.console.print(f"[yellow][BREAKING][/yellow] Scenario {breakage.code}: {breakage.summary}...")
            logger.info(f"Applying breakage {breakage.code} in namespace {ctx.namespace}")
            self.actions[breakage.code](ctx)

        self.print_summary(ctx, selected)
        return selected

    def print_summary(self, ctx: ScenarioContext, selected: List[Breakage]) -> None:
        ui.heading(f"Scenario {self.number} Activated!", style="bold green")

        table = Table(title="Issues Created")
        table.add_column("Code", style="cyan")
        table.add_column("Issue")
        for breakage in selected:
            table.add_row(breakage.code, breakage.issue)
        ui.console.print(table)

        ui.console.print("\n[bold]Troubleshooting Commands:[/bold]")
        for command in self.info.commands(ctx.namespace):
            ui.console.print(f"  {command}", markup=False)
        ui.console.print()
