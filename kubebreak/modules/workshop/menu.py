"""Interactive workshop menu."""

import logging
from typing import Callable, Dict, Tuple

from kubebreak import console as ui
from kubebreak.errors import KubebreakError
from kubebreak.modules.scenarios import list_scenarios

from .manager import WorkshopManager

logger = logging.getLogger("kubebreak.workshop.menu")

MENU = """
What would you like to do?

  [green]SETUP:[/green]
    1) Deploy workshop application
    2) Check application status
    3) Test application

  [yellow]SCENARIOS:[/yellow]
{scenarios}

  [cyan]UTILITIES:[/cyan]
    9) Clean up broken resources
   10) Reset application
   11) View troubleshooting guide
   12) Show useful commands

  [red]CLEANUP:[/red]
   13) Complete cleanup (remove everything)

    0) Exit
"""

FIRST_SCENARIO_CHOICE = 4


def build_actions(manager: WorkshopManager) -> Dict[str, Tuple[str, Callable[[], object]]]:
    """Map menu choices to (label, action)."""
    actions = {
        "1": ("Deploy workshop application", manager.deploy_app),
        "2": ("Check application status", manager.check_status),
        "3": ("Test application", manager.test_app),
        "9": ("Clean up broken resources", manager.clean_broken),
        "10": ("Reset application", manager.reset_app),
        "11": ("View troubleshooting guide", manager.view_guide),
        "12": ("Show useful commands", manager.show_commands),
        "13": ("Complete cleanup (remove everything)", manager.complete_cleanup),
    }
    for offset, scenario in enumerate(list_scenarios()):
        choice = str(FIRST_SCENARIO_CHOICE + offset)
        actions[choice] = (
            f"{scenario.info.label} ({scenario.info.difficulty.value})",
            lambda number=scenario.number: manager.run_scenario(number),
        )
    return actions


def render_menu(actions: Dict[str, Tuple[str, Callable[[], object]]]) -> str:
    scenario_lines = []
    for offset in range(len(list_scenarios())):
        choice = str(FIRST_SCENARIO_CHOICE + offset)
        scenario_lines.append(f"    {choice}) {actions[choice][0]}")
    return MENU.format(scenarios="\n".join(scenario_lines))


def interactive_menu(manager: WorkshopManager) -> None:
    """Loop over the menu until the user chooses 0."""
    ui.banner("Kubernetes Troubleshooting Workshop Manager", "Learn by Breaking Things!")
    manager.check_cluster()

    actions = build_actions(manager)
    menu = render_menu(actions)

    while True:
        ui.console.print(menu)
        choice = ui.ask("Enter your choice (0-13)")

        if choice == "0":
            ui.log_info("Exiting workshop manager")
            return

        if choice not in actions:
            ui.log_error("Invalid choice. Please enter 0-13")
        else:
            label, action = actions[choice]
            logger.debug(f"Menu choice {choice}: {label}")
            try:
                action()
            except KubebreakError as e:
                ui.log_error(str(e))

        ui.console.print()
        ui.ask("Press Enter to continue...", default="")
