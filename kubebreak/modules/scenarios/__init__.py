"""
Scenarios Module - Black Box Interface

Purpose: Graded breakage scenarios applied to the workshop application
Interface: get_scenario(), list_scenarios(), Scenario.activate(), ScenarioContext
Hidden: Broken manifests, patches, node taints, CoreDNS backup

Each scenario is a fixed ordered list of breakages; new scenarios only
need a ScenarioInfo and one action per breakage code.
"""

from typing import Dict, List

from kubebreak.errors import ScenarioError

from . import configuration, networking, pods, rbac_nodes, storage
from .base import Scenario, ScenarioContext, scenario_labels
from .models import Breakage, Difficulty, ScenarioInfo
from .rbac_nodes import PRIORITY_CLASS, WORKSHOP_TAINT_KEY

SCENARIOS: Dict[int, Scenario] = {
    scenario.number: scenario
    for scenario in (
        pods.SCENARIO,
        networking.SCENARIO,
        storage.SCENARIO,
        configuration.SCENARIO,
        rbac_nodes.SCENARIO,
    )
}


def list_scenarios() -> List[Scenario]:
    """All scenarios ordered by number."""
    return [SCENARIOS[n] for n in sorted(SCENARIOS)]


def get_scenario(number: int) -> Scenario:
    """Get a scenario by number."""
    if number not in SCENARIOS:
        raise ScenarioError(
            f"Unknown scenario: {number}. Available: {', '.join(map(str, sorted(SCENARIOS)))}"
        )
    return SCENARIOS[number]


__all__ = [
    "PRIORITY_CLASS",
    "SCENARIOS",
    "WORKSHOP_TAINT_KEY",
    "Breakage",
    "Difficulty",
    "Scenario",
    "ScenarioContext",
    "ScenarioInfo",
    "get_scenario",
    "list_scenarios",
    "scenario_labels",
]
