from __future__ import annotations

"""
Logging, Validation, and Error Policy utilities.

This module centralizes the scenario echo and the post-run checks used by the
runner:

- Scenario echo of the modifiers applied to a run, written to logs
- Non-negativity of every attribute not declared as allowed to go negative
- Per-step cost identity of the total block (skipped for ids a modifier
  targets, since modifiers legitimately break the identity)

Checks raise `RuntimeError` with actionable messages when they fail, after
logging the failure, so the runner stops early.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .naming import TotalAttr, total_attribute
from .scenario_loader import Scenario
from .simulation import Simulation


def echo_scenario_modifiers(*, log_dir: Path, scenario: Scenario, log: logging.Logger) -> Path:
    """Write a readable echo of the scenario's runspecs and modifiers to `log_dir`.

    The file is named `scenario_<name>_echo.json`; the function also logs the
    modifier count and names.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    echo = {
        "name": scenario.name,
        "description": scenario.description,
        "runspecs": {"number_of_timesteps": scenario.runspecs.number_of_timesteps},
        "modifiers": [m.to_dict() for m in scenario.modifiers],
    }
    safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in scenario.name)
    path = log_dir / f"scenario_{safe_name}_echo.json"
    path.write_text(json.dumps(echo, indent=2), encoding="utf-8")

    log.info("Scenario '%s' applies %d modifiers", scenario.name, len(scenario.modifiers))
    if scenario.modifiers:
        log.info("Modifiers: %s", ", ".join(m.name for m in scenario.modifiers))
    return path


def validate_non_negative(simulation: Simulation, *, log: Optional[logging.Logger] = None) -> None:
    """Ensure every attribute without `allow_negative` is >= 0 at every step."""
    for timestep in simulation.timesteps:
        for attribute in timestep.attributes.values():
            if attribute.allow_negative:
                continue
            if attribute.value < 0:
                msg = (
                    f"Validation failed at step {timestep.step}: {attribute.id} negative ({attribute.value})"
                )
                if log:
                    log.error(msg)
                raise RuntimeError(msg)


def validate_total_identity(
    simulation: Simulation, *, tolerance: float = 1e-9, log: Optional[logging.Logger] = None
) -> bool:
    """Check total_all_costs = material + energy + CO2 tax costs at every step.

    Returns False (without checking) when a modifier targets `total_all_costs`,
    True when the identity held everywhere; raises RuntimeError otherwise.
    """
    total_id = total_attribute(TotalAttr.total_all_costs)
    if simulation.modifiers.get(total_id):
        return False
    parts = [
        total_attribute(TotalAttr.total_material_costs),
        total_attribute(TotalAttr.total_energy_cost),
        total_attribute(TotalAttr.total_co2_tax_cost),
    ]
    for timestep in simulation.timesteps:
        total = timestep.get_value(total_id)
        expected = sum(timestep.get_value(p) for p in parts)
        if abs(total - expected) > tolerance * max(1.0, abs(expected)):
            msg = f"Total cost identity failed at step {timestep.step}: {total_id}={total} vs sum={expected}"
            if log:
                log.error(msg)
            raise RuntimeError(msg)
    return True


__all__ = [
    "echo_scenario_modifiers",
    "validate_non_negative",
    "validate_total_identity",
]
