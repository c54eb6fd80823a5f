from __future__ import annotations

"""
Result Extraction & Writers

This module walks a finished simulation (timesteps → blocks → attributes →
value) and turns it into structured outputs:
- `results_to_frame`: long pandas DataFrame, one row per (step, attribute)
- `results_to_wide_frame`: one row per attribute, one column per step, with
  the attribute ids in the first column `Output Stocks`
- `write_results_json`: `output/output_<simulation id>.json`, a list of
  `{"step": n, "blocks": {block: {attribute: value}}}`
- `write_results_csv`: the wide frame as CSV

Extraction never triggers evaluation; it requires a completed run.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from .errors import SimulationError
from .io_paths import OUTPUT_DIR
from .simulation import Simulation


log = logging.getLogger(__name__)

LABEL_COLUMN = "Output Stocks"
LONG_COLUMNS = ["simulation", "step", "block", "attribute", "value"]


def _require_run(simulation: Simulation) -> None:
    if not simulation.has_run:
        raise SimulationError(f"Simulation {simulation.id} has not been run; no results to extract")


def _step_labels(simulation: Simulation) -> List[str]:
    return [f"t{timestep.step}" for timestep in simulation.timesteps]


def results_to_records(simulation: Simulation) -> List[Dict[str, object]]:
    """Flat records in step, block and declaration order."""
    _require_run(simulation)
    records: List[Dict[str, object]] = []
    for timestep in simulation.timesteps:
        for block in timestep:
            for attribute in block:
                records.append(
                    {
                        "simulation": simulation.id,
                        "step": timestep.step,
                        "block": block.id,
                        "attribute": attribute.id,
                        "value": attribute.value,
                    }
                )
    return records


def results_to_frame(simulations: Simulation | Iterable[Simulation]) -> pd.DataFrame:
    """Long DataFrame for one or several simulations."""
    if isinstance(simulations, Simulation):
        simulations = [simulations]
    rows: List[Dict[str, object]] = []
    for simulation in simulations:
        rows.extend(results_to_records(simulation))
    return pd.DataFrame(rows, columns=LONG_COLUMNS)


def results_to_wide_frame(simulation: Simulation) -> pd.DataFrame:
    """Attributes as rows and steps as columns (`t0`, `t1`, ...)."""
    _require_run(simulation)
    labels = _step_labels(simulation)
    series_by_row: Dict[str, List[float]] = {attr_id: [] for attr_id in simulation.attribute_ids}
    for timestep in simulation.timesteps:
        for attr_id, attribute in timestep.attributes.items():
            series_by_row[attr_id].append(attribute.value)
    return pd.DataFrame(
        {
            LABEL_COLUMN: list(series_by_row.keys()),
            **{label: [series_by_row[row][idx] for row in series_by_row] for idx, label in enumerate(labels)},
        }
    )


def write_results_json(simulation: Simulation, output_dir: Path | None = None) -> Path:
    """Write nested results to `<output_dir>/output_<id>.json` and return the path."""
    out_dir = output_dir or OUTPUT_DIR
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"output_{simulation.id}.json"
    out_path.write_text(json.dumps(simulation.results(), indent=2), encoding="utf-8")
    log.info("Simulation results saved to %s", out_path)
    return out_path


def write_results_csv(simulation: Simulation, output_dir: Path | None = None) -> Path:
    """Write the wide results table to `<output_dir>/output_<id>.csv` and return the path."""
    out_dir = output_dir or OUTPUT_DIR
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / f"output_{simulation.id}.csv"
    results_to_wide_frame(simulation).to_csv(out_path, index=False)
    log.info("Simulation results saved to %s", out_path)
    return out_path


__all__ = [
    "LABEL_COLUMN",
    "results_to_records",
    "results_to_frame",
    "results_to_wide_frame",
    "write_results_json",
    "write_results_csv",
]
