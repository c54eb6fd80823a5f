#!/usr/bin/env python3
from __future__ import annotations

"""
Runner for the production economy simulator.

Responsibilities:
- Configure logging to both console and `logs/run.log`
- Load the inputs file and one or more YAML/JSON scenarios
- Build one simulation per scenario and register its modifiers
- Echo applied modifiers to `logs/` and run every simulation
- Enforce post-run validations:
  * attributes that may not go negative are >= 0 at every step
  * total_all_costs equals the sum of its parts (when not modified)
- Write results per simulation (`output/output_<name>.json` and/or `.csv`)
- Optionally render plots from the CSV results (`--visualize`)
"""

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import List

from prodsim.inputs import ProductionInputs, load_inputs
from prodsim.io_paths import INPUTS_FILE, LOGS_DIR, OUTPUT_DIR, SCENARIOS_DIR
from prodsim.naming import TotalAttr, total_attribute
from prodsim.results import write_results_csv, write_results_json
from prodsim.scenario_loader import (
    Scenario,
    list_scenario_presets,
    load_and_validate_scenario,
    resolve_preset_path,
    validate_modifiers_against_simulation,
)
from prodsim.simulation import Simulation
from prodsim.utils_logging import configure_logging
from prodsim.validation import echo_scenario_modifiers, validate_non_negative, validate_total_identity


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the runner.

    At most one of `--scenario`, `--preset` or `--all-presets` may be given;
    the default is the baseline preset.
    """
    p = argparse.ArgumentParser(description="Production economy simulator – runner")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--scenario", type=str, help="Path to a scenario YAML/JSON file")
    group.add_argument(
        "--preset",
        type=str,
        help="Scenario preset name (resolves to a file under 'scenarios/', e.g. 'baseline' or 'steel_price_spike')",
    )
    group.add_argument("--all-presets", action="store_true", help="Run every preset under 'scenarios/'")
    p.add_argument("--inputs", type=str, default=str(INPUTS_FILE), help="Path to the inputs JSON/YAML file")
    p.add_argument("--output-dir", type=str, default=str(OUTPUT_DIR), help="Directory for result files")
    p.add_argument("--format", choices=["json", "csv", "both"], default="both", help="Result file format")
    p.add_argument("--debug", action="store_true")
    p.add_argument(
        "--visualize",
        action="store_true",
        help="Generate plots from the produced CSV results and save them under <output-dir>/plots/",
    )
    return p.parse_args(argv)


def _resolve_scenario_paths(args: argparse.Namespace) -> List[Path]:
    if args.scenario:
        return [Path(args.scenario)]
    if args.all_presets:
        presets = list_scenario_presets(SCENARIOS_DIR)
        if not presets:
            raise FileNotFoundError(f"No scenario presets found under {SCENARIOS_DIR}")
        return [resolve_preset_path(name) for name in presets]
    return [resolve_preset_path(args.preset or "baseline")]


def build_simulation(inputs: ProductionInputs, scenario: Scenario) -> Simulation:
    """Build the simulation for one scenario, honoring its runspecs override."""
    if scenario.runspecs.number_of_timesteps is not None:
        inputs = dataclasses.replace(inputs, number_of_timesteps=scenario.runspecs.number_of_timesteps)
    simulation = Simulation(scenario.name, inputs)
    validate_modifiers_against_simulation(simulation, scenario)
    for modifier in scenario.modifiers:
        simulation.add_modifier(modifier)
    return simulation


def run_scenario(
    inputs: ProductionInputs,
    scenario: Scenario,
    *,
    log: logging.Logger,
    output_dir: Path = OUTPUT_DIR,
    result_format: str = "both",
    log_dir: Path = LOGS_DIR,
) -> Simulation:
    """Build, run, validate and persist one scenario; return the finished simulation."""
    simulation = build_simulation(inputs, scenario)
    echo_scenario_modifiers(log_dir=log_dir, scenario=scenario, log=log)

    simulation.run()

    validate_non_negative(simulation, log=log)
    if not validate_total_identity(simulation, log=log):
        log.info("Total cost identity not checked for %s: total_all_costs is modified", simulation.id)

    if result_format in ("json", "both"):
        write_results_json(simulation, output_dir)
    if result_format in ("csv", "both"):
        write_results_csv(simulation, output_dir)

    totals = simulation.series(total_attribute(TotalAttr.total_all_costs))
    log.info(
        "Simulation %s: total_all_costs first %.4f, last %.4f, sum %.4f",
        simulation.id,
        totals[0],
        totals[-1],
        sum(totals),
    )
    return simulation


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(LOGS_DIR, debug=args.debug)
    log = logging.getLogger("runner")

    inputs = load_inputs(Path(args.inputs))
    output_dir = Path(args.output_dir)

    scenarios = [load_and_validate_scenario(path, inputs=inputs) for path in _resolve_scenario_paths(args)]
    names = [s.name for s in scenarios]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Scenario names must be unique (they name the output files): {', '.join(duplicates)}")

    for scenario in scenarios:
        simulation = run_scenario(
            inputs, scenario, log=log, output_dir=output_dir, result_format=args.format
        )
        if args.visualize:
            try:
                from viz.plots import generate_all_plots_from_csv
            except ImportError as e:
                log.error("Visualization dependencies missing or import failed: %s", e)
                raise
            csv_path = output_dir / f"output_{simulation.id}.csv"
            if not csv_path.exists():
                csv_path = write_results_csv(simulation, output_dir)
            generate_all_plots_from_csv(csv_path, plots_dir=output_dir / "plots" / simulation.id)
            log.info("Plots for %s saved under %s", simulation.id, output_dir / "plots" / simulation.id)

    print(f"OK: {len(scenarios)} simulation(s) completed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
