from __future__ import annotations

"""
Visualization utilities.

Read-only plotting functions that consume a results CSV written by
`prodsim.results.write_results_csv` and produce static PNGs (by default
under `output/plots/`). Step labels are taken directly from the CSV header
(`t0`, `t1`, ...), so any horizon works. Materials and products are
discovered from the row ids, not configured.

Usage:
    from viz.plots import generate_all_plots_from_csv
    generate_all_plots_from_csv(Path('output/output_baseline.csv'))
"""

from pathlib import Path
import re

import pandas as pd
import matplotlib.pyplot as plt

from prodsim.io_paths import OUTPUT_DIR
from prodsim.naming import StorageAttr, TotalAttr
from prodsim.results import LABEL_COLUMN


STEP_COLUMN = re.compile(r"t\d+")
TOTAL_COST_ROWS = (
    TotalAttr.total_all_costs.value,
    TotalAttr.total_material_costs.value,
    TotalAttr.total_energy_cost.value,
    TotalAttr.total_co2_tax_cost.value,
)
STORAGE_ROWS = (
    StorageAttr.demand.value,
    StorageAttr.unitsInStorage.value,
    StorageAttr.sold.value,
    StorageAttr.delayedDemand.value,
)


def _ensure_plots_dir(plots_dir: Path | None = None) -> Path:
    """Ensure the plots directory (default `output/plots/`) exists and return it."""
    plots_dir = plots_dir or OUTPUT_DIR / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)
    return plots_dir


def _read_results_csv(csv_path: Path | str) -> pd.DataFrame:
    """Load the results CSV indexed by attribute id, step columns as strings."""
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Results CSV not found: {csv_path}")
    df = pd.read_csv(csv_path)
    if df.columns.empty or df.columns[0] != LABEL_COLUMN:
        raise ValueError(f"Unexpected CSV format: first column must be '{LABEL_COLUMN}'")
    return df.set_index(LABEL_COLUMN)


def _step_columns(df: pd.DataFrame) -> list[str]:
    """Step columns (`t0`, `t1`, ...) in CSV order; other columns are ignored."""
    return [c for c in df.columns if STEP_COLUMN.fullmatch(str(c))]


def _rows_with_suffix(df: pd.DataFrame, suffix: str) -> list[str]:
    return [row for row in df.index if row.endswith(f"_{suffix}")]


def _finish_axes(ax, steps: list[str], title: str, ylabel: str) -> None:
    x = range(len(steps))
    ax.set_title(title)
    ax.set_xticks(list(x))
    ax.set_xticklabels(steps, rotation=45, ha="right")
    ax.set_ylabel(ylabel)
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best", fontsize=8, ncol=2)


def _save_fig(fig: plt.Figure, plots_dir: Path, filename: str) -> Path:
    out_path = _ensure_plots_dir(plots_dir) / filename
    fig.savefig(out_path, bbox_inches="tight", dpi=150)
    plt.close(fig)
    return out_path


def plot_total_costs(df: pd.DataFrame, plots_dir: Path | None = None) -> Path:
    """Plot total costs and their material/energy/CO2 tax components."""
    steps = _step_columns(df)
    missing = [row for row in TOTAL_COST_ROWS if row not in df.index]
    if missing:
        raise ValueError(f"Missing total rows in CSV: {', '.join(missing)}")
    fig, ax = plt.subplots(figsize=(10, 5))
    x = range(len(steps))
    for row in TOTAL_COST_ROWS:
        width = 2.5 if row == TotalAttr.total_all_costs.value else 1.5
        ax.plot(x, df.loc[row, steps].astype(float).values, label=row, linewidth=width)
    _finish_axes(ax, steps, "Total Costs and Components", "Cost (currency)")
    return _save_fig(fig, _ensure_plots_dir(plots_dir), "total_costs.png")


def plot_material_costs(df: pd.DataFrame, plots_dir: Path | None = None) -> Path:
    """Plot the cost of every material summed over products (`<material>_total_cost`)."""
    steps = _step_columns(df)
    x = range(len(steps))
    fig, ax = plt.subplots(figsize=(10, 5))
    for row in _rows_with_suffix(df, TotalAttr.total_cost.value):
        material = row[: -len(TotalAttr.total_cost.value) - 1]
        ax.plot(x, df.loc[row, steps].astype(float).values, label=material)
    _finish_axes(ax, steps, "Material Costs", "Cost (currency)")
    return _save_fig(fig, _ensure_plots_dir(plots_dir), "material_costs.png")


def plot_storage_and_demand(df: pd.DataFrame, product: str, plots_dir: Path | None = None) -> Path:
    """Plot demand, stock, sales and backlog of one product."""
    steps = _step_columns(df)
    x = range(len(steps))
    fig, ax = plt.subplots(figsize=(10, 5))
    for base in STORAGE_ROWS:
        row = f"{product}_{base}"
        if row in df.index:
            ax.plot(x, df.loc[row, steps].astype(float).values, label=base)
    _finish_axes(ax, steps, f"Storage and Demand: {product}", "Units")
    return _save_fig(fig, _ensure_plots_dir(plots_dir), f"storage_{product}.png")


def _products(df: pd.DataFrame) -> list[str]:
    suffix = StorageAttr.unitsInStorage.value
    return [row[: -len(suffix) - 1] for row in _rows_with_suffix(df, suffix)]


def generate_all_plots_from_csv(csv_path: Path | str, plots_dir: Path | None = None) -> list[Path]:
    """Load a results CSV and generate every plot.

    Returns a list of output file paths for created images.
    """
    df = _read_results_csv(csv_path)
    outputs: list[Path] = []
    outputs.append(plot_total_costs(df, plots_dir))
    outputs.append(plot_material_costs(df, plots_dir))
    for product in _products(df):
        outputs.append(plot_storage_and_demand(df, product, plots_dir))
    return outputs
