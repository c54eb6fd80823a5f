from __future__ import annotations

"""
Scenario Loader (YAML/JSON) & Strict Modifier Validation

Responsibilities
- Load a single scenario file (YAML or JSON) containing an optional `runspecs`
  block and an optional `modifiers` list.
- Validate `runspecs` (optional `number_of_timesteps` override).
- Build `Modifier` objects (with nested trigger trees) and validate every
  target attribute id and every trigger reference against the ids implied by
  the inputs and the naming conventions. Unknown ids are validation errors
  (strict policy) reported with nearest-match suggestions.

Design notes
- We avoid coupling to a built simulation. The permissible id sets are
  computed from the inputs (materials × material attributes, products ×
  product attributes, products × materials for cross-cutting ones).
- `validate_modifiers_against_simulation` re-checks a scenario against a built
  simulation, for custom block definitions.
"""

from dataclasses import dataclass, field
import difflib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import yaml

from .errors import UnknownModifierMode
from .inputs import ProductionInputs, coerce_numeric
from .io_paths import SCENARIOS_DIR
from .modifier import Modifier
from .naming import (
    BlockKind,
    EnergyAttr,
    LegalAttr,
    MaterialAttr,
    ProductAttr,
    ProductionAttr,
    StorageAttr,
    TotalAttr,
    block_id,
    energy_attribute,
    legal_attribute,
    material_attribute,
    product_attribute,
    production_attribute,
    storage_attribute,
    total_attribute,
)
from .trigger import AttributeTrigger, CombinedTrigger, Trigger


log = logging.getLogger(__name__)

# Cross-cutting bases that exist once per material inside a product-scoped block
_PRODUCTION_PER_MATERIAL = {ProductionAttr.consumptionPerUnit, ProductionAttr.costPerProduct}
_PRODUCT_PER_MATERIAL = {ProductAttr.materialUse, ProductAttr.materialCost}
_TOTAL_PER_MATERIAL = {TotalAttr.total_consumed, TotalAttr.total_cost}


@dataclass(frozen=True)
class RunSpecs:
    # None keeps the count from the inputs
    number_of_timesteps: Optional[int] = None


@dataclass(frozen=True)
class Scenario:
    name: str
    runspecs: RunSpecs = field(default_factory=RunSpecs)
    modifiers: Tuple[Modifier, ...] = ()
    description: str = ""


def _nearest_matches(name: str, candidates: Iterable[str], n: int = 3) -> List[str]:
    return difflib.get_close_matches(name, list(candidates), n=n)


def collect_permissible_attribute_ids(inputs: ProductionInputs) -> Set[str]:
    """Return every attribute id the default production model declares for `inputs`."""
    ids: Set[str] = {energy_attribute(EnergyAttr.energyCost), legal_attribute(LegalAttr.co2Tax)}
    materials = list(inputs.materials)
    for material in materials:
        ids.update(material_attribute(material, base) for base in MaterialAttr)
    for product in inputs.products:
        for base in ProductionAttr:
            if base in _PRODUCTION_PER_MATERIAL:
                ids.update(production_attribute(product, base, m) for m in materials)
            else:
                ids.add(production_attribute(product, base))
        for base in ProductAttr:
            if base in _PRODUCT_PER_MATERIAL:
                ids.update(product_attribute(product, base, m) for m in materials)
            # materialCost also exists as the per-product sum
            if base not in _PRODUCT_PER_MATERIAL or base is ProductAttr.materialCost:
                ids.add(product_attribute(product, base))
        ids.update(storage_attribute(product, base) for base in StorageAttr)
    for base in TotalAttr:
        if base in _TOTAL_PER_MATERIAL:
            ids.update(total_attribute(base, m) for m in materials)
        else:
            ids.add(total_attribute(base))
    return ids


def collect_permissible_block_ids(inputs: ProductionInputs) -> Set[str]:
    ids: Set[str] = {block_id(BlockKind.ENERGY), block_id(BlockKind.LEGAL), block_id(BlockKind.TOTAL)}
    ids.update(block_id(BlockKind.MATERIAL, material=m) for m in inputs.materials)
    for product in inputs.products:
        for kind in (BlockKind.PRODUCTION, BlockKind.PRODUCT, BlockKind.STORAGE):
            ids.add(block_id(kind, product=product))
    return ids


def _iter_attribute_triggers(trigger: Optional[Trigger]) -> Iterable[AttributeTrigger]:
    if trigger is None:
        return
    if isinstance(trigger, AttributeTrigger):
        yield trigger
    elif isinstance(trigger, CombinedTrigger):
        for condition in trigger.conditions:
            yield from _iter_attribute_triggers(condition)


def _reference_problems(
    modifiers: Iterable[Modifier],
    permissible_attributes: Set[str],
    permissible_blocks: Set[str],
) -> List[str]:
    """Describe every unknown attribute/block reference, with suggestions."""
    problems: List[str] = []
    for modifier in modifiers:
        if modifier.attribute not in permissible_attributes:
            problems.append(
                f"modifier '{modifier.name}' targets unknown attribute {modifier.attribute} "
                f"(suggest: {', '.join(_nearest_matches(modifier.attribute, permissible_attributes))})"
            )
        for condition in _iter_attribute_triggers(modifier.trigger):
            if condition.block_id not in permissible_blocks:
                problems.append(
                    f"modifier '{modifier.name}' trigger references unknown block {condition.block_id} "
                    f"(suggest: {', '.join(_nearest_matches(condition.block_id, permissible_blocks))})"
                )
            if condition.attribute_id not in permissible_attributes:
                problems.append(
                    f"modifier '{modifier.name}' trigger references unknown attribute {condition.attribute_id} "
                    f"(suggest: {', '.join(_nearest_matches(condition.attribute_id, permissible_attributes))})"
                )
    return problems


def _validate_modifiers(
    raw_modifiers: object,
    permissible_attributes: Set[str],
    permissible_blocks: Set[str],
) -> Tuple[Modifier, ...]:
    """Validate the `modifiers` block and return the built modifiers in file order."""
    if raw_modifiers is None:
        return ()
    if not isinstance(raw_modifiers, list):
        raise ValueError("modifiers must be a list of modifier mappings")

    modifiers: List[Modifier] = []
    seen: Set[str] = set()
    for idx, raw in enumerate(raw_modifiers):
        if not isinstance(raw, Mapping):
            raise ValueError(f"modifiers[{idx}] must be a mapping, got {raw!r}")
        data = dict(raw)
        if data.get("value") is not None:
            data["value"] = coerce_numeric(data["value"], f"modifiers[{idx}].value")
        if "delay_steps" in data:
            data["delay_steps"] = coerce_numeric(data["delay_steps"], f"modifiers[{idx}].delay_steps")
        try:
            modifier = Modifier.from_dict(data)
        except UnknownModifierMode:
            raise
        except ValueError as exc:
            raise ValueError(f"modifiers[{idx}]: {exc}") from exc
        if modifier.name in seen:
            raise ValueError(f"Duplicate modifier name '{modifier.name}' in scenario")
        seen.add(modifier.name)
        modifiers.append(modifier)

    problems = _reference_problems(modifiers, permissible_attributes, permissible_blocks)
    if problems:
        raise ValueError("Scenario modifiers contain unknown ids: " + " | ".join(problems))
    return tuple(modifiers)


def _load_raw_scenario(path: Path) -> Dict[str, object]:
    """Load YAML/JSON as a plain dict; ensure the root is a mapping."""
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        # YAML for .yaml/.yml and unknown extensions
        data = yaml.safe_load(text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Scenario file must deserialize to a mapping/dictionary at top level")
    return data


def _validate_runspecs(raw_runspecs: Optional[Mapping[str, object]]) -> RunSpecs:
    rs = raw_runspecs or {}
    if not isinstance(rs, Mapping):
        raise ValueError("runspecs must be a mapping")
    raw_steps = rs.get("number_of_timesteps")
    if raw_steps is None:
        return RunSpecs()
    steps = coerce_numeric(raw_steps, "runspecs.number_of_timesteps")
    if steps != int(steps) or steps < 1:
        raise ValueError(f"runspecs.number_of_timesteps must be a positive integer, got {raw_steps!r}")
    return RunSpecs(int(steps))


def validate_scenario_dict(
    inputs: ProductionInputs, scenario_dict: Mapping[str, Any], *, default_name: str = "scenario"
) -> Scenario:
    """Validate an already-deserialized scenario mapping against `inputs`."""
    name = str(scenario_dict.get("name") or default_name)
    runspecs = _validate_runspecs(scenario_dict.get("runspecs"))
    modifiers = _validate_modifiers(
        scenario_dict.get("modifiers"),
        collect_permissible_attribute_ids(inputs),
        collect_permissible_block_ids(inputs),
    )
    return Scenario(
        name=name,
        runspecs=runspecs,
        modifiers=modifiers,
        description=str(scenario_dict.get("description") or ""),
    )


def load_and_validate_scenario(path: Path | str, *, inputs: ProductionInputs) -> Scenario:
    """Load a scenario file and validate it against the inputs.

    Parameters
    ----------
    path : Path
        Path to YAML or JSON scenario file
    inputs : ProductionInputs
        Inputs providing the materials and products that ids may reference

    Returns
    -------
    Scenario
        Validated scenario with built modifiers
    """
    path = Path(path)
    raw = _load_raw_scenario(path)
    scenario = validate_scenario_dict(inputs, raw, default_name=path.stem)
    log.info("Loaded scenario '%s' from %s: %d modifiers", scenario.name, path, len(scenario.modifiers))
    return scenario


def list_scenario_presets(scenarios_dir: Path = SCENARIOS_DIR) -> List[str]:
    """Names of the preset scenario files under `scenarios_dir` (sorted)."""
    if not scenarios_dir.exists():
        return []
    names = {p.stem for p in scenarios_dir.iterdir() if p.suffix.lower() in {".yaml", ".yml", ".json"}}
    return sorted(names)


def resolve_preset_path(preset: str, scenarios_dir: Path = SCENARIOS_DIR) -> Path:
    """Resolve `<preset>.yaml`, `<preset>.yml` or `<preset>.json` under `scenarios_dir`."""
    for suffix in (".yaml", ".yml", ".json"):
        candidate = scenarios_dir / f"{preset}{suffix}"
        if candidate.exists():
            return candidate
    available = list_scenario_presets(scenarios_dir)
    raise FileNotFoundError(
        f"Preset '{preset}' not found under {scenarios_dir}. Available presets: {', '.join(available) or '(none)'}"
    )


def validate_modifiers_against_simulation(simulation, scenario: Scenario) -> None:
    """Ensure every id a scenario references exists in a built simulation.

    Raises `ValueError` with actionable messages otherwise.
    """
    problems = _reference_problems(scenario.modifiers, set(simulation.attribute_ids), set(simulation.block_ids))
    if problems:
        raise ValueError("Scenario ids do not match the built simulation: " + " | ".join(problems))


__all__ = [
    "RunSpecs",
    "Scenario",
    "collect_permissible_attribute_ids",
    "collect_permissible_block_ids",
    "validate_scenario_dict",
    "load_and_validate_scenario",
    "list_scenario_presets",
    "resolve_preset_path",
    "validate_modifiers_against_simulation",
]
