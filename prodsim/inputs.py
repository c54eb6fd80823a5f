from __future__ import annotations

"""
Input configuration loading & validation (JSON or YAML).

Responsibilities:
- Load the consolidated `inputs.json` at the project root (or any JSON/YAML
  file with the same shape)
- Parse it into frozen dataclasses: energy and legal parameters, one
  `MaterialParams` per material and one `ProductParams` per product
- Accept both the camelCase document shape (`numberOfTimesteps`, `basePrice`,
  `production.steelConsumption`) and snake_case keys with an explicit
  `consumption: {material: amount}` mapping

Design choices:
- Bad inputs raise `ValueError` with actionable messages
- Materials and products keep their declaration order and are exposed as
  read-only mappings, so one `ProductionInputs` can be shared by several
  simulations
"""

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from .io_paths import INPUTS_FILE


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnergyParams:
    energy_cost: float = 0.0


@dataclass(frozen=True)
class LegalParams:
    co2_tax: float = 0.0


@dataclass(frozen=True)
class MaterialParams:
    id: str
    base_price: float
    tariff_rate: float = 0.0
    co2_emission_per_unit: float = 0.0


@dataclass(frozen=True)
class ProductParams:
    id: str
    produced_units: float
    base_demand: float = 0.0
    energy_consumption_per_unit: float = 0.0
    co2_emission_per_unit: float = 0.0
    # material id -> units of material consumed per produced unit
    consumption: Mapping[str, float] = MappingProxyType({})

    def consumption_of(self, material: str) -> float:
        return float(self.consumption.get(material, 0.0))


@dataclass(frozen=True)
class ProductionInputs:
    number_of_timesteps: int
    energy: EnergyParams
    legal: LegalParams
    materials: Mapping[str, MaterialParams]
    products: Mapping[str, ProductParams]

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form in the camelCase document shape."""
        return {
            "numberOfTimesteps": self.number_of_timesteps,
            "energy": {"energyCost": self.energy.energy_cost},
            "legal": {"co2Tax": self.legal.co2_tax},
            "materials": {
                m.id: {
                    "id": m.id,
                    "basePrice": m.base_price,
                    "tariffRate": m.tariff_rate,
                    "co2EmissionPerUnit": m.co2_emission_per_unit,
                }
                for m in self.materials.values()
            },
            "products": {
                p.id: {
                    "id": p.id,
                    "producedUnits": p.produced_units,
                    "baseDemand": p.base_demand,
                    "production": {
                        "energyConsumptionPerUnit": p.energy_consumption_per_unit,
                        "co2EmissionPerUnit": p.co2_emission_per_unit,
                        "consumption": dict(p.consumption),
                    },
                }
                for p in self.products.values()
            },
        }


def coerce_numeric(value: object, field_name: str) -> float:
    """Coerce an object to a primitive float, stripping simple symbols.

    Accepted inputs include numeric types and strings that may contain common
    currency or formatting symbols. No semantic transformation is applied
    (percent signs are stripped, not divided by 100).
    """
    if isinstance(value, bool):
        raise ValueError(f"Non-numeric value for '{field_name}': {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        for ch in ["%", "$", "€", "£", ","]:
            s = s.replace(ch, "")
        try:
            return float(s)
        except ValueError as exc:
            raise ValueError(f"Non-numeric value for '{field_name}': {value!r}") from exc
    raise ValueError(f"Non-numeric value for '{field_name}': {value!r}")


def _lookup(section: Mapping[str, Any], *keys: str) -> Optional[Any]:
    """Return the first present key among snake_case/camelCase spellings."""
    for key in keys:
        if key in section and section[key] is not None:
            return section[key]
    return None


def _number(
    section: Mapping[str, Any],
    field_name: str,
    *keys: str,
    default: Optional[float] = None,
) -> float:
    raw = _lookup(section, *keys)
    if raw is None:
        if default is None:
            raise ValueError(f"Missing required input '{field_name}' (accepted keys: {', '.join(keys)})")
        return default
    return coerce_numeric(raw, field_name)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Input section '{name}' must be a mapping")
    return raw


def _parse_material(key: str, raw: Mapping[str, Any]) -> MaterialParams:
    if not isinstance(raw, Mapping):
        raise ValueError(f"Material '{key}' must be a mapping of parameters")
    where = f"materials.{key}"
    material_id = str(raw.get("id") or key)
    if material_id != key:
        raise ValueError(f"{where}.id ({material_id!r}) must match its key")
    params = MaterialParams(
        id=key,
        base_price=_number(raw, f"{where}.basePrice", "base_price", "basePrice"),
        tariff_rate=_number(raw, f"{where}.tariffRate", "tariff_rate", "tariffRate", default=0.0),
        co2_emission_per_unit=_number(
            raw, f"{where}.co2EmissionPerUnit", "co2_emission_per_unit", "co2EmissionPerUnit", default=0.0
        ),
    )
    if params.base_price < 0:
        raise ValueError(f"{where}.basePrice must be non-negative, got {params.base_price}")
    return params


def _parse_consumption(key: str, production: Mapping[str, Any], materials: Mapping[str, MaterialParams]) -> Dict[str, float]:
    where = f"products.{key}.production"
    explicit = production.get("consumption")
    if explicit is not None and not isinstance(explicit, Mapping):
        raise ValueError(f"{where}.consumption must be a mapping of material -> amount")
    explicit = explicit or {}

    unknown = sorted(set(explicit) - set(materials))
    if unknown:
        raise ValueError(f"{where}.consumption references unknown materials: {', '.join(unknown)}")

    consumption: Dict[str, float] = {}
    for material in materials:
        raw = explicit.get(material)
        if raw is None:
            raw = _lookup(production, f"{material}Consumption", f"{material}_consumption")
        if raw is None:
            log.warning("No consumption of '%s' given for product '%s'; using 0", material, key)
            consumption[material] = 0.0
            continue
        consumption[material] = coerce_numeric(raw, f"{where}.{material}Consumption")
    return consumption


def _parse_product(key: str, raw: Mapping[str, Any], materials: Mapping[str, MaterialParams]) -> ProductParams:
    if not isinstance(raw, Mapping):
        raise ValueError(f"Product '{key}' must be a mapping of parameters")
    where = f"products.{key}"
    product_id = str(raw.get("id") or key)
    if product_id != key:
        raise ValueError(f"{where}.id ({product_id!r}) must match its key")
    production = raw.get("production") or {}
    if not isinstance(production, Mapping):
        raise ValueError(f"{where}.production must be a mapping")
    # Production parameters may live in the nested section or on the product itself
    merged: Dict[str, Any] = {**raw, **production}
    return ProductParams(
        id=key,
        produced_units=_number(raw, f"{where}.producedUnits", "produced_units", "producedUnits"),
        base_demand=_number(raw, f"{where}.baseDemand", "base_demand", "baseDemand", default=0.0),
        energy_consumption_per_unit=_number(
            merged,
            f"{where}.production.energyConsumptionPerUnit",
            "energy_consumption_per_unit",
            "energyConsumptionPerUnit",
            default=0.0,
        ),
        co2_emission_per_unit=_number(
            merged,
            f"{where}.production.co2EmissionPerUnit",
            "co2_emission_per_unit",
            "co2EmissionPerUnit",
            default=0.0,
        ),
        consumption=MappingProxyType(_parse_consumption(key, merged, materials)),
    )


def parse_inputs(data: Mapping[str, Any]) -> ProductionInputs:
    """Construct `ProductionInputs` from the consolidated document structure."""
    if not isinstance(data, Mapping):
        raise ValueError("Inputs must deserialize to a mapping at top level")

    raw_steps = _lookup(data, "number_of_timesteps", "numberOfTimesteps")
    if raw_steps is None:
        raise ValueError("Missing required input 'numberOfTimesteps'")
    steps = coerce_numeric(raw_steps, "numberOfTimesteps")
    if steps != int(steps) or steps < 1:
        raise ValueError(f"numberOfTimesteps must be a positive integer, got {raw_steps!r}")

    energy_section = _section(data, "energy")
    legal_section = _section(data, "legal")
    if not energy_section:
        log.info("No 'energy' section in inputs; energy cost is 0")
    if not legal_section:
        log.info("No 'legal' section in inputs; CO2 tax is 0")
    energy = EnergyParams(_number(energy_section, "energy.energyCost", "energy_cost", "energyCost", default=0.0))
    legal = LegalParams(_number(legal_section, "legal.co2Tax", "co2_tax", "co2Tax", default=0.0))

    materials_section = _section(data, "materials")
    products_section = _section(data, "products")
    if not products_section:
        raise ValueError("Inputs must declare at least one product")

    materials: Dict[str, MaterialParams] = {}
    for key, raw in materials_section.items():
        materials[str(key)] = _parse_material(str(key), raw)
    frozen_materials = MappingProxyType(materials)

    products: Dict[str, ProductParams] = {}
    for key, raw in products_section.items():
        products[str(key)] = _parse_product(str(key), raw, frozen_materials)

    overlap = sorted(set(materials) & set(products))
    if overlap:
        raise ValueError(f"Material and product ids must be distinct; both declare: {', '.join(overlap)}")

    return ProductionInputs(
        number_of_timesteps=int(steps),
        energy=energy,
        legal=legal,
        materials=frozen_materials,
        products=MappingProxyType(products),
    )


def load_inputs(path: Path | str | None = None) -> ProductionInputs:
    """Load and validate an inputs file (JSON, or YAML by extension)."""
    path = Path(path) if path is not None else INPUTS_FILE
    if not path.exists():
        raise FileNotFoundError(f"Inputs file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = yaml.safe_load(text)
    else:
        data = json.loads(text)
    inputs = parse_inputs(data)
    log.info(
        "Inputs loaded from %s: %d timesteps, %d materials, %d products",
        path,
        inputs.number_of_timesteps,
        len(inputs.materials),
        len(inputs.products),
    )
    return inputs


__all__ = [
    "EnergyParams",
    "LegalParams",
    "MaterialParams",
    "ProductParams",
    "ProductionInputs",
    "coerce_numeric",
    "parse_inputs",
    "load_inputs",
]
