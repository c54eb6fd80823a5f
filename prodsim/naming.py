from __future__ import annotations

"""
Attribute and Block Naming Utilities

This module provides the deterministic helpers that build every block id and
attribute id used by the production model, the scenario loader and the
modifier/trigger layer. Modifiers and triggers address attributes purely by
these string ids, so all id construction goes through here.

Conventions:
- Attribute ids are `<scope>_<base>`, where the scope is a material, a
  product, or `<product>_<material>` for cross-cutting attributes. Attributes
  of unscoped blocks (energy, legal, total) use the bare base name.
- Block ids are the kind itself for unparameterized kinds, otherwise
  `<material_or_product>_<kind>`.
- Components are normalized to safe characters; case is preserved so the
  camelCase base names stay readable (e.g. "steel_costPerUnit").
"""

from enum import Enum
import re
from typing import Optional


class BlockKind(str, Enum):
    PRODUCTION = "production"
    PRODUCT = "product"
    STORAGE = "storage"
    MATERIAL = "material"
    LEGAL = "legal"
    ENERGY = "energy"
    TOTAL = "total"


# Kinds addressed by a material or a product; the rest are singletons per step
MATERIAL_KINDS = frozenset({BlockKind.MATERIAL})
PRODUCT_KINDS = frozenset({BlockKind.PRODUCTION, BlockKind.PRODUCT, BlockKind.STORAGE})


class EnergyAttr(str, Enum):
    energyCost = "energyCost"


class LegalAttr(str, Enum):
    co2Tax = "co2Tax"


class MaterialAttr(str, Enum):
    basePrice = "basePrice"
    tariffRate = "tariffRate"
    co2EmissionPerUnit = "co2EmissionPerUnit"
    co2TaxCostPerUnit = "co2TaxCostPerUnit"
    costPerUnit = "costPerUnit"


class ProductionAttr(str, Enum):
    energyConsumptionPerUnit = "energyConsumptionPerUnit"
    energyCostPerUnit = "energyCostPerUnit"
    emittedCo2PerUnit = "emittedCo2PerUnit"
    co2TaxCostPerUnit = "co2TaxCostPerUnit"
    consumptionPerUnit = "consumptionPerUnit"
    costPerProduct = "costPerProduct"
    totalMaterialCostPerProduct = "totalMaterialCostPerProduct"
    totalCostPerProduct = "totalCostPerProduct"


class ProductAttr(str, Enum):
    producedUnits = "producedUnits"
    energyUse = "energyUse"
    energyCost = "energyCost"
    co2Emission = "co2Emission"
    co2TaxCost = "co2TaxCost"
    materialUse = "materialUse"
    materialCost = "materialCost"
    totalCost = "totalCost"


class StorageAttr(str, Enum):
    unitsInStorage = "unitsInStorage"
    baseDemand = "baseDemand"
    demand = "demand"
    delayedDemand = "delayedDemand"
    sold = "sold"


class TotalAttr(str, Enum):
    total_energy_use = "total_energy_use"
    total_energy_cost = "total_energy_cost"
    total_co2_emission = "total_co2_emission"
    total_co2_tax_cost = "total_co2_tax_cost"
    total_consumed = "total_consumed"
    total_cost = "total_cost"
    total_material_costs = "total_material_costs"
    total_all_costs = "total_all_costs"


def _normalize_component(raw: object) -> str:
    """Normalize a single id component to contain only safe characters.

    Rules:
    - Strip leading/trailing whitespace
    - Replace any run of non-alphanumeric characters with a single underscore
    - Strip leading/trailing underscores

    Case is preserved.
    """
    if raw is None:
        return ""
    if isinstance(raw, Enum):
        raw = raw.value
    s = str(raw).strip()
    if not s:
        return ""
    s = re.sub(r"[^0-9A-Za-z]+", "_", s)
    return s.strip("_")


def create_attribute_id(
    base: str,
    product: Optional[str] = None,
    material: Optional[str] = None,
) -> str:
    """Create a canonical attribute id.

    Parameters
    ----------
    base : str
        Base attribute name, e.g. "costPerUnit" (case is preserved).
    product : Optional[str]
        Product scope component, placed first.
    material : Optional[str]
        Material scope component, placed after the product.

    Returns
    -------
    str
        `[product_][material_]base`
    """
    norm_base = _normalize_component(base)
    if not norm_base:
        raise ValueError("Attribute base name must not be empty")
    norm_product = _normalize_component(product) if product else ""
    norm_material = _normalize_component(material) if material else ""

    final_name = "_".join(x for x in (norm_product, norm_material, norm_base) if x)

    return final_name


def block_id(kind: BlockKind | str, *, product: Optional[str] = None, material: Optional[str] = None) -> str:
    """Return the id of a block of `kind`, scoped by material or product.

    Raises ValueError when a parameterized kind is missing its parameter.
    """
    kind = BlockKind(kind)
    if kind in MATERIAL_KINDS:
        if not material:
            raise ValueError(f"Block kind '{kind.value}' requires a material")
        return f"{_normalize_component(material)}_{kind.value}"
    if kind in PRODUCT_KINDS:
        if not product:
            raise ValueError(f"Block kind '{kind.value}' requires a product")
        return f"{_normalize_component(product)}_{kind.value}"
    return kind.value


# ---- Canonical helper functions per block kind ----

def energy_attribute(base: EnergyAttr) -> str:
    return create_attribute_id(base)


def legal_attribute(base: LegalAttr) -> str:
    return create_attribute_id(base)


def material_attribute(material: str, base: MaterialAttr) -> str:
    return create_attribute_id(base, None, material)


def production_attribute(
    product: str,
    base: ProductionAttr,
    material: Optional[str] = None,
) -> str:
    """Production process attribute; per-material ones embed both scopes.

    Example: widget_steel_consumptionPerUnit
    """
    return create_attribute_id(base, product, material)


def product_attribute(
    product: str,
    base: ProductAttr,
    material: Optional[str] = None,
) -> str:
    return create_attribute_id(base, product, material)


def storage_attribute(product: str, base: StorageAttr) -> str:
    return create_attribute_id(base, product, None)


def total_attribute(
    base: TotalAttr, material: Optional[str] = None
) -> str:
    """Totals are unscoped except the per-material ones (`steel_total_cost`)."""
    return create_attribute_id(base, None, material)


__all__ = [
    # Core API
    "BlockKind",
    "MATERIAL_KINDS",
    "PRODUCT_KINDS",
    "create_attribute_id",
    "block_id",
    # Base ids
    "EnergyAttr",
    "LegalAttr",
    "MaterialAttr",
    "ProductionAttr",
    "ProductAttr",
    "StorageAttr",
    "TotalAttr",
    # Helpers
    "energy_attribute",
    "legal_attribute",
    "material_attribute",
    "production_attribute",
    "product_attribute",
    "storage_attribute",
    "total_attribute",
]
