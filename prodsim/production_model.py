from __future__ import annotations

"""
Production economy block definitions.

This module declares the attributes of every block kind of the default
production model:
- energy: energy cost per unit of energy
- legal: CO2 tax per unit of CO2
- material (per material): price, tariff, CO2 and resulting cost per unit
- production (per product): per-unit energy, CO2 and material costs of the
  production process
- product (per product): produced units and the resulting absolute energy,
  CO2 and material use and cost
- storage (per product): demand, stock, sales and backlog carried to the
  next step
- total: aggregates across products and materials

Design principles
- Every value passes through `Simulation.apply_modifier` under its own id, so
  any attribute can be targeted by a modifier
- Ids come from `prodsim.naming` helpers only
- Values derived from other attributes read those attributes (not the raw
  inputs), so modifiers propagate downstream
- Cross-time reads use `Timestep.previous_value`, which yields 0 at step 0
"""

from typing import TYPE_CHECKING, Callable

from .attribute import Attribute
from .block_factory import BlockDefinition
from .naming import (
    BlockKind,
    EnergyAttr,
    LegalAttr,
    MaterialAttr,
    ProductAttr,
    ProductionAttr,
    StorageAttr,
    TotalAttr,
    energy_attribute,
    legal_attribute,
    material_attribute,
    product_attribute,
    production_attribute,
    storage_attribute,
    total_attribute,
)

if TYPE_CHECKING:  # avoid circular import at runtime
    from .block import Block
    from .simulation import Simulation
    from .timestep import Timestep


Formula = Callable[["Timestep"], float]


def _declare(
    block: "Block",
    simulation: "Simulation",
    attribute_id: str,
    formula: Formula,
    *,
    allow_negative: bool = False,
) -> Attribute:
    """Declare `attribute_id` as `formula(timestep)` passed through the modifier layer."""

    def calculation(timestep: "Timestep") -> float:
        return simulation.apply_modifier(formula(timestep), attribute_id, timestep)

    return block.add_attribute(attribute_id, calculation, allow_negative=allow_negative)


def _co2_tax(timestep: "Timestep") -> float:
    return timestep.get_block(BlockKind.LEGAL).get_value(legal_attribute(LegalAttr.co2Tax))


def _energy_cost(timestep: "Timestep") -> float:
    return timestep.get_block(BlockKind.ENERGY).get_value(energy_attribute(EnergyAttr.energyCost))


# ---- energy / legal ----

def register_energy_block(block: "Block", simulation: "Simulation") -> None:
    energy = simulation.inputs.energy
    _declare(block, simulation, energy_attribute(EnergyAttr.energyCost), lambda ts: energy.energy_cost)


def register_legal_block(block: "Block", simulation: "Simulation") -> None:
    legal = simulation.inputs.legal
    _declare(block, simulation, legal_attribute(LegalAttr.co2Tax), lambda ts: legal.co2_tax)


# ---- material ----

def register_material_block(block: "Block", simulation: "Simulation", *, material: str) -> None:
    """Material cost per unit.

    costPerUnit = (basePrice + co2EmissionPerUnit * co2Tax) * (1 + tariffRate)
    """
    params = simulation.inputs.materials[material]
    base_price = material_attribute(material, MaterialAttr.basePrice)
    tariff_rate = material_attribute(material, MaterialAttr.tariffRate)
    co2_emission = material_attribute(material, MaterialAttr.co2EmissionPerUnit)
    co2_tax_cost = material_attribute(material, MaterialAttr.co2TaxCostPerUnit)
    cost_per_unit = material_attribute(material, MaterialAttr.costPerUnit)

    _declare(block, simulation, base_price, lambda ts: params.base_price)
    _declare(block, simulation, tariff_rate, lambda ts: params.tariff_rate)
    _declare(block, simulation, co2_emission, lambda ts: params.co2_emission_per_unit)
    _declare(block, simulation, co2_tax_cost, lambda ts: block.get_value(co2_emission) * _co2_tax(ts))

    def cost(ts: "Timestep") -> float:
        price_with_co2 = block.get_value(base_price) + block.get_value(co2_tax_cost)
        return price_with_co2 * (1 + block.get_value(tariff_rate))

    _declare(block, simulation, cost_per_unit, cost)


# ---- production process ----

def _register_production_material(
    block: "Block", simulation: "Simulation", product: str, material: str
) -> str:
    params = simulation.inputs.products[product]
    consumption = production_attribute(product, ProductionAttr.consumptionPerUnit, material)
    cost_per_product = production_attribute(product, ProductionAttr.costPerProduct, material)
    material_cost = material_attribute(material, MaterialAttr.costPerUnit)

    _declare(block, simulation, consumption, lambda ts: params.consumption_of(material))
    _declare(
        block,
        simulation,
        cost_per_product,
        lambda ts: block.get_value(consumption)
        * ts.get_block(BlockKind.MATERIAL, material=material).get_value(material_cost),
    )
    return cost_per_product


def register_production_block(block: "Block", simulation: "Simulation", *, product: str) -> None:
    """Per-unit costs of producing `product`.

    totalCostPerProduct = totalMaterialCostPerProduct + energyCostPerUnit + co2TaxCostPerUnit
    """
    params = simulation.inputs.products[product]
    energy_use = production_attribute(product, ProductionAttr.energyConsumptionPerUnit)
    energy_cost = production_attribute(product, ProductionAttr.energyCostPerUnit)
    emitted = production_attribute(product, ProductionAttr.emittedCo2PerUnit)
    co2_tax_cost = production_attribute(product, ProductionAttr.co2TaxCostPerUnit)
    material_total = production_attribute(product, ProductionAttr.totalMaterialCostPerProduct)
    total = production_attribute(product, ProductionAttr.totalCostPerProduct)

    _declare(block, simulation, energy_use, lambda ts: params.energy_consumption_per_unit)
    _declare(block, simulation, energy_cost, lambda ts: block.get_value(energy_use) * _energy_cost(ts))
    _declare(block, simulation, emitted, lambda ts: params.co2_emission_per_unit)
    _declare(block, simulation, co2_tax_cost, lambda ts: block.get_value(emitted) * _co2_tax(ts))

    cost_ids = [
        _register_production_material(block, simulation, product, material)
        for material in simulation.inputs.materials
    ]
    _declare(block, simulation, material_total, lambda ts: sum(block.get_value(c) for c in cost_ids))
    _declare(
        block,
        simulation,
        total,
        lambda ts: block.get_value(material_total) + block.get_value(energy_cost) + block.get_value(co2_tax_cost),
    )


# ---- product ----

def _register_product_material(block: "Block", simulation: "Simulation", product: str, material: str) -> str:
    produced = product_attribute(product, ProductAttr.producedUnits)
    use = product_attribute(product, ProductAttr.materialUse, material)
    cost = product_attribute(product, ProductAttr.materialCost, material)
    consumption = production_attribute(product, ProductionAttr.consumptionPerUnit, material)
    cost_per_product = production_attribute(product, ProductionAttr.costPerProduct, material)

    def production(ts: "Timestep"):
        return ts.get_block(BlockKind.PRODUCTION, product=product)

    _declare(block, simulation, use, lambda ts: block.get_value(produced) * production(ts).get_value(consumption))
    _declare(block, simulation, cost, lambda ts: block.get_value(produced) * production(ts).get_value(cost_per_product))
    return cost


def register_product_block(block: "Block", simulation: "Simulation", *, product: str) -> None:
    """Absolute quantities for the units of `product` made this step.

    totalCost = energyCost + materialCost + co2TaxCost
    """
    params = simulation.inputs.products[product]
    produced = product_attribute(product, ProductAttr.producedUnits)
    energy_use = product_attribute(product, ProductAttr.energyUse)
    energy_cost = product_attribute(product, ProductAttr.energyCost)
    co2_emission = product_attribute(product, ProductAttr.co2Emission)
    co2_tax_cost = product_attribute(product, ProductAttr.co2TaxCost)
    material_cost = product_attribute(product, ProductAttr.materialCost)
    total = product_attribute(product, ProductAttr.totalCost)

    def per_unit(ts: "Timestep", base: ProductionAttr) -> float:
        production = ts.get_block(BlockKind.PRODUCTION, product=product)
        return production.get_value(production_attribute(product, base))

    _declare(block, simulation, produced, lambda ts: params.produced_units)
    _declare(
        block,
        simulation,
        energy_use,
        lambda ts: block.get_value(produced) * per_unit(ts, ProductionAttr.energyConsumptionPerUnit),
    )
    _declare(
        block,
        simulation,
        energy_cost,
        lambda ts: block.get_value(produced) * per_unit(ts, ProductionAttr.energyCostPerUnit),
    )
    _declare(
        block,
        simulation,
        co2_emission,
        lambda ts: block.get_value(produced) * per_unit(ts, ProductionAttr.emittedCo2PerUnit),
    )
    _declare(block, simulation, co2_tax_cost, lambda ts: block.get_value(co2_emission) * _co2_tax(ts))

    cost_ids = [
        _register_product_material(block, simulation, product, material) for material in simulation.inputs.materials
    ]
    _declare(block, simulation, material_cost, lambda ts: sum(block.get_value(c) for c in cost_ids))
    _declare(
        block,
        simulation,
        total,
        lambda ts: block.get_value(energy_cost) + block.get_value(material_cost) + block.get_value(co2_tax_cost),
    )


# ---- storage ----

def register_storage_block(block: "Block", simulation: "Simulation", *, product: str) -> None:
    """Stock and demand bookkeeping for `product`.

    demand = baseDemand + previous delayedDemand
    unitsInStorage = previous unitsInStorage - previous sold + producedUnits
    sold = min(demand, unitsInStorage)
    delayedDemand = max(0, demand - sold)
    """
    params = simulation.inputs.products[product]
    base_demand = storage_attribute(product, StorageAttr.baseDemand)
    demand = storage_attribute(product, StorageAttr.demand)
    in_storage = storage_attribute(product, StorageAttr.unitsInStorage)
    sold = storage_attribute(product, StorageAttr.sold)
    delayed = storage_attribute(product, StorageAttr.delayedDemand)
    produced = product_attribute(product, ProductAttr.producedUnits)

    def previous(ts: "Timestep", attribute_id: str) -> float:
        return ts.previous_value(BlockKind.STORAGE, attribute_id, product=product)

    def units_in_storage(ts: "Timestep") -> float:
        made = ts.get_block(BlockKind.PRODUCT, product=product).get_value(produced)
        return previous(ts, in_storage) - previous(ts, sold) + made

    _declare(block, simulation, base_demand, lambda ts: params.base_demand)
    _declare(block, simulation, demand, lambda ts: block.get_value(base_demand) + previous(ts, delayed))
    _declare(block, simulation, in_storage, units_in_storage)
    _declare(block, simulation, sold, lambda ts: min(block.get_value(demand), block.get_value(in_storage)))
    _declare(block, simulation, delayed, lambda ts: max(0.0, block.get_value(demand) - block.get_value(sold)))


# ---- totals ----

def _sum_over_products(simulation: "Simulation", ts: "Timestep", base: ProductAttr, material: str | None = None) -> float:
    total = 0.0
    for product in simulation.inputs.products:
        block = ts.get_block(BlockKind.PRODUCT, product=product)
        total += block.get_value(product_attribute(product, base, material))
    return total


def _register_total_material(block: "Block", simulation: "Simulation", material: str) -> str:
    consumed = total_attribute(TotalAttr.total_consumed, material)
    cost = total_attribute(TotalAttr.total_cost, material)
    _declare(block, simulation, consumed, lambda ts: _sum_over_products(simulation, ts, ProductAttr.materialUse, material))
    _declare(block, simulation, cost, lambda ts: _sum_over_products(simulation, ts, ProductAttr.materialCost, material))
    return cost


def register_total_block(block: "Block", simulation: "Simulation") -> None:
    """Aggregates over every product and material of the step.

    total_all_costs = total_material_costs + total_energy_cost + total_co2_tax_cost
    """
    sums = {
        TotalAttr.total_energy_use: ProductAttr.energyUse,
        TotalAttr.total_energy_cost: ProductAttr.energyCost,
        TotalAttr.total_co2_emission: ProductAttr.co2Emission,
        TotalAttr.total_co2_tax_cost: ProductAttr.co2TaxCost,
    }
    for total_base, product_base in sums.items():
        _declare(
            block,
            simulation,
            total_attribute(total_base),
            lambda ts, product_base=product_base: _sum_over_products(simulation, ts, product_base),
        )

    cost_ids = [_register_total_material(block, simulation, material) for material in simulation.inputs.materials]
    material_costs = total_attribute(TotalAttr.total_material_costs)
    _declare(block, simulation, material_costs, lambda ts: sum(block.get_value(c) for c in cost_ids))
    _declare(
        block,
        simulation,
        total_attribute(TotalAttr.total_all_costs),
        lambda ts: block.get_value(material_costs)
        + block.get_value(total_attribute(TotalAttr.total_energy_cost))
        + block.get_value(total_attribute(TotalAttr.total_co2_tax_cost)),
    )


DEFAULT_BLOCK_DEFINITIONS = (
    BlockDefinition(BlockKind.ENERGY, register_energy_block),
    BlockDefinition(BlockKind.LEGAL, register_legal_block),
    BlockDefinition(BlockKind.MATERIAL, register_material_block),
    BlockDefinition(BlockKind.PRODUCTION, register_production_block),
    BlockDefinition(BlockKind.PRODUCT, register_product_block),
    BlockDefinition(BlockKind.STORAGE, register_storage_block),
    BlockDefinition(BlockKind.TOTAL, register_total_block),
)


__all__ = [
    "DEFAULT_BLOCK_DEFINITIONS",
    "register_energy_block",
    "register_legal_block",
    "register_material_block",
    "register_production_block",
    "register_product_block",
    "register_storage_block",
    "register_total_block",
]
