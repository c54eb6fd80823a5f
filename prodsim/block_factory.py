from __future__ import annotations

"""
Block registration.

A `BlockDefinition` pairs a block kind with the callback that declares the
attributes of one block of that kind. Material kinds get one block per
material in the inputs, product kinds one block per product, the other kinds
a single block per timestep. Consecutive definitions of the same scope are
built entity by entity (all product blocks of `widget`, then of `gadget`). Callbacks receive the new block and its
simulation, plus `material=` or `product=` for parameterized kinds:

    def register_storage_block(block, simulation, *, product): ...
"""

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional

from .naming import MATERIAL_KINDS, PRODUCT_KINDS, BlockKind

if TYPE_CHECKING:  # avoid circular import at runtime
    from .block import Block
    from .simulation import Simulation
    from .timestep import Timestep


log = logging.getLogger(__name__)

BlockCallback = Callable[..., None]


@dataclass(frozen=True)
class BlockDefinition:
    kind: BlockKind
    callback: BlockCallback

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", BlockKind(self.kind))

    @property
    def scope(self) -> Optional[str]:
        if self.kind in MATERIAL_KINDS:
            return "material"
        if self.kind in PRODUCT_KINDS:
            return "product"
        return None

    def instantiate_one(
        self,
        timestep: "Timestep",
        simulation: "Simulation",
        *,
        material: Optional[str] = None,
        product: Optional[str] = None,
    ) -> "Block":
        """Create and register the block of this kind for one material or product."""
        block = timestep.add_block(self.kind, material=material, product=product)
        if self.scope == "material":
            self.callback(block, simulation, material=material)
        elif self.scope == "product":
            self.callback(block, simulation, product=product)
        else:
            self.callback(block, simulation)
        if not block.attributes:
            log.debug("Block %s declared no attributes", block.id)
        return block

    def instantiate(self, timestep: "Timestep", simulation: "Simulation") -> list["Block"]:
        """Create and register every block of this kind for `timestep`."""
        if self.scope == "material":
            return [self.instantiate_one(timestep, simulation, material=m) for m in simulation.inputs.materials]
        if self.scope == "product":
            return [self.instantiate_one(timestep, simulation, product=p) for p in simulation.inputs.products]
        return [self.instantiate_one(timestep, simulation)]


def _scope_runs(definitions: Iterable[BlockDefinition]) -> Iterator[list[BlockDefinition]]:
    """Group consecutive definitions that share an entity scope."""
    run: list[BlockDefinition] = []
    for definition in definitions:
        if run and (definition.scope is None or definition.scope != run[0].scope):
            yield run
            run = []
        run.append(definition)
    if run:
        yield run


def build_timestep_blocks(
    timestep: "Timestep", simulation: "Simulation", definitions: Iterable[BlockDefinition]
) -> list["Block"]:
    """Create every block of `timestep` in definition order.

    Consecutive definitions of the same scope are built entity by entity, so
    production, product and storage of one product precede those of the next.
    """
    created: list["Block"] = []
    for run in _scope_runs(definitions):
        scope = run[0].scope
        if scope == "material":
            for material in simulation.inputs.materials:
                created.extend(d.instantiate_one(timestep, simulation, material=material) for d in run)
        elif scope == "product":
            for product in simulation.inputs.products:
                created.extend(d.instantiate_one(timestep, simulation, product=product) for d in run)
        else:
            created.extend(d.instantiate_one(timestep, simulation) for d in run)
    return created


__all__ = ["BlockCallback", "BlockDefinition", "build_timestep_blocks"]
