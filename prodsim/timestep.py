from __future__ import annotations

"""
Timesteps: one discrete point of the simulated timeline.

A timestep owns its blocks and an index of every attribute declared in them.
Evaluation finalizes all attributes of the step; reads across time only go
backward, so earlier steps are always final when a later one starts.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional

from .attribute import Attribute
from .block import Block
from .errors import BlockNotFound, DuplicateAttribute, SimulationError, UnknownAttribute
from .naming import BlockKind, block_id

if TYPE_CHECKING:  # avoid circular import at runtime
    from .simulation import Simulation


log = logging.getLogger(__name__)


class Timestep:
    def __init__(self, step: int, simulation: "Simulation") -> None:
        self.step = step
        self.simulation = simulation
        self.blocks: Dict[str, Block] = {}
        self.attributes: Dict[str, Attribute] = {}
        self.evaluation_stack: List[str] = []
        self.is_evaluating = False
        self.is_finalized = False

    def __repr__(self) -> str:
        return f"Timestep(step={self.step}, blocks={len(self.blocks)}, attributes={len(self.attributes)})"

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks.values())

    # ---- Build phase ----

    def add_block(
        self,
        kind: BlockKind | str,
        *,
        material: Optional[str] = None,
        product: Optional[str] = None,
    ) -> Block:
        kind = BlockKind(kind)
        new_id = block_id(kind, material=material, product=product)
        if new_id in self.blocks:
            raise ValueError(f"Block '{new_id}' already exists in timestep {self.step}")
        block = Block(new_id, kind, self, material=material, product=product)
        self.blocks[new_id] = block
        return block

    def index_attribute(self, attribute: Attribute) -> None:
        existing = self.attributes.get(attribute.id)
        if existing is not None:
            raise DuplicateAttribute(
                f"Attribute '{attribute.id}' declared in block '{attribute.block.id}' "
                f"already exists in block '{existing.block.id}' (step {self.step})"
            )
        self.attributes[attribute.id] = attribute

    # ---- Lookup ----

    @property
    def previous(self) -> Optional["Timestep"]:
        if self.step == 0:
            return None
        return self.simulation.timesteps[self.step - 1]

    def get_block(
        self,
        kind: BlockKind | str,
        *,
        product: Optional[str] = None,
        material: Optional[str] = None,
    ) -> Block:
        """Resolve a block by kind and scope.

        Unparameterized kinds resolve to the kind itself; parameterized kinds
        resolve to `<material_or_product>_<kind>`. Raises BlockNotFound if the
        block is absent or a required parameter is missing.
        """
        try:
            wanted = block_id(kind, material=material, product=product)
        except ValueError as exc:
            raise BlockNotFound(f"Cannot get block: {exc}") from None
        block = self.blocks.get(wanted)
        if block is None:
            raise BlockNotFound(f"Block not found: {wanted} (step {self.step})")
        return block

    def get_attribute(self, attribute_id: str) -> Attribute:
        try:
            return self.attributes[attribute_id]
        except KeyError:
            raise UnknownAttribute(f"Attribute '{attribute_id}' not found at step {self.step}") from None

    def get_value(self, attribute_id: str) -> float:
        return self.get_attribute(attribute_id).get_value()

    def previous_value(
        self,
        kind: BlockKind | str,
        attribute_id: str,
        *,
        product: Optional[str] = None,
        material: Optional[str] = None,
        default: float = 0.0,
    ) -> float:
        """Value of an attribute one step back; `default` at step 0."""
        previous = self.previous
        if previous is None:
            return default
        return previous.get_block(kind, product=product, material=material).get_value(attribute_id)

    def dependency_chain(self, attribute_id: str) -> List[str]:
        """The evaluation path that leads back to `attribute_id` (for cycle errors)."""
        stack = self.evaluation_stack
        start = stack.index(attribute_id) if attribute_id in stack else 0
        return stack[start:] + [attribute_id]

    # ---- Evaluation phase ----

    def reset(self) -> None:
        for attribute in self.attributes.values():
            attribute.reset()
        self.evaluation_stack.clear()
        self.is_evaluating = False
        self.is_finalized = False

    def evaluate(self) -> None:
        """Finalize every attribute of this step.

        Attributes are visited in declaration order, but each one pulls its
        same-step dependencies first, so the result does not depend on it.
        """
        previous = self.previous
        if previous is not None and not previous.is_finalized:
            raise SimulationError(f"Timestep {self.step} evaluated before timestep {previous.step} was finalized")
        self.is_evaluating = True
        try:
            for attribute in self.attributes.values():
                attribute.resolve()
        finally:
            self.is_evaluating = False
        self.is_finalized = True
        log.debug("Timestep %d finalized: %d attributes", self.step, len(self.attributes))
