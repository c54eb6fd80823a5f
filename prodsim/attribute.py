from __future__ import annotations

"""
Attributes: lazily computed numeric cells.

An attribute owns a computation rule `calculation(timestep) -> float` that may
read other attributes. Ordering is demand-driven: while its timestep is being
evaluated, reading a pending attribute calculates it first, so the order in
which attributes were registered never matters. Each attribute is calculated
at most once per evaluation pass.

States within a pass:
- PENDING: not yet calculated; reading it outside an active evaluation of its
  timestep raises `UnresolvedAttribute`
- COMPUTING: its rule is on the evaluation stack; reading it again raises
  `CyclicDependency`
- DONE: finalized for this pass
"""

from enum import Enum
import logging
from typing import TYPE_CHECKING, Callable

from .errors import CyclicDependency, UnresolvedAttribute

if TYPE_CHECKING:  # avoid circular import at runtime
    from .block import Block
    from .timestep import Timestep


log = logging.getLogger(__name__)

Calculation = Callable[["Timestep"], float]


class AttributeState(Enum):
    PENDING = "pending"
    COMPUTING = "computing"
    DONE = "done"


class Attribute:
    def __init__(
        self,
        attribute_id: str,
        block: "Block",
        calculation: Calculation,
        *,
        allow_negative: bool = False,
    ) -> None:
        self.id = attribute_id
        self.block = block
        self.calculation = calculation
        self.allow_negative = allow_negative
        self.value = 0.0
        self.state = AttributeState.PENDING

    def __repr__(self) -> str:
        return f"Attribute({self.block.id}/{self.id}, value={self.value!r}, state={self.state.value})"

    @property
    def timestep(self) -> "Timestep":
        return self.block.timestep

    @property
    def is_resolved(self) -> bool:
        return self.state is AttributeState.DONE

    def reset(self) -> None:
        """Forget the value of a previous pass."""
        self.value = 0.0
        self.state = AttributeState.PENDING

    def calculate(self) -> float:
        """Run the rule, apply the non-negative constraint and store the value."""
        timestep = self.timestep
        if self.state is AttributeState.COMPUTING:
            raise CyclicDependency(timestep.dependency_chain(self.id))

        self.state = AttributeState.COMPUTING
        timestep.evaluation_stack.append(self.id)
        try:
            raw = float(self.calculation(timestep))
        except Exception:
            # Leave the attribute re-computable; the error itself propagates
            self.state = AttributeState.PENDING
            raise
        finally:
            timestep.evaluation_stack.pop()

        if raw < 0 and not self.allow_negative:
            log.debug("Clamped %s at step %d from %r to 0", self.id, timestep.step, raw)
            raw = 0.0
        self.value = raw
        self.state = AttributeState.DONE
        return raw

    def resolve(self) -> float:
        """Calculate on first demand within the pass, then return the cached value."""
        if self.state is AttributeState.DONE:
            return self.value
        return self.calculate()

    def get_value(self) -> float:
        """Return the finalized value for this pass.

        Same-timestep reads during evaluation trigger the calculation; reads of
        a timestep that has not started evaluating raise `UnresolvedAttribute`.
        """
        if self.state is AttributeState.DONE:
            return self.value
        if self.state is AttributeState.COMPUTING:
            raise CyclicDependency(self.timestep.dependency_chain(self.id))
        if self.timestep.is_evaluating:
            return self.calculate()
        raise UnresolvedAttribute(
            f"Attribute '{self.id}' in block '{self.block.id}' at step {self.timestep.step} "
            "has not been calculated in the current pass"
        )
