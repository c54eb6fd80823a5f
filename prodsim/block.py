from __future__ import annotations

"""Blocks: named groups of attributes scoped to one timestep."""

from typing import TYPE_CHECKING, Dict, Iterator, Optional

from .attribute import Attribute, Calculation
from .errors import UnknownAttribute
from .naming import BlockKind

if TYPE_CHECKING:  # avoid circular import at runtime
    from .timestep import Timestep


class Block:
    def __init__(
        self,
        block_id: str,
        kind: BlockKind,
        timestep: "Timestep",
        *,
        material: Optional[str] = None,
        product: Optional[str] = None,
    ) -> None:
        self.id = block_id
        self.kind = kind
        self.timestep = timestep
        self.material = material
        self.product = product
        self.attributes: Dict[str, Attribute] = {}

    def __repr__(self) -> str:
        return f"Block({self.id!r}, step={self.timestep.step}, attributes={len(self.attributes)})"

    def __contains__(self, attribute_id: str) -> bool:
        return attribute_id in self.attributes

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self.attributes.values())

    def __len__(self) -> int:
        return len(self.attributes)

    def add_attribute(
        self,
        attribute_id: str,
        calculation: Calculation,
        *,
        allow_negative: bool = False,
    ) -> Attribute:
        """Declare an attribute of this block and return it.

        Ids are unique across the whole timestep, since modifiers address
        attributes by id alone; the timestep index rejects duplicates.
        """
        attribute = Attribute(attribute_id, self, calculation, allow_negative=allow_negative)
        self.timestep.index_attribute(attribute)
        self.attributes[attribute_id] = attribute
        return attribute

    def get_attribute(self, attribute_id: str) -> Attribute:
        try:
            return self.attributes[attribute_id]
        except KeyError:
            raise UnknownAttribute(
                f"Attribute '{attribute_id}' not found in block '{self.id}' at step {self.timestep.step}"
            ) from None

    def get_value(self, attribute_id: str) -> float:
        return self.get_attribute(attribute_id).get_value()

    def values(self) -> Dict[str, float]:
        """Snapshot of attribute id -> current value."""
        return {attr_id: attr.value for attr_id, attr in self.attributes.items()}
