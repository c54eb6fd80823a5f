from __future__ import annotations

"""
Triggers: boolean predicates that gate modifiers.

A trigger is an immutable expression tree over:
- a timestep range (`min_step <= step <= max_step`, bounds default to [0, inf))
- a comparison between an attribute value and a constant
- an AND/OR combination of sub-triggers (an empty combination is true)

Attribute comparisons read the previous timestep, whose values are final, or
the current timestep at step 0. A comparison whose block or attribute cannot
be read evaluates to False and logs a warning; it never aborts the run.
"""

from dataclasses import dataclass
from enum import Enum
import logging
import math
import operator
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, Iterable, Mapping, Tuple

from .errors import SimulationError

if TYPE_CHECKING:  # avoid circular import at runtime
    from .simulation import Simulation
    from .timestep import Timestep


log = logging.getLogger(__name__)


class TriggerType(str, Enum):
    TIMESTEP_RANGE = "timestep_range"
    ATTRIBUTE_THRESHOLD = "attribute_threshold"
    ATTRIBUTE_COMPARISON = "attribute_comparison"
    COMBINED = "combined"


class ComparisonOperator(str, Enum):
    GREATER_THAN = "gt"
    LESS_THAN = "lt"
    GREATER_EQUAL = "gte"
    LESS_EQUAL = "lte"
    EQUALS = "eq"
    NOT_EQUALS = "neq"

    def compare(self, left: float, right: float) -> bool:
        return _COMPARATORS[self](left, right)


_COMPARATORS: Dict[ComparisonOperator, Callable[[float, float], bool]] = {
    ComparisonOperator.GREATER_THAN: operator.gt,
    ComparisonOperator.LESS_THAN: operator.lt,
    ComparisonOperator.GREATER_EQUAL: operator.ge,
    ComparisonOperator.LESS_EQUAL: operator.le,
    ComparisonOperator.EQUALS: operator.eq,
    ComparisonOperator.NOT_EQUALS: operator.ne,
}


class LogicalOperator(str, Enum):
    AND = "and"
    OR = "or"


class Trigger:
    """Base class; use the factory helpers to build triggers."""

    type: ClassVar[TriggerType]

    def evaluate(self, timestep: "Timestep", simulation: "Simulation") -> bool:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: "Trigger") -> "CombinedTrigger":
        return CombinedTrigger((self, other), LogicalOperator.AND)

    def __or__(self, other: "Trigger") -> "CombinedTrigger":
        return CombinedTrigger((self, other), LogicalOperator.OR)

    # ---- Factories ----

    @staticmethod
    def timestep_range(min_step: float = 0, max_step: float = math.inf) -> "TimestepRangeTrigger":
        return TimestepRangeTrigger(min_step, max_step)

    @staticmethod
    def attribute_threshold(
        block_id: str,
        attribute_id: str,
        operator: ComparisonOperator | str,
        value: float,
    ) -> "AttributeTrigger":
        return AttributeTrigger(block_id, attribute_id, ComparisonOperator(operator), float(value))

    @staticmethod
    def combined(
        conditions: Iterable["Trigger"],
        logical_operator: LogicalOperator | str = LogicalOperator.AND,
    ) -> "CombinedTrigger":
        return CombinedTrigger(tuple(conditions), LogicalOperator(logical_operator))

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Trigger":
        """Build a trigger tree from its plain-dict form (scenario files).

        Raises ValueError on unknown types, operators or missing fields.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Trigger must be a mapping, got {data!r}")
        raw_type = str(data.get("type", "")).strip().lower()
        try:
            trigger_type = TriggerType(raw_type)
        except ValueError:
            allowed = ", ".join(t.value for t in TriggerType)
            raise ValueError(f"Unknown trigger type {raw_type!r}; expected one of: {allowed}") from None

        if trigger_type is TriggerType.TIMESTEP_RANGE:
            min_step = _bound(data.get("min_timestep"), 0, "min_timestep")
            max_step = _bound(data.get("max_timestep"), math.inf, "max_timestep")
            if min_step > max_step:
                raise ValueError(f"Trigger min_timestep ({min_step}) exceeds max_timestep ({max_step})")
            return TimestepRangeTrigger(min_step, max_step)

        if trigger_type is TriggerType.COMBINED:
            conditions = data.get("conditions") or []
            if not isinstance(conditions, (list, tuple)):
                raise ValueError("Combined trigger 'conditions' must be a list")
            raw_op = str(data.get("logical_operator", LogicalOperator.AND.value)).strip().lower()
            try:
                logical = LogicalOperator(raw_op)
            except ValueError:
                raise ValueError(f"Unknown logical operator {raw_op!r}; expected 'and' or 'or'") from None
            return CombinedTrigger(tuple(Trigger.from_dict(c) for c in conditions), logical)

        missing = [k for k in ("block_id", "attribute_id", "operator", "value") if data.get(k) is None]
        if missing:
            raise ValueError(f"Attribute trigger is missing fields: {', '.join(missing)}")
        raw_op = str(data["operator"]).strip().lower()
        try:
            comparison = ComparisonOperator(raw_op)
        except ValueError:
            allowed = ", ".join(o.value for o in ComparisonOperator)
            raise ValueError(f"Unknown comparison operator {raw_op!r}; expected one of: {allowed}") from None
        try:
            threshold = float(data["value"])
        except (TypeError, ValueError):
            raise ValueError(f"Attribute trigger value must be numeric, got {data['value']!r}") from None
        return AttributeTrigger(str(data["block_id"]), str(data["attribute_id"]), comparison, threshold)


def _bound(raw: Any, default: float, field_name: str) -> float:
    if raw is None:
        return default
    if isinstance(raw, str) and raw.strip().lower() in {"inf", "infinity"}:
        return math.inf
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Trigger {field_name} must be numeric, got {raw!r}") from None


@dataclass(frozen=True)
class TimestepRangeTrigger(Trigger):
    min_step: float = 0
    max_step: float = math.inf

    type: ClassVar[TriggerType] = TriggerType.TIMESTEP_RANGE

    def evaluate(self, timestep: "Timestep", simulation: "Simulation") -> bool:
        return self.min_step <= timestep.step <= self.max_step

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "min_timestep": self.min_step,
            "max_timestep": None if math.isinf(self.max_step) else self.max_step,
        }


@dataclass(frozen=True)
class AttributeTrigger(Trigger):
    block_id: str
    attribute_id: str
    operator: ComparisonOperator
    value: float

    type: ClassVar[TriggerType] = TriggerType.ATTRIBUTE_THRESHOLD

    def evaluate(self, timestep: "Timestep", simulation: "Simulation") -> bool:
        evaluation_step = timestep.step - 1 if timestep.step > 0 else timestep.step
        try:
            evaluation_timestep = simulation.timesteps[evaluation_step]
            block = evaluation_timestep.blocks.get(self.block_id)
            if block is None:
                log.warning(
                    "Trigger disabled: block %s not found in timestep %d", self.block_id, evaluation_step
                )
                return False
            attribute_value = block.get_value(self.attribute_id)
        except (SimulationError, LookupError) as exc:
            log.warning("Trigger disabled: error evaluating %s/%s: %s", self.block_id, self.attribute_id, exc)
            return False
        return self.operator.compare(attribute_value, self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "block_id": self.block_id,
            "attribute_id": self.attribute_id,
            "operator": self.operator.value,
            "value": self.value,
        }


@dataclass(frozen=True)
class CombinedTrigger(Trigger):
    conditions: Tuple[Trigger, ...] = ()
    logical_operator: LogicalOperator = LogicalOperator.AND

    type: ClassVar[TriggerType] = TriggerType.COMBINED

    def evaluate(self, timestep: "Timestep", simulation: "Simulation") -> bool:
        if not self.conditions:
            return True
        # Evaluate every condition so soft failures are always logged
        results = [c.evaluate(timestep, simulation) for c in self.conditions]
        if self.logical_operator is LogicalOperator.AND:
            return all(results)
        return any(results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "logical_operator": self.logical_operator.value,
            "conditions": [c.to_dict() for c in self.conditions],
        }


__all__ = [
    "TriggerType",
    "ComparisonOperator",
    "LogicalOperator",
    "Trigger",
    "TimestepRangeTrigger",
    "AttributeTrigger",
    "CombinedTrigger",
]
