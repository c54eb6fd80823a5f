from __future__ import annotations

"""
Modifiers: named rules that adjust one attribute's computed value.

Modes
- absolute: value + modifier.value
- relative: value * modifier.value
- set: modifier.value (later modifiers in the list still compose on top)
- delay: leaves the value unchanged and, once per run, schedules an
  `absolute` modifier with the same value that applies from
  `step + delay_steps` onward (see `Simulation.apply_modifier`)

Modifiers are immutable and may be shared between simulations; all run
state (which delays already fired, injected modifiers) lives in the
simulation.
"""

from dataclasses import dataclass
from enum import Enum
import math
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .errors import UnknownModifierMode
from .trigger import Trigger

if TYPE_CHECKING:  # avoid circular import at runtime
    from .simulation import Simulation
    from .timestep import Timestep


class ModifierMode(str, Enum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"
    SET = "set"
    DELAY = "delay"


def coerce_mode(mode: ModifierMode | str) -> ModifierMode:
    """Return the mode enum for `mode`; raises UnknownModifierMode otherwise."""
    if isinstance(mode, ModifierMode):
        return mode
    try:
        return ModifierMode(str(mode).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in ModifierMode)
        raise UnknownModifierMode(f"Unknown modifier mode: {mode!r} (expected one of: {allowed})") from None


@dataclass(frozen=True)
class Modifier:
    name: str
    attribute: str
    mode: ModifierMode
    value: float
    trigger: Optional[Trigger] = None
    # Steps between a delay firing and the injected modifier taking effect
    delay_steps: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", coerce_mode(self.mode))
        object.__setattr__(self, "value", float(self.value))
        try:
            valid = self.delay_steps == int(self.delay_steps) and int(self.delay_steps) >= 1
        except (TypeError, ValueError, OverflowError):
            valid = False
        if not valid:
            raise ValueError(f"Modifier '{self.name}': delay_steps must be a positive integer, got {self.delay_steps!r}")
        object.__setattr__(self, "delay_steps", int(self.delay_steps))

    def is_active(self, timestep: "Timestep", simulation: "Simulation") -> bool:
        return self.trigger is None or self.trigger.evaluate(timestep, simulation)

    def apply(self, base: float) -> float:
        if self.mode is ModifierMode.ABSOLUTE:
            return base + self.value
        if self.mode is ModifierMode.RELATIVE:
            return base * self.value
        if self.mode is ModifierMode.SET:
            return self.value
        if self.mode is ModifierMode.DELAY:
            return base
        raise UnknownModifierMode(f"Unknown modifier mode: {self.mode!r}")

    def delayed(self, step: int) -> "Modifier":
        """The absolute modifier a delay schedules when it fires at `step`."""
        return Modifier(
            name=f"{self.name}@{step}",
            attribute=self.attribute,
            mode=ModifierMode.ABSOLUTE,
            value=self.value,
            trigger=Trigger.timestep_range(step + self.delay_steps, math.inf),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "attribute": self.attribute,
            "mode": self.mode.value,
            "value": self.value,
        }
        if self.mode is ModifierMode.DELAY:
            out["delay_steps"] = self.delay_steps
        if self.trigger is not None:
            out["trigger"] = self.trigger.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Modifier":
        """Build a modifier from its plain-dict form; trigger trees are nested dicts."""
        missing = [k for k in ("name", "attribute", "mode", "value") if data.get(k) is None]
        if missing:
            raise ValueError(f"Modifier is missing fields: {', '.join(missing)}")
        raw_trigger = data.get("trigger")
        trigger = Trigger.from_dict(raw_trigger) if raw_trigger is not None else None
        try:
            value = float(data["value"])
        except (TypeError, ValueError):
            raise ValueError(f"Modifier '{data['name']}': value must be numeric, got {data['value']!r}") from None
        return cls(
            name=str(data["name"]),
            attribute=str(data["attribute"]),
            mode=data["mode"],
            value=value,
            trigger=trigger,
            delay_steps=data.get("delay_steps", 1),
        )


__all__ = ["ModifierMode", "Modifier", "coerce_mode"]
