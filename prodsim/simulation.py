from __future__ import annotations

"""
Simulation: timesteps, modifier registry and the run loop.

A run has two phases:
1) build (constructor): create timesteps 0..N-1 and let the block
   definitions declare every attribute. No values are computed.
2) evaluate (`run`): finalize every attribute of step 0, then step 1, and so
   on. Values only reference the same step or earlier ones.

The modifier registry maps an attribute id to its modifiers in registration
order, which is also application order. `delay` modifiers add entries to the
registry while a run is in progress; `run()` starts from the statically
registered modifiers again, so repeated runs give identical results.
"""

import difflib
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from .block_factory import BlockDefinition, build_timestep_blocks
from .errors import SimulationError, UnknownAttribute
from .inputs import ProductionInputs
from .modifier import Modifier, ModifierMode
from .timestep import Timestep


log = logging.getLogger(__name__)


class Simulation:
    def __init__(
        self,
        simulation_id: str,
        inputs: ProductionInputs,
        *,
        modifiers: Iterable[Modifier] = (),
        block_definitions: Optional[Sequence[BlockDefinition]] = None,
    ) -> None:
        if block_definitions is None:
            from .production_model import DEFAULT_BLOCK_DEFINITIONS

            block_definitions = DEFAULT_BLOCK_DEFINITIONS

        self.id = simulation_id
        self.inputs = inputs
        self.block_definitions = tuple(block_definitions)
        self.timesteps: List[Timestep] = []
        self.has_run = False

        # Registered before or between runs
        self._registered: Dict[str, List[Modifier]] = {}
        # Effective registry for the current run (registered + injected)
        self.modifiers: Dict[str, List[Modifier]] = {}
        self._fired_delays: Set[int] = set()

        self._build()
        for modifier in modifiers:
            self.add_modifier(modifier)

    def __repr__(self) -> str:
        return f"Simulation({self.id!r}, timesteps={len(self.timesteps)}, has_run={self.has_run})"

    # ---- Build phase ----

    def _build(self) -> None:
        for step in range(self.inputs.number_of_timesteps):
            timestep = Timestep(step, self)
            build_timestep_blocks(timestep, self, self.block_definitions)
            self.timesteps.append(timestep)
        log.info(
            "Simulation %s built: %d timesteps, %d blocks and %d attributes per step",
            self.id,
            len(self.timesteps),
            len(self.timesteps[0].blocks) if self.timesteps else 0,
            len(self.timesteps[0].attributes) if self.timesteps else 0,
        )

    @property
    def attribute_ids(self) -> List[str]:
        """Every attribute id declared per step (the structure is the same in each step)."""
        if not self.timesteps:
            return []
        return list(self.timesteps[0].attributes)

    @property
    def block_ids(self) -> List[str]:
        if not self.timesteps:
            return []
        return list(self.timesteps[0].blocks)

    # ---- Modifiers ----

    def add_modifier(self, modifier: Modifier) -> None:
        """Register a modifier; it applies after those already registered for its attribute."""
        if self.timesteps and modifier.attribute not in self.timesteps[0].attributes:
            suggestions = difflib.get_close_matches(modifier.attribute, self.attribute_ids, n=3)
            raise UnknownAttribute(
                f"Modifier '{modifier.name}' targets unknown attribute '{modifier.attribute}'"
                + (f" (suggest: {', '.join(suggestions)})" if suggestions else "")
            )
        self._registered.setdefault(modifier.attribute, []).append(modifier)
        self.modifiers.setdefault(modifier.attribute, []).append(modifier)
        log.debug("Simulation %s: registered modifier %s on %s", self.id, modifier.name, modifier.attribute)

    def apply_modifier(self, base: float, attribute_id: str, timestep: Timestep) -> float:
        """Pass `base` through every active modifier registered for `attribute_id`."""
        value = float(base)
        modifiers = self.modifiers.get(attribute_id)
        if not modifiers:
            return value
        # Injected modifiers are appended while iterating; they start at a later step anyway
        for modifier in list(modifiers):
            if not modifier.is_active(timestep, self):
                continue
            if modifier.mode is ModifierMode.DELAY:
                self._fire_delay(modifier, timestep)
                continue
            value = modifier.apply(value)
            log.debug(
                "Step %d: modifier %s (%s %s) -> %s = %r",
                timestep.step,
                modifier.name,
                modifier.mode.value,
                modifier.value,
                attribute_id,
                value,
            )
        return value

    def _fire_delay(self, modifier: Modifier, timestep: Timestep) -> None:
        """Schedule the absolute modifier of a delay, once per run."""
        key = id(modifier)
        if key in self._fired_delays:
            return
        self._fired_delays.add(key)
        injected = modifier.delayed(timestep.step)
        self.modifiers.setdefault(injected.attribute, []).append(injected)
        log.info(
            "Step %d: delay modifier %s scheduled %+g on %s from step %d",
            timestep.step,
            modifier.name,
            injected.value,
            injected.attribute,
            timestep.step + modifier.delay_steps,
        )

    # ---- Evaluation phase ----

    def reset(self) -> None:
        """Forget computed values and injected modifiers."""
        self.modifiers = {attr: list(mods) for attr, mods in self._registered.items()}
        self._fired_delays.clear()
        for timestep in self.timesteps:
            timestep.reset()
        self.has_run = False

    def run(self) -> "Simulation":
        self.reset()
        log.info("Simulation %s: running %d timesteps", self.id, len(self.timesteps))
        try:
            for timestep in self.timesteps:
                timestep.evaluate()
        except Exception:
            # All or nothing: steps finished before the failure are not readable
            self.reset()
            raise
        self.has_run = True
        log.info("Simulation %s completed", self.id)
        return self

    # ---- Results (read path) ----

    def get_value(self, step: int, attribute_id: str) -> float:
        return self.timesteps[step].get_value(attribute_id)

    def series(self, attribute_id: str) -> List[float]:
        """Values of one attribute across all steps."""
        return [timestep.get_value(attribute_id) for timestep in self.timesteps]

    def results(self) -> List[Dict[str, Any]]:
        """Nested results: one entry per step with block -> attribute -> value."""
        if not self.has_run:
            raise SimulationError(f"Simulation {self.id} has not been run")
        return [
            {
                "step": timestep.step,
                "blocks": {block.id: block.values() for block in timestep},
            }
            for timestep in self.timesteps
        ]

    def modifier_summary(self) -> List[Dict[str, Any]]:
        """Plain-dict form of the effective registry, injected modifiers included."""
        return [modifier.to_dict() for mods in self.modifiers.values() for modifier in mods]
