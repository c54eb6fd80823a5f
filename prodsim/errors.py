from __future__ import annotations

"""Exception taxonomy for the evaluation engine.

Every error here is fatal to a run: the simulation is a deterministic offline
computation, so a failure is a registration or configuration defect and is
surfaced immediately. The only soft failure in the engine (a trigger whose
referenced attribute cannot be read) is handled inside `prodsim.trigger` and
never escapes as one of these exceptions.
"""


class SimulationError(RuntimeError):
    """Base class for all engine errors."""


class BlockNotFound(SimulationError, KeyError):
    """A block lookup used an unknown id or omitted a required parameter."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable
        return str(self.args[0]) if self.args else ""


class UnknownAttribute(SimulationError, KeyError):
    """An attribute id is not registered in the addressed block."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class DuplicateAttribute(SimulationError):
    """The same attribute id was registered twice in one timestep."""


class UnresolvedAttribute(SimulationError):
    """A value was read before the attribute was calculated in this pass."""


class CyclicDependency(SimulationError):
    """Same-timestep attributes depend on each other in a cycle."""

    def __init__(self, chain: list[str]):
        self.chain = list(chain)
        super().__init__("Cyclic dependency between attributes: " + " -> ".join(self.chain))


class UnknownModifierMode(SimulationError, ValueError):
    """A modifier declares a mode the engine does not implement."""


__all__ = [
    "SimulationError",
    "BlockNotFound",
    "UnknownAttribute",
    "DuplicateAttribute",
    "UnresolvedAttribute",
    "CyclicDependency",
    "UnknownModifierMode",
]
