"""Production economy simulation package.

Exports the evaluation engine (simulation, timesteps, blocks, attributes,
modifiers and triggers) and the naming helpers for convenient imports.
"""

from .naming import *  # re-export naming helpers
from .naming import __all__ as _naming_all

__all__ = list(_naming_all)

from .attribute import Attribute, AttributeState  # noqa: E402
from .block import Block  # noqa: E402
from .block_factory import BlockDefinition  # noqa: E402
from .errors import (  # noqa: E402
    BlockNotFound,
    CyclicDependency,
    DuplicateAttribute,
    SimulationError,
    UnknownAttribute,
    UnknownModifierMode,
    UnresolvedAttribute,
)
from .inputs import ProductionInputs, load_inputs, parse_inputs  # noqa: E402
from .modifier import Modifier, ModifierMode  # noqa: E402
from .simulation import Simulation  # noqa: E402
from .timestep import Timestep  # noqa: E402
from .trigger import ComparisonOperator, LogicalOperator, Trigger  # noqa: E402

__all__ += [
    "Attribute",
    "AttributeState",
    "Block",
    "BlockDefinition",
    "BlockNotFound",
    "CyclicDependency",
    "DuplicateAttribute",
    "SimulationError",
    "UnknownAttribute",
    "UnknownModifierMode",
    "UnresolvedAttribute",
    "ProductionInputs",
    "load_inputs",
    "parse_inputs",
    "Modifier",
    "ModifierMode",
    "Simulation",
    "Timestep",
    "ComparisonOperator",
    "LogicalOperator",
    "Trigger",
]
