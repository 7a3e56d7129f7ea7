"""
JAX Dynamics: closed-form joint kinodynamics for factor-graph robotics.

This library computes transforms, twists, twist accelerations and torques
across the joints of articulated mechanisms, together with their exact
Jacobians, and emits them as algebraic relations for a least-squares solver.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import kinodynamics
from . import linear
from . import relations
from . import chain
from .errors import (
    JaxDynamicsError,
    MissingVariableError,
    TopologyError,
    UnderdeterminedSystemError,
)
from .values import Values

__version__ = "0.1.0"
__all__ = [
    "JaxDynamicsError",
    "MissingVariableError",
    "TopologyError",
    "UnderdeterminedSystemError",
    "Values",
    "chain",
    "core",
    "kinodynamics",
    "linear",
    "relations",
    "transforms",
]
