"""
JAX-based spatial algebra for rigid-body kinematics.

This module provides JIT-compilable implementations of:
- SO(3) rotations (so3 module)
- SE(3) rigid body transforms, the Adjoint map and the spatial cross
  product (se3 module)

All functions are pure, stateless, and designed for high-performance computation.
"""

# Core Lie group modules
from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
