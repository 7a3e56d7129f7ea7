"""Relation builders emitting residuals for an external solver."""

from .builders import (
    acceleration_relations,
    dynamics_relations,
    joint_relations,
    limit_relations,
    linear_acceleration_relations,
    linear_dynamics_relations,
    linear_fd_priors,
    planar_jacobian,
    pose_relations,
    velocity_relations,
)
from .residual import Residual
from .settings import OptimizerSettings

__all__ = [
    "OptimizerSettings",
    "Residual",
    "acceleration_relations",
    "dynamics_relations",
    "joint_relations",
    "limit_relations",
    "linear_acceleration_relations",
    "linear_dynamics_relations",
    "linear_fd_priors",
    "planar_jacobian",
    "pose_relations",
    "velocity_relations",
]
