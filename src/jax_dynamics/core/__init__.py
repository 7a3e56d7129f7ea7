"""Core data structures for JAX Dynamics.

Links, joints and the robot container are immutable PyTrees. Links are owned
by the robot and referenced by integer id everywhere else.
"""

from .joint import (
    Fixed,
    Joint,
    JointEffortType,
    JointKind,
    JointParams,
    Prismatic,
    Revolute,
    ScalarLimit,
    Screw,
    joint_screw_axis,
)
from .link import Link
from .robot_model import Robot

__all__ = [
    "Fixed",
    "Joint",
    "JointEffortType",
    "JointKind",
    "JointParams",
    "Link",
    "Prismatic",
    "Revolute",
    "Robot",
    "ScalarLimit",
    "Screw",
    "joint_screw_axis",
]
