"""Joint PyTree and joint kinds.

A joint connects a parent link and a child link. Its kind (revolute,
prismatic, screw or fixed) only determines the screw axis in the joint frame;
everything else is shared screw-theory math in ``jax_dynamics.kinodynamics``.

Screw axes are computed once, in ``Joint.create``, and expressed in both
links' COM frames:

    c_screw_axis =  Ad(j_T_ccom^-1) @ jS
    p_screw_axis = -Ad(j_T_pcom^-1) @ jS

The parent-side axis is negated so that positive joint motion seen from the
parent is the reverse of the motion seen from the child. Torque directions
and limit senses depend on this convention.
"""

import enum
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import jax.numpy as jnp
from jax import Array
from flax import struct

from ..transforms import se3
from .link import Link


class JointEffortType(enum.Enum):
    ACTUATED = "actuated"
    UNACTUATED = "unactuated"
    FIXED = "fixed"


@dataclass(frozen=True)
class ScalarLimit:
    """Lower/upper bound pair with a safety threshold inside the bounds."""
    lower: float
    upper: float
    threshold: float = 0.0


@dataclass(frozen=True)
class JointParams:
    """Effort mode and limits of a joint.

    A FIXED joint gets no torque limit relation; the other effort types only
    describe the joint to callers.
    """
    effort_type: JointEffortType = JointEffortType.ACTUATED
    angle_limits: ScalarLimit = field(default_factory=lambda: ScalarLimit(-math.pi / 2, math.pi / 2, 1e-9))
    velocity_limits: ScalarLimit = field(default_factory=lambda: ScalarLimit(-1e4, 1e4, 0.0))
    acceleration_limits: ScalarLimit = field(default_factory=lambda: ScalarLimit(-1e4, 1e4, 0.0))
    torque_limits: ScalarLimit = field(default_factory=lambda: ScalarLimit(-1e4, 1e4, 0.0))


def _as_axis(axis) -> Tuple[float, float, float]:
    axis = tuple(float(a) for a in axis)
    if len(axis) != 3:
        raise ValueError(f"axis must have 3 components, got {len(axis)}")
    return axis


@dataclass(frozen=True)
class Revolute:
    """Rotation about `axis` (unit vector in the joint frame)."""
    axis: Tuple[float, float, float]

    def __post_init__(self):
        object.__setattr__(self, "axis", _as_axis(self.axis))


@dataclass(frozen=True)
class Prismatic:
    """Translation along `axis` (unit vector in the joint frame)."""
    axis: Tuple[float, float, float]

    def __post_init__(self):
        object.__setattr__(self, "axis", _as_axis(self.axis))


@dataclass(frozen=True)
class Screw:
    """Rotation about `axis` coupled with translation of `pitch` per turn."""
    axis: Tuple[float, float, float]
    pitch: float

    def __post_init__(self):
        object.__setattr__(self, "axis", _as_axis(self.axis))
        object.__setattr__(self, "pitch", float(self.pitch))


@dataclass(frozen=True)
class Fixed:
    """Rigid attachment; the joint coordinate has no effect."""


JointKind = Union[Revolute, Prismatic, Screw, Fixed]


def joint_screw_axis(kind: JointKind) -> Array:
    """Screw axis [w, v] of a joint kind, expressed in the joint frame."""
    zeros = jnp.zeros(3, dtype=jnp.float64)
    if isinstance(kind, Revolute):
        return jnp.concatenate([jnp.asarray(kind.axis), zeros])
    if isinstance(kind, Prismatic):
        return jnp.concatenate([zeros, jnp.asarray(kind.axis)])
    if isinstance(kind, Screw):
        axis = jnp.asarray(kind.axis)
        return jnp.concatenate([axis, axis * kind.pitch / (2 * math.pi)])
    if isinstance(kind, Fixed):
        return jnp.zeros(6, dtype=jnp.float64)
    raise TypeError(f"Unknown joint kind: {type(kind).__name__}")


@struct.dataclass
class Joint:
    """Immutable PyTree representation of a joint between two links.

    Links are referenced by id; the robot's link table owns them.

    Attributes:
        name: Joint name. Static field.
        id: Joint id. Static field.
        kind: Joint kind holding the motion axis. Static field.
        parent_id: Id of the parent link. Static field.
        child_id: Id of the child link. Static field.
        params: Effort type and limits. Static field.
        w_T_j: (4, 4) joint frame in the world at rest.
        j_T_pcom: (4, 4) parent COM frame in the joint frame.
        j_T_ccom: (4, 4) child COM frame in the joint frame.
        p_M_c_rest: (4, 4) child COM in parent COM frame at zero coordinate.
        p_screw_axis: (6,) screw axis in the parent COM frame.
        c_screw_axis: (6,) screw axis in the child COM frame.
    """
    name: str = struct.field(pytree_node=False)
    id: int = struct.field(pytree_node=False)
    kind: JointKind = struct.field(pytree_node=False)
    parent_id: int = struct.field(pytree_node=False)
    child_id: int = struct.field(pytree_node=False)
    params: JointParams = struct.field(pytree_node=False)
    w_T_j: Array
    j_T_pcom: Array
    j_T_ccom: Array
    p_M_c_rest: Array
    p_screw_axis: Array
    c_screw_axis: Array

    @classmethod
    def create(
        cls,
        name: str,
        id: int,
        kind: JointKind,
        w_T_j: Array,
        parent: Link,
        child: Link,
        params: Optional[JointParams] = None,
    ) -> "Joint":
        """Build a joint from its rest pose in the world and its two links."""
        if parent.id == child.id:
            raise ValueError(f"Joint '{name}' connects link {parent.id} to itself")
        w_T_j = jnp.asarray(w_T_j, dtype=jnp.float64)
        j_screw_axis = joint_screw_axis(kind)

        j_T_w = se3.inverse(w_T_j)
        j_T_pcom = se3.multiply(j_T_w, parent.w_T_com)
        j_T_ccom = se3.multiply(j_T_w, child.w_T_com)

        return cls(
            name=name,
            id=id,
            kind=kind,
            parent_id=parent.id,
            child_id=child.id,
            params=JointParams() if params is None else params,
            w_T_j=w_T_j,
            j_T_pcom=j_T_pcom,
            j_T_ccom=j_T_ccom,
            p_M_c_rest=se3.multiply(se3.inverse(j_T_pcom), j_T_ccom),
            p_screw_axis=-se3.adjoint(se3.inverse(j_T_pcom)) @ j_screw_axis,
            c_screw_axis=se3.adjoint(se3.inverse(j_T_ccom)) @ j_screw_axis,
        )

    @property
    def link_ids(self) -> Tuple[int, int]:
        return (self.parent_id, self.child_id)

    def is_child(self, link_id: int) -> bool:
        return link_id == self.child_id

    def is_parent(self, link_id: int) -> bool:
        return link_id == self.parent_id

    def other_link_id(self, link_id: int) -> int:
        return self.parent_id if link_id == self.child_id else self.child_id

    def screw_axis(self, link_id: int) -> Array:
        """Screw axis expressed in the COM frame of `link_id`."""
        return self.c_screw_axis if link_id == self.child_id else self.p_screw_axis

    def with_params(self, params: JointParams) -> "Joint":
        return self.replace(params=params)
