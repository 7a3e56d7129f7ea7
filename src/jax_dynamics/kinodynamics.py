"""Per-joint kinematics and dynamics with closed-form Jacobians.

For a joint with coordinate q connecting a parent link p and a child link c:

    pMc(q) = pMc_rest @ exp(cS q)                  (child COM in parent COM)
    V_this = Ad(T) @ V_other + S q_dot
    A_this = Ad(T) @ A_other + ad(V_this) @ (S q_dot) + S q_ddot
    tau    = S^T @ F

where T is the pose of the other link in this link's COM frame and S is the
screw axis expressed in this link's COM frame. All functions are pure and
JIT-able; `link_id` must be one of the joint's two links (not checked).

Every quantity has two call forms: a value-only function and a
`*_with_jacobians` function returning a NamedTuple that also holds the
derivatives with respect to every input. Pose Jacobians use the right
tangent convention of ``jax_dynamics.transforms.se3``.

Scalar joint inputs accept a float, a 0-d array, None (meaning zero) or a
``Values`` store, from which the joint's own key at time `t` is read.
"""

from typing import NamedTuple, Optional, Union

import jax.numpy as jnp
from jax import Array

from .core.joint import Joint
from .keys import joint_accel_key, joint_angle_key, joint_vel_key
from .transforms import se3
from .values import Values

ScalarInput = Union[None, float, Array, Values]


class TransformResult(NamedTuple):
    pose: Array        # (4, 4)
    H_q: Array         # (6,)


class TwistResult(NamedTuple):
    twist: Array           # (6,)
    H_q: Array             # (6,)
    H_q_dot: Array         # (6,)
    H_other_twist: Array   # (6, 6)


class TwistAccelResult(NamedTuple):
    twist_accel: Array           # (6,)
    H_q: Array                   # (6,)
    H_q_dot: Array               # (6,)
    H_q_ddot: Array              # (6,)
    H_this_twist: Array          # (6, 6)
    H_other_twist_accel: Array   # (6, 6)


class TorqueResult(NamedTuple):
    torque: Array      # ()
    H_wrench: Array    # (6,), the single row of the 1x6 Jacobian


def _resolve(value: ScalarInput, key_fn, joint: Joint, t: int) -> Array:
    if value is None:
        return jnp.zeros((), dtype=jnp.float64)
    if isinstance(value, Values):
        return jnp.asarray(value.at(key_fn(joint.id, t))).reshape(())
    return jnp.asarray(value, dtype=jnp.float64).reshape(())


def _vector(value: Optional[Array]) -> Array:
    if value is None:
        return jnp.zeros(6, dtype=jnp.float64)
    return jnp.asarray(value, dtype=jnp.float64)


def _p_M_c(joint: Joint, q: Array) -> Array:
    return se3.multiply(joint.p_M_c_rest, se3.exp(joint.c_screw_axis * q))


# Transforms

def transform_to(joint: Joint, link_id: int, q: ScalarInput = None, t: int = 0) -> Array:
    """Pose of the other link's COM frame expressed in `link_id`'s COM frame.

    For the parent this is pMc(q) = pMc_rest @ exp(cS q); for the child it is
    the inverse, cMp(q).

    Raises:
        MissingVariableError: if `q` is a Values store without the joint angle.
    """
    q = _resolve(q, joint_angle_key, joint, t)
    p_M_c = _p_M_c(joint, q)
    return se3.inverse(p_M_c) if joint.is_child(link_id) else p_M_c


def transform_to_with_jacobians(joint: Joint, link_id: int, q: ScalarInput = None, t: int = 0) -> TransformResult:
    """transform_to and its Jacobian w.r.t. q.

    pMc(q + dq) = pMc(q) exp(cS dq) and cMp(q + dq) = cMp(q) exp(pS dq),
    so the Jacobian is the screw axis on the *other* side.
    """
    pose = transform_to(joint, link_id, q, t)
    return TransformResult(pose, joint.screw_axis(joint.other_link_id(link_id)))


def transform_from(joint: Joint, link_id: int, q: ScalarInput = None, t: int = 0) -> Array:
    """Pose of `link_id`'s COM frame expressed in the other link's COM frame."""
    return transform_to(joint, joint.other_link_id(link_id), q, t)


def transform_from_with_jacobians(joint: Joint, link_id: int, q: ScalarInput = None, t: int = 0) -> TransformResult:
    return transform_to_with_jacobians(joint, joint.other_link_id(link_id), q, t)


def adjoint_jacobian_wrt_angle(joint: Joint, link_id: int, q: ScalarInput = None, t: int = 0) -> Array:
    """Derivative of Ad(transform_to(link_id, q)) with respect to q.

    d/dq Ad(T(q)) = -ad(S) @ Ad(T(q)), with S the screw axis of `link_id`.

    Returns:
        (6, 6) matrix
    """
    T = transform_to(joint, link_id, q, t)
    return -se3.ad(joint.screw_axis(link_id)) @ se3.adjoint(T)


# Twists

def twist_to(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    other_twist: Optional[Array] = None,
    t: int = 0,
) -> Array:
    """Twist of `link_id` given the other link's twist and the joint motion."""
    q = _resolve(q, joint_angle_key, joint, t)
    q_dot = _resolve(q_dot, joint_vel_key, joint, t)
    T = transform_to(joint, link_id, q)
    return se3.adjoint(T) @ _vector(other_twist) + joint.screw_axis(link_id) * q_dot


def twist_to_with_jacobians(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    other_twist: Optional[Array] = None,
    t: int = 0,
) -> TwistResult:
    q = _resolve(q, joint_angle_key, joint, t)
    q_dot = _resolve(q_dot, joint_vel_key, joint, t)
    other_twist = _vector(other_twist)
    S = joint.screw_axis(link_id)

    Ad = se3.adjoint(transform_to(joint, link_id, q))
    # Differentiating Ad(T(q)) itself, not just the exponential
    dAd_dq = -se3.ad(S) @ Ad

    return TwistResult(
        twist=Ad @ other_twist + S * q_dot,
        H_q=dAd_dq @ other_twist,
        H_q_dot=S,
        H_other_twist=Ad,
    )


def twist_from(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    this_twist: Optional[Array] = None,
    t: int = 0,
) -> Array:
    """Twist of the other link given `link_id`'s twist."""
    return twist_to(joint, joint.other_link_id(link_id), q, q_dot, this_twist, t)


def twist_from_with_jacobians(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    this_twist: Optional[Array] = None,
    t: int = 0,
) -> TwistResult:
    return twist_to_with_jacobians(joint, joint.other_link_id(link_id), q, q_dot, this_twist, t)


# Twist accelerations

def twist_accel_to(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    q_ddot: ScalarInput = None,
    this_twist: Optional[Array] = None,
    other_twist_accel: Optional[Array] = None,
    t: int = 0,
) -> Array:
    """Twist acceleration of `link_id`.

    The convective term ad(V_this) @ (S q_dot) uses the twist of the link
    receiving the acceleration.
    """
    return twist_accel_to_with_jacobians(
        joint, link_id, q, q_dot, q_ddot, this_twist, other_twist_accel, t).twist_accel


def twist_accel_to_with_jacobians(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    q_ddot: ScalarInput = None,
    this_twist: Optional[Array] = None,
    other_twist_accel: Optional[Array] = None,
    t: int = 0,
) -> TwistAccelResult:
    q = _resolve(q, joint_angle_key, joint, t)
    q_dot = _resolve(q_dot, joint_vel_key, joint, t)
    q_ddot = _resolve(q_ddot, joint_accel_key, joint, t)
    this_twist = _vector(this_twist)
    other_twist_accel = _vector(other_twist_accel)
    S = joint.screw_axis(link_id)

    Ad = se3.adjoint(transform_to(joint, link_id, q))
    dAd_dq = -se3.ad(S) @ Ad
    joint_twist = S * q_dot

    twist_accel = Ad @ other_twist_accel + se3.ad(this_twist) @ joint_twist + S * q_ddot

    return TwistAccelResult(
        twist_accel=twist_accel,
        H_q=dAd_dq @ other_twist_accel,
        H_q_dot=se3.ad(this_twist) @ S,
        H_q_ddot=S,
        # ad(V) W = -ad(W) V
        H_this_twist=-se3.ad(joint_twist),
        H_other_twist_accel=Ad,
    )


def twist_accel_from(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    q_ddot: ScalarInput = None,
    other_twist: Optional[Array] = None,
    this_twist_accel: Optional[Array] = None,
    t: int = 0,
) -> Array:
    """Twist acceleration of the other link given `link_id`'s acceleration.

    `other_twist` is the twist of the link whose acceleration is returned.
    """
    return twist_accel_to(
        joint, joint.other_link_id(link_id), q, q_dot, q_ddot, other_twist, this_twist_accel, t)


def twist_accel_from_with_jacobians(
    joint: Joint,
    link_id: int,
    q: ScalarInput = None,
    q_dot: ScalarInput = None,
    q_ddot: ScalarInput = None,
    other_twist: Optional[Array] = None,
    this_twist_accel: Optional[Array] = None,
    t: int = 0,
) -> TwistAccelResult:
    return twist_accel_to_with_jacobians(
        joint, joint.other_link_id(link_id), q, q_dot, q_ddot, other_twist, this_twist_accel, t)


# Torques

def wrench_to_torque(joint: Joint, link_id: int, wrench: Optional[Array] = None) -> Array:
    """Project the wrench on `link_id` onto the joint's screw axis."""
    return jnp.dot(joint.screw_axis(link_id), _vector(wrench))


def wrench_to_torque_with_jacobians(joint: Joint, link_id: int, wrench: Optional[Array] = None) -> TorqueResult:
    S = joint.screw_axis(link_id)
    return TorqueResult(jnp.dot(S, _vector(wrench)), S)
