"""Relation builders: the residuals one joint contributes at one time step.

Every builder is a pure function of (joint, time index, settings) and, for
the linear variants, a store of known values. Relations at time t only
involve variables at time t.

Variable conventions, for a joint j between parent link p and child link c:

    pose_key(l, t)        world pose of link l's COM frame
    twist_key(l, t)       twist of link l in its COM frame
    twist_accel_key(l, t) twist acceleration of link l in its COM frame
    wrench_key(l, j, t)   wrench joint j exerts on link l, in l's COM frame
    joint_*_key(j, t)     joint coordinate and its derivatives
    torque_key(j, t)      joint torque
"""

import logging
from typing import List, Mapping, Optional, Union

import jax.numpy as jnp
from jax import Array

from .. import kinodynamics
from ..core.joint import Joint, JointEffortType, ScalarLimit
from ..errors import MissingVariableError
from ..keys import (
    joint_accel_key,
    joint_angle_key,
    joint_vel_key,
    pose_key,
    torque_key,
    twist_accel_key,
    twist_key,
    wrench_key,
)
from ..linear.gaussian import LinearRelation
from ..linear.noise import NoiseModel
from ..transforms import se3
from ..values import Values, joint_vel, pose, torque, twist
from .residual import Residual
from .settings import OptimizerSettings

logger = logging.getLogger(__name__)

_I6 = jnp.eye(6, dtype=jnp.float64)


def _settings(settings: Optional[OptimizerSettings]) -> OptimizerSettings:
    return OptimizerSettings() if settings is None else settings


def planar_jacobian(planar_axis) -> Array:
    """Rows of a wrench [m, f] that must vanish for motion in a plane.

    For a plane with normal along a coordinate axis these are the two moments
    about the in-plane axes and the force along the normal.

    Args:
        planar_axis: Unit coordinate axis normal to the plane of motion.

    Returns:
        (3, 6) selection matrix

    Raises:
        ValueError: if planar_axis is not a coordinate axis.
    """
    axis = tuple(float(a) for a in jnp.asarray(planar_axis).reshape(-1))
    rows = {
        (1.0, 0.0, 0.0): (1, 2, 3),
        (0.0, 1.0, 0.0): (0, 2, 4),
        (0.0, 0.0, 1.0): (0, 1, 5),
    }
    if axis not in rows:
        raise ValueError(f"planar_axis must be a coordinate axis, got {axis}")
    return _I6[jnp.array(rows[axis])]


# Nonlinear relations

def pose_relations(joint: Joint, t: int = 0, settings: Optional[OptimizerSettings] = None) -> List[Residual]:
    """Loop closure: wTc == wTp @ pMc(q).

    The error is log(wTc^-1 @ wTp @ pMc(q)).
    """
    settings = _settings(settings)
    p, c = joint.parent_id, joint.child_id

    def function(wTp, wTc, q):
        pMc, pMc_H_q = kinodynamics.transform_to_with_jacobians(joint, p, q)
        E = se3.multiply(se3.inverse(wTc), se3.multiply(wTp, pMc))
        e = se3.log(E)
        J_inv = se3.right_jacobian_inverse(e)
        return e, [
            J_inv @ se3.adjoint(se3.inverse(pMc)),
            -J_inv @ se3.adjoint(se3.inverse(E)),
            J_inv @ pMc_H_q,
        ]

    keys = (pose_key(p, t), pose_key(c, t), joint_angle_key(joint.id, t))
    return [Residual("pose", keys, settings.noise("p", 6), function)]


def velocity_relations(joint: Joint, t: int = 0, settings: Optional[OptimizerSettings] = None) -> List[Residual]:
    """Twist composition: V_c == Ad(cMp) V_p + cS q_dot."""
    settings = _settings(settings)
    p, c = joint.parent_id, joint.child_id

    def function(V_p, V_c, q, q_dot):
        r = kinodynamics.twist_to_with_jacobians(joint, c, q, q_dot, V_p)
        return V_c - r.twist, [-r.H_other_twist, _I6, -r.H_q, -r.H_q_dot]

    keys = (twist_key(p, t), twist_key(c, t), joint_angle_key(joint.id, t), joint_vel_key(joint.id, t))
    return [Residual("twist", keys, settings.noise("v", 6), function)]


def acceleration_relations(joint: Joint, t: int = 0, settings: Optional[OptimizerSettings] = None) -> List[Residual]:
    """Twist acceleration composition, a hard kinematic identity:

    A_c == Ad(cMp) A_p + ad(V_c) (cS q_dot) + cS q_ddot
    """
    p, c = joint.parent_id, joint.child_id

    def function(A_p, A_c, V_c, q, q_dot, q_ddot):
        r = kinodynamics.twist_accel_to_with_jacobians(joint, c, q, q_dot, q_ddot, V_c, A_p)
        return A_c - r.twist_accel, [
            -r.H_other_twist_accel, _I6, -r.H_this_twist, -r.H_q, -r.H_q_dot, -r.H_q_ddot]

    keys = (
        twist_accel_key(p, t),
        twist_accel_key(c, t),
        twist_key(c, t),
        joint_angle_key(joint.id, t),
        joint_vel_key(joint.id, t),
        joint_accel_key(joint.id, t),
    )
    return [Residual("twist_accel", keys, NoiseModel.constrained(6), function)]


def dynamics_relations(
    joint: Joint,
    t: int = 0,
    settings: Optional[OptimizerSettings] = None,
    planar_axis: Optional[Array] = None,
) -> List[Residual]:
    """Torque extraction, wrench equivalence and, optionally, planar wrench.

    torque:      cS^T F_c - tau == 0
    equivalence: F_p + Ad(cMp(q))^T F_c == 0
    planar:      J F_c == 0, J = planar_jacobian(planar_axis)
    """
    settings = _settings(settings)
    p, c, j = joint.parent_id, joint.child_id, joint.id

    def torque_function(F_c, tau):
        r = kinodynamics.wrench_to_torque_with_jacobians(joint, c, F_c)
        return r.torque - tau, [r.H_wrench, -jnp.ones((1, 1))]

    def equivalence_function(F_p, F_c, q):
        Ad = se3.adjoint(kinodynamics.transform_to(joint, c, q))
        dAd_dq = kinodynamics.adjoint_jacobian_wrt_angle(joint, c, q)
        return F_p + Ad.T @ F_c, [_I6, Ad.T, dAd_dq.T @ F_c]

    relations = [
        Residual("torque", (wrench_key(c, j, t), torque_key(j, t)), settings.noise("t", 1), torque_function),
        Residual(
            "wrench_equivalence",
            (wrench_key(p, j, t), wrench_key(c, j, t), joint_angle_key(j, t)),
            settings.noise("f", 6),
            equivalence_function,
        ),
    ]

    if planar_axis is not None:
        J = planar_jacobian(planar_axis)

        def planar_function(F_c):
            return J @ F_c, [J]

        relations.append(
            Residual("wrench_planar", (wrench_key(c, j, t),), settings.noise("planar", 3), planar_function))

    return relations


def _limit_function(limit: ScalarLimit):
    lower = limit.lower + limit.threshold
    upper = limit.upper - limit.threshold

    def function(x):
        below = x < lower
        above = x > upper
        e = jnp.where(below, lower - x, jnp.where(above, x - upper, 0.0))
        H = jnp.where(below, -1.0, jnp.where(above, 1.0, 0.0))
        return e.reshape(1), [H.reshape(1, 1)]

    return function


def limit_relations(joint: Joint, t: int = 0, settings: Optional[OptimizerSettings] = None) -> List[Residual]:
    """Hinge penalties keeping q, q_dot, q_ddot and tau inside their limits.

    Each residual is zero inside [lower + threshold, upper - threshold] and
    grows linearly outside, so its squared norm is a quadratic penalty.
    FIXED joints get no torque limit.
    """
    settings = _settings(settings)
    params = joint.params
    noise = settings.noise("jl", 1)
    relations = [
        Residual("angle_limit", (joint_angle_key(joint.id, t),), noise, _limit_function(params.angle_limits)),
        Residual("velocity_limit", (joint_vel_key(joint.id, t),), noise, _limit_function(params.velocity_limits)),
        Residual("acceleration_limit", (joint_accel_key(joint.id, t),), noise,
                 _limit_function(params.acceleration_limits)),
    ]
    if params.effort_type is not JointEffortType.FIXED:
        relations.append(
            Residual("torque_limit", (torque_key(joint.id, t),), noise, _limit_function(params.torque_limits)))
    return relations


def joint_relations(
    joint: Joint,
    t: int = 0,
    settings: Optional[OptimizerSettings] = None,
    planar_axis: Optional[Array] = None,
) -> List[Residual]:
    """All relations of one joint at time t."""
    relations = (
        pose_relations(joint, t, settings)
        + velocity_relations(joint, t, settings)
        + acceleration_relations(joint, t, settings)
        + dynamics_relations(joint, t, settings, planar_axis)
        + limit_relations(joint, t, settings)
    )
    logger.debug("Emitted %d relations for joint '%s' at t=%d", len(relations), joint.name, t)
    return relations


# Linear relations over known values

def linear_fd_priors(
    joint: Joint,
    t: int,
    torques: Union[Values, Mapping[str, float]],
) -> List[LinearRelation]:
    """Hard prior fixing the joint torque for forward dynamics.

    Args:
        torques: A Values store holding torque_key(joint.id, t), or a mapping
            from joint name to torque.

    Raises:
        MissingVariableError: if the torque is not provided.
    """
    if isinstance(torques, Values):
        tau = torque(torques, joint.id, t)
    elif joint.name in torques:
        tau = torques[joint.name]
    else:
        raise MissingVariableError(joint.name)
    return [LinearRelation.create([(torque_key(joint.id, t), jnp.eye(1))], [tau], NoiseModel.constrained(1))]


def linear_acceleration_relations(
    joint: Joint,
    t: int,
    known_values: Values,
) -> List[LinearRelation]:
    """Twist acceleration composition with poses, twists and velocities known.

    A_c - Ad(cMp) A_p - cS q_ddot = ad(V_c) cS q_dot

    Raises:
        MissingVariableError: if a pose, the child twist or the joint
            velocity is missing from known_values.
    """
    p, c = joint.parent_id, joint.child_id
    c_M_p = se3.multiply(se3.inverse(pose(known_values, c, t)), pose(known_values, p, t))
    V_c = twist(known_values, c, t)
    S = joint.c_screw_axis
    q_dot = joint_vel(known_values, joint.id, t)

    rhs = se3.ad(V_c) @ S * q_dot
    return [
        LinearRelation.create(
            [
                (twist_accel_key(c, t), _I6),
                (twist_accel_key(p, t), -se3.adjoint(c_M_p)),
                (joint_accel_key(joint.id, t), -S[:, None]),
            ],
            rhs,
            NoiseModel.constrained(6),
        )
    ]


def linear_dynamics_relations(
    joint: Joint,
    t: int,
    known_values: Values,
    planar_axis: Optional[Array] = None,
) -> List[LinearRelation]:
    """Torque, wrench equivalence and planar relations with poses known.

    cS^T F_c - tau = 0
    F_p + Ad(cMp)^T F_c = 0
    J F_c = 0                       (only with planar_axis)
    """
    p, c, j = joint.parent_id, joint.child_id, joint.id
    c_M_p = se3.multiply(se3.inverse(pose(known_values, c, t)), pose(known_values, p, t))
    S = joint.c_screw_axis

    relations = [
        LinearRelation.create(
            [(wrench_key(c, j, t), S[None, :]), (torque_key(j, t), -jnp.eye(1))],
            jnp.zeros(1),
            NoiseModel.constrained(1),
        ),
        LinearRelation.create(
            [(wrench_key(p, j, t), _I6), (wrench_key(c, j, t), se3.adjoint(c_M_p).T)],
            jnp.zeros(6),
            NoiseModel.constrained(6),
        ),
    ]
    if planar_axis is not None:
        relations.append(
            LinearRelation.create(
                [(wrench_key(c, j, t), planar_jacobian(planar_axis))], jnp.zeros(3), NoiseModel.constrained(3)))
    return relations
