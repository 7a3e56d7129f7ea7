"""SE(3) and se(3) Lie group operations in JAX.

This module implements SE(3) rigid body transforms using homogeneous matrices
and 6D spatial vectors. All functions are pure, JIT-able, and operate on JAX
arrays.

Spatial vectors are ordered angular part first: twists are [wx, wy, wz, vx,
vy, vz] and wrenches are [mx, my, mz, fx, fy, fz]. Jacobians of pose-valued
functions are expressed in the local (right) tangent space, i.e. a Jacobian H
of T(x) satisfies T(x + dx) ~= T(x) @ exp(H @ dx).
"""


import jax
import jax.numpy as jnp

from . import so3

Array = jax.Array


def from_position_and_rotation(p: Array, R: Array) -> Array:
    """
    Construct SE(3) transform from position and rotation.

    Args:
        p: (..., 3) position vector
        R: (..., 3, 3) rotation matrix

    Returns:
        (..., 4, 4) homogeneous transformation matrix
    """
    batch_shape = jnp.broadcast_shapes(p.shape[:-1], R.shape[:-2])
    p = jnp.broadcast_to(p, batch_shape + (3,))
    R = jnp.broadcast_to(R, batch_shape + (3, 3))

    T = jnp.zeros(batch_shape + (4, 4), dtype=p.dtype)
    T = T.at[..., :3, :3].set(R)
    T = T.at[..., :3, 3].set(p)
    T = T.at[..., 3, 3].set(1.0)

    return T


def from_position(p) -> Array:
    """Pure translation by p."""
    p = jnp.asarray(p, dtype=jnp.float64)
    return from_position_and_rotation(p, jnp.eye(3, dtype=p.dtype))


def identity() -> Array:
    return jnp.eye(4, dtype=jnp.float64)


def hat(twist: Array) -> Array:
    """
    Map a twist to its 4x4 matrix form [[skew(w), v], [0, 0]].

    Args:
        twist: (..., 6) twist [w, v]

    Returns:
        (..., 4, 4) element of se(3)
    """
    w, v = twist[..., :3], twist[..., 3:]
    X = jnp.zeros(twist.shape[:-1] + (4, 4), dtype=twist.dtype)
    X = X.at[..., :3, :3].set(so3.skew_symmetric(w))
    X = X.at[..., :3, 3].set(v)
    return X


def exp(twist: Array) -> Array:
    """
    SE(3) exponential map: convert twist to transformation matrix.

    This function is numerically stable, using Taylor series approximations
    for small angles to avoid division by zero.

    Args:
        twist: (..., 6) array of twists [wx, wy, wz, vx, vy, vz].

    Returns:
        (..., 4, 4) array of transformation matrices.
    """
    w, v = twist[..., :3], twist[..., 3:]

    R = so3.exp(w)

    # The translation is J_l(w) @ v, with J_l the SO(3) left Jacobian
    # V = I + A*K + B*K^2, A = (1 - cos)/t^2, B = (t - sin)/t^3
    V = so3.left_jacobian(w)
    t = jnp.einsum("...ij,...j->...i", V, v)

    return from_position_and_rotation(t, R)


def exp_with_jacobian(axis: Array, q):
    """
    Exponential of a scaled screw axis, exp(axis * q), and its Jacobian.

    Since exp(S (q + dq)) = exp(S q) exp(S dq), the right-tangent Jacobian
    with respect to the scalar q is the screw axis itself.

    Args:
        axis: (6,) screw axis
        q: scalar coordinate

    Returns:
        ((4, 4) transform, (6,) Jacobian w.r.t. q)
    """
    return exp(axis * q), axis


def exp_derivative(axis: Array, q) -> Array:
    """
    Matrix derivative d/dq exp(axis * q) = exp(axis * q) @ hat(axis).

    Args:
        axis: (6,) screw axis
        q: scalar coordinate

    Returns:
        (4, 4) derivative of the homogeneous matrix
    """
    return jnp.matmul(exp(axis * q), hat(axis))


def log(T: Array) -> Array:
    """
    SE(3) logarithm map: convert transformation matrix to twist.

    Args:
        T: (..., 4, 4) array of transformation matrices.

    Returns:
        (..., 6) array of twists [wx, wy, wz, vx, vy, vz].
    """
    R, t = T[..., :3, :3], T[..., :3, 3]

    w = so3.log(R)
    angle = jnp.linalg.norm(w, axis=-1, keepdims=True)

    K = so3.skew_symmetric(w)

    is_small_angle = angle < 1e-6
    safe_angle = jnp.where(is_small_angle, 1.0, angle)
    half_angle = safe_angle / 2.0

    # V_inv = I - 0.5*K + C*K^2 with C = (1 - (t/2) cot(t/2)) / t^2 -> 1/12
    cot_half_angle = jnp.cos(half_angle) / jnp.sin(half_angle)
    C = jnp.where(
        is_small_angle,
        1.0 / 12.0 + angle * angle / 720.0,
        (1.0 - half_angle * cot_half_angle) / (safe_angle * safe_angle),
    )

    I = jnp.broadcast_to(jnp.eye(3, dtype=T.dtype), K.shape)
    V_inv = I - 0.5 * K + C[..., None] * jnp.matmul(K, K)

    v = jnp.einsum("...ij,...j->...i", V_inv, t)

    return jnp.concatenate([w, v], axis=-1)


def multiply(T1: Array, T2: Array) -> Array:
    """
    Multiply two SE(3) transformation matrices.

    Args:
        T1: (..., 4, 4) first transformation matrix
        T2: (..., 4, 4) second transformation matrix

    Returns:
        (..., 4, 4) result of T1 @ T2
    """
    return jnp.matmul(T1, T2)


def inverse(T: Array) -> Array:
    """
    Compute inverse of SE(3) transformation matrix.

    Uses the block structure: T^-1 = [[R^T, -R^T @ t], [0, 1]]

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 4, 4) inverse transformation matrix
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    R_inv = jnp.swapaxes(R, -1, -2)
    t_inv = -jnp.einsum("...ij,...j->...i", R_inv, t)

    return from_position_and_rotation(t_inv, R_inv)


def apply(T: Array, points: Array) -> Array:
    """
    Apply SE(3) transformation to points.

    Args:
        T: (..., 4, 4) transformation matrix
        points: (..., 3) or (..., N, 3) points to transform

    Returns:
        (..., 3) or (..., N, 3) transformed points
    """
    ones = jnp.ones_like(points[..., 0:1])
    points_h = jnp.concatenate([points, ones], axis=-1)

    transformed_h = jnp.einsum("...ij,...j->...i", T, points_h)

    return transformed_h[..., :3]


def get_position(T: Array) -> Array:
    """Extract the (..., 3) position from a transformation matrix."""
    return T[..., :3, 3]


def get_rotation(T: Array) -> Array:
    """Extract the (..., 3, 3) rotation from a transformation matrix."""
    return T[..., :3, :3]


def adjoint(T: Array) -> Array:
    """
    Compute the adjoint matrix of SE(3) transformation.

    Ad(aTb) maps a twist expressed in frame b to the same twist expressed in
    frame a. Ad(T1 @ T2) == Ad(T1) @ Ad(T2) and Ad(T^-1) == Ad(T)^-1.
    Wrenches transform with the transpose: F_b = Ad(aTb)^T F_a.

    Args:
        T: (..., 4, 4) transformation matrix

    Returns:
        (..., 6, 6) adjoint matrix [[R, 0], [[t]_x R, R]]
    """
    R = T[..., :3, :3]
    t = T[..., :3, 3]

    t_skew = so3.skew_symmetric(t)
    zeros = jnp.zeros_like(R)

    top = jnp.concatenate([R, zeros], axis=-1)
    bottom = jnp.concatenate([jnp.matmul(t_skew, R), R], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def ad(twist: Array) -> Array:
    """
    Spatial cross product (Lie bracket) operator of a twist.

    ad(V) @ W is the bracket [V, W]; it is the convective term when a twist W
    is carried along by a frame moving with twist V.

    Args:
        twist: (..., 6) twist [w, v]

    Returns:
        (..., 6, 6) matrix [[skew(w), 0], [skew(v), skew(w)]]
    """
    w_skew = so3.skew_symmetric(twist[..., :3])
    v_skew = so3.skew_symmetric(twist[..., 3:])
    zeros = jnp.zeros_like(w_skew)

    top = jnp.concatenate([w_skew, zeros], axis=-1)
    bottom = jnp.concatenate([v_skew, w_skew], axis=-1)

    return jnp.concatenate([top, bottom], axis=-2)


def _q_block(w: Array, v: Array) -> Array:
    """Lower-left block of the SE(3) left Jacobian for twist [w, v]."""
    angle_sq = jnp.sum(w * w, axis=-1)[..., None, None]
    small = angle_sq < so3.SMALL_ANGLE ** 2
    safe_sq = jnp.where(small, 1.0, angle_sq)
    angle = jnp.sqrt(safe_sq)
    sin, cos = jnp.sin(angle), jnp.cos(angle)

    c1 = jnp.where(small, 1.0 / 6.0 - angle_sq / 120.0, (angle - sin) / (safe_sq * angle))
    c2 = jnp.where(small, 1.0 / 24.0 - angle_sq / 720.0, (safe_sq + 2.0 * cos - 2.0) / (2.0 * safe_sq * safe_sq))
    c3 = jnp.where(
        small,
        1.0 / 120.0 - angle_sq / 2520.0,
        (2.0 * angle - 3.0 * sin + angle * cos) / (2.0 * safe_sq * safe_sq * angle),
    )

    W = so3.skew_symmetric(w)
    P = so3.skew_symmetric(v)
    WP = jnp.matmul(W, P)
    PW = jnp.matmul(P, W)
    WPW = jnp.matmul(WP, W)
    WW = jnp.matmul(W, W)

    return (0.5 * P
            + c1 * (WP + PW + WPW)
            + c2 * (jnp.matmul(WW, P) + jnp.matmul(PW, W) - 3.0 * WPW)
            + c3 * (jnp.matmul(WPW, W) + jnp.matmul(WW, PW)))


def left_jacobian(twist: Array) -> Array:
    """
    Left Jacobian of SE(3): exp(twist + dx) ~= exp(J_l dx) @ exp(twist).

    Args:
        twist: (..., 6) twist [w, v]

    Returns:
        (..., 6, 6) Jacobian [[J_w, 0], [Q, J_w]]
    """
    w, v = twist[..., :3], twist[..., 3:]
    J = so3.left_jacobian(w)
    Q = _q_block(w, v)
    zeros = jnp.zeros_like(J)

    top = jnp.concatenate([J, zeros], axis=-1)
    bottom = jnp.concatenate([Q, J], axis=-1)
    return jnp.concatenate([top, bottom], axis=-2)


def right_jacobian(twist: Array) -> Array:
    """
    Right Jacobian of SE(3): exp(twist + dx) ~= exp(twist) @ exp(J_r dx).
    """
    return left_jacobian(-twist)


def right_jacobian_inverse(twist: Array) -> Array:
    """
    Inverse right Jacobian, the derivative of log at exp(twist).

    log(exp(twist) @ exp(dx)) ~= twist + J_r^-1 dx.
    """
    return jnp.linalg.inv(right_jacobian(twist))


def retract(T: Array, delta: Array) -> Array:
    """Perturb T on the right: T @ exp(delta)."""
    return jnp.matmul(T, exp(delta))


def local_coordinates(T1: Array, T2: Array) -> Array:
    """Twist taking T1 to T2 in T1's frame: log(T1^-1 @ T2)."""
    return log(jnp.matmul(inverse(T1), T2))
