"""SO(3) and so(3) Lie group operations in JAX.

This module implements the rotational part of the spatial algebra using
rotation matrices and axis-angle vectors. All functions are pure, JIT-able,
and operate on JAX arrays.
"""

import jax
import jax.numpy as jnp

Array = jax.Array

# Below this angle the trigonometric coefficients switch to Taylor series.
SMALL_ANGLE = 1e-6


def skew_symmetric(v: Array) -> Array:
    """
    Convert 3D vector to skew-symmetric matrix.

    Args:
        v: (..., 3) vector

    Returns:
        (..., 3, 3) skew-symmetric matrix such that skew(v) @ u == cross(v, u)
    """
    zeros = jnp.zeros(v.shape[:-1], dtype=v.dtype)

    return jnp.stack([
        jnp.stack([zeros, -v[..., 2], v[..., 1]], axis=-1),
        jnp.stack([v[..., 2], zeros, -v[..., 0]], axis=-1),
        jnp.stack([-v[..., 1], v[..., 0], zeros], axis=-1)
    ], axis=-2)


def _angle(log_r: Array):
    """Return (angle, angle with small values replaced by 1, small mask)."""
    angle_sq = jnp.sum(log_r * log_r, axis=-1)[..., None, None]
    small = angle_sq < SMALL_ANGLE ** 2
    # Keep the untaken branch of jnp.where finite so gradients stay clean
    safe_sq = jnp.where(small, 1.0, angle_sq)
    return jnp.sqrt(safe_sq), angle_sq, small


def exp(log_r: Array) -> Array:
    """
    SO(3) exponential map: convert axis-angle vector to rotation matrix.

    Implements Rodrigues' formula R = I + a*K + b*K^2 with K = skew(log_r),
    a = sin(t)/t and b = (1 - cos(t))/t^2.

    Args:
        log_r: (..., 3) array of axis-angle vectors

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    angle, angle_sq, small = _angle(log_r)

    a = jnp.where(small, 1.0 - angle_sq / 6.0, jnp.sin(angle) / angle)
    b = jnp.where(small, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / (angle * angle))

    K = skew_symmetric(log_r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=log_r.dtype), K.shape)

    return I + a * K + b * jnp.matmul(K, K)


def log(R: Array) -> Array:
    """
    SO(3) logarithm map: convert rotation matrix to axis-angle vector.

    This is the inverse of exp().

    Args:
        R: (..., 3, 3) array of rotation matrices

    Returns:
        (..., 3) array of axis-angle vectors
    """
    trace = jnp.trace(R, axis1=-2, axis2=-1)

    cos_angle = jnp.clip((trace - 1.0) / 2.0, -1.0, 1.0)
    angle = jnp.arccos(cos_angle)

    small_angle = angle < 1e-8
    near_pi = jnp.abs(angle - jnp.pi) < 1e-6

    # axis * 2 sin(angle), read off the skew-symmetric part
    skew_part = jnp.stack([
        R[..., 2, 1] - R[..., 1, 2],
        R[..., 0, 2] - R[..., 2, 0],
        R[..., 1, 0] - R[..., 0, 1]
    ], axis=-1)

    sin_angle = jnp.where(small_angle, 1.0, jnp.sin(angle))
    scale = jnp.where(small_angle, 0.5 + angle ** 2 / 12.0, angle / (2.0 * sin_angle))
    log_general = scale[..., None] * skew_part

    # Near pi the skew part vanishes; use the column of (R + I)/2 with the
    # largest diagonal entry as the axis.
    B = (R + jnp.eye(3, dtype=R.dtype)) / 2.0
    diag_vals = jnp.diagonal(B, axis1=-2, axis2=-1)
    max_idx = jnp.argmax(diag_vals, axis=-1)
    axis_pi = jnp.take_along_axis(B, max_idx[..., None, None], axis=-1)[..., 0]
    axis_pi = axis_pi / jnp.linalg.norm(axis_pi, axis=-1, keepdims=True)
    # Resolve the sign of the axis with the (small) skew part
    sign = jnp.where(jnp.sum(axis_pi * skew_part, axis=-1, keepdims=True) < 0, -1.0, 1.0)
    log_pi = sign * angle[..., None] * axis_pi

    return jnp.where(near_pi[..., None], log_pi, log_general)


def left_jacobian(log_r: Array) -> Array:
    """
    Left Jacobian of SO(3): J = I + b*K + c*K^2.

    With b = (1 - cos(t))/t^2 and c = (t - sin(t))/t^3. The right Jacobian is
    left_jacobian(-log_r).

    Args:
        log_r: (..., 3) axis-angle vector

    Returns:
        (..., 3, 3) Jacobian
    """
    angle, angle_sq, small = _angle(log_r)
    b = jnp.where(small, 0.5 - angle_sq / 24.0, (1.0 - jnp.cos(angle)) / angle_sq)
    c = jnp.where(small, 1.0 / 6.0 - angle_sq / 120.0, (angle - jnp.sin(angle)) / (angle_sq * angle))

    K = skew_symmetric(log_r)
    I = jnp.broadcast_to(jnp.eye(3, dtype=log_r.dtype), K.shape)
    return I + b * K + c * jnp.matmul(K, K)


def multiply(R1: Array, R2: Array) -> Array:
    """Multiply two rotation matrices, R1 @ R2."""
    return jnp.matmul(R1, R2)


def inverse(R: Array) -> Array:
    """
    Compute inverse of rotation matrix.

    For rotation matrices, the inverse is simply the transpose.
    """
    return jnp.swapaxes(R, -1, -2)


def apply(R: Array, v: Array) -> Array:
    """
    Apply rotation to vector(s).

    Args:
        R: (..., 3, 3) rotation matrix
        v: (..., 3) or (..., N, 3) vector(s) to rotate

    Returns:
        (..., 3) or (..., N, 3) rotated vector(s)
    """
    if v.ndim == R.ndim - 1:
        return jnp.einsum('...ij,...j->...i', R, v)
    else:
        return jnp.einsum('...ij,...nj->...ni', R, v)


def from_quaternion(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)

    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)
