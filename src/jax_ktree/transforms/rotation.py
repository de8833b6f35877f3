"""Unit quaternion helpers in JAX.

Quaternions are stored as (..., 4) arrays in (w, x, y, z) order.
"""

import jax
import jax.numpy as jnp
from typing import Union

# Type aliases
Array = jax.Array
Scalar = Union[float, Array]


def normalize_quaternions(quaternions: Array) -> Array:
    """Normalize quaternions to unit length."""
    return quaternions / jnp.linalg.norm(quaternions, axis=-1, keepdims=True)


def identity_quaternion(dtype=jnp.float64) -> Array:
    return jnp.array([1.0, 0.0, 0.0, 0.0], dtype=dtype)


def quaternion_multiply(q1: Array, q2: Array) -> Array:
    """
    Hamilton product q1 * q2 (apply q2 first, then q1).

    Args:
        q1: (..., 4) left quaternion
        q2: (..., 4) right quaternion

    Returns:
        (..., 4) product quaternion
    """
    w1, x1, y1, z1 = jnp.moveaxis(q1, -1, 0)
    w2, x2, y2, z2 = jnp.moveaxis(q2, -1, 0)

    return jnp.stack([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ], axis=-1)


def quaternion_conjugate(q: Array) -> Array:
    """Conjugate, which is the inverse for unit quaternions."""
    return q * jnp.array([1.0, -1.0, -1.0, -1.0], dtype=q.dtype)


def from_axis_angle(axis: Array, angle: Scalar) -> Array:
    """
    Build a unit quaternion rotating by ``angle`` radians about ``axis``.

    Args:
        axis: (3,) rotation axis, normalized here
        angle: rotation angle in radians

    Returns:
        (4,) unit quaternion
    """
    axis = jnp.asarray(axis, dtype=jnp.float64)
    axis = axis / jnp.linalg.norm(axis)
    half = 0.5 * jnp.asarray(angle, dtype=axis.dtype)
    return jnp.concatenate([jnp.cos(half)[None], jnp.sin(half) * axis])


def from_rpy(roll: Scalar, pitch: Scalar, yaw: Scalar) -> Array:
    """Roll-pitch-yaw (fixed X, Y, Z axes) to quaternion: q = q_z * q_y * q_x."""
    q_x = from_axis_angle(jnp.array([1.0, 0.0, 0.0]), roll)
    q_y = from_axis_angle(jnp.array([0.0, 1.0, 0.0]), pitch)
    q_z = from_axis_angle(jnp.array([0.0, 0.0, 1.0]), yaw)
    return quaternion_multiply(q_z, quaternion_multiply(q_y, q_x))


def quaternion_to_matrix(quaternions: Array) -> Array:
    """
    Convert quaternions to rotation matrices.

    Args:
        quaternions: (..., 4) array of quaternions in (w, x, y, z) format

    Returns:
        (..., 3, 3) array of rotation matrices
    """
    quaternions = normalize_quaternions(quaternions)
    w, x, y, z = jnp.moveaxis(quaternions, -1, 0)

    xx, yy, zz = x*x, y*y, z*z
    wx, wy, wz = w*x, w*y, w*z
    xy, xz, yz = x*y, x*z, y*z

    return jnp.stack([
        jnp.stack([1 - 2*(yy + zz), 2*(xy - wz), 2*(xz + wy)], axis=-1),
        jnp.stack([2*(xy + wz), 1 - 2*(xx + zz), 2*(yz - wx)], axis=-1),
        jnp.stack([2*(xz - wy), 2*(yz + wx), 1 - 2*(xx + yy)], axis=-1)
    ], axis=-2)


def rotate_vector(q: Array, v: Array) -> Array:
    """Rotate the (..., 3) vector ``v`` by the unit quaternion ``q``."""
    w = q[..., :1]
    u = q[..., 1:]
    t = 2.0 * jnp.cross(u, v)
    return v + w * t + jnp.cross(u, t)
