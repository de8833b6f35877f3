"""Rigid-body transform stored as translation + unit quaternion."""

from __future__ import annotations

from typing import Optional

import jax
import jax.numpy as jnp
from flax import struct

from .rotation import (
    from_axis_angle,
    from_rpy,
    identity_quaternion,
    normalize_quaternions,
    quaternion_conjugate,
    quaternion_multiply,
    quaternion_to_matrix,
    rotate_vector,
)

Array = jax.Array


@struct.dataclass
class Isometry3:
    """Immutable rigid transform: ``p -> rotation * p + translation``.

    Attributes:
        translation: (3,) translation vector.
        rotation: (4,) unit quaternion in (w, x, y, z) order.
    """
    translation: Array
    rotation: Array

    # Constructors
    @classmethod
    def identity(cls) -> "Isometry3":
        return cls(jnp.zeros(3, dtype=jnp.float64), identity_quaternion())

    @classmethod
    def from_parts(cls, translation, rotation: Optional[Array] = None) -> "Isometry3":
        t = jnp.asarray(translation, dtype=jnp.float64)
        if t.shape != (3,):
            raise ValueError(f"translation must have shape (3,), got {t.shape}")
        if rotation is None:
            q = identity_quaternion()
        else:
            q = normalize_quaternions(jnp.asarray(rotation, dtype=jnp.float64))
            if q.shape != (4,):
                raise ValueError(f"rotation must have shape (4,), got {q.shape}")
        return cls(t, q)

    @classmethod
    def from_translation(cls, translation) -> "Isometry3":
        return cls.from_parts(translation)

    @classmethod
    def from_axis_angle(cls, axis, angle) -> "Isometry3":
        return cls(jnp.zeros(3, dtype=jnp.float64), from_axis_angle(axis, angle))

    @classmethod
    def from_xyz_rpy(cls, xyz, rpy) -> "Isometry3":
        roll, pitch, yaw = (float(a) for a in rpy)
        return cls.from_parts(xyz, from_rpy(roll, pitch, yaw))

    # Basic operations
    def compose(self, other: "Isometry3") -> "Isometry3":
        """self ∘ other (apply *other* first, then self)."""
        translation = self.translation + rotate_vector(self.rotation, other.translation)
        rotation = normalize_quaternions(quaternion_multiply(self.rotation, other.rotation))
        return Isometry3(translation, rotation)

    def __matmul__(self, other: "Isometry3") -> "Isometry3":
        return self.compose(other)

    def inverse(self) -> "Isometry3":
        q_inv = quaternion_conjugate(self.rotation)
        return Isometry3(-rotate_vector(q_inv, self.translation), q_inv)

    def transform_point(self, point) -> Array:
        return rotate_vector(self.rotation, jnp.asarray(point, dtype=jnp.float64)) + self.translation

    # Convenience helpers
    def rotation_matrix(self) -> Array:
        return quaternion_to_matrix(self.rotation)

    def to_matrix(self) -> Array:
        """(4, 4) homogeneous matrix."""
        m = jnp.eye(4, dtype=self.translation.dtype)
        m = m.at[:3, :3].set(self.rotation_matrix())
        return m.at[:3, 3].set(self.translation)

    def __str__(self) -> str:
        t = ", ".join(f"{float(v):.4g}" for v in self.translation)
        q = ", ".join(f"{float(v):.4g}" for v in self.rotation)
        return f"Isometry3(t=[{t}], q=[{q}])"
