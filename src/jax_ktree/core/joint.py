"""Joint: a single degree of freedom (or a fixed connector) between two links.

This module also defines the small value types a joint is configured with:
the joint type variants, inclusive position limits and the mimic law.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import jax
import jax.numpy as jnp

from jax_ktree.core.errors import JointTypeError, OutOfLimitError
from jax_ktree.transforms import Isometry3

Array = jax.Array

_AXIS_NAMES = {
    (1.0, 0.0, 0.0): "+X", (-1.0, 0.0, 0.0): "-X",
    (0.0, 1.0, 0.0): "+Y", (0.0, -1.0, 0.0): "-Y",
    (0.0, 0.0, 1.0): "+Z", (0.0, 0.0, -1.0): "-Z",
}


def _unit_axis(axis) -> Array:
    axis = jnp.asarray(axis, dtype=jnp.float64)
    if axis.shape != (3,):
        raise ValueError(f"axis must have shape (3,), got {axis.shape}")
    norm = jnp.linalg.norm(axis)
    if float(norm) == 0.0:
        raise ValueError("axis must be non-zero")
    return axis / norm


def _axis_str(axis: Array) -> str:
    key = tuple(round(float(v), 9) + 0.0 for v in axis)
    if key in _AXIS_NAMES:
        return _AXIS_NAMES[key]
    return "[" + ", ".join(f"{v:.3g}" for v in key) + "]"


@dataclass(frozen=True)
class Fixed:
    """Rigid connector, no degree of freedom."""

    def __str__(self) -> str:
        return "[fixed]"


@dataclass(frozen=True, eq=False)
class Rotational:
    """Revolute joint; position is an angle in radians about ``axis``."""
    axis: Array

    def __post_init__(self):
        object.__setattr__(self, "axis", _unit_axis(self.axis))

    def __str__(self) -> str:
        return f"[rotational {_axis_str(self.axis)}]"


@dataclass(frozen=True, eq=False)
class Linear:
    """Prismatic joint; position is a displacement along ``axis``."""
    axis: Array

    def __post_init__(self):
        object.__setattr__(self, "axis", _unit_axis(self.axis))

    def __str__(self) -> str:
        return f"[linear {_axis_str(self.axis)}]"


JointType = Union[Fixed, Rotational, Linear]


@dataclass(frozen=True)
class Range:
    """Inclusive position limits ``[min, max]``."""
    min: float
    max: float

    def __post_init__(self):
        object.__setattr__(self, "min", float(self.min))
        object.__setattr__(self, "max", float(self.max))

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def __contains__(self, value: float) -> bool:
        return self.contains(value)

    def clamp(self, value: float) -> float:
        return min(max(value, self.min), self.max)


@dataclass(frozen=True)
class Mimic:
    """Affine coupling ``child = multiplier * parent + origin``."""
    multiplier: float = 1.0
    origin: float = 0.0

    def mimic_position(self, from_position: float) -> float:
        return self.multiplier * from_position + self.origin


class Joint:
    """Joint with a type, an offset transform and a scalar position.

    Type and limits are fixed at construction. The offset and the position
    can be changed afterwards. ``world_transform()`` is a cache written by the
    update pass and is ``None`` until then.
    """

    def __init__(
        self,
        name: str,
        joint_type: Optional[JointType] = None,
        limits: Optional[Range] = None,
        offset: Optional[Isometry3] = None,
    ):
        self.name = name
        self._joint_type = joint_type if joint_type is not None else Fixed()
        self._limits = limits
        self._offset = offset if offset is not None else Isometry3.identity()
        self._position = 0.0
        self._world_transform: Optional[Isometry3] = None

    @property
    def joint_type(self) -> JointType:
        return self._joint_type

    @property
    def limits(self) -> Optional[Range]:
        return self._limits

    @property
    def offset(self) -> Isometry3:
        return self._offset

    @property
    def position(self) -> Optional[float]:
        """Current position, or ``None`` for a fixed joint."""
        if isinstance(self._joint_type, Fixed):
            return None
        return self._position

    def is_movable(self) -> bool:
        return not isinstance(self._joint_type, Fixed)

    def set_offset(self, offset: Isometry3) -> None:
        self._offset = offset

    def set_position(self, position: float) -> None:
        """Set the position, checking the joint type and limits.

        Raises:
            JointTypeError: if the joint is fixed.
            OutOfLimitError: if ``position`` is outside ``limits``.
        """
        if not self.is_movable():
            raise JointTypeError(self.name, "Fixed joint has no position")
        position = float(position)
        if self._limits is not None and not self._limits.contains(position):
            raise OutOfLimitError(self.name, position, self._limits)
        self._position = position

    def set_position_unchecked(self, position: float) -> None:
        self._position = float(position)

    def local_transform(self) -> Isometry3:
        """Offset followed by the joint's own motion."""
        joint_type = self._joint_type
        if isinstance(joint_type, Rotational):
            return self._offset @ Isometry3.from_axis_angle(joint_type.axis, self._position)
        if isinstance(joint_type, Linear):
            return self._offset @ Isometry3.from_translation(joint_type.axis * self._position)
        return self._offset

    def world_transform(self) -> Optional[Isometry3]:
        return self._world_transform

    def set_world_transform(self, transform: Optional[Isometry3]) -> None:
        self._world_transform = transform

    def __str__(self) -> str:
        return f"{self.name} {self._joint_type}"

    def __repr__(self) -> str:
        return (
            f"Joint(name={self.name!r}, joint_type={self._joint_type}, "
            f"position={self.position}, limits={self._limits})"
        )
