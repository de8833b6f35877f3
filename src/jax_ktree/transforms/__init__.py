"""
Rigid-transform primitives used by the kinematic tree.

- rotation: unit quaternion helpers
- isometry: the Isometry3 rigid transform (translation + rotation)
"""

from . import rotation
from .isometry import Isometry3

__all__ = [
    "rotation",
    "Isometry3",
]
