"""
JAX KTree: a kinematic tree of jointed rigid bodies.

Joints are wrapped in nodes, nodes are linked into a tree (plus an optional
mimic coupling between joints), and the chain composes their transforms into
world poses.
"""

import jax
jax.config.update("jax_enable_x64", True)

from . import transforms
from . import core
from . import io
from .chain import Chain
from .core import (
    Fixed,
    Joint,
    JointBuilder,
    Linear,
    Link,
    Mimic,
    Node,
    Range,
    Rotational,
    connect,
)
from .transforms import Isometry3

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "Chain",
    "Fixed",
    "Isometry3",
    "Joint",
    "JointBuilder",
    "Linear",
    "Link",
    "Mimic",
    "Node",
    "Range",
    "Rotational",
    "connect",
]
