"""Core kinematic tree data structures: joints, links and tree nodes."""

from .errors import (
    BorrowError,
    JointError,
    JointTypeError,
    MimicError,
    OutOfLimitError,
    SizeMismatchError,
    TransformNotReadyError,
)
from .joint import Fixed, Joint, JointType, Linear, Mimic, Range, Rotational
from .link import Link
from .node import JointBuilder, Node, connect

__all__ = [
    "BorrowError",
    "Fixed",
    "Joint",
    "JointBuilder",
    "JointError",
    "JointType",
    "JointTypeError",
    "Linear",
    "Link",
    "Mimic",
    "MimicError",
    "Node",
    "OutOfLimitError",
    "Range",
    "Rotational",
    "SizeMismatchError",
    "TransformNotReadyError",
    "connect",
]
