"""Node: a vertex of the kinematic tree.

A node owns one ``Joint``, its children and its mimic children. Parent and
mimic-parent links are weak references, so a subtree lives exactly as long
as the handles that reach it from above (or from the caller).

Several ``Node`` handles may point at the same vertex record. Every operation
opens a short access section on the record; an exclusive section refuses to
open while any other section on the same record is active and raises
``BorrowError`` instead.
"""

from __future__ import annotations

import copy
import logging
import weakref
from contextlib import contextmanager
from typing import Iterator, List, Optional

from jax_ktree.core.errors import BorrowError, MimicError, TransformNotReadyError
from jax_ktree.core.joint import Fixed, Joint, JointType, Mimic, Range
from jax_ktree.core.link import Link
from jax_ktree.transforms import Isometry3

logger = logging.getLogger(__name__)


class _NodeRecord:
    """Mutable state shared by all handles of one vertex."""

    __slots__ = (
        "parent",
        "children",
        "joint",
        "mimic_parent",
        "mimic_children",
        "mimic",
        "child_link",
        "_shared",
        "_exclusive",
        "__weakref__",
    )

    def __init__(self, joint: Joint):
        self.parent: Optional[weakref.ref] = None
        self.children: List[Node] = []
        self.joint = joint
        self.mimic_parent: Optional[weakref.ref] = None
        self.mimic_children: List[Node] = []
        self.mimic: Optional[Mimic] = None
        self.child_link: Optional[Link] = None
        self._shared = 0
        self._exclusive = False

    @contextmanager
    def borrow(self) -> Iterator["_NodeRecord"]:
        if self._exclusive:
            raise BorrowError(
                f"node '{self.joint.name}' is already borrowed for mutation"
            )
        self._shared += 1
        try:
            yield self
        finally:
            self._shared -= 1

    @contextmanager
    def borrow_mut(self) -> Iterator["_NodeRecord"]:
        if self._exclusive or self._shared:
            raise BorrowError(f"node '{self.joint.name}' is already borrowed")
        self._exclusive = True
        try:
            yield self
        finally:
            self._exclusive = False


def _deref(ref: Optional[weakref.ref]) -> Optional[_NodeRecord]:
    """Record behind a weak reference, or ``None`` if unset or collected."""
    if ref is None:
        return None
    return ref()


def _upgrade(ref: Optional[weakref.ref]) -> Optional["Node"]:
    record = _deref(ref)
    if record is None:
        return None
    return Node._from_record(record)


class Node:
    """Handle to a vertex of the kinematic tree.

    Two handles compare equal iff they refer to the same vertex.

    Example:
        >>> l0 = JointBuilder().name("base").into_node()
        >>> l1 = JointBuilder().name("arm").into_node()
        >>> l1.set_parent(l0)
        >>> l0.is_root(), l1.is_root()
        (True, False)
    """

    __slots__ = ("_record",)

    def __init__(self, joint: Joint):
        self._record = _NodeRecord(joint)

    @classmethod
    def from_joint(cls, joint: Joint) -> "Node":
        return cls(joint)

    @classmethod
    def _from_record(cls, record: _NodeRecord) -> "Node":
        node = cls.__new__(cls)
        node._record = record
        return node

    # Accessors
    @property
    def joint(self) -> Joint:
        """Snapshot of the joint.

        Changes go through ``set_position``, ``set_position_unchecked`` and
        ``set_offset``; writing to the snapshot leaves the node untouched.
        """
        with self._record.borrow() as node:
            return copy.copy(node.joint)

    @property
    def parent(self) -> Optional["Node"]:
        with self._record.borrow() as node:
            return _upgrade(node.parent)

    @property
    def children(self) -> List["Node"]:
        with self._record.borrow() as node:
            return list(node.children)

    @property
    def mimic_parent(self) -> Optional["Node"]:
        with self._record.borrow() as node:
            return _upgrade(node.mimic_parent)

    @property
    def mimic_children(self) -> List["Node"]:
        with self._record.borrow() as node:
            return list(node.mimic_children)

    @property
    def mimic(self) -> Optional[Mimic]:
        with self._record.borrow() as node:
            return node.mimic

    @property
    def child_link(self) -> Optional[Link]:
        with self._record.borrow() as node:
            return node.child_link

    def set_child_link(self, link: Optional[Link]) -> None:
        with self._record.borrow_mut() as node:
            node.child_link = link

    # Tree structure
    def set_parent(self, parent: "Node") -> None:
        """Link ``self`` below ``parent``.

        The weak back-reference and the owning entry in ``parent.children``
        are written inside one section on both records, so neither is written
        if either record is busy. No cycle check is performed.
        """
        with parent._record.borrow_mut() as parent_node, self._record.borrow_mut() as node:
            node.parent = weakref.ref(parent._record)
            parent_node.children.append(self)
        logger.debug("set parent of %s to %s", self, parent)

    def is_root(self) -> bool:
        """True if no parent is set or the parent has been collected."""
        with self._record.borrow() as node:
            return _deref(node.parent) is None

    def is_end(self) -> bool:
        with self._record.borrow() as node:
            return not node.children

    def iter_ancestors(self) -> Iterator["Node"]:
        """Walk from this node up to its root, this node included."""
        node: Optional[Node] = self
        while node is not None:
            yield node
            node = node.parent

    def iter_descendants(self) -> Iterator["Node"]:
        """Depth-first pre-order walk, this node included."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    # Mimic relationship
    def set_mimic_parent(self, parent: "Node", mimic: Mimic) -> None:
        """Make this joint follow ``parent`` through ``mimic``."""
        with parent._record.borrow_mut() as parent_node, self._record.borrow_mut() as node:
            node.mimic_parent = weakref.ref(parent._record)
            node.mimic = mimic
            parent_node.mimic_children.append(self)
        logger.debug("%s mimics %s with %s", self, parent, mimic)

    # Joint state
    def set_offset(self, offset: Isometry3) -> None:
        with self._record.borrow_mut() as node:
            node.joint.set_offset(offset)

    def set_position(self, position: float) -> None:
        """Set the joint position and update the mimic children.

        A node driven by a mimic parent ignores the call. Mimic children are
        updated one level deep and without checking their own limits. If a
        mimic child has no law, ``MimicError`` is raised and the children
        before it keep their new positions.

        Raises:
            JointTypeError: if the joint is fixed.
            OutOfLimitError: if ``position`` is outside the joint limits.
            MimicError: if a mimic child carries no mimic law.

        Example:
            >>> axis = [0.0, 0.0, 1.0]
            >>> j0 = JointBuilder().joint_type(Linear(axis)).limits(Range(0.0, 2.0)).into_node()
            >>> j1 = JointBuilder().joint_type(Linear(axis)).limits(Range(0.0, 2.0)).into_node()
            >>> j1.set_mimic_parent(j0, Mimic(1.5, 0.1))
            >>> j0.set_position(1.0)
            >>> j1.joint.position
            1.6
        """
        with self._record.borrow_mut() as node:
            if _deref(node.mimic_parent) is not None:
                return
            node.joint.set_position(position)
            position = node.joint.position
            from_name = node.joint.name
            mimic_children = list(node.mimic_children)

        for child in mimic_children:
            with child._record.borrow_mut() as child_node:
                mimic = child_node.mimic
                if mimic is not None:
                    child_node.joint.set_position_unchecked(mimic.mimic_position(position))
            if mimic is None:
                to_name = child.joint.name
                raise MimicError(
                    from_name,
                    to_name,
                    f"set_position for {from_name} -> {to_name} failed. "
                    f"Mimic instance not found. child = {child!r}",
                )
            logger.debug("mimic %s -> %s: %s", from_name, child, child.joint.position)

    def set_position_unchecked(self, position: float) -> None:
        with self._record.borrow_mut() as node:
            node.joint.set_position_unchecked(position)

    # Transforms
    def parent_world_transform(self) -> Optional[Isometry3]:
        """World transform of the parent, identity for a root.

        ``None`` if the parent has not been visited by the update pass yet.
        """
        with self._record.borrow() as node:
            parent_record = _deref(node.parent)
        if parent_record is None:
            return Isometry3.identity()
        with parent_record.borrow() as parent_node:
            return parent_node.joint.world_transform()

    def world_transform(self) -> Optional[Isometry3]:
        """Cached world transform; ``None`` until the update pass reaches it."""
        with self._record.borrow() as node:
            return node.joint.world_transform()

    def update_world_transform(self) -> Isometry3:
        """Compose the parent pose with this joint and cache the result."""
        parent_world = self.parent_world_transform()
        if parent_world is None:
            raise TransformNotReadyError(
                f"world transform of the parent of {self} is not computed"
            )
        with self._record.borrow_mut() as node:
            world = parent_world @ node.joint.local_transform()
            node.joint.set_world_transform(world)
        return world

    # Protocols
    def __eq__(self, other) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self._record is other._record

    def __hash__(self) -> int:
        return id(self._record)

    def __str__(self) -> str:
        with self._record.borrow() as node:
            text = str(node.joint)
            if node.child_link is not None:
                text += f" => /{node.child_link.name}/"
        return text

    def __repr__(self) -> str:
        return f"<Node {self}>"


class JointBuilder:
    """Fluent builder for ``Joint`` and ``Node``.

    Example:
        >>> joint = (
        ...     JointBuilder()
        ...     .name("link_pitch")
        ...     .translation([0.0, 0.1, 0.0])
        ...     .joint_type(Rotational([0.0, 1.0, 0.0]))
        ...     .finalize()
        ... )
    """

    def __init__(self):
        self._name = ""
        self._joint_type: JointType = Fixed()
        self._limits: Optional[Range] = None
        self._offset = Isometry3.identity()

    def name(self, name: str) -> "JointBuilder":
        self._name = name
        return self

    def joint_type(self, joint_type: JointType) -> "JointBuilder":
        self._joint_type = joint_type
        return self

    def limits(self, limits: Optional[Range]) -> "JointBuilder":
        self._limits = limits
        return self

    def offset(self, offset: Isometry3) -> "JointBuilder":
        self._offset = offset
        return self

    def translation(self, translation) -> "JointBuilder":
        """Replace only the translation part of the offset."""
        self._offset = Isometry3.from_parts(translation, self._offset.rotation)
        return self

    def rotation(self, rotation) -> "JointBuilder":
        """Replace only the rotation part (a (w, x, y, z) quaternion) of the offset."""
        self._offset = Isometry3.from_parts(self._offset.translation, rotation)
        return self

    def finalize(self) -> Joint:
        return Joint(self._name, self._joint_type, limits=self._limits, offset=self._offset)

    def into_node(self) -> Node:
        return Node(self.finalize())


def connect(*nodes: Node) -> None:
    """Chain ``nodes`` so that each one becomes the parent of the next.

    ``connect(l0, l1, l2)`` is the same as ``l1.set_parent(l0)`` followed by
    ``l2.set_parent(l1)``.
    """
    for parent, child in zip(nodes, nodes[1:]):
        child.set_parent(parent)
