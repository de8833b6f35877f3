"""Chain: walks a kinematic tree to set joint positions and compute poses.

The chain snapshots the tree below a root node in depth-first order. That
order is the order of ``joint_positions()`` and of the poses returned by
``update_transforms()``.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence

import jax
import jax.numpy as jnp

from .core import Joint, Link, Node, SizeMismatchError
from .transforms import Isometry3

Array = jax.Array

logger = logging.getLogger(__name__)


class Chain:
    """Kinematic tree rooted at ``root``.

    Example:
        >>> chain = Chain.from_root(l0)
        >>> chain.set_joint_positions([0.5 * jnp.pi, 0.1])
        >>> poses = chain.update_transforms()
    """

    def __init__(self, root: Node):
        self.root = root
        self._nodes: List[Node] = list(root.iter_descendants())
        # Mimic-driven joints are not independent degrees of freedom.
        self._movable_nodes: List[Node] = [
            node for node in self._nodes
            if node.joint.is_movable() and node.mimic_parent is None
        ]

    @classmethod
    def from_root(cls, root: Node) -> "Chain":
        return cls(root)

    # Traversal
    def iter(self) -> Iterator[Node]:
        return iter(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return self.iter()

    def __len__(self) -> int:
        return len(self._nodes)

    def iter_joints(self) -> Iterator[Joint]:
        return (node.joint for node in self._nodes)

    def iter_links(self) -> Iterator[Link]:
        return (node.child_link for node in self._nodes if node.child_link is not None)

    def find(self, joint_name: str) -> Optional[Node]:
        for node in self._nodes:
            if node.joint.name == joint_name:
                return node
        return None

    def find_link(self, link_name: str) -> Optional[Node]:
        for node in self._nodes:
            link = node.child_link
            if link is not None and link.name == link_name:
                return node
        return None

    # Joint positions
    @property
    def dof(self) -> int:
        return len(self._movable_nodes)

    @property
    def movable_nodes(self) -> List[Node]:
        return list(self._movable_nodes)

    def joint_positions(self) -> Array:
        return jnp.array([node.joint.position for node in self._movable_nodes], dtype=jnp.float64)

    def set_joint_positions(self, positions: Sequence[float]) -> None:
        """Set all independent joints in chain order.

        Raises:
            SizeMismatchError: if ``len(positions) != dof``.
            OutOfLimitError: if a position is outside its joint limits.
        """
        self._check_size(positions)
        for node, position in zip(self._movable_nodes, positions):
            node.set_position(float(position))

    def set_joint_positions_unchecked(self, positions: Sequence[float]) -> None:
        self._check_size(positions)
        for node, position in zip(self._movable_nodes, positions):
            node.set_position_unchecked(float(position))

    def _check_size(self, positions: Sequence[float]) -> None:
        if len(positions) != self.dof:
            raise SizeMismatchError(len(positions), self.dof)

    # Transforms
    def update_transforms(self) -> List[Isometry3]:
        """Recompute and cache the world transform of every node, top-down."""
        poses = [node.update_world_transform() for node in self._nodes]
        logger.debug("updated %d world transforms", len(poses))
        return poses

    def link_poses(self) -> Dict[str, Array]:
        """Map attached link names to their 4x4 world poses.

        Call ``update_transforms()`` first; links whose node has no cached
        transform are skipped.
        """
        poses = {}
        for node in self._nodes:
            link = node.child_link
            world = node.world_transform()
            if link is not None and world is not None:
                poses[link.name] = world.to_matrix()
        return poses

    def __str__(self) -> str:
        root_depth = self._depth(self.root)
        lines = []
        for node in self._nodes:
            lines.append("    " * (self._depth(node) - root_depth) + str(node))
        return "\n".join(lines)

    @staticmethod
    def _depth(node: Node) -> int:
        return sum(1 for _ in node.iter_ancestors()) - 1
