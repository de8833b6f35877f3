"""URDF loader that builds a kinematic tree of ``Node`` objects.

Each URDF joint becomes one node whose child link is the joint's child link.
A fixed node named ``"root"`` carries the root link, so the returned chain
has exactly one root.
"""

import logging
from typing import Dict, List, Optional

from lxml import etree

from jax_ktree.chain import Chain
from jax_ktree.core import (
    Fixed,
    JointBuilder,
    Linear,
    Link,
    Mimic,
    Node,
    Range,
    Rotational,
)
from jax_ktree.transforms import Isometry3

logger = logging.getLogger(__name__)

ROOT_JOINT_NAME = "root"


class URDFError(ValueError):
    """The robot description cannot be turned into a kinematic tree."""


def load_urdf(urdf_path: str) -> Chain:
    """Load a URDF file and build a Chain.

    Args:
        urdf_path: Path to the URDF file to load.

    Returns:
        Chain: the kinematic tree rooted at a fixed ``"root"`` node.
    """
    tree = etree.parse(urdf_path)
    return _build_chain(tree.getroot())


def load_urdf_string(urdf_text: str) -> Chain:
    """Same as ``load_urdf`` for a URDF document held in memory."""
    if isinstance(urdf_text, str):
        urdf_text = urdf_text.encode("utf-8")
    return _build_chain(etree.fromstring(urdf_text))


def _build_chain(robot) -> Chain:
    link_names = [link.get("name") for link in robot.findall("link")]
    joint_elems = robot.findall("joint")

    # First pass: one node per joint, indexed by name and by parent link
    nodes: Dict[str, Node] = {}
    node_by_child_link: Dict[str, Node] = {}
    children_of_link: Dict[str, List[Node]] = {}

    for joint_elem in joint_elems:
        name = joint_elem.get("name")
        parent_link = _required_attr(joint_elem, "parent", "link", name)
        child_link = _required_attr(joint_elem, "child", "link", name)

        node = _joint_builder(joint_elem).into_node()
        node.set_child_link(Link(child_link))

        nodes[name] = node
        node_by_child_link[child_link] = node
        children_of_link.setdefault(parent_link, []).append(node)

    # Find root link (not a child of any joint)
    root_links = [name for name in link_names if name not in node_by_child_link]
    if len(root_links) != 1:
        raise URDFError(f"Expected exactly one root link, found: {root_links}")
    root_link = root_links[0]

    root = JointBuilder().name(ROOT_JOINT_NAME).into_node()
    root.set_child_link(Link(root_link))
    node_by_child_link[root_link] = root

    # Second pass: wire parents in document order
    for parent_link, children in children_of_link.items():
        parent = node_by_child_link.get(parent_link)
        if parent is None:
            raise URDFError(f"Unknown parent link '{parent_link}'")
        for child in children:
            child.set_parent(parent)

    # Third pass: mimic couplings
    for joint_elem in joint_elems:
        mimic_elem = joint_elem.find("mimic")
        if mimic_elem is None:
            continue
        name = joint_elem.get("name")
        target = mimic_elem.get("joint")
        if target not in nodes:
            raise URDFError(f"Joint '{name}' mimics unknown joint '{target}'")
        mimic = Mimic(
            float(mimic_elem.get("multiplier", "1.0")),
            float(mimic_elem.get("offset", "0.0")),
        )
        nodes[name].set_mimic_parent(nodes[target], mimic)

    logger.debug("loaded %d joints with root link '%s'", len(nodes), root_link)
    return Chain.from_root(root)


def _joint_builder(joint_elem) -> JointBuilder:
    name = joint_elem.get("name")
    joint_type = joint_elem.get("type")
    builder = JointBuilder().name(name).offset(_parse_origin(joint_elem.find("origin")))

    if joint_type in ("revolute", "continuous", "prismatic"):
        axis_elem = joint_elem.find("axis")
        axis = _parse_floats(axis_elem.get("xyz", "0 0 1")) if axis_elem is not None else [0.0, 0.0, 1.0]
        joint_type_cls = Linear if joint_type == "prismatic" else Rotational
        try:
            builder.joint_type(joint_type_cls(axis))
        except ValueError as e:
            raise URDFError(f"Joint '{name}' has an invalid axis {axis}: {e}") from e
        if joint_type != "continuous":
            builder.limits(_parse_limits(joint_elem.find("limit")))
    else:
        if joint_type != "fixed":
            logger.warning("joint '%s' has unsupported type '%s', loaded as fixed", name, joint_type)
        builder.joint_type(Fixed())
    return builder


def _parse_origin(origin_elem) -> Isometry3:
    if origin_elem is None:
        return Isometry3.identity()
    xyz = _parse_floats(origin_elem.get("xyz", "0 0 0"))
    rpy = _parse_floats(origin_elem.get("rpy", "0 0 0"))
    return Isometry3.from_xyz_rpy(xyz, rpy)


def _parse_limits(limit_elem) -> Optional[Range]:
    if limit_elem is None:
        return None
    lower = limit_elem.get("lower")
    upper = limit_elem.get("upper")
    if lower is None and upper is None:
        return None
    return Range(float(lower or 0.0), float(upper or 0.0))


def _parse_floats(text: str) -> List[float]:
    return [float(x) for x in text.split()]


def _required_attr(joint_elem, tag: str, attr: str, joint_name: str) -> str:
    elem = joint_elem.find(tag)
    if elem is None or elem.get(attr) is None:
        raise URDFError(f"Joint '{joint_name}' has no <{tag} {attr}=...>")
    return elem.get(attr)
