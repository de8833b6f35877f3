"""Tests for Node: tree structure, mimic propagation and world transforms."""

import gc

import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from jax_ktree.chain import Chain
from jax_ktree.core import (
    BorrowError,
    JointBuilder,
    JointTypeError,
    Linear,
    Link,
    Mimic,
    MimicError,
    Node,
    OutOfLimitError,
    Range,
    Rotational,
    TransformNotReadyError,
    connect,
)

Z_AXIS = [0.0, 0.0, 1.0]
Y_AXIS = [0.0, 1.0, 0.0]


def _linear_node(name, limits=Range(0.0, 2.0)):
    return JointBuilder().name(name).joint_type(Linear(Z_AXIS)).limits(limits).into_node()


def test_set_parent_links_both_directions():
    a = JointBuilder().name("a").into_node()
    b = JointBuilder().name("b").into_node()
    a.set_parent(b)

    assert not a.is_root()
    assert b.is_root()
    assert a in b.children
    assert a.parent == b
    assert a.is_end()
    assert not b.is_end()


def test_connect_builds_unbranched_chain():
    n0 = JointBuilder().into_node()
    n1 = JointBuilder().into_node()
    n2 = JointBuilder().into_node()
    connect(n0, n1, n2)

    assert n0.is_root()
    assert not n1.is_root()
    assert not n1.is_end()
    assert n2.is_end()
    assert n0.children == [n1]
    assert n1.children == [n2]


def test_connect_with_single_node_is_noop():
    n0 = JointBuilder().into_node()
    connect(n0)
    connect()
    assert n0.is_root()
    assert n0.is_end()


def test_children_keep_insertion_order():
    root = JointBuilder().name("root").into_node()
    names = ["c0", "c1", "c2"]
    children = [JointBuilder().name(n).into_node() for n in names]
    for child in children:
        child.set_parent(root)
    assert [c.joint.name for c in root.children] == names


def test_equality_is_identity():
    joint_a = JointBuilder().name("same").finalize()
    joint_b = JointBuilder().name("same").finalize()
    a, b = Node(joint_a), Node(joint_b)
    assert Node.from_joint(joint_a) != a
    assert Node.from_joint(joint_a).joint.name == "same"
    assert a != b
    assert a == a

    child = JointBuilder().into_node()
    child.set_parent(a)
    # A handle recovered from the tree refers to the same vertex
    assert child.parent == a
    assert hash(child.parent) == hash(a)
    assert len({a, child.parent, b}) == 2


def test_parent_reference_does_not_keep_parent_alive():
    parent = JointBuilder().name("parent").into_node()
    child = JointBuilder().name("child").into_node()
    child.set_parent(parent)

    del parent
    gc.collect()
    assert child.parent is None
    # A child whose parent is gone behaves as a root
    assert child.is_root()
    np.testing.assert_allclose(child.parent_world_transform().translation, jnp.zeros(3))


def test_set_parent_on_busy_parent_links_nothing():
    parent = JointBuilder().name("parent").into_node()
    child = JointBuilder().name("child").into_node()
    with parent._record.borrow():
        with pytest.raises(BorrowError):
            child.set_parent(parent)
    assert child.is_root()
    assert parent.is_end()

    with parent._record.borrow():
        with pytest.raises(BorrowError):
            child.set_mimic_parent(parent, Mimic(1.0, 0.0))
    assert child.mimic_parent is None
    assert child.mimic is None
    assert parent.mimic_children == []


def test_children_are_owned_by_parent():
    root = JointBuilder().name("root").into_node()
    JointBuilder().name("only_held_by_root").into_node().set_parent(root)
    gc.collect()
    assert [c.joint.name for c in root.children] == ["only_held_by_root"]


def test_iter_ancestors_and_descendants():
    root = JointBuilder().name("root").into_node()
    a = JointBuilder().name("a").into_node()
    b = JointBuilder().name("b").into_node()
    a1 = JointBuilder().name("a1").into_node()
    a.set_parent(root)
    b.set_parent(root)
    a1.set_parent(a)

    assert [n.joint.name for n in a1.iter_ancestors()] == ["a1", "a", "root"]
    assert [n.joint.name for n in root.iter_descendants()] == ["root", "a", "a1", "b"]
    assert [n.joint.name for n in b.iter_descendants()] == ["b"]


def test_node_set_position_limits():
    node = _linear_node("slide")
    node.set_position(1.0)
    assert node.joint.position == 1.0
    with pytest.raises(OutOfLimitError):
        node.set_position(-1.0)
    assert node.joint.position == 1.0


def test_node_set_position_fixed():
    node = JointBuilder().into_node()
    with pytest.raises(JointTypeError):
        node.set_position(0.0)


def test_mimic_propagation():
    j0 = _linear_node("j0")
    j1 = _linear_node("j1")
    j1.set_mimic_parent(j0, Mimic(1.5, 0.1))

    assert j0.joint.position == 0.0
    assert j1.joint.position == 0.0
    j0.set_position(1.0)
    assert j0.joint.position == 1.0
    assert j1.joint.position == pytest.approx(1.6)

    assert j1.mimic_parent == j0
    assert j0.mimic_children == [j1]
    assert j1.mimic == Mimic(1.5, 0.1)
    # The mimic relation is not structural
    assert j1.is_root()
    assert j0.is_end()


@settings(max_examples=30, deadline=None)
@given(
    st.floats(min_value=0.0, max_value=2.0),
    st.floats(min_value=-3.0, max_value=3.0),
    st.floats(min_value=-3.0, max_value=3.0),
)
def test_mimic_law_round_trip(p, a, b):
    parent = _linear_node("parent")
    child = _linear_node("child")
    child.set_mimic_parent(parent, Mimic(a, b))

    parent.set_position(p)
    assert child.joint.position == pytest.approx(a * p + b)

    # Driving a mimic child directly is ignored
    child.set_position(0.5)
    assert child.joint.position == pytest.approx(a * p + b)


def test_joint_accessor_is_a_snapshot():
    j0 = _linear_node("j0")
    j1 = _linear_node("j1")
    j1.set_mimic_parent(j0, Mimic(1.5, 0.1))
    j0.set_position(1.0)

    # Writes to the returned joint do not reach the node
    j1.joint.set_position(0.3)
    assert j1.joint.position == pytest.approx(1.6)
    j0.joint.set_position(2.0)
    assert j0.joint.position == 1.0
    assert j1.joint.position == pytest.approx(1.6)


def test_mimic_child_ignores_its_own_limits():
    j0 = _linear_node("j0")
    j1 = _linear_node("j1", limits=Range(0.0, 1.0))
    j1.set_mimic_parent(j0, Mimic(2.0, 0.5))
    j0.set_position(2.0)
    assert j1.joint.position == pytest.approx(4.5)


def test_mimic_failure_on_driver_leaves_children_untouched():
    j0 = _linear_node("j0")
    j1 = _linear_node("j1")
    j1.set_mimic_parent(j0, Mimic(1.0, 0.0))
    with pytest.raises(OutOfLimitError):
        j0.set_position(5.0)
    assert j1.joint.position == 0.0


def test_mimic_is_one_level_deep():
    j0 = _linear_node("j0")
    j1 = _linear_node("j1")
    j2 = _linear_node("j2")
    j1.set_mimic_parent(j0, Mimic(1.0, 0.5))
    j2.set_mimic_parent(j1, Mimic(1.0, 0.5))

    j0.set_position(1.0)
    assert j1.joint.position == pytest.approx(1.5)
    assert j2.joint.position == 0.0


def test_missing_mimic_law_is_reported_with_partial_update():
    j0 = _linear_node("j0")
    j1 = _linear_node("j1")
    j2 = _linear_node("j2")
    j1.set_mimic_parent(j0, Mimic(2.0, 0.0))
    j2.set_mimic_parent(j0, Mimic(1.0, 0.0))
    # Corrupt the second coupling
    j2._record.mimic = None

    with pytest.raises(MimicError) as excinfo:
        j0.set_position(0.5)
    assert excinfo.value.from_name == "j0"
    assert excinfo.value.to_name == "j2"
    assert "j0 -> j2" in str(excinfo.value)
    # Earlier siblings keep their new values
    assert j0.joint.position == 0.5
    assert j1.joint.position == pytest.approx(1.0)


def test_nested_exclusive_access_fails_fast():
    node = _linear_node("busy")
    with node._record.borrow_mut():
        with pytest.raises(BorrowError):
            node.set_position(1.0)
        with pytest.raises(BorrowError):
            node.is_root()
    # Section closed: the node is usable again
    node.set_position(1.0)
    assert node.joint.position == 1.0


def test_world_transform_composition():
    l0 = (
        JointBuilder()
        .name("l0")
        .translation([0.0, 0.0, 0.2])
        .joint_type(Rotational(Y_AXIS))
        .into_node()
    )
    l1 = (
        JointBuilder()
        .name("l1")
        .translation([0.0, 0.0, 1.0])
        .joint_type(Linear(Z_AXIS))
        .into_node()
    )
    l1.set_parent(l0)
    chain = Chain.from_root(l0)
    chain.set_joint_positions([jnp.pi * 0.5, 0.1])

    assert l1.world_transform() is None
    poses = chain.update_transforms()

    translation = l1.world_transform().translation
    assert abs(float(translation[0]) - 1.1) < 1e-4
    assert abs(float(translation[2]) - 0.2) < 1e-4
    np.testing.assert_allclose(poses[1].translation, translation)
    np.testing.assert_allclose(poses[0].translation, l0.world_transform().translation)


def test_parent_world_transform():
    root = JointBuilder().translation([1.0, 0.0, 0.0]).into_node()
    child = JointBuilder().into_node()
    child.set_parent(root)

    np.testing.assert_allclose(root.parent_world_transform().translation, jnp.zeros(3))
    assert child.parent_world_transform() is None
    with pytest.raises(TransformNotReadyError):
        child.update_world_transform()

    root.update_world_transform()
    np.testing.assert_allclose(child.parent_world_transform().translation, jnp.array([1.0, 0.0, 0.0]))


def test_set_offset_through_node():
    node = JointBuilder().into_node()
    node.set_offset(JointBuilder().translation([0.0, 2.0, 0.0]).finalize().offset)
    np.testing.assert_allclose(node.update_world_transform().translation, jnp.array([0.0, 2.0, 0.0]))


def test_child_link_and_display():
    node = JointBuilder().name("elbow").joint_type(Rotational(Y_AXIS)).into_node()
    assert node.child_link is None
    assert str(node) == "elbow [rotational +Y]"

    node.set_child_link(Link("forearm"))
    assert node.child_link == Link("forearm")
    assert str(node) == "elbow [rotational +Y] => /forearm/"

    node.set_child_link(None)
    assert node.child_link is None
