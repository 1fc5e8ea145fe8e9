"""Tests for the quad-tree and the individual forces."""

import random

import pytest

from topocanvas.core.models import Bounds, Edge, Group, Layer, Node
from topocanvas.core.settings import Settings
from topocanvas.physics.forces import ClusterForce, ForceLink, ForceX, ManyBody, RectCollide
from topocanvas.physics.quadtree import QuadTree


def _node(name, x, y, **kw):
    return Node(name=name, x=float(x), y=float(y), **kw)


def test_quadtree_visits_every_item():
    rng = random.Random(3)
    points = [(rng.uniform(-50, 50), rng.uniform(-50, 50)) for _ in range(40)]
    tree = QuadTree(points, lambda p: p[0], lambda p: p[1])

    seen = []
    tree.visit(lambda quad, *_: seen.extend(quad.data) if quad.is_leaf else None)
    assert sorted(seen) == sorted(points)
    assert len(tree) == 40


def test_quadtree_coincident_points_share_a_leaf():
    points = [(1.0, 1.0), (1.0, 1.0), (5.0, 5.0)]
    tree = QuadTree(points, lambda p: p[0], lambda p: p[1])
    leaves = []
    tree.visit_after(lambda quad: leaves.append(len(quad.items)) if quad.is_leaf else None)
    assert sorted(leaves) == [1, 2]


def test_center_force_pulls_toward_target():
    node = _node("a", 100, 0)
    force = ForceX(0.0, 0.1)
    force.initialize([node])
    force(1.0)
    assert node.vx == pytest.approx(-10.0)


def test_link_force_shortens_long_links():
    a, b = _node("a", 0, 0), _node("b", 300, 0)
    force = ForceLink([Edge(a, b)], strength=1.0)
    force.initialize([a, b])
    force(1.0)
    assert a.vx > 0
    assert b.vx < 0


def test_link_strength_callable_is_refreshed():
    a, b = _node("a", 0, 0), _node("b", 300, 0)
    state = {"k": 1.0}
    force = ForceLink([Edge(a, b)], strength=lambda e: state["k"])
    force.initialize([a, b])
    state["k"] = 0.09
    force.refresh()
    assert force._strengths == [0.09]


def test_charge_repels():
    a, b = _node("a", -10, 0), _node("b", 10, 0)
    force = ManyBody(-3000)
    force.initialize([a, b])
    force(1.0)
    assert a.vx < 0
    assert b.vx > 0


def _grouped_layer():
    nodes = [_node("a", 10, 0, group=0), _node("b", 300, 300, group=1)]
    groups = [Group(id=0, name="g0", cx=0.0, cy=0.0), Group(id=1, name="g1", cx=200.0, cy=200.0)]
    return Layer(id="main", nodes=nodes, groups=groups)


def test_cluster_force_pulls_toward_group_centroid():
    layer = _grouped_layer()
    force = ClusterForce(layer, Settings(grouping=True))
    force.initialize(layer.nodes)
    force(1.0)
    a, b = layer.nodes
    assert a.vx == pytest.approx(-2.0)
    assert b.vx == pytest.approx(-20.0)
    assert b.vy == pytest.approx(-20.0)


def test_cluster_force_is_noop_without_grouping():
    layer = _grouped_layer()
    force = ClusterForce(layer, Settings(grouping=False))
    force.initialize(layer.nodes)
    force(1.0)
    assert all(n.vx == 0 and n.vy == 0 for n in layer.nodes)


def _box(gid, x, y, w, h, members):
    g = Group(id=gid, name=f"g{gid}", x=x, y=y, width=w, height=h, nodes=members, index=gid)
    g.bounds = Bounds(x, x + w, y, y + h)
    return g


def test_rect_collide_separates_overlapping_groups():
    left = [_node("a", 50, 50)]
    right = [_node("b", 120, 60)]
    g0 = _box(0, 0, 0, 100, 100, left)
    g1 = _box(1, 60, 10, 100, 100, right)
    force = RectCollide(lambda g: False, padding=10)
    force.initialize([g0, g1])
    force(1.0)
    assert left[0].x < 50
    assert right[0].x > 120


def test_rect_collide_leaves_fixed_groups_in_place():
    left = [_node("a", 50, 50)]
    right = [_node("b", 120, 60)]
    g0 = _box(0, 0, 0, 100, 100, left)
    g1 = _box(1, 60, 10, 100, 100, right)
    force = RectCollide(lambda g: g is g0, padding=10)
    force.initialize([g0, g1])
    force(1.0)
    assert (left[0].x, left[0].y) == (50, 50)
    assert right[0].x > 120


def test_rect_collide_ignores_distant_groups():
    a, b = [_node("a", 0, 0)], [_node("b", 2000, 2000)]
    force = RectCollide(lambda g: False)
    force.initialize([_box(0, 0, 0, 100, 100, a), _box(1, 2000, 2000, 100, 100, b)])
    force(1.0)
    assert (a[0].x, b[0].x) == (0, 2000)
