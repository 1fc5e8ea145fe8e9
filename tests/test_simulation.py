"""Tests for the simulation loop, the shared clock and the simulation engine."""

import asyncio
import math

import pytest

from topocanvas.core.models import Node
from topocanvas.core.settings import Settings
from topocanvas.groups import GroupManager
from topocanvas.physics.engine import SimulationEngine
from topocanvas.physics.forces import ForceLink, ForceX, ManyBody
from topocanvas.physics.simulation import Simulation, SimulationClock


def _settled_engine(layer, settings, ticks=10):
    engine = SimulationEngine(settings, GroupManager(settings))
    engine.start(layer)
    for _ in range(ticks):
        for sim in layer.simulations:
            if sim.running:
                sim.step()
    return engine


def test_unplaced_nodes_are_placed_on_a_spiral():
    nodes = [Node(name=str(i)) for i in range(3)]
    Simulation(nodes)
    r1 = math.hypot(nodes[1].x, nodes[1].y)
    assert r1 == pytest.approx(10 * math.sqrt(1.5))
    assert len({(n.x, n.y) for n in nodes}) == 3


def test_pinned_nodes_do_not_move(layer):
    pinned = layer.nodes[0]
    pinned.x, pinned.y = 42.0, -7.0
    pinned.pin()

    sim = Simulation(layer.nodes)
    sim.force("x", ForceX(0.0, 0.4))
    sim.force("link", ForceLink(layer.edges))
    sim.force("charge", ManyBody(-3000))
    sim.tick(5)

    assert (pinned.x, pinned.y) == (42.0, -7.0)
    assert (pinned.vx, pinned.vy) == (0.0, 0.0)


def test_simulation_cools_and_ends():
    sim = Simulation([Node(name="a"), Node(name="b")])
    ended = []
    sim.ended.connect(lambda s: ended.append(s))
    ticks = sim.run_until_settled(max_ticks=1000)

    assert sim.alpha < sim.alpha_min
    assert not sim.running
    assert ended == [sim]
    # 0.001 ** (1/300) decay reaches alpha_min in about 300 ticks
    assert 290 <= ticks <= 310


def test_alpha_target_keeps_simulation_warm():
    sim = Simulation([Node(name="a")])
    sim.alpha_target = 0.7
    sim.tick(500)
    assert sim.alpha == pytest.approx(0.7, abs=0.01)


def test_clock_steps_registered_simulations():
    clock = SimulationClock()
    sim = Simulation([Node(name="a")], clock=clock)
    ticked = []
    sim.ticked.connect(lambda s: ticked.append(s.ticks))

    sim.restart()  # no running loop: registered, not scheduled
    clock.frame()
    clock.frame()
    assert ticked == [1, 2]

    sim.stop()
    clock.frame()
    assert ticked == [1, 2]


def test_clock_runs_on_the_event_loop():
    async def run():
        clock = SimulationClock(interval=0.001)
        sim = Simulation([Node(name="a")], clock=clock)
        sim.restart()
        await asyncio.sleep(0.05)
        sim.stop()
        clock.close()
        return sim.ticks

    assert asyncio.run(run()) > 0


def test_engine_builds_node_and_group_simulations(layer, settings):
    engine = SimulationEngine(settings, GroupManager(settings))
    pair = engine.start(layer)

    assert set(pair.nodes.forces) == {"x", "y", "link", "cluster", "charge"}
    assert set(pair.groups.forces) == {"collision"}
    assert pair.running
    assert all(g.has_geometry for g in layer.groups)


def test_link_strength_depends_on_grouping(layer, settings):
    engine = SimulationEngine(settings, GroupManager(settings))
    engine.start(layer)
    link = layer.simulations.nodes.force("link")
    same = [e.source.group == e.target.group for e in layer.edges]
    assert link._strengths == [0.3 if s else 0.09 for s in same]

    settings.grouping = False
    engine.setup(layer)
    assert link._strengths == [1.0] * len(layer.edges)


def test_grouping_forces_are_swapped(layer, settings):
    engine = SimulationEngine(settings, GroupManager(settings))
    engine.start(layer)
    assert layer.simulations.nodes.force("charge").strength == -3000
    assert layer.simulations.nodes.force("x").strength == 0.1

    settings.grouping = False
    engine.setup(layer)
    assert layer.simulations.nodes.force("charge").strength == -5000
    assert layer.simulations.nodes.force("x").strength == 0.4
    assert not layer.simulations.groups.running


def test_toggling_grouping_twice_restores_cooling_state(layer, settings):
    engine = _settled_engine(layer, settings, ticks=25)
    nodes_sim, groups_sim = layer.simulations.nodes, layer.simulations.groups
    before = (nodes_sim.alpha, groups_sim.alpha, nodes_sim.alpha_target, groups_sim.alpha_target)
    positions = [(n.x, n.y) for n in layer.nodes]

    assert engine.toggle_grouping(layer) is False
    assert nodes_sim.alpha == 1.0
    assert engine.toggle_grouping(layer) is True

    after = (nodes_sim.alpha, groups_sim.alpha, nodes_sim.alpha_target, groups_sim.alpha_target)
    assert after == before
    assert settings.grouping is True
    assert [(n.x, n.y) for n in layer.nodes] == positions


def test_toggle_swaps_stashed_positions(layer, settings):
    engine = _settled_engine(layer, settings, ticks=5)
    node = layer.nodes[0]
    grouped = (node.x, node.y)

    engine.toggle_grouping(layer)
    node.x, node.y = 999.0, 999.0  # layout evolves while ungrouped
    engine.toggle_grouping(layer)

    assert (node.x, node.y) == grouped
    assert (node.px, node.py) == (999.0, 999.0)


def test_toggle_without_groups_is_noop(settings):
    from topocanvas.core.ingest import ingest
    from topocanvas.core.models import Layer

    flat = ingest(Layer(id="flat"), {"devices": [{"name": "a"}, {"name": "b"}], "links": []})
    engine = SimulationEngine(settings, GroupManager(settings))
    engine.start(flat)
    assert flat.simulations.groups is None
    assert engine.toggle_grouping(flat) is None
    assert settings.grouping is True


def test_render_tick_contains_focused_group_members(layer, settings):
    engine = _settled_engine(layer, settings, ticks=1)
    group = layer.groups[0]
    layer.focused_group = 0
    member = group.nodes[0]
    member.x = group.bounds.x1 + 500

    engine.render_tick(layer)
    assert member.x == group.bounds.x1


def test_teardown_stops_and_detaches(layer, settings):
    engine = SimulationEngine(settings, GroupManager(settings))
    pair = engine.start(layer)
    engine.teardown(layer)

    assert layer.simulations is None
    assert not pair.running
    assert len(pair.nodes.ticked) == 0


def test_run_until_settled_stops_everything(layer, settings):
    engine = SimulationEngine(settings, GroupManager(settings))
    engine.start(layer)
    ticks = engine.run_until_settled(layer, max_ticks=40)
    assert ticks == 40
    assert not layer.simulations.running
    assert all(math.isfinite(n.x) and math.isfinite(n.y) for n in layer.nodes)


def test_settled_signal_fires_when_cooled(layer):
    settings = Settings()
    engine = SimulationEngine(settings, GroupManager(settings))
    settled = []
    engine.settled.connect(settled.append)
    engine.start(layer)
    engine.run_until_settled(layer, max_ticks=400)
    assert settled == [layer]
