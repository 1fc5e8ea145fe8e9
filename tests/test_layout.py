"""Tests for layout and transform persistence."""

import asyncio
import json

import pytest

from topocanvas.core.layout import LayoutStore, TransformStore, serialize_layout
from topocanvas.core.settings import Settings
from topocanvas.core.tasks import Debouncer


@pytest.fixture
def layout(memory_store, settings):
    return LayoutStore(memory_store, settings, interval=0.01)


def test_save_and_restore_round_trip(layer, layout, memory_store, settings, topology):
    from topocanvas.core.ingest import ingest
    from topocanvas.core.models import Layer

    layer.nodes[0].fx, layer.nodes[0].fy = 12.0, 34.0
    layer.groups[1].fx, layer.groups[1].fy = -5.0, 6.0
    assert layout.save(layer)

    fresh = ingest(Layer(id="main"), topology)
    matched = LayoutStore(memory_store, settings).restore(fresh)

    assert matched == len(fresh.nodes) + len(fresh.groups)
    assert (fresh.nodes[0].fx, fresh.nodes[0].fy) == (12.0, 34.0)
    assert (fresh.groups[1].fx, fresh.groups[1].fy) == (-5.0, 6.0)
    assert fresh.nodes[1].fx is None


def test_unchanged_layout_is_not_rewritten(layer, layout, memory_store):
    assert layout.save(layer)
    assert not layout.save(layer)
    layer.nodes[2].fx = 1.0
    assert layout.save(layer)
    # a fresh store instance compares against what is already on disk
    assert not LayoutStore(memory_store, layout.settings).save(layer)


def test_restore_skips_unknown_entries(layer, layout, memory_store):
    record = {"nodes": [{"name": "gone", "fx": 1, "fy": 1}, {"name": "core-1", "fx": 2, "fy": 3}], "groups": []}
    memory_store.set("main.layout", json.dumps(record))
    assert layout.restore(layer) == 1
    assert (layer.find_node("core-1").fx, layer.find_node("core-1").fy) == (2, 3)


def test_malformed_layout_restores_nothing(layer, layout, memory_store):
    memory_store.set("main.layout", "][")
    assert layout.restore(layer) == 0
    memory_store.set("main.layout", "[1, 2]")
    assert layout.restore(layer) == 0


def test_explicit_layout_wins(layer, memory_store):
    memory_store.set("main.layout", serialize_layout(layer))
    explicit = {"main": {"nodes": [{"name": "edge-1", "fx": 9, "fy": 9}]}}
    store = LayoutStore(memory_store, Settings(layout=json.dumps(explicit)))
    assert store.restore(layer) == 1
    assert layer.find_node("edge-1").fx == 9


def test_layouts_are_stored_per_layer(layer, layout, memory_store):
    layout.save(layer)
    layer.id = "core-1"
    layout.save(layer)
    assert memory_store.get_parsed("layout.index") == ["main", "core-1"]

    layout.clear()
    assert memory_store.get("main.layout") is None
    assert memory_store.get("core-1.layout") is None
    assert memory_store.get("layout.index") is None


def test_schedule_save_is_debounced(layer, layout, memory_store):
    async def run():
        layer.nodes[0].fx = 1.0
        layout.schedule_save(layer)
        layer.nodes[0].fx = 2.0
        layout.schedule_save(layer)
        assert memory_store.get("main.layout") is None
        await asyncio.sleep(0.05)

    asyncio.run(run())
    saved = memory_store.get_parsed("main.layout")
    assert saved["nodes"][0]["fx"] == 2.0


def test_pending_saves_are_kept_per_layer(layer, layout, memory_store, topology):
    from topocanvas.core.ingest import ingest
    from topocanvas.core.models import Layer

    child = ingest(Layer(id="core-1"), topology)

    async def run():
        layer.nodes[0].fx = 1.0
        layout.schedule_save(layer)
        child.nodes[0].fx = 2.0
        layout.schedule_save(child)
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert memory_store.get_parsed("main.layout")["nodes"][0]["fx"] == 1.0
    assert memory_store.get_parsed("core-1.layout")["nodes"][0]["fx"] == 2.0


def test_flush_writes_every_pending_layer(layer, memory_store, settings, topology):
    from topocanvas.core.ingest import ingest
    from topocanvas.core.models import Layer

    layout = LayoutStore(memory_store, settings, interval=10)
    child = ingest(Layer(id="core-1"), topology)

    async def run():
        layout.schedule_save(layer)
        layout.schedule_save(child)
        layout.flush()

    asyncio.run(run())
    assert memory_store.get("main.layout") is not None
    assert memory_store.get("core-1.layout") is not None


def test_transform_precedence(memory_store):
    default = {"x": 600, "y": 400, "k": 0.1}
    store = TransformStore(memory_store, Settings())
    assert store.get(default) == default

    store.save({"x": 1, "y": 2, "k": 3})  # no loop: written immediately
    assert store.get(default) == {"x": 1.0, "y": 2.0, "k": 3.0}

    explicit = TransformStore(memory_store, Settings(transform={"x": 0, "y": 0, "k": 2}))
    assert explicit.get(default) == {"x": 0.0, "y": 0.0, "k": 2.0}

    store.clear()
    assert store.get(default) == default


def test_transform_ignores_incomplete_records(memory_store):
    memory_store.set("transform", json.dumps({"x": 1}))
    default = {"x": 0, "y": 0, "k": 1}
    assert TransformStore(memory_store, Settings()).get(default) == default


def test_debouncer_runs_last_call_once():
    calls = []

    async def run():
        debounced = Debouncer(calls.append, 0.01)
        debounced(1)
        debounced(2)
        assert debounced.pending
        await asyncio.sleep(0.05)
        assert not debounced.pending

        debounced(3)
        debounced.flush()
        debounced(4)
        debounced.cancel()
        await asyncio.sleep(0.02)

    asyncio.run(run())
    assert calls == [2, 3]


def test_debouncer_without_loop_runs_immediately():
    calls = []
    Debouncer(calls.append)(7)
    assert calls == [7]
