"""Tests for transforms and the viewport controller."""

import asyncio
import math

import pytest

from topocanvas.core.layout import TransformStore
from topocanvas.core.models import Layer, Node
from topocanvas.core.settings import Settings
from topocanvas.viewport import IDENTITY, UNBOUNDED, Transform, Viewport, constrain, ease_cubic_in_out


@pytest.fixture
def viewport(settings):
    return Viewport(Layer(id="main"), settings, 1200, 800)


def test_transform_apply_and_invert():
    t = Transform(100, 50, 2)
    assert t.apply((10, 10)) == (120, 70)
    assert t.invert((120, 70)) == (10, 10)
    assert str(t) == "translate(100,50) scale(2)"
    assert Transform.from_dict(t.to_dict()) == t


def test_easing_endpoints_and_midpoint():
    assert ease_cubic_in_out(0) == 0
    assert ease_cubic_in_out(1) == 1
    assert ease_cubic_in_out(0.5) == pytest.approx(0.5)
    assert ease_cubic_in_out(0.25) < 0.25


def test_constrain_unbounded_is_identity():
    t = Transform(123, -45, 0.7)
    assert constrain(t, ((0, 0), (100, 100)), UNBOUNDED) == t


def test_constrain_keeps_extent_in_view():
    extent = ((0, 0), (100, 100))
    area = ((0, 0), (200, 200))
    # panned past the right edge of the area
    t = constrain(Transform(-150, 0, 1), extent, area)
    assert t == Transform(-100, 0, 1)
    # an area smaller than the view is centred
    t = constrain(Transform(0, 0, 0.25), extent, area)
    assert t.x == pytest.approx(25)


def test_focus_without_animation_centres_point(viewport):
    ended = []
    viewport.ended.connect(ended.append)
    asyncio.run(viewport.focus(100, 50, scale=2, duration=0))
    t = viewport.transform
    assert t.apply((100, 50)) == (600, 400)
    assert ended == [t]


def test_focus_animates_to_target(viewport):
    seen = []

    class Surface:
        def set_transform(self, t):
            seen.append(t)

    viewport.layer.surface = Surface()
    asyncio.run(viewport.focus(0, 0, scale=1, duration=0.1))
    # six eased frames, then the exact target
    assert len(seen) == 7
    assert seen[-2] == seen[-1] == Transform(600, 400, 1)


def test_new_transition_interrupts_old(viewport):
    async def run():
        first = asyncio.ensure_future(viewport.transition(Transform(0, 0, 5), 0.2))
        await asyncio.sleep(0.03)
        second = await viewport.transition(Transform(10, 10, 2), 0.05)
        return await first, second

    interrupted, finished = asyncio.run(run())
    assert interrupted is False
    assert finished is True
    assert viewport.transform == Transform(10, 10, 2)


def test_focus_on_area_fits_the_box(viewport):
    area = type("Area", (), {"cx": 0.0, "cy": 0.0, "width": 2400.0, "height": 400.0})()
    asyncio.run(viewport.focus_on_area(area, duration=0))
    assert viewport.transform.k == pytest.approx(0.45)


def test_focus_on_node_stops_simulations(viewport):
    stopped = []

    class Sims:
        def stop(self):
            stopped.append(True)

    viewport.layer.simulations = Sims()
    asyncio.run(viewport.focus_on_node(Node(name="n", x=10.0, y=10.0), 1.5, duration=0))
    assert stopped == [True]
    assert viewport.transform.k == 1.5


def test_zoom_is_clamped(viewport):
    assert viewport.scaled(100).k == 8
    assert viewport.scaled(0.001).k == 0.1


def test_scale_without_loop_jumps(viewport):
    assert viewport.increment()
    assert viewport.transform.k == pytest.approx(1.25)
    assert viewport.decrement()
    assert viewport.transform.k == pytest.approx(1.0)
    # zooming keeps the viewport centre fixed
    assert viewport.transform.invert((600, 400)) == pytest.approx(IDENTITY.invert((600, 400)))


def test_wheel_direction(viewport):
    viewport.wheel(-1)
    assert viewport.transform.k == pytest.approx(0.8)
    viewport.wheel(3)
    assert viewport.transform.k == pytest.approx(1.0)


def test_scale_animates_on_a_loop(viewport):
    async def run():
        assert viewport.scale(2)
        await asyncio.sleep(0.4)

    asyncio.run(run())
    assert viewport.transform.k == pytest.approx(2)


def test_input_rejected_while_group_focused(viewport):
    viewport.layer.focused_group = 0
    assert viewport.pan(5, 5) is False
    assert viewport.scale(2) is False
    assert viewport.wheel(1) is False
    assert viewport.transform == IDENTITY


def test_pan_is_constrained_to_restricted_area(viewport):
    ended = []
    viewport.ended.connect(ended.append)
    area = viewport.restrict_area()
    assert area == ((0.0, 0.0), (1200.0, 800.0))

    assert viewport.pan(50, 0)
    assert viewport.transform == IDENTITY
    assert len(ended) == 1


def test_restrict_area_follows_transform(viewport):
    viewport.set_transform(Transform(600, 400, 2))
    (x0, y0), (x1, y1) = viewport.restrict_area()
    assert (x0, y0, x1, y1) == (-300, -200, 300, 200)


def test_restore_prefers_stored_then_default(memory_store):
    settings = Settings()
    viewport = Viewport(Layer(id="main"), settings, 1200, 800)
    store = TransformStore(memory_store, settings)
    assert viewport.restore(store) == Transform(600, 400, 0.1)

    store.save({"x": 1, "y": 2, "k": 3})
    assert viewport.restore(store) == Transform(1, 2, 3)


def test_apply_settings_updates_zoom_bounds(viewport, settings):
    settings.max_zoom_in = 2
    viewport.apply_settings()
    assert viewport.scaled(10).k == 2
    assert math.isfinite(viewport.scaled(10).x)
