"""Tests for the in-memory render surface and its SVG output."""

import pytest

from topocanvas.core.models import Layer
from topocanvas.core.settings import Settings
from topocanvas.groups import GroupManager
from topocanvas.viewport import Transform
from topocanvas.views.surface import TopologySurface, link_color, node_label


@pytest.fixture
def placed(layer):
    for i, node in enumerate(layer.nodes):
        node.x, node.y = 100.0 * i, 30.0 * (i % 2)
    return layer


@pytest.fixture
def surface(placed):
    s = TopologySurface(1200, 800, layer_id=placed.id)
    placed.surface = s
    s.build(placed)
    return s


def test_labels(layer):
    assert node_label(layer, layer.find_node("WAN")) == ""
    # a private cloud shows its address
    assert node_label(layer, layer.find_node("Cloud-10.0.2.0")) == "10.0.2.0"
    # a public cloud at the edge of the graph is the internet
    assert node_label(layer, layer.find_node("Cloud-8.8.8.0")) == "Internet"
    assert node_label(layer, layer.find_node("core-1")) == "core-1"


def test_public_cloud_with_several_links_keeps_its_address(layer):
    cloud = layer.find_node("Cloud-8.8.8.0")
    extra = next(e for e in layer.edges if e.target.name == "Cloud-10.0.2.0")
    extra.target = cloud
    assert node_label(layer, cloud) == "8.8.8.0"


def test_link_colors(layer):
    colors = {(e.source.name, e.target.name): link_color(e) for e in layer.edges}
    assert colors[("core-1", "WAN")] == "black"
    assert colors[("core-2", "edge-2")] == "red"
    assert colors[("core-1", "core-2")] == "green"


def test_build_creates_primitives(surface, placed):
    assert set(surface.nodes) == {n.name for n in placed.nodes}
    assert len(surface.links) == len(placed.edges)
    assert surface.nodes["Cloud-10.0.2.0"].size == 90
    assert surface.nodes["core-1"].ip_label == "10.0.0.1"
    assert surface.nodes["core-2"].ip_label is None
    assert surface.links[0].url == "/links/1"


def test_update_nodes_tracks_positions(surface, placed):
    node = placed.find_node("edge-1")
    node.x, node.y = -40.0, 55.0
    surface.update_nodes(placed)
    assert surface.node_at("edge-1") == (-40.0, 55.0)
    assert surface.node_at("nope") is None


def test_group_focus_shows_close_button(surface, placed):
    GroupManager(Settings()).init(placed)
    core = placed.groups[0]
    placed.focused_group = core.id
    surface.set_group_focus(placed, core, True)
    assert surface.groups[core.id].focused
    assert surface.close_button == (core.x + core.width - 20, core.y - 10)

    surface.set_group_focus(placed, core, False)
    assert surface.close_button is None


def test_inset_surface(placed):
    s = TopologySurface(1200, 800, inset=True)
    assert (s.width, s.height) == (1140, 740)
    assert s.opacity == 0.0
    s.set_opacity(3)
    assert s.opacity == 1.0
    s.build(placed)
    assert 'class="inset"' in s.render()


def test_render_svg(surface, placed):
    GroupManager(Settings()).init(placed)
    surface.set_transform(Transform(600, 400, 0.5))
    svg = surface.render()
    assert svg.startswith("<?xml")
    assert 'transform="translate(600,400) scale(0.5)"' in svg
    assert ">Core<" in svg
    assert ">Internet<" in svg
    assert 'stroke="red"' in svg


def test_render_hides_groups_and_ip_labels(surface, placed):
    GroupManager(Settings()).init(placed)
    surface.set_group_display(False)
    surface.set_ip_labels_visible(False)
    svg = surface.render()
    assert 'display="none"' in svg
    assert 'visibility="hidden"' in svg


def test_loading_and_toolbar_overlays(surface):
    surface.set_loading(True)
    surface.set_toolbar_visible(True)
    svg = surface.render()
    assert "Loading" in svg
    assert "grouping" in svg


def test_destroy_clears_everything(surface):
    seen = []
    surface.events.node_clicked.connect(seen.append)
    surface.destroy()
    surface.events.node_clicked.emit("x")
    assert seen == []
    assert surface.destroyed
    assert surface.nodes == {}


def test_save_writes_svg(surface, tmp_path):
    out = surface.save(tmp_path / "out" / "diagram.svg")
    assert out.read_text().endswith("</svg>")


def test_empty_layer_renders():
    s = TopologySurface()
    s.build(Layer(id="empty"))
    assert "<svg" in s.render()
