"""Tests for the command line interface."""

import json

import pytest

from topocanvas.cli import main


@pytest.fixture
def topology_file(tmp_path, topology):
    path = tmp_path / "net.json"
    path.write_text(json.dumps(topology))
    return path


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "render" in capsys.readouterr().out


def test_stats(topology_file, capsys):
    assert main(["stats", str(topology_file)]) == 0
    out = capsys.readouterr().out
    assert "# Topology Statistics" in out
    assert "- **Devices:** 4" in out
    assert "- **Links:** 7" in out


def test_missing_file(tmp_path, capsys):
    assert main(["stats", str(tmp_path / "missing.json")]) == 1
    assert "Error reading topology" in capsys.readouterr().err


def test_render_svg(topology_file, tmp_path, capsys):
    out = tmp_path / "out.svg"
    assert main(["render", str(topology_file), "-o", str(out), "--max-ticks", "20"]) == 0
    svg = out.read_text()
    assert svg.startswith("<?xml")
    assert ">Core<" in svg
    assert "Settled after 20 ticks" in capsys.readouterr().err


def test_render_default_output_path(topology_file):
    assert main(["render", str(topology_file), "--max-ticks", "5", "--no-grouping"]) == 0
    svg = topology_file.with_suffix(".svg").read_text()
    assert 'display="none"' in svg


def test_render_with_settings_and_store(topology_file, tmp_path):
    settings = tmp_path / "diagram.yaml"
    settings.write_text("showIpAddress: false\n")
    store = tmp_path / "state" / "store.json"
    out = tmp_path / "out.svg"

    args = ["render", str(topology_file), "-o", str(out), "--max-ticks", "5"]
    assert main(args + ["--settings", str(settings), "--store", str(store)]) == 0

    assert 'visibility="hidden"' in out.read_text()
    saved = json.loads(store.read_text())
    assert "diagrams.net.main.layout" in saved


def test_render_device_drill_down(topology_file, tmp_path):
    out = tmp_path / "core.svg"
    assert main(["render", str(topology_file), "-o", str(out), "--max-ticks", "5", "--device", "core-1"]) == 0
    svg = out.read_text()
    assert 'class="inset"' in svg
    assert ">edge-1<" in svg


def test_render_unknown_device(topology_file, tmp_path, capsys):
    out = tmp_path / "x.svg"
    assert main(["render", str(topology_file), "-o", str(out), "--device", "nope", "--max-ticks", "1"]) == 1
    assert "Node not found: nope" in capsys.readouterr().err
    assert not out.exists()
