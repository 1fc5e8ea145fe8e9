#!/usr/bin/env python3
"""
topocanvas CLI - headless rendering of network topology diagrams

Usage:
    topocanvas render <topology.json>      Settle the layout and write SVG/PNG
    topocanvas stats <topology.json>       Show node/link/group counts
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="topocanvas: force-directed network topology diagrams",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    topocanvas render topology.json -o topology.svg
    topocanvas render topology.json --png --settings diagram.yaml
    topocanvas render topology.json --device core-sw1
    topocanvas stats topology.json
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # render command
    render_parser = subparsers.add_parser("render", help="Render a topology as SVG (or PNG)")
    render_parser.add_argument("topology", help="Path to topology JSON")
    render_parser.add_argument("--output", "-o", help="Output file path (default: <topology>.svg/.png)")
    render_parser.add_argument("--png", action="store_true", help="Rasterize with CairoSVG")
    render_parser.add_argument("--settings", "-s", help="YAML settings file")
    render_parser.add_argument("--store", help="JSON file persisting layout between runs")
    render_parser.add_argument("--max-ticks", type=int, default=300, help="Simulation ticks before rendering")
    render_parser.add_argument("--no-grouping", action="store_true", help="Lay out without groups")
    target = render_parser.add_mutually_exclusive_group()
    target.add_argument("--device", help="Drill down into a device")
    target.add_argument("--subnet", help="Drill down into a subnet")

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show topology statistics")
    stats_parser.add_argument("topology", help="Path to topology JSON")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    from .logging_config import setup_logging

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)

    # Import here to avoid slow startup for --help
    from .core.datasource import TopologySource

    path = Path(args.topology)
    try:
        source = TopologySource.from_file(path)
    except (OSError, ValueError) as e:
        print(f"Error reading topology: {e}", file=sys.stderr)
        return 1

    if args.command == "render":
        return asyncio.run(cmd_render(source, path, args))
    elif args.command == "stats":
        return asyncio.run(cmd_stats(source, args))

    return 0


async def cmd_stats(source, args):
    """Handle stats command."""
    from .core.ingest import ingest
    from .core.models import Layer

    layer = ingest(Layer(id="main"), await source.fetch(None))
    stats = layer.stats()

    print("# Topology Statistics")
    print("")
    print(f"- **Devices:** {stats['devices']}")
    print(f"- **Clouds:** {stats['clouds']}")
    print(f"- **Links:** {stats['edges']}")
    print(f"- **Groups:** {stats['groups']}")
    if layer.invalid_edges:
        print(f"- **Dropped links:** {len(layer.invalid_edges)}")

    return 0


async def cmd_render(source, path, args):
    """Handle render command."""
    from .core.settings import load_settings
    from .core.store import JsonFileBackend, Store
    from .diagram import create

    settings = load_settings(args.settings) if args.settings else {}
    if args.no_grouping:
        settings["grouping"] = False

    store = Store(JsonFileBackend(Path(args.store)), path.stem) if args.store else None
    diagram = await create(path.stem, source, settings, store)
    try:
        ticks = diagram.run_until_settled(args.max_ticks)
        print(f"Settled after {ticks} ticks", file=sys.stderr)

        target = args.device or args.subnet
        if target:
            try:
                await diagram.drill_down(target)
            except KeyError:
                print(f"Node not found: {target}", file=sys.stderr)
                return 1
            diagram.engine.stop(diagram.current_layer())

        surface = diagram.current_layer().surface
        surface.set_opacity(1.0)
        diagram.layout.save(diagram.current_layer())

        output = Path(args.output) if args.output else path.with_suffix(".png" if args.png else ".svg")
        if args.png:
            surface.save_png(output)
        else:
            surface.save(output)
        print(f"Diagram saved to: {output}")
    finally:
        diagram.destroy()

    return 0


if __name__ == "__main__":
    sys.exit(main())
