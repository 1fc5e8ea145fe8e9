"""Turn a data-source payload into a layer's nodes, edges and groups."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from ..errors import UnresolvedEdgeError
from .models import Edge, Group, Layer, Node, NodeKind

logger = logging.getLogger(__name__)


def ingest(layer: Layer, payload: Mapping[str, Any], *, strict: bool = False) -> Layer:
    """Populate `layer` from `{devices, groups?, links, subnets?}`.

    Edge endpoints are resolved to Node objects. Links whose endpoints cannot
    be resolved never reach `layer.edges`: they raise `UnresolvedEdgeError`
    when `strict`, otherwise they are logged and kept in `layer.invalid_edges`.
    """
    devices = [Node.from_dict(d) for d in payload.get("devices") or []]
    subnets = [Node.from_dict(d, cloud=True) for d in payload.get("subnets") or []]

    search_items: List[str] = []
    for sub in subnets:
        search_items.append(sub.name if sub.kind == NodeKind.UNMANAGED else (sub.subnet or sub.name))
    search_items.extend(d.name for d in devices)

    nodes = devices + subnets
    for i, node in enumerate(nodes):
        node.index = i

    group_names = payload.get("groups") or []
    groups = [Group(id=i, name=str(name)) for i, name in enumerate(group_names)]
    for i, group in enumerate(groups):
        group.index = i

    by_name: Dict[str, Node] = {}
    for node in nodes:
        by_name.setdefault(node.name, node)

    edges: List[Edge] = []
    invalid: List[Dict[str, Any]] = []
    for link in payload.get("links") or []:
        source = by_name.get(link.get("source"))
        target = by_name.get(link.get("target"))
        if source is None or target is None:
            invalid.append(dict(link))
            continue

        if groups:
            if source.group is not None and target.group is None:
                target.group = source.group
            elif source.group is not None and target.group is not None and source.group != target.group:
                if source.is_cloud:
                    source.group = None
                if target.is_cloud:
                    target.group = None

        edges.append(Edge.from_dict(link, source, target))

    if invalid:
        if strict:
            raise UnresolvedEdgeError(invalid)
        logger.warning("Layer %s: dropped %d link(s) with unknown endpoints", layer.id, len(invalid))

    # a group id outside the layer's group list is not a group
    for node in nodes:
        if node.group is not None and not (0 <= node.group < len(groups)):
            node.group = None

    layer.nodes = nodes
    layer.edges = edges
    layer.groups = groups
    layer.search_items = search_items
    layer.invalid_edges = invalid
    return layer
