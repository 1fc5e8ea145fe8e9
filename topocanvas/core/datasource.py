"""Data sources answering layer queries.

A query is `None` for the root layer, `{"device": name}` or
`{"subnet": address}` for drill-downs. The answer is a payload of the form
`{"devices": [...], "groups": [...], "links": [...], "subnets": [...]}`.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Set

import networkx as nx

Payload = Dict[str, Any]
Query = Optional[Mapping[str, str]]


class DataSource(Protocol):
    async def fetch(self, query: Query = None) -> Payload: ...


class TopologySource:
    """Serves root and drill-down payloads from one full topology."""

    def __init__(self, topology: Mapping[str, Any]):
        self.topology: Payload = {
            "devices": list(topology.get("devices") or []),
            "groups": list(topology.get("groups") or []),
            "links": list(topology.get("links") or []),
            "subnets": list(topology.get("subnets") or []),
        }
        self._devices = {d["name"]: d for d in self.topology["devices"]}
        self._subnets = {s["name"]: s for s in self.topology["subnets"]}
        self.graph = self._build_graph()

    @classmethod
    def from_file(cls, path: str | Path) -> "TopologySource":
        with open(path, "r", encoding="utf-8") as f:
            return cls(json.load(f) or {})

    def _build_graph(self) -> "nx.MultiGraph":
        g = nx.MultiGraph()
        for name in self._devices:
            g.add_node(name, cloud=False)
        for name in self._subnets:
            g.add_node(name, cloud=True)
        for i, link in enumerate(self.topology["links"]):
            g.add_edge(link["source"], link["target"], key=i)
        return g

    async def fetch(self, query: Query = None) -> Payload:
        if not query:
            return copy.deepcopy(self.topology)
        if "device" in query:
            return self.device_neighborhood(query["device"])
        if "subnet" in query:
            return self.subnet_members(query["subnet"])
        raise ValueError(f"Unsupported query: {dict(query)!r}")

    def _links(self, keys: Set[int]) -> List[Dict[str, Any]]:
        links = self.topology["links"]
        return [copy.deepcopy(links[i]) for i in sorted(keys)]

    def device_neighborhood(self, name: str) -> Payload:
        """Links incident to `name`, each oriented with `name` as the source."""
        if name not in self._devices:
            raise KeyError(f"Unknown device: {name}")
        keys = {k for _, _, k in self.graph.edges(name, keys=True)}
        links = self._links(keys)
        for link in links:
            if link["source"] != name:
                link["source"], link["target"] = name, link["source"]
        return {"devices": [], "groups": [], "links": links, "subnets": []}

    def subnet_members(self, address: str) -> Payload:
        """Devices attached to a subnet cloud plus every link touching them."""
        cloud = next((s for s in self._subnets.values() if s.get("subnet") == address or s["name"] == address), None)
        if cloud is None:
            raise KeyError(f"Unknown subnet: {address}")
        members = [n for n in self.graph.neighbors(cloud["name"]) if n in self._devices]
        inside = set(members) | {cloud["name"]}
        keys = {k for n in inside for _, _, k in self.graph.edges(n, keys=True)}
        return {
            "devices": [copy.deepcopy(self._devices[n]) for n in sorted(members)],
            "groups": [],
            "links": self._links(keys),
            "subnets": [copy.deepcopy(cloud)],
        }
