"""Shared fixtures: sample topologies, settings and stores."""

import copy

import pytest

from topocanvas.core.datasource import TopologySource
from topocanvas.core.ingest import ingest
from topocanvas.core.models import Layer
from topocanvas.core.settings import Settings
from topocanvas.core.store import MemoryBackend, Store

TOPOLOGY = {
    "devices": [
        {"name": "core-1", "group": 0, "image": "router.png", "url": "/devices/core-1", "ipAddress": "10.0.0.1"},
        {"name": "core-2", "group": 0, "image": "router.png"},
        {"name": "edge-1", "group": 1, "image": "switch.png", "url": "/devices/edge-1", "ipAddress": "10.0.1.1"},
        {"name": "edge-2", "group": 1, "image": "switch.png"},
    ],
    "groups": ["Core", "Edge"],
    "subnets": [
        {"name": "Cloud-10.0.2.0", "subnet": "10.0.2.0", "mask": "255.255.255.0", "isPrivate": True},
        {"name": "Cloud-8.8.8.0", "subnet": "8.8.8.0", "mask": "255.255.255.0", "isPrivate": False},
        {"name": "WAN", "isUnmanaged": True},
    ],
    "links": [
        {"source": "core-1", "target": "core-2", "bandwidth": 10_000_000_000, "url": "/links/1"},
        {"source": "core-1", "target": "edge-1", "bandwidth": 1_000_000_000},
        {"source": "core-2", "target": "edge-2", "bandwidth": 1_000_000_000, "warning": True},
        {"source": "edge-1", "target": "Cloud-10.0.2.0", "bandwidth": 100_000_000},
        {"source": "edge-2", "target": "Cloud-10.0.2.0", "bandwidth": 100_000_000},
        {"source": "core-2", "target": "Cloud-8.8.8.0", "bandwidth": 1_000_000_000},
        {"source": "core-1", "target": "WAN", "isStaticWan": True},
    ],
}

# A subnet with two members and three outside neighbours.
SUBNET_TOPOLOGY = {
    "devices": [
        {"name": "a1"},
        {"name": "a2"},
        {"name": "x1"},
        {"name": "x2"},
        {"name": "x3"},
    ],
    "subnets": [{"name": "Cloud-10.1.0.0", "subnet": "10.1.0.0", "mask": "255.255.255.0"}],
    "links": [
        {"source": "a1", "target": "Cloud-10.1.0.0"},
        {"source": "a2", "target": "Cloud-10.1.0.0"},
        {"source": "a1", "target": "x1"},
        {"source": "a1", "target": "x2"},
        {"source": "a2", "target": "x3"},
    ],
}


@pytest.fixture
def topology():
    return copy.deepcopy(TOPOLOGY)


@pytest.fixture
def subnet_topology():
    return copy.deepcopy(SUBNET_TOPOLOGY)


@pytest.fixture
def source(topology):
    return TopologySource(topology)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def memory_store():
    return Store(MemoryBackend(), "test")


@pytest.fixture
def layer(topology):
    return ingest(Layer(id="main"), topology)
