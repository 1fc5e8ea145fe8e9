"""Core domain types, ingestion and persistence."""

from .datasource import DataSource, TopologySource
from .ingest import ingest
from .layout import LayoutStore, TransformStore
from .models import Bounds, Edge, Group, Layer, Node, NodeKind, downscale_bandwidth, link_width
from .settings import Settings, load_settings
from .store import JsonFileBackend, MemoryBackend, Store

__all__ = [
    # models
    "Bounds",
    "Edge",
    "Group",
    "Layer",
    "Node",
    "NodeKind",
    "downscale_bandwidth",
    "link_width",
    # ingestion
    "DataSource",
    "TopologySource",
    "ingest",
    # persistence
    "JsonFileBackend",
    "LayoutStore",
    "MemoryBackend",
    "Store",
    "TransformStore",
    # settings
    "Settings",
    "load_settings",
]
