"""Graph model and construction from tabular rows."""

from .builder import GraphBuilder, NodeIdentity, derive_label, normalize_identity
from .model import Extents, GraphEdge, GraphNode, NetworkGraph, Position

__all__ = [
    "Extents",
    "GraphBuilder",
    "GraphEdge",
    "GraphNode",
    "NetworkGraph",
    "NodeIdentity",
    "Position",
    "derive_label",
    "normalize_identity",
]
