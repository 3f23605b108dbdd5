"""In-memory graph holding node display state on top of a networkx topology."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import networkx as nx

from backend.netviz.errors import UnknownNodeError

LOGGER = logging.getLogger(__name__)

Position = Tuple[float, float]


@dataclass
class GraphNode:
    """Mutable node record; styling and layout write into it in place."""

    node_id: str
    label: str
    category: str
    resource_url: Optional[str] = None
    page_url: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    color: Optional[str] = None
    size: Optional[float] = None
    highlighted: bool = False
    hidden: bool = False

    def to_dict(self) -> Dict[str, object]:
        """Return a JSON-serialisable payload for API responses."""

        return {
            "id": self.node_id,
            "label": self.label,
            "category": self.category,
            "resource_url": self.resource_url,
            "page_url": self.page_url,
            "x": self.x,
            "y": self.y,
            "color": self.color,
            "size": self.size,
            "highlighted": self.highlighted,
            "hidden": self.hidden,
        }


@dataclass(frozen=True)
class GraphEdge:
    """Undirected edge between two node identities."""

    source: str
    target: str
    weight: int = 1

    def to_dict(self) -> Dict[str, object]:
        return {"source": self.source, "target": self.target, "weight": self.weight}


@dataclass(frozen=True)
class Extents:
    """Axis-aligned bounding box of node positions."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


class NetworkGraph:
    """Undirected simple graph keyed by normalized node identities.

    Topology lives in a ``networkx.Graph``; each node identity additionally
    owns one :class:`GraphNode` whose attributes are mutated by the styler,
    the layout engine and pointer interaction.
    """

    def __init__(self) -> None:
        self._topology = nx.Graph()
        self._nodes: Dict[str, GraphNode] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def order(self) -> int:
        return len(self._nodes)

    @property
    def size(self) -> int:
        return self._topology.number_of_edges()

    @property
    def topology(self) -> nx.Graph:
        return self._topology

    def add_node(self, node: GraphNode) -> bool:
        """Insert ``node`` unless its identity already exists.

        Returns:
            bool: True when the node was created, False when it already existed.
        """

        if node.node_id in self._nodes:
            return False
        self._nodes[node.node_id] = node
        self._topology.add_node(node.node_id)
        return True

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def node(self, node_id: str) -> GraphNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(node_id) from None

    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    def node_ids(self) -> List[str]:
        return list(self._nodes)

    def add_edge(self, source: str, target: str, weight: int = 1) -> bool:
        """Create an undirected edge unless one already joins the pair.

        Args:
            source: First endpoint identity.
            target: Second endpoint identity.
            weight: Edge weight; existing edges keep their weight.

        Returns:
            bool: True when an edge was created.

        Raises:
            UnknownNodeError: If either endpoint is not in the graph.
            ValueError: If both endpoints are the same node.
        """

        for endpoint in (source, target):
            if endpoint not in self._nodes:
                raise UnknownNodeError(endpoint)
        if source == target:
            raise ValueError(f"Self-loops are not allowed: {source}")
        if self._topology.has_edge(source, target):
            return False
        self._topology.add_edge(source, target, weight=weight)
        return True

    def has_edge(self, source: str, target: str) -> bool:
        return self._topology.has_edge(source, target)

    def edges(self) -> List[GraphEdge]:
        return [
            GraphEdge(source=source, target=target, weight=int(data.get("weight", 1)))
            for source, target, data in self._topology.edges(data=True)
        ]

    def degree(self, node_id: str) -> int:
        if node_id not in self._nodes:
            raise UnknownNodeError(node_id)
        return int(self._topology.degree(node_id))

    def degrees(self) -> Dict[str, int]:
        return {node_id: int(degree) for node_id, degree in self._topology.degree()}

    def crop_to_largest_component(self) -> int:
        """Discard every node outside the largest connected component.

        Components of equal size are resolved in favour of the one found first
        in node insertion order. The pruning cannot be undone.

        Returns:
            int: Number of nodes removed.
        """

        if not self._nodes:
            return 0
        # max() keeps the first of equally large components.
        largest = max(nx.connected_components(self._topology), key=len, default=set())
        doomed = [node_id for node_id in self._nodes if node_id not in largest]
        edges_before = self.size
        self._topology.remove_nodes_from(doomed)
        for node_id in doomed:
            del self._nodes[node_id]
        if doomed:
            LOGGER.info(
                "Cropped graph to largest component (removed_nodes=%d, removed_edges=%d)",
                len(doomed),
                edges_before - self.size,
            )
        return len(doomed)

    def positions(self) -> Dict[str, Position]:
        return {node_id: (node.x, node.y) for node_id, node in self._nodes.items()}

    def set_position(self, node_id: str, x: float, y: float) -> None:
        node = self.node(node_id)
        node.x = float(x)
        node.y = float(y)

    def extents(self) -> Extents:
        """Return the bounding box of current positions (all zero when empty)."""

        if not self._nodes:
            return Extents(0.0, 0.0, 0.0, 0.0)
        xs = [node.x for node in self._nodes.values()]
        ys = [node.y for node in self._nodes.values()]
        return Extents(min(xs), max(xs), min(ys), max(ys))

    def copy(self) -> NetworkGraph:
        """Return a detached copy whose nodes can be read while this graph keeps changing."""

        clone = NetworkGraph()
        clone._topology = self._topology.copy()
        clone._nodes = {node_id: replace(node) for node_id, node in self._nodes.items()}
        return clone

    def to_payload(self) -> Dict[str, object]:
        """Return nodes and edges in a JSON-ready structure."""

        nodes = [node.to_dict() for node in self._nodes.values()]
        edges = [edge.to_dict() for edge in self.edges()]
        return {
            "nodes": nodes,
            "edges": edges,
            "node_count": len(nodes),
            "edge_count": len(edges),
        }
