"""Construction of a deduplicated node/edge set from tabular rows."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import AbstractSet, List, Mapping, Optional, Sequence, Tuple, Union

from backend.netviz.config import GraphConfig, TableConfig
from backend.netviz.graph.model import GraphNode, NetworkGraph

LOGGER = logging.getLogger(__name__)

RowLike = Union[Mapping[str, Optional[str]], Sequence[Optional[str]]]

_QUOTED = re.compile(r'"([^"]+)"')


@dataclass(frozen=True)
class NodeIdentity:
    """Identity, label and navigation target derived from one cell value."""

    node_id: str
    label: str
    resource_url: Optional[str]


def normalize_identity(raw_value: Optional[str], prefix: str = "<", suffix: str = ">") -> Optional[str]:
    """Strip one enclosing decoration marker from each end of a cell value.

    Returns ``None`` when the cell is missing or empty, including when the
    value consisted only of decoration.
    """

    if not raw_value:
        return None
    value = raw_value
    if value.startswith(prefix):
        value = value[len(prefix):]
    if value.endswith(suffix):
        value = value[: -len(suffix)]
    return value or None


def derive_label(node_id: str, marker: str = "XMLSchema") -> Tuple[str, Optional[str]]:
    """Return ``(label, resource_url)`` for a normalized identity.

    Literal values carrying the schema marker are labelled with their first
    double-quoted substring and get no URL. Anything else is treated as a
    path: the label is the final ``/`` segment and the URL is the value.
    """

    if marker in node_id:
        match = _QUOTED.search(node_id)
        return (match.group(1) if match else node_id), None
    label = node_id.rsplit("/", 1)[-1] or node_id
    return label, node_id


class GraphBuilder:
    """Build a :class:`NetworkGraph` from rows under a category selection."""

    def __init__(
        self,
        graph_config: Optional[GraphConfig] = None,
        table_config: Optional[TableConfig] = None,
    ) -> None:
        self._graph_config = graph_config or GraphConfig()
        self._table_config = table_config or TableConfig()

    def identify(self, raw_value: Optional[str]) -> Optional[NodeIdentity]:
        """Derive the node identity for a raw cell value, if any."""

        node_id = normalize_identity(
            raw_value,
            prefix=self._table_config.strip_prefix,
            suffix=self._table_config.strip_suffix,
        )
        if node_id is None:
            return None
        label, resource_url = derive_label(node_id, self._graph_config.schema_literal_marker)
        return NodeIdentity(node_id=node_id, label=label, resource_url=resource_url)

    def build(
        self,
        rows: Sequence[RowLike],
        headers: Sequence[str],
        selected_categories: AbstractSet[str],
    ) -> NetworkGraph:
        """Create nodes for selected columns and connect co-occurring values.

        Args:
            rows: Row mappings keyed by header, or positional value sequences.
            headers: Category names in column order.
            selected_categories: Columns whose values become nodes.

        Returns:
            NetworkGraph: Graph with one node per distinct identity and at most
            one edge per unordered pair.
        """

        graph = NetworkGraph()
        weight = self._graph_config.default_edge_weight
        for row in rows:
            identities = self._row_identities(row, headers)
            for index, identity in enumerate(identities):
                if identity is None or headers[index] not in selected_categories:
                    continue
                graph.add_node(
                    GraphNode(
                        node_id=identity.node_id,
                        label=identity.label,
                        category=headers[index],
                        resource_url=identity.resource_url,
                    )
                )
            for i in range(len(identities)):
                if headers[i] not in selected_categories:
                    continue
                for j in range(i + 1, len(identities)):
                    if headers[j] not in selected_categories:
                        continue
                    source, target = identities[i], identities[j]
                    if source is None or target is None or source.node_id == target.node_id:
                        continue
                    if not (graph.has_node(source.node_id) and graph.has_node(target.node_id)):
                        continue
                    if not graph.has_edge(source.node_id, target.node_id):
                        graph.add_edge(source.node_id, target.node_id, weight=weight)
        LOGGER.info(
            "Built graph from %d rows (categories=%s, nodes=%d, edges=%d)",
            len(rows),
            sorted(selected_categories),
            graph.order,
            graph.size,
        )
        return graph

    def _row_identities(self, row: RowLike, headers: Sequence[str]) -> List[Optional[NodeIdentity]]:
        if isinstance(row, Mapping):
            values = [row.get(header) for header in headers]
        else:
            values = [row[index] if index < len(row) else None for index in range(len(headers))]
        return [self.identify(value) for value in values]
