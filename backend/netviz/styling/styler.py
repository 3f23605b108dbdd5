"""Visual encodings: category colors and degree-proportional sizes."""
from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Sequence

from backend.netviz.config import StylingConfig
from backend.netviz.graph.model import NetworkGraph

LOGGER = logging.getLogger(__name__)

DEFAULT_PALETTE = ("#FA5A3D", "#5A75DB", "#FFD700", "#8A2BE2", "#00A676", "#FF6F61")


def _default_config() -> StylingConfig:
    return StylingConfig(palette=list(DEFAULT_PALETTE))


class GraphStyler:
    """Assign ``color`` and ``size`` to every node of a graph in place.

    Colors come from a fixed palette indexed by the category's column
    position modulo the palette length. Sizes are a min-max normalization of
    node degree into ``[min_size, max_size]``; when every node has the same
    degree all nodes receive the configured fallback (the midpoint of the
    range by default).
    """

    def __init__(self, headers: Sequence[str], config: Optional[StylingConfig] = None) -> None:
        self._config = config or _default_config()
        palette = self._config.palette
        self._colors: Dict[str, str] = {}
        for index, header in enumerate(headers):
            self._colors.setdefault(header, palette[index % len(palette)])

    @property
    def color_map(self) -> Mapping[str, str]:
        return dict(self._colors)

    @property
    def degenerate_size(self) -> float:
        if self._config.degenerate_size == "min":
            return self._config.min_size
        return (self._config.min_size + self._config.max_size) / 2.0

    def color_of(self, category: Optional[str]) -> str:
        if category is None:
            return self._config.fallback_color
        return self._colors.get(category, self._config.fallback_color)

    def size_of(self, degree: int, min_degree: int, max_degree: int) -> float:
        """Map ``degree`` linearly into the configured size range."""

        if max_degree == min_degree:
            return self.degenerate_size
        span = self._config.max_size - self._config.min_size
        return self._config.min_size + (degree - min_degree) / (max_degree - min_degree) * span

    def style(self, graph: NetworkGraph) -> NetworkGraph:
        """Prune to the largest component, then color and size each node.

        The graph instance is mutated and returned for chaining.
        """

        graph.crop_to_largest_component()
        degrees = graph.degrees()
        if not degrees:
            return graph
        min_degree = min(degrees.values())
        max_degree = max(degrees.values())
        for node in graph.nodes():
            node.color = self.color_of(node.category)
            node.size = self.size_of(degrees[node.node_id], min_degree, max_degree)
        LOGGER.info(
            "Styled %d nodes (degree range %d-%d)", graph.order, min_degree, max_degree
        )
        return graph
