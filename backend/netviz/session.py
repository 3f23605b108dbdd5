"""Session wiring the table, graph, layout engine and interaction together."""
from __future__ import annotations

import copy
import functools
import logging
import random
from concurrent.futures import Executor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from backend.netviz.config import AppConfig
from backend.netviz.errors import RenderingTargetMissingError, SessionStateError
from backend.netviz.export.snapshot import MatplotlibSnapshotExporter, SnapshotConfig, SnapshotExporter
from backend.netviz.graph.builder import GraphBuilder
from backend.netviz.graph.model import NetworkGraph
from backend.netviz.interaction.controller import InteractionController
from backend.netviz.interaction.events import Camera, HeadlessSurface, SurfaceEvent
from backend.netviz.interaction.opener import BrowserUrlOpener, UrlOpener
from backend.netviz.layout.engine import LayoutEngine
from backend.netviz.styling.styler import GraphStyler
from backend.netviz.tables.parser import ParsedTable, TableParser

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _FrozenView:
    """Camera captured at request time, handed to exporters in place of the surface."""

    camera: Camera


class GraphSession:
    """Own one table upload and the graph plotted from it.

    Loading a new table discards the current graph together with any running
    simulation or animation. Plotting rebuilds the graph from the loaded
    table and binds a fresh layout engine and interaction controller to the
    attached surface.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        surface: Optional[HeadlessSurface] = None,
        opener: Optional[UrlOpener] = None,
        exporter: Optional[SnapshotExporter] = None,
        rng: Optional[random.Random] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._config = config
        self._parser = TableParser(config.table.delimiter)
        self._builder = GraphBuilder(config.graph, config.table)
        self._surface = surface
        self._opener = opener or BrowserUrlOpener()
        self._exporter = exporter or MatplotlibSnapshotExporter(dpi=config.export.dpi)
        self._rng = rng
        self._executor = executor
        self._table: Optional[ParsedTable] = None
        self._graph: Optional[NetworkGraph] = None
        self._engine: Optional[LayoutEngine] = None
        self._controller: Optional[InteractionController] = None

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def table(self) -> Optional[ParsedTable]:
        return self._table

    @property
    def headers(self) -> List[str]:
        return list(self._table.headers) if self._table is not None else []

    @property
    def graph(self) -> Optional[NetworkGraph]:
        return self._graph

    @property
    def engine(self) -> Optional[LayoutEngine]:
        return self._engine

    @property
    def controller(self) -> Optional[InteractionController]:
        return self._controller

    @property
    def surface(self) -> Optional[HeadlessSurface]:
        return self._surface

    @property
    def opener(self) -> UrlOpener:
        return self._opener

    def attach_surface(self, surface: HeadlessSurface) -> None:
        """Bind ``surface``; an already plotted graph is rebound to it."""

        self._surface = surface
        if self._graph is not None and self._engine is not None:
            if self._controller is not None:
                self._controller.detach()
            self._controller = self._new_controller(self._graph, self._engine)

    def load_table(self, text: str) -> ParsedTable:
        """Parse ``text`` and discard whatever was plotted before."""

        table = self._parser.parse(text)
        self.discard_graph()
        self._table = table
        LOGGER.info(
            "Loaded table (headers=%d, rows=%d)",
            len(table.headers),
            table.row_count,
        )
        return table

    def plot(self, categories: Iterable[str]) -> Optional[NetworkGraph]:
        """Build, style and lay out a graph from the selected ``categories``.

        Args:
            categories: Header names whose values become nodes.

        Returns:
            Optional[NetworkGraph]: The new graph, or ``None`` when nothing
            was selected (the previous graph is kept).

        Raises:
            SessionStateError: If no table has been loaded.
            ValueError: If a category is not one of the table headers.
            RenderingTargetMissingError: If no surface is attached.
        """

        if self._table is None:
            raise SessionStateError("Load a table before plotting")
        selected = set(categories)
        if not selected:
            LOGGER.info("No category selected; keeping the current graph")
            return None
        unknown = sorted(selected - set(self._table.headers))
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")
        if self._surface is None:
            raise RenderingTargetMissingError("Attach a rendering surface before plotting")

        self.discard_graph()
        graph = self._builder.build(self._table.rows, self._table.headers, selected)
        GraphStyler(self._table.headers, self._config.styling).style(graph)
        engine = LayoutEngine(
            graph,
            self._surface,
            self._config.layout,
            rng=self._rng,
            executor=self._executor,
        )
        self._surface.camera.reset()
        self._graph = graph
        self._engine = engine
        self._controller = self._new_controller(graph, engine)
        LOGGER.info(
            "Plotted graph (categories=%s, nodes=%d, edges=%d)",
            ",".join(sorted(selected)),
            graph.order,
            graph.size,
        )
        return graph

    def require_engine(self) -> LayoutEngine:
        if self._engine is None:
            raise SessionStateError("No graph has been plotted")
        return self._engine

    def dispatch(self, event: SurfaceEvent) -> SurfaceEvent:
        """Feed a client pointer event to the surface handlers."""

        if self._graph is None or self._surface is None:
            raise SessionStateError("No graph has been plotted")
        return self._surface.emit(event)

    def view_payload(self) -> Dict[str, object]:
        """Return the styled, positioned graph with layout and camera state."""

        if self._graph is None or self._engine is None or self._surface is None:
            raise SessionStateError("No graph has been plotted")
        camera = self._surface.camera
        camera.follow(self._graph.extents())
        payload = self._graph.to_payload()
        payload["layout"] = self._engine.snapshot().to_dict()
        payload["camera"] = camera.to_dict()
        payload["viewport"] = {"width": camera.width, "height": camera.height}
        return payload

    def prepare_snapshot(self, config: SnapshotConfig, output_dir: Path) -> Callable[[], Path]:
        """Capture the current view and return a job that renders it.

        The job only reads copies of the graph and camera, so it may run in a
        worker thread while layouts keep moving the live graph.

        Raises:
            SessionStateError: If no graph has been plotted.
        """

        if self._graph is None or self._surface is None:
            raise SessionStateError("No graph has been plotted")
        view = _FrozenView(camera=copy.copy(self._surface.camera))
        return functools.partial(self._exporter.export, view, self._graph.copy(), config, output_dir)

    def export_snapshot(self, config: SnapshotConfig, output_dir: Path) -> Path:
        return self.prepare_snapshot(config, output_dir)()

    def discard_graph(self) -> None:
        """Stop layouts, unbind interaction and forget the current graph."""

        if self._controller is not None:
            self._controller.detach()
        if self._engine is not None:
            self._engine.dispose()
        if self._graph is not None:
            LOGGER.info("Discarded graph (nodes=%d)", self._graph.order)
        self._controller = None
        self._engine = None
        self._graph = None

    def close(self) -> None:
        self.discard_graph()
        self._table = None

    def _new_controller(self, graph: NetworkGraph, engine: LayoutEngine) -> InteractionController:
        return InteractionController(
            graph,
            self._surface,
            engine.store,
            opener=self._opener,
            click_threshold_px=self._config.interaction.click_threshold_px,
        )
