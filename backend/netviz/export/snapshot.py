"""Raster snapshots of the current graph rendering."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Literal

from backend.netviz.config import SNAPSHOT_LAYERS, ExportConfig
from backend.netviz.errors import SnapshotExportError
from backend.netviz.graph.model import Extents, NetworkGraph
from backend.netviz.interaction.events import Camera

LOGGER = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")
_EXTENSIONS = {"png": (".png",), "jpeg": (".jpeg", ".jpg")}
_FIT_PADDING = 0.05
_EDGE_COLOR = "#cccccc"
_LABEL_COLOR = "#000000"


class _FrozenModel(BaseModel):
    """Base class for immutable Pydantic models."""

    model_config = ConfigDict(frozen=True)


class SnapshotConfig(_FrozenModel):
    """Options controlling a snapshot image."""

    format: Literal["png", "jpeg"] = "png"
    file_name: str = Field("graph", min_length=1)
    background_color: str = "#ffffff"
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    reset_camera: bool = False
    layers: Tuple[str, ...] = Field(default=SNAPSHOT_LAYERS)

    @field_validator("background_color")
    @classmethod
    def _validate_background(cls, value: str) -> str:
        if not _HEX_COLOR.match(value):
            raise ValueError(f"'{value}' is not a #RRGGBB color")
        return value

    @field_validator("file_name")
    @classmethod
    def _validate_file_name(cls, value: str) -> str:
        if Path(value).name != value:
            raise ValueError("file_name must not contain directory components")
        return value

    @field_validator("layers")
    @classmethod
    def _validate_layers(cls, values: Tuple[str, ...]) -> Tuple[str, ...]:
        unknown = [value for value in values if value not in SNAPSHOT_LAYERS]
        if unknown:
            raise ValueError(f"Unknown snapshot layers: {', '.join(unknown)}")
        return tuple(dict.fromkeys(values))

    @classmethod
    def from_export_config(cls, config: ExportConfig) -> "SnapshotConfig":
        """Build defaults from the ``export`` configuration section."""

        return cls(
            format=config.format,
            file_name=config.file_name,
            background_color=config.background_color,
            layers=tuple(config.layers),
        )

    def resolved_file_name(self) -> str:
        """Return the file name with an extension matching ``format``."""

        if self.file_name.lower().endswith(_EXTENSIONS[self.format]):
            return self.file_name
        return f"{self.file_name}.{self.format}"


class SnapshotSurface(Protocol):
    """What an exporter needs from a rendering surface."""

    @property
    def camera(self) -> Camera:
        """Return the camera describing the current view."""


class SnapshotExporter(Protocol):
    """Protocol describing snapshot writers."""

    def export(
        self,
        surface: SnapshotSurface,
        graph: NetworkGraph,
        config: SnapshotConfig,
        output_dir: Path,
    ) -> Path:
        """Render ``graph`` as seen on ``surface`` and return the written file."""


def _fit_window(extents: Extents, aspect: float) -> Extents:
    """Pad ``extents`` and widen one axis to match ``aspect`` (width/height)."""

    center_x = (extents.min_x + extents.max_x) / 2.0
    center_y = (extents.min_y + extents.max_y) / 2.0
    half_w = max(extents.width, 1e-9) / 2.0 * (1.0 + 2 * _FIT_PADDING)
    half_h = max(extents.height, 1e-9) / 2.0 * (1.0 + 2 * _FIT_PADDING)
    if extents.width == 0 and extents.height == 0:
        half_w = half_h = 1.0
    if half_w / half_h < aspect:
        half_w = half_h * aspect
    else:
        half_h = half_w / aspect
    return Extents(center_x - half_w, center_x + half_w, center_y - half_h, center_y + half_h)


class MatplotlibSnapshotExporter:
    """Draw the requested layers with matplotlib's Agg canvas."""

    def __init__(self, dpi: int = 100) -> None:
        if dpi <= 0:
            raise ValueError("dpi must be positive")
        self._dpi = dpi

    def export(
        self,
        surface: SnapshotSurface,
        graph: NetworkGraph,
        config: SnapshotConfig,
        output_dir: Path,
    ) -> Path:
        """Render ``graph`` and write the image to ``output_dir``.

        Args:
            surface: Surface whose camera and viewport define the view.
            graph: Styled, positioned graph to draw.
            config: Snapshot options.
            output_dir: Directory receiving the image; created when missing.

        Returns:
            Path: Location of the written image.

        Raises:
            SnapshotExportError: If the image cannot be rendered or written.
        """

        camera = surface.camera
        width = config.width or camera.width
        height = config.height or camera.height
        if config.reset_camera:
            window = _fit_window(graph.extents(), width / height)
        else:
            window = camera.window()

        figure = Figure(figsize=(width / self._dpi, height / self._dpi), dpi=self._dpi)
        FigureCanvasAgg(figure)
        figure.patch.set_facecolor(config.background_color)
        axes = figure.add_axes((0.0, 0.0, 1.0, 1.0))
        axes.set_facecolor(config.background_color)
        axes.set_axis_off()
        axes.set_xlim(window.min_x, window.max_x)
        axes.set_ylim(window.min_y, window.max_y)
        self._draw_layers(axes, graph, config.layers)

        target = Path(output_dir) / config.resolved_file_name()
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            figure.savefig(
                target,
                format=config.format,
                dpi=self._dpi,
                facecolor=config.background_color,
            )
        except (OSError, ValueError) as exc:
            LOGGER.error("Failed to write snapshot to %s: %s", target, exc)
            raise SnapshotExportError(f"Unable to write snapshot to {target}") from exc
        LOGGER.info(
            "Wrote %s snapshot %s (%dx%d, layers=%s)",
            config.format,
            target,
            width,
            height,
            ",".join(config.layers),
        )
        return target

    def _draw_layers(self, axes, graph: NetworkGraph, layers: Tuple[str, ...]) -> None:
        positions = graph.positions()
        edges = graph.edges()
        if "edges" in layers and edges:
            segments = [[positions[edge.source], positions[edge.target]] for edge in edges]
            axes.add_collection(LineCollection(segments, colors=_EDGE_COLOR, linewidths=0.8, zorder=1))
        if "edgeLabels" in layers:
            for edge in edges:
                (x0, y0), (x1, y1) = positions[edge.source], positions[edge.target]
                axes.text(
                    (x0 + x1) / 2.0,
                    (y0 + y1) / 2.0,
                    str(edge.weight),
                    fontsize=6,
                    color=_LABEL_COLOR,
                    ha="center",
                    va="center",
                    zorder=2,
                )
        visible = [node for node in graph.nodes() if not node.hidden]
        if "nodes" in layers and visible:
            axes.scatter(
                [node.x for node in visible],
                [node.y for node in visible],
                s=self._marker_areas([node.size for node in visible]),
                c=[node.color or "#000000" for node in visible],
                zorder=3,
            )
        if "labels" in layers:
            for node in visible:
                axes.annotate(
                    node.label,
                    (node.x, node.y),
                    xytext=(4, 4),
                    textcoords="offset points",
                    fontsize=7,
                    color=_LABEL_COLOR,
                    zorder=4,
                )

    def _marker_areas(self, sizes: List[Optional[float]]) -> List[float]:
        # node size is a pixel radius; scatter expects the marker diameter in points, squared
        points_per_pixel = 72.0 / self._dpi
        return [(2.0 * (size or 1.0) * points_per_pixel) ** 2 for size in sizes]
