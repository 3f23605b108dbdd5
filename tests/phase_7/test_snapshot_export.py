"""Tests for snapshot configuration and the matplotlib exporter."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from backend.netviz.config import ExportConfig
from backend.netviz.errors import SnapshotExportError
from backend.netviz.export import MatplotlibSnapshotExporter, SnapshotConfig
from backend.netviz.graph import GraphNode, NetworkGraph
from backend.netviz.interaction import HeadlessSurface

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8"


def _graph() -> NetworkGraph:
    graph = NetworkGraph()
    graph.add_node(GraphNode(node_id="A", label="Alpha", category="s", color="#1f77b4", size=8.0, x=-5.0, y=0.0))
    graph.add_node(GraphNode(node_id="B", label="Beta", category="o", color="#ff7f0e", size=4.0, x=5.0, y=3.0))
    graph.add_node(GraphNode(node_id="C", label="Gamma", category="o", x=0.0, y=-4.0, hidden=True))
    graph.add_edge("A", "B", weight=2)
    graph.add_edge("A", "C")
    return graph


def _surface() -> HeadlessSurface:
    surface = HeadlessSurface(width=320, height=200)
    surface.camera.fit(_graph().extents())
    return surface


def test_config_defaults_and_file_name_resolution() -> None:
    config = SnapshotConfig()

    assert config.resolved_file_name() == "graph.png"
    assert SnapshotConfig(format="jpeg", file_name="shot").resolved_file_name() == "shot.jpeg"
    assert SnapshotConfig(format="jpeg", file_name="shot.JPG").resolved_file_name() == "shot.JPG"
    assert SnapshotConfig(file_name="shot.jpeg").resolved_file_name() == "shot.jpeg.png"


@pytest.mark.parametrize(
    "overrides",
    [
        {"layers": ("nodes", "halo")},
        {"background_color": "white"},
        {"file_name": "../escape"},
        {"file_name": ""},
        {"width": 0},
        {"format": "gif"},
    ],
)
def test_config_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        SnapshotConfig(**overrides)


def test_config_deduplicates_layers() -> None:
    config = SnapshotConfig(layers=("nodes", "labels", "nodes"))

    assert config.layers == ("nodes", "labels")


def test_config_from_export_section() -> None:
    section = ExportConfig(file_name="network", format="jpeg", background_color="#101010", layers=["nodes"])

    config = SnapshotConfig.from_export_config(section)

    assert config.format == "jpeg"
    assert config.file_name == "network"
    assert config.background_color == "#101010"
    assert config.layers == ("nodes",)
    assert config.reset_camera is False


def test_exports_png_with_all_layers(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    exporter = MatplotlibSnapshotExporter()

    with caplog.at_level(logging.INFO):
        path = exporter.export(_surface(), _graph(), SnapshotConfig(), tmp_path / "out")

    assert path == tmp_path / "out" / "graph.png"
    assert path.read_bytes().startswith(PNG_MAGIC)
    assert "Wrote png snapshot" in caplog.text


def test_exports_jpeg_with_reset_camera_and_custom_size(tmp_path: Path) -> None:
    exporter = MatplotlibSnapshotExporter(dpi=50)
    config = SnapshotConfig(
        format="jpeg",
        file_name="view",
        background_color="#000000",
        width=200,
        height=100,
        reset_camera=True,
        layers=("nodes",),
    )

    path = exporter.export(_surface(), _graph(), config, tmp_path)

    assert path.name == "view.jpeg"
    assert path.read_bytes().startswith(JPEG_MAGIC)


def test_exports_empty_graph(tmp_path: Path) -> None:
    path = MatplotlibSnapshotExporter().export(
        HeadlessSurface(width=100, height=100),
        NetworkGraph(),
        SnapshotConfig(reset_camera=True),
        tmp_path,
    )

    assert path.exists()


def test_unwritable_target_raises_export_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")

    with pytest.raises(SnapshotExportError):
        MatplotlibSnapshotExporter().export(_surface(), _graph(), SnapshotConfig(), blocker)


def test_exporter_rejects_non_positive_dpi() -> None:
    with pytest.raises(ValueError):
        MatplotlibSnapshotExporter(dpi=0)
