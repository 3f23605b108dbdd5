"""Tests for the HTTP surface of the visualization service."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Tuple

from fastapi.testclient import TestClient

from backend.netviz.config import AppConfig, load_config
from backend.netviz.export import SnapshotConfig
from backend.netviz.interaction import HeadlessSurface, RecordingUrlOpener
from backend.netviz.main import create_app
from backend.netviz.session import GraphSession

TABLE = (
    "Subject\tPredicate\tObject\n"
    "<http://example.org/A>\t<http://example.org/knows>\t<http://example.org/B>\n"
    "<http://example.org/B>\t<http://example.org/knows>\t"
    '"42"^^<http://www.w3.org/2001/XMLSchema#integer>\n'
)


def _config(**table_overrides: object) -> AppConfig:
    config = load_config()
    layout = config.layout.model_copy(
        update={"animation_duration_seconds": 0.05, "frame_interval_seconds": 0.005}
    )
    table = config.table.model_copy(update=table_overrides)
    return config.model_copy(update={"layout": layout, "table": table})


def _plot(client: TestClient) -> None:
    assert client.post("/api/table", json={"text": TABLE}).status_code == 200
    response = client.post("/api/graph", json={"categories": ["Subject", "Object"]})
    assert response.status_code == 200


def _screen_position(view: Dict[str, object], node_id: str) -> Tuple[float, float]:
    camera = view["camera"]
    viewport = view["viewport"]
    node = next(item for item in view["nodes"] if item["id"] == node_id)
    screen_x = (node["x"] - camera["x"]) / camera["ratio"] + viewport["width"] / 2.0
    screen_y = (camera["y"] - node["y"]) / camera["ratio"] + viewport["height"] / 2.0
    return screen_x, screen_y


def test_health_and_settings(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        health = client.get("/health")
        settings = client.get("/api/ui/settings")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    body = settings.json()
    assert body["viewport"] == {"width": 1280, "height": 800}
    assert body["export"]["layers_available"] == ["edges", "nodes", "edgeLabels", "labels"]
    assert body["interaction"]["click_threshold_px"] == 6.0
    assert body["poll_interval_ms"] == 100


def test_table_upload_reports_headers(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        response = client.post("/api/table", json={"text": TABLE})
        empty = client.post("/api/table", json={"text": "  \n"})

    assert response.status_code == 200
    assert response.json() == {"headers": ["Subject", "Predicate", "Object"], "row_count": 2}
    assert empty.status_code == 400


def test_table_upload_enforces_size_limit(tmp_path: Path) -> None:
    app = create_app(config=_config(max_upload_mb=0), snapshot_dir=tmp_path)
    with TestClient(app) as client:
        response = client.post("/api/table", json={"text": TABLE})

    assert response.status_code == 413


def test_graph_commands_require_plot(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        assert client.post("/api/graph", json={"categories": ["Subject"]}).status_code == 409
        assert client.get("/api/graph").status_code == 409
        assert client.post("/api/layout/circular").status_code == 409
        assert client.post("/api/export/snapshot", json={}).status_code == 409


def test_plot_and_view_graph(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        client.post("/api/table", json={"text": TABLE})
        nothing = client.post("/api/graph", json={"categories": []})
        unknown = client.post("/api/graph", json={"categories": ["Colour"]})
        plotted = client.post("/api/graph", json={"categories": ["Subject", "Object"]})
        view = client.get("/api/graph").json()

    assert nothing.json() == {"plotted": False, "node_count": 0, "edge_count": 0}
    assert unknown.status_code == 400
    assert plotted.json() == {"plotted": True, "node_count": 3, "edge_count": 2}
    labels = sorted(node["label"] for node in view["nodes"])
    assert labels == ["42", "A", "B"]
    assert view["layout"]["state"] == "idle"
    assert set(view["camera"]) == {"x", "y", "ratio"}


def test_layout_commands_report_state(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        _plot(client)
        circular = client.post("/api/layout/circular").json()
        started = client.post("/api/layout/forceatlas2/toggle").json()
        random_layout = client.post("/api/layout/random").json()
        restarted = client.post("/api/layout/forceatlas2/toggle").json()
        stopped = client.post("/api/layout/forceatlas2/toggle").json()

    assert circular == {"state": "animating", "animation_kind": "circular", "force_directed_running": False}
    assert started == {"state": "force_directed", "animation_kind": None, "force_directed_running": True}
    assert random_layout["animation_kind"] == "random"
    assert random_layout["force_directed_running"] is False
    assert restarted["force_directed_running"] is True
    assert stopped == {"state": "idle", "animation_kind": None, "force_directed_running": False}


def test_surface_events_drag_and_navigate(tmp_path: Path) -> None:
    node_id = "http://example.org/A"
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        _plot(client)
        x, y = _screen_position(client.get("/api/graph").json(), node_id)
        down = client.post(
            "/api/surface/events",
            json={"type": "nodeDown", "screen_x": x, "screen_y": y, "node_id": node_id},
        ).json()
        move = client.post(
            "/api/surface/events",
            json={"type": "pointerMove", "screen_x": x + 2, "screen_y": y + 2},
        ).json()
        client.post("/api/surface/events", json={"type": "nodeUp", "screen_x": x + 2, "screen_y": y + 2})
        click = client.post(
            "/api/surface/events",
            json={"type": "nodeClick", "screen_x": x + 2, "screen_y": y + 2, "node_id": node_id},
        ).json()
        double = client.post(
            "/api/surface/events",
            json={"type": "nodeDoubleClick", "screen_x": x, "screen_y": y, "node_id": node_id},
        ).json()
        missing = client.post(
            "/api/surface/events",
            json={"type": "nodeDown", "screen_x": 0, "screen_y": 0, "node_id": "ghost"},
        )
        bogus = client.post("/api/surface/events", json={"type": "wheel"})

    assert down["drag_state"] == "dragging"
    assert move["default_prevented"] is True
    assert click == {"default_prevented": False, "drag_state": "idle", "open_urls": []}
    assert double["open_urls"] == [node_id]
    assert missing.status_code == 404
    assert bogus.status_code == 422


def test_snapshot_export_writes_file(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        _plot(client)
        response = client.post(
            "/api/export/snapshot",
            json={"file_name": "capture", "format": "jpeg", "layers": ["nodes", "labels"], "reset_camera": True},
        )
        invalid = client.post("/api/export/snapshot", json={"layers": ["halo"]})

    assert response.status_code == 200
    body = response.json()
    assert body["file_name"] == "capture.jpeg"
    assert (tmp_path / "capture.jpeg").exists()
    assert invalid.status_code == 400


def test_new_table_discards_plotted_graph(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        _plot(client)
        client.post("/api/layout/forceatlas2/toggle")
        client.post("/api/table", json={"text": "Name\n<http://example.org/solo>\n"})
        response = client.get("/api/graph")

    assert response.status_code == 409


def test_viewer_page_is_served(tmp_path: Path) -> None:
    with TestClient(create_app(config=_config(), snapshot_dir=tmp_path)) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "<canvas id=\"graph\">" in response.text


class _LoopAwareExporter:
    def __init__(self) -> None:
        self.rendered_on_loop: List[bool] = []

    def export(self, surface: object, graph: object, config: SnapshotConfig, output_dir: Path) -> Path:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.rendered_on_loop.append(False)
        else:
            self.rendered_on_loop.append(True)
        return Path(output_dir) / config.resolved_file_name()


def test_snapshot_renders_off_the_event_loop(tmp_path: Path) -> None:
    exporter = _LoopAwareExporter()
    config = _config()
    session = GraphSession(
        config,
        surface=HeadlessSurface(width=320, height=200),
        opener=RecordingUrlOpener(),
        exporter=exporter,
    )
    with TestClient(create_app(config=config, session=session, snapshot_dir=tmp_path)) as client:
        _plot(client)
        response = client.post("/api/export/snapshot", json={"file_name": "offloop"})

    assert response.status_code == 200
    assert response.json()["file_name"] == "offloop.png"
    assert exporter.rendered_on_loop == [False]
