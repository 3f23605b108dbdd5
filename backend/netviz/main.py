"""FastAPI application factory for the network visualization service."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from backend.netviz.config import REPO_ROOT, SNAPSHOT_LAYERS, AppConfig, load_config
from backend.netviz.errors import (
    LayoutClosedError,
    RenderingTargetMissingError,
    SessionStateError,
    SnapshotExportError,
    TableParseError,
    UnknownNodeError,
)
from backend.netviz.export.snapshot import SnapshotConfig
from backend.netviz.interaction.events import HeadlessSurface, SurfaceEvent, SurfaceEventType
from backend.netviz.interaction.opener import RecordingUrlOpener
from backend.netviz.layout.engine import LayoutEngine
from backend.netviz.session import GraphSession
from backend.netviz.ui.viewer import render_viewer_html

LOGGER = logging.getLogger(__name__)


class TableUploadRequest(BaseModel):
    """Delimited table text uploaded by the viewer."""

    text: str = Field(..., description="Delimited table; the first line holds the headers")


class TableResponse(BaseModel):
    """Headers and row count of the loaded table."""

    headers: List[str]
    row_count: int


class PlotRequest(BaseModel):
    """Categories confirmed by the user."""

    categories: List[str] = Field(default_factory=list)


class PlotResponse(BaseModel):
    """Outcome of a plot request."""

    plotted: bool
    node_count: int = 0
    edge_count: int = 0


class LayoutStateResponse(BaseModel):
    """Layout engine state after a command."""

    state: str
    animation_kind: Optional[str] = None
    force_directed_running: bool


class SurfaceEventRequest(BaseModel):
    """Pointer event forwarded from the viewer canvas."""

    type: SurfaceEventType
    screen_x: float = 0.0
    screen_y: float = 0.0
    node_id: Optional[str] = None


class SurfaceEventResponse(BaseModel):
    """Effects of a forwarded pointer event."""

    default_prevented: bool
    drag_state: str
    open_urls: List[str] = Field(default_factory=list)


class SnapshotRequest(BaseModel):
    """Snapshot options; omitted values fall back to configured defaults."""

    format: Optional[str] = None
    file_name: Optional[str] = None
    background_color: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    reset_camera: bool = False
    layers: Optional[List[str]] = None


class SnapshotResponse(BaseModel):
    """Location of a written snapshot."""

    path: str
    file_name: str


class UISettingsResponse(BaseModel):
    """Configuration defaults surfaced to the viewer."""

    viewport: Dict[str, int]
    export: Dict[str, object]
    interaction: Dict[str, float]
    poll_interval_ms: int


@contextlib.contextmanager
def _http_errors(action: str) -> Iterator[None]:
    """Translate domain errors raised inside the block into HTTP errors."""

    try:
        yield
    except HTTPException:
        raise
    except TableParseError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UnknownNodeError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (SessionStateError, LayoutClosedError, RenderingTargetMissingError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except SnapshotExportError as exc:
        LOGGER.exception("Failed to %s", action)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except Exception as exc:  # noqa: BLE001 - unexpected failures become 500s
        LOGGER.exception("Failed to %s", action)
        raise HTTPException(status_code=500, detail=f"Unable to {action}") from exc


def _layout_response(engine: LayoutEngine) -> LayoutStateResponse:
    return LayoutStateResponse(**engine.snapshot().to_dict())


def _drain_navigations(session: GraphSession) -> List[str]:
    opener = session.opener
    if isinstance(opener, RecordingUrlOpener):
        return opener.drain()
    return []


def _resolve_snapshot_dir(config: AppConfig) -> Path:
    output_dir = Path(config.export.output_dir)
    if not output_dir.is_absolute():
        output_dir = REPO_ROOT / output_dir
    return output_dir.resolve()


def create_app(
    config: AppConfig | None = None,
    session: Optional[GraphSession] = None,
    snapshot_dir: Optional[Path] = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Optional pre-loaded configuration. If omitted, the default
            configuration defined in config.yaml is used.
        session: Optional graph session. When omitted a session bound to a
            headless surface sized from ``ui.viewport_*`` is created.
        snapshot_dir: Directory receiving snapshot images; defaults to
            ``export.output_dir`` relative to the repository root.

    Returns:
        FastAPI: Configured FastAPI application.
    """

    resolved_config = config or load_config()
    app = FastAPI(title=resolved_config.app.name, version=resolved_config.app.version)
    app.state.app_config = resolved_config

    if session is None:
        surface = HeadlessSurface(
            resolved_config.ui.viewport_width,
            resolved_config.ui.viewport_height,
        )
        session = GraphSession(resolved_config, surface=surface, opener=RecordingUrlOpener())
    graph_session = session
    app.state.session = graph_session
    app.state.snapshot_dir = snapshot_dir or _resolve_snapshot_dir(resolved_config)
    max_upload_bytes = resolved_config.table.max_upload_mb * 1024 * 1024

    allowed_origins = resolved_config.ui.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("shutdown")
    async def _close_session() -> None:
        graph_session.close()

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {"status": "ok", "version": resolved_config.app.version}

    @app.get("/api/ui/settings", tags=["ui"], summary="UI configuration defaults")
    def ui_settings() -> UISettingsResponse:
        """Return UI defaults sourced from the configuration file."""

        export_cfg = resolved_config.export
        return UISettingsResponse(
            viewport={
                "width": resolved_config.ui.viewport_width,
                "height": resolved_config.ui.viewport_height,
            },
            export={
                "file_name": export_cfg.file_name,
                "format": export_cfg.format,
                "background_color": export_cfg.background_color,
                "layers": list(export_cfg.layers),
                "layers_available": list(SNAPSHOT_LAYERS),
            },
            interaction={"click_threshold_px": resolved_config.interaction.click_threshold_px},
            poll_interval_ms=resolved_config.ui.poll_interval_ms,
        )

    @app.post("/api/table", tags=["graph"], summary="Load a delimited table")
    async def load_table(request: TableUploadRequest) -> TableResponse:
        """Parse the uploaded table and discard the current graph."""

        if len(request.text.encode("utf-8")) > max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Table exceeds {resolved_config.table.max_upload_mb} MB limit",
            )
        with _http_errors("load table"):
            table = graph_session.load_table(request.text)
        return TableResponse(headers=list(table.headers), row_count=table.row_count)

    @app.post("/api/graph", tags=["graph"], summary="Plot the selected categories")
    async def plot_graph(request: PlotRequest) -> PlotResponse:
        """Build, style and lay out a graph from the loaded table."""

        with _http_errors("plot graph"):
            graph = graph_session.plot(request.categories)
        if graph is None:
            return PlotResponse(plotted=False)
        return PlotResponse(plotted=True, node_count=graph.order, edge_count=graph.size)

    @app.get("/api/graph", tags=["graph"], summary="Current positioned graph")
    async def graph_view() -> dict[str, object]:
        """Return nodes, edges, layout state and camera for rendering."""

        with _http_errors("render graph"):
            return graph_session.view_payload()

    @app.post("/api/layout/forceatlas2/toggle", tags=["layout"], summary="Start or stop ForceAtlas2")
    async def toggle_forceatlas2() -> LayoutStateResponse:
        with _http_errors("toggle force-directed layout"):
            engine = graph_session.require_engine()
            engine.toggle_force_directed()
            return _layout_response(engine)

    @app.post("/api/layout/random", tags=["layout"], summary="Animate to a random layout")
    async def random_layout() -> LayoutStateResponse:
        with _http_errors("start random layout"):
            engine = graph_session.require_engine()
            engine.trigger_random()
            return _layout_response(engine)

    @app.post("/api/layout/circular", tags=["layout"], summary="Animate to a circular layout")
    async def circular_layout() -> LayoutStateResponse:
        with _http_errors("start circular layout"):
            engine = graph_session.require_engine()
            engine.trigger_circular()
            return _layout_response(engine)

    @app.post("/api/surface/events", tags=["interaction"], summary="Forward a pointer event")
    async def surface_event(request: SurfaceEventRequest) -> SurfaceEventResponse:
        """Dispatch a client pointer event and report navigations to perform."""

        event = SurfaceEvent(
            type=request.type,
            screen_x=request.screen_x,
            screen_y=request.screen_y,
            node_id=request.node_id,
        )
        with _http_errors("handle surface event"):
            graph_session.dispatch(event)
        controller = graph_session.controller
        return SurfaceEventResponse(
            default_prevented=event.default_prevented,
            drag_state=controller.state.value if controller is not None else "idle",
            open_urls=_drain_navigations(graph_session),
        )

    @app.post("/api/export/snapshot", tags=["export"], summary="Save a snapshot image")
    async def export_snapshot(request: SnapshotRequest) -> SnapshotResponse:
        """Render the current graph to an image file."""

        defaults = SnapshotConfig.from_export_config(resolved_config.export)
        overrides = request.model_dump(exclude_none=True)
        with _http_errors("export snapshot"):
            snapshot_config = SnapshotConfig(**{**defaults.model_dump(), **overrides})
            render = graph_session.prepare_snapshot(snapshot_config, app.state.snapshot_dir)
            path = await asyncio.get_running_loop().run_in_executor(None, render)
        return SnapshotResponse(path=str(path), file_name=path.name)

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    def viewer() -> HTMLResponse:
        settings = ui_settings().model_dump()
        return HTMLResponse(render_viewer_html(settings, title=resolved_config.app.name))

    return app


def run() -> None:  # pragma: no cover - manual entry point
    """Serve the application with uvicorn."""

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(), host="127.0.0.1", port=8000)


if __name__ == "__main__":  # pragma: no cover
    run()
