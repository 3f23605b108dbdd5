"""Tests for the drag/click interaction state machine."""

from __future__ import annotations

from typing import Optional, Tuple

import pytest

from backend.netviz.errors import RenderingTargetMissingError, UnknownNodeError
from backend.netviz.graph import Extents, GraphNode, NetworkGraph
from backend.netviz.interaction import (
    DragState,
    HeadlessSurface,
    InteractionController,
    RecordingUrlOpener,
    SurfaceEvent,
    SurfaceEventType,
    is_click,
)
from backend.netviz.layout import PositionStore


def _setup(
    page_url: Optional[str] = "https://example.org/page/A",
    resource_url: Optional[str] = "https://example.org/A",
) -> Tuple[NetworkGraph, HeadlessSurface, InteractionController, RecordingUrlOpener]:
    graph = NetworkGraph()
    graph.add_node(
        GraphNode(
            node_id="A",
            label="A",
            category="Subject",
            page_url=page_url,
            resource_url=resource_url,
        )
    )
    graph.add_node(GraphNode(node_id="B", label="B", category="Object", x=10.0, y=10.0))
    surface = HeadlessSurface(width=200, height=100)
    opener = RecordingUrlOpener()
    controller = InteractionController(graph, surface, PositionStore(graph), opener=opener)
    return graph, surface, controller, opener


def _emit(surface: HeadlessSurface, kind: SurfaceEventType, x: float, y: float, node: Optional[str] = None) -> SurfaceEvent:
    return surface.emit(SurfaceEvent(type=kind, screen_x=x, screen_y=y, node_id=node))


@pytest.mark.parametrize(
    ("dx", "dy", "expected"),
    [(0, 0, True), (5.9, -5.9, True), (6, 0, False), (0, -6, False), (10, 10, False)],
)
def test_click_classification_threshold(dx: float, dy: float, expected: bool) -> None:
    assert is_click(dx, dy) is expected


def test_missing_surface_is_fatal() -> None:
    graph = NetworkGraph()
    with pytest.raises(RenderingTargetMissingError):
        InteractionController(graph, None, PositionStore(graph))


def test_drag_moves_node_and_suppresses_camera() -> None:
    graph, surface, controller, _ = _setup()

    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")
    assert controller.state is DragState.DRAGGING
    assert controller.dragged_node == "A"
    assert graph.node("A").highlighted is True

    move = _emit(surface, SurfaceEventType.POINTER_MOVE, 150, 20)
    assert move.default_prevented
    assert (graph.node("A").x, graph.node("A").y) == surface.viewport_to_graph(150, 20)

    _emit(surface, SurfaceEventType.NODE_UP, 150, 20)
    assert controller.state is DragState.IDLE
    assert graph.node("A").highlighted is False
    assert controller.last_gesture_was_click is False


def test_second_press_moves_highlight_to_new_node() -> None:
    graph, surface, controller, _ = _setup()
    a_before = (graph.node("A").x, graph.node("A").y)

    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")
    _emit(surface, SurfaceEventType.NODE_DOWN, 120, 40, "B")

    assert graph.node("A").highlighted is False
    assert graph.node("B").highlighted is True
    assert controller.dragged_node == "B"

    _emit(surface, SurfaceEventType.POINTER_MOVE, 150, 20)
    _emit(surface, SurfaceEventType.NODE_UP, 150, 20)

    assert (graph.node("A").x, graph.node("A").y) == a_before
    assert (graph.node("B").x, graph.node("B").y) == surface.viewport_to_graph(150, 20)
    assert not any(node.highlighted for node in graph.nodes())


def test_pointer_move_without_drag_is_ignored() -> None:
    graph, surface, _, _ = _setup()

    event = _emit(surface, SurfaceEventType.POINTER_MOVE, 150, 20)

    assert not event.default_prevented
    assert (graph.node("A").x, graph.node("A").y) == (0.0, 0.0)


def test_click_after_small_gesture_opens_page_url() -> None:
    _, surface, controller, opener = _setup()

    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")
    _emit(surface, SurfaceEventType.NODE_UP, 103, 52)
    _emit(surface, SurfaceEventType.NODE_CLICK, 103, 52, "A")

    assert controller.last_gesture_was_click
    assert opener.drain() == ["https://example.org/page/A"]


def test_click_after_drag_is_suppressed() -> None:
    _, surface, _, opener = _setup()

    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")
    _emit(surface, SurfaceEventType.POINTER_MOVE, 120, 50)
    _emit(surface, SurfaceEventType.NODE_UP, 120, 50)
    _emit(surface, SurfaceEventType.NODE_CLICK, 120, 50, "A")

    assert opener.opened == []


def test_click_on_hidden_node_is_ignored() -> None:
    graph, surface, _, opener = _setup()
    graph.node("A").hidden = True

    _emit(surface, SurfaceEventType.NODE_CLICK, 0, 0, "A")

    assert opener.opened == []


def test_double_click_opens_resource_url_even_after_drag() -> None:
    _, surface, _, opener = _setup()

    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")
    _emit(surface, SurfaceEventType.NODE_UP, 180, 90)
    _emit(surface, SurfaceEventType.NODE_DOUBLE_CLICK, 180, 90, "A")

    assert opener.opened == ["https://example.org/A"]


def test_navigation_without_urls_is_noop() -> None:
    _, surface, _, opener = _setup(page_url=None, resource_url=None)

    _emit(surface, SurfaceEventType.NODE_CLICK, 0, 0, "A")
    _emit(surface, SurfaceEventType.NODE_DOUBLE_CLICK, 0, 0, "A")

    assert opener.opened == []


def test_pointer_down_freezes_camera_bounding_box() -> None:
    graph, surface, _, _ = _setup()
    assert surface.camera.custom_bbox is None

    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")
    frozen = surface.camera.custom_bbox
    graph.set_position("B", 500.0, 500.0)
    _emit(surface, SurfaceEventType.NODE_UP, 100, 50)
    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "B")

    assert frozen == Extents(0.0, 10.0, 0.0, 10.0)
    assert surface.camera.custom_bbox == frozen


def test_unknown_node_event_raises() -> None:
    _, surface, _, _ = _setup()

    with pytest.raises(UnknownNodeError):
        _emit(surface, SurfaceEventType.NODE_DOWN, 0, 0, "ghost")


def test_detach_unsubscribes_all_handlers() -> None:
    graph, surface, controller, opener = _setup()
    _emit(surface, SurfaceEventType.NODE_DOWN, 100, 50, "A")

    controller.detach()

    assert surface.handler_count() == 0
    assert graph.node("A").highlighted is False
    assert controller.state is DragState.IDLE
    _emit(surface, SurfaceEventType.NODE_DOUBLE_CLICK, 0, 0, "A")
    assert opener.opened == []
