"""Pointer-driven node dragging and click/double-click navigation."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from backend.netviz.errors import RenderingTargetMissingError
from backend.netviz.graph.model import NetworkGraph
from backend.netviz.interaction.events import RenderingSurface, SurfaceEvent, SurfaceEventType
from backend.netviz.interaction.opener import BrowserUrlOpener, UrlOpener
from backend.netviz.layout.positions import DRAG_OWNER, PositionStore

LOGGER = logging.getLogger(__name__)

DEFAULT_CLICK_THRESHOLD_PX = 6.0


class DragState(str, Enum):
    """Pointer gesture state."""

    IDLE = "idle"
    DRAGGING = "dragging"


def is_click(dx: float, dy: float, threshold: float = DEFAULT_CLICK_THRESHOLD_PX) -> bool:
    """Return True when a displacement stays below ``threshold`` on both axes."""

    return abs(dx) < threshold and abs(dy) < threshold


class InteractionController:
    """Bind surface events to the drag/click state machine.

    Pointer-down on a node starts a drag and highlights the node; pointer
    moves place the node under the cursor and suppress camera panning;
    pointer-up classifies the gesture. A click opens the node's ``page_url``
    only when the last gesture was a click, while a double-click opens its
    ``resource_url`` regardless of classification.
    """

    def __init__(
        self,
        graph: NetworkGraph,
        surface: Optional[RenderingSurface],
        positions: PositionStore,
        *,
        opener: Optional[UrlOpener] = None,
        click_threshold_px: float = DEFAULT_CLICK_THRESHOLD_PX,
    ) -> None:
        if surface is None:
            raise RenderingTargetMissingError("A rendering surface is required for interaction")
        if click_threshold_px <= 0:
            raise ValueError("click_threshold_px must be positive")
        self._graph = graph
        self._surface = surface
        self._positions = positions
        self._opener = opener or BrowserUrlOpener()
        self._threshold = click_threshold_px
        self._state = DragState.IDLE
        self._dragged_node: Optional[str] = None
        self._start: Optional[Tuple[float, float]] = None
        self._allow_click = True
        self._unsubscribers: List[Callable[[], None]] = [
            surface.on(SurfaceEventType.NODE_DOWN, self._on_node_down),
            surface.on(SurfaceEventType.POINTER_MOVE, self._on_pointer_move),
            surface.on(SurfaceEventType.NODE_UP, self._on_node_up),
            surface.on(SurfaceEventType.NODE_CLICK, self._on_node_click),
            surface.on(SurfaceEventType.NODE_DOUBLE_CLICK, self._on_node_double_click),
        ]

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def dragged_node(self) -> Optional[str]:
        return self._dragged_node

    @property
    def last_gesture_was_click(self) -> bool:
        return self._allow_click

    @property
    def click_threshold_px(self) -> float:
        return self._threshold

    def detach(self) -> None:
        """Unsubscribe from the surface and drop any drag in progress."""

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._dragged_node is not None and self._graph.has_node(self._dragged_node):
            self._graph.node(self._dragged_node).highlighted = False
        self._reset_drag()

    def _on_node_down(self, event: SurfaceEvent) -> None:
        if event.node_id is None:
            return
        node = self._graph.node(event.node_id)
        previous = self._dragged_node
        if previous is not None and previous != node.node_id and self._graph.has_node(previous):
            # a second press without release moves the drag to the new node
            self._graph.node(previous).highlighted = False
        self._start = (event.screen_x, event.screen_y)
        self._dragged_node = node.node_id
        self._state = DragState.DRAGGING
        node.highlighted = True
        self._surface.camera.freeze_bbox(self._graph.extents())
        LOGGER.debug("Drag started on %s", node.node_id)

    def _on_pointer_move(self, event: SurfaceEvent) -> None:
        if self._state is not DragState.DRAGGING or self._dragged_node is None:
            return
        x, y = self._surface.viewport_to_graph(event.screen_x, event.screen_y)
        self._positions.write_direct({self._dragged_node: (x, y)}, owner=DRAG_OWNER)
        event.prevent_default()

    def _on_node_up(self, event: SurfaceEvent) -> None:
        if self._state is not DragState.DRAGGING or self._dragged_node is None:
            return
        if self._graph.has_node(self._dragged_node):
            self._graph.node(self._dragged_node).highlighted = False
        start_x, start_y = self._start or (event.screen_x, event.screen_y)
        self._allow_click = is_click(event.screen_x - start_x, event.screen_y - start_y, self._threshold)
        LOGGER.debug(
            "Gesture on %s classified as %s",
            self._dragged_node,
            "click" if self._allow_click else "drag",
        )
        self._reset_drag()

    def _on_node_click(self, event: SurfaceEvent) -> None:
        if event.node_id is None:
            return
        node = self._graph.node(event.node_id)
        if node.hidden or not self._allow_click:
            return
        if node.page_url:
            self._opener.open(node.page_url)

    def _on_node_double_click(self, event: SurfaceEvent) -> None:
        if event.node_id is None:
            return
        node = self._graph.node(event.node_id)
        if node.resource_url:
            self._opener.open(node.resource_url)

    def _reset_drag(self) -> None:
        self._state = DragState.IDLE
        self._dragged_node = None
        self._start = None
