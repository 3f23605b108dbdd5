"""Typed pointer events, camera math and a headless rendering surface."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from backend.netviz.graph.model import Extents

LOGGER = logging.getLogger(__name__)


class SurfaceEventType(str, Enum):
    """Events a rendering surface emits towards interaction handlers."""

    NODE_DOWN = "nodeDown"
    NODE_UP = "nodeUp"
    POINTER_MOVE = "pointerMove"
    NODE_CLICK = "nodeClick"
    NODE_DOUBLE_CLICK = "nodeDoubleClick"


@dataclass
class SurfaceEvent:
    """Pointer event in screen coordinates.

    ``node_id`` is set for node events. Handlers call ``prevent_default`` to
    suppress the surface's own behaviour (camera panning while dragging).
    """

    type: SurfaceEventType
    screen_x: float = 0.0
    screen_y: float = 0.0
    node_id: Optional[str] = None
    default_prevented: bool = field(default=False, compare=False)

    def prevent_default(self) -> None:
        self.default_prevented = True


EventHandler = Callable[[SurfaceEvent], None]


class RenderingSurface(Protocol):
    """Protocol describing what interaction and layout need from a surface."""

    @property
    def camera(self) -> "Camera":
        """Return the camera mapping screen space to graph space."""

    def on(self, event_type: SurfaceEventType, handler: EventHandler) -> Callable[[], None]:
        """Subscribe ``handler`` and return a callable that unsubscribes it."""

    def viewport_to_graph(self, x: float, y: float) -> Tuple[float, float]:
        """Translate screen coordinates into graph coordinates."""


class SurfaceEventEmitter:
    """Minimal typed event bus."""

    def __init__(self) -> None:
        self._handlers: Dict[SurfaceEventType, List[EventHandler]] = {}

    def on(self, event_type: SurfaceEventType, handler: EventHandler) -> Callable[[], None]:
        handlers = self._handlers.setdefault(SurfaceEventType(event_type), [])
        handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def emit(self, event: SurfaceEvent) -> SurfaceEvent:
        for handler in list(self._handlers.get(event.type, ())):
            handler(event)
        return event

    def handler_count(self, event_type: Optional[SurfaceEventType] = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, ()))
        return sum(len(handlers) for handlers in self._handlers.values())


class Camera:
    """Viewport camera: a graph-space centre and a graph-units-per-pixel ratio.

    Screen ``y`` grows downwards while graph ``y`` grows upwards.
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Viewport dimensions must be positive")
        self.width = width
        self.height = height
        self.center_x = 0.0
        self.center_y = 0.0
        self.ratio = 1.0
        self.custom_bbox: Optional[Extents] = None

    def viewport_to_graph(self, x: float, y: float) -> Tuple[float, float]:
        graph_x = self.center_x + (x - self.width / 2.0) * self.ratio
        graph_y = self.center_y - (y - self.height / 2.0) * self.ratio
        return graph_x, graph_y

    def graph_to_viewport(self, x: float, y: float) -> Tuple[float, float]:
        screen_x = (x - self.center_x) / self.ratio + self.width / 2.0
        screen_y = (self.center_y - y) / self.ratio + self.height / 2.0
        return screen_x, screen_y

    def fit(self, extents: Extents, padding: float = 0.05) -> None:
        """Centre on ``extents`` and zoom so it fits inside the viewport."""

        self.center_x = (extents.min_x + extents.max_x) / 2.0
        self.center_y = (extents.min_y + extents.max_y) / 2.0
        spans = []
        if extents.width > 0:
            spans.append(extents.width / self.width)
        if extents.height > 0:
            spans.append(extents.height / self.height)
        self.ratio = max(spans) * (1.0 + 2 * padding) if spans else 1.0

    def freeze_bbox(self, extents: Extents) -> None:
        """Pin the bounding box used for fitting; later graph growth is ignored."""

        if self.custom_bbox is None:
            self.custom_bbox = extents

    def follow(self, extents: Extents) -> None:
        """Fit to the frozen bounding box when set, otherwise to ``extents``."""

        self.fit(self.custom_bbox or extents)

    def window(self) -> Extents:
        """Graph-space rectangle currently visible."""

        min_x, max_y = self.viewport_to_graph(0.0, 0.0)
        max_x, min_y = self.viewport_to_graph(float(self.width), float(self.height))
        return Extents(min_x=min_x, max_x=max_x, min_y=min_y, max_y=max_y)

    def reset(self) -> None:
        self.center_x = 0.0
        self.center_y = 0.0
        self.ratio = 1.0
        self.custom_bbox = None

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.center_x, "y": self.center_y, "ratio": self.ratio}


class HeadlessSurface:
    """Rendering surface without a display, driven by forwarded client events."""

    def __init__(self, width: int = 1280, height: int = 800) -> None:
        self._emitter = SurfaceEventEmitter()
        self._camera = Camera(width, height)
        self.refresh_count = 0

    @property
    def camera(self) -> Camera:
        return self._camera

    @property
    def width(self) -> int:
        return self._camera.width

    @property
    def height(self) -> int:
        return self._camera.height

    def on(self, event_type: SurfaceEventType, handler: EventHandler) -> Callable[[], None]:
        return self._emitter.on(event_type, handler)

    def emit(self, event: SurfaceEvent) -> SurfaceEvent:
        return self._emitter.emit(event)

    def handler_count(self, event_type: Optional[SurfaceEventType] = None) -> int:
        return self._emitter.handler_count(event_type)

    def viewport_to_graph(self, x: float, y: float) -> Tuple[float, float]:
        return self._camera.viewport_to_graph(x, y)

    def refresh(self, update: object = None) -> None:
        self.refresh_count += 1
