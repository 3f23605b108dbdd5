"""Surface events and the drag/click interaction controller."""

from .controller import DEFAULT_CLICK_THRESHOLD_PX, DragState, InteractionController, is_click
from .events import (
    Camera,
    EventHandler,
    HeadlessSurface,
    RenderingSurface,
    SurfaceEvent,
    SurfaceEventEmitter,
    SurfaceEventType,
)
from .opener import BrowserUrlOpener, RecordingUrlOpener, UrlOpener

__all__ = [
    "BrowserUrlOpener",
    "Camera",
    "DEFAULT_CLICK_THRESHOLD_PX",
    "DragState",
    "EventHandler",
    "HeadlessSurface",
    "InteractionController",
    "RecordingUrlOpener",
    "RenderingSurface",
    "SurfaceEvent",
    "SurfaceEventEmitter",
    "SurfaceEventType",
    "UrlOpener",
    "is_click",
]
