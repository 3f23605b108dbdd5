"""Node positioning: leases, strategies, ForceAtlas2 and the layout engine."""

from .easing import EASINGS, Easing, cubic_in_out, get_easing, linear, quadratic_in_out
from .engine import AnimationKind, LayoutEngine, LayoutSnapshot, LayoutState
from .forceatlas import ForceAtlas2, ForceAtlas2Settings, ForceAtlas2Worker, infer_settings
from .positions import DRAG_OWNER, PositionLease, PositionStore, PositionUpdate
from .strategies import animate_nodes, circular_positions, random_positions

__all__ = [
    "AnimationKind",
    "DRAG_OWNER",
    "EASINGS",
    "Easing",
    "ForceAtlas2",
    "ForceAtlas2Settings",
    "ForceAtlas2Worker",
    "LayoutEngine",
    "LayoutSnapshot",
    "LayoutState",
    "PositionLease",
    "PositionStore",
    "PositionUpdate",
    "animate_nodes",
    "circular_positions",
    "cubic_in_out",
    "get_easing",
    "infer_settings",
    "linear",
    "quadratic_in_out",
    "random_positions",
]
