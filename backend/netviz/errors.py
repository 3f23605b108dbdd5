"""Domain exceptions shared across the visualization pipeline."""
from __future__ import annotations


class NetvizError(RuntimeError):
    """Base class for errors raised by the visualization backend."""


class TableParseError(NetvizError):
    """Raised when delimited text does not contain a header row."""


class RenderingTargetMissingError(NetvizError):
    """Raised when a layout or interaction component has no surface to bind to."""


class UnknownNodeError(NetvizError, KeyError):
    """Raised when a node identity is not present in the graph."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Unknown node: {self.node_id}"


class LayoutClosedError(NetvizError):
    """Raised when commanding a layout engine that has been disposed."""


class SnapshotExportError(NetvizError):
    """Raised when a snapshot image cannot be produced."""


class SessionStateError(NetvizError):
    """Raised when a command needs a table or graph that has not been loaded."""
