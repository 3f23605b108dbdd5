"""Node color and size encodings."""

from .styler import DEFAULT_PALETTE, GraphStyler

__all__ = ["DEFAULT_PALETTE", "GraphStyler"]
