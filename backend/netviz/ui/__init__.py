"""Browser viewer for the network visualization service."""

from .viewer import render_viewer_html

__all__ = ["render_viewer_html"]
