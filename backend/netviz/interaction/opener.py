"""Strategies for opening node URLs in a new browsing context."""
from __future__ import annotations

import logging
import webbrowser
from typing import List, Protocol

LOGGER = logging.getLogger(__name__)


class UrlOpener(Protocol):
    """Protocol describing how node navigation is performed."""

    def open(self, url: str) -> None:
        """Open ``url`` in a new browsing context."""


class BrowserUrlOpener:
    """Open URLs in a new tab of the local web browser."""

    def open(self, url: str) -> None:
        if not webbrowser.open_new_tab(url):
            LOGGER.warning("No browser available to open %s", url)


class RecordingUrlOpener:
    """Collect URLs instead of opening them; the web client opens them."""

    def __init__(self) -> None:
        self.opened: List[str] = []

    def open(self, url: str) -> None:
        self.opened.append(url)

    def drain(self) -> List[str]:
        urls, self.opened = self.opened, []
        return urls
