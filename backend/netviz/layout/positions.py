"""Single-writer access to node positions for layout mechanisms."""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from backend.netviz.graph.model import NetworkGraph, Position

LOGGER = logging.getLogger(__name__)

DRAG_OWNER = "drag"


@dataclass(frozen=True)
class PositionUpdate:
    """Batch of coordinates accepted by the store."""

    owner: str
    positions: Mapping[str, Position]


PositionListener = Callable[[PositionUpdate], None]


class PositionLease:
    """Write right granted to one layout mechanism at a time."""

    def __init__(self, store: "PositionStore", owner: str, token: int) -> None:
        self._store = store
        self.owner = owner
        self.token = token
        self._revoked = False

    @property
    def active(self) -> bool:
        return not self._revoked

    def revoke(self) -> None:
        self._revoked = True

    def write(self, positions: Mapping[str, Position]) -> bool:
        """Apply ``positions`` if this lease still holds the write right."""

        return self._store._write_leased(self, positions)

    def __repr__(self) -> str:
        state = "active" if self.active else "revoked"
        return f"PositionLease(owner={self.owner!r}, token={self.token}, {state})"


class PositionStore:
    """Gatekeeper for node coordinates held by a :class:`NetworkGraph`.

    Layout mechanisms must ``acquire`` a lease before writing; acquiring
    revokes the previous lease, so writes from a superseded animation or
    simulation are dropped. Pointer drags bypass leasing via ``write_direct``.
    """

    def __init__(self, graph: NetworkGraph) -> None:
        self._graph = graph
        self._tokens = itertools.count(1)
        self._lease: Optional[PositionLease] = None
        self._listeners: List[PositionListener] = []

    @property
    def graph(self) -> NetworkGraph:
        return self._graph

    @property
    def current_owner(self) -> Optional[str]:
        if self._lease is None or not self._lease.active:
            return None
        return self._lease.owner

    def acquire(self, owner: str) -> PositionLease:
        """Revoke any outstanding lease and return a fresh one for ``owner``."""

        if self._lease is not None and self._lease.active:
            LOGGER.debug("Revoking position lease held by %s for %s", self._lease.owner, owner)
            self._lease.revoke()
        self._lease = PositionLease(self, owner, next(self._tokens))
        return self._lease

    def release(self, lease: PositionLease) -> None:
        lease.revoke()
        if self._lease is lease:
            self._lease = None

    def revoke_all(self) -> None:
        if self._lease is not None:
            self.release(self._lease)

    def snapshot(self) -> Dict[str, Position]:
        return self._graph.positions()

    def write_direct(self, positions: Mapping[str, Position], owner: str = DRAG_OWNER) -> None:
        """Write without a lease; used for pointer-driven dragging."""

        self._apply(owner, positions)

    def subscribe(self, listener: PositionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _write_leased(self, lease: PositionLease, positions: Mapping[str, Position]) -> bool:
        if not lease.active or lease is not self._lease:
            LOGGER.debug("Dropped %d position writes from stale lease %r", len(positions), lease)
            return False
        self._apply(lease.owner, positions)
        return True

    def _apply(self, owner: str, positions: Mapping[str, Position]) -> None:
        accepted: Dict[str, Position] = {}
        for node_id, (x, y) in positions.items():
            if not self._graph.has_node(node_id):
                continue
            self._graph.set_position(node_id, x, y)
            accepted[node_id] = (float(x), float(y))
        if not accepted:
            return
        update = PositionUpdate(owner=owner, positions=accepted)
        for listener in list(self._listeners):
            listener(update)
