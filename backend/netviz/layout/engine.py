"""Layout lifecycle: circular seeding, animated layouts and ForceAtlas2.

The engine owns the :class:`PositionStore` for one graph and guarantees
that at most one layout mechanism writes positions at any time: every
command cancels whichever animation or simulation currently holds the
position lease before acquiring it for itself.

Commands are plain methods but must be invoked from the event loop that
runs the animations and the simulation consumer.
"""
from __future__ import annotations

import asyncio
import logging
import random
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from backend.netviz.config import LayoutConfig
from backend.netviz.errors import LayoutClosedError, RenderingTargetMissingError
from backend.netviz.graph.model import NetworkGraph, Position
from backend.netviz.layout.easing import get_easing
from backend.netviz.layout.forceatlas import ForceAtlas2Settings, ForceAtlas2Worker, infer_settings
from backend.netviz.layout.positions import PositionLease, PositionStore
from backend.netviz.layout.strategies import animate_nodes, circular_positions, random_positions

LOGGER = logging.getLogger(__name__)

SEED_OWNER = "seed"


class LayoutState(str, Enum):
    """Which mechanism, if any, currently owns node positions."""

    IDLE = "idle"
    FORCE_DIRECTED = "force_directed"
    ANIMATING = "animating"


class AnimationKind(str, Enum):
    """Target layouts reachable by animation."""

    RANDOM = "random"
    CIRCULAR = "circular"


@dataclass(frozen=True)
class LayoutSnapshot:
    """Observable engine state, used to flip the start/stop affordance."""

    state: LayoutState
    animation_kind: Optional[AnimationKind]

    @property
    def force_directed_running(self) -> bool:
        return self.state is LayoutState.FORCE_DIRECTED

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "animation_kind": self.animation_kind.value if self.animation_kind else None,
            "force_directed_running": self.force_directed_running,
        }


StateListener = Callable[[LayoutSnapshot], None]


class LayoutEngine:
    """Owns node positions of one graph and arbitrates layout mechanisms."""

    def __init__(
        self,
        graph: NetworkGraph,
        surface: object,
        config: Optional[LayoutConfig] = None,
        *,
        forceatlas2_settings: Optional[ForceAtlas2Settings] = None,
        rng: Optional[random.Random] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        """Seed positions on a circle and prepare the layout mechanisms.

        Args:
            graph: Styled graph whose nodes will be positioned.
            surface: Rendering surface; refreshed after each accepted batch
                when it exposes ``refresh``.
            config: Layout configuration; defaults apply when omitted.
            forceatlas2_settings: Explicit solver settings; inferred from the
                graph order (plus configured overrides) when omitted.
            rng: Random source for the random layout.
            executor: Executor for ForceAtlas2 batches (default loop executor).

        Raises:
            RenderingTargetMissingError: If ``surface`` is ``None``.
        """

        if surface is None:
            raise RenderingTargetMissingError("A rendering surface is required to lay out the graph")
        self._config = config or LayoutConfig()
        self._graph = graph
        self._surface = surface
        self._store = PositionStore(graph)
        self._rng = rng or random.Random()
        self._state = LayoutState.IDLE
        self._animation_kind: Optional[AnimationKind] = None
        self._animation_task: Optional[asyncio.Task] = None
        self._animation_lease: Optional[PositionLease] = None
        self._listeners: List[StateListener] = []
        self._closed = False

        refresh = getattr(surface, "refresh", None)
        self._unsubscribe_surface = self._store.subscribe(refresh) if callable(refresh) else None

        seed_lease = self._store.acquire(SEED_OWNER)
        seed_lease.write(circular_positions(graph.node_ids(), scale=self._config.seed_scale))
        self._store.release(seed_lease)

        settings = forceatlas2_settings
        if settings is None:
            settings = infer_settings(graph.order).with_overrides(self._config.forceatlas2_settings)
        self._worker = ForceAtlas2Worker(
            self._store,
            settings,
            iterations_per_batch=self._config.forceatlas2_iterations_per_batch,
            batch_interval=self._config.forceatlas2_batch_interval_seconds,
            executor=executor,
            on_failure=self._on_force_directed_failed,
        )

    @property
    def graph(self) -> NetworkGraph:
        return self._graph

    @property
    def store(self) -> PositionStore:
        return self._store

    @property
    def state(self) -> LayoutState:
        return self._state

    @property
    def animation_kind(self) -> Optional[AnimationKind]:
        return self._animation_kind

    @property
    def is_force_directed_running(self) -> bool:
        return self._worker.is_running()

    @property
    def forceatlas2(self) -> ForceAtlas2Worker:
        return self._worker

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> LayoutSnapshot:
        return LayoutSnapshot(state=self._state, animation_kind=self._animation_kind)

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def toggle_force_directed(self) -> LayoutState:
        """Stop the simulation if it runs, otherwise start it.

        Starting cancels any in-flight animation first.
        """

        self._ensure_open()
        if self._worker.is_running():
            self._stop_force_directed()
            self._transition(LayoutState.IDLE, None)
        else:
            self.cancel_animation()
            self._worker.start()
            self._transition(LayoutState.FORCE_DIRECTED, None)
        return self._state

    def trigger_random(self) -> None:
        """Animate every node to a uniform position within the current extents."""

        self._ensure_open()
        self._prepare_animation()
        targets = random_positions(self._graph.node_ids(), self._graph.extents(), self._rng)
        self._start_animation(AnimationKind.RANDOM, targets, self._config.random_easing)

    def trigger_circular(self) -> None:
        """Animate every node onto a circle of the configured scale."""

        self._ensure_open()
        self._prepare_animation()
        targets = circular_positions(self._graph.node_ids(), scale=self._config.circular_scale)
        self._start_animation(AnimationKind.CIRCULAR, targets, self._config.circular_easing)

    def cancel_animation(self) -> bool:
        """Discard the in-flight animation, if any.

        Returns:
            bool: True when an animation was cancelled.
        """

        task = self._animation_task
        lease = self._animation_lease
        self._animation_task = None
        self._animation_lease = None
        if lease is not None:
            self._store.release(lease)
        if task is None or task.done():
            return False
        task.cancel()
        LOGGER.debug("Cancelled %s animation", self._animation_kind)
        if self._state is LayoutState.ANIMATING:
            self._transition(LayoutState.IDLE, None)
        return True

    async def wait_for_animation(self) -> None:
        """Wait for the current animation to finish; returns at once if none."""

        task = self._animation_task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def dispose(self) -> None:
        """Stop every mechanism; further commands raise ``LayoutClosedError``."""

        if self._closed:
            return
        self.cancel_animation()
        self._stop_force_directed()
        self._store.revoke_all()
        if self._unsubscribe_surface is not None:
            self._unsubscribe_surface()
        self._closed = True
        self._state = LayoutState.IDLE
        self._animation_kind = None
        self._listeners.clear()
        LOGGER.info("Layout engine disposed")

    def _prepare_animation(self) -> None:
        if self._worker.is_running():
            self._stop_force_directed()
        self.cancel_animation()

    def _start_animation(
        self,
        kind: AnimationKind,
        targets: Dict[str, Position],
        easing_name: str,
    ) -> None:
        lease = self._store.acquire(f"animation:{kind.value}")
        start = self._store.snapshot()
        coroutine = animate_nodes(
            lease,
            start,
            targets,
            duration=self._config.animation_duration_seconds,
            frame_interval=self._config.frame_interval_seconds,
            easing=get_easing(easing_name),
        )
        task = asyncio.create_task(coroutine, name=f"animation-{kind.value}")
        self._animation_task = task
        self._animation_lease = lease
        task.add_done_callback(self._on_animation_done)
        self._transition(LayoutState.ANIMATING, kind)

    def _on_animation_done(self, task: asyncio.Task) -> None:
        if task is not self._animation_task:
            return
        lease = self._animation_lease
        self._animation_task = None
        self._animation_lease = None
        if lease is not None:
            self._store.release(lease)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Layout animation failed: %r", exc)
        self._transition(LayoutState.IDLE, None)

    def _stop_force_directed(self) -> None:
        self._worker.stop()

    def _on_force_directed_failed(self, exc: BaseException) -> None:
        # the worker already released its lease
        if self._state is LayoutState.FORCE_DIRECTED:
            self._transition(LayoutState.IDLE, None)

    def _transition(self, state: LayoutState, kind: Optional[AnimationKind]) -> None:
        if state is self._state and kind is self._animation_kind:
            return
        LOGGER.info(
            "Layout state %s -> %s%s",
            self._state.value,
            state.value,
            f" ({kind.value})" if kind else "",
        )
        self._state = state
        self._animation_kind = kind
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _ensure_open(self) -> None:
        if self._closed:
            raise LayoutClosedError("Layout engine has been disposed")
