"""ForceAtlas2 force-directed layout and its background worker.

Each batch is delegated to ``networkx.forceatlas2_layout`` seeded with the
current positions, so nodes repel proportionally to their masses
(``1 + degree``), edges pull their endpoints together and gravity keeps
components together. That routine builds dense pairwise arrays, so graphs
flagged with ``barnes_hut_optimize`` switch to the sparse row-by-row
Fruchterman-Reingold variant of ``networkx.spring_layout``, whose memory
stays linear in the node count.

The worker mirrors a web-worker deployment: iteration batches run in a
thread executor and are posted back through an ``asyncio.Queue`` to a
consumer that writes them through a position lease on the event loop.
"""
from __future__ import annotations

import asyncio
import logging
import math
from concurrent.futures import Executor
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import networkx as nx
import numpy as np

from backend.netviz.graph.model import NetworkGraph, Position
from backend.netviz.layout.positions import PositionLease, PositionStore

LOGGER = logging.getLogger(__name__)

FORCEATLAS2_OWNER = "forceatlas2"
_INFLUENCE_ATTR = "fa2_weight"


@dataclass(frozen=True)
class ForceAtlas2Settings:
    """Tunable ForceAtlas2 parameters.

    ``barnes_hut_optimize`` selects the sparse solver used for large graphs.
    """

    lin_log_mode: bool = False
    outbound_attraction_distribution: bool = False
    edge_weight_influence: float = 1.0
    scaling_ratio: float = 1.0
    strong_gravity_mode: bool = False
    gravity: float = 1.0
    slow_down: float = 1.0
    barnes_hut_optimize: bool = False

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ForceAtlas2Settings":
        """Return a copy with known keys from ``overrides`` applied."""

        known = {field.name for field in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            LOGGER.warning("Ignoring unknown ForceAtlas2 settings: %s", ", ".join(unknown))
        return replace(self, **{key: value for key, value in overrides.items() if key in known})


def infer_settings(order: int) -> ForceAtlas2Settings:
    """Return sensible settings for a graph with ``order`` nodes."""

    return ForceAtlas2Settings(
        barnes_hut_optimize=order > 2000,
        strong_gravity_mode=True,
        gravity=0.05,
        scaling_ratio=10.0,
        slow_down=1.0 + math.log(order) if order > 0 else 1.0,
    )


class ForceAtlas2:
    """Batch solver over a fixed node order and a frozen copy of the topology."""

    def __init__(self, graph: NetworkGraph, settings: Optional[ForceAtlas2Settings] = None) -> None:
        self.settings = settings or infer_settings(graph.order)
        self.node_ids: List[str] = graph.node_ids()
        self._topology = graph.topology.copy()
        self._weight = _weight_attribute(self._topology, self.settings.edge_weight_influence)

    def positions_array(self, positions: Mapping[str, Position]) -> np.ndarray:
        return np.array([positions[node_id] for node_id in self.node_ids], dtype=float).reshape(-1, 2)

    def to_mapping(self, coords: np.ndarray) -> Dict[str, Position]:
        return {
            node_id: (float(coords[row, 0]), float(coords[row, 1]))
            for row, node_id in enumerate(self.node_ids)
        }

    def run(self, coords: np.ndarray, iterations: int = 1) -> np.ndarray:
        """Advance ``iterations`` steps from ``coords`` and return new coordinates.

        Args:
            coords: ``(n, 2)`` array ordered like :attr:`node_ids`.
            iterations: Number of solver iterations in this batch.

        Returns:
            np.ndarray: New coordinates; ``coords`` itself is left untouched.
        """

        start = np.array(coords, dtype=float).reshape(-1, 2)
        if len(self.node_ids) < 2 or iterations < 1:
            return start
        pos = {node_id: start[row] for row, node_id in enumerate(self.node_ids)}
        if self.settings.barnes_hut_optimize:
            layout = self._sparse_layout(pos, start, iterations)
        else:
            settings = self.settings
            layout = nx.forceatlas2_layout(
                self._topology,
                pos=pos,
                max_iter=iterations,
                scaling_ratio=settings.scaling_ratio,
                gravity=settings.gravity,
                strong_gravity=settings.strong_gravity_mode,
                linlog=settings.lin_log_mode,
                distributed_action=settings.outbound_attraction_distribution,
                weight=self._weight,
            )
        moved = np.array([layout[node_id] for node_id in self.node_ids], dtype=float)
        result = start + (moved - start) / self.settings.slow_down
        # coincident nodes produce NaN forces and stay put
        return np.where(np.isfinite(result), result, start)

    def _sparse_layout(
        self, pos: Dict[str, np.ndarray], start: np.ndarray, iterations: int
    ) -> Dict[str, Any]:
        # k is the ideal edge length; keep it proportional to the current spread
        spread = float(np.ptp(start, axis=0).max()) or 1.0
        return nx.spring_layout(
            self._topology,
            k=spread / math.sqrt(len(self.node_ids)),
            pos=pos,
            iterations=iterations,
            weight=self._weight,
            scale=None,
            method="force",
        )


def _weight_attribute(topology: nx.Graph, influence: float) -> Optional[str]:
    """Return the edge attribute the solver should read as attraction weight."""

    if influence == 0:
        return None
    if influence == 1:
        return "weight"
    for _, _, data in topology.edges(data=True):
        data[_INFLUENCE_ATTR] = float(data.get("weight", 1)) ** influence
    return _INFLUENCE_ATTR


class ForceAtlas2Worker:
    """Run ForceAtlas2 continuously until stopped.

    ``start`` and ``stop`` must be called from the event loop that owns the
    position store. Each batch is computed off-loop, queued, applied by the
    consumer through the worker's lease, and acknowledged before the next
    batch is requested, so positions edited meanwhile (drags) are picked up.
    When a batch raises, the worker stops itself and reports the error to
    ``on_failure`` so its owner can leave the running state.
    """

    def __init__(
        self,
        store: PositionStore,
        settings: Optional[ForceAtlas2Settings] = None,
        *,
        iterations_per_batch: int = 1,
        batch_interval: float = 0.0,
        executor: Optional[Executor] = None,
        on_failure: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        if iterations_per_batch < 1:
            raise ValueError("iterations_per_batch must be at least 1")
        self._store = store
        self._settings = settings or infer_settings(store.graph.order)
        self._iterations = iterations_per_batch
        self._interval = batch_interval
        self._executor = executor
        self._on_failure = on_failure
        self._lease: Optional[PositionLease] = None
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: Tuple[asyncio.Task, ...] = ()
        self._stopped_tasks: Tuple[asyncio.Task, ...] = ()
        self.batches_applied = 0

    @property
    def settings(self) -> ForceAtlas2Settings:
        return self._settings

    def is_running(self) -> bool:
        return self._lease is not None and self._lease.active

    def start(self) -> None:
        if self.is_running():
            return
        self._lease = self._store.acquire(FORCEATLAS2_OWNER)
        self._queue = asyncio.Queue(maxsize=1)
        solver = ForceAtlas2(self._store.graph, self._settings)
        self._tasks = (
            asyncio.create_task(
                self._produce(solver, self._lease, self._queue), name="forceatlas2-producer"
            ),
            asyncio.create_task(self._consume(self._lease, self._queue), name="forceatlas2-consumer"),
        )
        for task in self._tasks:
            task.add_done_callback(self._on_task_done)
        LOGGER.info("ForceAtlas2 started (nodes=%d)", len(solver.node_ids))

    def stop(self) -> None:
        lease = self._lease
        if lease is None:
            return
        self._store.release(lease)
        for task in self._tasks:
            task.cancel()
        self._stopped_tasks = self._tasks
        self._tasks = ()
        self._queue = None
        self._lease = None
        LOGGER.info("ForceAtlas2 stopped after %d batches", self.batches_applied)

    async def wait_stopped(self) -> None:
        """Wait until cancelled tasks have fully unwound."""

        pending = [task for task in self._stopped_tasks if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _produce(self, solver: ForceAtlas2, lease: PositionLease, queue: asyncio.Queue) -> None:
        loop = asyncio.get_running_loop()
        while lease.active:
            coords = solver.positions_array(self._store.snapshot())
            result = await loop.run_in_executor(self._executor, solver.run, coords, self._iterations)
            if not lease.active:
                return
            await queue.put(solver.to_mapping(result))
            await queue.join()
            await asyncio.sleep(self._interval)

    async def _consume(self, lease: PositionLease, queue: asyncio.Queue) -> None:
        while True:
            batch = await queue.get()
            try:
                if not lease.write(batch):
                    return
                self.batches_applied += 1
            finally:
                queue.task_done()

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("ForceAtlas2 task %s failed: %r", task.get_name(), exc)
            if task not in self._tasks:
                return
            self.stop()
            if self._on_failure is not None:
                self._on_failure(exc)
