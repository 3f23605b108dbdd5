"""Target position generators and the node animation stepper."""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Dict, Mapping, Optional, Sequence

import networkx as nx

from backend.netviz.graph.model import Extents, Position
from backend.netviz.layout.easing import Easing, linear
from backend.netviz.layout.positions import PositionLease

LOGGER = logging.getLogger(__name__)


def circular_positions(node_ids: Sequence[str], scale: float = 1.0) -> Dict[str, Position]:
    """Place nodes evenly on a circle of radius ``scale`` centred at the origin.

    Node ``i`` of ``n`` sits at angle ``2*pi*i/n``; a lone node sits at the
    origin.
    """

    if not node_ids:
        return {}
    ring = nx.empty_graph(list(node_ids))
    layout = nx.circular_layout(ring, scale=scale)
    return {node_id: (float(coords[0]), float(coords[1])) for node_id, coords in layout.items()}


def random_positions(
    node_ids: Sequence[str],
    extents: Extents,
    rng: Optional[random.Random] = None,
) -> Dict[str, Position]:
    """Draw uniform positions inside ``extents``.

    An axis with zero span falls back to ``[-1, 1]`` so nodes still spread.
    """

    generator = rng or random.Random()
    min_x, max_x = (extents.min_x, extents.max_x) if extents.width > 0 else (-1.0, 1.0)
    min_y, max_y = (extents.min_y, extents.max_y) if extents.height > 0 else (-1.0, 1.0)
    return {
        node_id: (generator.uniform(min_x, max_x), generator.uniform(min_y, max_y))
        for node_id in node_ids
    }


async def animate_nodes(
    lease: PositionLease,
    start: Mapping[str, Position],
    targets: Mapping[str, Position],
    *,
    duration: float,
    frame_interval: float,
    easing: Easing = linear,
    clock: Optional[Callable[[], float]] = None,
) -> int:
    """Interpolate nodes from ``start`` to ``targets`` over ``duration`` seconds.

    Each frame writes through ``lease``; the final frame writes the exact
    targets. The coroutine stops early when the lease is revoked and is
    cancelled like any other task.

    Returns:
        int: Number of frames written.
    """

    loop = asyncio.get_running_loop()
    now = clock or loop.time
    started_at = now()
    frames = 0
    moving = [node_id for node_id in targets if node_id in start]
    while lease.active:
        elapsed = now() - started_at
        progress = min(elapsed / duration, 1.0) if duration > 0 else 1.0
        if progress >= 1.0:
            lease.write({node_id: targets[node_id] for node_id in moving})
            return frames + 1
        eased = easing(progress)
        frame: Dict[str, Position] = {}
        for node_id in moving:
            x0, y0 = start[node_id]
            x1, y1 = targets[node_id]
            frame[node_id] = (x0 + (x1 - x0) * eased, y0 + (y1 - y0) * eased)
        if not lease.write(frame):
            break
        frames += 1
        await asyncio.sleep(frame_interval)
    LOGGER.debug("Animation for %s stopped after %d frames", lease.owner, frames)
    return frames
