"""Tests for target layouts, easing curves and the animation stepper."""

from __future__ import annotations

import asyncio
import math
import random
from typing import Dict, List

import pytest

from backend.netviz.graph import Extents, GraphNode, NetworkGraph, Position
from backend.netviz.layout import (
    PositionStore,
    animate_nodes,
    circular_positions,
    cubic_in_out,
    get_easing,
    linear,
    quadratic_in_out,
    random_positions,
)


def _store(count: int) -> PositionStore:
    graph = NetworkGraph()
    for index in range(count):
        graph.add_node(GraphNode(node_id=f"n{index}", label=str(index), category="c"))
    return PositionStore(graph)


def test_circular_positions_are_evenly_spaced() -> None:
    node_ids = ["a", "b", "c", "d"]

    positions = circular_positions(node_ids, scale=100.0)

    for index, node_id in enumerate(node_ids):
        x, y = positions[node_id]
        angle = 2 * math.pi * index / len(node_ids)
        assert x == pytest.approx(100.0 * math.cos(angle), abs=1e-3)
        assert y == pytest.approx(100.0 * math.sin(angle), abs=1e-3)


def test_circular_positions_edge_cases() -> None:
    assert circular_positions([]) == {}
    assert circular_positions(["solo"]) == {"solo": (0.0, 0.0)}


def test_random_positions_stay_within_extents() -> None:
    extents = Extents(-10.0, 10.0, 0.0, 5.0)

    positions = random_positions([f"n{i}" for i in range(50)], extents, random.Random(3))

    for x, y in positions.values():
        assert -10.0 <= x <= 10.0
        assert 0.0 <= y <= 5.0


def test_random_positions_spread_on_zero_span() -> None:
    positions = random_positions(["a", "b"], Extents(0.0, 0.0, 0.0, 0.0), random.Random(1))

    for x, y in positions.values():
        assert -1.0 <= x <= 1.0
        assert -1.0 <= y <= 1.0


@pytest.mark.parametrize("easing", [linear, quadratic_in_out, cubic_in_out])
def test_easings_fix_endpoints_and_increase(easing) -> None:
    samples = [easing(step / 20) for step in range(21)]

    assert samples[0] == pytest.approx(0.0)
    assert samples[-1] == pytest.approx(1.0)
    assert samples == sorted(samples)


def test_get_easing_by_name() -> None:
    assert get_easing("Quadratic_In_Out") is quadratic_in_out
    with pytest.raises(ValueError):
        get_easing("elastic")


def test_animation_writes_exact_targets_on_last_frame() -> None:
    store = _store(3)
    targets: Dict[str, Position] = {f"n{i}": (float(i), -float(i)) for i in range(3)}

    async def _run() -> int:
        lease = store.acquire("animation:circular")
        return await animate_nodes(
            lease,
            store.snapshot(),
            targets,
            duration=0.05,
            frame_interval=0.005,
            easing=quadratic_in_out,
        )

    frames = asyncio.run(_run())

    assert frames >= 1
    assert store.snapshot() == targets


def test_animation_interpolates_with_easing() -> None:
    store = _store(1)
    ticks = iter([0.0, 0.5, 1.0])
    seen: List[Position] = []
    store.subscribe(lambda update: seen.append(update.positions["n0"]))

    async def _run() -> None:
        lease = store.acquire("animation:random")
        await animate_nodes(
            lease,
            {"n0": (0.0, 0.0)},
            {"n0": (10.0, 20.0)},
            duration=1.0,
            frame_interval=0.0,
            easing=linear,
            clock=lambda: next(ticks),
        )

    asyncio.run(_run())

    assert seen == [(5.0, 10.0), (10.0, 20.0)]


def test_revoked_animation_stops_writing() -> None:
    store = _store(1)

    async def _run() -> None:
        lease = store.acquire("animation:random")
        task = asyncio.create_task(
            animate_nodes(
                lease,
                {"n0": (0.0, 0.0)},
                {"n0": (100.0, 100.0)},
                duration=10.0,
                frame_interval=0.01,
            )
        )
        await asyncio.sleep(0.03)
        store.acquire("animation:circular").write({"n0": (-1.0, -1.0)})
        await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(_run())

    assert store.snapshot()["n0"] == (-1.0, -1.0)
