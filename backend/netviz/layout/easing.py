"""Easing curves mapping normalized time to normalized progress."""
from __future__ import annotations

from typing import Callable, Dict

Easing = Callable[[float], float]


def linear(t: float) -> float:
    return t


def quadratic_in_out(t: float) -> float:
    t *= 2
    if t < 1:
        return 0.5 * t * t
    t -= 1
    return -0.5 * (t * (t - 2) - 1)


def cubic_in_out(t: float) -> float:
    t *= 2
    if t < 1:
        return 0.5 * t * t * t
    t -= 2
    return 0.5 * (t * t * t + 2)


EASINGS: Dict[str, Easing] = {
    "linear": linear,
    "quadratic_in_out": quadratic_in_out,
    "cubic_in_out": cubic_in_out,
}


def get_easing(name: str) -> Easing:
    try:
        return EASINGS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown easing: {name}") from None
