from __future__ import annotations

from collections import deque
from typing import Deque, Optional, Sequence

from .types import Corners
from .utils import average_points, distance


def average_corners(history: Sequence[Corners]) -> Corners:
    """Corner-wise arithmetic mean of a non-empty sequence of corner sets."""
    if not history:
        raise ValueError("average_corners() needs at least one corner set")
    return Corners(*(average_points(c[i] for c in history) for i in range(4)))


def corner_displacement_px(a: Corners, b: Corners, width: float, height: float) -> float:
    """Mean distance between matching corners, measured in pixels of a width x height canvas."""
    total = 0.0
    for pa, pb in zip(a, b):
        total += distance((pa[0] * width, pa[1] * height), (pb[0] * width, pb[1] * height))
    return total / 4.0


class CornerSmoother:
    """
    Bounded history of recent frame corners.

    The smoothed frame is the mean of everything retained. Instability
    compares the mean without the newest entry against the mean with it.
    """

    def __init__(self, capacity: int, clear_on_gap: bool = True) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.clear_on_gap = clear_on_gap
        self._history: Deque[Corners] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._history)

    @property
    def full(self) -> bool:
        return len(self._history) == self.capacity

    def push(self, corners: Corners) -> Corners:
        self._history.append(corners)
        return average_corners(self._history)

    def gap(self) -> None:
        """No valid corners this tick."""
        if self.clear_on_gap:
            self._history.clear()

    def clear(self) -> None:
        self._history.clear()

    @property
    def smoothed(self) -> Optional[Corners]:
        if not self._history:
            return None
        return average_corners(self._history)

    def instability(self, width: float, height: float) -> Optional[float]:
        if self.capacity < 2 or not self.full:
            return None
        entries = list(self._history)
        older = average_corners(entries[:-1])
        newest = average_corners(entries)
        return corner_displacement_px(older, newest, width, height)
