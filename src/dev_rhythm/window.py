"""Recent-activity estimate over a trailing window."""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Optional

from .models import WindowCache

logger = logging.getLogger(__name__)


class InputBuffer:
    """Epoch-millisecond input times, oldest first."""

    def __init__(self, retention_ms: int) -> None:
        self.retention_ms = retention_ms
        self._inputs: deque[int] = deque()

    def append(self, epoch_ms: int) -> None:
        self._inputs.append(epoch_ms)
        self.trim(epoch_ms)

    def trim(self, now_ms: int) -> None:
        keep_from = now_ms - self.retention_ms
        while self._inputs and self._inputs[0] < keep_from:
            self._inputs.popleft()

    def clear(self) -> None:
        self._inputs.clear()

    def __iter__(self):
        return iter(self._inputs)

    def __len__(self) -> int:
        return len(self._inputs)


def closed_gap_active_ms(
    inputs: Iterable[int],
    window_start_ms: int,
    window_end_ms: int,
    break_threshold_ms: int,
) -> int:
    """Sum the closed inter-input gaps that overlap the window.

    Only gaps bounded by two inputs and no longer than ``break_threshold_ms``
    count. A gap that starts before the window is clipped at its left edge.
    The stretch from the last input to the window end is never counted.
    """
    prev_before: Optional[int] = None
    inside: list[int] = []
    for t in inputs:
        if t < window_start_ms:
            prev_before = t
        elif t <= window_end_ms:
            inside.append(t)
        else:
            break

    active_ms = 0
    if prev_before is not None and inside:
        first = inside[0]
        gap = first - prev_before
        if 0 < gap <= break_threshold_ms:
            left = max(prev_before, window_start_ms)
            if first > left:
                active_ms += first - left

    for a, b in zip(inside, inside[1:]):
        gap = b - a
        if 0 < gap <= break_threshold_ms:
            left = max(a, window_start_ms)
            right = min(b, window_end_ms)
            if right > left:
                active_ms += right - left

    return active_ms


class SlidingWindowEstimator:
    """Active seconds in the last ``window_seconds``, refreshed per bucket."""

    def __init__(
        self,
        *,
        window_seconds: int,
        bucket_seconds: int,
        break_threshold_ms: int,
        retention_ms: int,
    ) -> None:
        self.window_seconds = window_seconds
        self.bucket_seconds = bucket_seconds
        self.break_threshold_ms = break_threshold_ms
        self.buffer = InputBuffer(retention_ms)
        self.cache = WindowCache()

    def add(self, epoch_ms: int) -> None:
        self.buffer.append(epoch_ms)

    def active_seconds_at(self, window_end_ms: int) -> int:
        self.buffer.trim(window_end_ms)
        window_start_ms = window_end_ms - self.window_seconds * 1000
        active_ms = closed_gap_active_ms(
            self.buffer, window_start_ms, window_end_ms, self.break_threshold_ms
        )
        return min(max(active_ms // 1000, 0), self.window_seconds)

    def refresh(self, now_ms: int, armed: bool) -> int:
        """Return the cached estimate, recomputing once per bucket."""
        if not armed:
            # Arming always starts a fresh anchor.
            self.cache.reset()
            return 0
        bucket = (now_ms // 1000) // self.bucket_seconds
        if bucket != self.cache.bucket:
            self.cache.bucket = bucket
            bucket_end_ms = bucket * self.bucket_seconds * 1000
            self.cache.active_seconds = self.active_seconds_at(bucket_end_ms)
            logger.debug(
                "Window recomputed at bucket %d: %d active seconds.",
                bucket,
                self.cache.active_seconds,
            )
        return self.cache.active_seconds

    @property
    def cached_active_seconds(self) -> int:
        return self.cache.active_seconds

    def reset(self) -> None:
        self.buffer.clear()
        self.cache.reset()
