"""Time sources used by the engine."""

from __future__ import annotations

import time
from datetime import datetime


class SystemClock:
    """Monotonic nanoseconds for durations, wall clock for records.

    Durations are always computed from ``monotonic_ns`` so that wall-clock
    adjustments never shorten or stretch a session.
    """

    def monotonic_ns(self) -> int:
        return time.monotonic_ns()

    def epoch_us(self) -> int:
        return time.time_ns() // 1_000

    def epoch_ms(self) -> int:
        return time.time_ns() // 1_000_000


def datetime_from_epoch_us(epoch_us: int) -> datetime:
    seconds, micros = divmod(epoch_us, 1_000_000)
    return datetime.fromtimestamp(seconds).replace(microsecond=micros)
