"""Test helpers for DevRhythm."""

from dev_rhythm.engine import ActivityEngine
from dev_rhythm.models import InputEvent

# 2023-11-14 22:14:00 UTC, on a minute boundary.
BASE_EPOCH_MS = 1_700_000_040_000


class FakeClock:
    """Monotonic and wall clocks that only move when told to."""

    def __init__(self, epoch_ms: int = BASE_EPOCH_MS) -> None:
        self._monotonic_ns = 5_000_000_000_000
        self._epoch_us = epoch_ms * 1_000

    def monotonic_ns(self) -> int:
        return self._monotonic_ns

    def epoch_us(self) -> int:
        return self._epoch_us

    def epoch_ms(self) -> int:
        return self._epoch_us // 1_000

    def advance(self, seconds: float) -> None:
        self._monotonic_ns += int(seconds * 1_000_000_000)
        self._epoch_us += int(seconds * 1_000_000)


def press(engine: ActivityEngine, clock: FakeClock, *offsets: float) -> None:
    """Record one input after each offset (seconds after the previous one)."""
    for offset in offsets:
        clock.advance(offset)
        engine.record_input(InputEvent(monotonic_ns=clock.monotonic_ns(), epoch_ms=clock.epoch_ms()))


def write_ledger(path, header, rows) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [",".join(header)] + [",".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
