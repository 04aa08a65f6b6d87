"""Configuration models and helpers for the activity engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

# Single source of truth for idleness. The windowed estimator uses the same
# value as its break threshold.
IDLE_THRESHOLD = timedelta(minutes=5)

WINDOW_SPAN = timedelta(minutes=30)
BUCKET_SPAN = timedelta(seconds=60)
RETENTION = timedelta(minutes=40)
TICK_INTERVAL = timedelta(seconds=1)

PROJECT_MARKER = ".idea"


@dataclass(slots=True)
class EngineSettings:
    """Runtime configuration for the activity engine."""

    idle_threshold: timedelta = IDLE_THRESHOLD
    window_span: timedelta = WINDOW_SPAN
    bucket_span: timedelta = BUCKET_SPAN
    retention: timedelta = RETENTION
    tick_interval: timedelta = TICK_INTERVAL
    project_marker: str = PROJECT_MARKER

    @classmethod
    def from_intervals(
        cls,
        idle_minutes: float,
        window_minutes: float | None = None,
        tick_seconds: float | None = None,
    ) -> "EngineSettings":
        window = window_minutes if window_minutes is not None else WINDOW_SPAN.total_seconds() / 60
        tick = tick_seconds if tick_seconds is not None else TICK_INTERVAL.total_seconds()
        retention = max(window + 10.0, RETENTION.total_seconds() / 60)
        settings = cls(
            idle_threshold=timedelta(minutes=idle_minutes),
            window_span=timedelta(minutes=window),
            retention=timedelta(minutes=retention),
            tick_interval=timedelta(seconds=tick),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        for name in ("idle_threshold", "window_span", "bucket_span", "tick_interval"):
            if getattr(self, name) <= timedelta(0):
                raise ValueError(f"{name} must be positive")
        if self.retention < self.window_span:
            raise ValueError("retention must cover the whole window")

    @property
    def idle_threshold_ns(self) -> int:
        return _to_ns(self.idle_threshold)

    @property
    def idle_threshold_ms(self) -> int:
        return _to_ns(self.idle_threshold) // 1_000_000

    @property
    def window_seconds(self) -> int:
        return int(self.window_span.total_seconds())

    @property
    def bucket_seconds(self) -> int:
        return int(self.bucket_span.total_seconds())

    @property
    def retention_ms(self) -> int:
        return _to_ns(self.retention) // 1_000_000


def _to_ns(value: timedelta) -> int:
    return (value.days * 86_400 + value.seconds) * 1_000_000_000 + value.microseconds * 1_000
