"""Domain models for tracked activity."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True, slots=True)
class InputEvent:
    """A single keystroke or click, stamped on both clocks."""

    monotonic_ns: int
    epoch_ms: int


@dataclass(frozen=True, slots=True)
class InputNotice:
    epoch_ms: int


@dataclass(frozen=True, slots=True)
class TickEvent:
    total_project_ms: int
    total_active_ms: int
    is_idle: bool


@dataclass(frozen=True, slots=True)
class DisabledNotice:
    reason: str


class TrackingStatus(str, Enum):
    ENABLED = "Show"
    SUPPRESSED = "Do not Show"


@dataclass(slots=True)
class SessionState:
    input_count: int = 0
    armed: bool = False
    last_input_ns: Optional[int] = None
    current_session_ns: int = 0


@dataclass(slots=True)
class Accumulator:
    """Closed-session and break counters; only ever grow."""

    total_active_ns: int = 0
    total_break_ns: int = 0
    session_count: int = 0
    max_session_ns: int = 0
    min_session_ns: Optional[int] = None
    break_count: int = 0
    max_break_ns: int = 0
    min_break_ns: Optional[int] = None

    def close_session(self, duration_ns: int) -> None:
        self.session_count += 1
        self.total_active_ns += duration_ns
        self.max_session_ns = max(self.max_session_ns, duration_ns)
        if self.min_session_ns is None or duration_ns < self.min_session_ns:
            self.min_session_ns = duration_ns

    def record_break(self, gap_ns: int) -> None:
        self.break_count += 1
        self.total_break_ns += gap_ns
        self.max_break_ns = max(self.max_break_ns, gap_ns)
        if self.min_break_ns is None or gap_ns < self.min_break_ns:
            self.min_break_ns = gap_ns


@dataclass(frozen=True, slots=True)
class HistoricalTotals:
    total_project_us: int = 0
    total_active_us: int = 0


@dataclass(slots=True)
class WindowCache:
    bucket: int = -1
    active_seconds: int = 0

    def reset(self) -> None:
        self.bucket = -1
        self.active_seconds = 0


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Counters copied under the engine lock for the final ledger row."""

    start_epoch_us: int
    end_epoch_us: int
    elapsed_ns: int
    total_active_ns: int
    current_session_ns: int
    total_break_ns: int
    session_count: int
    max_session_ns: int
    min_session_ns: Optional[int]
    break_count: int
    max_break_ns: int
    min_break_ns: Optional[int]

    @property
    def live_active_ns(self) -> int:
        return self.total_active_ns + self.current_session_ns

    @property
    def all_sessions(self) -> int:
        # An open, non-empty session counts at shutdown.
        return self.session_count + (1 if self.current_session_ns > 0 else 0)

    @property
    def avg_session_ns(self) -> int:
        sessions = self.all_sessions
        return self.live_active_ns // sessions if sessions else 0

    @property
    def final_max_session_ns(self) -> int:
        if self.session_count == 0:
            return self.current_session_ns
        return max(self.max_session_ns, self.current_session_ns)

    @property
    def final_min_session_ns(self) -> int:
        if self.session_count == 0 or self.min_session_ns is None:
            return self.current_session_ns
        if self.current_session_ns == 0:
            return self.min_session_ns
        return min(self.min_session_ns, self.current_session_ns)

    @property
    def avg_break_ns(self) -> int:
        return self.total_break_ns // self.break_count if self.break_count else 0

    @property
    def final_min_break_ns(self) -> int:
        return self.min_break_ns if self.min_break_ns is not None else 0


@dataclass(frozen=True, slots=True)
class EngineSummary:
    """Point-in-time view of the engine for API consumers."""

    total_project_ms: int
    total_active_ms: int
    is_idle: bool
    recent_active_seconds: int
    armed: bool
    disabled: bool
    suppressed: bool
    session_count: int
    break_count: int
    current_session_ms: int
    total_break_ms: int
