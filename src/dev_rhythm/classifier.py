"""Classify inter-input gaps into sessions and breaks."""

from __future__ import annotations

import logging

from .models import Accumulator, SessionState

logger = logging.getLogger(__name__)


class InputGapClassifier:
    """Folds input gaps into session and break counters.

    The first input only seeds the last-input time. The second input arms
    the session; from then on every gap shorter than the idle threshold
    extends the open session and every longer gap closes it and records a
    break. Not thread-safe; the engine serializes access.
    """

    def __init__(self, idle_threshold_ns: int) -> None:
        if idle_threshold_ns <= 0:
            raise ValueError("idle threshold must be positive")
        self.idle_threshold_ns = idle_threshold_ns
        self.state = SessionState()
        self.counters = Accumulator()

    @property
    def armed(self) -> bool:
        return self.state.armed

    @property
    def first_input_seen(self) -> bool:
        return self.state.input_count > 0

    def on_input(self, t_ns: int) -> None:
        state = self.state
        state.input_count += 1

        if state.input_count == 1:
            state.last_input_ns = t_ns
            return

        gap = t_ns - state.last_input_ns
        state.last_input_ns = t_ns

        if state.input_count == 2:
            state.current_session_ns = gap if gap < self.idle_threshold_ns else 0
            state.armed = True
            logger.debug("Session armed; opening gap %d ns.", gap)
            return

        if gap >= self.idle_threshold_ns:
            if state.current_session_ns > 0:
                self.counters.close_session(state.current_session_ns)
            self.counters.record_break(gap)
            logger.debug(
                "Break of %d ns closed a session of %d ns.",
                gap,
                state.current_session_ns,
            )
            state.current_session_ns = 0
        else:
            state.current_session_ns += gap

    def is_idle(self, now_ns: int) -> bool:
        if self.state.last_input_ns is None:
            return True
        return now_ns - self.state.last_input_ns >= self.idle_threshold_ns

    def live_active_ns(self) -> int:
        if not self.state.armed:
            return 0
        return self.counters.total_active_ns + self.state.current_session_ns
