"""Activity engine: classifies input, tracks the recent window, keeps the ledger."""

from __future__ import annotations

import logging
import os
import queue
import threading
import uuid
from pathlib import Path
from typing import Optional, Protocol, Sequence

from .classifier import InputGapClassifier
from .clock import SystemClock
from .config import EngineSettings
from .conflict import (
    ConflictCheck,
    ConflictMonitor,
    MultipleProjectRootsCheck,
    SharedWindowCheck,
)
from .ledger import LedgerRow, append_row, ensure_status_record, read_historical_totals, read_status
from .models import (
    DisabledNotice,
    EngineSummary,
    HistoricalTotals,
    InputEvent,
    InputNotice,
    SessionSnapshot,
    TickEvent,
    TrackingStatus,
)
from .paths import current_username, get_ledger_path, get_registry_dir, get_status_path
from .publisher import EventBus, Ticker
from .registry import SessionRecord, SessionRegistry
from .window import SlidingWindowEstimator

logger = logging.getLogger(__name__)

_STOP = object()


class Clock(Protocol):
    def monotonic_ns(self) -> int: ...

    def epoch_us(self) -> int: ...

    def epoch_ms(self) -> int: ...


class InputPump:
    """Drain queued input events into the engine on one thread."""

    def __init__(self, engine: "ActivityEngine") -> None:
        self._engine = engine
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self.is_running():
            return
        self._thread = threading.Thread(target=self._run, name="dev-rhythm-input", daemon=True)
        self._thread.start()

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def submit(self, event: InputEvent) -> None:
        self._queue.put(event)

    def stop(self, timeout: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        # Queued inputs ahead of the sentinel are still applied.
        self._queue.put(_STOP)
        thread.join(timeout=timeout)
        self._thread = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._engine.record_input(item)  # type: ignore[arg-type]


class ActivityEngine:
    """Owns every piece of tracking state behind one lock.

    The ticker thread, the input pump and on-demand queries all go through
    ``self._lock``. The only blocking work, the final ledger write, happens
    after the counters were copied and the lock released.
    """

    def __init__(
        self,
        *,
        project: str,
        project_root: Path,
        ledger_path: Path,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Clock] = None,
        username: Optional[str] = None,
        status_path: Optional[Path] = None,
        registry: Optional[SessionRegistry] = None,
        window_id: Optional[str] = None,
        content_roots: Sequence[Path] = (),
        extra_checks: Sequence[ConflictCheck] = (),
        bus: Optional[EventBus] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.settings.validate()
        self.clock: Clock = clock or SystemClock()
        self.project = project
        self.project_root = Path(project_root)
        self.ledger_path = Path(ledger_path)
        self.username = username or current_username()
        self.session_id = uuid.uuid4().hex
        self.window_id = window_id
        self.registry = registry
        self.bus = bus or EventBus()

        self._lock = threading.RLock()
        self._classifier = InputGapClassifier(self.settings.idle_threshold_ns)
        self._window = SlidingWindowEstimator(
            window_seconds=self.settings.window_seconds,
            bucket_seconds=self.settings.bucket_seconds,
            break_threshold_ms=self.settings.idle_threshold_ms,
            retention_ms=self.settings.retention_ms,
        )
        self._start_ns = self.clock.monotonic_ns()
        self._start_epoch_us = self.clock.epoch_us()
        self._disabled = False
        self._finalized = False
        self._frozen_ns: Optional[int] = None
        self._disabled_reason: Optional[str] = None

        self.status = read_status(status_path) if status_path else TrackingStatus.ENABLED
        self.historical: HistoricalTotals = read_historical_totals(self.ledger_path)
        logger.info(
            "Tracking %s; history %.2fs total, %.2fs active.",
            self.project,
            self.historical.total_project_us / 1_000_000,
            self.historical.total_active_us / 1_000_000,
        )

        checks: list[ConflictCheck] = []
        if registry is not None:
            checks.append(SharedWindowCheck(registry, window_id))
        checks.append(
            MultipleProjectRootsCheck(self.project_root, self.settings.project_marker, content_roots)
        )
        checks.extend(extra_checks)
        self.monitor = ConflictMonitor(checks, self._on_conflict)

        self._ticker = Ticker(self.settings.tick_interval.total_seconds(), self.tick)
        self._pump = InputPump(self)

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        *,
        project: Optional[str] = None,
        username: Optional[str] = None,
        ledger_path: Optional[Path] = None,
        assign_status: bool = False,
        use_registry: bool = True,
        **kwargs,
    ) -> "ActivityEngine":
        """Build an engine with the default ledger, status and registry locations."""
        root = Path(project_root).resolve()
        name = project or root.name
        user = username or current_username()
        status_path = get_status_path(root, user, name)
        clock = kwargs.get("clock") or SystemClock()
        kwargs["clock"] = clock
        if assign_status:
            ensure_status_record(status_path, user, name, clock.epoch_us())
        return cls(
            project=name,
            project_root=root,
            ledger_path=ledger_path or get_ledger_path(root, user, name),
            username=user,
            status_path=status_path,
            registry=SessionRegistry(get_registry_dir()) if use_registry else None,
            **kwargs,
        )

    # lifecycle

    def start(self) -> None:
        if self.registry is not None:
            self.registry.register(
                SessionRecord(
                    session_id=self.session_id,
                    pid=os.getpid(),
                    project=self.project,
                    window_id=self.window_id,
                )
            )
        self.bus.start()
        self._pump.start()
        if self.check_conflicts():
            return
        self._ticker.start()
        logger.info("Engine started for %s (status %s).", self.project, self.status.name)

    def close(self) -> None:
        """Stop all threads and write the final ledger row if not yet written."""
        self._ticker.stop()
        self._pump.stop()
        self._finalize(disable=False)
        self.bus.stop()
        if self.registry is not None:
            self.registry.unregister(self.session_id)
        logger.info("Engine stopped for %s.", self.project)

    def __enter__(self) -> "ActivityEngine":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # input

    def submit_input(self) -> bool:
        """Stamp an input now and hand it to the input pump."""
        event = InputEvent(monotonic_ns=self.clock.monotonic_ns(), epoch_ms=self.clock.epoch_ms())
        if not self.accepting:
            return False
        if self._pump.is_running():
            self._pump.submit(event)
            return True
        return self.record_input(event)

    def record_input(self, event: InputEvent) -> bool:
        with self._lock:
            if not self._accepting_locked():
                return False
            self._classifier.on_input(event.monotonic_ns)
            self._window.add(event.epoch_ms)
            if not self.suppressed:
                self.bus.publish(InputNotice(epoch_ms=event.epoch_ms))
                self.bus.publish(self._compose_tick_locked(event.monotonic_ns))
            return True

    # ticks and queries

    def tick(self) -> Optional[TickEvent]:
        now_ns = self.clock.monotonic_ns()
        now_ms = self.clock.epoch_ms()
        with self._lock:
            if not self._accepting_locked():
                return None
            event = self._compose_tick_locked(now_ns)
            self._window.refresh(now_ms, self._classifier.armed)
            if self.suppressed:
                return None
            self.bus.publish(event)
            return event

    def recent_active_seconds(self) -> int:
        """Active seconds in the trailing window, as of the current bucket."""
        now_ms = self.clock.epoch_ms()
        with self._lock:
            if not self._accepting_locked():
                active_seconds = self._window.cached_active_seconds
            else:
                active_seconds = self._window.refresh(now_ms, self._classifier.armed)
            return 0 if self.suppressed else active_seconds

    def summary(self) -> EngineSummary:
        now_ns = self.clock.monotonic_ns()
        recent = self.recent_active_seconds()
        with self._lock:
            tick = self._compose_tick_locked(now_ns)
            counters = self._classifier.counters
            return EngineSummary(
                total_project_ms=tick.total_project_ms,
                total_active_ms=tick.total_active_ms,
                is_idle=tick.is_idle,
                recent_active_seconds=recent,
                armed=self._classifier.armed,
                disabled=self._disabled,
                suppressed=self.suppressed,
                session_count=counters.session_count,
                break_count=counters.break_count,
                current_session_ms=self._classifier.state.current_session_ns // 1_000_000,
                total_break_ms=counters.total_break_ns // 1_000_000,
            )

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._classifier.armed

    @property
    def disabled(self) -> bool:
        with self._lock:
            return self._disabled

    @property
    def disabled_reason(self) -> Optional[str]:
        return self._disabled_reason

    @property
    def suppressed(self) -> bool:
        """Counting goes on while suppressed; only published values are withheld."""
        return self.status is TrackingStatus.SUPPRESSED

    @property
    def accepting(self) -> bool:
        with self._lock:
            return self._accepting_locked()

    @property
    def classifier(self) -> InputGapClassifier:
        return self._classifier

    # conflicts

    def check_conflicts(self) -> bool:
        """Re-evaluate conflict heuristics; call on every environment change."""
        return self.monitor.evaluate()

    notify_environment_changed = check_conflicts

    def _on_conflict(self, reason: str) -> None:
        self._ticker.stop()
        self._disabled_reason = reason
        self._finalize(disable=True)
        self.bus.publish(DisabledNotice(reason=reason))

    # internals

    def _accepting_locked(self) -> bool:
        return not self._disabled and not self._finalized

    def _compose_tick_locked(self, now_ns: int) -> TickEvent:
        # Project time stops growing once the final row is taken.
        end_ns = now_ns if self._frozen_ns is None else min(now_ns, self._frozen_ns)
        elapsed_us = (end_ns - self._start_ns) // 1_000
        total_project_us = self.historical.total_project_us + elapsed_us
        if self._classifier.armed:
            total_active_us = self.historical.total_active_us + self._classifier.live_active_ns() // 1_000
        else:
            total_active_us = 0
        return TickEvent(
            total_project_ms=total_project_us // 1_000,
            total_active_ms=total_active_us // 1_000,
            is_idle=self._classifier.is_idle(now_ns),
        )

    def _snapshot_locked(self, end_ns: int) -> SessionSnapshot:
        counters = self._classifier.counters
        return SessionSnapshot(
            start_epoch_us=self._start_epoch_us,
            end_epoch_us=self.clock.epoch_us(),
            elapsed_ns=end_ns - self._start_ns,
            total_active_ns=counters.total_active_ns,
            current_session_ns=self._classifier.state.current_session_ns,
            total_break_ns=counters.total_break_ns,
            session_count=counters.session_count,
            max_session_ns=counters.max_session_ns,
            min_session_ns=counters.min_session_ns,
            break_count=counters.break_count,
            max_break_ns=counters.max_break_ns,
            min_break_ns=counters.min_break_ns,
        )

    def _finalize(self, *, disable: bool) -> bool:
        with self._lock:
            if self._finalized:
                return False
            self._finalized = True
            if disable:
                self._disabled = True
            self._frozen_ns = self.clock.monotonic_ns()
            snapshot = self._snapshot_locked(self._frozen_ns)
        self._write_snapshot(snapshot)
        return True

    def _write_snapshot(self, snapshot: SessionSnapshot) -> None:
        row = LedgerRow.from_snapshot(snapshot, username=self.username, project=self.project)
        try:
            append_row(self.ledger_path, row)
        except Exception:
            logger.exception("Failed to write ledger row to %s.", self.ledger_path)
        else:
            logger.info(
                "Wrote ledger row: %d sessions, %.2fs active.",
                row.sessions,
                row.active_us / 1_000_000,
            )
