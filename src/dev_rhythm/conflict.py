"""Detect two logical tracking sessions sharing one host window."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from .registry import SessionRegistry

logger = logging.getLogger(__name__)


class ConflictCheck(ABC):
    """A single heuristic; returns a human-readable reason when it fires."""

    name: str = "conflict"

    @abstractmethod
    def detect(self) -> Optional[str]:
        raise NotImplementedError


class SharedWindowCheck(ConflictCheck):
    """More than one live session is bound to the same host window."""

    name = "shared-window"

    def __init__(self, registry: SessionRegistry, window_id: Optional[str]) -> None:
        self.registry = registry
        self.window_id = window_id

    def detect(self) -> Optional[str]:
        if self.window_id is None:
            return None
        sessions = self.registry.sessions_for_window(self.window_id)
        if len(sessions) >= 2:
            projects = ", ".join(sorted({record.project for record in sessions}))
            return (
                "Multiple projects are attached in this window "
                f"({projects}). Stats were saved up to the attach moment; "
                "further tracking is disabled."
            )
        return None


class MultipleProjectRootsCheck(ConflictCheck):
    """More than one directory carrying the project marker under the root."""

    name = "multiple-roots"

    def __init__(
        self,
        project_root: Path,
        marker: str,
        content_roots: Optional[Sequence[Path]] = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.marker = marker
        self.content_roots = [Path(root) for root in content_roots or ()]

    def candidate_roots(self) -> Iterable[Path]:
        yield self.project_root
        try:
            children = sorted(p for p in self.project_root.iterdir() if p.is_dir())
        except OSError:
            children = []
        yield from children
        yield from self.content_roots

    def marked_roots(self) -> set[str]:
        marked: set[str] = set()
        for root in self.candidate_roots():
            if (root / self.marker).is_dir():
                marked.add(str(root.resolve()))
        return marked

    def detect(self) -> Optional[str]:
        marked = self.marked_roots()
        if len(marked) >= 2:
            return (
                f"Found {len(marked)} project roots with {self.marker} under "
                f"{self.project_root}. Further tracking is disabled."
            )
        return None


class ConflictLatch:
    """One-way flag; only the first ``trip`` succeeds."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tripped = False

    @property
    def tripped(self) -> bool:
        with self._lock:
            return self._tripped

    def trip(self) -> bool:
        with self._lock:
            if self._tripped:
                return False
            self._tripped = True
            return True


class ConflictMonitor:
    """OR together every check and fire ``on_trip`` at most once."""

    def __init__(
        self,
        checks: Sequence[ConflictCheck],
        on_trip: Callable[[str], None],
        latch: Optional[ConflictLatch] = None,
    ) -> None:
        self.checks = list(checks)
        self.on_trip = on_trip
        self.latch = latch or ConflictLatch()

    @property
    def tripped(self) -> bool:
        return self.latch.tripped

    def first_reason(self) -> Optional[str]:
        for check in self.checks:
            try:
                reason = check.detect()
            except Exception:
                logger.exception("Conflict check %s failed; ignoring.", check.name)
                continue
            if reason:
                return reason
        return None

    def evaluate(self) -> bool:
        """Run the checks; return True when tracking is (now) disabled."""
        if self.latch.tripped:
            return True
        reason = self.first_reason()
        if reason is None:
            return False
        if self.latch.trip():
            logger.warning("Tracking disabled: %s", reason)
            self.on_trip(reason)
        return True
