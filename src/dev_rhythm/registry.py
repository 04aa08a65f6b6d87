"""Registry of live tracking sessions shared across processes."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionRecord:
    session_id: str
    pid: int
    project: str
    window_id: Optional[str]


class SessionRegistry:
    """One JSON file per live session; entries of dead processes are pruned."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def register(self, record: SessionRecord) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._path_for(record.session_id).write_text(
                json.dumps(asdict(record)), encoding="utf-8"
            )
        except OSError:
            logger.exception("Failed to register session %s.", record.session_id)

    def unregister(self, session_id: str) -> None:
        try:
            self._path_for(session_id).unlink(missing_ok=True)
        except OSError:
            logger.exception("Failed to unregister session %s.", session_id)

    def live_sessions(self) -> list[SessionRecord]:
        if not self.directory.exists():
            return []
        records: list[SessionRecord] = []
        for path in sorted(self.directory.glob("*.json")):
            record = self._load(path)
            if record is None:
                continue
            if not _process_alive(record.pid):
                logger.debug("Pruning stale session %s (pid %d).", record.session_id, record.pid)
                path.unlink(missing_ok=True)
                continue
            records.append(record)
        return records

    def sessions_for_window(self, window_id: str) -> list[SessionRecord]:
        return [record for record in self.live_sessions() if record.window_id == window_id]

    def _path_for(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    @staticmethod
    def _load(path: Path) -> Optional[SessionRecord]:
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return SessionRecord(
                session_id=str(payload["session_id"]),
                pid=int(payload["pid"]),
                project=str(payload["project"]),
                window_id=payload.get("window_id"),
            )
        except (OSError, ValueError, KeyError, TypeError):
            logger.debug("Skipping unreadable session entry %s.", path, exc_info=True)
            return None


def _process_alive(pid: int) -> bool:
    if pid == os.getpid():
        return True
    try:
        return psutil.pid_exists(pid)
    except psutil.Error:
        return False
