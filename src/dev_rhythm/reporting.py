"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path

from .ledger import SESSION_COUNT_COLUMNS, iter_rows, read_historical_totals


class SummaryPrinter:
    """Render human-readable ledger summaries in the console."""

    def __init__(self, ledger_path: Path) -> None:
        self.ledger_path = Path(ledger_path)

    def print_summary(self, limit: int = 10) -> None:
        rows = list(iter_rows(self.ledger_path))
        if not rows:
            print("No sessions recorded in the selected ledger.")
            return

        totals = read_historical_totals(self.ledger_path)
        total_seconds = totals.total_project_us / 1_000_000
        active_seconds = totals.total_active_us / 1_000_000

        print(f"Summary for {self.ledger_path.name}")
        print("-" * 40)
        print(f"Tracked time: {format_duration(total_seconds)}")
        print(f"Active time:  {format_duration(active_seconds)}")
        print(f"% active:     {format_percentage(active_seconds, total_seconds)}")
        print(f"Sessions:     {sum(_session_count(row) for row in rows)}")
        print()

        print("Recent runs:")
        for row in rows[-limit:]:
            start = f"{row.get('Start Date', '')} {row.get('Start Time', '')[:8]}"
            total = format_duration(_seconds_cell(row, "Total Time (sec)"))
            active = format_duration(_seconds_cell(row, "Active Time (sec)"))
            print(f"  {start:<20} total {total}  active {active}")


def format_duration(seconds: float) -> str:
    total_seconds = max(int(round(seconds)), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_minutes_rounded(seconds: int) -> str:
    """``7min`` / ``1h 05min``; 30 seconds and up round to the next minute."""
    if seconds <= 0:
        return "0min"
    rounded = (seconds + 30) // 60
    hours, minutes = divmod(rounded, 60)
    if hours:
        return f"{hours}h {minutes:02d}min"
    return f"{minutes}min"


def format_percentage(part: float, whole: float) -> str:
    if whole <= 0:
        return "0.0%"
    ratio = min(max(part, 0.0), whole) / whole
    return f"{ratio * 100:.1f}%"


def status_line(
    total_active_ms: int, recent_active_seconds: int, is_idle: bool, window_minutes: int = 30
) -> str:
    state = "idle" if is_idle else "active"
    active = format_minutes_rounded(max(total_active_ms, 0) // 1000)
    recent = format_minutes_rounded(recent_active_seconds)
    return f"[{state}] Active Time: {active} ({recent} of last {window_minutes} mins)"


def _seconds_cell(row: dict[str, str], column: str) -> float:
    try:
        return float(Decimal(row.get(column, "") or "0"))
    except InvalidOperation:
        return 0.0


def _session_count(row: dict[str, str]) -> int:
    for column in SESSION_COUNT_COLUMNS:
        if column in row:
            return _int_cell(row, column)
    return 0


def _int_cell(row: dict[str, str], column: str) -> int:
    try:
        return int(row.get(column, "") or 0)
    except ValueError:
        return 0

