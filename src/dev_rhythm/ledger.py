"""CSV ledger of completed tracking sessions and the status record."""

from __future__ import annotations

import csv
import logging
import random
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .clock import datetime_from_epoch_us
from .models import HistoricalTotals, SessionSnapshot, TrackingStatus

logger = logging.getLogger(__name__)


DATE_FMT = "%Y-%m-%d"
TIME_FMT = "%H:%M:%S.%f"

LEDGER_HEADER = (
    "Username",
    "Project",
    "Start Date",
    "Start Time",
    "Start Epoch (us)",
    "End Date",
    "End Time",
    "End Epoch (us)",
    "Total Time (sec)",
    "Active Time (sec)",
    "Break Time (sec)",
    "Total Mini Sessions",
    "Avg Mini Session (sec)",
    "Avg Break (sec)",
    "Max Mini Session (sec)",
    "Min Mini Session (sec)",
    "Max Break (sec)",
    "Min Break (sec)",
)

STATUS_HEADER = ("Username", "Project", "Date", "Time", "Epoch (us)", "Random", "Status")

TOTAL_TIME_COLUMNS = ("Total Time (sec)",)
ACTIVE_TIME_COLUMNS = ("Active Time (sec)", "Total Active Time (sec)")
SESSION_COUNT_COLUMNS = ("Total Mini Sessions", "Total Sessions")

# Names used by earlier ledgers, mapped onto the current columns.
_COLUMN_ALIASES = {
    "total active time (sec)": "Active Time (sec)",
    "total sessions": "Total Mini Sessions",
    "avg session (sec)": "Avg Mini Session (sec)",
    "max session (sec)": "Max Mini Session (sec)",
    "min session (sec)": "Min Mini Session (sec)",
}

_MICROS = Decimal(1_000_000)
_CENTS = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class LedgerRow:
    username: str
    project: str
    start_epoch_us: int
    end_epoch_us: int
    total_us: int
    active_us: int
    break_us: int
    sessions: int
    avg_session_us: int
    max_session_us: int
    min_session_us: int
    avg_break_us: int
    max_break_us: int
    min_break_us: int

    @classmethod
    def from_snapshot(
        cls, snapshot: SessionSnapshot, *, username: str, project: str
    ) -> "LedgerRow":
        return cls(
            username=username,
            project=project,
            start_epoch_us=snapshot.start_epoch_us,
            end_epoch_us=snapshot.end_epoch_us,
            total_us=snapshot.elapsed_ns // 1_000,
            active_us=snapshot.live_active_ns // 1_000,
            break_us=snapshot.total_break_ns // 1_000,
            sessions=snapshot.all_sessions,
            avg_session_us=snapshot.avg_session_ns // 1_000,
            max_session_us=snapshot.final_max_session_ns // 1_000,
            min_session_us=snapshot.final_min_session_ns // 1_000,
            avg_break_us=snapshot.avg_break_ns // 1_000,
            max_break_us=snapshot.max_break_ns // 1_000,
            min_break_us=snapshot.final_min_break_ns // 1_000,
        )

    def as_csv_row(self) -> list[str]:
        start = datetime_from_epoch_us(self.start_epoch_us)
        end = datetime_from_epoch_us(self.end_epoch_us)
        return [
            self.username,
            self.project,
            start.strftime(DATE_FMT),
            start.strftime(TIME_FMT),
            str(self.start_epoch_us),
            end.strftime(DATE_FMT),
            end.strftime(TIME_FMT),
            str(self.end_epoch_us),
            micros_to_seconds(self.total_us),
            micros_to_seconds(self.active_us),
            micros_to_seconds(self.break_us),
            str(self.sessions),
            micros_to_seconds(self.avg_session_us),
            micros_to_seconds(self.avg_break_us),
            micros_to_seconds(self.max_session_us),
            micros_to_seconds(self.min_session_us),
            micros_to_seconds(self.max_break_us),
            micros_to_seconds(self.min_break_us),
        ]

    def as_record(self) -> dict[str, str]:
        return dict(zip(LEDGER_HEADER, self.as_csv_row()))


def micros_to_seconds(micros: int) -> str:
    """Render microseconds as seconds with two decimals, rounding half up."""
    value = (Decimal(micros) / _MICROS).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return format(value, "f")


def append_row(path: Path, row: LedgerRow) -> None:
    """Append one row, writing the header only when the file is new.

    Rows are written by column name, so a ledger created with another column
    order or with older column names stays aligned.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    header = read_header(path)
    record = row.as_record()
    with path.open("a", newline="", encoding="utf-8") as handle:
        if header is None:
            writer = csv.DictWriter(handle, fieldnames=LEDGER_HEADER, lineterminator="\n")
            writer.writeheader()
            writer.writerow(record)
            return
        writer = csv.DictWriter(
            handle, fieldnames=header, restval="", extrasaction="ignore", lineterminator="\n"
        )
        writer.writerow(_align_to_header(record, header))


def read_header(path: Path) -> Optional[list[str]]:
    """Header of an existing ledger; None for a missing or empty file."""
    path = Path(path)
    if not path.exists():
        return None
    with path.open(newline="", encoding="utf-8") as handle:
        header = next(csv.reader(handle), None)
    return header or None


def sum_seconds_column(path: Path, candidates: Sequence[str]) -> int:
    """Sum a seconds column across all rows, in microseconds.

    The first header in ``candidates`` present in the file wins. Anything
    missing or unparseable contributes zero.
    """
    path = Path(path)
    if not path.exists():
        return 0
    try:
        with path.open(newline="", encoding="utf-8") as handle:
            reader = csv.reader(handle)
            header = next(reader, None)
            if header is None:
                return 0
            index = _find_column(header, candidates)
            if index is None:
                logger.debug("No column among %s in %s.", candidates, path)
                return 0
            total = Decimal(0)
            for cells in reader:
                if index >= len(cells):
                    continue
                total += _parse_decimal(cells[index]) * _MICROS
    except (OSError, UnicodeDecodeError, csv.Error):
        logger.debug("Could not read ledger %s; treating as empty.", path, exc_info=True)
        return 0
    return int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def read_historical_totals(path: Path) -> HistoricalTotals:
    return HistoricalTotals(
        total_project_us=sum_seconds_column(path, TOTAL_TIME_COLUMNS),
        total_active_us=sum_seconds_column(path, ACTIVE_TIME_COLUMNS),
    )


def iter_rows(path: Path) -> Iterator[dict[str, str]]:
    """Yield ledger rows keyed by header; nothing if the file is unreadable."""
    path = Path(path)
    if not path.exists():
        return
    try:
        with path.open(newline="", encoding="utf-8") as handle:
            for row in csv.DictReader(handle):
                yield {(key or "").strip(): (value or "").strip() for key, value in row.items()}
    except (OSError, UnicodeDecodeError, csv.Error):
        logger.debug("Could not read ledger %s.", path, exc_info=True)


def read_status(path: Path) -> TrackingStatus:
    """Return the tracking status; anything but an explicit suppression enables."""
    path = Path(path)
    if not path.exists():
        return TrackingStatus.ENABLED
    try:
        with path.open(newline="", encoding="utf-8") as handle:
            reader = csv.reader(handle)
            next(reader, None)
            row = next(reader, None)
    except (OSError, UnicodeDecodeError, csv.Error):
        logger.debug("Could not read status record %s.", path, exc_info=True)
        return TrackingStatus.ENABLED
    if not row:
        return TrackingStatus.ENABLED
    if row[-1].strip() == TrackingStatus.SUPPRESSED.value:
        return TrackingStatus.SUPPRESSED
    return TrackingStatus.ENABLED


def ensure_status_record(
    path: Path,
    username: str,
    project: str,
    epoch_us: int,
    rng: Optional[random.Random] = None,
) -> None:
    """Create the status record with a coin-flip assignment if it is missing."""
    path = Path(path)
    if path.exists():
        return
    draw = (rng or random.SystemRandom()).random()
    status = TrackingStatus.ENABLED if draw < 0.5 else TrackingStatus.SUPPRESSED
    stamp = datetime_from_epoch_us(epoch_us)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            writer.writerow(STATUS_HEADER)
            writer.writerow(
                [
                    username,
                    project,
                    stamp.strftime(DATE_FMT),
                    stamp.strftime(TIME_FMT),
                    str(epoch_us),
                    f"{draw:.6f}",
                    status.value,
                ]
            )
    except OSError:
        logger.exception("Failed to write status record %s.", path)


def _align_to_header(record: dict[str, str], header: Sequence[str]) -> dict[str, str]:
    by_name = {name.lower(): value for name, value in record.items()}
    aligned: dict[str, str] = {}
    for column in header:
        key = column.strip().lower()
        key = _COLUMN_ALIASES.get(key, key).lower()
        if key in by_name:
            aligned[column] = by_name[key]
        else:
            logger.debug("Ledger column %r has no value; leaving it blank.", column)
    return aligned


def _find_column(header: Sequence[str], candidates: Sequence[str]) -> Optional[int]:
    columns = [cell.strip().lower() for cell in header]
    for candidate in candidates:
        try:
            return columns.index(candidate.lower())
        except ValueError:
            continue
    return None


def _parse_decimal(value: str) -> Decimal:
    try:
        parsed = Decimal(value.strip().strip('"'))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not parsed.is_finite():
        return Decimal(0)
    return parsed
