"""Command-line interface for the activity engine."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from .config import EngineSettings
from .models import DisabledNotice
from .paths import current_username, get_ledger_path
from .reporting import status_line
from .server_runner import run_server

app = typer.Typer(help="Keystroke-driven active/idle time tracker.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def track(
    root: Path = typer.Option(
        Path("."),
        "--root",
        path_type=Path,
        help="Project root being tracked.",
    ),
    project: Optional[str] = typer.Option(
        None, "--project", help="Project name (defaults to the root directory name)."
    ),
    ledger: Optional[Path] = typer.Option(
        None, "--ledger", path_type=Path, help="Location of the session ledger CSV."
    ),
    window_id: Optional[str] = typer.Option(
        None, "--window-id", help="Identifier of the host window this session is bound to."
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes without input before counting time as a break.",
    ),
    assign_status: bool = typer.Option(
        False,
        "--assign-status/--no-assign-status",
        help="Create the status record with a random assignment if missing.",
    ),
) -> None:
    """Track input read from stdin until EOF.

    Every empty line or ``input`` line counts as one input, ``env`` re-checks
    the environment for conflicts and ``status`` prints the current totals.
    """
    from .engine import ActivityEngine

    settings = EngineSettings.from_intervals(idle_minutes=idle_minutes)
    engine = ActivityEngine.for_project(
        root,
        project=project,
        ledger_path=ledger,
        window_id=window_id,
        settings=settings,
        assign_status=assign_status,
    )
    engine.bus.subscribe(
        DisabledNotice, lambda notice: typer.echo(f"DevRhythm is disabled: {notice.reason}", err=True)
    )
    with engine:
        try:
            for line in sys.stdin:
                command = line.strip().lower()
                if command in ("", "input"):
                    engine.submit_input()
                elif command == "env":
                    engine.notify_environment_changed()
                elif command == "status":
                    snapshot = engine.summary()
                    if snapshot.suppressed:
                        continue
                    typer.echo(
                        status_line(
                            snapshot.total_active_ms,
                            snapshot.recent_active_seconds,
                            snapshot.is_idle,
                            settings.window_seconds // 60,
                        )
                    )
                else:
                    logging.getLogger(__name__).debug("Ignoring unknown command %r.", command)
        except KeyboardInterrupt:
            logging.getLogger(__name__).info("Tracking interrupted; writing ledger.")


@app.command()
def summary(
    root: Path = typer.Option(Path("."), "--root", path_type=Path, help="Project root."),
    project: Optional[str] = typer.Option(None, "--project", help="Project name."),
    ledger: Optional[Path] = typer.Option(
        None, "--ledger", path_type=Path, help="Location of the session ledger CSV."
    ),
    limit: int = typer.Option(10, "--limit", min=1, help="Number of recent runs to list."),
) -> None:
    """Print lifetime totals and recent runs from a ledger."""
    from .reporting import SummaryPrinter

    resolved_root = root.resolve()
    ledger_path = ledger or get_ledger_path(
        resolved_root, current_username(), project or resolved_root.name
    )
    SummaryPrinter(ledger_path=ledger_path).print_summary(limit=limit)


@app.command()
def serve(
    root: Path = typer.Option(Path("."), "--root", path_type=Path, help="Project root."),
    project: Optional[str] = typer.Option(None, "--project", help="Project name."),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8765, "--port", min=1, max=65535, help="TCP port for the API."),
    window_id: Optional[str] = typer.Option(
        None, "--window-id", help="Identifier of the host window this session is bound to."
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes without input before counting time as a break.",
    ),
    assign_status: bool = typer.Option(
        False,
        "--assign-status/--no-assign-status",
        help="Create the status record with a random assignment if missing.",
    ),
) -> None:
    """Serve the HTTP API with a background engine."""
    run_server(
        project_root=root,
        host=host,
        port=port,
        project=project,
        window_id=window_id,
        settings=EngineSettings.from_intervals(idle_minutes=idle_minutes),
        assign_status=assign_status,
    )
