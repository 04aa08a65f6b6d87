"""Helpers to launch the local HTTP API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import EngineSettings
from .engine import ActivityEngine
from .webapp import create_app


def run_server(
    *,
    project_root: Path,
    host: str = "127.0.0.1",
    port: int = 8765,
    project: Optional[str] = None,
    window_id: Optional[str] = None,
    settings: Optional[EngineSettings] = None,
    assign_status: bool = False,
    log_level: str = "info",
) -> None:
    """Start the FastAPI app with one engine bound to ``project_root``."""
    engine = ActivityEngine.for_project(
        project_root,
        project=project,
        window_id=window_id,
        settings=settings,
        assign_status=assign_status,
    )
    app = create_app(engine=engine)

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
