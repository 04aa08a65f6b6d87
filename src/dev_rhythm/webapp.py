"""FastAPI application that exposes the activity engine to a host over HTTP."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .config import EngineSettings
from .engine import ActivityEngine
from .reporting import format_percentage, status_line

logger = logging.getLogger(__name__)


class InputPayload(BaseModel):
    kind: Literal["key", "click"] = "key"
    count: int = Field(default=1, ge=1, le=1000)

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    engine: Optional[ActivityEngine] = None,
    project_root: Optional[Path] = None,
    settings: Optional[EngineSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application around one engine."""
    if engine is None:
        if project_root is None:
            raise ValueError("either engine or project_root is required")
        engine = ActivityEngine.for_project(project_root, settings=settings)

    app = FastAPI(title="DevRhythm", version="0.3.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine

    @app.on_event("startup")
    async def _startup() -> None:
        engine.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        engine.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        current: ActivityEngine = request.app.state.engine
        return {
            "project": current.project,
            "ledger_path": str(current.ledger_path),
            "tracking_status": current.status.value,
            "disabled": current.disabled,
            "disabled_reason": current.disabled_reason,
            "idle_minutes": current.settings.idle_threshold.total_seconds() / 60.0,
            "window_minutes": current.settings.window_span.total_seconds() / 60.0,
        }

    @app.get("/api/summary")
    def summary(request: Request) -> Dict[str, Any]:
        current: ActivityEngine = request.app.state.engine
        snapshot = current.summary()
        window_minutes = current.settings.window_seconds // 60
        return {
            "totals": {
                "project_ms": snapshot.total_project_ms,
                "active_ms": snapshot.total_active_ms,
                "active_percent": format_percentage(
                    snapshot.total_active_ms, snapshot.total_project_ms
                ),
            },
            "is_idle": snapshot.is_idle,
            "recent_active_seconds": snapshot.recent_active_seconds,
            "armed": snapshot.armed,
            "disabled": snapshot.disabled,
            "suppressed": snapshot.suppressed,
            "sessions": {
                "closed": snapshot.session_count,
                "breaks": snapshot.break_count,
                "current_ms": snapshot.current_session_ms,
                "break_ms": snapshot.total_break_ms,
            },
            "label": ""
            if snapshot.suppressed
            else status_line(
                snapshot.total_active_ms,
                snapshot.recent_active_seconds,
                snapshot.is_idle,
                window_minutes,
            ),
        }

    @app.post("/api/input")
    def record_input(payload: InputPayload, request: Request) -> Dict[str, Any]:
        current: ActivityEngine = request.app.state.engine
        accepted = 0
        for _ in range(payload.count):
            if current.submit_input():
                accepted += 1
        if accepted == 0 and current.disabled:
            raise HTTPException(status_code=409, detail="Tracking is disabled.")
        return {"accepted": accepted}

    @app.post("/api/environment")
    def environment_changed(request: Request) -> Dict[str, Any]:
        current: ActivityEngine = request.app.state.engine
        disabled = current.notify_environment_changed()
        return {"disabled": disabled, "reason": current.disabled_reason}

    return app
