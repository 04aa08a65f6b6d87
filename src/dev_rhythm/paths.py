"""Helpers for locating ledger and registry files."""

from __future__ import annotations

import getpass
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "DevRhythm"
APP_AUTHOR = "DevRhythm"
PROJECT_DATA_DIRNAME = ".devrhythm"


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_registry_dir() -> Path:
    path = get_data_dir() / "sessions"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_project_data_dir(project_root: Path) -> Path:
    return Path(project_root) / PROJECT_DATA_DIRNAME


def get_ledger_path(project_root: Path, username: str, project: str) -> Path:
    return get_project_data_dir(project_root) / f"{username}_{project}_idle_stats.csv"


def get_status_path(project_root: Path, username: str, project: str) -> Path:
    return get_project_data_dir(project_root) / f"{username}_{project}_status.csv"


def current_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"
