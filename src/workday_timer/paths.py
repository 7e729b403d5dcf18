"""Helpers for locating application directories."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from platformdirs import PlatformDirs


APP_NAME = "WorkdayTimer"
APP_AUTHOR = "WorkdayTimer"
DATA_DIR_ENV_VAR = "WORKDAY_TIMER_HOME"


def get_data_dir() -> Path:
    """Return the base directory for the database and log file.

    ``WORKDAY_TIMER_HOME`` overrides the per-user platform location.
    """
    override = os.environ.get(DATA_DIR_ENV_VAR)
    if override:
        path = Path(override).expanduser()
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
        path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "workday.sqlite3"


def get_log_path() -> Path:
    return get_data_dir() / "workday-timer.log"


def resolve_db_path(explicit: Optional[Path]) -> Path:
    if explicit is None:
        return get_db_path()
    path = Path(explicit).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
