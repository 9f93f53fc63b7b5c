from __future__ import annotations

import os
from pathlib import Path


def _project_root() -> Path:
    # core/config.py -> app/core -> app -> backend -> clubdesk -> project root
    return Path(__file__).resolve().parents[4]


PROJECT_ROOT: Path = _project_root()
APP_DIR: Path = Path(__file__).resolve().parents[1]

# SQLite database; override with CLUB_DB_PATH to run against a throwaway copy
_DEFAULT_DB_PATH = APP_DIR / "data" / "club.db"
DB_PATH: Path = Path(os.environ.get("CLUB_DB_PATH", str(_DEFAULT_DB_PATH)))

LOG_DIR: Path = Path(os.environ.get("CLUB_LOG_DIR", str(PROJECT_ROOT / "logs")))

IS_PRODUCTION: bool = os.environ.get("ENVIRONMENT") == "production"

# Stored when a schedule is created without a venue ("undecided")
UNDECIDED_VENUE: str = os.environ.get("UNDECIDED_VENUE", "未定")

MAX_GENERATED_OCCURRENCES = 100
DEFAULT_RECURRENCE_HORIZON_DAYS = 365
