# backend/mnepos/config.py
from __future__ import annotations
import os


def _env(*names: str, default: str = "") -> str:
    # First non-blank value wins; the desktop shell exports several aliases.
    for name in names:
        raw = (os.environ.get(name) or "").strip()
        if raw:
            return raw
    return default


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    # Data directory holds app.db and its -wal/-shm side files
    DATA_DIR = _env("MEATEAT_POS_DATA_DIR", "POS_DATA_DIR", default=os.path.join(os.getcwd(), "db"))
    DATABASE_PATH = os.path.join(DATA_DIR, "app.db")

    SQLALCHEMY_DATABASE_URI = _env(
        "DATABASE_URL",  # optional alternative location
        default=f"sqlite:///{DATABASE_PATH}",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Writers queue behind the write lock instead of failing fast
    SQLITE_BUSY_TIMEOUT_MS = _env_int("POS_SQLITE_BUSY_TIMEOUT_MS", 15000)
    # Keep the WAL small under sustained bill creation
    SQLITE_WAL_AUTOCHECKPOINT = _env_int("POS_SQLITE_WAL_AUTOCHECKPOINT", 100)

    # Desktop installs create the schema on first run; set to 0 when using `flask db upgrade`
    AUTO_CREATE_SCHEMA = _env("POS_AUTO_CREATE_SCHEMA", default="1") == "1"

    # Bill numbers look like MNE-000042
    BILL_NUMBER_PREFIX = "MNE"
    BILL_NUMBER_WIDTH = 6
    MAX_LINE_QUANTITY = 1000

    BACKUP_DIR = _env("POS_BACKUP_DIR", default=os.path.join(os.getcwd(), "backups"))
    BACKUP_FILE_PREFIX = "meat-eat"
    BACKUP_INTERVAL_MINUTES = 1440
    BACKUP_SCHEDULER_ENABLED = _env("POS_BACKUP_SCHEDULER", default="1") == "1"

    LOG_LEVEL = _env("POS_LOG_LEVEL", default="INFO").upper()

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:1420",
        "tauri://localhost",
        "https://tauri.localhost",
    }
