# Overview: SQLite file maintenance: WAL checkpoints, integrity checks, side-file paths.

from __future__ import annotations

import os
from dataclasses import dataclass

from ..extensions import db

# Side files SQLite creates next to a WAL-mode database
SIDE_FILE_SUFFIXES = ("-wal", "-shm")


@dataclass(frozen=True)
class CheckpointResult:
    busy: bool
    log_frames: int
    checkpointed_frames: int

    @property
    def complete(self) -> bool:
        # log_frames == -1 means the database is not in WAL mode
        return not self.busy and self.log_frames == self.checkpointed_frames


def database_path() -> str | None:
    """Absolute path of the primary database file, or None for in-memory stores."""
    if db.engine.dialect.name != "sqlite":
        return None
    database = db.engine.url.database
    if not database or database == ":memory:" or database.startswith("file::memory:"):
        return None
    return os.path.abspath(database)


def side_file_paths(path: str) -> list[str]:
    return [path + suffix for suffix in SIDE_FILE_SUFFIXES]


def checkpoint(connection=None, *, mode: str = "TRUNCATE") -> CheckpointResult:
    """
    Fold the write-ahead log back into the main database file.

    TRUNCATE waits (busy_timeout) for the current writer, then resets the
    WAL to zero bytes so the main file alone holds every committed bill.
    """
    mode = mode.upper()
    if mode not in ("PASSIVE", "FULL", "RESTART", "TRUNCATE"):
        raise ValueError(f"Unknown checkpoint mode {mode}")

    def _run(conn) -> CheckpointResult:
        row = conn.exec_driver_sql(f"PRAGMA wal_checkpoint({mode})").fetchone()
        return CheckpointResult(busy=bool(row[0]), log_frames=row[1], checkpointed_frames=row[2])

    if connection is not None:
        return _run(connection)
    with db.engine.connect() as conn:
        return _run(conn)


def journal_mode() -> str:
    with db.engine.connect() as conn:
        return str(conn.exec_driver_sql("PRAGMA journal_mode").scalar())


def integrity_check() -> list[str]:
    """Return the problems PRAGMA quick_check reports ([] when healthy)."""
    with db.engine.connect() as conn:
        rows = [str(r[0]) for r in conn.exec_driver_sql("PRAGMA quick_check").fetchall()]
    return [] if rows == ["ok"] else rows
