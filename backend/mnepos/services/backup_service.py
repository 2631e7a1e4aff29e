# Overview: Point-in-time backups of the SQLite file and restore with file replacement.

"""
Backup: checkpoint -> copy to a hidden *.part file -> os.replace to the final
name. A file only ever appears under its final <prefix>-<YYYYMMDDHHMMSS>.db
name once it is complete, so listings never see a half-written backup.

Restore: flag restart-required -> checkpoint -> close every pooled handle ->
delete -wal/-shm -> replace the primary file. The process must be restarted
afterwards; until then the API refuses requests.

Backup and restore share _FILE_LOCK so they never overlap in this process.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from mnepos.time_utils import compact_timestamp, timestamp_to_utc_z
from . import maintenance_service, settings_service

BACKUP_EXTENSION = ".db"
RESTART_REQUIRED_KEY = "mnepos.restart_required"

_FILE_LOCK = threading.Lock()
_COPY_CHUNK = 1024 * 1024


class BackupError(Exception):
    """
    Backup/restore resource problem. Nothing was changed unless
    restart_required is set.

    kind: not_found | invalid | busy | io
    """
    restart_required = False

    def __init__(self, message: str, kind: str = "io"):
        super().__init__(message)
        self.kind = kind


class RestoreFailedError(BackupError):
    """Restore failed after the live database was closed; restart required."""
    restart_required = True


@dataclass(frozen=True)
class BackupFile:
    name: str
    path: str
    size_bytes: int
    modified_ts: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "size_bytes": self.size_bytes,
            "modified_at": timestamp_to_utc_z(self.modified_ts),
        }


@dataclass(frozen=True)
class RestoreResult:
    ok: bool
    source: str
    restart_required: bool

    def to_dict(self) -> dict:
        return {"ok": self.ok, "source": self.source, "restart_required": self.restart_required}


# =============================================================================
# Process lifecycle flag
# =============================================================================

def mark_restart_required(app=None) -> None:
    app = app or current_app._get_current_object()
    app.extensions[RESTART_REQUIRED_KEY] = True


def restart_required(app=None) -> bool:
    app = app or current_app._get_current_object()
    return bool(app.extensions.get(RESTART_REQUIRED_KEY))


# =============================================================================
# Helpers
# =============================================================================

def _is_backup_name(name: str) -> bool:
    return name.lower().endswith(BACKUP_EXTENSION)


def _copy_file(src, dst) -> None:
    shutil.copyfileobj(src, dst, _COPY_CHUNK)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        current_app.logger.warning("Could not remove temporary file %s", path)


def _copy_to_temp(src_path: str, directory: str, prefix: str) -> str:
    """Copy into a new hidden temp file inside directory; fsync; return its path."""
    fd, tmp_path = tempfile.mkstemp(prefix=f".{prefix}-", suffix=".part", dir=directory)
    try:
        with os.fdopen(fd, "wb") as dst, open(src_path, "rb") as src:
            _copy_file(src, dst)
            dst.flush()
            os.fsync(dst.fileno())
    except BaseException:
        _remove_quietly(tmp_path)
        raise
    return tmp_path


def _final_backup_path(directory: str, prefix: str) -> str:
    """<prefix>-<YYYYMMDDHHMMSS>.db, with -N appended on a same-second collision."""
    base = f"{prefix}-{compact_timestamp()}"
    candidate = os.path.join(directory, base + BACKUP_EXTENSION)
    n = 1
    while os.path.exists(candidate):
        candidate = os.path.join(directory, f"{base}-{n}{BACKUP_EXTENSION}")
        n += 1
    return candidate


def _wal_is_empty(path: str) -> bool:
    wal = path + "-wal"
    return not os.path.exists(wal) or os.path.getsize(wal) == 0


@contextmanager
def _checkpointed_snapshot(path: str, *, attempts: int = 5, backoff_base: float = 0.05):
    """
    Hold a read transaction on a fully checkpointed database.

    After a complete TRUNCATE checkpoint the WAL is empty, so the read
    transaction reads the main file directly. While it is open no later
    checkpoint may write into the main file, so a file-level copy taken now
    is consistent. Writers keep appending to the WAL and are not blocked.
    """
    for attempt in range(attempts):
        with db.engine.connect() as conn:
            result = maintenance_service.checkpoint(conn)
            if result.complete:
                conn.exec_driver_sql("BEGIN")
                conn.exec_driver_sql("SELECT count(*) FROM sqlite_master").scalar()
                if _wal_is_empty(path):
                    try:
                        yield
                    finally:
                        conn.rollback()
                    return
                conn.rollback()
        time.sleep(backoff_base * (2 ** attempt))
    raise BackupError("Database is busy, could not checkpoint for backup", kind="busy")


# =============================================================================
# Backup
# =============================================================================

def run_backup(target_dir: str | None = None) -> str:
    """
    Write a consistent copy of the live database into target_dir.

    Returns the final backup path. On failure nothing is left under a final
    name and the temp file is removed.
    """
    target = (target_dir or "").strip() or settings_service.get_backup_settings().backup_path
    target = os.path.abspath(os.path.expanduser(target))
    prefix = current_app.config["BACKUP_FILE_PREFIX"]

    src_path = maintenance_service.database_path()
    if src_path is None:
        raise BackupError("Backups need a file-backed SQLite database", kind="invalid")
    if not os.path.isfile(src_path):
        raise BackupError(f"Database file not found: {src_path}", kind="not_found")

    try:
        os.makedirs(target, exist_ok=True)
    except OSError as exc:
        raise BackupError(f"Cannot create backup directory {target}: {exc}") from exc
    if not os.path.isdir(target):
        raise BackupError(f"Backup target is not a directory: {target}", kind="invalid")

    with _FILE_LOCK:
        tmp_path = None
        try:
            with _checkpointed_snapshot(src_path):
                tmp_path = _copy_to_temp(src_path, target, prefix)
            final_path = _final_backup_path(target, prefix)
            os.replace(tmp_path, final_path)
            tmp_path = None
        except (OSError, SQLAlchemyError) as exc:
            raise BackupError(f"Backup failed: {exc}") from exc
        finally:
            if tmp_path:
                _remove_quietly(tmp_path)

    current_app.logger.info("Backup written to %s", final_path)
    return final_path


def list_backups(directory: str | None = None) -> list[BackupFile]:
    """Backup files in directory, most recently modified first."""
    directory = (directory or "").strip() or settings_service.get_backup_settings().backup_path
    directory = os.path.abspath(os.path.expanduser(directory))
    if not os.path.isdir(directory):
        return []

    files: list[BackupFile] = []
    with os.scandir(directory) as it:
        for entry in it:
            if not entry.is_file() or not _is_backup_name(entry.name):
                continue
            st = entry.stat()
            files.append(
                BackupFile(
                    name=entry.name,
                    path=os.path.abspath(entry.path),
                    size_bytes=st.st_size,
                    modified_ts=st.st_mtime,
                )
            )
    files.sort(key=lambda f: (f.modified_ts, f.name), reverse=True)
    return files


# =============================================================================
# Restore
# =============================================================================

def resolve_restore_source(source: str | None) -> str:
    """A .db file as given, or the newest .db file inside a directory."""
    if not source or not str(source).strip():
        raise BackupError("Backup source is required", kind="invalid")
    path = os.path.abspath(os.path.expanduser(str(source).strip()))

    if os.path.isdir(path):
        files = list_backups(path)
        if not files:
            raise BackupError(f"No {BACKUP_EXTENSION} backups found in {path}", kind="not_found")
        return files[0].path
    if os.path.isfile(path):
        if not _is_backup_name(path):
            raise BackupError(f"Backup file must end with {BACKUP_EXTENSION}", kind="invalid")
        return path
    raise BackupError(f"Backup not found: {path}", kind="not_found")


def _replace_file(src_path: str, dst_path: str) -> None:
    tmp_path = _copy_to_temp(src_path, os.path.dirname(dst_path), "restore")
    try:
        os.replace(tmp_path, dst_path)
    except BaseException:
        _remove_quietly(tmp_path)
        raise


def restore_backup(source: str | None) -> RestoreResult:
    """
    Replace the live database with a backup.

    Errors raised before the database is closed are plain BackupError
    (nothing happened). After that point the process is flagged
    restart-required whatever the outcome.
    """
    src_path = resolve_restore_source(source)
    primary = maintenance_service.database_path()
    if primary is None:
        raise BackupError("Restore needs a file-backed SQLite database", kind="invalid")
    if os.path.exists(primary) and os.path.samefile(src_path, primary):
        raise BackupError("Backup source is the live database file", kind="invalid")

    app = current_app._get_current_object()
    with _FILE_LOCK:
        mark_restart_required(app)
        app.logger.warning("Restoring database from %s; restart required afterwards", src_path)
        try:
            try:
                maintenance_service.checkpoint()
            except SQLAlchemyError:
                app.logger.warning("Checkpoint before restore failed; stale WAL will be discarded")
            db.session.remove()
            db.engine.dispose()

            for side_file in maintenance_service.side_file_paths(primary):
                if os.path.exists(side_file):
                    os.remove(side_file)

            _replace_file(src_path, primary)
        except (OSError, SQLAlchemyError) as exc:
            app.logger.exception("Restore from %s failed after closing the database", src_path)
            raise RestoreFailedError(
                f"Restore failed after the database was closed ({exc}); restart the application"
            ) from exc

    app.logger.info("Database restored from %s", src_path)
    return RestoreResult(ok=True, source=src_path, restart_required=True)
