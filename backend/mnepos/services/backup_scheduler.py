# Overview: Periodic background backups on a daemon thread owned by the Flask app.

from __future__ import annotations

import math
import threading
from typing import Optional

from ..extensions import db
from . import backup_service, settings_service

EXTENSION_KEY = "backup_scheduler"


def interval_seconds(minutes) -> Optional[float]:
    """Minutes -> seconds; None when the timer should be disabled (<= 0, NaN, inf, junk)."""
    try:
        value = float(minutes)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value * 60.0


class BackupScheduler:
    """
    Runs run_backup() every backup_interval_minutes.

    Settings are read when the timer starts; call reschedule() after they
    change. Failures are logged and the next tick still runs.
    """

    def __init__(self, app):
        self.app = app
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self.interval: Optional[float] = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> bool:
        with self._lock:
            if self.running:
                return True
            with self.app.app_context():
                minutes = settings_service.get_backup_settings().backup_interval_minutes
                db.session.remove()
            self.interval = interval_seconds(minutes)
            if self.interval is None:
                self.app.logger.info("Scheduled backups disabled (interval=%s)", minutes)
                return False

            self._stop = threading.Event()
            self._thread = threading.Thread(
                target=self._loop, args=(self._stop, self.interval), name="backup-scheduler", daemon=True
            )
            self._thread.start()
            self.app.logger.info("Backup scheduler started (every %s min)", minutes)
            return True

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._stop.set()
            self._thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout)

    def reschedule(self) -> bool:
        self.stop()
        return self.start()

    def _loop(self, stop: threading.Event, interval: float) -> None:
        while not stop.wait(interval):
            self.run_once()

    def run_once(self) -> Optional[str]:
        """One scheduled backup. Never raises."""
        with self.app.app_context():
            try:
                if backup_service.restart_required(self.app):
                    self.app.logger.warning("Skipping scheduled backup: restart required after restore")
                    return None
                target = settings_service.get_backup_settings().backup_path
                path = backup_service.run_backup(target)
                self.app.logger.info("Scheduled backup completed: %s", path)
                return path
            except Exception:
                self.app.logger.exception("Scheduled backup failed")
                return None
            finally:
                db.session.remove()


def get_scheduler(app) -> Optional[BackupScheduler]:
    return app.extensions.get(EXTENSION_KEY)


def init_scheduler(app) -> BackupScheduler:
    scheduler = BackupScheduler(app)
    app.extensions[EXTENSION_KEY] = scheduler
    if app.config.get("BACKUP_SCHEDULER_ENABLED") and not app.config.get("TESTING"):
        try:
            scheduler.start()
        except Exception:
            app.logger.exception("Could not start backup scheduler")
    return scheduler
