# Overview: Key/value settings stored in the database (counters, backup and billing defaults).

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Setting
from ..validation import MAX_DISCOUNT_BPS, ValidationError, clamp, floor_int, strict_int


BILL_SEQ_KEY = "bill_seq"
DISCOUNT_RATE_KEY = "discount_rate_bps"
BACKUP_PATH_KEY = "backup_path"
BACKUP_INTERVAL_KEY = "backup_interval_minutes"

# Seeded on first run (insert-if-absent)
DEFAULTS = {
    BILL_SEQ_KEY: "0",
    DISCOUNT_RATE_KEY: "0",
}


@dataclass(frozen=True)
class BackupSettings:
    backup_path: str
    backup_interval_minutes: int

    def to_dict(self) -> dict:
        return {
            "backup_path": self.backup_path,
            "backup_interval_minutes": self.backup_interval_minutes,
        }


def get_setting(key: str, default: str | None = None) -> str | None:
    row = db.session.get(Setting, key)
    return row.value if row is not None else default


def set_setting(key: str, value, *, commit: bool = True) -> Setting:
    """Insert or update a setting."""
    row = db.session.get(Setting, key)
    if row is None:
        row = Setting(key=key, value=str(value))
        db.session.add(row)
    else:
        row.value = str(value)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return row


def ensure_setting(key: str, default: str) -> Setting:
    """
    Create the setting if it does not exist yet. Never overwrites.

    Safe to call repeatedly (idempotent). Does not commit.
    """
    row = db.session.get(Setting, key)
    if row is None:
        row = Setting(key=key, value=default)
        db.session.add(row)
        db.session.flush()
    return row


def ensure_defaults() -> None:
    for key, value in DEFAULTS.items():
        ensure_setting(key, value)
    db.session.commit()


# =============================================================================
# Backup settings
# =============================================================================

def _default_backup_path() -> str:
    return current_app.config["BACKUP_DIR"]


def _default_backup_interval() -> int:
    return int(current_app.config["BACKUP_INTERVAL_MINUTES"])


def get_backup_settings() -> BackupSettings:
    path = get_setting(BACKUP_PATH_KEY) or _default_backup_path()
    raw_interval = get_setting(BACKUP_INTERVAL_KEY)
    interval = floor_int(raw_interval)
    if interval is None:
        interval = _default_backup_interval()
    return BackupSettings(backup_path=path, backup_interval_minutes=interval)


def update_backup_settings(backup_path: str | None, backup_interval_minutes=None) -> BackupSettings:
    """
    Persist backup directory and interval.

    An interval <= 0 is stored as-is and disables the timer.
    """
    path = (backup_path or "").strip() or _default_backup_path()
    if backup_interval_minutes is None or backup_interval_minutes == "":
        interval = _default_backup_interval()
    else:
        interval = strict_int(backup_interval_minutes, field="backup_interval_minutes")

    set_setting(BACKUP_PATH_KEY, path, commit=False)
    set_setting(BACKUP_INTERVAL_KEY, interval, commit=False)
    db.session.commit()

    current_app.logger.info("Backup settings updated: path=%s interval=%s min", path, interval)
    return BackupSettings(backup_path=path, backup_interval_minutes=interval)


# =============================================================================
# Billing defaults
# =============================================================================

def get_default_discount_rate_bps() -> int:
    value = floor_int(get_setting(DISCOUNT_RATE_KEY, "0"))
    return clamp(value or 0, 0, MAX_DISCOUNT_BPS)


def set_default_discount_rate_bps(value) -> int:
    rate = floor_int(value)
    if rate is None:
        raise ValidationError("discount_rate_bps must be a number")
    rate = clamp(rate, 0, MAX_DISCOUNT_BPS)
    set_setting(DISCOUNT_RATE_KEY, rate)
    return rate
