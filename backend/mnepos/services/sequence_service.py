# Overview: Bill number allocation backed by the settings table.

from __future__ import annotations

from flask import current_app
from sqlalchemy import Integer, String, cast, update

from ..extensions import db
from ..models import Setting
from .settings_service import BILL_SEQ_KEY, ensure_setting


def allocate_next(key: str = BILL_SEQ_KEY) -> int:
    """
    Increment the counter and return the new value.

    MUST run inside the caller's write transaction (after begin_immediate):
    this function never commits, so if the bill write rolls back the counter
    rolls back with it. Gaps are possible only on retries; duplicates are not.
    """
    ensure_setting(key, "0")

    stmt = (
        update(Setting)
        .where(Setting.key == key)
        .values(value=cast(cast(Setting.value, Integer) + 1, String))
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise RuntimeError(f"Sequence counter {key!r} disappeared mid-transaction")

    current = (
        db.session.query(Setting.value)
        .filter(Setting.key == key)
        .scalar()
    )
    return int(current)


def peek_current(key: str = BILL_SEQ_KEY) -> int:
    """Last allocated value (0 before the first bill). Read-only."""
    value = db.session.query(Setting.value).filter(Setting.key == key).scalar()
    return int(value) if value is not None else 0


def format_bill_number(seq: int, *, prefix: str | None = None, width: int | None = None) -> str:
    prefix = prefix if prefix is not None else current_app.config["BILL_NUMBER_PREFIX"]
    width = width if width is not None else current_app.config["BILL_NUMBER_WIDTH"]
    return f"{prefix}-{seq:0{width}d}"
