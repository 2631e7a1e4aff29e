# Overview: Transaction helpers for the single-writer SQLite store.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from ..extensions import db


def begin_immediate() -> None:
    """
    Take the database write lock now instead of at the first write.

    NOTE: Only meaningful on SQLite. Two bill transactions that both start with
    BEGIN IMMEDIATE can never read the same counter value; the second one waits
    (busy_timeout) until the first commits or rolls back.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on lock failures.

    Retries on OperationalError ("database is locked" after busy_timeout).
    Each attempt starts from a rolled-back session, so anything read inside
    the previous attempt is read again.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
