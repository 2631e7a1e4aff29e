# backend/mnepos/routes/system.py
"""
System health and version endpoints.

Health reports database reachability, the journal mode, and whether a
restore has left the process waiting for a restart.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Bill, Product
from ..services import backup_service, maintenance_service, sequence_service
from ..services.backup_scheduler import get_scheduler
from mnepos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        bill_count = db.session.query(Bill).count()
        product_count = db.session.query(Product).count()
        last_seq = sequence_service.peek_current()
        mode = maintenance_service.journal_mode()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy" if mode == "wal" else "degraded",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "bills": bill_count,
                "products": product_count,
                "bill_seq": last_seq,
                "journal_mode": mode,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable, or a restore is waiting for a restart
    """
    if backup_service.restart_required():
        return {
            "status": "restart_required",
            "restart_required": True,
            "timestamp": to_utc_z(utcnow()),
        }, 503

    database_health = check_database_health()
    scheduler = get_scheduler(current_app)

    http_status = 503 if database_health["status"] == "unhealthy" else 200
    return {
        "status": database_health["status"],
        "ok": http_status == 200,
        "restart_required": False,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
            "backup_scheduler": {
                "running": bool(scheduler and scheduler.running),
                "interval_seconds": scheduler.interval if scheduler else None,
            },
        }
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
