# Overview: Flask API routes for backup settings, running backups, listing and restore.

from flask import Blueprint, current_app, jsonify, request

from ..services import backup_service, settings_service
from ..services.backup_scheduler import get_scheduler
from ..services.backup_service import BackupError
from ..validation import ValidationError


backups_bp = Blueprint("backups", __name__, url_prefix="/api/backup")

_STATUS_BY_KIND = {
    "not_found": 404,
    "invalid": 400,
    "busy": 503,
    "io": 500,
}


def _backup_error(exc: BackupError):
    body = {"error": str(exc), "restart_required": exc.restart_required}
    status = 500 if exc.restart_required else _STATUS_BY_KIND.get(exc.kind, 500)
    return jsonify(body), status


@backups_bp.get("/settings")
def get_backup_settings_route():
    return jsonify(settings_service.get_backup_settings().to_dict()), 200


@backups_bp.post("/settings")
def update_backup_settings_route():
    data = request.get_json(silent=True) or {}
    try:
        updated = settings_service.update_backup_settings(
            data.get("backup_path"),
            data.get("backup_interval_minutes"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    scheduler = get_scheduler(current_app)
    scheduled = scheduler.reschedule() if scheduler and current_app.config.get("BACKUP_SCHEDULER_ENABLED") else False
    return jsonify({"ok": True, "settings": updated.to_dict(), "scheduled": scheduled}), 200


@backups_bp.post("/run")
def run_backup_route():
    data = request.get_json(silent=True) or {}
    try:
        path = backup_service.run_backup(data.get("target"))
        return jsonify({"file": path}), 200
    except BackupError as e:
        current_app.logger.warning("Backup failed: %s", e)
        return _backup_error(e)


@backups_bp.get("/files")
def list_backup_files_route():
    # The desktop UI sends ?path=; ?dir= is kept for scripts
    files = backup_service.list_backups(request.args.get("path") or request.args.get("dir"))
    return jsonify({"files": [f.to_dict() for f in files]}), 200


@backups_bp.post("/restore")
def restore_route():
    """
    Restore from a .db file or from the newest .db inside a directory.

    The application must be restarted afterwards.
    """
    data = request.get_json(silent=True) or {}
    try:
        result = backup_service.restore_backup(data.get("source"))
        return jsonify(result.to_dict()), 200
    except BackupError as e:
        return _backup_error(e)
