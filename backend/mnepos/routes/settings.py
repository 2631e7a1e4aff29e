from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services import settings_service
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/billing")
def get_billing_settings():
    return jsonify({"discount_rate_bps": settings_service.get_default_discount_rate_bps()})


@settings_bp.post("/billing")
def update_billing_settings():
    data = request.get_json(silent=True) or {}
    try:
        rate = settings_service.set_default_discount_rate_bps(data.get("discount_rate_bps"))
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"ok": True, "discount_rate_bps": rate})
