# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Payment-mode breakdown for the Payments page.
"""

from flask import Blueprint, jsonify, request

from ..services import billing_service
from ..validation import ValidationError


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/payments")
def payments_route():
    """?start&end (YYYY-MM-DD, inclusive) -> {cash|online|split: {bill_count, total_cents, ...}}"""
    try:
        summary = billing_service.payment_summary(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(summary), 200
