# Overview: Flask API routes for bills; parses input and returns JSON responses.

# backend/mnepos/routes/bills.py
"""Bill creation, history, detail, receipt data and deletion."""

from flask import Blueprint, current_app, jsonify, request

from ..services import billing_service
from ..validation import ConflictError, ValidationError


bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


@bills_bp.post("")
def create_bill_route():
    """
    Create a bill from cart lines.

    Body: items[{product_id, product_name, unit_price_cents, qty}],
    discount_rate_bps, payment_mode (cash|online|split),
    split_cash_cents, split_online_cents.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "JSON body required"}), 400
    try:
        bill = billing_service.create_bill(data)
        return jsonify({"bill_no": bill.bill_no, "bill": bill.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        current_app.logger.error("Bill number conflict: %s", e)
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create bill")
        return jsonify({"error": "Internal server error"}), 500


@bills_bp.get("")
def list_bills_route():
    """Paged bill history: ?page&limit&bill_no&start&end (dates YYYY-MM-DD)."""
    try:
        result = billing_service.list_bills(
            page=request.args.get("page"),
            limit=request.args.get("limit"),
            bill_no=request.args.get("bill_no"),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@bills_bp.get("/<int:bill_id>")
def get_bill_route(bill_id: int):
    bill = billing_service.get_bill(bill_id)
    if not bill:
        return jsonify({"error": "Bill not found"}), 404

    items = billing_service.get_bill_items(bill_id)
    return jsonify({
        "bill": bill.to_dict(),
        "items": [item.to_dict() for item in items],
    }), 200


@bills_bp.get("/<int:bill_id>/receipt")
def get_receipt_route(bill_id: int):
    receipt = billing_service.build_receipt(bill_id)
    if receipt is None:
        return jsonify({"error": "Bill not found"}), 404
    return jsonify(receipt), 200


@bills_bp.delete("/<int:bill_id>")
def delete_bill_route(bill_id: int):
    try:
        if not billing_service.delete_bill(bill_id):
            return jsonify({"error": "Bill not found"}), 404
        return jsonify({"ok": True}), 200
    except Exception:
        current_app.logger.exception("Failed to delete bill %s", bill_id)
        return jsonify({"error": "Internal server error"}), 500
