# Overview: Read-only catalog listing consumed by the billing screen.

from flask import Blueprint, jsonify, request

from ..extensions import db
from ..models import Product


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    query = db.session.query(Product)
    if request.args.get("available") in ("1", "true"):
        query = query.filter(Product.is_available.is_(True))
    rows = query.order_by(Product.name).all()
    return jsonify([p.to_dict() for p in rows])
