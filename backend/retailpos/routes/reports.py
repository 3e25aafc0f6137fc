# Overview: Flask API routes for read-only reports over the ledger.

from decimal import Decimal

from flask import Blueprint, request, jsonify

from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/stats")
@require_auth
def revenue_stats_route():
    return jsonify(get_ledger().reports.revenue_stats()), 200


@reports_bp.get("/top-products")
@require_auth
def top_products_route():
    limit = request.args.get("limit", default=10, type=int)
    return jsonify({
        "products": get_ledger().reports.top_products(limit=max(1, min(limit, 100)))
    }), 200


@reports_bp.get("/users/<user_id>/sales")
@require_auth
@require_role("ADMIN", "MANAGER")
def sales_by_user_route(user_id: str):
    sales = get_ledger().reports.sales_by_user(user_id)
    return jsonify({
        "sales": [s.to_dict() for s in sales],
        "count": len(sales),
        "total": str(sum((s.total for s in sales), Decimal("0.00"))),
    }), 200
