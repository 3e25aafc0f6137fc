# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/retailpos/routes/sales.py
"""
Sales API Routes

A checkout posts the whole cart at once. Stock is validated for every line
before anything is written; a 409 response lists every line that failed.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth
from ..time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@sales_bp.post("/")
@require_auth
def record_sale_route():
    """
    Request body:
    {
        "items": [{"variant_id": "...", "quantity": 2}],
        "payment_method": "CASH"   (CASH, CARD, OTHER)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        items = data.get("items")
        if not isinstance(items, list):
            return jsonify({"error": "items must be a list"}), 400

        sale = get_ledger().sales.record_sale(items, data.get("payment_method"), g.acting_user)
        return jsonify({"sale": sale.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@sales_bp.get("/")
@require_auth
def list_sales_route():
    """
    Query params (all optional):
    - shift_id: sales recorded against one shift
    - user_id: sales attributed to one user
    - start, end: ISO-8601 bounds on timestamp
    """
    reports = get_ledger().reports

    shift_id = request.args.get("shift_id")
    user_id = request.args.get("user_id")
    if shift_id:
        sales = reports.sales_for_shift(shift_id)
    elif user_id:
        sales = reports.sales_by_user(user_id)
    else:
        try:
            start = parse_iso_datetime(request.args.get("start"))
            end = parse_iso_datetime(request.args.get("end"))
        except ValueError:
            return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400
        sales = reports.sales_in_range(start, end)

    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/<sale_id>")
@require_auth
def get_sale_route(sale_id: str):
    try:
        ledger = get_ledger()
        sale = ledger.sales.get_sale(sale_id)
        return jsonify({
            "sale": sale.to_dict(),
            "returns": [r.to_dict() for r in ledger.returns.returns_for_sale(sale_id)],
        }), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
