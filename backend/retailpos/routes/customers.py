# Overview: Flask API routes for the customer directory; parses input and returns JSON responses.

"""
Customer API Routes

SECURITY:
- Lookup, create, edit and purchase linking: any authenticated user
- Delete: ADMIN, MANAGER
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@customers_bp.get("/")
@require_auth
def list_customers_route():
    """
    Query params:
    - q: name/email/phone search
    """
    customers = get_ledger().customers.search_customers(request.args.get("q", ""))
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/top")
@require_auth
def top_customers_route():
    limit = request.args.get("limit", 10, type=int)
    customers = get_ledger().customers.top_customers(max(1, min(limit, 100)))
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.get("/<customer_id>")
@require_auth
def get_customer_route(customer_id: str):
    try:
        return jsonify({"customer": get_ledger().customers.get_customer(customer_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("")
@customers_bp.post("/")
@require_auth
def create_customer_route():
    """
    Request body:
    {"name": "Ana Diaz", "email": "ana@example.com", "phone": "555-0101", "address": "", "notes": ""}
    """
    try:
        customer = get_ledger().customers.add_customer(request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<customer_id>")
@require_auth
def update_customer_route(customer_id: str):
    try:
        customer = get_ledger().customers.update_customer(customer_id, request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<customer_id>")
@require_auth
@require_role("ADMIN", "MANAGER")
def delete_customer_route(customer_id: str):
    try:
        customer = get_ledger().customers.delete_customer(customer_id)
        return jsonify({"deleted": customer.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("/<customer_id>/purchases")
@require_auth
def record_purchase_route(customer_id: str):
    """
    Link a recorded sale to the customer.

    Request body: {"sale_id": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        ledger = get_ledger()
        sale = ledger.sales.get_sale(str(data.get("sale_id") or ""))
        customer = ledger.customers.record_purchase(customer_id, sale.total)
        return jsonify({"customer": customer.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record customer purchase")
        return jsonify({"error": "Internal server error"}), 500
