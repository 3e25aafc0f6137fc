# Overview: Flask API routes for promotion rules and cart discount quotes.

"""
Discount API Routes

SECURITY:
- Listing, quotes and redemption: any authenticated user
- Creating, editing, toggling and deleting rules: ADMIN, MANAGER
"""

from flask import Blueprint, request, jsonify, current_app

from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role


discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


@discounts_bp.get("")
@discounts_bp.get("/")
@require_auth
def list_discounts_route():
    """
    Query params:
    - active: "true" lists only discounts usable right now
    """
    discounts = get_ledger().discounts
    if request.args.get("active", "").lower() == "true":
        listed = discounts.active_discounts()
    else:
        listed = discounts.list_discounts()
    return jsonify({"discounts": [d.to_dict() for d in listed]}), 200


@discounts_bp.post("")
@discounts_bp.post("/")
@require_auth
@require_role("ADMIN", "MANAGER")
def create_discount_route():
    """
    Request body: see DiscountService._parse_rule().
    """
    try:
        discount = get_ledger().discounts.create_discount(request.get_json(silent=True) or {})
        return jsonify({"discount": discount.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.put("/<discount_id>")
@require_auth
@require_role("ADMIN", "MANAGER")
def update_discount_route(discount_id: str):
    try:
        discount = get_ledger().discounts.update_discount(discount_id, request.get_json(silent=True) or {})
        return jsonify({"discount": discount.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update discount")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.post("/<discount_id>/toggle")
@require_auth
@require_role("ADMIN", "MANAGER")
def toggle_discount_route(discount_id: str):
    try:
        discount = get_ledger().discounts.toggle_active(discount_id)
        return jsonify({"discount": discount.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@discounts_bp.delete("/<discount_id>")
@require_auth
@require_role("ADMIN", "MANAGER")
def delete_discount_route(discount_id: str):
    try:
        discount = get_ledger().discounts.delete_discount(discount_id)
        return jsonify({"deleted": discount.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@discounts_bp.post("/quote")
@require_auth
def quote_route():
    """
    Request body:
    {
        "items": [{"variant_id": "...", "quantity": 2}],
        "coupon_code": "SUMMER10"
    }

    The quote does not change the sale: recorded totals stay price * quantity.
    """
    try:
        data = request.get_json(silent=True) or {}
        quote = get_ledger().discounts.quote(data.get("items"), data.get("coupon_code"))
        return jsonify(quote), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to quote discounts")
        return jsonify({"error": "Internal server error"}), 500


@discounts_bp.post("/redeem")
@require_auth
def redeem_route():
    """
    Request body: {"discount_ids": ["...", "..."]}
    """
    try:
        data = request.get_json(silent=True) or {}
        ids = data.get("discount_ids")
        if not isinstance(ids, list):
            return jsonify({"error": "discount_ids must be a list"}), 400
        redeemed = get_ledger().discounts.redeem(str(i) for i in ids)
        return jsonify({"discounts": [d.to_dict() for d in redeemed]}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to redeem discounts")
        return jsonify({"error": "Internal server error"}), 500
