# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/retailpos/routes/returns.py
"""
Returns API Routes

LIFECYCLE: create (PENDING) -> process (COMPLETED) | reject (REJECTED)

SECURITY:
- Any authenticated user can create a return request
- Processing and rejecting require ADMIN or MANAGER
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..entities import RETURN_STATUSES
from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@returns_bp.post("/")
@require_auth
def create_return_route():
    """
    Request body:
    {
        "sale_id": "...",
        "items": [{"variant_id": "...", "quantity": 1}],
        "reason": "Wrong size",
        "refund_method": "CASH",
        "notes": "optional"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        items = data.get("items")
        if not isinstance(items, list):
            return jsonify({"error": "items must be a list"}), 400

        entry = get_ledger().returns.create_return(
            sale_id=str(data.get("sale_id") or ""),
            items=items,
            reason=data.get("reason"),
            refund_method=data.get("refund_method"),
            acting_user=g.acting_user,
            notes=data.get("notes"),
        )
        return jsonify({"return": entry.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<return_id>/process")
@require_auth
@require_role("ADMIN", "MANAGER")
def process_return_route(return_id: str):
    try:
        entry = get_ledger().returns.process_return(return_id, g.acting_user)
        return jsonify({"return": entry.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<return_id>/reject")
@require_auth
@require_role("ADMIN", "MANAGER")
def reject_return_route(return_id: str):
    try:
        data = request.get_json(silent=True) or {}
        entry = get_ledger().returns.reject_return(return_id, g.acting_user, data.get("notes"))
        return jsonify({"return": entry.to_dict()}), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("")
@returns_bp.get("/")
@require_auth
def list_returns_route():
    """
    Query params:
    - status: PENDING, COMPLETED or REJECTED (optional)
    - sale_id: returns for one sale (optional)
    """
    ledger = get_ledger()
    status = (request.args.get("status") or "").upper()
    sale_id = request.args.get("sale_id")

    if status and status not in RETURN_STATUSES:
        return jsonify({"error": f"status must be one of: {', '.join(RETURN_STATUSES)}"}), 400

    entries = ledger.returns.returns_for_sale(sale_id) if sale_id else ledger.state.all("returns")
    if status:
        entries = [r for r in entries if r.status == status]
    entries.sort(key=lambda r: r.timestamp, reverse=True)

    return jsonify({"returns": [r.to_dict() for r in entries]}), 200


@returns_bp.get("/<return_id>")
@require_auth
def get_return_route(return_id: str):
    try:
        return jsonify({"return": get_ledger().returns.get_return(return_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
