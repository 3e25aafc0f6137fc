# Overview: Flask API routes for cash shifts; parses input and returns JSON responses.

# backend/retailpos/routes/shifts.py
"""
Cash Shift API Routes

WHY: The register opens a shift with counted cash, works against it, and
closes it with a physical count. The close response carries the summary
used for the closing slip.

SECURITY:
- Any authenticated user can open/close shifts and read summaries
- Manual repair is limited to ADMIN and MANAGER
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth, require_role
from ..time_utils import parse_iso_datetime


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _error_response(e: LedgerError):
    return jsonify(e.to_dict()), e.status_code


# =============================================================================
# LIFECYCLE
# =============================================================================

@shifts_bp.get("/active")
@require_auth
def active_shift_route():
    shift = get_ledger().reports.active_shift()
    return jsonify({"shift": shift.to_dict() if shift else None}), 200


@shifts_bp.post("/open")
@require_auth
def open_shift_route():
    """
    Request body:
    {
        "start_cash": "100.00"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        shift = get_ledger().shifts.open_shift(data.get("start_cash"), g.acting_user)
        return jsonify({"shift": shift.to_dict()}), 201

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/close")
@require_auth
def close_shift_route():
    """
    Request body:
    {
        "actual_cash": "140.00"
    }

    Returns the closed shift, its difference (actual - expected) and the
    closing summary.
    """
    try:
        data = request.get_json(silent=True) or {}
        ledger = get_ledger()
        shift = ledger.shifts.close_shift(data.get("actual_cash"), g.acting_user)
        return jsonify({
            "shift": shift.to_dict(),
            "difference": str(shift.difference),
            "summary": ledger.reports.shift_summary(shift.id),
        }), 200

    except LedgerError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/repair")
@require_auth
@require_role("ADMIN", "MANAGER")
def repair_shifts_route():
    """Force the single-open-shift invariant now."""
    repaired = get_ledger().shifts.sanitize_shifts()
    return jsonify({
        "repaired": [s.to_dict() for s in repaired],
        "count": len(repaired),
    }), 200


# =============================================================================
# HISTORY
# =============================================================================

@shifts_bp.get("")
@shifts_bp.get("/")
@require_auth
def list_shifts_route():
    """
    Query params:
    - start, end: ISO-8601 bounds on opened_at (optional, inclusive)
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    shifts = get_ledger().reports.shifts_in_range(start, end)
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/history")
@require_auth
def shift_history_route():
    limit = request.args.get("limit", default=30, type=int)
    shifts = get_ledger().reports.shift_history(limit=max(1, min(limit, 500)))
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/<shift_id>")
@require_auth
def get_shift_route(shift_id: str):
    try:
        return jsonify({"shift": get_ledger().shifts.get_shift(shift_id).to_dict()}), 200
    except LedgerError as e:
        return _error_response(e)


@shifts_bp.get("/<shift_id>/summary")
@require_auth
def shift_summary_route(shift_id: str):
    try:
        return jsonify(get_ledger().reports.shift_summary(shift_id)), 200
    except LedgerError as e:
        return _error_response(e)


@shifts_bp.get("/<shift_id>/sales")
@require_auth
def shift_sales_route(shift_id: str):
    sales = get_ledger().reports.sales_for_shift(shift_id)
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@shifts_bp.get("/<shift_id>/expenses")
@require_auth
def shift_expenses_route(shift_id: str):
    reports = get_ledger().reports
    expenses = reports.expenses_for_shift(shift_id)
    return jsonify({
        "expenses": [e.to_dict() for e in expenses],
        "total": str(reports.total_expenses_for_shift(shift_id)),
    }), 200
