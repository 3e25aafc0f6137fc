# Overview: Flask API routes for petty-cash expenses; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..entities import EXPENSE_CATEGORIES
from ..errors import LedgerError
from ..services.ledger import get_ledger
from ..decorators import require_auth


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.post("")
@expenses_bp.post("/")
@require_auth
def add_expense_route():
    """
    Request body:
    {
        "amount": "20.00",
        "category": "SUPPLIES",
        "description": "Paper rolls"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        ledger = get_ledger()
        expense = ledger.expenses.add_expense(
            data.get("amount"),
            data.get("category"),
            data.get("description"),
            g.acting_user,
        )
        shift = ledger.shifts.get_shift(expense.shift_id)
        return jsonify({
            "expense": expense.to_dict(),
            "end_cash_expected": str(shift.end_cash_expected),
        }), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.delete("/<expense_id>")
@require_auth
def delete_expense_route(expense_id: str):
    try:
        ledger = get_ledger()
        expense = ledger.expenses.delete_expense(expense_id)
        shift = ledger.shifts.get_shift(expense.shift_id)
        return jsonify({
            "deleted": expense.to_dict(),
            "end_cash_expected": str(shift.end_cash_expected),
        }), 200

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete expense")
        return jsonify({"error": "Internal server error"}), 500


@expenses_bp.get("")
@expenses_bp.get("/")
@require_auth
def list_expenses_route():
    """
    Query params:
    - shift_id: defaults to the active shift
    """
    ledger = get_ledger()
    shift_id = request.args.get("shift_id")
    if not shift_id:
        active = ledger.shifts.get_active_shift()
        if not active:
            return jsonify({"expenses": [], "total": "0.00", "shift_id": None}), 200
        shift_id = active.id

    expenses = ledger.reports.expenses_for_shift(shift_id)
    return jsonify({
        "expenses": [e.to_dict() for e in expenses],
        "total": str(ledger.reports.total_expenses_for_shift(shift_id)),
        "shift_id": shift_id,
    }), 200


@expenses_bp.get("/categories")
@require_auth
def expense_categories_route():
    return jsonify({"categories": list(EXPENSE_CATEGORIES)}), 200
