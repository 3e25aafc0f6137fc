"""
Expense ledger tests.

Verifies:
- add/delete are exact inverses on expected cash
- Expenses need an open shift and only die with it
- Funds check is on by default and can be switched off
"""

from decimal import Decimal

import pytest

from retailpos.errors import InsufficientFundsError, NotFoundError, StateError, ValidationError
from retailpos.services.ledger import Ledger


def test_expense_reversal(ledger, alice):
    ledger.shifts.open_shift(100, alice)

    expense = ledger.expenses.add_expense(20, "SUPPLIES", "x", alice)
    assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("80.00")

    ledger.expenses.delete_expense(expense.id)
    assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("100.00")
    assert ledger.state.get("expenses", expense.id) is None


def test_expense_fields(ledger, alice):
    shift = ledger.shifts.open_shift(100, alice)
    expense = ledger.expenses.add_expense("12.345", "transport", "  taxi  ", alice)

    assert expense.shift_id == shift.id
    assert expense.amount == Decimal("12.34")
    assert expense.category == "TRANSPORT"
    assert expense.description == "taxi"
    assert expense.user == alice
    assert ledger.expenses.get_expense(expense.id) == expense


def test_no_open_shift(ledger, alice):
    with pytest.raises(StateError):
        ledger.expenses.add_expense(10, "FOOD", "lunch", alice)
    assert ledger.state.count("expenses") == 0


@pytest.mark.parametrize("amount", [0, -5, "0.00", "abc", None])
def test_non_positive_amount_rejected(ledger, alice, amount):
    ledger.shifts.open_shift(100, alice)
    with pytest.raises(ValidationError):
        ledger.expenses.add_expense(amount, "FOOD", "lunch", alice)
    assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("100.00")


def test_unknown_category_rejected(ledger, alice):
    ledger.shifts.open_shift(100, alice)
    with pytest.raises(ValidationError):
        ledger.expenses.add_expense(10, "BRIBES", "", alice)


def test_insufficient_funds(ledger, alice):
    ledger.shifts.open_shift(50, alice)

    with pytest.raises(InsufficientFundsError) as exc:
        ledger.expenses.add_expense("50.01", "SERVICES", "plumber", alice)

    assert exc.value.details == {"amount": "50.01", "available": "50.00"}
    assert ledger.state.count("expenses") == 0
    assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("50.00")


def test_expense_may_empty_the_drawer(ledger, alice):
    ledger.shifts.open_shift(50, alice)
    ledger.expenses.add_expense(50, "SALARY", "advance", alice)
    assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("0.00")


def test_funds_check_disabled(clock, alice):
    ledger = Ledger(clock=clock, require_funds=False)
    ledger.shifts.open_shift(10, alice)

    ledger.expenses.add_expense(25, "MAINTENANCE", "repair", alice)

    assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("-15.00")


def test_delete_unknown_expense(ledger, alice):
    ledger.shifts.open_shift(100, alice)
    with pytest.raises(NotFoundError):
        ledger.expenses.delete_expense("missing")


def test_delete_after_close_rejected(ledger, alice):
    shift = ledger.shifts.open_shift(100, alice)
    expense = ledger.expenses.add_expense(20, "OTHER", "", alice)
    ledger.shifts.close_shift(80, alice)

    with pytest.raises(StateError):
        ledger.expenses.delete_expense(expense.id)

    assert ledger.state.get("expenses", expense.id) == expense
    assert ledger.shifts.get_shift(shift.id).end_cash_expected == Decimal("80.00")


def test_delete_from_previous_shift_rejected(ledger, alice):
    ledger.shifts.open_shift(100, alice)
    expense = ledger.expenses.add_expense(20, "OTHER", "", alice)
    ledger.shifts.close_shift(80, alice)
    current = ledger.shifts.open_shift(30, alice)

    with pytest.raises(StateError):
        ledger.expenses.delete_expense(expense.id)

    assert ledger.shifts.get_shift(current.id).end_cash_expected == Decimal("30.00")
