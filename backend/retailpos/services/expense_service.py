# Overview: Service-layer operations for petty-cash expenses against the open shift.

"""
Expense Ledger

WHY: Cash taken out of the drawer for supplies, services, etc. must reduce
what the drawer is expected to hold at close.

DESIGN PRINCIPLES:
- Expenses exist only against the OPEN shift (create and delete)
- delete_expense() is the exact inverse of add_expense()
- Optional funds check: an expense may not exceed the expected cash
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from ..entities import EXPENSE_CATEGORIES, Expense, UserRef
from ..errors import InsufficientFundsError, NotFoundError, StateError
from ..state import LedgerState
from ..time_utils import utcnow
from ..validation import clean_text, parse_choice, parse_money
from .concurrency import lock_for_update
from .shift_service import ShiftService, require_acting_user


logger = logging.getLogger(__name__)


class ExpenseService:
    def __init__(
        self,
        state: LedgerState,
        shifts: ShiftService,
        *,
        clock: Callable[[], datetime] = utcnow,
        require_funds: bool = True,
    ):
        self.state = state
        self.shifts = shifts
        self.clock = clock
        self.require_funds = require_funds

    def add_expense(
        self,
        amount: Any,
        category: str,
        description: str,
        acting_user: UserRef | None,
    ) -> Expense:
        """
        Record a cash expense against the open shift.

        Raises:
            StateError: no open shift
            ValidationError: amount <= 0, unknown category, no acting user
            InsufficientFundsError: amount > expected cash (when require_funds)
        """
        with lock_for_update(self.state):
            shift = self.shifts.get_active_shift()
            if not shift:
                raise StateError("No open shift for expenses")

            user = require_acting_user(acting_user)
            value = parse_money(amount, "amount", allow_zero=False)
            tag = parse_choice(category, "category", EXPENSE_CATEGORIES)
            text = clean_text(description, "description", max_length=255)

            if self.require_funds and value > shift.end_cash_expected:
                raise InsufficientFundsError(
                    "Expense exceeds the cash expected in the drawer",
                    details={
                        "amount": str(value),
                        "available": str(shift.end_cash_expected),
                    },
                )

            expense = Expense(
                id=str(uuid.uuid4()),
                shift_id=shift.id,
                amount=value,
                category=tag,
                description=text,
                timestamp=self.clock(),
                user=user,
            )
            self.state.put("expenses", expense)
            self.shifts.apply_cash_delta(shift.id, -value)

        logger.info("Expense %s of %s (%s) on shift %s", expense.id, value, tag, shift.id)
        return expense

    def delete_expense(self, expense_id: str) -> Expense:
        """
        Remove an expense and give its amount back to expected cash.

        Raises:
            NotFoundError: unknown expense
            StateError: the expense's shift is not the open one
        """
        with lock_for_update(self.state):
            expense = self.state.get("expenses", expense_id)
            if not expense:
                raise NotFoundError("Expense not found", details={"expense_id": expense_id})

            shift = self.shifts.get_active_shift()
            if not shift or shift.id != expense.shift_id:
                raise StateError(
                    "Expenses of a closed shift cannot be deleted",
                    details={"expense_id": expense_id, "shift_id": expense.shift_id},
                )

            self.state.remove("expenses", expense_id)
            self.shifts.apply_cash_delta(shift.id, expense.amount)

        logger.info("Expense %s deleted; %s returned to shift %s", expense_id, expense.amount, shift.id)
        return expense

    def get_expense(self, expense_id: str) -> Expense:
        expense = self.state.get("expenses", expense_id)
        if not expense:
            raise NotFoundError("Expense not found", details={"expense_id": expense_id})
        return expense
