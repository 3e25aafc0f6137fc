# Overview: Read-only accessors over the ledger for summaries and exports.

"""
Reporting Service

WHY: Report screens, printed closing slips and exports read the ledger but
never write to it. Everything here is a query over current memory.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from ..entities import PAYMENT_CASH, PAYMENT_METHODS, RETURN_COMPLETED, Expense, Return, Sale, Shift
from ..state import LedgerState
from ..time_utils import utcnow
from .shift_service import ShiftService


ZERO = Decimal("0.00")


def _sum(values) -> Decimal:
    return sum(values, ZERO)


class ReportingService:
    def __init__(self, state: LedgerState, shifts: ShiftService):
        self.state = state
        self.shifts = shifts

    # =========================================================================
    # SHIFTS
    # =========================================================================

    def active_shift(self) -> Shift | None:
        return self.shifts.get_active_shift()

    def shifts_in_range(self, start: Optional[datetime], end: Optional[datetime]) -> list[Shift]:
        """Shifts opened within [start, end] (either bound optional), oldest first."""
        return sorted(
            self.state.filter(
                "shifts",
                lambda s: (start is None or s.opened_at >= start) and (end is None or s.opened_at <= end),
            ),
            key=lambda s: s.opened_at,
        )

    def shift_history(self, limit: int = 30) -> list[Shift]:
        """Closed shifts, most recently closed first."""
        closed = self.state.filter("shifts", lambda s: not s.is_open)
        closed.sort(key=lambda s: s.closed_at or datetime.min, reverse=True)
        return closed[:limit]

    def expenses_for_shift(self, shift_id: str) -> list[Expense]:
        return sorted(
            self.state.filter("expenses", lambda e: e.shift_id == shift_id),
            key=lambda e: e.timestamp,
        )

    def total_expenses_for_shift(self, shift_id: str) -> Decimal:
        return _sum(e.amount for e in self.expenses_for_shift(shift_id))

    def sales_for_shift(self, shift_id: str) -> list[Sale]:
        return sorted(
            self.state.filter("sales", lambda s: s.shift_id == shift_id),
            key=lambda s: s.timestamp,
        )

    def returns_for_shift(self, shift_id: str) -> list[Return]:
        """Completed cash refunds paid out of this shift's drawer."""
        return self.state.filter(
            "returns",
            lambda r: r.shift_id == shift_id and r.status == RETURN_COMPLETED,
        )

    def shift_summary(self, shift_id: str) -> dict:
        """
        Closing-slip figures for one shift.

        Returns:
            - Shift document
            - Sales count and totals per payment method
            - Expense and cash refund totals
            - Expected vs counted cash and the difference
        """
        shift = self.shifts.get_shift(shift_id)
        sales = self.sales_for_shift(shift_id)
        expenses = self.expenses_for_shift(shift_id)
        refunds = self.returns_for_shift(shift_id)

        by_method = {
            method: str(_sum(s.total for s in sales if s.payment_method == method))
            for method in PAYMENT_METHODS
        }

        return {
            "shift": shift.to_dict(),
            "sales_count": len(sales),
            "sales_total": str(_sum(s.total for s in sales)),
            "sales_by_method": by_method,
            "cash_sales_total": by_method[PAYMENT_CASH],
            "expenses_count": len(expenses),
            "expenses_total": str(_sum(e.amount for e in expenses)),
            "cash_refunds_total": str(_sum(r.refund_amount for r in refunds)),
            "start_cash": str(shift.start_cash),
            "expected_cash": str(shift.end_cash_expected),
            "actual_cash": str(shift.end_cash_actual) if shift.end_cash_actual is not None else None,
            "difference": str(shift.difference) if shift.difference is not None else None,
            "is_closed": not shift.is_open,
        }

    # =========================================================================
    # SALES
    # =========================================================================

    def sales_in_range(self, start: Optional[datetime], end: Optional[datetime]) -> list[Sale]:
        return sorted(
            self.state.filter(
                "sales",
                lambda s: (start is None or s.timestamp >= start) and (end is None or s.timestamp <= end),
            ),
            key=lambda s: s.timestamp,
        )

    def sales_by_user(self, user_id: str) -> list[Sale]:
        return self.state.filter("sales", lambda s: s.user is not None and s.user.id == user_id)

    def revenue_stats(self, now: datetime | None = None) -> dict:
        now = now or utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)
        sales = self.state.all("sales")
        return {
            "total_revenue": str(_sum(s.total for s in sales)),
            "today_revenue": str(_sum(s.total for s in sales if s.timestamp >= start_of_day)),
            "weekly_revenue": str(_sum(s.total for s in sales if s.timestamp >= week_ago)),
            "transaction_count": len(sales),
        }

    def top_products(self, limit: int = 10) -> list[dict]:
        stats: dict[str, dict] = {}
        for sale in self.state.all("sales"):
            for item in sale.items:
                row = stats.setdefault(item.product_id, {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": 0,
                    "revenue": ZERO,
                })
                row["quantity"] += item.quantity
                row["revenue"] += item.line_total

        ranked = sorted(stats.values(), key=lambda r: r["revenue"], reverse=True)[:limit]
        return [{**row, "revenue": str(row["revenue"])} for row in ranked]
