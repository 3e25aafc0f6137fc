# Overview: Cash shift state machine, expected-cash balance and multi-open repair.

"""
Cash Shift Management Service

WHY: A shift is the period of cash accountability for the drawer. It starts
with counted opening cash, tracks what the drawer should hold, and ends with
a physical count that exposes any difference.

STATES: NONE (no open shift) -> OPEN -> CLOSED (terminal)

DESIGN PRINCIPLES:
- At most one OPEN shift at any time
- end_cash_expected = start_cash + cash sales - expenses - cash refunds
- Closed shifts are immutable
- Replicated storage can still produce several OPEN shifts (two clients
  opening concurrently); sanitize_shifts() repairs that after every bulk load
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable

from ..entities import SHIFT_CLOSED, SHIFT_OPEN, SYSTEM_USER, Shift, UserRef
from ..errors import ConflictError, NotFoundError, StateError, ValidationError
from ..state import LedgerState
from ..time_utils import utcnow
from ..validation import parse_money
from .concurrency import lock_for_update


logger = logging.getLogger(__name__)

CLOSE_CASH_COERCE = "coerce"
CLOSE_CASH_STRICT = "strict"


def require_acting_user(acting_user: UserRef | None) -> UserRef:
    if acting_user is None or not acting_user.id:
        raise ValidationError("An acting user is required")
    return acting_user


class ShiftService:
    def __init__(
        self,
        state: LedgerState,
        *,
        clock: Callable[[], datetime] = utcnow,
        close_cash_policy: str = CLOSE_CASH_COERCE,
    ):
        if close_cash_policy not in (CLOSE_CASH_COERCE, CLOSE_CASH_STRICT):
            raise ValueError(f"Unknown close cash policy: {close_cash_policy}")
        self.state = state
        self.clock = clock
        self.close_cash_policy = close_cash_policy

    # =========================================================================
    # QUERIES
    # =========================================================================

    def open_shifts(self) -> list[Shift]:
        """Every OPEN shift, most recently opened first (normally 0 or 1)."""
        return sorted(
            self.state.filter("shifts", lambda s: s.status == SHIFT_OPEN),
            key=lambda s: s.opened_at,
            reverse=True,
        )

    def get_active_shift(self) -> Shift | None:
        """The OPEN shift; if corruption left several, the most recently opened."""
        open_shifts = self.open_shifts()
        return open_shifts[0] if open_shifts else None

    def get_shift(self, shift_id: str) -> Shift:
        shift = self.state.get("shifts", shift_id)
        if not shift:
            raise NotFoundError("Shift not found", details={"shift_id": shift_id})
        return shift

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def open_shift(self, start_cash: Any, acting_user: UserRef | None) -> Shift:
        """
        Open a new shift with counted opening cash.

        Raises:
            ConflictError: a shift is already open
            ValidationError: negative/invalid start_cash or no acting user
        """
        with lock_for_update(self.state):
            existing = self.get_active_shift()
            if existing:
                raise ConflictError(
                    "A shift is already open",
                    details={"shift_id": existing.id},
                )

            user = require_acting_user(acting_user)
            amount = parse_money(start_cash, "start_cash")

            shift = Shift(
                id=str(uuid.uuid4()),
                opened_at=self.clock(),
                start_cash=amount,
                end_cash_expected=amount,  # Initially same as opening cash
                status=SHIFT_OPEN,
                opened_by=user,
            )
            self.state.put("shifts", shift)

        logger.info("Shift %s opened by %s with %s", shift.id, user.name, amount)
        return shift

    def _counted_cash(self, actual_cash: Any) -> Decimal:
        try:
            return parse_money(actual_cash, "actual_cash")
        except ValidationError:
            if self.close_cash_policy == CLOSE_CASH_STRICT:
                raise
            # coerce policy: record 0.00 and finish the close
            logger.warning("Invalid counted cash %r at close; recorded as 0.00", actual_cash)
            return Decimal("0.00")

    def close_shift(self, actual_cash: Any, acting_user: UserRef | None) -> Shift:
        """
        Close the open shift against the physically counted cash.

        The returned snapshot is taken under the register lock together with
        the status flip, so no sale can move end_cash_expected in between.
        Its .difference is actual - expected.

        Raises:
            StateError: no open shift
            ValidationError: no acting user; invalid actual_cash under the
                strict policy
        """
        with lock_for_update(self.state):
            current = self.get_active_shift()
            if not current:
                raise StateError("No open shift to close")

            user = require_acting_user(acting_user)
            counted = self._counted_cash(actual_cash)

            closed = replace(
                current,
                status=SHIFT_CLOSED,
                closed_at=self.clock(),
                end_cash_actual=counted,
                closed_by=user,
            )
            self.state.put("shifts", closed)

        logger.info(
            "Shift %s closed by %s: expected %s, counted %s, difference %s",
            closed.id, user.name, closed.end_cash_expected, counted, closed.difference,
        )
        return closed

    def apply_cash_delta(self, shift_id: str, delta: Decimal) -> Shift:
        """
        Move a shift's expected cash by delta (sale +, expense -, refund -).

        Callers hold the register lock so the read-modify-write is one unit.
        """
        with lock_for_update(self.state):
            shift = self.get_shift(shift_id)
            if shift.status != SHIFT_OPEN:
                raise StateError("Shift is closed", details={"shift_id": shift_id})
            return self.state.put(
                "shifts",
                replace(shift, end_cash_expected=shift.end_cash_expected + delta),
            )

    # =========================================================================
    # REPAIR
    # =========================================================================

    def sanitize_shifts(self) -> list[Shift]:
        """
        Restore the single-open invariant after a bulk load.

        Keeps the most recently opened shift OPEN and force-closes every other
        open shift as a no-activity close (actual = start cash) attributed to
        the system user. Idempotent. Never raises.

        Returns the shifts that were force-closed.
        """
        repaired: list[Shift] = []
        try:
            with lock_for_update(self.state):
                open_shifts = self.open_shifts()
                if len(open_shifts) <= 1:
                    return repaired

                now = self.clock()
                for stale in open_shifts[1:]:
                    closed = replace(
                        stale,
                        status=SHIFT_CLOSED,
                        closed_at=now,
                        end_cash_actual=stale.start_cash,
                        closed_by=SYSTEM_USER,
                    )
                    self.state.put("shifts", closed)
                    repaired.append(closed)
        except Exception:
            logger.exception("Shift repair pass failed")
            return repaired

        logger.warning(
            "Found %d open shifts; kept %s open and auto-closed %s",
            len(repaired) + 1,
            open_shifts[0].id,
            ", ".join(s.id for s in repaired),
        )
        return repaired
