# Overview: Service-layer operations for returns (reversing entities for recorded sales).

"""
Returns Service

WHY: Sales are immutable, so giving goods back is its own document. A
completed return puts stock back and, when refunded in cash during an open
shift, takes the refund out of the drawer's expected cash.

LIFECYCLE: PENDING -> COMPLETED | REJECTED
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from ..entities import (
    PAYMENT_CASH,
    PAYMENT_METHODS,
    RETURN_COMPLETED,
    RETURN_PENDING,
    RETURN_REJECTED,
    Return,
    UserRef,
)
from ..errors import NotFoundError, StateError, ValidationError
from ..state import LedgerState
from ..time_utils import utcnow
from ..validation import clean_text, parse_choice, parse_quantity, quantize_money
from .catalog_service import CatalogService
from .concurrency import lock_for_update
from .shift_service import ShiftService, require_acting_user


logger = logging.getLogger(__name__)


class ReturnService:
    def __init__(
        self,
        state: LedgerState,
        catalog: CatalogService,
        shifts: ShiftService,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.state = state
        self.catalog = catalog
        self.shifts = shifts
        self.clock = clock

    def get_return(self, return_id: str) -> Return:
        entry = self.state.get("returns", return_id)
        if not entry:
            raise NotFoundError("Return not found", details={"return_id": return_id})
        return entry

    def returns_for_sale(self, sale_id: str) -> list[Return]:
        return self.state.filter("returns", lambda r: r.sale_id == sale_id)

    def pending_returns(self) -> list[Return]:
        return self.state.filter("returns", lambda r: r.status == RETURN_PENDING)

    def _returnable(self, sale) -> dict[str, int]:
        remaining: dict[str, int] = {}
        for item in sale.items:
            remaining[item.variant_id] = remaining.get(item.variant_id, 0) + item.quantity
        for entry in self.returns_for_sale(sale.id):
            if entry.status == RETURN_REJECTED:
                continue
            for item in entry.items:
                remaining[item.variant_id] = remaining.get(item.variant_id, 0) - item.quantity
        return remaining

    def create_return(
        self,
        sale_id: str,
        items: Iterable[Mapping[str, Any]],
        reason: str,
        refund_method: str,
        acting_user: UserRef | None,
        notes: str | None = None,
    ) -> Return:
        """
        Create a PENDING return for lines of a recorded sale.

        Refund amounts use the sale's snapshotted unit prices.

        Raises:
            NotFoundError: unknown sale
            ValidationError: bad input, or more units than remain returnable
        """
        with lock_for_update(self.state):
            sale = self.state.get("sales", sale_id)
            if not sale:
                raise NotFoundError("Sale not found", details={"sale_id": sale_id})

            user = require_acting_user(acting_user)
            method = parse_choice(refund_method, "refund_method", PAYMENT_METHODS)
            reason_text = clean_text(reason, "reason", required=True)

            sold = {item.variant_id: item for item in sale.items}
            remaining = self._returnable(sale)

            requested: dict[str, int] = {}
            for i, raw in enumerate(items):
                if not isinstance(raw, Mapping):
                    raise ValidationError(f"items[{i}] must be an object")
                variant_id = str(raw.get("variant_id") or "")
                if variant_id not in sold:
                    raise ValidationError(f"items[{i}] is not part of sale {sale_id}")
                qty = parse_quantity(raw.get("quantity"), f"items[{i}].quantity")
                requested[variant_id] = requested.get(variant_id, 0) + qty

            if not requested:
                raise ValidationError("Cannot create a return with no items")

            over = [
                {"variant_id": vid, "requested_quantity": qty, "returnable": remaining.get(vid, 0)}
                for vid, qty in requested.items()
                if qty > remaining.get(vid, 0)
            ]
            if over:
                raise ValidationError("Return exceeds the quantity sold", details={"items": over})

            return_items = tuple(replace(sold[vid], quantity=qty) for vid, qty in requested.items())
            refund = quantize_money(sum((i.line_total for i in return_items), Decimal("0")))

            entry = Return(
                id=str(uuid.uuid4()),
                sale_id=sale.id,
                items=return_items,
                reason=reason_text,
                refund_amount=refund,
                refund_method=method,
                timestamp=self.clock(),
                status=RETURN_PENDING,
                user=user,
                notes=clean_text(notes, "notes", max_length=1000),
            )
            self.state.put("returns", entry)

        return entry

    def process_return(self, return_id: str, acting_user: UserRef | None) -> Return:
        """
        Complete a PENDING return: restock and, for CASH refunds during an
        open shift, reduce that shift's expected cash.
        """
        with lock_for_update(self.state):
            entry = self.get_return(return_id)
            if entry.status != RETURN_PENDING:
                raise StateError(f"Return already {entry.status.lower()}")

            user = require_acting_user(acting_user)

            for item in entry.items:
                if self.catalog.find_variant(item.variant_id):
                    self.catalog.adjust_stock(item.variant_id, item.quantity)
                else:
                    logger.warning(
                        "Return %s: variant %s no longer in catalog; not restocked",
                        entry.id, item.variant_id,
                    )

            shift = self.shifts.get_active_shift()
            refunded_from = None
            if entry.refund_method == PAYMENT_CASH and shift:
                self.shifts.apply_cash_delta(shift.id, -entry.refund_amount)
                refunded_from = shift.id

            completed = replace(
                entry,
                status=RETURN_COMPLETED,
                shift_id=refunded_from,
                processed_at=self.clock(),
                processed_by=user,
            )
            self.state.put("returns", completed)

        return completed

    def reject_return(self, return_id: str, acting_user: UserRef | None, notes: str | None = None) -> Return:
        with lock_for_update(self.state):
            entry = self.get_return(return_id)
            if entry.status != RETURN_PENDING:
                raise StateError(f"Return already {entry.status.lower()}")

            user = require_acting_user(acting_user)
            rejected = replace(
                entry,
                status=RETURN_REJECTED,
                notes=clean_text(notes, "notes", max_length=1000) or entry.notes,
                processed_at=self.clock(),
                processed_by=user,
            )
            self.state.put("returns", rejected)

        return rejected
