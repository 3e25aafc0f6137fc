# Overview: Service-layer operations for sale recording and its stock/cash side effects.

"""
Sales Service

WHY: A checkout becomes one immutable Sale. Recording it draws down stock and,
for cash payments during an open shift, raises the drawer's expected cash.

DESIGN PRINCIPLES:
- Validate every line before touching anything (batch, not fail-fast)
- Snapshot name/price/attributes at sale time; later catalog edits never
  reach recorded sales
- shift_id is the shift open at sale time (or None) and never changes
- Sales without an open shift are still recorded (backfills, off-register)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from ..entities import PAYMENT_CASH, PAYMENT_METHODS, Sale, SaleItem, UserRef
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..state import LedgerState
from ..time_utils import utcnow
from ..validation import parse_choice, parse_quantity, quantize_money
from .catalog_service import CatalogService
from .concurrency import lock_for_update
from .shift_service import ShiftService


def _requested_quantities(items: Iterable[Mapping[str, Any]]) -> list[tuple[str, int]]:
    lines = []
    for i, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f"items[{i}] must be an object")
        variant_id = item.get("variant_id")
        if not variant_id:
            raise ValidationError(f"items[{i}].variant_id is required")
        lines.append((str(variant_id), parse_quantity(item.get("quantity"), f"items[{i}].quantity")))
    if not lines:
        raise ValidationError("Cannot record a sale with no items")
    return lines


class SalesService:
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

    def _validate_stock(self, lines: list[tuple[str, int]]) -> None:
        variant_totals: dict[str, int] = {}
        for variant_id, qty in lines:
            variant_totals[variant_id] = variant_totals.get(variant_id, 0) + qty

        insufficient = []
        for variant_id, qty in variant_totals.items():
            variant = self.catalog.find_variant(variant_id)
            if not variant:
                insufficient.append({
                    "variant_id": variant_id,
                    "requested_quantity": qty,
                    "available": 0,
                    "reason": "NOT_FOUND",
                })
            elif variant.stock < qty:
                insufficient.append({
                    "variant_id": variant_id,
                    "sku": variant.sku,
                    "requested_quantity": qty,
                    "available": variant.stock,
                    "reason": "INSUFFICIENT_STOCK",
                })

        if insufficient:
            raise InsufficientStockError(insufficient)

    def _snapshot_line(self, variant_id: str, qty: int) -> SaleItem:
        variant = self.catalog.find_variant(variant_id)
        product = self.catalog.get_product(variant.product_id)
        return SaleItem(
            variant_id=variant.id,
            product_id=variant.product_id,
            product_name=product.name if product else variant.sku,
            sku=variant.sku,
            unit_price=variant.price,
            quantity=qty,
            attribute_summary=variant.attribute_summary,
        )

    def record_sale(
        self,
        items: Iterable[Mapping[str, Any]],
        payment_method: str,
        acting_user: UserRef | None,
    ) -> Sale:
        """
        Record a checkout.

        Args:
            items: [{"variant_id": ..., "quantity": n}, ...]
            payment_method: CASH, CARD or OTHER
            acting_user: attribution snapshot (may be None for backfills)

        Raises:
            ValidationError: bad payment method, empty cart, bad quantity
            InsufficientStockError: listing every line that cannot be served
        """
        method = parse_choice(payment_method, "payment_method", PAYMENT_METHODS)
        lines = _requested_quantities(items)

        with lock_for_update(self.state):
            self._validate_stock(lines)

            sale_items = tuple(self._snapshot_line(variant_id, qty) for variant_id, qty in lines)
            total = quantize_money(sum((item.line_total for item in sale_items), Decimal("0")))
            shift = self.shifts.get_active_shift()

            sale = Sale(
                id=str(uuid.uuid4()),
                timestamp=self.clock(),
                total=total,
                items=sale_items,
                payment_method=method,
                shift_id=shift.id if shift else None,
                user=acting_user,
            )
            self.state.put("sales", sale)

            for item in sale_items:
                self.catalog.adjust_stock(item.variant_id, -item.quantity)

            # Card/other payments never touch the drawer
            if method == PAYMENT_CASH and shift:
                self.shifts.apply_cash_delta(shift.id, total)

        return sale

    def get_sale(self, sale_id: str) -> Sale:
        sale = self.state.get("sales", sale_id)
        if not sale:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})
        return sale
