# Overview: Service-layer operations for promotion rules, coupons and cart discount quotes.

"""
Discounts Service

WHY: Managers run promotions (automatic or coupon-based) and the register
needs to show the customer what they qualify for before checkout.

DESIGN PRINCIPLES:
- Quotes are advisory: recorded sale totals stay the sum of price * quantity
- Automatic discounts (no coupon) apply first, then the presented coupon
- A discount never exceeds the amount it is computed on
- Usage is counted only when the register redeems a quote
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional

from ..entities import (
    DISCOUNT_PERCENTAGE,
    DISCOUNT_SCOPE_CART,
    DISCOUNT_SCOPE_CATEGORY,
    DISCOUNT_SCOPE_PRODUCT,
    DISCOUNT_SCOPES,
    DISCOUNT_TYPES,
    AppliedDiscount,
    Discount,
)
from ..errors import NotFoundError, ValidationError
from ..state import LedgerState
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import clean_text, parse_choice, parse_money, parse_quantity, quantize_money
from .catalog_service import CatalogService
from .concurrency import lock_for_update
from .sales_service import _requested_quantities


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _optional_money(payload: Mapping[str, Any], field: str) -> Optional[Decimal]:
    value = payload.get(field)
    if value is None or value == "":
        return None
    return parse_money(value, field)


def _optional_datetime(payload: Mapping[str, Any], field: str) -> Optional[datetime]:
    try:
        return parse_iso_datetime(payload.get(field))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def _string_list(payload: Mapping[str, Any], field: str) -> tuple[str, ...]:
    value = payload.get(field) or []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    return tuple(str(v).strip() for v in value if str(v).strip())


class DiscountService:
    def __init__(
        self,
        state: LedgerState,
        catalog: CatalogService,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.state = state
        self.catalog = catalog
        self.clock = clock

    # =========================================================================
    # RULES
    # =========================================================================

    def get_discount(self, discount_id: str) -> Discount:
        discount = self.state.get("discounts", discount_id)
        if not discount:
            raise NotFoundError("Discount not found", details={"discount_id": discount_id})
        return discount

    def list_discounts(self) -> list[Discount]:
        return sorted(self.state.all("discounts"), key=lambda d: d.created_at, reverse=True)

    def _parse_rule(self, payload: Mapping[str, Any], discount_id: str | None = None) -> dict:
        """
        Payload:
        {
            "name": "Summer sale",
            "type": "PERCENTAGE" | "FIXED",
            "value": "10",
            "scope": "CART" | "PRODUCT" | "CATEGORY",
            "product_ids": [...], "category_names": [...],
            "min_purchase": "50.00", "max_discount": "20.00",
            "coupon_code": "SUMMER10",
            "valid_from": "2026-06-01T00:00:00Z", "valid_until": null,
            "usage_limit": 100,
            "active": true
        }
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Discount payload must be an object")

        discount_type = parse_choice(payload.get("type"), "type", DISCOUNT_TYPES)
        value = parse_money(payload.get("value"), "value", allow_zero=False)
        if discount_type == DISCOUNT_PERCENTAGE and value > 100:
            raise ValidationError("value cannot exceed 100 for a percentage discount")

        scope = parse_choice(payload.get("scope") or DISCOUNT_SCOPE_CART, "scope", DISCOUNT_SCOPES)
        product_ids = _string_list(payload, "product_ids")
        category_names = _string_list(payload, "category_names")
        if scope == DISCOUNT_SCOPE_PRODUCT and not product_ids:
            raise ValidationError("product_ids is required for a PRODUCT discount")
        if scope == DISCOUNT_SCOPE_CATEGORY and not category_names:
            raise ValidationError("category_names is required for a CATEGORY discount")

        valid_from = _optional_datetime(payload, "valid_from")
        valid_until = _optional_datetime(payload, "valid_until")
        if valid_from and valid_until and valid_until < valid_from:
            raise ValidationError("valid_until must be after valid_from")

        usage_limit = payload.get("usage_limit")
        if usage_limit is not None:
            usage_limit = parse_quantity(usage_limit, "usage_limit")

        active = payload.get("active", True)
        if not isinstance(active, bool):
            raise ValidationError("active must be true or false")

        coupon = clean_text(payload.get("coupon_code"), "coupon_code", max_length=32).upper() or None
        if coupon:
            clash = [
                d for d in self.state.all("discounts")
                if d.id != discount_id and d.coupon_code and d.coupon_code.upper() == coupon
            ]
            if clash:
                raise ValidationError("Coupon code already in use", details={"coupon_code": coupon})

        return {
            "name": clean_text(payload.get("name"), "name", max_length=128, required=True),
            "type": discount_type,
            "value": value,
            "scope": scope,
            "product_ids": product_ids,
            "category_names": category_names,
            "min_purchase": _optional_money(payload, "min_purchase"),
            "max_discount": _optional_money(payload, "max_discount"),
            "coupon_code": coupon,
            "valid_from": valid_from,
            "valid_until": valid_until,
            "usage_limit": usage_limit,
            "active": active,
        }

    def create_discount(self, payload: Mapping[str, Any]) -> Discount:
        with lock_for_update(self.state):
            discount = Discount(
                id=str(uuid.uuid4()),
                created_at=self.clock(),
                usage_count=0,
                **self._parse_rule(payload),
            )
            self.state.put("discounts", discount)

        logger.info("Discount %s (%s) created", discount.id, discount.name)
        return discount

    def update_discount(self, discount_id: str, payload: Mapping[str, Any]) -> Discount:
        """Replace the rule. Usage count and creation time are kept."""
        with lock_for_update(self.state):
            current = self.get_discount(discount_id)
            updated = replace(current, **self._parse_rule(payload, discount_id))
            self.state.put("discounts", updated)
        return updated

    def delete_discount(self, discount_id: str) -> Discount:
        with lock_for_update(self.state):
            discount = self.get_discount(discount_id)
            self.state.remove("discounts", discount_id)
        return discount

    def toggle_active(self, discount_id: str) -> Discount:
        with lock_for_update(self.state):
            current = self.get_discount(discount_id)
            updated = replace(current, active=not current.active)
            self.state.put("discounts", updated)
        return updated

    def increment_usage(self, discount_id: str) -> Discount:
        with lock_for_update(self.state):
            current = self.get_discount(discount_id)
            updated = replace(current, usage_count=current.usage_count + 1)
            self.state.put("discounts", updated)
        return updated

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def active_discounts(self, now: datetime | None = None) -> list[Discount]:
        """Active, inside the validity window, and under the usage limit."""
        now = now or self.clock()
        return [
            d for d in self.list_discounts()
            if d.active
            and not (d.valid_from and now < d.valid_from)
            and not (d.valid_until and now > d.valid_until)
            and not (d.usage_limit and d.usage_count >= d.usage_limit)
        ]

    def validate_coupon(self, code: str, now: datetime | None = None) -> Discount | None:
        code = (code or "").strip().upper()
        if not code:
            return None
        for discount in self.active_discounts(now):
            if discount.coupon_code and discount.coupon_code.upper() == code:
                return discount
        return None

    def _cart_lines(self, items: Iterable[Mapping[str, Any]]) -> list[tuple[str, str, Decimal]]:
        """(product_id, category, line_total) per requested line, at current prices."""
        lines = []
        for variant_id, qty in _requested_quantities(items):
            variant = self.catalog.find_variant(variant_id)
            if not variant:
                raise NotFoundError("Variant not found", details={"variant_id": variant_id})
            product = self.catalog.get_product(variant.product_id)
            category = product.category if product else ""
            lines.append((variant.product_id, category, quantize_money(variant.price * qty)))
        return lines

    @staticmethod
    def _amount(discount: Discount, base: Decimal) -> Decimal:
        if discount.type == DISCOUNT_PERCENTAGE:
            amount = quantize_money(base * discount.value / 100)
            if discount.max_discount and amount > discount.max_discount:
                amount = discount.max_discount
        else:
            amount = discount.value
        return min(amount, base)

    def _apply(self, discount: Discount, lines: list, cart_total: Decimal) -> AppliedDiscount | None:
        if discount.min_purchase and cart_total < discount.min_purchase:
            return None

        if discount.scope == DISCOUNT_SCOPE_PRODUCT:
            base = sum((t for pid, _, t in lines if pid in discount.product_ids), ZERO)
        elif discount.scope == DISCOUNT_SCOPE_CATEGORY:
            base = sum((t for _, cat, t in lines if cat in discount.category_names), ZERO)
        else:
            base = cart_total

        amount = self._amount(discount, base)
        if amount <= 0:
            return None
        return AppliedDiscount(
            discount_id=discount.id,
            discount_name=discount.name,
            type=discount.type,
            value=discount.value,
            amount=amount,
        )

    def calculate_discounts(
        self,
        items: Iterable[Mapping[str, Any]],
        coupon_code: str | None = None,
    ) -> list[AppliedDiscount]:
        """
        Discounts the cart qualifies for.

        Args:
            items: [{"variant_id": ..., "quantity": n}, ...]
            coupon_code: optional; an unknown or expired code is ignored

        Raises:
            ValidationError: malformed items
            NotFoundError: unknown variant
        """
        now = self.clock()
        lines = self._cart_lines(items)
        cart_total = sum((t for _, _, t in lines), ZERO)

        applied = []
        for discount in self.active_discounts(now):
            if discount.coupon_code:
                continue
            result = self._apply(discount, lines, cart_total)
            if result:
                applied.append(result)

        coupon = self.validate_coupon(coupon_code, now) if coupon_code else None
        if coupon:
            result = self._apply(coupon, lines, cart_total)
            if result:
                applied.append(result)

        return applied

    def quote(self, items: Iterable[Mapping[str, Any]], coupon_code: str | None = None) -> dict:
        if not isinstance(items, (list, tuple)):
            raise ValidationError("items must be a list")

        subtotal = sum((t for _, _, t in self._cart_lines(items)), ZERO)
        applied = self.calculate_discounts(items, coupon_code)
        discount_total = min(sum((a.amount for a in applied), ZERO), subtotal)
        return {
            "subtotal": str(subtotal),
            "discounts": [a.to_dict() for a in applied],
            "discount_total": str(discount_total),
            "total_after_discounts": str(subtotal - discount_total),
        }

    def redeem(self, discount_ids: Iterable[str]) -> list[Discount]:
        """Count one use of each discount in a quote the customer accepted."""
        ids = list(discount_ids)
        with lock_for_update(self.state):
            for discount_id in ids:
                self.get_discount(discount_id)
            return [self.increment_usage(discount_id) for discount_id in ids]
