# Overview: Immutable in-memory entity values owned by the ledger and the catalog.

"""
Entity values for the catalog and the cash ledger.

DESIGN:
- Entities are frozen dataclasses. A mutation derives a new value with
  dataclasses.replace() and writes the whole entity back (last-writer-wins).
- to_dict() produces the flat persisted document; from_dict() reads it back.
- Money is Decimal (cents), serialized as strings. Timestamps are UTC-naive
  datetimes, serialized as ISO-8601 with a trailing 'Z'.
- Attribution (user id + display name) is a snapshot taken at action time,
  never a live reference to the user record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from .time_utils import parse_iso_datetime, to_utc_z


SHIFT_OPEN = "OPEN"
SHIFT_CLOSED = "CLOSED"
SHIFT_STATUSES = (SHIFT_OPEN, SHIFT_CLOSED)

PAYMENT_CASH = "CASH"
PAYMENT_METHODS = (PAYMENT_CASH, "CARD", "OTHER")

EXPENSE_CATEGORIES = ("SUPPLIES", "SERVICES", "FOOD", "TRANSPORT", "MAINTENANCE", "SALARY", "OTHER")

RETURN_PENDING = "PENDING"
RETURN_COMPLETED = "COMPLETED"
RETURN_REJECTED = "REJECTED"
RETURN_STATUSES = (RETURN_PENDING, RETURN_COMPLETED, RETURN_REJECTED)

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED = "FIXED"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

DISCOUNT_SCOPE_CART = "CART"
DISCOUNT_SCOPE_PRODUCT = "PRODUCT"
DISCOUNT_SCOPE_CATEGORY = "CATEGORY"
DISCOUNT_SCOPES = (DISCOUNT_SCOPE_CART, DISCOUNT_SCOPE_PRODUCT, DISCOUNT_SCOPE_CATEGORY)


def _money(value: Any) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def _money_or_none(value: Any) -> Optional[Decimal]:
    return None if value is None else _money(value)


def _money_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class UserRef:
    """Attribution snapshot: who did it, as they were named at the time."""
    id: str
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


SYSTEM_USER = UserRef(id="system", name="System")


def _user_fields(prefix: str, user: Optional[UserRef]) -> dict:
    return {
        f"{prefix}_id": user.id if user else None,
        f"{prefix}_name": user.name if user else None,
    }


def _user_from(data: dict, prefix: str) -> Optional[UserRef]:
    user_id = data.get(f"{prefix}_id")
    if user_id is None:
        return None
    return UserRef(id=str(user_id), name=data.get(f"{prefix}_name") or "")


# =============================================================================
# CATALOG
# =============================================================================

@dataclass(frozen=True)
class Attribute:
    name: str  # e.g. "Color"
    values: tuple[str, ...] = ()  # e.g. ("Red", "Blue")

    def to_dict(self) -> dict:
        return {"name": self.name, "values": list(self.values)}

    @classmethod
    def from_dict(cls, data: dict) -> "Attribute":
        return cls(name=data["name"], values=tuple(data.get("values") or ()))


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: str = ""
    category: str = ""
    base_price: Decimal = Decimal("0.00")
    attributes: tuple[Attribute, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "base_price": _money_str(self.base_price),
            "attributes": [a.to_dict() for a in self.attributes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description") or "",
            category=data.get("category") or "",
            base_price=_money(data.get("base_price") or 0),
            attributes=tuple(Attribute.from_dict(a) for a in data.get("attributes") or ()),
        )


@dataclass(frozen=True)
class Variant:
    """Sellable unit of a product; owns the stock level."""
    id: str
    product_id: str
    sku: str
    price: Decimal
    stock: int = 0
    barcode: str = ""
    # combination of attribute values, e.g. "Color: Red, Size: M"
    attribute_summary: str = ""
    attribute_values: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "barcode": self.barcode,
            "price": _money_str(self.price),
            "stock": self.stock,
            "attribute_summary": self.attribute_summary,
            "attribute_values": dict(self.attribute_values),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Variant":
        return cls(
            id=str(data["id"]),
            product_id=str(data["product_id"]),
            sku=data.get("sku") or "",
            barcode=data.get("barcode") or "",
            price=_money(data.get("price") or 0),
            stock=int(data.get("stock") or 0),
            attribute_summary=data.get("attribute_summary") or "",
            attribute_values=dict(data.get("attribute_values") or {}),
        )


# =============================================================================
# LEDGER
# =============================================================================

@dataclass(frozen=True)
class SaleItem:
    """Line item snapshot: name, price and attributes as they were at sale time."""
    variant_id: str
    product_id: str
    product_name: str
    sku: str
    unit_price: Decimal
    quantity: int
    attribute_summary: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "variant_id": self.variant_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "unit_price": _money_str(self.unit_price),
            "quantity": self.quantity,
            "attribute_summary": self.attribute_summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SaleItem":
        return cls(
            variant_id=str(data["variant_id"]),
            product_id=str(data.get("product_id") or ""),
            product_name=data.get("product_name") or "",
            sku=data.get("sku") or "",
            unit_price=_money(data["unit_price"]),
            quantity=int(data["quantity"]),
            attribute_summary=data.get("attribute_summary") or "",
        )


@dataclass(frozen=True)
class Sale:
    """
    Recorded sale. Immutable once recorded.

    shift_id is the shift that was open at sale time (or None) and is never
    retargeted afterwards.
    """
    id: str
    timestamp: datetime
    total: Decimal
    items: tuple[SaleItem, ...]
    payment_method: str
    shift_id: Optional[str] = None
    user: Optional[UserRef] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": to_utc_z(self.timestamp),
            "total": _money_str(self.total),
            "items": [item.to_dict() for item in self.items],
            "payment_method": self.payment_method,
            "shift_id": self.shift_id,
            **_user_fields("user", self.user),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        return cls(
            id=str(data["id"]),
            timestamp=parse_iso_datetime(data["timestamp"]),
            total=_money(data["total"]),
            items=tuple(SaleItem.from_dict(i) for i in data.get("items") or ()),
            payment_method=data.get("payment_method") or "OTHER",
            shift_id=data.get("shift_id"),
            user=_user_from(data, "user"),
        )


@dataclass(frozen=True)
class Shift:
    """
    Cash register shift.

    LIFECYCLE:
    - OPEN: end_cash_expected tracks start_cash + cash sales - expenses
    - CLOSED: counted cash stored in end_cash_actual; terminal and read-only
    """
    id: str
    opened_at: datetime
    start_cash: Decimal
    end_cash_expected: Decimal
    status: str = SHIFT_OPEN
    closed_at: Optional[datetime] = None
    end_cash_actual: Optional[Decimal] = None
    opened_by: Optional[UserRef] = None
    closed_by: Optional[UserRef] = None

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    @property
    def difference(self) -> Optional[Decimal]:
        """Counted minus expected; negative means the drawer is short."""
        if self.end_cash_actual is None:
            return None
        return self.end_cash_actual - self.end_cash_expected

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "start_cash": _money_str(self.start_cash),
            "end_cash_expected": _money_str(self.end_cash_expected),
            "end_cash_actual": _money_str(self.end_cash_actual),
            "difference": _money_str(self.difference),
            "status": self.status,
            **_user_fields("opened_by_user", self.opened_by),
            **_user_fields("closed_by_user", self.closed_by),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Shift":
        status = str(data.get("status") or SHIFT_OPEN).strip().upper()
        if status not in SHIFT_STATUSES:
            raise ValueError(f"Unknown shift status: {data.get('status')!r}")
        return cls(
            id=str(data["id"]),
            opened_at=parse_iso_datetime(data["opened_at"]),
            closed_at=parse_iso_datetime(data.get("closed_at")),
            start_cash=_money(data["start_cash"]),
            end_cash_expected=_money(data.get("end_cash_expected", data["start_cash"])),
            end_cash_actual=_money_or_none(data.get("end_cash_actual")),
            status=status,
            opened_by=_user_from(data, "opened_by_user"),
            closed_by=_user_from(data, "closed_by_user"),
        )


@dataclass(frozen=True)
class Expense:
    """Petty-cash withdrawal recorded against the shift that was open at creation."""
    id: str
    shift_id: str
    amount: Decimal
    category: str
    description: str
    timestamp: datetime
    user: Optional[UserRef] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "amount": _money_str(self.amount),
            "category": self.category,
            "description": self.description,
            "timestamp": to_utc_z(self.timestamp),
            **_user_fields("user", self.user),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        return cls(
            id=str(data["id"]),
            shift_id=str(data["shift_id"]),
            amount=_money(data["amount"]),
            category=data.get("category") or "OTHER",
            description=data.get("description") or "",
            timestamp=parse_iso_datetime(data["timestamp"]),
            user=_user_from(data, "user"),
        )


@dataclass(frozen=True)
class Return:
    """
    Reversing entity for (part of) a sale. The sale itself is never modified.

    shift_id is set when a CASH refund is paid out of an open shift's drawer.
    """
    id: str
    sale_id: str
    items: tuple[SaleItem, ...]
    reason: str
    refund_amount: Decimal
    refund_method: str
    timestamp: datetime
    status: str = RETURN_PENDING
    user: Optional[UserRef] = None
    notes: str = ""
    shift_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[UserRef] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "items": [item.to_dict() for item in self.items],
            "reason": self.reason,
            "refund_amount": _money_str(self.refund_amount),
            "refund_method": self.refund_method,
            "timestamp": to_utc_z(self.timestamp),
            "status": self.status,
            "notes": self.notes,
            "shift_id": self.shift_id,
            "processed_at": to_utc_z(self.processed_at),
            **_user_fields("user", self.user),
            **_user_fields("processed_by_user", self.processed_by),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Return":
        return cls(
            id=str(data["id"]),
            sale_id=str(data["sale_id"]),
            items=tuple(SaleItem.from_dict(i) for i in data.get("items") or ()),
            reason=data.get("reason") or "",
            refund_amount=_money(data["refund_amount"]),
            refund_method=data.get("refund_method") or "OTHER",
            timestamp=parse_iso_datetime(data["timestamp"]),
            status=data.get("status") or RETURN_PENDING,
            user=_user_from(data, "user"),
            notes=data.get("notes") or "",
            shift_id=data.get("shift_id"),
            processed_at=parse_iso_datetime(data.get("processed_at")),
            processed_by=_user_from(data, "processed_by_user"),
        )


# =============================================================================
# CUSTOMERS AND DISCOUNTS
# =============================================================================

@dataclass(frozen=True)
class Customer:
    """Loyalty record; purchase totals are accumulated, never recomputed."""
    id: str
    name: str
    created_at: datetime
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""
    total_purchases: int = 0
    total_spent: Decimal = Decimal("0.00")
    last_purchase_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "total_purchases": self.total_purchases,
            "total_spent": _money_str(self.total_spent),
            "created_at": to_utc_z(self.created_at),
            "last_purchase_at": to_utc_z(self.last_purchase_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Customer":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            created_at=parse_iso_datetime(data["created_at"]),
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            address=data.get("address") or "",
            notes=data.get("notes") or "",
            total_purchases=int(data.get("total_purchases") or 0),
            total_spent=_money(data.get("total_spent") or 0),
            last_purchase_at=parse_iso_datetime(data.get("last_purchase_at")),
        )


@dataclass(frozen=True)
class Discount:
    """
    Promotion rule. Without a coupon_code it applies automatically; with one
    it applies only when the code is presented.

    Zero or missing min_purchase, max_discount and usage_limit mean "no limit".
    """
    id: str
    name: str
    type: str
    value: Decimal
    scope: str
    created_at: datetime
    product_ids: tuple[str, ...] = ()
    category_names: tuple[str, ...] = ()
    min_purchase: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    coupon_code: Optional[str] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    active: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "value": _money_str(self.value),
            "scope": self.scope,
            "product_ids": list(self.product_ids),
            "category_names": list(self.category_names),
            "min_purchase": _money_str(self.min_purchase),
            "max_discount": _money_str(self.max_discount),
            "coupon_code": self.coupon_code,
            "valid_from": to_utc_z(self.valid_from),
            "valid_until": to_utc_z(self.valid_until),
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Discount":
        discount_type = str(data["type"]).upper()
        if discount_type not in DISCOUNT_TYPES:
            raise ValueError(f"Unknown discount type: {data['type']!r}")
        scope = str(data.get("scope") or DISCOUNT_SCOPE_CART).upper()
        if scope not in DISCOUNT_SCOPES:
            raise ValueError(f"Unknown discount scope: {data.get('scope')!r}")
        usage_limit = data.get("usage_limit")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=discount_type,
            value=_money(data["value"]),
            scope=scope,
            created_at=parse_iso_datetime(data["created_at"]),
            product_ids=tuple(str(p) for p in data.get("product_ids") or ()),
            category_names=tuple(str(c) for c in data.get("category_names") or ()),
            min_purchase=_money_or_none(data.get("min_purchase")),
            max_discount=_money_or_none(data.get("max_discount")),
            coupon_code=data.get("coupon_code") or None,
            valid_from=parse_iso_datetime(data.get("valid_from")),
            valid_until=parse_iso_datetime(data.get("valid_until")),
            usage_limit=None if usage_limit is None else int(usage_limit),
            usage_count=int(data.get("usage_count") or 0),
            active=bool(data.get("active", True)),
        )


@dataclass(frozen=True)
class AppliedDiscount:
    """Result of evaluating one discount against a cart. Not persisted."""
    discount_id: str
    discount_name: str
    type: str
    value: Decimal
    amount: Decimal

    def to_dict(self) -> dict:
        return {
            "discount_id": self.discount_id,
            "discount_name": self.discount_name,
            "type": self.type,
            "value": _money_str(self.value),
            "amount": _money_str(self.amount),
        }


ENTITY_TYPES = {
    "products": Product,
    "variants": Variant,
    "shifts": Shift,
    "sales": Sale,
    "expenses": Expense,
    "returns": Return,
    "customers": Customer,
    "discounts": Discount,
}
