# Overview: Service-layer operations for the customer directory and loyalty totals.

"""
Customer Directory

Customers are optional: a sale never requires one. When the register links
a finished sale to a customer, record_purchase() bumps their counters.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Mapping

from ..entities import Customer
from ..errors import NotFoundError, ValidationError
from ..state import LedgerState
from ..time_utils import utcnow
from ..validation import clean_text, parse_money, quantize_money
from .concurrency import lock_for_update


logger = logging.getLogger(__name__)


def _contact_fields(payload: Mapping[str, Any]) -> dict:
    return {
        "email": clean_text(payload.get("email"), "email", max_length=255),
        "phone": clean_text(payload.get("phone"), "phone", max_length=64),
        "address": clean_text(payload.get("address"), "address", max_length=500),
        "notes": clean_text(payload.get("notes"), "notes", max_length=1000),
    }


class CustomerService:
    def __init__(self, state: LedgerState, *, clock: Callable[[], datetime] = utcnow):
        self.state = state
        self.clock = clock

    def get_customer(self, customer_id: str) -> Customer:
        customer = self.state.get("customers", customer_id)
        if not customer:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})
        return customer

    def list_customers(self) -> list[Customer]:
        return sorted(self.state.all("customers"), key=lambda c: c.name.lower())

    def add_customer(self, payload: Mapping[str, Any]) -> Customer:
        """
        Payload: {"name": "Ana", "email": "", "phone": "", "address": "", "notes": ""}
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Customer payload must be an object")

        customer = Customer(
            id=str(uuid.uuid4()),
            name=clean_text(payload.get("name"), "name", max_length=128, required=True),
            created_at=self.clock(),
            **_contact_fields(payload),
        )
        self.state.put("customers", customer)
        return customer

    def update_customer(self, customer_id: str, payload: Mapping[str, Any]) -> Customer:
        """Change name and contact details. Purchase totals are not editable."""
        if not isinstance(payload, Mapping):
            raise ValidationError("Customer payload must be an object")

        with lock_for_update(self.state):
            current = self.get_customer(customer_id)
            changes = {
                key: value
                for key, value in _contact_fields(payload).items()
                if key in payload
            }
            if "name" in payload:
                changes["name"] = clean_text(payload.get("name"), "name", max_length=128, required=True)
            updated = replace(current, **changes)
            self.state.put("customers", updated)
        return updated

    def delete_customer(self, customer_id: str) -> Customer:
        with lock_for_update(self.state):
            customer = self.get_customer(customer_id)
            self.state.remove("customers", customer_id)
        return customer

    def search_customers(self, query: str) -> list[Customer]:
        """Case-insensitive match on name or email; substring match on phone."""
        q = (query or "").strip().lower()
        if not q:
            return self.list_customers()
        return [
            c for c in self.list_customers()
            if q in c.name.lower() or q in c.email.lower() or q in c.phone
        ]

    def record_purchase(self, customer_id: str, amount: Any) -> Customer:
        value = parse_money(amount, "amount")
        with lock_for_update(self.state):
            current = self.get_customer(customer_id)
            updated = replace(
                current,
                total_purchases=current.total_purchases + 1,
                total_spent=quantize_money(current.total_spent + value),
                last_purchase_at=self.clock(),
            )
            self.state.put("customers", updated)

        logger.info("Customer %s purchase of %s recorded", customer_id, value)
        return updated

    def top_customers(self, limit: int = 10) -> list[Customer]:
        return sorted(self.state.all("customers"), key=lambda c: c.total_spent, reverse=True)[:limit]
