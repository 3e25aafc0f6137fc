# Overview: Error taxonomy raised by ledger operations and translated to HTTP by the routes.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors raised synchronously by ledger operations."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(LedgerError, ValueError):
    """400-level input problem (bad shape or range)."""


class ConflictError(LedgerError, ValueError):
    """409-level business rule conflict (e.g., a second open shift)."""

    status_code = 409


class StateError(LedgerError):
    """Operation not valid for the current lifecycle state."""

    status_code = 409


class NotFoundError(LedgerError):
    """Unknown entity id."""

    status_code = 404


class InsufficientStockError(LedgerError):
    """
    Sale exceeds available stock.

    Carries every offending line (batch validation), not just the first.
    """

    status_code = 409

    def __init__(self, items: list[dict]):
        super().__init__("Insufficient stock to record sale", details={"items": items})
        self.items = items


class InsufficientFundsError(LedgerError):
    """Expense exceeds the shift's expected cash."""

    status_code = 409


class AuthError(LedgerError):
    """Credential rejected by the user directory."""

    status_code = 401
