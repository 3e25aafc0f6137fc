# Overview: Ledger core assembly: state, services, persistence wiring and bulk loads.

"""
Ledger Core

WHY: One object owns the in-memory entity set and the services that mutate
it, and wires the change stream to the durable store.

DATA FLOW:
    route/CLI -> service operation -> LedgerState (sync, authoritative)
              -> ChangeEvent -> Replicator -> EntityStore (async, best-effort)

Bulk replacements (startup load, remote snapshot, refresh, backup restore) are always
followed by the shift repair pass.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Callable, Iterable

from flask import current_app

from ..entities import ENTITY_TYPES
from ..state import COLLECTIONS, LedgerState
from ..storage import EntityStore, Replicator
from ..time_utils import utcnow
from .backup_service import BackupService
from .catalog_service import CatalogService
from .concurrency import lock_for_update
from .customer_service import CustomerService
from .discount_service import DiscountService
from .expense_service import ExpenseService
from .reporting_service import ReportingService
from .return_service import ReturnService
from .sales_service import SalesService
from .shift_service import CLOSE_CASH_COERCE, ShiftService


logger = logging.getLogger(__name__)

EXTENSION_KEY = "retailpos.ledger"


class Ledger:
    def __init__(
        self,
        store: EntityStore | None = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        require_funds: bool = True,
        close_cash_policy: str = CLOSE_CASH_COERCE,
    ):
        self.state = LedgerState()
        self.store = store
        self.replicator: Replicator | None = None

        self.catalog = CatalogService(self.state)
        self.shifts = ShiftService(self.state, clock=clock, close_cash_policy=close_cash_policy)
        self.sales = SalesService(self.state, self.catalog, self.shifts, clock=clock)
        self.expenses = ExpenseService(self.state, self.shifts, clock=clock, require_funds=require_funds)
        self.returns = ReturnService(self.state, self.catalog, self.shifts, clock=clock)
        self.customers = CustomerService(self.state, clock=clock)
        self.discounts = DiscountService(self.state, self.catalog, clock=clock)
        self.reports = ReportingService(self.state, self.shifts)
        self.backup = BackupService(self.state, self.shifts, clock=clock)

        if store is not None:
            self.replicator = Replicator(store)
            self.state.subscribe(self.replicator)

        self._refreshed_at = time.monotonic()

    # =========================================================================
    # BULK LOADS
    # =========================================================================

    def load(self) -> dict:
        """
        Read every persisted collection into memory, then repair shifts.

        A collection that cannot be read is left empty and logged; startup
        continues with whatever loaded.
        """
        counts: dict[str, int] = {}
        if self.store is None:
            return counts

        with lock_for_update(self.state):
            for name in COLLECTIONS:
                try:
                    documents = self.store.load(name)
                except Exception:
                    logger.exception("Failed to load %s from %s", name, self.store.describe())
                    documents = []
                self.state.replace(name, self._parse(name, documents), notify=False)
                counts[name] = self.state.count(name)
            self.shifts.sanitize_shifts()
            self._refreshed_at = time.monotonic()

        logger.info("Ledger loaded from %s: %s", self.store.describe(), counts)
        return counts

    def apply_snapshot(self, collection: str, documents: Iterable[dict]) -> list:
        """
        Remote change notification: adopt a full collection snapshot.

        Returns the shifts force-closed by the repair pass (always empty for
        other collections).
        """
        with lock_for_update(self.state):
            self.state.replace(collection, self._parse(collection, documents), notify=False)
            if collection == "shifts":
                return self.shifts.sanitize_shifts()
        return []

    def refresh(self) -> dict:
        """
        Re-read every collection from the shared store so writes made by
        other clients become visible here.

        Local writes still queued for the store are drained first. A
        collection that cannot be read keeps its in-memory contents.
        """
        result: dict = {"counts": {}, "repaired_shifts": []}
        if self.store is None:
            return result

        with lock_for_update(self.state):
            if not self.flush(timeout=30):
                logger.warning("Refresh started with durable writes still pending")
            for name in COLLECTIONS:
                try:
                    documents = self.store.load(name)
                except Exception:
                    logger.exception("Failed to refresh %s from %s", name, self.store.describe())
                    continue
                repaired = self.apply_snapshot(name, documents)
                result["repaired_shifts"].extend(shift.id for shift in repaired)
                result["counts"][name] = self.state.count(name)
            self._refreshed_at = time.monotonic()

        if result["repaired_shifts"]:
            logger.warning("Refresh force-closed shifts: %s", result["repaired_shifts"])
        logger.info("Ledger refreshed from %s: %s", self.store.describe(), result["counts"])
        return result

    def refresh_if_stale(self, max_age: float) -> bool:
        """Refresh when the last load or refresh is older than max_age seconds."""
        if self.store is None or max_age <= 0:
            return False
        if time.monotonic() - self._refreshed_at < max_age:
            return False
        self.refresh()
        return True

    @staticmethod
    def _parse(collection: str, documents: Iterable[dict]) -> list:
        entity_type = ENTITY_TYPES[collection]
        entities = []
        for document in documents:
            try:
                entities.append(entity_type.from_dict(document))
            except (KeyError, TypeError, ValueError, ArithmeticError):
                logger.warning("Skipping malformed %s document %r", collection, document.get("id"))
        return entities

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for pending durable writes."""
        if self.replicator is None:
            return True
        return self.replicator.drain(timeout)

    def close(self) -> None:
        if self.replicator is not None:
            self.replicator.drain()
            self.replicator.shutdown()


def build_store(app) -> EntityStore | None:
    backend = app.config.get("STORAGE_BACKEND", "sql")
    if backend == "sql":
        from ..storage.sql_store import SqlDocumentStore
        return SqlDocumentStore(app)
    if backend == "json":
        from ..storage import JsonFileStore
        return JsonFileStore(app.config["LOCAL_STORAGE_DIR"])
    if backend == "none":
        return None
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def init_ledger(app) -> Ledger:
    ledger = Ledger(
        build_store(app),
        require_funds=app.config.get("EXPENSE_REQUIRE_FUNDS", True),
        close_cash_policy=app.config.get("CLOSE_CASH_POLICY", CLOSE_CASH_COERCE),
    )
    app.extensions[EXTENSION_KEY] = ledger

    refresh_seconds = app.config.get("LEDGER_REFRESH_SECONDS", 0)
    if refresh_seconds > 0:
        @app.before_request
        def refresh_stale_ledger():
            ledger.refresh_if_stale(refresh_seconds)

    return ledger


def get_ledger() -> Ledger:
    return current_app.extensions[EXTENSION_KEY]
