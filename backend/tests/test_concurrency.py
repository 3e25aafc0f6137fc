"""
Concurrent register tests.

Several request threads hit one ledger at once. Every read-modify-write
runs under the ledger lock, so:
- expected cash == start cash + cash sales - expenses
- stock never goes negative and no unit is sold twice
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from retailpos.entities import UserRef
from retailpos.errors import InsufficientStockError
from retailpos.services.ledger import Ledger
from retailpos.storage import JsonFileStore

from conftest import add_variant


WORKERS = 8
SALES_PER_WORKER = 10
EXPENSES_PER_WORKER = 5


def _run_workers(target) -> list:
    barrier = threading.Barrier(WORKERS)

    def start(n):
        barrier.wait()
        return target(n)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(start, range(WORKERS)))


@pytest.fixture
def busy_ledger():
    ledger = Ledger()
    yield ledger
    ledger.close()


class TestConcurrentRegister:
    def test_cash_balance_identity_holds(self, busy_ledger):
        ledger = busy_ledger
        variant = add_variant(ledger, stock=100, price="10.00")
        shift = ledger.shifts.open_shift(1000, UserRef(id="u-open", name="Opener"))

        def work(n):
            user = UserRef(id=f"u-{n}", name=f"Clerk {n}")
            for _ in range(SALES_PER_WORKER):
                ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CASH", user)
            for _ in range(EXPENSES_PER_WORKER):
                ledger.expenses.add_expense("1.00", "SUPPLIES", "Bags", user)

        _run_workers(work)

        summary = ledger.reports.shift_summary(shift.id)
        cash_sales = Decimal(summary["cash_sales_total"])
        expenses = Decimal(summary["expenses_total"])

        assert summary["sales_count"] == WORKERS * SALES_PER_WORKER
        assert summary["expenses_count"] == WORKERS * EXPENSES_PER_WORKER
        assert cash_sales == Decimal("800.00")
        assert expenses == Decimal("40.00")
        assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("1760.00")
        assert ledger.shifts.get_active_shift().end_cash_expected == shift.start_cash + cash_sales - expenses
        assert ledger.catalog.find_variant(variant.id).stock == 100 - WORKERS * SALES_PER_WORKER

    def test_no_unit_is_sold_twice(self, busy_ledger):
        ledger = busy_ledger
        variant = add_variant(ledger, stock=50, price="2.00")

        def work(n):
            user = UserRef(id=f"u-{n}", name=f"Clerk {n}")
            sold = 0
            for _ in range(SALES_PER_WORKER):
                try:
                    ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CARD", user)
                    sold += 1
                except InsufficientStockError:
                    pass
            return sold

        sold = sum(_run_workers(work))

        assert sold == 50
        assert ledger.state.count("sales") == 50
        assert ledger.catalog.find_variant(variant.id).stock == 0

    def test_replica_matches_memory_after_concurrent_writes(self, tmp_path):
        store = JsonFileStore(tmp_path)
        ledger = Ledger(store)
        variant = add_variant(ledger, stock=100, price="10.00")
        shift = ledger.shifts.open_shift(500, UserRef(id="u-open", name="Opener"))

        def work(n):
            user = UserRef(id=f"u-{n}", name=f"Clerk {n}")
            for _ in range(SALES_PER_WORKER):
                ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CASH", user)

        _run_workers(work)
        assert ledger.flush(timeout=30)

        persisted_shift = {d["id"]: d for d in store.load("shifts")}[shift.id]
        persisted_variant = {d["id"]: d for d in store.load("variants")}[variant.id]

        assert persisted_shift["end_cash_expected"] == "1300.00"
        assert persisted_variant["stock"] == 20
        assert len(store.load("sales")) == WORKERS * SALES_PER_WORKER
        ledger.close()
