from datetime import datetime
from decimal import Decimal

from conftest import add_variant


def _trade_day(ledger, alice):
    """Open 100, cash sale 30, card sale 20, expense 15, close at 110."""
    variant = add_variant(ledger, stock=20, price="10.00")
    shift = ledger.shifts.open_shift(100, alice)
    ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 3}], "CASH", alice)
    ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 2}], "CARD", alice)
    ledger.expenses.add_expense(15, "FOOD", "lunch", alice)
    ledger.shifts.close_shift(110, alice)
    return shift


def test_shift_summary(ledger, alice):
    shift = _trade_day(ledger, alice)

    summary = ledger.reports.shift_summary(shift.id)

    assert summary["sales_count"] == 2
    assert summary["sales_total"] == "50.00"
    assert summary["sales_by_method"] == {"CASH": "30.00", "CARD": "20.00", "OTHER": "0.00"}
    assert summary["cash_sales_total"] == "30.00"
    assert summary["expenses_count"] == 1
    assert summary["expenses_total"] == "15.00"
    assert summary["cash_refunds_total"] == "0.00"
    assert summary["start_cash"] == "100.00"
    assert summary["expected_cash"] == "115.00"
    assert summary["actual_cash"] == "110.00"
    assert summary["difference"] == "-5.00"
    assert summary["is_closed"] is True


def test_open_shift_summary_has_no_difference(ledger, alice):
    shift = ledger.shifts.open_shift(10, alice)
    summary = ledger.reports.shift_summary(shift.id)
    assert summary["actual_cash"] is None
    assert summary["difference"] is None
    assert summary["is_closed"] is False


def test_shift_accessors(ledger, alice, clock):
    first = _trade_day(ledger, alice)
    clock.advance(days=1)
    second = ledger.shifts.open_shift(20, alice)

    assert ledger.reports.active_shift() == second
    assert [s.id for s in ledger.reports.shift_history()] == [first.id]
    assert len(ledger.reports.sales_for_shift(first.id)) == 2
    assert ledger.reports.sales_for_shift(second.id) == []
    assert ledger.reports.total_expenses_for_shift(first.id) == Decimal("15.00")
    assert [e.description for e in ledger.reports.expenses_for_shift(first.id)] == ["lunch"]

    in_range = ledger.reports.shifts_in_range(second.opened_at, None)
    assert [s.id for s in in_range] == [second.id]
    assert [s.id for s in ledger.reports.shifts_in_range(None, None)] == [first.id, second.id]
    assert ledger.reports.shifts_in_range(None, datetime(2000, 1, 1)) == []


def test_shift_history_newest_close_first(ledger, alice):
    shifts = []
    for _ in range(3):
        shifts.append(ledger.shifts.open_shift(0, alice))
        ledger.shifts.close_shift(0, alice)

    history = ledger.reports.shift_history(limit=2)
    assert [s.id for s in history] == [shifts[2].id, shifts[1].id]


def test_cash_refunds_counted_against_shift(ledger, alice):
    variant = add_variant(ledger, stock=5, price="10.00")
    shift = ledger.shifts.open_shift(100, alice)
    sale = ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 2}], "CASH", alice)
    entry = ledger.returns.create_return(sale.id, [{"variant_id": variant.id, "quantity": 1}], "x", "CASH", alice)
    ledger.returns.process_return(entry.id, alice)

    summary = ledger.reports.shift_summary(shift.id)
    assert summary["cash_refunds_total"] == "10.00"
    assert summary["expected_cash"] == "110.00"
    assert [r.id for r in ledger.reports.returns_for_shift(shift.id)] == [entry.id]


def test_sales_queries(ledger, alice, bob, clock):
    variant = add_variant(ledger, stock=20, price="5.00")
    early = ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CASH", alice)
    clock.advance(hours=2)
    late = ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CARD", bob)

    assert ledger.reports.sales_in_range(late.timestamp, None) == [late]
    assert ledger.reports.sales_in_range(None, early.timestamp) == [early]
    assert ledger.reports.sales_by_user("u-bob") == [late]


def test_revenue_stats(ledger, alice, clock):
    variant = add_variant(ledger, stock=20, price="5.00")
    ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 2}], "CASH", alice)
    clock.advance(days=3)
    ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CASH", alice)
    clock.advance(days=10)
    ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 4}], "CASH", alice)

    stats = ledger.reports.revenue_stats(now=clock.now)

    assert stats == {
        "total_revenue": "35.00",
        "today_revenue": "20.00",
        "weekly_revenue": "20.00",
        "transaction_count": 3,
    }


def test_top_products(ledger, alice):
    cheap = add_variant(ledger, stock=50, price="1.00", sku="CHEAP", product_name="Pin")
    dear = add_variant(ledger, stock=50, price="40.00", sku="DEAR", product_name="Jacket")
    ledger.sales.record_sale([{"variant_id": cheap.id, "quantity": 10}], "CASH", alice)
    ledger.sales.record_sale([{"variant_id": dear.id, "quantity": 1}], "CASH", alice)

    top = ledger.reports.top_products(limit=1)

    assert top == [{"product_id": dear.product_id, "product_name": "Jacket", "quantity": 1, "revenue": "40.00"}]
