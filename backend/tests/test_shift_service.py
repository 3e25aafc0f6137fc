"""
Cash shift lifecycle tests.

Verifies:
- At most one OPEN shift after any sequence of successful open/close calls
- Close reconciliation (difference = actual - expected)
- Counted-cash policy: coerce (default) vs strict
- Multi-open repair keeps the most recently opened shift and is idempotent
"""

import logging
from datetime import datetime
from decimal import Decimal

import pytest

from retailpos.entities import SHIFT_CLOSED, SHIFT_OPEN, SYSTEM_USER, Shift
from retailpos.errors import ConflictError, StateError, ValidationError
from retailpos.services.ledger import Ledger
from retailpos.services.shift_service import CLOSE_CASH_STRICT

from conftest import add_variant


def _open_shift_count(ledger) -> int:
    return len([s for s in ledger.state.all("shifts") if s.status == SHIFT_OPEN])


# =============================================================================
# OPEN
# =============================================================================


class TestOpenShift:
    def test_open_sets_expected_to_start_cash(self, ledger, alice):
        shift = ledger.shifts.open_shift("100.00", alice)

        assert shift.status == SHIFT_OPEN
        assert shift.start_cash == Decimal("100.00")
        assert shift.end_cash_expected == Decimal("100.00")
        assert shift.opened_by == alice
        assert shift.closed_at is None
        assert ledger.shifts.get_active_shift() == shift

    def test_second_open_conflicts(self, ledger, alice, bob):
        first = ledger.shifts.open_shift(100, alice)

        with pytest.raises(ConflictError) as exc:
            ledger.shifts.open_shift(50, bob)

        assert exc.value.details["shift_id"] == first.id
        assert ledger.state.count("shifts") == 1

    @pytest.mark.parametrize("start_cash", [-1, "-0.01", "abc", None, float("nan"), True])
    def test_invalid_start_cash_rejected(self, ledger, alice, start_cash):
        with pytest.raises(ValidationError):
            ledger.shifts.open_shift(start_cash, alice)
        assert ledger.state.count("shifts") == 0

    def test_acting_user_required(self, ledger):
        with pytest.raises(ValidationError):
            ledger.shifts.open_shift(100, None)
        assert ledger.state.count("shifts") == 0

    def test_zero_start_cash_allowed(self, ledger, alice):
        assert ledger.shifts.open_shift(0, alice).end_cash_expected == Decimal("0.00")


# =============================================================================
# CLOSE
# =============================================================================


class TestCloseShift:
    def test_close_reconciliation(self, ledger, alice):
        variant = add_variant(ledger, stock=10, price="50.00")
        ledger.shifts.open_shift(100, alice)
        ledger.sales.record_sale([{"variant_id": variant.id, "quantity": 1}], "CASH", alice)
        assert ledger.shifts.get_active_shift().end_cash_expected == Decimal("150.00")

        closed = ledger.shifts.close_shift("140", alice)

        assert closed.status == SHIFT_CLOSED
        assert closed.end_cash_actual == Decimal("140.00")
        assert closed.difference == Decimal("-10.00")
        assert closed.closed_by == alice
        assert closed.closed_at is not None
        assert ledger.state.get("shifts", closed.id).to_dict()["difference"] == "-10.00"
        assert ledger.shifts.get_active_shift() is None

    def test_close_without_open_shift(self, ledger, alice):
        with pytest.raises(StateError):
            ledger.shifts.close_shift(100, alice)

    def test_close_requires_acting_user(self, ledger, alice):
        shift = ledger.shifts.open_shift(100, alice)
        with pytest.raises(ValidationError):
            ledger.shifts.close_shift(100, None)
        assert ledger.state.get("shifts", shift.id).status == SHIFT_OPEN

    @pytest.mark.parametrize("actual_cash", ["abc", None, -5, float("nan")])
    def test_invalid_counted_cash_coerced_to_zero(self, ledger, alice, caplog, actual_cash):
        ledger.shifts.open_shift(100, alice)

        with caplog.at_level(logging.WARNING):
            closed = ledger.shifts.close_shift(actual_cash, alice)

        assert closed.status == SHIFT_CLOSED
        assert closed.end_cash_actual == Decimal("0.00")
        assert closed.difference == Decimal("-100.00")
        assert "Invalid counted cash" in caplog.text

    def test_strict_policy_rejects_invalid_counted_cash(self, clock, alice):
        ledger = Ledger(clock=clock, close_cash_policy=CLOSE_CASH_STRICT)
        shift = ledger.shifts.open_shift(100, alice)

        with pytest.raises(ValidationError):
            ledger.shifts.close_shift("-1", alice)

        assert ledger.state.get("shifts", shift.id).status == SHIFT_OPEN

    def test_unknown_policy_rejected(self, clock):
        with pytest.raises(ValueError):
            Ledger(clock=clock, close_cash_policy="lenient")

    def test_closed_shift_balance_is_immutable(self, ledger, alice):
        shift = ledger.shifts.open_shift(100, alice)
        ledger.shifts.close_shift(100, alice)

        with pytest.raises(StateError):
            ledger.shifts.apply_cash_delta(shift.id, Decimal("5.00"))

    def test_single_open_invariant_over_sequence(self, ledger, alice, bob):
        for _ in range(3):
            ledger.shifts.open_shift(10, alice)
            assert _open_shift_count(ledger) == 1
            with pytest.raises(ConflictError):
                ledger.shifts.open_shift(10, bob)
            assert _open_shift_count(ledger) == 1
            ledger.shifts.close_shift(10, bob)
            assert _open_shift_count(ledger) == 0

        assert ledger.state.count("shifts") == 3


# =============================================================================
# REPAIR
# =============================================================================


def _stale_open_shift(shift_id: str, opened_at: datetime, start_cash: str) -> Shift:
    return Shift(
        id=shift_id,
        opened_at=opened_at,
        start_cash=Decimal(start_cash),
        end_cash_expected=Decimal(start_cash),
        status=SHIFT_OPEN,
    )


class TestSanitizeShifts:
    def test_multi_open_repair(self, ledger, caplog):
        older = _stale_open_shift("s-old", datetime(2026, 3, 1, 8, 0), "50.00")
        newer = _stale_open_shift("s-new", datetime(2026, 3, 1, 9, 0), "80.00")
        ledger.state.replace("shifts", [newer, older])

        with caplog.at_level(logging.WARNING):
            repaired = ledger.shifts.sanitize_shifts()

        assert [s.id for s in repaired] == ["s-old"]
        assert ledger.state.get("shifts", "s-new").status == SHIFT_OPEN
        closed = ledger.state.get("shifts", "s-old")
        assert closed.status == SHIFT_CLOSED
        assert closed.end_cash_actual == Decimal("50.00")
        assert closed.closed_by == SYSTEM_USER
        assert closed.closed_at is not None
        assert "s-old" in caplog.text

    def test_repair_is_idempotent(self, ledger):
        ledger.state.replace("shifts", [
            _stale_open_shift("a", datetime(2026, 3, 1, 8, 0), "10.00"),
            _stale_open_shift("b", datetime(2026, 3, 1, 9, 0), "20.00"),
            _stale_open_shift("c", datetime(2026, 3, 1, 10, 0), "30.00"),
        ])

        first = ledger.shifts.sanitize_shifts()
        snapshot = {s.id: s for s in ledger.state.all("shifts")}
        second = ledger.shifts.sanitize_shifts()

        assert sorted(s.id for s in first) == ["a", "b"]
        assert second == []
        assert {s.id: s for s in ledger.state.all("shifts")} == snapshot

    def test_active_shift_is_most_recent_when_corrupted(self, ledger):
        ledger.state.replace("shifts", [
            _stale_open_shift("a", datetime(2026, 3, 1, 10, 0), "10.00"),
            _stale_open_shift("b", datetime(2026, 3, 1, 8, 0), "20.00"),
        ])
        assert ledger.shifts.get_active_shift().id == "a"

    def test_repair_never_raises(self, ledger, monkeypatch, caplog):
        ledger.state.replace("shifts", [
            _stale_open_shift("a", datetime(2026, 3, 1, 8, 0), "10.00"),
            _stale_open_shift("b", datetime(2026, 3, 1, 9, 0), "20.00"),
        ])

        def broken_clock():
            raise RuntimeError("clock unavailable")

        monkeypatch.setattr(ledger.shifts, "clock", broken_clock)

        with caplog.at_level(logging.ERROR):
            assert ledger.shifts.sanitize_shifts() == []
        assert "Shift repair pass failed" in caplog.text

    def test_closed_shifts_untouched(self, ledger, alice):
        shift = ledger.shifts.open_shift(100, alice)
        closed = ledger.shifts.close_shift(90, alice)
        reopened = ledger.shifts.open_shift(20, alice)

        assert ledger.shifts.sanitize_shifts() == []
        assert ledger.state.get("shifts", shift.id) == closed
        assert ledger.state.get("shifts", reopened.id) == reopened
