"""
Customer directory tests.

Verifies:
- Contact details are validated and trimmed
- Search matches name/email case-insensitively and phone by substring
- Purchase totals accumulate and drive the top-customer ranking
"""

from decimal import Decimal

import pytest

from retailpos.errors import NotFoundError, ValidationError


@pytest.fixture
def ana(ledger):
    return ledger.customers.add_customer({
        "name": "  Ana Diaz ", "email": "Ana@Example.com", "phone": "555-0101",
    })


class TestDirectory:
    def test_add_customer(self, ledger, ana):
        assert ana.name == "Ana Diaz"
        assert ana.total_purchases == 0
        assert ana.total_spent == Decimal("0.00")
        assert ana.last_purchase_at is None
        assert ledger.customers.get_customer(ana.id) == ana

    @pytest.mark.parametrize("payload", [{"name": " "}, {}, ["Ana"], {"name": "x" * 129}])
    def test_bad_payload_rejected(self, ledger, payload):
        with pytest.raises(ValidationError):
            ledger.customers.add_customer(payload)
        assert ledger.state.count("customers") == 0

    def test_update_keeps_totals_and_untouched_fields(self, ledger, ana):
        ledger.customers.record_purchase(ana.id, "12.50")

        updated = ledger.customers.update_customer(ana.id, {"phone": "555-9999", "total_spent": "0"})

        assert updated.phone == "555-9999"
        assert updated.email == "Ana@Example.com"
        assert updated.total_spent == Decimal("12.50")

    def test_delete_and_unknown(self, ledger, ana):
        ledger.customers.delete_customer(ana.id)

        with pytest.raises(NotFoundError):
            ledger.customers.get_customer(ana.id)
        with pytest.raises(NotFoundError):
            ledger.customers.update_customer(ana.id, {"name": "Ana"})

    def test_search(self, ledger, ana):
        ledger.customers.add_customer({"name": "Bruno", "email": "bruno@shop.test", "phone": "555-0202"})

        assert [c.name for c in ledger.customers.search_customers("ANA")] == ["Ana Diaz"]
        assert [c.name for c in ledger.customers.search_customers("shop.TEST")] == ["Bruno"]
        assert [c.name for c in ledger.customers.search_customers("0202")] == ["Bruno"]
        assert [c.name for c in ledger.customers.search_customers("")] == ["Ana Diaz", "Bruno"]


class TestPurchases:
    def test_record_purchase_accumulates(self, ledger, ana):
        ledger.customers.record_purchase(ana.id, "10.00")
        customer = ledger.customers.record_purchase(ana.id, Decimal("5.25"))

        assert customer.total_purchases == 2
        assert customer.total_spent == Decimal("15.25")
        assert customer.last_purchase_at is not None

    def test_record_purchase_rejects_bad_amount(self, ledger, ana):
        with pytest.raises(ValidationError):
            ledger.customers.record_purchase(ana.id, "-1")
        assert ledger.customers.get_customer(ana.id).total_purchases == 0

    def test_top_customers(self, ledger, ana):
        bruno = ledger.customers.add_customer({"name": "Bruno"})
        cleo = ledger.customers.add_customer({"name": "Cleo"})
        ledger.customers.record_purchase(ana.id, "20")
        ledger.customers.record_purchase(bruno.id, "90")
        ledger.customers.record_purchase(cleo.id, "45")

        assert [c.name for c in ledger.customers.top_customers(2)] == ["Bruno", "Cleo"]
