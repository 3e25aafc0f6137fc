"""
Discount rule and quote tests.

Verifies:
- Automatic discounts apply first, then the presented coupon
- Percentage discounts respect max_discount; no discount exceeds its base
- Validity window, usage limit and min_purchase gate eligibility
- Quotes never change recorded sale totals
"""

from datetime import datetime
from decimal import Decimal

import pytest

from retailpos.entities import Product, Variant
from retailpos.errors import NotFoundError, ValidationError


def _stock_item(ledger, sku, price, category):
    product = Product(id=f"p-{sku}", name=sku.title(), category=category, base_price=Decimal(price))
    variant = Variant(id=f"v-{sku}", product_id=product.id, sku=sku, price=Decimal(price), stock=10)
    ledger.catalog.add_product(product, [variant])
    return variant


@pytest.fixture
def cart(ledger):
    """Shirt (Clothing) 2 x 10.00 and Mug (Kitchen) 1 x 5.00: subtotal 25.00."""
    shirt = _stock_item(ledger, "SHIRT", "10.00", "Clothing")
    mug = _stock_item(ledger, "MUG", "5.00", "Kitchen")
    return shirt, mug, [
        {"variant_id": shirt.id, "quantity": 2},
        {"variant_id": mug.id, "quantity": 1},
    ]


def _rule(**overrides):
    rule = {"name": "Rule", "type": "PERCENTAGE", "value": "10", "scope": "CART"}
    rule.update(overrides)
    return rule


class TestRules:
    def test_create_discount(self, ledger):
        discount = ledger.discounts.create_discount(_rule(coupon_code=" save10 ", usage_limit=5))

        assert discount.coupon_code == "SAVE10"
        assert discount.value == Decimal("10.00")
        assert discount.usage_count == 0
        assert discount.active is True

    @pytest.mark.parametrize("payload", [
        _rule(type="BOGO"),
        _rule(value="0"),
        _rule(value="150"),
        _rule(scope="PRODUCT"),
        _rule(scope="CATEGORY", category_names="Clothing"),
        _rule(valid_from="2026-05-01T00:00:00Z", valid_until="2026-04-01T00:00:00Z"),
        _rule(valid_from="next week"),
        _rule(usage_limit=0),
        _rule(active="yes"),
        _rule(name=" "),
        "10%",
    ])
    def test_bad_rules_rejected(self, ledger, payload):
        with pytest.raises(ValidationError):
            ledger.discounts.create_discount(payload)
        assert ledger.state.count("discounts") == 0

    def test_coupon_codes_are_unique(self, ledger):
        first = ledger.discounts.create_discount(_rule(coupon_code="SAVE"))

        with pytest.raises(ValidationError):
            ledger.discounts.create_discount(_rule(coupon_code="save"))
        # re-saving a rule with its own code is fine
        ledger.discounts.update_discount(first.id, _rule(coupon_code="SAVE", value="15"))

    def test_update_keeps_usage(self, ledger):
        discount = ledger.discounts.create_discount(_rule())
        ledger.discounts.increment_usage(discount.id)

        updated = ledger.discounts.update_discount(discount.id, _rule(type="FIXED", value="3"))

        assert updated.type == "FIXED"
        assert updated.usage_count == 1
        assert updated.created_at == discount.created_at

    def test_toggle_and_delete(self, ledger):
        discount = ledger.discounts.create_discount(_rule())

        assert ledger.discounts.toggle_active(discount.id).active is False
        assert ledger.discounts.active_discounts() == []

        ledger.discounts.delete_discount(discount.id)
        with pytest.raises(NotFoundError):
            ledger.discounts.toggle_active(discount.id)


class TestEligibility:
    def test_validity_window(self, ledger, clock):
        ledger.discounts.create_discount(_rule(name="Later", valid_from="2026-04-01T00:00:00Z"))
        ledger.discounts.create_discount(_rule(name="Over", valid_until="2026-03-01T00:00:00Z"))
        ledger.discounts.create_discount(_rule(name="Now", valid_from="2026-03-01T00:00:00Z",
                                               valid_until="2026-03-31T00:00:00Z"))

        assert [d.name for d in ledger.discounts.active_discounts()] == ["Now"]
        assert {d.name for d in ledger.discounts.active_discounts(datetime(2026, 4, 2))} == {"Later"}

    def test_usage_limit(self, ledger):
        discount = ledger.discounts.create_discount(_rule(coupon_code="ONCE", usage_limit=1))
        assert ledger.discounts.validate_coupon("once").id == discount.id

        ledger.discounts.redeem([discount.id])

        assert ledger.discounts.validate_coupon("ONCE") is None

    def test_redeem_unknown_changes_nothing(self, ledger):
        discount = ledger.discounts.create_discount(_rule())

        with pytest.raises(NotFoundError):
            ledger.discounts.redeem([discount.id, "ghost"])
        assert ledger.discounts.get_discount(discount.id).usage_count == 0


class TestQuote:
    def test_automatic_then_coupon(self, ledger, cart):
        _, _, items = cart
        auto = ledger.discounts.create_discount(_rule(name="Auto 10%"))
        coupon = ledger.discounts.create_discount(_rule(name="Coupon 2", type="FIXED", value="2",
                                                        coupon_code="TWO"))

        without = ledger.discounts.calculate_discounts(items)
        assert [a.discount_id for a in without] == [auto.id]
        assert without[0].amount == Decimal("2.50")

        applied = ledger.discounts.calculate_discounts(items, "two")
        assert [a.discount_id for a in applied] == [auto.id, coupon.id]

        assert ledger.discounts.calculate_discounts(items, "NOPE") == without

    def test_percentage_cap_and_base_limit(self, ledger, cart):
        _, _, items = cart
        ledger.discounts.create_discount(_rule(value="50", max_discount="4"))
        ledger.discounts.create_discount(_rule(name="Big fixed", type="FIXED", value="100",
                                               scope="CATEGORY", category_names=["Kitchen"]))

        amounts = sorted(a.amount for a in ledger.discounts.calculate_discounts(items))

        assert amounts == [Decimal("4.00"), Decimal("5.00")]

    def test_product_and_category_scope(self, ledger, cart):
        shirt, _, items = cart
        ledger.discounts.create_discount(_rule(name="Shirts", scope="PRODUCT", product_ids=[shirt.product_id]))
        ledger.discounts.create_discount(_rule(name="Garden", scope="CATEGORY", category_names=["Garden"]))

        applied = ledger.discounts.calculate_discounts(items)

        assert [(a.discount_name, a.amount) for a in applied] == [("Shirts", Decimal("2.00"))]

    def test_min_purchase(self, ledger, cart):
        _, _, items = cart
        ledger.discounts.create_discount(_rule(min_purchase="30"))

        assert ledger.discounts.calculate_discounts(items) == []

    def test_quote_does_not_change_sales(self, ledger, alice, cart):
        shirt, _, items = cart
        ledger.discounts.create_discount(_rule(type="FIXED", value="30"))

        quote = ledger.discounts.quote(items)
        sale = ledger.sales.record_sale(items, "CARD", alice)

        assert quote["subtotal"] == "25.00"
        assert quote["discount_total"] == "25.00"
        assert quote["total_after_discounts"] == "0.00"
        assert sale.total == Decimal("25.00")

    def test_quote_rejects_bad_items(self, ledger):
        with pytest.raises(ValidationError):
            ledger.discounts.quote("nope")
        with pytest.raises(NotFoundError):
            ledger.discounts.quote([{"variant_id": "ghost", "quantity": 1}])
