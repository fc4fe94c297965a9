"""
Cart aggregator tests.

Line merging/removal, discount clamping, unit changes, atomic re-pricing and
multi-currency totals.
"""

import logging
from decimal import Decimal

import pytest

from salesdesk.models import Currency, Product
from salesdesk.services.cart_service import Cart, CartError
from salesdesk.services.currency_service import CurrencyTable
from salesdesk.services.pricing_service import InvalidUnit, ResolvedPrice


@pytest.fixture
def cart(table):
    return Cart(table)


class TestLines:
    def test_same_key_merges(self, cart, product_a):
        cart.add_line(product_a, "piece", Decimal("10"))
        line = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        assert len(cart) == 1
        assert line.quantity == 3

    def test_different_unit_is_separate_line(self, cart, product_a):
        cart.add_line(product_a, "piece", Decimal("10"))
        cart.add_line(product_a, "box", Decimal("100"))
        assert len(cart) == 2

    def test_non_positive_quantity_removes(self, cart, product_a):
        cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        assert cart.add_line(product_a, "piece", Decimal("10"), quantity=0) is None
        assert cart.is_empty()

    def test_decrement_to_zero_removes(self, cart, product_a):
        line = cart.add_line(product_a, "piece", Decimal("10"))
        assert cart.update_quantity(line.key, -1) is None
        assert cart.find(line.key) is None

    def test_box_rejected_without_second_unit(self, cart, product_lbp):
        with pytest.raises(InvalidUnit):
            cart.add_line(product_lbp, "box", Decimal("1"))

    def test_negative_price_rejected(self, cart, product_a):
        with pytest.raises(CartError):
            cart.add_line(product_a, "piece", Decimal("-1"))

    def test_remove_missing_line(self, cart):
        with pytest.raises(CartError):
            cart.remove_line((99, "piece", None))


class TestDiscounts:
    def test_discount_reduces_line_total(self, cart, product_a):
        line = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        assert cart.update_discount(line.key, Decimal("3")) == Decimal("3")
        assert line.line_total == Decimal("17")

    def test_discount_above_gross_clamped(self, cart, product_a, caplog):
        line = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        with caplog.at_level(logging.WARNING):
            applied = cart.update_discount(line.key, Decimal("25"))
        assert applied == Decimal("20")
        assert line.line_total == Decimal("0")
        assert "clamped" in caplog.text

    def test_quantity_drop_reclamps_discount(self, cart, product_a):
        line = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        cart.update_discount(line.key, Decimal("15"))
        cart.set_quantity(line.key, 1)
        assert line.discount == Decimal("10")

    def test_negative_discount_rejected(self, cart, product_a):
        line = cart.add_line(product_a, "piece", Decimal("10"))
        with pytest.raises(CartError):
            cart.update_discount(line.key, Decimal("-1"))


class TestUnitsAndRepricing:
    def test_change_unit_merges_into_existing_line(self, cart, product_a):
        piece = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        cart.add_line(product_a, "box", Decimal("100"))
        merged = cart.change_unit(piece.key, "box", ResolvedPrice(Decimal("100")))
        assert len(cart) == 1
        assert merged.unit_type == "box"
        assert merged.quantity == 3

    def test_change_unit_moves_line(self, cart, product_a):
        piece = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        moved = cart.change_unit(piece.key, "box", ResolvedPrice(Decimal("85"), is_special=True))
        assert moved.unit_price == Decimal("85")
        assert moved.is_special is True
        assert cart.find(piece.key) is None

    def test_change_unit_keeps_discount(self, cart, product_a):
        piece = cart.add_line(product_a, "piece", Decimal("10"), quantity=12)
        cart.update_discount(piece.key, Decimal("5"))
        moved = cart.change_unit(piece.key, "box", ResolvedPrice(Decimal("100")))
        assert moved.discount == Decimal("5")

    def test_change_unit_clamps_carried_discount(self, cart, product_a):
        piece = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        cart.update_discount(piece.key, Decimal("20"))
        moved = cart.change_unit(piece.key, "box", ResolvedPrice(Decimal("5")))
        assert moved.discount == Decimal("10")

    def test_change_unit_failure_keeps_line(self, cart, product_a):
        piece = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        with pytest.raises(CartError):
            cart.change_unit(piece.key, "box", ResolvedPrice(Decimal("-1")))
        assert cart.find(piece.key).quantity == 2

    def test_reprice_updates_every_line(self, cart, product_a, product_lbp):
        cart.add_line(product_a, "piece", Decimal("10"))
        cart.add_line(product_lbp, "piece", Decimal("150000"))
        cart.reprice(lambda line: ResolvedPrice(line.unit_price / 2))
        assert [l.unit_price for l in cart.lines] == [Decimal("5"), Decimal("75000")]

    def test_reprice_failure_leaves_cart_untouched(self, cart, product_a, product_lbp):
        cart.add_line(product_a, "piece", Decimal("10"))
        cart.add_line(product_lbp, "piece", Decimal("150000"))

        def resolver(line):
            if line.product.product_id == 2:
                raise InvalidUnit("boom")
            return ResolvedPrice(Decimal("1"))

        with pytest.raises(InvalidUnit):
            cart.reprice(resolver)
        assert cart.lines[0].unit_price == Decimal("10")


class TestTotals:
    def test_single_currency(self, cart, product_a):
        cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        totals = cart.totals()
        assert totals.has_multi_currency is False
        assert totals.effective_total == Decimal("20")
        assert totals.by_currency["USD"].total == Decimal("20")

    def test_multi_currency_grand_total_in_base(self, cart, product_a, product_lbp):
        cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        cart.add_line(product_lbp, "piece", Decimal("150000"))
        totals = cart.totals()
        assert totals.has_multi_currency is True
        assert totals.by_currency["LBP"].total == Decimal("150000")
        # 20 USD + 150000 LBP / 15000
        assert totals.grand_total_base == Decimal("30")
        assert totals.effective_total == totals.grand_total_base
        assert totals.item_count == 2

    def test_discount_converted_to_base(self, cart, product_lbp):
        line = cart.add_line(product_lbp, "piece", Decimal("150000"))
        cart.update_discount(line.key, Decimal("30000"))
        totals = cart.totals()
        assert totals.discount_base == Decimal("2")
        assert totals.grand_total_base == Decimal("8")

    def test_unknown_currency_counted_at_rate_one(self, cart, table):
        odd = Product(product_id=3, retail_price=Decimal("4"), currency="XAF")
        cart.add_line(odd, "piece", Decimal("4"))
        assert cart.totals().grand_total_base == Decimal("4")
        assert table.unknown_codes == {"XAF"}

    def test_line_without_currency_priced_in_base(self):
        table = CurrencyTable([
            Currency(code="EUR", exchange_rate=Decimal("1"), is_base=True),
            Currency(code="USD", exchange_rate=Decimal("2")),
        ])
        cart = Cart(table)
        cart.add_line(Product(product_id=3, retail_price=Decimal("4")), "piece", Decimal("4"))
        totals = cart.totals()
        assert list(totals.by_currency) == ["EUR"]
        assert totals.grand_total_base == Decimal("4")
        assert table.unknown_codes == set()

    def test_to_dict(self, cart, product_a):
        cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
        data = cart.to_dict()
        assert data["lines"][0]["line_total"] == 20.0
        assert data["totals"]["effective_total"] == 20.0
