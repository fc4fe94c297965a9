"""
Settlement calculator tests.

Sale path: paid_amount + debt_amount == effective_total for every payment type.
Return/exchange path: the sign of the net amount picks the money flow.
"""

from decimal import Decimal

import pytest

from salesdesk.models import CartLine, Customer, ReturnLine
from salesdesk.services.cart_service import Cart
from salesdesk.services.return_service import OverReturn
from salesdesk.services.settlement_service import (
    SettlementError,
    SettlementMethods,
    compute_return_exchange_settlement,
    compute_sale_settlement,
    debt_adjustment,
    validate_methods,
)


@pytest.fixture
def totals(table, product_a):
    cart = Cart(table)
    cart.add_line(product_a, "piece", Decimal("10.000"), quantity=2)
    return cart.totals()


def return_line(quantity=4, unit_price="10", max_qty=4, currency=None):
    return ReturnLine(
        original_order_item_id=1,
        product_id=1,
        unit_type="piece",
        quantity=quantity,
        unit_price=Decimal(unit_price),
        max_returnable_qty=max_qty,
        currency=currency,
    )


def exchange_line(product, unit_price="15", quantity=1):
    return CartLine(product=product, unit_type="piece", unit_price=Decimal(unit_price), quantity=quantity)


class TestSaleSettlement:
    def test_simple_cash_sale(self, totals, table):
        s = compute_sale_settlement(totals, "cash", table)
        assert s.effective_total == Decimal("20")
        assert s.paid_amount == Decimal("20")
        assert s.debt_amount == Decimal("0")
        assert s.change_amount == Decimal("0")
        assert s.payment_status == "paid"

    def test_credit_sale(self, totals, table):
        s = compute_sale_settlement(totals, "credit", table)
        assert s.paid_amount == Decimal("0")
        assert s.debt_amount == Decimal("20")
        assert s.payment_status == "unpaid"

    def test_credit_ignores_tenders(self, totals, table):
        s = compute_sale_settlement(totals, "credit", table, {"USD": Decimal("20")})
        assert s.paid_amount == Decimal("0")
        assert s.tenders == {}

    def test_short_split_payment_becomes_debt(self, totals, table):
        s = compute_sale_settlement(totals, "split", table, {"LBP": Decimal("150000")})
        assert s.paid_amount == Decimal("10")
        assert s.debt_amount == Decimal("10")
        assert s.shortfall_amount == Decimal("10")
        assert s.payment_status == "partial"

    def test_split_without_tenders_is_all_debt(self, totals, table):
        s = compute_sale_settlement(totals, "split", table)
        assert s.debt_amount == Decimal("20")

    def test_cash_over_tender_gives_change(self, totals, table):
        s = compute_sale_settlement(totals, "cash", table, {"USD": Decimal("25")})
        assert s.tendered_amount == Decimal("25")
        assert s.paid_amount == Decimal("20")
        assert s.change_amount == Decimal("5")
        assert s.debt_amount == Decimal("0")

    @pytest.mark.parametrize("payment_type", ["cash", "credit", "split"])
    @pytest.mark.parametrize("tendered", [None, {"USD": "5"}, {"USD": "20"}, {"USD": "7", "LBP": "300000"}])
    def test_reconciliation(self, totals, table, payment_type, tendered):
        tenders = {k: Decimal(v) for k, v in tendered.items()} if tendered else None
        s = compute_sale_settlement(totals, payment_type, table, tenders)
        assert s.paid_amount + s.debt_amount == s.effective_total
        assert not (s.change_amount > 0 and s.shortfall_amount > 0)

    def test_unknown_payment_type(self, totals, table):
        with pytest.raises(SettlementError):
            compute_sale_settlement(totals, "barter", table)

    def test_credit_limit_projection(self, totals, table, wholesale_customer):
        # debt 40 + 20 within a limit of 100
        s = compute_sale_settlement(totals, "credit", table, customer=wholesale_customer)
        assert s.projected_debt_balance == Decimal("60")
        assert s.exceeds_credit_limit is False

        near_limit = Customer(customer_id=1, debt_balance=Decimal("90"), credit_limit=Decimal("100"))
        s = compute_sale_settlement(totals, "credit", table, customer=near_limit)
        assert s.exceeds_credit_limit is True


class TestReturnExchangeSettlement:
    def test_exchange_with_refund(self, table, product_a):
        s = compute_return_exchange_settlement([return_line()], [exchange_line(product_a)], table)
        assert s.return_total == Decimal("40")
        assert s.exchange_total == Decimal("15")
        assert s.net_amount == Decimal("-25")
        assert s.direction == "refund"
        assert s.refund_amount == Decimal("25")

        with pytest.raises(SettlementError):
            validate_methods(s)
        assert validate_methods(s, refund_method="cash").refund_method == "cash"

    def test_exchange_with_payment(self, table, product_a):
        s = compute_return_exchange_settlement(
            [return_line(quantity=1)], [exchange_line(product_a, "25")], table,
        )
        assert s.direction == "payment"
        assert s.payment_amount == Decimal("15")
        with pytest.raises(SettlementError):
            validate_methods(s, refund_method="cash")
        assert validate_methods(s, payment_method="credit").payment_method == "credit"

    def test_even_exchange(self, table, product_a):
        s = compute_return_exchange_settlement(
            [return_line(quantity=1)], [exchange_line(product_a, "10")], table,
        )
        assert s.direction == "even"
        methods = validate_methods(s)
        assert methods.refund_method is None
        assert methods.payment_method == "none"

    def test_return_in_other_currency_converted(self, table):
        s = compute_return_exchange_settlement([return_line(quantity=1, unit_price="150000", currency="LBP")], [], table)
        assert s.return_total == Decimal("10")

    def test_over_return_rejected(self, table):
        with pytest.raises(OverReturn):
            compute_return_exchange_settlement([return_line(quantity=2, max_qty=1)], [], table)

    def test_large_refund_needs_approval(self, table):
        s = compute_return_exchange_settlement([return_line(quantity=15, max_qty=15)], [], table)
        assert s.refund_amount == Decimal("150")
        assert s.manager_approval_required is True
        assert s.status == "pending_approval"

    def test_refund_at_threshold_completes(self, table):
        s = compute_return_exchange_settlement([return_line(quantity=10, max_qty=10)], [], table)
        assert s.status == "completed"

    def test_debt_adjustment(self, table, product_a):
        refund = compute_return_exchange_settlement([return_line()], [exchange_line(product_a)], table)
        assert debt_adjustment(refund, SettlementMethods("store_credit", None)) == Decimal("-25")
        assert debt_adjustment(refund, SettlementMethods("cash", None)) == Decimal("0")

        payment = compute_return_exchange_settlement(
            [return_line(quantity=1)], [exchange_line(product_a, "25")], table,
        )
        assert debt_adjustment(payment, SettlementMethods(None, "credit")) == Decimal("15")
