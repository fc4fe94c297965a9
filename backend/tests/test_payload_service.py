"""
Submission payload tests.
"""

import json
from datetime import datetime
from decimal import Decimal

import pytest

from salesdesk.services.cart_service import Cart
from salesdesk.services.currency_service import CurrencyTable
from salesdesk.services.payload_service import (
    PayloadError,
    build_quote_payload,
    build_return_exchange_payload,
    build_sale_payload,
    parse_snapshot,
    quote_conversion_payload,
)
from salesdesk.services.return_service import ReturnBasket
from salesdesk.services.settlement_service import (
    SettlementMethods,
    compute_return_exchange_settlement,
    compute_sale_settlement,
)
from salesdesk.models import Currency, OriginalOrder, Product, ReturnableItem


@pytest.fixture
def cart(table, product_a, product_lbp):
    cart = Cart(table)
    line = cart.add_line(product_a, "piece", Decimal("10"), quantity=2)
    cart.update_discount(line.key, Decimal("1"))
    cart.add_line(product_lbp, "piece", Decimal("150000"))
    return cart


def sale_payload(cart, table, payment_type="cash", tendered=None, **kwargs):
    totals = cart.totals()
    settlement = compute_sale_settlement(totals, payment_type, table, tendered)
    return build_sale_payload(cart.lines, totals, settlement, table, warehouse_id=3, **kwargs)


class TestSalePayload:
    def test_header(self, cart, table):
        payload = sale_payload(cart, table, customer_id=20)
        assert payload["customerId"] == 20
        assert payload["warehouseId"] == 3
        assert payload["notes"] == "Direct Sale"
        assert payload["paymentType"] == "cash"
        assert payload["paidAmount"] == 29.0
        assert payload["discountAmount"] == 1.0
        assert payload["taxAmount"] == 0

    def test_items(self, cart, table):
        items = sale_payload(cart, table)["items"]
        assert items[0] == {
            "productId": 1,
            "variantId": None,
            "unitType": "piece",
            "quantity": 2,
            "unitPrice": 10.0,
            "discountAmount": 1.0,
            "currency": "USD",
        }
        assert items[1]["currency"] == "LBP"

    def test_payment_currencies_fall_back_to_cart_totals(self, cart, table):
        payload = sale_payload(cart, table)
        assert json.loads(payload["paymentCurrenciesJson"]) == [
            {"currency": "USD", "amount": 19.0},
            {"currency": "LBP", "amount": 150000.0},
        ]

    def test_payment_currencies_list_tenders(self, cart, table):
        payload = sale_payload(cart, table, "split", {"LBP": Decimal("300000")})
        assert json.loads(payload["paymentCurrenciesJson"]) == [{"currency": "LBP", "amount": 300000.0}]
        assert payload["paidAmount"] == 20.0

    def test_over_tender_sends_full_tendered_amount(self, cart, table):
        totals = cart.totals()
        settlement = compute_sale_settlement(totals, "cash", table, {"USD": Decimal("35")})
        payload = build_sale_payload(cart.lines, totals, settlement, table, warehouse_id=3)
        assert settlement.change_amount == Decimal("6")
        assert payload["paidAmount"] == 35.0

    def test_credit_sale_sends_nothing_paid(self, cart, table):
        assert sale_payload(cart, table, "credit")["paidAmount"] == 0.0

    def test_rate_snapshot(self, cart, table):
        payload = sale_payload(cart, table)
        assert parse_snapshot(payload["exchangeRateSnapshotJson"]) == {
            "USD": Decimal("1"),
            "LBP": Decimal("15000"),
        }

    def test_empty_cart_rejected(self, table):
        with pytest.raises(PayloadError):
            sale_payload(Cart(table), table)


class TestQuotePayload:
    def test_header_and_items(self, cart):
        payload = build_quote_payload(
            cart.lines, cart.totals(), customer_id=20, now=datetime(2026, 10, 19, 12, 0),
        )
        assert payload["customerId"] == 20
        assert payload["validUntil"] == "2026-11-18T12:00:00Z"
        assert payload["notes"] == "Quote from Direct Sales"
        assert payload["discountAmount"] == 1.0
        assert payload["taxAmount"] == 0
        assert payload["items"][0] == {
            "productId": 1, "quantity": 2, "unitPrice": 10.0, "discountPercent": 0,
        }

    def test_customer_required(self, cart):
        with pytest.raises(PayloadError):
            build_quote_payload(cart.lines, cart.totals(), customer_id=None)

    def test_conversion_body(self):
        assert quote_conversion_payload(77) == {"orderId": 77}


class TestLineCurrencyFallback:
    def test_missing_currency_sent_as_base(self):
        table = CurrencyTable([Currency(code="EUR", exchange_rate=Decimal("1"), is_base=True)])
        cart = Cart(table)
        cart.add_line(Product(product_id=3, retail_price=Decimal("4")), "piece", Decimal("4"))
        payload = sale_payload(cart, table)
        assert payload["items"][0]["currency"] == "EUR"


class TestReturnExchangePayload:
    @pytest.fixture
    def basket(self):
        order = OriginalOrder(order_id=500, items=(
            ReturnableItem(order_item_id=7, product_id=1, quantity=2, unit_price=Decimal("10"),
                           discount_amount=Decimal("2"), returnable_qty=2),
        ))
        basket = ReturnBasket(order)
        basket.add_to_return_basket(7, 2)
        basket.update_return_item_props(7, reason="damaged", condition="damaged", inventory_action="scrap")
        return basket

    def test_payload(self, basket, table):
        settlement = compute_return_exchange_settlement(basket.lines, [], table)
        payload = build_return_exchange_payload(
            500, basket.lines, [], settlement, SettlementMethods("cash", None), warehouse_id=3,
        )
        assert payload["originalOrderId"] == 500
        assert payload["refundMethod"] == "cash"
        assert payload["paymentMethod"] is None
        assert payload["exchangeItems"] == []
        assert payload["returnItems"] == [{
            "productId": 1,
            "originalOrderItemId": 7,
            "unitType": "piece",
            "quantity": 2,
            "unitPrice": 9.0,
            "discountAmount": 0,
            "lineTotal": 18.0,
            "reason": "damaged",
            "condition": "damaged",
            "inventoryAction": "scrap",
        }]

    def test_empty_baskets_rejected(self, table):
        settlement = compute_return_exchange_settlement([], [], table)
        with pytest.raises(PayloadError):
            build_return_exchange_payload(
                500, [], [], settlement, SettlementMethods(None, "none"), warehouse_id=3,
            )
