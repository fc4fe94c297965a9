"""
Submission payloads.

Builds the camelCase request bodies the backend expects for a sale, a saved
quote and a return/exchange. Amounts are JSON numbers rounded to storage precision.

The sale payload freezes the exchange rates in force at submission
(exchangeRateSnapshotJson) so later rate changes never alter the
historical record.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from ..models import CartLine, ReturnLine
from ..money import to_json_number
from ..time_utils import to_utc_z, utcnow
from .cart_service import CartTotals
from .currency_service import CurrencyTable
from .settlement_service import ReturnExchangeSettlement, SaleSettlement, SettlementMethods


class PayloadError(Exception):
    """Raised when a submission payload cannot be built."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


DEFAULT_SALE_NOTES = "Direct Sale"
DEFAULT_QUOTE_NOTES = "Quote from Direct Sales"
QUOTE_VALIDITY_DAYS = 30


def rate_snapshot_json(table: CurrencyTable) -> str:
    return json.dumps({code: to_json_number(rate) for code, rate in table.snapshot().items()})


def payment_currencies_json(settlement: SaleSettlement, totals: CartTotals) -> str:
    """
    Actual tenders, or the cart's per-currency totals when nothing was tendered.
    """
    if settlement.tenders:
        entries = [
            {"currency": code, "amount": to_json_number(amount)}
            for code, amount in settlement.tenders.items()
        ]
    else:
        entries = [
            {"currency": code, "amount": to_json_number(t.total)}
            for code, t in totals.by_currency.items()
        ]
    return json.dumps(entries)


def sale_item_payload(line: CartLine, base_code: str | None = None) -> dict:
    return {
        "productId": line.product.product_id,
        "variantId": line.variant_id,
        "unitType": line.unit_type,
        "quantity": line.quantity,
        "unitPrice": to_json_number(line.unit_price),
        "discountAmount": to_json_number(line.discount),
        "currency": line.currency or base_code,
    }


def build_sale_payload(
    lines: Iterable[CartLine],
    totals: CartTotals,
    settlement: SaleSettlement,
    table: CurrencyTable,
    *,
    warehouse_id: int,
    customer_id: int | None = None,
    notes: str | None = None,
) -> dict:
    """
    Build the sale submission body.

    Raises:
        PayloadError: empty cart or missing warehouse
    """
    lines = list(lines)
    if not lines:
        raise PayloadError("Cart is empty")
    if warehouse_id is None:
        raise PayloadError("Warehouse is required")

    return {
        "customerId": customer_id,
        "warehouseId": warehouse_id,
        "notes": notes or DEFAULT_SALE_NOTES,
        "paymentType": settlement.payment_type,
        # full tendered amount; the backend derives change from it
        "paidAmount": to_json_number(settlement.tendered_amount),
        "discountAmount": to_json_number(totals.discount_base),
        "taxAmount": 0,
        "paymentCurrenciesJson": payment_currencies_json(settlement, totals),
        "exchangeRateSnapshotJson": rate_snapshot_json(table),
        "items": [sale_item_payload(line, table.base_code) for line in lines],
    }


def quote_item_payload(line: CartLine) -> dict:
    return {
        "productId": line.product.product_id,
        "quantity": line.quantity,
        "unitPrice": to_json_number(line.unit_price),
        "discountPercent": 0,
    }


def build_quote_payload(
    lines: Iterable[CartLine],
    totals: CartTotals,
    *,
    customer_id: int,
    notes: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Build the body that saves the cart as a quote, valid for 30 days.

    Raises:
        PayloadError: empty cart or no customer
    """
    lines = list(lines)
    if not lines:
        raise PayloadError("Cart is empty")
    if customer_id is None:
        raise PayloadError("Select a customer to save a quote")

    valid_until = (now or utcnow()) + timedelta(days=QUOTE_VALIDITY_DAYS)
    return {
        "customerId": customer_id,
        "validUntil": to_utc_z(valid_until),
        "discountAmount": to_json_number(totals.discount_base),
        "taxAmount": 0,
        "notes": notes or DEFAULT_QUOTE_NOTES,
        "terms": "",
        "items": [quote_item_payload(line) for line in lines],
    }


def quote_conversion_payload(order_id: int) -> dict:
    """Body that marks a loaded quote as converted into the given order."""
    if order_id is None:
        raise PayloadError("Order id is required to convert a quote")
    return {"orderId": order_id}


def return_item_payload(line: ReturnLine) -> dict:
    # unit_price is already net of the original line discount
    return {
        "productId": line.product_id,
        "originalOrderItemId": line.original_order_item_id,
        "unitType": line.unit_type,
        "quantity": line.quantity,
        "unitPrice": to_json_number(line.unit_price),
        "discountAmount": 0,
        "lineTotal": to_json_number(line.line_total),
        "reason": line.reason,
        "condition": line.condition,
        "inventoryAction": line.inventory_action,
    }


def exchange_item_payload(line: CartLine, base_code: str | None = None) -> dict:
    return {
        "productId": line.product.product_id,
        "variantId": line.variant_id,
        "unitType": line.unit_type,
        "quantity": line.quantity,
        "unitPrice": to_json_number(line.unit_price),
        "discountAmount": to_json_number(line.discount),
        "lineTotal": to_json_number(line.line_total),
        "currency": line.currency or base_code,
    }


def build_return_exchange_payload(
    original_order_id: int,
    return_lines: Iterable[ReturnLine],
    exchange_lines: Iterable[CartLine],
    settlement: ReturnExchangeSettlement,
    methods: SettlementMethods,
    *,
    warehouse_id: int,
    notes: str | None = None,
    base_code: str | None = None,
) -> dict:
    """
    Build the return/exchange submission body.

    Raises:
        PayloadError: both baskets empty, or missing order/warehouse
    """
    return_lines = list(return_lines)
    exchange_lines = list(exchange_lines)
    if not return_lines and not exchange_lines:
        raise PayloadError("Add items to return or exchange")
    if original_order_id is None:
        raise PayloadError("Original order is required")
    if warehouse_id is None:
        raise PayloadError("Warehouse is required")

    return {
        "originalOrderId": original_order_id,
        "warehouseId": warehouse_id,
        "refundMethod": methods.refund_method,
        "paymentMethod": methods.payment_method,
        "notes": notes or "",
        "netAmount": to_json_number(settlement.net_amount),
        "returnItems": [return_item_payload(line) for line in return_lines],
        "exchangeItems": [exchange_item_payload(line, base_code) for line in exchange_lines],
    }


def parse_snapshot(snapshot_json: str) -> dict[str, Decimal]:
    """Read back a rate snapshot as {code: Decimal}."""
    return {code: Decimal(str(rate)) for code, rate in json.loads(snapshot_json).items()}
