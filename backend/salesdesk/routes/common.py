# backend/salesdesk/routes/common.py
"""
Request helpers shared by the engine routes.

Every engine endpoint is stateless: the request body carries the currency
table (optional, config default otherwise), the customer, the special prices
and the lines, and a fresh CheckoutSession is built to evaluate them.
"""

from flask import current_app, jsonify

from ..services.cart_service import CartError
from ..services.checkout_service import LOAD_INVOICE, CheckoutError, CheckoutSession
from ..services.currency_service import CurrencyError
from ..services.payload_service import PayloadError
from ..services.payment_service import PaymentError
from ..services.pricing_service import PricingError
from ..services.return_service import ReturnError
from ..services.settings_service import SettingsError, load_checkout_settings
from ..services.settlement_service import SettlementError
from ..time_utils import parse_iso_date
from ..validation import (
    ValidationError, get_field, parse_amount, parse_catalog, parse_customer,
    parse_original_order, parse_positive_int, parse_special_prices, parse_unit_type,
)

ENGINE_ERRORS = (
    ValidationError,
    SettingsError,
    CurrencyError,
    PricingError,
    CartError,
    PaymentError,
    SettlementError,
    ReturnError,
    PayloadError,
    CheckoutError,
)


def error_response(e: Exception):
    return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400


def request_body(request) -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


def settings_from(data: dict):
    return load_checkout_settings(
        get_field(data, "currencies"),
        get_field(data, "company"),
        current_app.config,
    )


def session_from(data: dict) -> CheckoutSession:
    """Session with settings, customer and special prices taken from the body."""
    raw_on = get_field(data, "on")
    if raw_on is not None and not isinstance(raw_on, str):
        raise ValidationError("on must be an ISO-8601 date")
    try:
        on = parse_iso_date(raw_on) if raw_on else None
    except ValueError:
        raise ValidationError("on must be an ISO-8601 date")

    session = CheckoutSession(settings_from(data), on=on)
    customer = parse_customer(get_field(data, "customer"))
    if customer is not None:
        prices = parse_special_prices(get_field(data, "special_prices"), customer.customer_id)
        session.select_customer(customer, prices)
    return session


def fill_cart(session: CheckoutSession, raw_lines, *, exchange: bool = False) -> None:
    """
    Add request lines to the session's sale cart (or exchange basket).

    Each line: {"product": {...}, "unit_type": "piece", "quantity": 2,
                "unit_price": 9.5 (optional override), "discount": 1}
    """
    if raw_lines is None:
        return
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    cart = session.exchange_cart if exchange else session.cart
    add = session.add_to_exchange_basket if exchange else session.add_product

    for raw in raw_lines:
        if not isinstance(raw, dict):
            raise ValidationError("line must be an object")
        products = parse_catalog([get_field(raw, "product")])
        if not products:
            raise ValidationError("line product is required")
        product = products[0]
        unit_type = parse_unit_type(get_field(raw, "unit_type"))
        quantity = parse_positive_int(get_field(raw, "quantity", 1), "quantity")

        line = add(product, unit_type, quantity)
        if line is None:
            continue
        if get_field(raw, "unit_price") is not None:
            session.override_price(line.key, parse_amount(get_field(raw, "unit_price"), "unit_price"), cart=cart)
        if get_field(raw, "discount") is not None:
            cart.update_discount(line.key, parse_amount(get_field(raw, "discount"), "discount"))


def fill_return_basket(session: CheckoutSession, data: dict) -> None:
    """
    Load the original order and the requested return lines.

    return_lines: [{"order_item_id": 7, "quantity": 1, "reason": "damaged", ...}]
    """
    order = parse_original_order(get_field(data, "order"))
    token = session.begin_load(LOAD_INVOICE)
    session.load_invoice(token, order)

    raw_lines = get_field(data, "return_lines") or []
    if not isinstance(raw_lines, list):
        raise ValidationError("return_lines must be a list")
    for raw in raw_lines:
        if not isinstance(raw, dict):
            raise ValidationError("return line must be an object")
        item_id = parse_positive_int(get_field(raw, "order_item_id"), "order_item_id")
        quantity = parse_positive_int(get_field(raw, "quantity", 1), "quantity")
        session.add_to_return_basket(item_id, quantity)
        if any(get_field(raw, k) is not None for k in ("reason", "condition", "inventory_action")):
            session.return_basket.update_return_item_props(
                item_id,
                reason=get_field(raw, "reason"),
                condition=get_field(raw, "condition"),
                inventory_action=get_field(raw, "inventory_action"),
            )
