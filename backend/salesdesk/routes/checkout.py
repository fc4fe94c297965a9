# Overview: Flask API routes for sale checkout; parses input and returns JSON responses.

# backend/salesdesk/routes/checkout.py
"""
Checkout API Routes

WHY: Let a POS client (or a test harness) run the pricing and settlement
engine over a cart without holding server-side state.

DESIGN:
- Every request carries its own cart lines, customer and currency table
- Quote returns per-currency totals, the base-currency grand total and the
  sale settlement for a payment type
- Payload returns the exact body to submit to the backend, including the
  exchange-rate snapshot
- A cart can be saved as a quote (valid 30 days) and a saved quote loaded
  back into a cart
"""

from flask import Blueprint, request, jsonify, current_app

from ..money import to_json_number
from ..services import payment_service
from ..services.checkout_service import LOAD_CATALOG, LOAD_QUOTE, CheckoutSession
from ..services.payment_service import PAYMENT_CASH
from ..validation import (
    ValidationError, get_field, parse_amount, parse_catalog, parse_customer, parse_positive_int,
    parse_quote, parse_special_prices, parse_tenders,
)
from .common import ENGINE_ERRORS, error_response, fill_cart, request_body, session_from, settings_from


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


# =============================================================================
# QUOTES
# =============================================================================

@checkout_bp.post("/quote")
def quote_route():
    """
    Price a cart and settle it.

    Request body:
    {
        "currencies": [...],          (optional)
        "customer": {...},            (optional)
        "special_prices": [...],      (optional)
        "lines": [{"product": {...}, "unit_type": "piece", "quantity": 2}],
        "payment_type": "cash",       (cash | credit | split, default: cash)
        "tendered": {"USD": 30, "LBP": 300000}   (optional)
    }

    Returns:
        200: {"cart": {...}, "settlement": {...}, "data_quality": {...}}
        400: Invalid input
    """
    try:
        data = request_body(request)
        session = session_from(data)
        fill_cart(session, get_field(data, "lines"))

        payment_type = get_field(data, "payment_type") or PAYMENT_CASH
        settlement = session.quote_sale(payment_type, parse_tenders(get_field(data, "tendered")))

        return jsonify({
            "cart": session.cart.to_dict(),
            "settlement": settlement.to_dict(),
            "pending_special_prices": [p.to_payload() for p in session.pending_special_prices],
            "data_quality": session.table.data_quality(),
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote checkout")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/allocate")
def allocate_route():
    """
    Convert tenders to base currency against a required amount.

    Request body:
    {
        "required_base": 50,
        "tendered": {"USD": 30, "LBP": 300000},
        "currencies": [...]     (optional)
    }

    Returns:
        200: {"paid_base": 50.0, "change_base": 0.0, "shortfall_base": 0.0, ...}
    """
    try:
        data = request_body(request)
        table = settings_from(data).table
        required = parse_amount(get_field(data, "required_base"), "required_base")

        allocation = payment_service.allocate(required, parse_tenders(get_field(data, "tendered")), table)
        result = allocation.to_dict()
        result["data_quality"] = table.data_quality()
        return jsonify(result), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to allocate payment")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/suggest-tender")
def suggest_tender_route():
    """
    Suggest default tender amounts for the selected currencies.

    Request body:
    {
        "selected": ["USD", "LBP"],     (in selection order)
        "required_base": 50,            (or "lines" to price a cart)
        "lines": [...],
        "currencies": [...]
    }

    Returns:
        200: {"suggestions": {"USD": 30.0, "LBP": 300000.0}}
    """
    try:
        data = request_body(request)
        selected = get_field(data, "selected") or []
        if not isinstance(selected, list):
            raise ValidationError("selected must be a list")

        session = session_from(data)
        cart_totals = None
        if get_field(data, "lines") is not None:
            fill_cart(session, get_field(data, "lines"))
            totals = session.cart.totals()
            required = totals.effective_total
            cart_totals = {code: t.total for code, t in totals.by_currency.items()}
        else:
            required = parse_amount(get_field(data, "required_base"), "required_base")

        suggestions = payment_service.suggest_tender(required, selected, session.table, cart_totals)
        return jsonify({
            "required_base": to_json_number(required),
            "suggestions": {code: to_json_number(amount) for code, amount in suggestions.items()},
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to suggest tender")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SUBMISSION PAYLOAD
# =============================================================================

@checkout_bp.post("/payload")
def payload_route():
    """
    Build the sale submission body.

    Request body: as /quote, plus
    {
        "warehouse_id": 1,
        "notes": "..."     (optional)
    }

    Returns:
        200: {"payload": {...}, "settlement": {...}}
        400: Invalid input or empty cart
    """
    try:
        data = request_body(request)
        session = session_from(data)
        fill_cart(session, get_field(data, "lines"))

        payment_type = get_field(data, "payment_type") or PAYMENT_CASH
        tendered = parse_tenders(get_field(data, "tendered"))
        warehouse_id = parse_positive_int(get_field(data, "warehouse_id"), "warehouse_id")

        payload = session.build_sale_payload(
            payment_type,
            warehouse_id=warehouse_id,
            tendered=tendered,
            notes=get_field(data, "notes"),
        )
        return jsonify({
            "payload": payload,
            "settlement": session.quote_sale(payment_type, tendered).to_dict(),
            "special_prices_to_save": [p.to_payload() for p in session.pending_special_prices],
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sale payload")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SAVED QUOTES
# =============================================================================

@checkout_bp.post("/quote-payload")
def quote_payload_route():
    """
    Build the body that saves the cart as a quote.

    Request body: as /quote (a customer is required), plus
    {
        "notes": "..."     (optional, default: "Quote from Direct Sales")
    }

    Returns:
        200: {"payload": {...}}
        400: Invalid input, empty cart or no customer
    """
    try:
        data = request_body(request)
        session = session_from(data)
        fill_cart(session, get_field(data, "lines"))

        return jsonify({
            "payload": session.build_quote_payload(get_field(data, "notes")),
            "special_prices_to_save": [p.to_payload() for p in session.pending_special_prices],
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build quote payload")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/from-quote")
def from_quote_route():
    """
    Turn a saved quote into a priced sale cart.

    Request body:
    {
        "quote": {"id": 4, "quoteNumber": "QT-...", "items": [...]},
        "products": [...],       (optional catalog; unknown items sell at the quoted price)
        "customer": {...},       (optional)
        "special_prices": [...]  (optional)
    }

    Returns:
        200: {"cart": {...}, "notes": "Quote: QT-..."}
        400: Invalid input or quote already converted
    """
    try:
        data = request_body(request)
        session = CheckoutSession(settings_from(data))
        session.load_catalog(session.begin_load(LOAD_CATALOG), parse_catalog(get_field(data, "products")))

        quote = parse_quote(get_field(data, "quote"))
        customer = parse_customer(get_field(data, "customer"))
        prices = None
        if customer is not None:
            prices = parse_special_prices(get_field(data, "special_prices"), customer.customer_id)
        session.load_quote(session.begin_load(LOAD_QUOTE), quote, customer, prices)

        return jsonify({
            "cart": session.cart.to_dict(),
            "notes": quote.order_notes,
            "quote": quote.to_dict(),
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load quote")
        return jsonify({"error": "Internal server error"}), 500
