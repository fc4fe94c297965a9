# Overview: Flask API routes for returns and exchanges; parses input and returns JSON responses.

# backend/salesdesk/routes/returns.py
"""
Return / Exchange API Routes

DESIGN:
- The original order comes with the request; returnable quantities are
  enforced per order line
- Exchange lines are priced like a sale cart for the order's customer
- Net < 0 needs a refund method, net > 0 a payment method
- Refunds above REFUND_APPROVAL_THRESHOLD report pending_approval
"""

from flask import Blueprint, request, jsonify, current_app

from ..services.settlement_service import debt_adjustment, validate_methods
from ..money import to_json_number
from ..validation import get_field, parse_positive_int
from .common import (
    ENGINE_ERRORS, error_response, fill_cart, fill_return_basket, request_body, session_from,
)


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("/quote")
def quote_route():
    """
    Net a return against an exchange.

    Request body:
    {
        "order": {"id": 10, "items": [...]},
        "return_lines": [{"order_item_id": 7, "quantity": 1, "reason": "damaged"}],
        "exchange_lines": [{"product": {...}, "unit_type": "piece", "quantity": 1}],
        "customer": {...},          (optional)
        "refund_method": "cash",    (optional; checked when given)
        "payment_method": "credit", (optional; checked when given)
        "currencies": [...]         (optional)
    }

    Returns:
        200: {"settlement": {...}, "return_basket": {...}, "exchange_basket": {...}}
        400: Invalid input, over-return, or missing method
    """
    try:
        data = request_body(request)
        session = session_from(data)
        fill_return_basket(session, data)
        fill_cart(session, get_field(data, "exchange_lines"), exchange=True)

        settlement = session.quote_return_exchange()
        response = {
            "settlement": settlement.to_dict(),
            "return_basket": session.return_basket.to_dict(),
            "exchange_basket": session.exchange_cart.to_dict(),
            "data_quality": session.table.data_quality(),
        }

        refund_method = get_field(data, "refund_method")
        payment_method = get_field(data, "payment_method")
        if refund_method is not None or payment_method is not None:
            methods = validate_methods(settlement, refund_method, payment_method)
            response["methods"] = methods.to_dict()
            response["debt_adjustment"] = to_json_number(debt_adjustment(settlement, methods))

        return jsonify(response), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to quote return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/payload")
def payload_route():
    """
    Build the return/exchange submission body.

    Request body: as /quote, plus
    {
        "warehouse_id": 1,
        "notes": "..."     (optional)
    }

    Returns:
        200: {"payload": {...}, "settlement": {...}}
        400: Invalid input, both baskets empty, or missing method
    """
    try:
        data = request_body(request)
        session = session_from(data)
        fill_return_basket(session, data)
        fill_cart(session, get_field(data, "exchange_lines"), exchange=True)
        warehouse_id = parse_positive_int(get_field(data, "warehouse_id"), "warehouse_id")

        payload = session.build_return_exchange_payload(
            warehouse_id=warehouse_id,
            refund_method=get_field(data, "refund_method"),
            payment_method=get_field(data, "payment_method"),
            notes=get_field(data, "notes"),
        )
        return jsonify({
            "payload": payload,
            "settlement": session.quote_return_exchange().to_dict(),
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build return payload")
        return jsonify({"error": "Internal server error"}), 500
