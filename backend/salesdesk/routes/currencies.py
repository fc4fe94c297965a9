# Overview: Flask API routes for the currency table; parses input and returns JSON responses.

# backend/salesdesk/routes/currencies.py
"""
Currency API Routes

DESIGN:
- GET returns the configured default table (CURRENCIES_JSON / BASE_CURRENCY)
- Conversion is strict: an unknown or inactive currency is a 400, unlike
  cart totals which convert unknown codes at rate 1
"""

from flask import Blueprint, request, jsonify, current_app

from ..money import to_json_number
from ..validation import get_field, parse_amount
from .common import ENGINE_ERRORS, error_response, request_body, settings_from


currencies_bp = Blueprint("currencies", __name__, url_prefix="/api/currencies")

DIRECTION_TO_BASE = "to_base"
DIRECTION_FROM_BASE = "from_base"


@currencies_bp.get("")
def list_currencies_route():
    """
    List the configured currencies, base first.

    Returns:
        200: {"base_currency": "USD", "currencies": [...]}
    """
    try:
        settings = settings_from({})
        table = settings.table
        ordered = [table.get(code) for code in table.active_codes()]
        return jsonify({
            "base_currency": table.base_code,
            "currencies": [c.to_dict() for c in ordered],
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list currencies")
        return jsonify({"error": "Internal server error"}), 500


@currencies_bp.post("/convert")
def convert_route():
    """
    Convert an amount between a currency and the base currency.

    Request body:
    {
        "amount": 300000,
        "currency": "LBP",
        "direction": "to_base",   (or "from_base", default: to_base)
        "currencies": [...]       (optional, default: configured table)
    }

    Returns:
        200: {"amount": 20.0, "currency": "USD", ...}
        400: Invalid input or unknown currency
    """
    try:
        data = request_body(request)
        amount = parse_amount(get_field(data, "amount"), "amount", non_negative=False)
        code = str(get_field(data, "currency") or "").upper()
        direction = get_field(data, "direction") or DIRECTION_TO_BASE
        if direction not in (DIRECTION_TO_BASE, DIRECTION_FROM_BASE):
            return jsonify({"error": "direction must be 'to_base' or 'from_base'"}), 400

        table = settings_from(data).table
        if direction == DIRECTION_TO_BASE:
            result = table.to_base(amount, code, strict=True)
            target = table.base_code
        else:
            result = table.from_base(amount, code, strict=True)
            target = code

        return jsonify({
            "amount": to_json_number(result),
            "currency": target,
            "source_amount": to_json_number(amount),
            "source_currency": code if direction == DIRECTION_TO_BASE else table.base_code,
            "rate": to_json_number(table.rate(code)),
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to convert amount")
        return jsonify({"error": "Internal server error"}), 500
