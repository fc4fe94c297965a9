# Overview: Flask API routes for price resolution; parses input and returns JSON responses.

# backend/salesdesk/routes/pricing.py
"""
Pricing API Routes

DESIGN:
- Resolve: special price > wholesale > retail for the requested unit
- Override: cashier-entered price floored to cost; with a customer the
  price comes back as a special price to save
"""

from flask import Blueprint, request, jsonify, current_app

from ..money import to_json_number
from ..services.pricing_service import apply_price_override, find_by_barcode
from ..validation import (
    get_field, parse_amount, parse_catalog, parse_customer, parse_product, parse_unit_type,
)
from .common import ENGINE_ERRORS, error_response, request_body, session_from


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


@pricing_bp.post("/resolve")
def resolve_route():
    """
    Resolve the effective unit price.

    Request body:
    {
        "product": {...},                 (or "products" + "code" to scan)
        "unit_type": "piece",
        "customer": {...},                (optional)
        "special_prices": [...],          (optional)
        "on": "2026-10-19"                (optional pricing date)
    }

    Returns:
        200: {"price": 9.5, "is_special": true, "unit_type": "piece", ...}
        400: Invalid input or unit not sold for this product
        404: Scanned code matches no product
    """
    try:
        data = request_body(request)
        session = session_from(data)

        code = get_field(data, "code")
        if code is not None:
            match = find_by_barcode(parse_catalog(get_field(data, "products")), str(code))
            if match is None:
                return jsonify({"error": f"No product matches '{code}'"}), 404
            product, unit_type = match
        else:
            product = parse_product(get_field(data, "product"))
            unit_type = parse_unit_type(get_field(data, "unit_type"))

        resolved = session.resolve(product, unit_type)
        return jsonify({
            "product_id": product.product_id,
            "variant_id": product.variant_id,
            "unit_type": unit_type,
            "price": to_json_number(resolved.price),
            "is_special": resolved.is_special,
            "currency": product.currency,
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resolve price")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.post("/override")
def override_route():
    """
    Apply a cashier-entered unit price.

    Request body:
    {
        "product": {...},
        "unit_type": "box",
        "price": 4.25,
        "customer": {...}     (optional)
    }

    Returns:
        200: {"price": 5.0, "floored": true, "special_price_update": {...} | null}
        400: Invalid input or negative price
    """
    try:
        data = request_body(request)
        product = parse_product(get_field(data, "product"))
        unit_type = parse_unit_type(get_field(data, "unit_type"))
        price = parse_amount(get_field(data, "price"), "price", non_negative=False)
        customer = parse_customer(get_field(data, "customer"))

        result = apply_price_override(product, unit_type, price, customer)
        update = result.special_price_update
        return jsonify({
            "price": to_json_number(result.price),
            "floored": result.floored,
            "special_price_update": update.to_payload() if update else None,
        }), 200

    except ENGINE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply price override")
        return jsonify({"error": "Internal server error"}), 500
