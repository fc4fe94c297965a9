"""
Boundary validation for backend responses and API request bodies.

The backend speaks camelCase JSON with loosely typed numbers; everything
past this module works on typed records. Both camelCase and snake_case keys
are accepted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Iterable

from .models import (
    Currency, Customer, CustomerSpecialPrice, CompanySettings, OriginalOrder,
    Product, Quote, QuoteItem, ReturnableItem, UNIT_BOX, UNIT_PIECE,
)
from .money import ZERO, to_decimal
from .time_utils import parse_iso_date


class ValidationError(ValueError):
    """400-level input problem."""


_MISSING = object()


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def get_field(payload: dict, key: str, default: Any = None) -> Any:
    """Read snake_case key or its camelCase twin."""
    if key in payload:
        return payload[key]
    camel = _camel(key)
    if camel in payload:
        return payload[camel]
    return default


def _require_dict(payload: Any, what: str) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError(f"{what} must be an object")
    return payload


def _require_list(payload: Any, what: str) -> list:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ValidationError(f"{what} must be a list")
    return payload


def _int(payload: dict, key: str, default: Any = _MISSING) -> int | None:
    value = get_field(payload, key, _MISSING)
    if value is _MISSING or value is None:
        if default is _MISSING:
            raise ValidationError(f"{key} is required")
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{key} must be an integer")


def _decimal(payload: dict, key: str, default: Decimal | None = _MISSING, *, non_negative: bool = False) -> Decimal | None:
    value = get_field(payload, key, None)
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is _MISSING:
            raise ValidationError(f"{key} is required")
        return default
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")
    if non_negative and amount < ZERO:
        raise ValidationError(f"{key} must be >= 0")
    return amount


def _str(payload: dict, key: str, default: str | None = None) -> str | None:
    value = get_field(payload, key, None)
    if value is None:
        return default
    return str(value).strip()


def _bool(payload: dict, key: str, default: bool = False) -> bool:
    value = get_field(payload, key, None)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def _date(payload: dict, key: str):
    value = get_field(payload, key, None)
    if value is None:
        return None
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 date")


def parse_unit_type(value: Any) -> str:
    unit = (str(value).strip().lower() if value is not None else UNIT_PIECE) or UNIT_PIECE
    if unit not in (UNIT_PIECE, UNIT_BOX):
        raise ValidationError(f"unit_type must be '{UNIT_PIECE}' or '{UNIT_BOX}'")
    return unit


# =============================================================================
# CURRENCIES / SETTINGS
# =============================================================================

def parse_currency(payload: Any) -> Currency:
    payload = _require_dict(payload, "currency")
    code = (_str(payload, "code") or "").upper()
    if not code:
        raise ValidationError("currency code is required")
    rate = _decimal(payload, "exchange_rate", Decimal("1"))
    if rate <= ZERO:
        raise ValidationError(f"exchange_rate for {code} must be positive")
    return Currency(
        code=code,
        exchange_rate=rate,
        is_base=_bool(payload, "is_base"),
        is_active=_bool(payload, "is_active", True),
        name=_str(payload, "name", "") or "",
        symbol=_str(payload, "symbol", "") or "",
    )


def parse_currencies(payload: Any) -> list[Currency]:
    return [parse_currency(item) for item in _require_list(payload, "currencies")]


def parse_company_settings(payload: Any) -> CompanySettings:
    if payload is None:
        return CompanySettings()
    payload = _require_dict(payload, "company settings")
    return CompanySettings(
        name=_str(payload, "name", "") or "",
        phone=_str(payload, "phone", "") or "",
        address=_str(payload, "address", "") or "",
        secondary_rate=_decimal(payload, "exchange_rate", Decimal("1")),
        show_secondary_price=_bool(payload, "show_secondary_price"),
        currency_symbol=_str(payload, "currency_symbol", "$") or "$",
    )


# =============================================================================
# CATALOG
# =============================================================================

def parse_product(payload: Any, parent: Product | None = None) -> Product:
    """
    Parse a catalog product. With a parent, missing prices fall back to the
    parent's (variant rows override only what they define).
    """
    payload = _require_dict(payload, "product")

    def price(key: str) -> Decimal:
        fallback = getattr(parent, key) if parent else ZERO
        return _decimal(payload, key, fallback, non_negative=True)

    if parent is None:
        product_id = _int(payload, "product_id", None)
        if product_id is None:
            product_id = _int(payload, "id")
        variant_id = _int(payload, "variant_id", None)
    else:
        product_id = parent.product_id
        variant_id = _int(payload, "id", None) or _int(payload, "variant_id", None)

    second_unit = _str(payload, "second_unit", parent.second_unit if parent else None)
    units_per_second = _int(payload, "units_per_second", parent.units_per_second if parent else 1)

    return Product(
        product_id=product_id,
        name=parent.name if parent else (_str(payload, "product_name", None) or _str(payload, "name", "") or ""),
        sku=_str(payload, "sku", parent.sku if parent else "") or "",
        barcode=_str(payload, "barcode", parent.barcode if parent else None),
        box_barcode=_str(payload, "box_barcode", parent.box_barcode if parent else None),
        variant_id=variant_id,
        variant_name=_str(payload, "variant_name", None) or (_str(payload, "name") if parent else None),
        base_unit=_str(payload, "base_unit", parent.base_unit if parent else "piece") or "piece",
        second_unit=second_unit or None,
        units_per_second=units_per_second if units_per_second and units_per_second > 0 else 1,
        retail_price=price("retail_price"),
        wholesale_price=price("wholesale_price"),
        box_retail_price=price("box_retail_price"),
        box_wholesale_price=price("box_wholesale_price"),
        cost_price=price("cost_price"),
        box_cost_price=price("box_cost_price"),
        currency=(_str(payload, "currency", parent.currency if parent else None) or "").upper() or None,
        quantity_on_hand=_int(payload, "quantity", parent.quantity_on_hand if parent else 0) or 0,
    )


def parse_catalog(payload: Any) -> list[Product]:
    """Parse an inventory listing; products with variants expand to one row per variant."""
    products: list[Product] = []
    for item in _require_list(payload, "products"):
        product = parse_product(item)
        variants = _require_list(get_field(item, "variants"), "variants")
        if not variants:
            products.append(product)
            continue
        for variant in variants:
            products.append(parse_product(variant, parent=product))
    return products


def parse_customer(payload: Any) -> Customer | None:
    if payload is None:
        return None
    payload = _require_dict(payload, "customer")
    customer_id = _int(payload, "customer_id", None)
    if customer_id is None:
        customer_id = _int(payload, "id")
    return Customer(
        customer_id=customer_id,
        name=_str(payload, "name", "") or "",
        customer_type=_str(payload, "customer_type", "Retail") or "Retail",
        debt_balance=_decimal(payload, "debt_balance", ZERO),
        credit_limit=_decimal(payload, "credit_limit", ZERO),
    )


def parse_special_prices(payload: Any, customer_id: int | None = None) -> list[CustomerSpecialPrice]:
    """
    Accepts either one row per (product, unit type):
        {"productId": 1, "unitType": "box", "specialPrice": 9.5}
    or the per-product pricing list:
        {"productId": 1, "specialPrice": 1.2, "hasSpecialPrice": true,
         "boxSpecialPrice": 11, "hasBoxSpecialPrice": true}
    """
    prices: list[CustomerSpecialPrice] = []
    for item in _require_list(payload, "special_prices"):
        item = _require_dict(item, "special price")
        product_id = _int(item, "product_id")
        owner = _int(item, "customer_id", customer_id)
        is_active = _bool(item, "is_active", True)
        start, end = _date(item, "start_date"), _date(item, "end_date")

        if get_field(item, "has_special_price") is not None or get_field(item, "has_box_special_price") is not None:
            pairs = (
                (UNIT_PIECE, "has_special_price", "special_price"),
                (UNIT_BOX, "has_box_special_price", "box_special_price"),
            )
            for unit, flag, key in pairs:
                amount = _decimal(item, key, None, non_negative=True)
                if _bool(item, flag) and amount is not None:
                    prices.append(CustomerSpecialPrice(
                        customer_id=owner, product_id=product_id, unit_type=unit,
                        special_price=amount, is_active=is_active,
                        start_date=start, end_date=end,
                    ))
            continue

        amount = _decimal(item, "special_price", None, non_negative=True)
        if amount is None:
            continue
        prices.append(CustomerSpecialPrice(
            customer_id=owner,
            product_id=product_id,
            unit_type=parse_unit_type(get_field(item, "unit_type")),
            special_price=amount,
            is_active=is_active,
            start_date=start,
            end_date=end,
        ))
    return prices


# =============================================================================
# ORDERS / TENDERS
# =============================================================================

def parse_returnable_item(payload: Any) -> ReturnableItem:
    payload = _require_dict(payload, "order item")
    quantity = _int(payload, "quantity")
    already = _int(payload, "already_returned_qty", 0) or 0
    returnable = _int(payload, "returnable_qty", None)
    if returnable is None:
        returnable = quantity - already
    item_id = _int(payload, "order_item_id", None)
    if item_id is None:
        item_id = _int(payload, "id")
    return ReturnableItem(
        order_item_id=item_id,
        product_id=_int(payload, "product_id"),
        product_name=_str(payload, "product_name", "") or "",
        product_sku=_str(payload, "product_sku", "") or "",
        unit_type=parse_unit_type(get_field(payload, "unit_type")),
        quantity=quantity,
        unit_price=_decimal(payload, "unit_price", non_negative=True),
        discount_amount=_decimal(payload, "discount_amount", ZERO, non_negative=True),
        already_returned_qty=already,
        returnable_qty=max(0, min(returnable, quantity - already)),
        currency=(_str(payload, "currency") or "").upper() or None,
    )


def parse_original_order(payload: Any) -> OriginalOrder:
    payload = _require_dict(payload, "order")
    order_id = _int(payload, "order_id", None)
    if order_id is None:
        order_id = _int(payload, "id")
    return OriginalOrder(
        order_id=order_id,
        order_number=_str(payload, "order_number", "") or "",
        customer_id=_int(payload, "customer_id", None),
        total_amount=_decimal(payload, "total_amount", ZERO),
        paid_amount=_decimal(payload, "paid_amount", ZERO),
        items=tuple(parse_returnable_item(i) for i in _require_list(get_field(payload, "items"), "items")),
    )


def parse_quote_item(payload: Any) -> QuoteItem:
    payload = _require_dict(payload, "quote item")
    quantity = _int(payload, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be > 0")
    return QuoteItem(
        product_id=_int(payload, "product_id"),
        product_name=_str(payload, "product_name", "") or "",
        product_sku=_str(payload, "product_sku", "") or "",
        quantity=quantity,
        unit_price=_decimal(payload, "unit_price", non_negative=True),
        discount_amount=_decimal(payload, "discount_amount", ZERO, non_negative=True),
    )


def parse_quote(payload: Any) -> Quote:
    payload = _require_dict(payload, "quote")
    quote_id = _int(payload, "quote_id", None)
    if quote_id is None:
        quote_id = _int(payload, "id")
    return Quote(
        quote_id=quote_id,
        quote_number=_str(payload, "quote_number", "") or "",
        customer_id=_int(payload, "customer_id", None),
        status=_str(payload, "status", "draft") or "draft",
        notes=_str(payload, "notes") or None,
        items=tuple(parse_quote_item(i) for i in _require_list(get_field(payload, "items"), "items")),
    )


def parse_tenders(payload: Any) -> dict[str, Decimal]:
    """
    Tenders as {"USD": 30, "LBP": 300000} or
    [{"currency": "USD", "amount": 30}, ...].
    """
    if payload is None:
        return {}
    entries: Iterable[tuple[Any, Any]]
    if isinstance(payload, dict):
        entries = payload.items()
    elif isinstance(payload, list):
        entries = []
        for item in payload:
            item = _require_dict(item, "tender")
            entries.append((get_field(item, "currency"), get_field(item, "amount")))
    else:
        raise ValidationError("tendered must be an object or a list")

    tenders: dict[str, Decimal] = {}
    for code, amount in entries:
        code = str(code or "").strip().upper()
        if not code:
            raise ValidationError("tender currency is required")
        try:
            value = to_decimal(amount, ZERO)
        except ValueError:
            raise ValidationError(f"tender amount for {code} must be a number")
        if value < ZERO:
            raise ValidationError(f"tender amount for {code} must be >= 0")
        tenders[code] = tenders.get(code, ZERO) + value
    return tenders


def parse_positive_int(value: Any, what: str) -> int:
    parsed = _int({what: value}, what)
    if parsed <= 0:
        raise ValidationError(f"{what} must be > 0")
    return parsed


def parse_amount(value: Any, what: str, *, non_negative: bool = True) -> Decimal:
    return _decimal({what: value}, what, non_negative=non_negative)
