"""
Price Resolver

Effective unit price for a product, a unit type and an optional customer.

PRECEDENCE:
1. Customer special price for (product, unit type), if active on the date
2. Wholesale price when customer_type is "Wholesale" (case-insensitive)
3. Retail price

The box/piece pair is selected by unit type. Asking for a box price on a
product without a second unit is rejected rather than defaulted to the
piece price.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from ..models import (
    Customer, CustomerSpecialPrice, Product, SpecialPriceUpdate,
    UNIT_BOX, UNIT_PIECE, VALID_UNIT_TYPES,
)
from ..money import ZERO, round_for_storage

logger = logging.getLogger(__name__)


class PricingError(Exception):
    """Raised for pricing operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidUnit(PricingError):
    """Price requested for a unit type the product does not support."""


@dataclass(frozen=True)
class ResolvedPrice:
    price: Decimal
    is_special: bool = False


@dataclass(frozen=True)
class PriceOverride:
    """Outcome of a cashier typing a unit price."""
    price: Decimal
    floored: bool
    special_price_update: SpecialPriceUpdate | None = None


def validate_unit(product: Product, unit_type: str) -> str:
    if unit_type not in VALID_UNIT_TYPES:
        raise InvalidUnit(
            f"Unknown unit type: {unit_type}",
            details={"unit_type": unit_type, "valid": list(VALID_UNIT_TYPES)},
        )
    if unit_type == UNIT_BOX and not product.has_second_unit:
        raise InvalidUnit(
            f"Product {product.product_id} has no second unit",
            details={"product_id": product.product_id, "unit_type": unit_type},
        )
    return unit_type


def find_special_price(
    special_prices: Iterable[CustomerSpecialPrice] | None,
    customer: Customer | None,
    product: Product,
    unit_type: str,
    on: date | None = None,
) -> CustomerSpecialPrice | None:
    if customer is None or not special_prices:
        return None
    for sp in special_prices:
        if sp.product_id != product.product_id or sp.unit_type != unit_type:
            continue
        if sp.customer_id is not None and sp.customer_id != customer.customer_id:
            continue
        if sp.special_price is None or not sp.applies_on(on):
            continue
        return sp
    return None


def list_price(product: Product, unit_type: str, customer: Customer | None = None) -> Decimal:
    """Catalog price for the unit, wholesale or retail by customer type."""
    wholesale = customer is not None and customer.is_wholesale
    if unit_type == UNIT_BOX:
        return product.box_wholesale_price if wholesale else product.box_retail_price
    return product.wholesale_price if wholesale else product.retail_price


def resolve_price(
    product: Product,
    unit_type: str = UNIT_PIECE,
    customer: Customer | None = None,
    special_prices: Iterable[CustomerSpecialPrice] | None = None,
    on: date | None = None,
) -> ResolvedPrice:
    """
    Resolve the effective unit price.

    Raises:
        InvalidUnit: unit type unknown, or box requested without a second unit
    """
    validate_unit(product, unit_type)

    special = find_special_price(special_prices, customer, product, unit_type, on)
    if special is not None:
        return ResolvedPrice(price=special.special_price, is_special=True)

    return ResolvedPrice(price=list_price(product, unit_type, customer), is_special=False)


def cost_floor(product: Product, unit_type: str) -> Decimal:
    return product.box_cost_price if unit_type == UNIT_BOX else product.cost_price


def apply_price_override(
    product: Product,
    unit_type: str,
    requested: Decimal,
    customer: Customer | None = None,
) -> PriceOverride:
    """
    Apply a manually entered unit price.

    Prices below the unit's cost are raised to the cost. Zero is not a
    special case: it is floored like any other value. With a customer
    selected, the resulting price is returned as a special price to save.
    """
    validate_unit(product, unit_type)
    if requested is None or requested < ZERO:
        raise PricingError("Price must be >= 0", details={"price": str(requested)})

    floor = cost_floor(product, unit_type) or ZERO
    price = round_for_storage(requested)
    floored = price < floor
    if floored:
        logger.info(
            "Price %s for product %s (%s) below cost; raised to %s",
            price, product.product_id, unit_type, floor,
        )
        price = round_for_storage(floor)

    update = None
    if customer is not None:
        update = SpecialPriceUpdate(
            customer_id=customer.customer_id,
            product_id=product.product_id,
            unit_type=unit_type,
            special_price=price,
        )

    return PriceOverride(price=price, floored=floored, special_price_update=update)


def find_by_barcode(products: Iterable[Product], code: str) -> tuple[Product, str] | None:
    """
    Match a scanned code to a product and unit.

    box_barcode -> box, barcode -> piece, otherwise SKU -> piece.
    Comparison is case-insensitive on trimmed values.
    """
    needle = (code or "").strip().lower()
    if not needle:
        return None

    products = list(products)
    for product in products:
        if (product.box_barcode or "").strip().lower() == needle and product.has_second_unit:
            return product, UNIT_BOX
        if (product.barcode or "").strip().lower() == needle:
            return product, UNIT_PIECE

    for product in products:
        if (product.sku or "").strip().lower() == needle:
            return product, UNIT_PIECE
    return None
