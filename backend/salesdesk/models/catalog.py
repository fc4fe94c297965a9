from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from ..money import ZERO, to_json_number

UNIT_PIECE = "piece"
UNIT_BOX = "box"

VALID_UNIT_TYPES = (UNIT_PIECE, UNIT_BOX)

CUSTOMER_TYPE_WHOLESALE = "wholesale"


@dataclass(frozen=True)
class Product:
    """
    Price-relevant projection of a catalog product (or one of its variants).

    The "box" unit is the product's second unit; products without a
    second_unit can only be sold by the piece.
    """
    product_id: int
    name: str = ""
    sku: str = ""
    barcode: str | None = None
    box_barcode: str | None = None
    variant_id: int | None = None
    variant_name: str | None = None
    base_unit: str = "piece"
    second_unit: str | None = None
    units_per_second: int = 1
    retail_price: Decimal = ZERO
    wholesale_price: Decimal = ZERO
    box_retail_price: Decimal = ZERO
    box_wholesale_price: Decimal = ZERO
    cost_price: Decimal = ZERO
    box_cost_price: Decimal = ZERO
    currency: str | None = None
    quantity_on_hand: int = 0

    @property
    def has_second_unit(self) -> bool:
        return bool(self.second_unit and self.second_unit.strip())

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "variant_id": self.variant_id,
            "variant_name": self.variant_name,
            "base_unit": self.base_unit,
            "second_unit": self.second_unit,
            "units_per_second": self.units_per_second,
            "retail_price": to_json_number(self.retail_price),
            "wholesale_price": to_json_number(self.wholesale_price),
            "box_retail_price": to_json_number(self.box_retail_price),
            "box_wholesale_price": to_json_number(self.box_wholesale_price),
            "cost_price": to_json_number(self.cost_price),
            "box_cost_price": to_json_number(self.box_cost_price),
            "currency": self.currency,
        }


@dataclass(frozen=True)
class Customer:
    customer_id: int
    name: str = ""
    customer_type: str = "Retail"
    debt_balance: Decimal = ZERO
    credit_limit: Decimal = ZERO

    @property
    def is_wholesale(self) -> bool:
        return (self.customer_type or "").strip().lower() == CUSTOMER_TYPE_WHOLESALE

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "name": self.name,
            "customer_type": self.customer_type,
            "debt_balance": to_json_number(self.debt_balance),
            "credit_limit": to_json_number(self.credit_limit),
        }


@dataclass(frozen=True)
class CustomerSpecialPrice:
    """
    Customer-specific override price for one (product, unit type).

    Unique per (customer_id, product_id, unit_type). A price only applies
    while active and inside its optional [start_date, end_date] window.
    """
    customer_id: int | None
    product_id: int
    unit_type: str
    special_price: Decimal
    is_active: bool = True
    start_date: date | None = None
    end_date: date | None = None

    def applies_on(self, on: date | None) -> bool:
        if not self.is_active:
            return False
        if on is None:
            return True
        if self.start_date and on < self.start_date:
            return False
        if self.end_date and on > self.end_date:
            return False
        return True

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "unit_type": self.unit_type,
            "special_price": to_json_number(self.special_price),
            "is_active": self.is_active,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class SpecialPriceUpdate:
    """A special price the caller should save for the selected customer."""
    customer_id: int
    product_id: int
    unit_type: str
    special_price: Decimal

    def to_payload(self) -> dict:
        return {
            "customerId": self.customer_id,
            "productId": self.product_id,
            "unitType": self.unit_type,
            "specialPrice": to_json_number(self.special_price),
        }


@dataclass(frozen=True)
class CompanySettings:
    """Company display settings used by the checkout screen."""
    name: str = ""
    phone: str = ""
    address: str = ""
    secondary_rate: Decimal = Decimal("1")
    show_secondary_price: bool = False
    currency_symbol: str = "$"
    extra: dict = field(default_factory=dict)
