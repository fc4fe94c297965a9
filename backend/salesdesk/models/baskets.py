from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..money import ZERO, line_total, to_json_number
from .catalog import Product

RETURN_REASONS = ("damaged", "wrong_item", "expired", "customer_changed_mind", "defective", "other")
ITEM_CONDITIONS = ("resellable", "damaged", "opened")
INVENTORY_ACTIONS = ("back_to_stock", "scrap", "return_to_vendor")

DEFAULT_RETURN_REASON = "customer_changed_mind"
DEFAULT_CONDITION = "resellable"
DEFAULT_INVENTORY_ACTION = "back_to_stock"


@dataclass
class CartLine:
    """
    Line item in a sale cart or an exchange basket.

    Keyed by (product_id, unit_type, variant_id). discount is an absolute
    amount, not a percentage.
    """
    product: Product
    unit_type: str
    unit_price: Decimal
    quantity: int = 1
    discount: Decimal = ZERO
    variant_id: int | None = None
    is_special: bool = False

    @property
    def key(self) -> tuple[int, str, int | None]:
        return (self.product.product_id, self.unit_type, self.variant_id)

    @property
    def currency(self) -> str | None:
        return self.product.currency

    @property
    def gross(self) -> Decimal:
        return Decimal(self.quantity) * self.unit_price

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price, self.discount)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product.product_id,
            "product_name": self.product.name,
            "variant_id": self.variant_id,
            "unit_type": self.unit_type,
            "quantity": self.quantity,
            "unit_price": to_json_number(self.unit_price),
            "discount": to_json_number(self.discount),
            "currency": self.currency,
            "is_special": self.is_special,
            "line_total": to_json_number(self.line_total),
        }


@dataclass
class ReturnLine:
    """Quantity of an original order line being brought back."""
    original_order_item_id: int
    product_id: int
    unit_type: str
    quantity: int
    unit_price: Decimal
    max_returnable_qty: int
    reason: str = DEFAULT_RETURN_REASON
    condition: str = DEFAULT_CONDITION
    inventory_action: str = DEFAULT_INVENTORY_ACTION
    product_name: str = ""
    product_sku: str = ""
    currency: str | None = None

    @property
    def line_total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)

    def to_dict(self) -> dict:
        return {
            "original_order_item_id": self.original_order_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_type": self.unit_type,
            "quantity": self.quantity,
            "unit_price": to_json_number(self.unit_price),
            "line_total": to_json_number(self.line_total),
            "max_returnable_qty": self.max_returnable_qty,
            "reason": self.reason,
            "condition": self.condition,
            "inventory_action": self.inventory_action,
        }
