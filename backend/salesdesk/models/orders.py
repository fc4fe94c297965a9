from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..money import ZERO, round_for_storage, to_json_number


@dataclass(frozen=True)
class ReturnableItem:
    """One line of an original order as loaded for a return."""
    order_item_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal = ZERO
    already_returned_qty: int = 0
    returnable_qty: int = 0
    unit_type: str = "piece"
    product_name: str = ""
    product_sku: str = ""
    currency: str | None = None

    @property
    def effective_unit_price(self) -> Decimal:
        """Unit price net of this line's per-unit share of the original discount."""
        if self.quantity <= 0:
            return self.unit_price
        return round_for_storage(self.unit_price - self.discount_amount / Decimal(self.quantity))

    def to_dict(self) -> dict:
        return {
            "order_item_id": self.order_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_type": self.unit_type,
            "quantity": self.quantity,
            "unit_price": to_json_number(self.unit_price),
            "discount_amount": to_json_number(self.discount_amount),
            "already_returned_qty": self.already_returned_qty,
            "returnable_qty": self.returnable_qty,
            "effective_unit_price": to_json_number(self.effective_unit_price),
        }


@dataclass(frozen=True)
class OriginalOrder:
    order_id: int
    order_number: str = ""
    customer_id: int | None = None
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    items: tuple[ReturnableItem, ...] = field(default_factory=tuple)

    def find_item(self, order_item_id: int) -> ReturnableItem | None:
        for item in self.items:
            if item.order_item_id == order_item_id:
                return item
        return None

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "total_amount": to_json_number(self.total_amount),
            "paid_amount": to_json_number(self.paid_amount),
            "items": [item.to_dict() for item in self.items],
        }
