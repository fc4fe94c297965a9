from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..money import ZERO, to_json_number

QUOTE_STATUS_CONVERTED = "converted"


@dataclass(frozen=True)
class QuoteItem:
    product_id: int
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal = ZERO
    product_name: str = ""
    product_sku: str = ""

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": to_json_number(self.unit_price),
            "discount_amount": to_json_number(self.discount_amount),
        }


@dataclass(frozen=True)
class Quote:
    """A saved quote as loaded back by its number."""
    quote_id: int
    quote_number: str = ""
    customer_id: int | None = None
    status: str = "draft"
    notes: str | None = None
    items: tuple[QuoteItem, ...] = field(default_factory=tuple)

    @property
    def is_converted(self) -> bool:
        return (self.status or "").strip().lower() == QUOTE_STATUS_CONVERTED

    @property
    def order_notes(self) -> str:
        """Notes carried onto the sale made from this quote."""
        if self.notes:
            return f"Quote: {self.quote_number} - {self.notes}"
        return f"Quote: {self.quote_number}"

    def to_dict(self) -> dict:
        return {
            "quote_id": self.quote_id,
            "quote_number": self.quote_number,
            "customer_id": self.customer_id,
            "status": self.status,
            "notes": self.notes,
            "items": [item.to_dict() for item in self.items],
        }
