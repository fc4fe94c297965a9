"""
Cart Aggregator

Holds the line items of a sale (or of an exchange basket) and totals them
per currency, with a base-currency grand total.

DESIGN:
- Lines are keyed by (product_id, unit_type, variant_id); adding the same
  key again merges into the existing line
- A quantity change that leaves quantity <= 0 removes the line
- Discounts are absolute amounts; a discount above the line gross is
  clamped to the gross and logged, so a line total is never negative
- Totals for settlement always use the base-currency grand total. A cart
  holding several currencies must never be summed naively.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from ..models import CartLine, Product, UNIT_PIECE
from ..money import ZERO, round_for_storage, to_json_number
from .currency_service import CurrencyTable
from .pricing_service import ResolvedPrice, validate_unit

logger = logging.getLogger(__name__)

LineKey = tuple[int, str, "int | None"]


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class CurrencyTotals:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    item_count: int = 0

    def to_dict(self) -> dict:
        return {
            "subtotal": to_json_number(self.subtotal),
            "discount": to_json_number(self.discount),
            "total": to_json_number(self.total),
            "item_count": self.item_count,
        }


@dataclass(frozen=True)
class CartTotals:
    base_currency: str
    by_currency: dict[str, CurrencyTotals] = field(default_factory=dict)
    grand_total_base: Decimal = ZERO
    discount_base: Decimal = ZERO

    @property
    def has_multi_currency(self) -> bool:
        return len(self.by_currency) > 1

    @property
    def effective_total(self) -> Decimal:
        """Total used for settlement, in base currency."""
        return self.grand_total_base

    @property
    def item_count(self) -> int:
        return sum(t.item_count for t in self.by_currency.values())

    def to_dict(self) -> dict:
        return {
            "base_currency": self.base_currency,
            "by_currency": {code: t.to_dict() for code, t in self.by_currency.items()},
            "has_multi_currency": self.has_multi_currency,
            "grand_total_base": to_json_number(self.grand_total_base),
            "discount_base": to_json_number(self.discount_base),
            "effective_total": to_json_number(self.effective_total),
            "item_count": self.item_count,
        }


def compute_totals(lines: list[CartLine], table: CurrencyTable) -> CartTotals:
    """Group lines by currency and convert each group's total to base."""
    groups: dict[str, CurrencyTotals] = {}
    for line in lines:
        # lines without a currency are priced in base
        code = line.currency or table.base_code
        current = groups.get(code, CurrencyTotals())
        groups[code] = CurrencyTotals(
            subtotal=current.subtotal + line.gross,
            discount=current.discount + line.discount,
            total=current.total + line.line_total,
            item_count=current.item_count + 1,
        )

    by_currency = {
        code: CurrencyTotals(
            subtotal=round_for_storage(t.subtotal),
            discount=round_for_storage(t.discount),
            total=round_for_storage(t.total),
            item_count=t.item_count,
        )
        for code, t in groups.items()
    }

    grand_total = sum((table.to_base(t.total, code) for code, t in by_currency.items()), ZERO)
    discount = sum((table.to_base(t.discount, code) for code, t in by_currency.items()), ZERO)

    return CartTotals(
        base_currency=table.base_code,
        by_currency=by_currency,
        grand_total_base=round_for_storage(grand_total),
        discount_base=round_for_storage(discount),
    )


class Cart:
    """Ordered collection of cart lines."""

    def __init__(self, table: CurrencyTable, lines: list[CartLine] | None = None):
        self.table = table
        self._lines: list[CartLine] = list(lines or [])

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def find(self, key: LineKey) -> CartLine | None:
        for line in self._lines:
            if line.key == tuple(key):
                return line
        return None

    def _require(self, key: LineKey) -> CartLine:
        line = self.find(key)
        if line is None:
            raise CartError("Cart line not found", details={"key": list(key)})
        return line

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_line(
        self,
        product: Product,
        unit_type: str = UNIT_PIECE,
        unit_price: Decimal | None = None,
        *,
        variant_id: int | None = None,
        quantity: int = 1,
        is_special: bool = False,
    ) -> CartLine | None:
        """
        Add a product to the cart, merging with an existing line of the same key.

        A non-positive quantity removes the matching line instead.
        """
        validate_unit(product, unit_type)
        key = (product.product_id, unit_type, variant_id)

        if quantity <= 0:
            self._remove_if_present(key)
            return None

        if unit_price is None or unit_price < ZERO:
            raise CartError("Unit price must be >= 0", details={"product_id": product.product_id})

        existing = self.find(key)
        if existing:
            existing.quantity += quantity
            return existing

        line = CartLine(
            product=product,
            unit_type=unit_type,
            unit_price=unit_price,
            quantity=quantity,
            variant_id=variant_id,
            is_special=is_special,
        )
        self._lines.append(line)
        return line

    def update_quantity(self, key: LineKey, delta: int) -> CartLine | None:
        line = self._require(key)
        return self.set_quantity(key, line.quantity + delta)

    def set_quantity(self, key: LineKey, quantity: int) -> CartLine | None:
        line = self._require(key)
        if quantity <= 0:
            self._remove_if_present(key)
            return None
        line.quantity = quantity
        self._clamp_discount(line)
        return line

    def update_discount(self, key: LineKey, discount: Decimal) -> Decimal:
        """Set the absolute discount on a line; returns the discount applied."""
        line = self._require(key)
        if discount is None or discount < ZERO:
            raise CartError("Discount must be >= 0", details={"key": list(key)})
        line.discount = discount
        self._clamp_discount(line)
        return line.discount

    def set_unit_price(self, key: LineKey, unit_price: Decimal, *, is_special: bool = False) -> CartLine:
        line = self._require(key)
        if unit_price is None or unit_price < ZERO:
            raise CartError("Unit price must be >= 0", details={"key": list(key)})
        line.unit_price = unit_price
        line.is_special = is_special
        self._clamp_discount(line)
        return line

    def change_unit(self, key: LineKey, unit_type: str, resolved: ResolvedPrice) -> CartLine:
        """
        Move a line to another unit type at its resolved price.

        The line keeps its quantity and discount (clamped to the new gross).
        Moving onto a unit already in the cart merges into that line.
        """
        line = self._require(key)
        validate_unit(line.product, unit_type)
        if resolved.price is None or resolved.price < ZERO:
            raise CartError("Unit price must be >= 0", details={"key": list(key)})
        if unit_type == line.unit_type:
            return self.set_unit_price(key, resolved.price, is_special=resolved.is_special)

        self._remove_if_present(key)
        merged = self.add_line(
            line.product,
            unit_type,
            resolved.price,
            variant_id=line.variant_id,
            quantity=line.quantity,
            is_special=resolved.is_special,
        )
        merged.discount += line.discount
        self._clamp_discount(merged)
        return merged

    def remove_line(self, key: LineKey) -> None:
        self._require(key)
        self._remove_if_present(key)

    def clear(self) -> None:
        self._lines = []

    def reprice(self, resolver: Callable[[CartLine], ResolvedPrice]) -> None:
        """
        Re-resolve every line's unit price.

        All prices are computed before any line changes, so a failure leaves
        the cart untouched.
        """
        resolved = [(line, resolver(line)) for line in self._lines]
        for line, price in resolved:
            line.unit_price = price.price
            line.is_special = price.is_special
            self._clamp_discount(line)

    def totals(self) -> CartTotals:
        return compute_totals(self._lines, self.table)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _remove_if_present(self, key: LineKey) -> None:
        self._lines = [line for line in self._lines if line.key != tuple(key)]

    def _clamp_discount(self, line: CartLine) -> None:
        gross = round_for_storage(line.gross)
        if line.discount > gross:
            logger.warning(
                "Discount %s exceeds line gross %s for product %s; clamped",
                line.discount, gross, line.product.product_id,
            )
            line.discount = gross

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self._lines],
            "totals": self.totals().to_dict(),
        }
