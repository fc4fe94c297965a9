"""
Return Basket

Lines of an original order that the customer brings back, each capped by
the quantity still returnable on that order line.

CRITICAL:
quantity <= max_returnable_qty (original quantity minus quantity already
returned) is the guard against refunding goods that were never sold or were
already returned. A mutation that would break it raises OverReturn and
leaves the basket exactly as it was.

Returned goods are valued at what the customer actually paid: the original
unit price minus the per-unit share of the original line discount, never
the current catalog price.
"""

from __future__ import annotations

from ..models import (
    OriginalOrder, ReturnLine, ReturnableItem,
    RETURN_REASONS, ITEM_CONDITIONS, INVENTORY_ACTIONS,
)


class ReturnError(Exception):
    """Raised for return operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OverReturn(ReturnError):
    """Return quantity exceeds the remaining returnable quantity."""
    def __init__(self, order_item_id: int, requested: int, max_returnable: int):
        super().__init__(
            f"Cannot return {requested} of order item {order_item_id}; "
            f"only {max_returnable} returnable",
            details={
                "order_item_id": order_item_id,
                "requested_quantity": requested,
                "max_returnable_qty": max_returnable,
            },
        )


def check_return_line(line: ReturnLine) -> None:
    """Raise OverReturn unless 0 < quantity <= max_returnable_qty."""
    if line.quantity <= 0:
        raise ReturnError(
            "Return quantity must be positive",
            details={"order_item_id": line.original_order_item_id},
        )
    if line.quantity > line.max_returnable_qty:
        raise OverReturn(line.original_order_item_id, line.quantity, line.max_returnable_qty)


def _validate_choice(field_name: str, value: str, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ReturnError(
            f"Invalid {field_name}: {value}. Must be one of {list(choices)}",
            details={field_name: value},
        )
    return value


class ReturnBasket:
    """Return lines for one loaded original order."""

    def __init__(self, order: OriginalOrder | None = None, lines: list[ReturnLine] | None = None):
        self.order = order
        self._lines: list[ReturnLine] = list(lines or [])

    @property
    def lines(self) -> list[ReturnLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def find(self, order_item_id: int) -> ReturnLine | None:
        for line in self._lines:
            if line.original_order_item_id == order_item_id:
                return line
        return None

    def _require(self, order_item_id: int) -> ReturnLine:
        line = self.find(order_item_id)
        if line is None:
            raise ReturnError(
                f"Order item {order_item_id} is not in the return basket",
                details={"order_item_id": order_item_id},
            )
        return line

    def _item(self, order_item_id: int) -> ReturnableItem:
        item = self.order.find_item(order_item_id) if self.order else None
        if item is None:
            raise ReturnError(
                f"Order item {order_item_id} not found on the original order",
                details={"order_item_id": order_item_id},
            )
        return item

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_to_return_basket(self, item: ReturnableItem | int, quantity: int = 1) -> ReturnLine | None:
        """
        Add quantity of an order line, merging with an existing return line.

        Raises:
            OverReturn: the merged quantity would exceed the returnable quantity
        """
        if isinstance(item, int):
            item = self._item(item)

        existing = self.find(item.order_item_id)
        if quantity <= 0:
            if existing:
                self._lines.remove(existing)
            return None

        current = existing.quantity if existing else 0
        requested = current + quantity
        if requested > item.returnable_qty:
            raise OverReturn(item.order_item_id, requested, item.returnable_qty)

        if existing:
            existing.quantity = requested
            return existing

        line = ReturnLine(
            original_order_item_id=item.order_item_id,
            product_id=item.product_id,
            product_name=item.product_name,
            product_sku=item.product_sku,
            unit_type=item.unit_type,
            quantity=quantity,
            unit_price=item.effective_unit_price,
            max_returnable_qty=item.returnable_qty,
            currency=item.currency,
        )
        self._lines.append(line)
        return line

    def update_return_quantity(self, order_item_id: int, quantity: int) -> ReturnLine | None:
        """
        Set the quantity of a return line. quantity <= 0 removes the line.

        Raises:
            OverReturn: quantity exceeds max_returnable_qty (line unchanged)
        """
        line = self._require(order_item_id)
        if quantity <= 0:
            self._lines.remove(line)
            return None
        if quantity > line.max_returnable_qty:
            raise OverReturn(order_item_id, quantity, line.max_returnable_qty)
        line.quantity = quantity
        return line

    def update_return_item_props(
        self,
        order_item_id: int,
        *,
        reason: str | None = None,
        condition: str | None = None,
        inventory_action: str | None = None,
    ) -> ReturnLine:
        line = self._require(order_item_id)
        # validate everything before touching the line
        if reason is not None:
            _validate_choice("reason", reason, RETURN_REASONS)
        if condition is not None:
            _validate_choice("condition", condition, ITEM_CONDITIONS)
        if inventory_action is not None:
            _validate_choice("inventory_action", inventory_action, INVENTORY_ACTIONS)

        line.reason = reason or line.reason
        line.condition = condition or line.condition
        line.inventory_action = inventory_action or line.inventory_action
        return line

    def remove_from_return_basket(self, order_item_id: int) -> None:
        self._require(order_item_id)
        self._lines = [line for line in self._lines if line.original_order_item_id != order_item_id]

    def clear(self) -> None:
        self._lines = []

    def validate(self) -> None:
        for line in self._lines:
            check_return_line(line)

    def to_dict(self) -> dict:
        return {
            "original_order_id": self.order.order_id if self.order else None,
            "lines": [line.to_dict() for line in self._lines],
        }
