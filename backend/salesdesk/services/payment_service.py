"""
Payment Allocator

Converts tendered currency amounts into the base currency and compares
them with the amount required.

DESIGN PRINCIPLES:
- Tenders are a map of currency code -> amount in that currency
- Zero tenders are ignored; negative tenders are rejected
- Over-tender becomes change, under-tender becomes a shortfall; never both
- Suggested amounts pre-fill inputs only and never constrain what is tendered
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Sequence

from ..money import ZERO, round_for_storage, to_json_number
from .currency_service import CurrencyTable, normalize_code


class PaymentError(Exception):
    """Raised for payment operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# PAYMENT TYPES (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_CREDIT = "credit"
PAYMENT_SPLIT = "split"

VALID_PAYMENT_TYPES = [PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_SPLIT]


# =============================================================================
# ALLOCATION
# =============================================================================

@dataclass(frozen=True)
class Allocation:
    required_base: Decimal
    paid_base: Decimal
    change_base: Decimal
    shortfall_base: Decimal
    tenders: dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "required_base": to_json_number(self.required_base),
            "paid_base": to_json_number(self.paid_base),
            "change_base": to_json_number(self.change_base),
            "shortfall_base": to_json_number(self.shortfall_base),
            "tenders": {code: to_json_number(amount) for code, amount in self.tenders.items()},
        }


def normalize_tenders(tendered: Mapping[str, Decimal] | None) -> dict[str, Decimal]:
    """Upper-case codes, drop zero amounts, reject negatives."""
    tenders: dict[str, Decimal] = {}
    for code, amount in (tendered or {}).items():
        if amount is None:
            continue
        if amount < ZERO:
            raise PaymentError(
                f"Tendered amount for {code} must be >= 0",
                details={"currency": code, "amount": str(amount)},
            )
        if amount == ZERO:
            continue
        normalized = normalize_code(code)
        tenders[normalized] = tenders.get(normalized, ZERO) + amount
    return tenders


def tendered_in_base(tendered: Mapping[str, Decimal] | None, table: CurrencyTable) -> Decimal:
    tenders = normalize_tenders(tendered)
    return round_for_storage(sum((table.to_base(amount, code) for code, amount in tenders.items()), ZERO))


def allocate(required_base: Decimal, tendered: Mapping[str, Decimal] | None, table: CurrencyTable) -> Allocation:
    """
    Sum tenders in base currency and compute change or shortfall.

    Returns:
        Allocation with paid_base, change_base and shortfall_base
    """
    tenders = normalize_tenders(tendered)
    paid = round_for_storage(sum((table.to_base(amount, code) for code, amount in tenders.items()), ZERO))
    required = round_for_storage(required_base)

    return Allocation(
        required_base=required,
        paid_base=paid,
        change_base=max(ZERO, paid - required),
        shortfall_base=max(ZERO, required - paid),
        tenders=tenders,
    )


# =============================================================================
# SUGGESTED AMOUNTS
# =============================================================================

def suggest_tender(
    required_base: Decimal,
    selected: Sequence[str],
    table: CurrencyTable,
    cart_totals: Mapping[str, Decimal] | None = None,
) -> dict[str, Decimal]:
    """
    Suggest a default amount per selected currency.

    - One currency selected: the whole requirement converted into it
    - Several selected: each one the cart is priced in gets its own cart
      total; the last selected currency takes the remaining base amount

    Args:
        required_base: amount due in base currency
        selected: currency codes in the order they were selected
        cart_totals: per-currency cart totals (in each currency)
    """
    codes: list[str] = []
    for code in selected:
        normalized = normalize_code(code)
        if normalized and normalized not in codes:
            codes.append(normalized)
    if not codes:
        return {}

    if len(codes) == 1:
        only = codes[0]
        return {only: round_for_storage(table.from_base(required_base, only))}

    portions = {normalize_code(c): amount for c, amount in (cart_totals or {}).items()}
    last = codes[-1]
    suggestions: dict[str, Decimal] = {}
    covered_base = ZERO
    for code in codes[:-1]:
        if code in portions:
            suggestions[code] = round_for_storage(portions[code])
            covered_base += table.to_base(portions[code], code)
        else:
            suggestions[code] = ZERO

    remainder = max(ZERO, required_base - covered_base)
    suggestions[last] = round_for_storage(table.from_base(remainder, last))
    return suggestions
