"""
Settlement Calculator

Two paths:

SALE:
    effective_total (base currency) is split into what was paid now and what
    becomes customer debt. Short payment is a valid state (recorded as debt),
    over-payment produces change. paid_amount + debt_amount always equals
    effective_total.

RETURN / EXCHANGE:
    net_amount = exchange_total - return_total
    net < 0 -> refund owed to the customer (cash or store credit)
    net > 0 -> customer pays the difference (cash or credit)
    net = 0 -> even exchange, no money moves
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping

from ..models import CartLine, Customer, ReturnLine
from ..money import ZERO, round_for_storage, to_json_number
from .cart_service import CartTotals, compute_totals
from .currency_service import CurrencyTable
from .payment_service import (
    PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_SPLIT, VALID_PAYMENT_TYPES,
    allocate, normalize_tenders,
)
from .return_service import check_return_line


class SettlementError(Exception):
    """Raised for settlement errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_UNPAID = "unpaid"

DIRECTION_REFUND = "refund"
DIRECTION_PAYMENT = "payment"
DIRECTION_EVEN = "even"

REFUND_CASH = "cash"
REFUND_STORE_CREDIT = "store_credit"
VALID_REFUND_METHODS = [REFUND_CASH, REFUND_STORE_CREDIT]

VALID_EXCHANGE_PAYMENT_METHODS = [PAYMENT_CASH, PAYMENT_CREDIT]

# Recorded as the payment method of an even exchange.
METHOD_NONE = "none"

STATUS_COMPLETED = "completed"
STATUS_PENDING_APPROVAL = "pending_approval"

DEFAULT_REFUND_APPROVAL_THRESHOLD = Decimal("100")


# =============================================================================
# SALE PATH
# =============================================================================

@dataclass(frozen=True)
class SaleSettlement:
    payment_type: str
    effective_total: Decimal
    tendered_amount: Decimal
    paid_amount: Decimal
    debt_amount: Decimal
    change_amount: Decimal
    payment_status: str
    tenders: dict[str, Decimal] = field(default_factory=dict)
    projected_debt_balance: Decimal | None = None
    exceeds_credit_limit: bool = False

    @property
    def shortfall_amount(self) -> Decimal:
        return self.debt_amount

    def to_dict(self) -> dict:
        return {
            "payment_type": self.payment_type,
            "effective_total": to_json_number(self.effective_total),
            "tendered_amount": to_json_number(self.tendered_amount),
            "paid_amount": to_json_number(self.paid_amount),
            "debt_amount": to_json_number(self.debt_amount),
            "change_amount": to_json_number(self.change_amount),
            "shortfall_amount": to_json_number(self.shortfall_amount),
            "payment_status": self.payment_status,
            "tenders": {code: to_json_number(amount) for code, amount in self.tenders.items()},
            "projected_debt_balance": to_json_number(self.projected_debt_balance),
            "exceeds_credit_limit": self.exceeds_credit_limit,
        }


def _payment_status(paid: Decimal, debt: Decimal) -> str:
    if debt <= ZERO:
        return PAYMENT_STATUS_PAID
    if paid <= ZERO:
        return PAYMENT_STATUS_UNPAID
    return PAYMENT_STATUS_PARTIAL


def compute_sale_settlement(
    totals: CartTotals,
    payment_type: str,
    table: CurrencyTable,
    tendered: Mapping[str, Decimal] | None = None,
    customer: Customer | None = None,
) -> SaleSettlement:
    """
    Settle a sale.

    - credit: nothing paid now, the whole total becomes debt
    - cash without explicit tenders: paid in full
    - split, or any explicit tenders: tenders converted to base; a short
      tender becomes debt, an excess becomes change

    Raises:
        SettlementError: unknown payment type
    """
    if payment_type not in VALID_PAYMENT_TYPES:
        raise SettlementError(
            f"Invalid payment type: {payment_type}. Must be one of {VALID_PAYMENT_TYPES}",
            details={"payment_type": payment_type},
        )

    total = round_for_storage(totals.effective_total)
    tenders = normalize_tenders(tendered)

    if payment_type == PAYMENT_CREDIT:
        tenders = {}
        tendered_base = ZERO
    elif tenders or payment_type == PAYMENT_SPLIT:
        tendered_base = allocate(total, tenders, table).paid_base
    else:
        tendered_base = total

    paid = min(tendered_base, total)
    debt = total - paid
    change = max(ZERO, tendered_base - total)

    projected = None
    exceeds = False
    if customer is not None:
        projected = round_for_storage(customer.debt_balance + debt)
        exceeds = debt > ZERO and customer.credit_limit > ZERO and projected > customer.credit_limit

    return SaleSettlement(
        payment_type=payment_type,
        effective_total=total,
        tendered_amount=tendered_base,
        paid_amount=paid,
        debt_amount=debt,
        change_amount=change,
        payment_status=_payment_status(paid, debt),
        tenders=tenders,
        projected_debt_balance=projected,
        exceeds_credit_limit=exceeds,
    )


# =============================================================================
# RETURN / EXCHANGE PATH
# =============================================================================

@dataclass(frozen=True)
class ReturnExchangeSettlement:
    return_total: Decimal
    exchange_total: Decimal
    net_amount: Decimal
    direction: str
    manager_approval_required: bool = False

    @property
    def refund_amount(self) -> Decimal:
        return -self.net_amount if self.net_amount < ZERO else ZERO

    @property
    def payment_amount(self) -> Decimal:
        return self.net_amount if self.net_amount > ZERO else ZERO

    @property
    def status(self) -> str:
        return STATUS_PENDING_APPROVAL if self.manager_approval_required else STATUS_COMPLETED

    def to_dict(self) -> dict:
        return {
            "return_total": to_json_number(self.return_total),
            "exchange_total": to_json_number(self.exchange_total),
            "net_amount": to_json_number(self.net_amount),
            "direction": self.direction,
            "refund_amount": to_json_number(self.refund_amount),
            "payment_amount": to_json_number(self.payment_amount),
            "manager_approval_required": self.manager_approval_required,
            "status": self.status,
        }


@dataclass(frozen=True)
class SettlementMethods:
    """Methods recorded for a return/exchange."""
    refund_method: str | None
    payment_method: str | None

    def to_dict(self) -> dict:
        return {"refund_method": self.refund_method, "payment_method": self.payment_method}


def return_total_base(return_lines: Iterable[ReturnLine], table: CurrencyTable) -> Decimal:
    total = sum(
        (table.to_base(line.line_total, line.currency or table.base_code) for line in return_lines),
        ZERO,
    )
    return round_for_storage(total)


def compute_return_exchange_settlement(
    return_lines: Iterable[ReturnLine],
    exchange_lines: Iterable[CartLine],
    table: CurrencyTable,
    refund_approval_threshold: Decimal | None = DEFAULT_REFUND_APPROVAL_THRESHOLD,
) -> ReturnExchangeSettlement:
    """
    Net the returned goods against the exchange goods.

    Raises:
        OverReturn: a return line exceeds its returnable quantity
    """
    return_lines = list(return_lines)
    for line in return_lines:
        check_return_line(line)

    return_total = return_total_base(return_lines, table)
    exchange_total = compute_totals(list(exchange_lines), table).grand_total_base
    net = round_for_storage(exchange_total - return_total)

    if net < ZERO:
        direction = DIRECTION_REFUND
    elif net > ZERO:
        direction = DIRECTION_PAYMENT
    else:
        direction = DIRECTION_EVEN

    approval = (
        refund_approval_threshold is not None
        and direction == DIRECTION_REFUND
        and -net > refund_approval_threshold
    )

    return ReturnExchangeSettlement(
        return_total=return_total,
        exchange_total=exchange_total,
        net_amount=net,
        direction=direction,
        manager_approval_required=approval,
    )


def validate_methods(
    settlement: ReturnExchangeSettlement,
    refund_method: str | None = None,
    payment_method: str | None = None,
) -> SettlementMethods:
    """
    Check that the methods required by the settlement direction are present.

    refund  -> refund_method in {cash, store_credit}
    payment -> payment_method in {cash, credit}
    even    -> neither; payment method recorded as "none"
    """
    if settlement.direction == DIRECTION_REFUND:
        if refund_method not in VALID_REFUND_METHODS:
            raise SettlementError(
                f"Refund method required: one of {VALID_REFUND_METHODS}",
                details={"refund_method": refund_method, "direction": settlement.direction},
            )
        return SettlementMethods(refund_method=refund_method, payment_method=None)

    if settlement.direction == DIRECTION_PAYMENT:
        if payment_method not in VALID_EXCHANGE_PAYMENT_METHODS:
            raise SettlementError(
                f"Payment method required: one of {VALID_EXCHANGE_PAYMENT_METHODS}",
                details={"payment_method": payment_method, "direction": settlement.direction},
            )
        return SettlementMethods(refund_method=None, payment_method=payment_method)

    return SettlementMethods(refund_method=None, payment_method=METHOD_NONE)


def debt_adjustment(settlement: ReturnExchangeSettlement, methods: SettlementMethods) -> Decimal:
    """
    Change to the customer's debt balance.

    Store-credit refunds reduce the debt; exchange differences taken on
    credit increase it.
    """
    if settlement.direction == DIRECTION_REFUND and methods.refund_method == REFUND_STORE_CREDIT:
        return -settlement.refund_amount
    if settlement.direction == DIRECTION_PAYMENT and methods.payment_method == PAYMENT_CREDIT:
        return settlement.payment_amount
    return ZERO
