"""
Currency table and conversion.

All internal totals are normalized to one base currency. A currency's
exchange_rate is "units of this currency per 1 unit of base", so:

    to_base(amount, code)   = amount / rate(code)
    from_base(amount, code) = amount * rate(code)

LENIENCY POLICY:
Catalog prices can predate a currency's registration. Hot paths (cart
totals, tender conversion) therefore treat an unknown code as rate 1 instead
of failing. Every such fallback is logged and remembered in unknown_codes so
callers can surface it as a data-quality problem.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from ..models import Currency

logger = logging.getLogger(__name__)

ONE = Decimal("1")


class CurrencyError(Exception):
    """Raised for currency table errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class UnknownCurrency(CurrencyError):
    """Referenced currency code is not in the active table."""
    def __init__(self, code: str):
        super().__init__(f"Unknown currency: {code}", details={"currency": code})
        self.code = code


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


class CurrencyTable:
    """Read-only view over the configured currencies."""

    def __init__(self, currencies: Iterable[Currency]):
        by_code: dict[str, Currency] = {}
        for currency in currencies:
            code = normalize_code(currency.code)
            if not code:
                raise CurrencyError("Currency code is required")
            if code in by_code:
                raise CurrencyError(f"Duplicate currency code: {code}", details={"currency": code})
            if currency.exchange_rate is None or currency.exchange_rate <= 0:
                raise CurrencyError(
                    f"Exchange rate for {code} must be positive",
                    details={"currency": code},
                )
            by_code[code] = currency

        bases = [c for c in by_code.values() if c.is_base]
        if len(bases) != 1:
            raise CurrencyError(
                f"Exactly one base currency required, found {len(bases)}",
                details={"base_currencies": [normalize_code(c.code) for c in bases]},
            )

        base = bases[0]
        if base.exchange_rate != ONE:
            logger.warning(
                "Base currency %s reported rate %s; using 1",
                base.code, base.exchange_rate,
            )
            base = Currency(
                code=base.code, exchange_rate=ONE, is_base=True, is_active=True,
                name=base.name, symbol=base.symbol,
            )
            by_code[normalize_code(base.code)] = base

        self._by_code = by_code
        self._base_code = normalize_code(base.code)
        self.unknown_codes: set[str] = set()

    @classmethod
    def single(cls, code: str = "USD") -> "CurrencyTable":
        """A table with only the base currency."""
        return cls([Currency(code=code, exchange_rate=ONE, is_base=True)])

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @property
    def base_code(self) -> str:
        return self._base_code

    @property
    def currencies(self) -> list[Currency]:
        return list(self._by_code.values())

    def get(self, code: str | None) -> Currency | None:
        return self._by_code.get(normalize_code(code))

    def is_active(self, code: str | None) -> bool:
        currency = self.get(code)
        return bool(currency and (currency.is_active or currency.is_base))

    def active_codes(self) -> list[str]:
        """Active currency codes, base first."""
        codes = [c for c in self._by_code if self.is_active(c)]
        return sorted(codes, key=lambda c: (c != self._base_code, c))

    def rate(self, code: str | None) -> Decimal:
        """Strict rate lookup. Raises UnknownCurrency outside the active set."""
        normalized = normalize_code(code)
        if not self.is_active(normalized):
            raise UnknownCurrency(normalized)
        return self._by_code[normalized].exchange_rate

    def lenient_rate(self, code: str | None) -> Decimal:
        """Rate lookup that falls back to 1 for unknown codes and flags them."""
        try:
            return self.rate(code)
        except UnknownCurrency as exc:
            if exc.code not in self.unknown_codes:
                logger.warning(
                    "Currency %r not in active table; converting at rate 1",
                    exc.code,
                )
            self.unknown_codes.add(exc.code)
            return ONE

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def to_base(self, amount: Decimal, code: str | None, *, strict: bool = False) -> Decimal:
        rate = self.rate(code) if strict else self.lenient_rate(code)
        return amount / rate

    def from_base(self, amount: Decimal, code: str | None, *, strict: bool = False) -> Decimal:
        rate = self.rate(code) if strict else self.lenient_rate(code)
        return amount * rate

    def convert(self, amount: Decimal, from_code: str, to_code: str, *, strict: bool = False) -> Decimal:
        return self.from_base(self.to_base(amount, from_code, strict=strict), to_code, strict=strict)

    def snapshot(self) -> dict[str, Decimal]:
        """Freeze {code: rate} for every configured currency."""
        return {code: c.exchange_rate for code, c in self._by_code.items()}

    def data_quality(self) -> dict:
        return {"unknown_currencies": sorted(self.unknown_codes)}
