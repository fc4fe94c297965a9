"""
Checkout settings.

Everything a checkout session needs to know about the store is loaded once
into an immutable CheckoutSettings and passed in explicitly:

- currency table (base currency + active currencies with rates)
- company display settings (secondary display rate, symbol)
- refund approval threshold and display precision

A session never re-reads settings mid-checkout; a new session picks up
changed rates.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping

from ..models import CompanySettings, Currency
from ..money import DISPLAY_PRECISION, to_decimal
from ..time_utils import utcnow, to_utc_z
from ..validation import ValidationError, parse_company_settings, parse_currencies
from .currency_service import CurrencyTable
from .settlement_service import DEFAULT_REFUND_APPROVAL_THRESHOLD

logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Raised when checkout settings cannot be built."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class CheckoutSettings:
    table: CurrencyTable
    company: CompanySettings = field(default_factory=CompanySettings)
    refund_approval_threshold: Decimal = DEFAULT_REFUND_APPROVAL_THRESHOLD
    display_precision: int = DISPLAY_PRECISION
    loaded_at: Any = None

    @property
    def base_currency(self) -> str:
        return self.table.base_code

    def to_dict(self) -> dict:
        return {
            "base_currency": self.base_currency,
            "currencies": [c.to_dict() for c in self.table.currencies],
            "company": {
                "name": self.company.name,
                "secondary_rate": float(self.company.secondary_rate),
                "show_secondary_price": self.company.show_secondary_price,
                "currency_symbol": self.company.currency_symbol,
            },
            "refund_approval_threshold": float(self.refund_approval_threshold),
            "display_precision": self.display_precision,
            "loaded_at": to_utc_z(self.loaded_at),
        }


def _config_value(config: Mapping[str, Any] | None, key: str, default: Any) -> Any:
    if not config:
        return default
    value = config.get(key)
    return default if value in (None, "") else value


def default_currencies(config: Mapping[str, Any] | None = None) -> list[Currency]:
    """
    Currencies from CURRENCIES_JSON, or just BASE_CURRENCY when unset.
    """
    raw = _config_value(config, "CURRENCIES_JSON", "")
    if raw:
        try:
            return parse_currencies(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise SettingsError(f"Invalid CURRENCIES_JSON: {e}")
    base = str(_config_value(config, "BASE_CURRENCY", "USD")).upper()
    return [Currency(code=base, exchange_rate=Decimal("1"), is_base=True)]


def build_table(currencies_payload: Any = None, config: Mapping[str, Any] | None = None) -> CurrencyTable:
    """
    Build a currency table from a backend currency list.

    Falls back to the configured default table when the list is empty. A list
    without a flagged base currency gets BASE_CURRENCY as base.
    """
    currencies = parse_currencies(currencies_payload) if currencies_payload else []
    if not currencies:
        currencies = default_currencies(config)

    if not any(c.is_base for c in currencies):
        base = str(_config_value(config, "BASE_CURRENCY", "USD")).upper()
        currencies = [
            Currency(
                code=c.code, exchange_rate=c.exchange_rate, is_base=(c.code == base),
                is_active=c.is_active, name=c.name, symbol=c.symbol,
            )
            for c in currencies
        ]
        if not any(c.is_base for c in currencies):
            currencies.append(Currency(code=base, exchange_rate=Decimal("1"), is_base=True))

    return CurrencyTable(currencies)


def load_checkout_settings(
    currencies_payload: Any = None,
    company_payload: Any = None,
    config: Mapping[str, Any] | None = None,
) -> CheckoutSettings:
    """
    Build the settings for one checkout session.

    Args:
        currencies_payload: backend currency list (camelCase dicts), or None
        company_payload: backend company settings, or None
        config: Flask config (or any mapping) supplying defaults

    Raises:
        SettingsError / CurrencyError / ValidationError
    """
    table = build_table(currencies_payload, config)
    company = parse_company_settings(company_payload)

    try:
        threshold = to_decimal(
            _config_value(config, "REFUND_APPROVAL_THRESHOLD", DEFAULT_REFUND_APPROVAL_THRESHOLD)
        )
        precision = int(_config_value(config, "DISPLAY_PRECISION", DISPLAY_PRECISION))
    except ValueError as e:
        raise SettingsError(f"Invalid checkout configuration: {e}")

    settings = CheckoutSettings(
        table=table,
        company=company,
        refund_approval_threshold=threshold,
        display_precision=precision,
        loaded_at=utcnow(),
    )
    logger.info(
        "Checkout settings loaded: base=%s currencies=%s",
        table.base_code, ",".join(table.active_codes()),
    )
    return settings
