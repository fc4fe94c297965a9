from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..money import to_json_number


@dataclass(frozen=True)
class Currency:
    """
    A currency known to the checkout.

    exchange_rate is expressed as units of this currency per 1 unit of the
    base currency, so the base currency always has rate 1.
    """
    code: str
    exchange_rate: Decimal
    is_base: bool = False
    is_active: bool = True
    name: str = ""
    symbol: str = ""

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "symbol": self.symbol,
            "exchange_rate": to_json_number(self.exchange_rate),
            "is_base": self.is_base,
            "is_active": self.is_active,
        }
