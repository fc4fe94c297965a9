"""
Currency table tests.

Covers conversion in both directions, the lenient unknown-currency policy
and table validation.
"""

import logging
from decimal import Decimal

import pytest

from salesdesk.models import Currency
from salesdesk.services.currency_service import CurrencyError, CurrencyTable, UnknownCurrency


class TestConversion:
    def test_to_base_divides_by_rate(self, table):
        assert table.to_base(Decimal("300000"), "LBP") == Decimal("20")

    def test_from_base_multiplies_by_rate(self, table):
        assert table.from_base(Decimal("20"), "LBP") == Decimal("300000")

    def test_base_currency_is_identity(self, table):
        assert table.to_base(Decimal("12.5"), "USD") == Decimal("12.5")

    @pytest.mark.parametrize("code", ["USD", "LBP", "EUR"])
    @pytest.mark.parametrize("amount", ["0", "0.01", "123.45", "999999.99999"])
    def test_round_trip(self, code, amount):
        table = CurrencyTable([
            Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
            Currency(code="LBP", exchange_rate=Decimal("89500")),
            Currency(code="EUR", exchange_rate=Decimal("0.92")),
        ])
        x = Decimal(amount)
        assert abs(table.from_base(table.to_base(x, code), code) - x) < Decimal("1e-6")

    def test_codes_are_case_insensitive(self, table):
        assert table.to_base(Decimal("15000"), " lbp ") == Decimal("1")

    def test_convert_between_non_base_currencies(self):
        table = CurrencyTable([
            Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
            Currency(code="LBP", exchange_rate=Decimal("15000")),
            Currency(code="EUR", exchange_rate=Decimal("0.5")),
        ])
        assert table.convert(Decimal("30000"), "LBP", "EUR") == Decimal("1")


class TestUnknownCurrency:
    def test_lenient_path_uses_rate_one_and_flags(self, table, caplog):
        with caplog.at_level(logging.WARNING):
            assert table.to_base(Decimal("7"), "XYZ") == Decimal("7")
        assert "XYZ" in table.unknown_codes
        assert table.data_quality() == {"unknown_currencies": ["XYZ"]}
        assert "XYZ" in caplog.text

    def test_warning_logged_once_per_code(self, table, caplog):
        with caplog.at_level(logging.WARNING):
            table.to_base(Decimal("1"), "XYZ")
            table.to_base(Decimal("2"), "XYZ")
        assert caplog.text.count("XYZ") == 1

    def test_strict_path_raises(self, table):
        with pytest.raises(UnknownCurrency) as exc:
            table.to_base(Decimal("1"), "XYZ", strict=True)
        assert exc.value.details == {"currency": "XYZ"}

    def test_inactive_currency_is_unknown_to_strict_lookups(self):
        table = CurrencyTable([
            Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
            Currency(code="EUR", exchange_rate=Decimal("0.9"), is_active=False),
        ])
        assert table.active_codes() == ["USD"]
        with pytest.raises(UnknownCurrency):
            table.rate("EUR")


class TestTableValidation:
    def test_requires_exactly_one_base(self):
        with pytest.raises(CurrencyError):
            CurrencyTable([Currency(code="USD", exchange_rate=Decimal("1"))])
        with pytest.raises(CurrencyError):
            CurrencyTable([
                Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
                Currency(code="EUR", exchange_rate=Decimal("1"), is_base=True),
            ])

    def test_rejects_duplicates(self):
        with pytest.raises(CurrencyError):
            CurrencyTable([
                Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
                Currency(code="usd", exchange_rate=Decimal("1")),
            ])

    @pytest.mark.parametrize("rate", ["0", "-5"])
    def test_rejects_non_positive_rates(self, rate):
        with pytest.raises(CurrencyError):
            CurrencyTable([
                Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
                Currency(code="LBP", exchange_rate=Decimal(rate)),
            ])

    def test_base_rate_normalized_to_one(self, caplog):
        with caplog.at_level(logging.WARNING):
            table = CurrencyTable([Currency(code="USD", exchange_rate=Decimal("2"), is_base=True)])
        assert table.rate("USD") == Decimal("1")
        assert "using 1" in caplog.text

    def test_active_codes_base_first(self, table):
        assert table.active_codes() == ["USD", "LBP"]

    def test_snapshot(self, table):
        assert table.snapshot() == {"USD": Decimal("1"), "LBP": Decimal("15000")}
