"""
Pytest fixtures for salesdesk tests.

Provides the Flask app/client, a USD/LBP currency table and a small catalog.
"""

import json
from decimal import Decimal

import pytest

from salesdesk import create_app
from salesdesk.models import Currency, Customer, CustomerSpecialPrice, Product
from salesdesk.services.currency_service import CurrencyTable
from salesdesk.services.settings_service import CheckoutSettings


CURRENCIES = [
    {"code": "USD", "exchangeRate": 1, "isBase": True, "isActive": True, "symbol": "$"},
    {"code": "LBP", "exchangeRate": 15000, "isBase": False, "isActive": True, "symbol": "L.L."},
]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app()
    app.config.update({
        'TESTING': True,
        'BASE_CURRENCY': 'USD',
        'CURRENCIES_JSON': json.dumps(CURRENCIES),
        'REFUND_APPROVAL_THRESHOLD': '100',
    })
    yield app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def table():
    return CurrencyTable([
        Currency(code="USD", exchange_rate=Decimal("1"), is_base=True),
        Currency(code="LBP", exchange_rate=Decimal("15000")),
    ])


@pytest.fixture(scope='function')
def settings(table):
    return CheckoutSettings(table=table)


@pytest.fixture(scope='function')
def product_a():
    """USD product sold by the piece or by the box of 12."""
    return Product(
        product_id=1,
        name="Mineral Water 500ml",
        sku="MW-500",
        barcode="111",
        box_barcode="111-BOX",
        second_unit="box",
        units_per_second=12,
        retail_price=Decimal("10"),
        wholesale_price=Decimal("8"),
        box_retail_price=Decimal("100"),
        box_wholesale_price=Decimal("90"),
        cost_price=Decimal("6"),
        box_cost_price=Decimal("60"),
        currency="USD",
    )


@pytest.fixture(scope='function')
def product_lbp():
    """LBP-priced product without a second unit."""
    return Product(
        product_id=2,
        name="Bread",
        sku="BR-1",
        barcode="222",
        retail_price=Decimal("150000"),
        wholesale_price=Decimal("120000"),
        cost_price=Decimal("90000"),
        currency="LBP",
    )


@pytest.fixture(scope='function')
def retail_customer():
    return Customer(customer_id=10, name="Walk-in Rita", customer_type="Retail")


@pytest.fixture(scope='function')
def wholesale_customer():
    return Customer(
        customer_id=20,
        name="Corner Shop",
        customer_type="Wholesale",
        debt_balance=Decimal("40"),
        credit_limit=Decimal("100"),
    )


@pytest.fixture(scope='function')
def special_box_price(wholesale_customer):
    return CustomerSpecialPrice(
        customer_id=wholesale_customer.customer_id,
        product_id=1,
        unit_type="box",
        special_price=Decimal("85"),
    )


@pytest.fixture(scope='function')
def product_body():
    """Factory for backend-style (camelCase) product bodies."""
    def make(**overrides):
        body = {
            "productId": 1,
            "name": "Mineral Water 500ml",
            "sku": "MW-500",
            "secondUnit": "box",
            "unitsPerSecond": 12,
            "retailPrice": 10,
            "wholesalePrice": 8,
            "boxRetailPrice": 100,
            "boxWholesalePrice": 90,
            "costPrice": 6,
            "boxCostPrice": 60,
            "currency": "USD",
        }
        body.update(overrides)
        return body
    return make
