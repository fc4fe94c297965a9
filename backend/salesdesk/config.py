# backend/salesdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Base currency used when no currency table is supplied with a request
    BASE_CURRENCY = os.environ.get("BASE_CURRENCY", "USD")

    # Default currency table as JSON:
    # [{"code": "USD", "exchangeRate": 1, "isBase": true}, {"code": "LBP", "exchangeRate": 89500}]
    CURRENCIES_JSON = os.environ.get("CURRENCIES_JSON", "")

    # Refunds above this amount (base currency) need manager approval
    REFUND_APPROVAL_THRESHOLD = os.environ.get("REFUND_APPROVAL_THRESHOLD", "100")

    # Decimal places shown to cashiers
    DISPLAY_PRECISION = int(os.environ.get("DISPLAY_PRECISION", "3"))

    API_VERSION = "1.0.0"
