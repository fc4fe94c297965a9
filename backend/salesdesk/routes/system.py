# backend/salesdesk/routes/system.py
"""
System health and version endpoints.

Health reports whether the configured default currency table builds; there
are no external dependencies to probe.
"""

import time

from flask import Blueprint, current_app

from ..services.currency_service import CurrencyError
from ..services.settings_service import SettingsError, build_table
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_currency_table_health() -> dict:
    """Build the default currency table from config."""
    start_time = time.time()
    try:
        table = build_table(None, current_app.config)
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "base_currency": table.base_code,
                "currencies": table.active_codes(),
            }
        }
    except (CurrencyError, SettingsError):
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Currency table health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Currency configuration error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: Currency configuration usable
    - 503: Currency configuration broken
    """
    currency_health = check_currency_table_health()
    http_status = 200 if currency_health["status"] == "healthy" else 503

    response = {
        "status": currency_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "currency_table": currency_health,
        }
    }
    return response, http_status


@system_bp.get("/version")
def version():
    return {
        "name": "salesdesk",
        "version": current_app.config.get("API_VERSION"),
    }
