# Overview: Flask CLI command group for inspecting the currency table.

# backend/salesdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Currencies (table comes from CURRENCIES_JSON / BASE_CURRENCY):
# - python -m flask currencies list
#   List configured currencies with rates, base first.
# - python -m flask currencies convert 300000 LBP --to-base
#   Convert an amount in LBP into the base currency.
# - python -m flask currencies convert 20 LBP --from-base
#   Convert an amount in the base currency into LBP.

import click
from flask import current_app
from flask.cli import with_appcontext

from .money import round_for_display, to_decimal
from .services.currency_service import CurrencyError
from .services.settings_service import SettingsError, build_table


def _load_table():
    try:
        return build_table(None, current_app.config)
    except (CurrencyError, SettingsError) as e:
        raise click.ClickException(str(e))


@click.group('currencies')
def currencies_group():
    """Currency table inspection."""
    pass


@currencies_group.command('list')
@with_appcontext
def list_currencies():
    """List configured currencies."""
    table = _load_table()
    click.echo(f"Base currency: {table.base_code}")
    click.echo("-" * 40)
    for code in table.active_codes():
        currency = table.get(code)
        marker = "*" if currency.is_base else " "
        click.echo(f"{marker} {code:<6} rate={currency.exchange_rate}  {currency.name}")
    inactive = [c for c in table.currencies if not table.is_active(c.code)]
    for currency in inactive:
        click.echo(f"  {currency.code:<6} rate={currency.exchange_rate}  (inactive)")


@currencies_group.command('convert')
@click.argument('amount')
@click.argument('code')
@click.option('--to-base/--from-base', 'to_base', default=True, help='Conversion direction')
@with_appcontext
def convert_amount(amount, code, to_base):
    """Convert AMOUNT between CODE and the base currency."""
    try:
        value = to_decimal(amount)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='AMOUNT')

    table = _load_table()
    try:
        if to_base:
            result = table.to_base(value, code, strict=True)
            click.echo(f"{value} {code.upper()} = {round_for_display(result)} {table.base_code}")
        else:
            result = table.from_base(value, code, strict=True)
            click.echo(f"{value} {table.base_code} = {round_for_display(result)} {code.upper()}")
    except CurrencyError as e:
        raise click.ClickException(str(e))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(currencies_group)
