"""
Currency Service - Static exchange rates to EUR
Provides multi-currency support for landed cost calculations

Rates are user-editable and never fetched. All rates are currency → EUR,
so EUR is always 1.
"""

import logging
from decimal import Decimal
from typing import Mapping, Optional

from landed_cost_models import Currency, DEFAULT_FX_RATES

logger = logging.getLogger(__name__)

# Supported currencies (display order)
SUPPORTED_CURRENCIES = [c.value for c in Currency]


def _currency_code(currency) -> str:
    return currency.value if isinstance(currency, Currency) else str(currency).upper()


def get_fx_rate(rates: Optional[Mapping], currency) -> Decimal:
    """
    Get currency → EUR rate from a rates table.

    Missing currencies fall back to 1 (no conversion). This keeps the
    calculation going with a partially filled table, but it is logged since
    a missing rate usually means the table is incomplete.
    """
    if rates is None:
        rates = DEFAULT_FX_RATES

    code = _currency_code(currency)
    for key, rate in rates.items():
        if _currency_code(key) == code:
            return Decimal(str(rate)) if not isinstance(rate, Decimal) else rate

    logger.warning(f"No exchange rate for {code}, using 1 (no conversion)")
    return Decimal("1")


def convert_to_eur(amount: Decimal, from_currency, rates: Optional[Mapping] = None) -> Decimal:
    """
    Convert amount from any currency to EUR.

    Formula: amount_eur = amount * rate(from_currency → EUR)
    """
    if amount == 0:
        return Decimal(0)

    if _currency_code(from_currency) == "EUR":
        return amount

    return amount * get_fx_rate(rates, from_currency)


def format_rates_for_display(rates: Optional[Mapping] = None) -> list[dict]:
    """
    Format rates for display in the FX table editor.
    Returns list of {currency, rate_to_eur, eur_to_currency}
    """
    if rates is None:
        rates = DEFAULT_FX_RATES

    codes = {_currency_code(key): key for key in rates}

    result = []
    for currency in SUPPORTED_CURRENCIES:
        if currency in codes:
            rate_to_eur = Decimal(str(rates[codes[currency]]))
            result.append({
                'currency': currency,
                'rate_to_eur': float(rate_to_eur),
                'eur_to_currency': float(Decimal(1) / rate_to_eur) if rate_to_eur else 0.0
            })

    return result
