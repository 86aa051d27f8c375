"""
Landed Cost Services

Currency conversion with static rates, pt-PT formatting and Excel export
for landed cost results.
"""

from .currency_service import (
    SUPPORTED_CURRENCIES,
    get_fx_rate,
    convert_to_eur,
    format_rates_for_display,
)
from .format_service import format_number_pt, format_money_eur, format_percent
from .landed_cost_export import create_landed_cost_excel
