"""
Landed Cost Mapping Module

This module handles:
- Three-tier value resolution (form value > settings default > fallback)
- Mapping a flat variables dict (as posted by a form) to nested LandedCostInput
- Pre-validation that reports every problem at once

Defaults for fees, insurance and VAT can be overridden per deployment with
LANDED_COST_* environment variables (read from .env when present).
"""

from typing import Dict, Any, Optional, List
from decimal import Decimal, InvalidOperation
import logging
import os

from dotenv import load_dotenv

from landed_cost_models import (
    LandedCostInput,
    ProductInfo,
    ShipmentParams,
    FeeParams,
    TaxesAndDuties,
    FreightRates,
    AirFreightRates,
    LclFreightRates,
    FclFreightRates,
    RateTier,
    Currency,
    Origin,
    ShippingMode,
    Incoterms,
    DEFAULT_FX_RATES,
)

load_dotenv()

# Setup logger
logger = logging.getLogger(__name__)


# ============================================================================
# SAFE CONVERSION UTILITIES
# ============================================================================

def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert value to a finite Decimal (accepts "1,5" as 1.5)"""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    try:
        text = str(value).strip().replace(",", ".")
        result = Decimal(text)
    except (ValueError, TypeError, InvalidOperation):
        return default
    if not result.is_finite():
        return default
    return result


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert value to string"""
    if value is None or value == "":
        return default
    return str(value)


def parse_decimal(value: Any, default: Optional[Decimal] = Decimal("0")) -> Any:
    """
    Convert a form value for a Decimal model field.

    Blank values take the default. Anything non-blank that does not parse is
    returned unchanged so model validation rejects it.
    """
    if value is None or value == "":
        return default
    parsed = safe_decimal(value, None)
    return value if parsed is None else parsed


def parse_int(value: Any, default: int = 1) -> Any:
    """Like parse_decimal for int fields; "42" and "42.0" give 42, "2.5" is left for the model to reject"""
    if value is None or value == "":
        return default
    parsed = safe_decimal(value, None)
    if parsed is None or parsed != parsed.to_integral_value():
        return value
    return int(parsed)


def safe_bool(value: Any, default: bool = False) -> bool:
    """Safely convert checkbox / form value to bool"""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "on", "yes", "y", "sim"):
        return True
    if text in ("0", "false", "off", "no", "n", "não", "nao"):
        return False
    return default


def _is_number(value: Any) -> bool:
    return safe_decimal(value, None) is not None


# ============================================================================
# ORIGIN / MODE NORMALIZATION
# ============================================================================

# Map form / legacy values to enum values (handles variations in spelling)
ORIGIN_MAPPING = {
    # China
    "China": "China",
    "CN": "China",
    "PRC": "China",

    # Korea
    "Korea": "Korea",
    "South Korea": "Korea",
    "Coreia": "Korea",
    "KR": "Korea",

    # Hong Kong
    "Hong Kong": "Hong Kong",
    "HongKong": "Hong Kong",
    "HK": "Hong Kong",

    # Brazil
    "Brazil": "Brazil",
    "Brasil": "Brazil",
    "BR": "Brazil",

    # Other
    "Other": "Other",
    "Outro": "Other",
    "Outros": "Other",
}

SHIPPING_MODE_MAPPING = {
    # English labels
    "Air Express": "air-express",
    "Air Cargo": "air-cargo",
    "Sea LCL": "sea-lcl",
    "Sea FCL 20'": "sea-fcl-20",
    "Sea FCL 40'": "sea-fcl-40",

    # Portuguese labels
    "Aéreo Express": "air-express",
    "Aéreo (Carga)": "air-cargo",
    "Marítimo LCL": "sea-lcl",
    "Marítimo FCL 20'": "sea-fcl-20",
    "Marítimo FCL 40'": "sea-fcl-40",

    # Enum names
    "AIR_EXPRESS": "air-express",
    "AIR_CARGO": "air-cargo",
    "SEA_LCL": "sea-lcl",
    "SEA_FCL_20": "sea-fcl-20",
    "SEA_FCL_40": "sea-fcl-40",
}


def normalize_origin(value: Any) -> str:
    """
    Normalize origin value to match Origin enum.

    Unknown origins map to "Other": the origin only drives the duty table
    lookup, which falls back to the Other entry anyway.
    """
    if not value:
        return Origin.CHINA.value  # Default

    if isinstance(value, Origin):
        return value.value

    text = str(value).strip()
    valid_values = [o.value for o in Origin]
    if text in valid_values:
        return text

    if text in ORIGIN_MAPPING:
        return ORIGIN_MAPPING[text]

    # Case-insensitive second pass
    for key, mapped in ORIGIN_MAPPING.items():
        if key.lower() == text.lower():
            return mapped

    logger.warning(f"Unknown origin '{text}', treating as Other")
    return Origin.OTHER.value


def normalize_shipping_mode(value: Any) -> str:
    """
    Normalize shipping mode value to match ShippingMode enum.

    Returns the value as-is when unknown so ShippingMode() fails with a clear error.
    """
    if not value:
        return ShippingMode.AIR_CARGO.value  # Default

    if isinstance(value, ShippingMode):
        return value.value

    text = str(value).strip()
    valid_values = [m.value for m in ShippingMode]
    if text.lower() in valid_values:
        return text.lower()

    if text in SHIPPING_MODE_MAPPING:
        return SHIPPING_MODE_MAPPING[text]

    return text


def is_unbounded_threshold(value: Any) -> bool:
    """Blank, "inf", "∞" or a non-finite number mean "no upper bound" """
    if value is None:
        return True
    text = str(value).strip().lower()
    return text in ("", "inf", "infinity", "∞", "+inf") or text == "none"


def parse_rate_tiers(rows: Optional[List[Any]]) -> Optional[List[RateTier]]:
    """
    Convert [{threshold, rate}] rows into RateTier models.

    Rows are kept in the given order: the model validator rejects
    unsorted tables instead of silently reordering user input.

    Returns None when no rows are given (model defaults apply).
    """
    if not rows:
        return None

    tiers = []
    for row in rows:
        if isinstance(row, RateTier):
            tiers.append(row)
            continue
        threshold, rate = _tier_row(row)

        # Unparseable values reach RateTier as-is and fail validation
        tiers.append(RateTier(
            threshold=None if is_unbounded_threshold(threshold) else parse_decimal(threshold, None),
            rate=parse_decimal(rate, None)
        ))

    return tiers


def _tier_row(row: Any) -> tuple:
    """(threshold, rate) from a dict row, a pair or a RateTier"""
    if isinstance(row, RateTier):
        return row.threshold, row.rate
    if isinstance(row, dict):
        return row.get("threshold"), row.get("rate")
    threshold, rate = row
    return threshold, rate


# ============================================================================
# DEFAULT SETTINGS
# ============================================================================

# Setting name → (environment variable, fallback)
SETTINGS_ENV = {
    'insurance_pct': ("LANDED_COST_INSURANCE_PCT", Decimal("0.5")),
    'brokerage_fee': ("LANDED_COST_BROKERAGE_FEE", Decimal("120")),
    'port_fee': ("LANDED_COST_PORT_FEE", Decimal("150")),
    'other_fees': ("LANDED_COST_OTHER_FEES", Decimal("50")),
    'vat_pct': ("LANDED_COST_VAT_PCT", Decimal("23")),
    'air_fixed_fees': ("LANDED_COST_AIR_FIXED_FEES", Decimal("60")),
    'lcl_fixed_fees': ("LANDED_COST_LCL_FIXED_FEES", Decimal("120")),
    'fcl_fixed_fees': ("LANDED_COST_FCL_FIXED_FEES", Decimal("300")),
}


def get_default_settings() -> Dict[str, Decimal]:
    """
    Get default fee / VAT settings.

    Hardcoded fallbacks, overridable with LANDED_COST_* environment variables.
    Unparseable values are ignored with a warning.

    Returns:
        Dict with insurance_pct, brokerage_fee, port_fee, other_fees, vat_pct
        and the fixed fees per freight mode
    """
    settings = {}
    for name, (env_var, fallback) in SETTINGS_ENV.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            settings[name] = fallback
            continue

        value = safe_decimal(raw, None)
        if value is None:
            logger.warning(f"Ignoring {env_var}={raw!r}: not a number, using {fallback}")
            value = fallback
        settings[name] = value

    return settings


# ============================================================================
# THREE-TIER VALUE RESOLUTION
# ============================================================================

def get_value(field_name: str, variables: Dict[str, Any], settings: Dict[str, Any], default: Any = None) -> Any:
    """
    Get value using three-tier logic: form value > settings default > fallback default

    Args:
        field_name: Name of the field to retrieve
        variables: Form variables dict
        settings: Deployment settings dict
        default: Fallback default if not found anywhere

    Returns:
        Value from variables, settings, or fallback (in that order)
    """
    form_value = variables.get(field_name)
    if form_value is not None and form_value != "":
        return form_value

    settings_value = settings.get(field_name)
    if settings_value is not None and settings_value != "":
        return settings_value

    return default


# ============================================================================
# MAIN MAPPING FUNCTION
# ============================================================================

def map_variables_to_landed_cost_input(
    variables: Dict[str, Any],
    settings: Optional[Dict[str, Decimal]] = None
) -> LandedCostInput:
    """
    Transform flat variables dict into nested LandedCostInput.

    Missing tables (FX rates, tiers, origin duties) fall back to the model
    defaults; partially provided FX tables are merged over the defaults.

    Args:
        variables: Flat form variables
        settings: Default settings (get_default_settings() if None)

    Returns:
        LandedCostInput with all nested models populated

    Raises:
        pydantic.ValidationError: If values violate model constraints
        ValueError: If an enum value (currency, mode, incoterm) is unknown
    """
    if settings is None:
        settings = get_default_settings()

    # ========== ProductInfo (7 fields) ==========
    product = ProductInfo(
        unit_price=parse_decimal(variables.get('unit_price')),
        currency_of_unit_price=Currency(safe_str(variables.get('currency'), 'USD').upper()),
        quantity=parse_int(variables.get('quantity'), 1),
        unit_weight_kg=parse_decimal(variables.get('unit_weight_kg')),
        length_cm=parse_decimal(variables.get('length_cm')),
        width_cm=parse_decimal(variables.get('width_cm')),
        height_cm=parse_decimal(variables.get('height_cm'))
    )

    # ========== ShipmentParams (5 fields) ==========
    shipment = ShipmentParams(
        product_origin=Origin(normalize_origin(variables.get('product_origin'))),
        shipment_origin=Origin(normalize_origin(variables.get('shipment_origin'))),
        shipping_mode=ShippingMode(normalize_shipping_mode(variables.get('shipping_mode'))),
        offer_incoterms=Incoterms(safe_str(variables.get('offer_incoterms'), 'EXW').upper()),
        local_origin_transport=parse_decimal(variables.get('local_origin_transport'))
    )

    # ========== FeeParams (4 fields) ==========
    fees = FeeParams(
        insurance_pct=parse_decimal(get_value('insurance_pct', variables, settings), Decimal("0.5")),
        brokerage_fee=parse_decimal(get_value('brokerage_fee', variables, settings), Decimal("120")),
        port_fee=parse_decimal(get_value('port_fee', variables, settings), Decimal("150")),
        other_fees=parse_decimal(get_value('other_fees', variables, settings), Decimal("50"))
    )

    # ========== TaxesAndDuties (6 fields) ==========
    taxes_kwargs = dict(
        ignore_duty=safe_bool(variables.get('ignore_duty'), True),
        use_origin_duty_table=safe_bool(variables.get('use_origin_duty_table'), False),
        duty_pct=parse_decimal(variables.get('duty_pct')),
        vat_pct=parse_decimal(get_value('vat_pct', variables, settings), Decimal("23")),
        vat_recoverable=safe_bool(variables.get('vat_recoverable'), True)
    )
    origin_duty = variables.get('origin_duty_pct')
    if origin_duty:
        taxes_kwargs['origin_duty_pct'] = {
            Origin(normalize_origin(origin)): parse_decimal(pct)
            for origin, pct in origin_duty.items()
        }
    taxes = TaxesAndDuties(**taxes_kwargs)

    # ========== FX rates (merged over defaults) ==========
    fx_rates = dict(DEFAULT_FX_RATES)
    for code, rate in (variables.get('fx_rates') or {}).items():
        # A blank rate becomes 0 so the model rejects it instead of falling back to the default
        fx_rates[Currency(str(code).upper())] = parse_decimal(rate, Decimal("0"))

    # ========== FreightRates ==========
    air_kwargs = dict(
        volumetric_factor=parse_decimal(variables.get('air_volumetric_factor'), Decimal("167")),
        min_chargeable_kg=parse_decimal(variables.get('air_min_chargeable_kg'), Decimal("45")),
        fixed_fees=parse_decimal(get_value('air_fixed_fees', variables, settings), Decimal("60"))
    )
    air_tiers = parse_rate_tiers(variables.get('air_tiers'))
    if air_tiers is not None:
        air_kwargs['tiers'] = air_tiers

    lcl_kwargs = dict(
        min_cbm=parse_decimal(variables.get('lcl_min_cbm'), Decimal("1")),
        fixed_fees=parse_decimal(get_value('lcl_fixed_fees', variables, settings), Decimal("120"))
    )
    lcl_tiers = parse_rate_tiers(variables.get('lcl_tiers'))
    if lcl_tiers is not None:
        lcl_kwargs['tiers'] = lcl_tiers

    freight = FreightRates(
        air=AirFreightRates(**air_kwargs),
        lcl=LclFreightRates(**lcl_kwargs),
        fcl=FclFreightRates(
            price_20=parse_decimal(variables.get('fcl_20_price'), Decimal("1800")),
            price_40=parse_decimal(variables.get('fcl_40_price'), Decimal("2300")),
            fixed_fees=parse_decimal(get_value('fcl_fixed_fees', variables, settings), Decimal("300"))
        )
    )

    # ========== Construct final input ==========
    return LandedCostInput(
        product=product,
        shipment=shipment,
        fees=fees,
        taxes=taxes,
        fx_rates=fx_rates,
        freight=freight
    )


# ============================================================================
# VALIDATION FUNCTION
# ============================================================================

NON_NEGATIVE_FIELDS = {
    'unit_weight_kg': "Unit weight",
    'length_cm': "Length",
    'width_cm': "Width",
    'height_cm': "Height",
    'local_origin_transport': "Local origin transport",
    'brokerage_fee': "Brokerage fee",
    'port_fee': "Port / THC fee",
    'other_fees': "Other fees",
    'air_min_chargeable_kg': "Air minimum chargeable weight",
    'air_fixed_fees': "Air fixed fees",
    'lcl_min_cbm': "LCL minimum volume",
    'lcl_fixed_fees': "LCL fixed fees",
    'fcl_20_price': "20' container price",
    'fcl_40_price': "40' container price",
    'fcl_fixed_fees': "FCL fixed fees",
}

PERCENT_FIELDS = {
    'insurance_pct': "Insurance (%)",
    'duty_pct': "Duty (%)",
    'vat_pct': "VAT (%)",
}

TIER_FIELDS = {
    'air_tiers': "Air",
    'lcl_tiers': "LCL",
}


def validate_landed_cost_variables(variables: Dict[str, Any]) -> List[str]:
    """
    Validate form variables before mapping.
    Returns list of all validation errors (empty list if valid).

    Business rules:
    - Unit price must be present and >= 0, quantity a whole number >= 1
    - Currency, shipping mode and incoterm must be known values
    - Amounts cannot be negative, percentages must lie in 0..100
    - Exchange rates must be > 0
    - Air volumetric factor must be > 0

    Args:
        variables: Form variables dict

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    # Required fields validation
    unit_price = variables.get('unit_price')
    if unit_price is None or unit_price == "":
        errors.append("Missing unit price (unit_price).")
    elif not _is_number(unit_price) or safe_decimal(unit_price) < 0:
        errors.append(f"Unit price must be a number >= 0, got {unit_price!r}.")

    quantity = variables.get('quantity')
    if quantity is None or quantity == "":
        errors.append("Missing quantity (quantity).")
    else:
        parsed_quantity = safe_decimal(quantity, None)
        if parsed_quantity is None or parsed_quantity < 1 or parsed_quantity != parsed_quantity.to_integral_value():
            errors.append(f"Quantity must be a whole number >= 1, got {quantity!r}.")

    # Enumerations
    currency = variables.get('currency')
    if currency and str(currency).upper() not in [c.value for c in Currency]:
        errors.append(f"Unknown currency '{currency}'.")

    mode = variables.get('shipping_mode')
    if mode and normalize_shipping_mode(mode) not in [m.value for m in ShippingMode]:
        errors.append(f"Unknown shipping mode '{mode}'.")

    incoterms = variables.get('offer_incoterms')
    if incoterms and str(incoterms).upper() not in [i.value for i in Incoterms]:
        errors.append(f"Unknown incoterm '{incoterms}'. Use EXW, FOB or CIF.")

    # Amounts
    for field, label in NON_NEGATIVE_FIELDS.items():
        value = variables.get(field)
        if value is None or value == "":
            continue
        if not _is_number(value) or safe_decimal(value) < 0:
            errors.append(f"{label} cannot be negative ({field}={value!r}).")

    for field, label in PERCENT_FIELDS.items():
        value = variables.get(field)
        if value is None or value == "":
            continue
        parsed = safe_decimal(value, None)
        if parsed is None or parsed < 0 or parsed > 100:
            errors.append(f"{label} must be between 0 and 100 ({field}={value!r}).")

    for origin, pct in (variables.get('origin_duty_pct') or {}).items():
        parsed = safe_decimal(pct, None)
        if parsed is None or parsed < 0 or parsed > 100:
            errors.append(f"Duty (%) for origin '{origin}' must be between 0 and 100.")

    # Exchange rates
    for code, rate in (variables.get('fx_rates') or {}).items():
        if str(code).upper() not in [c.value for c in Currency]:
            errors.append(f"Unknown currency '{code}' in exchange rates.")
            continue
        parsed = safe_decimal(rate, None)
        if parsed is None or parsed <= 0:
            errors.append(f"Exchange rate {code}→EUR must be greater than 0, got {rate!r}.")

    factor = variables.get('air_volumetric_factor')
    if factor is not None and factor != "":
        parsed = safe_decimal(factor, None)
        if parsed is None or parsed <= 0:
            errors.append(f"Air volumetric factor must be greater than 0, got {factor!r}.")

    # Tier tables
    for field, label in TIER_FIELDS.items():
        for index, row in enumerate(variables.get(field) or [], 1):
            try:
                threshold, rate = _tier_row(row)
            except (TypeError, ValueError):
                errors.append(f"{label} tier {index} must be a (threshold, rate) pair, got {row!r}.")
                continue

            if not is_unbounded_threshold(threshold):
                parsed = safe_decimal(threshold, None)
                if parsed is None or parsed <= 0:
                    errors.append(f"{label} tier {index}: threshold must be a number > 0, got {threshold!r}.")

            parsed = None if rate is None or rate == "" else safe_decimal(rate, None)
            if parsed is None or parsed < 0:
                errors.append(f"{label} tier {index}: rate must be a number >= 0, got {rate!r}.")

    return errors
