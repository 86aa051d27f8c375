"""
Landed Cost Calculator - Calculation Engine
Implements the landed cost pipeline for a single import shipment.

PIPELINE (strictly ordered, no circular dependencies):
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
1. Goods value: unit price × quantity × FX (supplier currency → EUR)
2. Freight: tiered air / LCL rates or flat FCL container prices
3. Insurance: (goods + freight) × insurance %
4. Customs base: goods (+ freight + insurance unless CIF) + local origin transport
5. Duty: customs base × effective duty %
6. VAT: (customs base + duty + fees) × VAT %
7. Landed cost: everything above, VAT only when not recoverable

The sensitivity curve re-runs 1-7 for each sampled quantity.
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Values are NOT rounded inside the pipeline; round_decimal() is for display
and export only, so unit_landed == landed_incl_vat / quantity holds exactly.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_CEILING
from typing import Dict, List, Optional
import logging

from landed_cost_models import (
    LandedCostInput,
    RateTier,
    FreightResult,
    TaxResult,
    CostComponent,
    LandedCostResult,
    SensitivityPoint,
    ShippingMode,
    Incoterms,
    Origin,
    AIR_MODES,
    FCL_MODES,
)
from services.currency_service import get_fx_rate
from services.format_service import format_number_pt

logger = logging.getLogger(__name__)


# ============================================================================
# SENSITIVITY SAMPLING CONSTANTS
# ============================================================================

SENSITIVITY_MIN_QUANTITY = 10
SENSITIVITY_MIN_UPPER_QUANTITY = 2000  # Upper end is max(this, 2 × quantity)
SENSITIVITY_STEPS = 40                 # 41 points including both ends


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def round_decimal(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Round decimal to specified places using ROUND_HALF_UP (display/export only)"""
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def lookup_tier_rate(tiers: List[RateTier], value: Decimal) -> Decimal:
    """
    Resolve the rate for a chargeable quantity.

    First tier (ascending) whose threshold is >= value wins; the unbounded
    tier matches anything. A value above every finite threshold falls back
    to the last tier's rate.
    """
    if not tiers:
        raise ValueError("Cannot look up a rate in an empty tier table")

    for tier in tiers:
        if tier.is_unbounded or value <= tier.threshold:
            return tier.rate

    return tiers[-1].rate


def get_effective_duty_rate(inputs: LandedCostInput) -> Decimal:
    """
    Duty % applied to the customs base.

    ignore_duty wins over everything. The origin table is keyed by product
    origin (not shipment origin), falling back to the OTHER entry.
    """
    taxes = inputs.taxes
    if taxes.ignore_duty:
        return Decimal("0")

    if taxes.use_origin_duty_table:
        table = taxes.origin_duty_pct
        origin = inputs.shipment.product_origin
        if origin in table:
            return table[origin]
        return table.get(Origin.OTHER, Decimal("0"))

    return taxes.duty_pct


# ============================================================================
# PHASE 1: GOODS VALUE
# ============================================================================

def phase1_goods_value(inputs: LandedCostInput, quantity: int) -> Dict[str, Decimal]:
    """
    Convert supplier price to EUR

    Returns: fx_rate, goods_value_eur
    """
    fx_rate = get_fx_rate(inputs.fx_rates, inputs.product.currency_of_unit_price)
    goods_value_eur = inputs.product.unit_price * Decimal(quantity) * fx_rate

    return {
        "fx_rate": fx_rate,
        "goods_value_eur": goods_value_eur
    }


# ============================================================================
# PHASE 2: FREIGHT
# ============================================================================

def _air_freight(inputs: LandedCostInput, volume: Decimal, weight: Decimal) -> FreightResult:
    air = inputs.freight.air
    volumetric = volume * air.volumetric_factor
    chargeable = max(weight, volumetric, air.min_chargeable_kg)
    rate = lookup_tier_rate(air.tiers, chargeable)
    cost = chargeable * rate + air.fixed_fees

    return FreightResult(
        shipping_mode=inputs.shipment.shipping_mode,
        cost=cost,
        basis=f"Chargeable weight {format_number_pt(chargeable)} kg @ {format_number_pt(rate, 2)} €/kg",
        total_volume_cbm=volume,
        total_weight_kg=weight,
        volumetric_weight_kg=volumetric,
        chargeable_weight_kg=chargeable,
        rate=rate
    )


def _lcl_freight(inputs: LandedCostInput, volume: Decimal, weight: Decimal) -> FreightResult:
    lcl = inputs.freight.lcl
    chargeable = max(volume, lcl.min_cbm)
    rate = lookup_tier_rate(lcl.tiers, chargeable)
    cost = chargeable * rate + lcl.fixed_fees

    return FreightResult(
        shipping_mode=inputs.shipment.shipping_mode,
        cost=cost,
        basis=f"Chargeable volume {format_number_pt(chargeable, 2)} m³ @ {format_number_pt(rate, 0)} €/m³",
        total_volume_cbm=volume,
        total_weight_kg=weight,
        chargeable_volume_cbm=chargeable,
        rate=rate
    )


def _fcl_freight(inputs: LandedCostInput, volume: Decimal, weight: Decimal) -> FreightResult:
    fcl = inputs.freight.fcl
    if inputs.shipment.shipping_mode == ShippingMode.SEA_FCL_20:
        capacity, price, size = fcl.capacity_20_cbm, fcl.price_20, "20'"
    else:
        capacity, price, size = fcl.capacity_40_cbm, fcl.price_40, "40'"

    containers = max(1, int((volume / capacity).to_integral_value(rounding=ROUND_CEILING)))
    cost = price * Decimal(containers) + fcl.fixed_fees
    utilization = volume / (Decimal(containers) * capacity)

    return FreightResult(
        shipping_mode=inputs.shipment.shipping_mode,
        cost=cost,
        basis=f"{containers}x {size} (utilization {format_number_pt(utilization * Decimal('100'), 1)}%)",
        total_volume_cbm=volume,
        total_weight_kg=weight,
        container_count=containers,
        utilization=utilization
    )


def calculate_freight(inputs: LandedCostInput, quantity: Optional[int] = None) -> FreightResult:
    """
    Calculate freight cost for a quantity (defaults to the configured one)

    Volume and weight scale linearly with quantity; the mode decides how
    they are charged.
    """
    if quantity is None:
        quantity = inputs.product.quantity

    volume = inputs.product.unit_volume_m3 * Decimal(quantity)
    weight = inputs.product.unit_weight_kg * Decimal(quantity)
    mode = inputs.shipment.shipping_mode

    if mode in AIR_MODES:
        return _air_freight(inputs, volume, weight)
    if mode == ShippingMode.SEA_LCL:
        return _lcl_freight(inputs, volume, weight)
    if mode in FCL_MODES:
        return _fcl_freight(inputs, volume, weight)

    # Unreachable with a validated ShippingMode; kept so a new enum member
    # without a tariff shows up as zero freight instead of an exception.
    logger.warning(f"No freight tariff for shipping mode {mode!r}, freight set to 0")
    return FreightResult(
        shipping_mode=None,
        cost=Decimal("0"),
        basis="",
        total_volume_cbm=volume,
        total_weight_kg=weight
    )


# ============================================================================
# PHASE 3-6: INSURANCE, CUSTOMS BASE, DUTY, VAT
# ============================================================================

def calculate_taxes(
    inputs: LandedCostInput,
    goods_value_eur: Decimal,
    freight_cost_eur: Decimal
) -> TaxResult:
    """
    Calculate insurance, customs base, duty and VAT

    CIF prices already embed freight and insurance, so the customs base is
    the goods value alone. Local origin transport (pre-carriage paid by the
    importer) is added to the base for every incoterm.
    """
    fees = inputs.fees
    hundred = Decimal("100")

    # Insurance over goods + freight
    insurance = (goods_value_eur + freight_cost_eur) * fees.insurance_pct / hundred

    # Customs base
    if inputs.shipment.offer_incoterms == Incoterms.CIF:
        customs_base = goods_value_eur
    else:
        customs_base = goods_value_eur + freight_cost_eur + insurance
    customs_base += inputs.shipment.local_origin_transport

    # Duty
    duty_rate = get_effective_duty_rate(inputs)
    duty_amount = customs_base * duty_rate / hundred

    # VAT base: customs base + duty + eligible fees
    vat_base = customs_base + duty_amount + fees.brokerage_fee + fees.port_fee + fees.other_fees
    vat_amount = vat_base * inputs.taxes.vat_pct / hundred

    return TaxResult(
        insurance=insurance,
        customs_base=customs_base,
        duty_rate=duty_rate,
        duty_amount=duty_amount,
        vat_base=vat_base,
        vat_amount=vat_amount
    )


# ============================================================================
# PHASE 7: LANDED COST
# ============================================================================

def build_composition(
    inputs: LandedCostInput,
    goods_value_eur: Decimal,
    freight: FreightResult,
    taxes: TaxResult
) -> List[CostComponent]:
    """Ordered cost breakdown, zero-valued components omitted"""
    fees = inputs.fees
    components = [
        CostComponent(code="goods", name="Goods", value=goods_value_eur),
        CostComponent(code="local_transport", name="Local transport (origin)", value=inputs.shipment.local_origin_transport),
        CostComponent(code="freight", name=f"Freight ({inputs.shipment.shipment_origin.value})", value=freight.cost),
        CostComponent(code="insurance", name="Insurance", value=taxes.insurance),
        CostComponent(code="duty", name="Duty", value=taxes.duty_amount),
        CostComponent(code="brokerage", name="Brokerage", value=fees.brokerage_fee),
        CostComponent(code="port_fee", name="Port / THC", value=fees.port_fee),
        CostComponent(code="other_fees", name="Other fees", value=fees.other_fees),
    ]
    return [c for c in components if c.value != 0]


def calculate_landed_cost(inputs: LandedCostInput) -> LandedCostResult:
    """
    Calculate landed cost for the configured quantity
    Orchestrates all phases in order
    """
    quantity = inputs.product.quantity

    # PHASE 1: Goods value
    phase1_results = phase1_goods_value(inputs, quantity)
    goods_value_eur = phase1_results["goods_value_eur"]

    # PHASE 2: Freight
    freight = calculate_freight(inputs, quantity)

    # PHASE 3-6: Insurance, customs base, duty, VAT
    taxes = calculate_taxes(inputs, goods_value_eur, freight.cost)

    # PHASE 7: Landed cost
    fees = inputs.fees
    landed_ex_vat = (
        goods_value_eur +
        inputs.shipment.local_origin_transport +
        freight.cost +
        taxes.insurance +
        taxes.duty_amount +
        fees.brokerage_fee +
        fees.port_fee +
        fees.other_fees
    )

    vat_included = not inputs.taxes.vat_recoverable
    landed_incl_vat = landed_ex_vat + (taxes.vat_amount if vat_included else Decimal("0"))

    # Quantity is validated > 0; clamp anyway so a constructed model cannot divide by zero
    unit_landed = landed_incl_vat / Decimal(max(quantity, 1))

    return LandedCostResult(
        quantity=quantity,
        fx_rate=phase1_results["fx_rate"],
        goods_value_eur=goods_value_eur,
        freight=freight,
        taxes=taxes,
        landed_ex_vat=landed_ex_vat,
        landed_incl_vat=landed_incl_vat,
        unit_landed=unit_landed,
        vat_included=vat_included,
        composition=build_composition(inputs, goods_value_eur, freight, taxes)
    )


# ============================================================================
# SENSITIVITY CURVE
# ============================================================================

def get_sensitivity_quantities(
    quantity: int,
    min_quantity: int = SENSITIVITY_MIN_QUANTITY,
    steps: int = SENSITIVITY_STEPS
) -> List[int]:
    """
    Evenly spaced quantities from min_quantity to max(2000, 2 × quantity)

    Points are rounded half-up to whole units; steps + 1 points in total.
    """
    q_min = Decimal(min_quantity)
    q_max = Decimal(max(SENSITIVITY_MIN_UPPER_QUANTITY, quantity * 2))
    span = q_max - q_min

    return [
        int((q_min + Decimal(i) * span / Decimal(steps)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        for i in range(steps + 1)
    ]


def calculate_sensitivity(
    inputs: LandedCostInput,
    min_quantity: int = SENSITIVITY_MIN_QUANTITY,
    steps: int = SENSITIVITY_STEPS
) -> List[SensitivityPoint]:
    """
    Unit landed cost across quantities (economies of scale)

    Every point is a full calculate_landed_cost() run on a copy of the
    configuration with only the quantity replaced.
    """
    points = []
    for q in get_sensitivity_quantities(inputs.product.quantity, min_quantity, steps):
        result = calculate_landed_cost(inputs.with_quantity(q))
        points.append(SensitivityPoint(quantity=q, unit_cost=result.unit_landed))

    return points


# ============================================================================
# EXPORT FOR USE IN API
# ============================================================================

__all__ = [
    'calculate_freight',
    'calculate_taxes',
    'calculate_landed_cost',
    'calculate_sensitivity',
    'get_sensitivity_quantities',
    'get_effective_duty_rate',
    'lookup_tier_rate',
    'round_decimal'
]
