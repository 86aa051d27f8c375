"""
Landed Cost Calculator - Calculation Models
Pydantic models for landed cost inputs and results with import-specific validation

All monetary amounts are EUR unless a field says otherwise. Percentages are
stored as human percentages (23 = 23%); the engine divides by 100.
"""

from decimal import Decimal
from typing import Optional, List, Dict
from pydantic import BaseModel, Field, validator
from enum import Enum


# ============================================================================
# ENUMS - Dropdown/Select Values
# ============================================================================

class Currency(str, Enum):
    """Supplier currencies with a default EUR rate"""
    EUR = "EUR"
    USD = "USD"
    CNY = "CNY"
    KRW = "KRW"  # South Korean Won
    HKD = "HKD"  # Hong Kong Dollar
    BRL = "BRL"  # Brazilian Real


class Origin(str, Enum):
    """Product / shipment origins (OTHER is the catch-all sentinel)"""
    CHINA = "China"
    KOREA = "Korea"
    HONG_KONG = "Hong Kong"
    BRAZIL = "Brazil"
    OTHER = "Other"


class ShippingMode(str, Enum):
    """Freight modes"""
    AIR_EXPRESS = "air-express"
    AIR_CARGO = "air-cargo"
    SEA_LCL = "sea-lcl"          # Less than container load
    SEA_FCL_20 = "sea-fcl-20"    # Full container, 20'
    SEA_FCL_40 = "sea-fcl-40"    # Full container, 40'


class Incoterms(str, Enum):
    """INCOTERMS of the supplier price"""
    EXW = "EXW"  # Ex Works
    FOB = "FOB"  # Free On Board
    CIF = "CIF"  # Cost, Insurance, Freight


AIR_MODES = (ShippingMode.AIR_EXPRESS, ShippingMode.AIR_CARGO)
FCL_MODES = (ShippingMode.SEA_FCL_20, ShippingMode.SEA_FCL_40)


# ============================================================================
# DEFAULT TABLES (editable by the caller)
# ============================================================================

# Currency → EUR (EUR = 1)
DEFAULT_FX_RATES = {
    Currency.EUR: Decimal("1"),
    Currency.USD: Decimal("0.92"),
    Currency.CNY: Decimal("0.128"),
    Currency.KRW: Decimal("0.00067"),
    Currency.HKD: Decimal("0.118"),
    Currency.BRL: Decimal("0.18"),
}

# Duty % by product origin (flat, user supplied; not an HS tariff schedule)
DEFAULT_ORIGIN_DUTY_PCT = {
    Origin.CHINA: Decimal("0"),
    Origin.KOREA: Decimal("0"),
    Origin.HONG_KONG: Decimal("0"),
    Origin.BRAZIL: Decimal("0"),
    Origin.OTHER: Decimal("0"),
}


# ============================================================================
# BASE MODEL
# ============================================================================

class FrozenModel(BaseModel):
    """Immutable model: a changed parameter means a new configuration"""

    class Config:
        frozen = True


# ============================================================================
# FREIGHT RATE TABLES
# ============================================================================

class RateTier(FrozenModel):
    """Threshold/rate pair. threshold=None marks the open-ended terminal tier."""
    threshold: Optional[Decimal] = Field(default=None, gt=0, description="Upper bound (kg or m³), None = no upper bound")
    rate: Decimal = Field(..., ge=0, description="EUR per kg or per m³")

    @property
    def is_unbounded(self) -> bool:
        return self.threshold is None


def validate_tier_sequence(tiers: List[RateTier]) -> List[RateTier]:
    """Tiers must be non-empty, strictly increasing, unbounded tier last"""
    if not tiers:
        raise ValueError("Rate tier table cannot be empty")

    previous = None
    for index, tier in enumerate(tiers):
        if tier.is_unbounded:
            if index != len(tiers) - 1:
                raise ValueError("Only the last rate tier may have no upper bound")
            continue
        if previous is not None and tier.threshold <= previous:
            raise ValueError(
                f"Rate tier thresholds must be strictly increasing ({tier.threshold} after {previous})"
            )
        previous = tier.threshold
    return tiers


DEFAULT_AIR_TIERS = [
    RateTier(threshold=Decimal("45"), rate=Decimal("6.5")),
    RateTier(threshold=Decimal("100"), rate=Decimal("5.8")),
    RateTier(threshold=Decimal("300"), rate=Decimal("5.0")),
    RateTier(threshold=Decimal("500"), rate=Decimal("4.6")),
    RateTier(threshold=None, rate=Decimal("4.2")),
]

DEFAULT_LCL_TIERS = [
    RateTier(threshold=Decimal("2"), rate=Decimal("180")),
    RateTier(threshold=Decimal("5"), rate=Decimal("150")),
    RateTier(threshold=Decimal("10"), rate=Decimal("120")),
    RateTier(threshold=None, rate=Decimal("100")),
]


class AirFreightRates(FrozenModel):
    """Air tariff (express and cargo share it), tiered by chargeable kg"""
    tiers: List[RateTier] = Field(default_factory=lambda: list(DEFAULT_AIR_TIERS), description="Tiers by chargeable kg")
    volumetric_factor: Decimal = Field(default=Decimal("167"), gt=0, description="kg per m³ (IATA ~167)")
    min_chargeable_kg: Decimal = Field(default=Decimal("45"), ge=0, description="Minimum charged weight")
    fixed_fees: Decimal = Field(default=Decimal("60"), ge=0, description="Docs / origin / destination fees")

    @validator('tiers')
    def validate_tiers(cls, v):
        return validate_tier_sequence(v)


class LclFreightRates(FrozenModel):
    """Sea LCL tariff, tiered by chargeable m³"""
    tiers: List[RateTier] = Field(default_factory=lambda: list(DEFAULT_LCL_TIERS), description="Tiers by chargeable m³")
    min_cbm: Decimal = Field(default=Decimal("1"), ge=0, description="Minimum charged volume")
    fixed_fees: Decimal = Field(default=Decimal("120"), ge=0, description="Fixed LCL fees")

    @validator('tiers')
    def validate_tiers(cls, v):
        return validate_tier_sequence(v)


class FclFreightRates(FrozenModel):
    """Sea FCL flat container prices"""
    price_20: Decimal = Field(default=Decimal("1800"), ge=0, description="Price per 20' container")
    price_40: Decimal = Field(default=Decimal("2300"), ge=0, description="Price per 40' container")
    capacity_20_cbm: Decimal = Field(default=Decimal("33.2"), gt=0, description="Usable m³ of a 20' container")
    capacity_40_cbm: Decimal = Field(default=Decimal("67.7"), gt=0, description="Usable m³ of a 40' container")
    fixed_fees: Decimal = Field(default=Decimal("300"), ge=0, description="Fixed FCL fees")


class FreightRates(FrozenModel):
    """All freight tariffs"""
    air: AirFreightRates = Field(default_factory=AirFreightRates)
    lcl: LclFreightRates = Field(default_factory=LclFreightRates)
    fcl: FclFreightRates = Field(default_factory=FclFreightRates)


# ============================================================================
# CATEGORY-BASED INPUT MODELS
# ============================================================================

class ProductInfo(FrozenModel):
    """Product and packing inputs"""
    unit_price: Decimal = Field(..., ge=0, description="Price per unit in supplier currency")
    currency_of_unit_price: Currency = Field(default=Currency.USD, description="Supplier currency")
    quantity: int = Field(..., gt=0, description="Number of units")
    unit_weight_kg: Decimal = Field(default=Decimal("0"), ge=0, description="Weight per unit (kg)")
    length_cm: Decimal = Field(default=Decimal("0"), ge=0, description="Unit length (cm)")
    width_cm: Decimal = Field(default=Decimal("0"), ge=0, description="Unit width (cm)")
    height_cm: Decimal = Field(default=Decimal("0"), ge=0, description="Unit height (cm)")

    @property
    def unit_volume_m3(self) -> Decimal:
        """L×W×H converted from cm to m³"""
        return (self.length_cm / Decimal("100")) * (self.width_cm / Decimal("100")) * (self.height_cm / Decimal("100"))


class ShipmentParams(FrozenModel):
    """Routing and commercial terms"""
    product_origin: Origin = Field(default=Origin.CHINA, description="Country of manufacture (customs origin)")
    shipment_origin: Origin = Field(default=Origin.CHINA, description="Departure point for freight")
    shipping_mode: ShippingMode = Field(default=ShippingMode.AIR_CARGO, description="Freight mode")
    offer_incoterms: Incoterms = Field(default=Incoterms.EXW, description="INCOTERMS of supplier price")
    local_origin_transport: Decimal = Field(default=Decimal("0"), ge=0, description="Pre-carriage at origin (e.g. China → Hong Kong)")


class FeeParams(FrozenModel):
    """Insurance and fixed clearance fees"""
    insurance_pct: Decimal = Field(default=Decimal("0.5"), ge=0, le=100, description="Insurance % over goods + freight")
    brokerage_fee: Decimal = Field(default=Decimal("120"), ge=0, description="Customs broker fee")
    port_fee: Decimal = Field(default=Decimal("150"), ge=0, description="Port / THC handling")
    other_fees: Decimal = Field(default=Decimal("50"), ge=0, description="Other fixed fees")


class TaxesAndDuties(FrozenModel):
    """Duty and VAT policy"""
    ignore_duty: bool = Field(default=True, description="Skip duty entirely")
    use_origin_duty_table: bool = Field(default=False, description="Duty % from origin table instead of manual %")
    duty_pct: Decimal = Field(default=Decimal("0"), ge=0, le=100, description="Manual duty % over customs base")
    origin_duty_pct: Dict[Origin, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_ORIGIN_DUTY_PCT),
        description="Duty % by product origin"
    )
    vat_pct: Decimal = Field(default=Decimal("23"), ge=0, le=100, description="Import VAT %")
    vat_recoverable: bool = Field(default=True, description="Recoverable VAT is excluded from landed cost")

    @validator('origin_duty_pct')
    def validate_origin_duty_pct(cls, v):
        """Each origin duty % must lie in 0..100"""
        for origin, pct in v.items():
            if pct < 0 or pct > 100:
                raise ValueError(f"Duty % for {origin.value} must be between 0 and 100")
        return v


# ============================================================================
# MAIN CALCULATION INPUT MODEL
# ============================================================================

class LandedCostInput(FrozenModel):
    """
    Complete configuration for one landed cost computation
    Combines all category models
    """
    # Product and packing
    product: ProductInfo

    # Routing, mode, incoterms
    shipment: ShipmentParams = Field(default_factory=ShipmentParams)

    # Insurance and fees
    fees: FeeParams = Field(default_factory=FeeParams)

    # Duty and VAT policy
    taxes: TaxesAndDuties = Field(default_factory=TaxesAndDuties)

    # Currency → EUR
    fx_rates: Dict[Currency, Decimal] = Field(default_factory=lambda: dict(DEFAULT_FX_RATES))

    # Freight tariffs
    freight: FreightRates = Field(default_factory=FreightRates)

    @validator('fx_rates')
    def validate_fx_rates(cls, v):
        """Exchange rates must be strictly positive"""
        for currency, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Exchange rate for {currency.value} must be greater than 0")
        return v

    def with_quantity(self, quantity: int) -> "LandedCostInput":
        """Copy of this configuration with another quantity (other fields untouched)"""
        return self.model_copy(update={
            "product": self.product.model_copy(update={"quantity": quantity})
        })

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "product": {
                    "unit_price": "300",
                    "currency_of_unit_price": "USD",
                    "quantity": 100,
                    "unit_weight_kg": "0.8",
                    "length_cm": "17",
                    "width_cm": "8",
                    "height_cm": "5"
                },
                "shipment": {
                    "product_origin": "China",
                    "shipment_origin": "Hong Kong",
                    "shipping_mode": "air-cargo",
                    "offer_incoterms": "EXW",
                    "local_origin_transport": "0"
                },
                "fees": {
                    "insurance_pct": "0.5",
                    "brokerage_fee": "120",
                    "port_fee": "150",
                    "other_fees": "50"
                },
                "taxes": {
                    "ignore_duty": True,
                    "vat_pct": "23",
                    "vat_recoverable": True
                }
            }
        }


# ============================================================================
# CALCULATION OUTPUT MODELS
# ============================================================================

class FreightResult(BaseModel):
    """Freight cost and the numbers behind it"""
    shipping_mode: Optional[ShippingMode] = Field(None, description="Mode priced (None when no tariff matched)")
    cost: Decimal = Field(..., description="Freight cost EUR")
    basis: str = Field(default="", description="Human-readable cost basis")
    total_volume_cbm: Decimal = Field(..., description="Shipment volume m³")
    total_weight_kg: Decimal = Field(..., description="Shipment actual weight kg")

    # Air
    volumetric_weight_kg: Optional[Decimal] = Field(None, description="Volume × volumetric factor")
    chargeable_weight_kg: Optional[Decimal] = Field(None, description="max(actual, volumetric, minimum)")

    # LCL
    chargeable_volume_cbm: Optional[Decimal] = Field(None, description="max(volume, minimum)")

    # Air / LCL
    rate: Optional[Decimal] = Field(None, description="Tier rate applied (EUR per kg or m³)")

    # FCL
    container_count: Optional[int] = Field(None, description="Containers needed")
    utilization: Optional[Decimal] = Field(None, description="Volume / container capacity (0..1)")


class TaxResult(BaseModel):
    """Insurance, customs base, duty and VAT"""
    insurance: Decimal = Field(..., description="(goods + freight) × insurance %")
    customs_base: Decimal = Field(..., description="Customs value incl. local origin transport")
    duty_rate: Decimal = Field(..., description="Effective duty %")
    duty_amount: Decimal = Field(..., description="customs base × duty %")
    vat_base: Decimal = Field(..., description="customs base + duty + fees")
    vat_amount: Decimal = Field(..., description="VAT base × VAT %")


class CostComponent(BaseModel):
    """One slice of the landed cost breakdown"""
    code: str = Field(..., description="Stable identifier")
    name: str = Field(..., description="Display name")
    value: Decimal = Field(..., description="Amount EUR")


class LandedCostResult(BaseModel):
    """Results for one configuration"""
    quantity: int = Field(..., description="Quantity priced")
    fx_rate: Decimal = Field(..., description="Supplier currency → EUR rate used")
    goods_value_eur: Decimal = Field(..., description="unit price × quantity × FX")

    freight: FreightResult
    taxes: TaxResult

    landed_ex_vat: Decimal = Field(..., description="All costs without VAT")
    landed_incl_vat: Decimal = Field(..., description="Landed ex VAT + non-recoverable VAT")
    unit_landed: Decimal = Field(..., description="landed incl VAT / quantity")
    vat_included: bool = Field(..., description="VAT counted in landed cost (not recoverable)")

    composition: List[CostComponent] = Field(default_factory=list, description="Non-zero components in display order")


class SensitivityPoint(BaseModel):
    """Unit landed cost at a sampled quantity"""
    quantity: int
    unit_cost: Decimal
