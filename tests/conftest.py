"""
Shared pytest fixtures for landed cost tests.

Provides:
- Reference scenario configuration (300 USD × 100 units by air cargo)
- Input factory with per-test overrides
- Flat form variables for mapper tests
"""

import os
import sys
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from landed_cost_models import (
    LandedCostInput,
    ProductInfo,
    ShipmentParams,
    FeeParams,
    TaxesAndDuties,
    Currency,
    Origin,
    ShippingMode,
    Incoterms,
)


# ============================================================================
# FACTORIES
# ============================================================================

def make_product(
    unit_price=Decimal("300"),
    currency=Currency.USD,
    quantity=100,
    unit_weight_kg=Decimal("0.8"),
    length_cm=Decimal("17"),
    width_cm=Decimal("8"),
    height_cm=Decimal("5")
):
    """Create product info (defaults: reference scenario)."""
    return ProductInfo(
        unit_price=unit_price,
        currency_of_unit_price=currency,
        quantity=quantity,
        unit_weight_kg=unit_weight_kg,
        length_cm=length_cm,
        width_cm=width_cm,
        height_cm=height_cm
    )


def make_landed_cost_input(
    product=None,
    shipping_mode=ShippingMode.AIR_CARGO,
    incoterms=Incoterms.EXW,
    product_origin=Origin.CHINA,
    shipment_origin=Origin.CHINA,
    local_origin_transport=Decimal("0"),
    fees=None,
    taxes=None,
    **kwargs
):
    """Create a full configuration; extra kwargs go to LandedCostInput."""
    return LandedCostInput(
        product=product or make_product(),
        shipment=ShipmentParams(
            product_origin=product_origin,
            shipment_origin=shipment_origin,
            shipping_mode=shipping_mode,
            offer_incoterms=incoterms,
            local_origin_transport=local_origin_transport
        ),
        fees=fees or FeeParams(),
        taxes=taxes or TaxesAndDuties(),
        **kwargs
    )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def make_input():
    """Factory fixture for LandedCostInput."""
    return make_landed_cost_input


@pytest.fixture
def make_product_info():
    """Factory fixture for ProductInfo."""
    return make_product


@pytest.fixture
def reference_input():
    """300 USD × 100 units, air cargo, EXW, duty ignored, VAT recoverable."""
    return make_landed_cost_input()


@pytest.fixture
def sample_variables():
    """Flat form variables for the reference scenario."""
    return {
        "unit_price": "300",
        "currency": "USD",
        "quantity": "100",
        "unit_weight_kg": "0.8",
        "length_cm": "17",
        "width_cm": "8",
        "height_cm": "5",
        "product_origin": "China",
        "shipment_origin": "Hong Kong",
        "shipping_mode": "Aéreo (Carga)",
        "offer_incoterms": "EXW",
        "insurance_pct": "0.5",
        "brokerage_fee": "120",
        "port_fee": "150",
        "other_fees": "50",
        "ignore_duty": "on",
        "vat_pct": "23",
        "vat_recoverable": "on",
    }


@pytest.fixture
def clean_settings_env(monkeypatch):
    """Remove LANDED_COST_* overrides so defaults are predictable."""
    for key in list(os.environ):
        if key.startswith("LANDED_COST_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
