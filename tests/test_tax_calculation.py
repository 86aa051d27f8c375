"""
Tests for customs and tax calculation

Tests cover:
- Insurance over goods + freight
- Customs base by incoterm (CIF excludes freight and insurance)
- Effective duty rate (ignore flag, origin table, manual %)
- VAT base and amount
"""

from decimal import Decimal

import pytest

from landed_cost_engine import calculate_taxes, get_effective_duty_rate
from landed_cost_models import TaxesAndDuties, FeeParams, Incoterms, Origin


GOODS = Decimal("27600")
FREIGHT = Decimal("524")


# =============================================================================
# TESTS: Insurance and customs base
# =============================================================================

class TestCustomsBase:
    """Tests for insurance and customs base"""

    def test_insurance_over_goods_and_freight(self, reference_input):
        """0.5% of 28124"""
        taxes = calculate_taxes(reference_input, GOODS, FREIGHT)

        assert taxes.insurance == Decimal("140.62")

    @pytest.mark.parametrize("incoterms", [Incoterms.EXW, Incoterms.FOB])
    def test_exw_fob_include_freight_and_insurance(self, make_input, incoterms):
        """Customs base = goods + freight + insurance"""
        taxes = calculate_taxes(make_input(incoterms=incoterms), GOODS, FREIGHT)

        assert taxes.customs_base == Decimal("28264.62")

    def test_cif_excludes_freight_and_insurance(self, make_input):
        """CIF price already embeds freight and insurance"""
        taxes = calculate_taxes(make_input(incoterms=Incoterms.CIF), GOODS, FREIGHT)

        assert taxes.customs_base == GOODS
        # Insurance is still computed for the landed cost
        assert taxes.insurance == Decimal("140.62")

    @pytest.mark.parametrize("incoterms,expected", [
        (Incoterms.CIF, Decimal("27800")),
        (Incoterms.EXW, Decimal("28464.62")),
    ])
    def test_local_origin_transport_always_added(self, make_input, incoterms, expected):
        """Pre-carriage joins the customs base for every incoterm"""
        inputs = make_input(incoterms=incoterms, local_origin_transport=Decimal("200"))
        taxes = calculate_taxes(inputs, GOODS, FREIGHT)

        assert taxes.customs_base == expected


# =============================================================================
# TESTS: Duty
# =============================================================================

class TestDuty:
    """Tests for effective duty rate and amount"""

    def test_ignore_duty_wins(self, make_input):
        """ignore_duty zeroes duty whatever the rates say"""
        policy = TaxesAndDuties(
            ignore_duty=True,
            use_origin_duty_table=True,
            duty_pct=Decimal("12"),
            origin_duty_pct={Origin.CHINA: Decimal("8"), Origin.OTHER: Decimal("5")}
        )
        inputs = make_input(taxes=policy)
        taxes = calculate_taxes(inputs, GOODS, FREIGHT)

        assert get_effective_duty_rate(inputs) == Decimal("0")
        assert taxes.duty_rate == Decimal("0")
        assert taxes.duty_amount == Decimal("0")

    def test_manual_duty(self, make_input):
        """Manual % applies when the origin table is off"""
        policy = TaxesAndDuties(ignore_duty=False, duty_pct=Decimal("4"))
        taxes = calculate_taxes(make_input(taxes=policy), GOODS, FREIGHT)

        assert taxes.duty_rate == Decimal("4")
        assert taxes.duty_amount == Decimal("28264.62") * Decimal("4") / Decimal("100")

    def test_origin_table_by_product_origin(self, make_input):
        """Lookup uses product origin, not shipment origin"""
        policy = TaxesAndDuties(
            ignore_duty=False,
            use_origin_duty_table=True,
            duty_pct=Decimal("99"),
            origin_duty_pct={Origin.KOREA: Decimal("8"), Origin.HONG_KONG: Decimal("1")}
        )
        inputs = make_input(
            taxes=policy,
            product_origin=Origin.KOREA,
            shipment_origin=Origin.HONG_KONG
        )

        assert get_effective_duty_rate(inputs) == Decimal("8")

    def test_origin_table_falls_back_to_other(self, make_input):
        """Origins missing from the table use the Other entry"""
        policy = TaxesAndDuties(
            ignore_duty=False,
            use_origin_duty_table=True,
            origin_duty_pct={Origin.CHINA: Decimal("3"), Origin.OTHER: Decimal("6")}
        )
        inputs = make_input(taxes=policy, product_origin=Origin.BRAZIL)

        assert get_effective_duty_rate(inputs) == Decimal("6")

    def test_origin_table_without_other_is_zero(self, make_input):
        """No entry and no Other entry means no duty"""
        policy = TaxesAndDuties(
            ignore_duty=False,
            use_origin_duty_table=True,
            origin_duty_pct={Origin.CHINA: Decimal("3")}
        )
        inputs = make_input(taxes=policy, product_origin=Origin.KOREA)

        assert get_effective_duty_rate(inputs) == Decimal("0")

    def test_zero_origin_rate_is_not_replaced(self, make_input):
        """An explicit 0% entry is used, not the Other fallback"""
        policy = TaxesAndDuties(
            ignore_duty=False,
            use_origin_duty_table=True,
            origin_duty_pct={Origin.CHINA: Decimal("0"), Origin.OTHER: Decimal("6")}
        )

        assert get_effective_duty_rate(make_input(taxes=policy)) == Decimal("0")


# =============================================================================
# TESTS: VAT
# =============================================================================

class TestVat:
    """Tests for VAT base and amount"""

    def test_vat_base_includes_duty_and_fees(self, make_input):
        """VAT base = customs base + duty + brokerage + port + other"""
        policy = TaxesAndDuties(ignore_duty=False, duty_pct=Decimal("10"))
        taxes = calculate_taxes(make_input(taxes=policy), GOODS, FREIGHT)

        duty = Decimal("2826.462")
        assert taxes.duty_amount == duty
        assert taxes.vat_base == Decimal("28264.62") + duty + Decimal("320")
        assert taxes.vat_amount == taxes.vat_base * Decimal("23") / Decimal("100")

    def test_reference_vat(self, reference_input):
        """23% of 28584.62"""
        taxes = calculate_taxes(reference_input, GOODS, FREIGHT)

        assert taxes.vat_base == Decimal("28584.62")
        assert taxes.vat_amount == Decimal("6574.4626")

    def test_zero_fees(self, make_input):
        """Without fees the VAT base equals customs base + duty"""
        fees = FeeParams(
            insurance_pct=Decimal("0"),
            brokerage_fee=Decimal("0"),
            port_fee=Decimal("0"),
            other_fees=Decimal("0")
        )
        taxes = calculate_taxes(make_input(fees=fees), GOODS, FREIGHT)

        assert taxes.insurance == Decimal("0")
        assert taxes.vat_base == GOODS + FREIGHT
