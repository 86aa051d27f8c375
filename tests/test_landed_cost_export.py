"""
Tests for landed cost Excel export
"""

from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import load_workbook

from landed_cost_engine import calculate_landed_cost, calculate_sensitivity
from landed_cost_models import TaxesAndDuties
from services.landed_cost_export import create_landed_cost_excel


def _column_a_rows(ws):
    """Label in column A → row number"""
    return {ws.cell(row=r, column=1).value: r for r in range(1, ws.max_row + 1)}


@pytest.fixture
def workbook(reference_input):
    result = calculate_landed_cost(reference_input)
    sensitivity = calculate_sensitivity(reference_input)
    data = create_landed_cost_excel(reference_input, result, sensitivity)
    return load_workbook(BytesIO(data))


class TestLandedCostExport:
    """Tests for create_landed_cost_excel"""

    def test_sheets(self, workbook):
        assert workbook.sheetnames == ["Summary", "Composition", "Sensitivity"]

    def test_sensitivity_sheet_optional(self, reference_input):
        result = calculate_landed_cost(reference_input)
        wb = load_workbook(BytesIO(create_landed_cost_excel(reference_input, result)))

        assert wb.sheetnames == ["Summary", "Composition"]

    def test_summary_totals(self, workbook):
        ws = workbook["Summary"]
        rows = _column_a_rows(ws)

        assert ws.cell(row=rows["Shipping mode:"], column=2).value == "air-cargo"
        assert ws.cell(row=rows["Quantity:"], column=2).value == 100
        assert ws.cell(row=rows["Goods value"], column=2).value == pytest.approx(27600.0)
        assert ws.cell(row=rows["Freight"], column=2).value == pytest.approx(524.0)
        assert ws.cell(row=rows["Landed cost ex VAT"], column=2).value == pytest.approx(28584.62)
        assert ws.cell(row=rows["Unit landed cost"], column=2).value == pytest.approx(285.85)
        assert ws.cell(row=rows["VAT"], column=3).value == "recoverable"

    @pytest.mark.parametrize("duty_pct,note", [
        (Decimal("0"), "0,00%"),
        (Decimal("4.5"), "4,50%"),
    ])
    def test_duty_note_is_pt_percent(self, make_input, duty_pct, note):
        inputs = make_input(taxes=TaxesAndDuties(ignore_duty=False, duty_pct=duty_pct))
        data = create_landed_cost_excel(inputs, calculate_landed_cost(inputs))
        ws = load_workbook(BytesIO(data))["Summary"]

        assert ws.cell(row=_column_a_rows(ws)["Duty"], column=3).value == note

    def test_composition_shares_rounded(self, workbook):
        """Goods share 27600 / 28584.62 = 0.965554... is written as 0.9656"""
        ws = workbook["Composition"]

        assert ws.cell(row=2, column=3).value == 0.9656

    def test_composition_rows(self, workbook):
        ws = workbook["Composition"]
        names = [ws.cell(row=r, column=1).value for r in range(2, ws.max_row + 1)]

        assert names == [
            "Goods", "Freight (China)", "Insurance",
            "Brokerage", "Port / THC", "Other fees", "Total"
        ]
        assert ws.cell(row=ws.max_row, column=2).value == pytest.approx(28584.62)

    def test_sensitivity_rows(self, workbook):
        ws = workbook["Sensitivity"]

        assert ws.max_row == 42
        assert ws.cell(row=2, column=1).value == 10
        assert ws.cell(row=42, column=1).value == 2000
