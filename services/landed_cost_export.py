"""
Landed Cost Excel Export Service

Generates an Excel workbook for one landed cost computation:
- Summary: configuration highlights and totals
- Composition: cost components and their share of landed cost ex VAT
- Sensitivity: unit landed cost per sampled quantity
"""

from decimal import Decimal
from typing import List, Optional
from datetime import datetime
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

import landed_cost_engine
from landed_cost_models import LandedCostInput, LandedCostResult, SensitivityPoint
from services.format_service import format_percent


# Color definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=10)
SUBHEADER_FILL = PatternFill(start_color="D9E2F3", end_color="D9E2F3", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

MONEY_FORMAT = '#,##0.00'
RATE_FORMAT = '0.0000'
PERCENT_FORMAT = '0.00%'


def _amount(value: Optional[Decimal], decimal_places: int = 2) -> float:
    """Round for display; the workbook never feeds back into the engine"""
    if value is None:
        return 0.0
    return float(landed_cost_engine.round_decimal(value, decimal_places))


def _write_header(ws, row: int, headers: List[str]) -> None:
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=row, column=col)
        cell.value = header
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal='center', wrap_text=True)
        cell.border = THIN_BORDER


def _write_summary(ws, inputs: LandedCostInput, result: LandedCostResult) -> None:
    ws.title = "Summary"

    row = 1
    ws.merge_cells(f'A{row}:C{row}')
    ws[f'A{row}'] = "LANDED COST ESTIMATE"
    ws[f'A{row}'].font = Font(bold=True, size=14)
    ws[f'A{row}'].alignment = Alignment(horizontal='center')
    row += 2

    shipment = inputs.shipment
    info_data = [
        ("Date:", datetime.now().strftime("%d.%m.%Y")),
        ("Shipping mode:", shipment.shipping_mode.value),
        ("Incoterm:", shipment.offer_incoterms.value),
        ("Product origin:", shipment.product_origin.value),
        ("Shipment origin:", shipment.shipment_origin.value),
        ("Quantity:", result.quantity),
        ("Supplier currency:", inputs.product.currency_of_unit_price.value),
    ]
    for label, value in info_data:
        ws[f'A{row}'] = label
        ws[f'A{row}'].font = Font(bold=True)
        ws[f'B{row}'] = value
        row += 1

    ws[f'A{row}'] = "FX rate to EUR:"
    ws[f'A{row}'].font = Font(bold=True)
    ws[f'B{row}'] = float(result.fx_rate)
    ws[f'B{row}'].number_format = RATE_FORMAT
    row += 2

    _write_header(ws, row, ["Item", "Amount (EUR)", "Note"])
    row += 1

    taxes = result.taxes
    totals = [
        ("Goods value", result.goods_value_eur, ""),
        ("Freight", result.freight.cost, result.freight.basis),
        ("Insurance", taxes.insurance, ""),
        ("Customs base", taxes.customs_base, ""),
        ("Duty", taxes.duty_amount, format_percent(taxes.duty_rate)),
        ("VAT base", taxes.vat_base, ""),
        ("VAT", taxes.vat_amount, "included" if result.vat_included else "recoverable"),
        ("Landed cost ex VAT", result.landed_ex_vat, ""),
        ("Landed cost incl VAT", result.landed_incl_vat, ""),
        ("Unit landed cost", result.unit_landed, ""),
    ]
    for label, value, note in totals:
        ws.cell(row=row, column=1, value=label).border = THIN_BORDER
        amount_cell = ws.cell(row=row, column=2, value=_amount(value))
        amount_cell.number_format = MONEY_FORMAT
        amount_cell.border = THIN_BORDER
        ws.cell(row=row, column=3, value=note).border = THIN_BORDER
        if label.startswith("Landed") or label.startswith("Unit"):
            for col in range(1, 4):
                ws.cell(row=row, column=col).font = Font(bold=True)
                ws.cell(row=row, column=col).fill = SUBHEADER_FILL
        row += 1

    for col, width in enumerate([24, 18, 45], 1):
        ws.column_dimensions[get_column_letter(col)].width = width


def _write_composition(ws, result: LandedCostResult) -> None:
    ws.title = "Composition"
    _write_header(ws, 1, ["Component", "Amount (EUR)", "Share"])

    total = result.landed_ex_vat
    row = 2
    for component in result.composition:
        ws.cell(row=row, column=1, value=component.name).border = THIN_BORDER
        amount_cell = ws.cell(row=row, column=2, value=_amount(component.value))
        amount_cell.number_format = MONEY_FORMAT
        amount_cell.border = THIN_BORDER
        share_cell = ws.cell(row=row, column=3, value=_amount(component.value / total, 4) if total else 0.0)
        share_cell.number_format = PERCENT_FORMAT
        share_cell.border = THIN_BORDER
        row += 1

    ws.cell(row=row, column=1, value="Total").font = Font(bold=True)
    total_cell = ws.cell(row=row, column=2, value=_amount(total))
    total_cell.number_format = MONEY_FORMAT
    total_cell.font = Font(bold=True)

    for col, width in enumerate([28, 18, 10], 1):
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = 'A2'


def _write_sensitivity(ws, points: List[SensitivityPoint]) -> None:
    ws.title = "Sensitivity"
    _write_header(ws, 1, ["Quantity", "Unit cost (EUR)"])

    for row, point in enumerate(points, 2):
        ws.cell(row=row, column=1, value=point.quantity)
        unit_cell = ws.cell(row=row, column=2, value=_amount(point.unit_cost))
        unit_cell.number_format = MONEY_FORMAT

    ws.column_dimensions['A'].width = 12
    ws.column_dimensions['B'].width = 18
    ws.freeze_panes = 'A2'


def create_landed_cost_excel(
    inputs: LandedCostInput,
    result: LandedCostResult,
    sensitivity: Optional[List[SensitivityPoint]] = None
) -> bytes:
    """
    Create landed cost workbook.

    Args:
        inputs: Configuration the result was computed from
        result: calculate_landed_cost() output
        sensitivity: calculate_sensitivity() output (sheet omitted if None)

    Returns:
        Excel file as bytes
    """
    wb = Workbook()
    _write_summary(wb.active, inputs, result)
    _write_composition(wb.create_sheet(), result)
    if sensitivity is not None:
        _write_sensitivity(wb.create_sheet(), sensitivity)

    # Save to bytes
    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output.getvalue()
