from __future__ import annotations

from calendar import monthrange
from datetime import date
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from pontaj.errors import ApiError
from pontaj.services.directory import get_workplace
from pontaj.services.reconciliation import (
    DayCell,
    DayCellKind,
    ReconciliationContext,
    WorkplaceReconciliation,
    build_workplace_report,
)

LEAVE_MARKERS = {
    "odihna": "C",
    "medical": "CM",
    "fara_plata": "CFP",
    "eveniment": "CE",
    "liber": "L",
}
VISITOR_SUFFIX = "*"

HEADER_FILL = PatternFill(fill_type="solid", fgColor="065F46")
LEAVE_FILL = PatternFill(fill_type="solid", fgColor="FEF3C7")
VISITOR_FILL = PatternFill(fill_type="solid", fgColor="DBEAFE")
WEEKEND_FILL = PatternFill(fill_type="solid", fgColor="F1F5F9")
SUMMARY_FILL = PatternFill(fill_type="solid", fgColor="ECFDF5")

HEADER_FONT = Font(bold=True, color="FFFFFF")
BOLD_FONT = Font(bold=True, color="0F172A")
TITLE_FONT = Font(bold=True, color="065F46", size=14)

THIN_SIDE = Side(style="thin", color="D1D5DB")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)

FIXED_HEADERS = ["Angajat", "Functie"]
TOTAL_HEADERS = ["Total ore", "Ore vizitator", "Zile lucrate", "Norma lunara"]


def _style_header(ws: Worksheet, row: int) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet, *, min_row: int) -> None:
    for column_cells in ws.iter_cols(min_row=min_row, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        max_len = 0
        col_letter = get_column_letter(column_cells[0].column)
        for cell in column_cells:
            value = "" if cell.value is None else str(cell.value)
            max_len = max(max_len, len(value))
        ws.column_dimensions[col_letter].width = min(max_len + 2, 40)


def _format_hours(hours: float) -> str:
    return f"{hours:g}"


def cell_label(cell: DayCell) -> str:
    if cell.kind == DayCellKind.WORKED:
        label = _format_hours(cell.hours)
        return f"{label}{VISITOR_SUFFIX}" if cell.is_visitor else label
    if cell.kind == DayCellKind.LEAVE:
        return LEAVE_MARKERS.get(cell.leave_type or "", (cell.leave_type or "").upper())
    return ""


def _write_grid(ws: Worksheet, report: WorkplaceReconciliation, *, header_row: int) -> int:
    days = report.context.days()
    ws.append(FIXED_HEADERS + [str(day_value.day) for day_value in days] + TOTAL_HEADERS)
    _style_header(ws, header_row)

    totals_by_employee = {item.employee_id: item for item in report.totals}
    visitor_ids = {visitor.id for visitor in report.visitors}
    first_day_col = len(FIXED_HEADERS) + 1

    for employee in report.employees:
        cells = report.days.get(employee.id, [])
        totals = totals_by_employee.get(employee.id)
        name = f"{employee.full_name} (vizitator)" if employee.id in visitor_ids else employee.full_name
        ws.append(
            [name, employee.function or ""]
            + [cell_label(cell) or None for cell in cells]
            + [
                totals.total_hours if totals else 0,
                totals.visitor_hours if totals else 0,
                totals.worked_days if totals else 0,
                employee.monthly_target_hours,
            ]
        )
        row_idx = ws.max_row
        for offset, cell in enumerate(cells):
            target = ws.cell(row=row_idx, column=first_day_col + offset)
            target.alignment = Alignment(horizontal="center")
            target.border = THIN_BORDER
            if cell.kind == DayCellKind.LEAVE:
                target.fill = LEAVE_FILL
            elif cell.kind == DayCellKind.WORKED and cell.is_visitor:
                target.fill = VISITOR_FILL
            elif cell.day_date.weekday() >= 5:
                target.fill = WEEKEND_FILL
        for col_idx in range(first_day_col + len(days), ws.max_column + 1):
            total_cell = ws.cell(row=row_idx, column=col_idx)
            total_cell.fill = SUMMARY_FILL
            total_cell.font = BOLD_FONT
            total_cell.border = THIN_BORDER

    ws.freeze_panes = ws.cell(row=header_row + 1, column=first_day_col)
    return ws.max_row


def _write_legend(ws: Worksheet) -> None:
    ws.append([])
    ws.append(["Legenda"])
    ws.cell(row=ws.max_row, column=1).font = BOLD_FONT
    for leave_type, marker in LEAVE_MARKERS.items():
        ws.append([marker, leave_type])
    ws.append([VISITOR_SUFFIX, "ore lucrate ca vizitator"])


def build_timesheet_xlsx_bytes(db: Session, *, workplace_id: int, year: int, month: int) -> bytes:
    if not 1 <= month <= 12:
        raise ApiError(status_code=422, code="VALIDATION_ERROR", message="month must be between 1 and 12")

    workplace = get_workplace(db, workplace_id)
    start_date = date(year, month, 1)
    end_date = date(year, month, monthrange(year, month)[1])
    report = build_workplace_report(
        db,
        ReconciliationContext(workplace_id=workplace_id, start_date=start_date, end_date=end_date),
        include_away_visits=False,
    )

    wb = Workbook()
    ws = wb.active
    ws.title = f"Pontaj {year}-{month:02d}"
    ws.append([f"Pontaj {workplace.name} - {month:02d}/{year}"])
    ws.cell(row=1, column=1).font = TITLE_FONT
    ws.append([])

    _write_grid(ws, report, header_row=3)
    _auto_width(ws, min_row=3)
    _write_legend(ws)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()
