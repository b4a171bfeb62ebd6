"""IPRESS monthly workbook built from the aggregated day rows."""
import io
from collections import OrderedDict
from typing import Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from clinic_scheduler.core.datetime_utils import format_hhmm
from clinic_scheduler.services.shift_report import DayRow

SHEET_TITLE = "Reporte Mensual"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

BASE_HEADERS = [
    "IPRESS",
    "Codigo Unico",
    "Nombre",
    "RED",
    "Tipo Documento",
    "Numero Documento",
    "Profesion",
    "Numero de Colegiatura",
    "Apellidos",
    "Nombres",
    "Especialidad",
    "Servicio",
]
MAX_DAYS = 31
TOTAL_HEADER = "Horas Mensuales"


def build_headers() -> List[str]:
    headers = list(BASE_HEADERS)
    for day in range(1, MAX_DAYS + 1):
        headers.append(f"Dia {day} - Ingreso")
        headers.append(f"Dia {day} - Salida")
    headers.append(TOTAL_HEADER)
    return headers


HEADERS = build_headers()


def report_filename(month: str) -> str:
    return f"reporte-turnos-{month}.xlsx"


def checkout_display(row: DayRow) -> str:
    """Check-out time; a shift that runs into midnight reads 23:59, not 00:00."""
    value = format_hhmm(row.last_end)
    if row.spills_next_day and value == "00:00":
        return "23:59"
    return value


def group_rows(rows: Sequence[DayRow]) -> "OrderedDict[tuple, List[DayRow]]":
    """Rows per (doctor, specialty, section), keeping the incoming order."""
    groups: "OrderedDict[tuple, List[DayRow]]" = OrderedDict()
    for row in rows:
        groups.setdefault(row.context.group_key, []).append(row)
    return groups


def build_sheet_rows(rows: Sequence[DayRow], ipress: Dict[str, str]) -> List[list]:
    """One output row per grouping: 12 identity cells, 62 day cells, the month total."""
    sheet_rows = []
    for members in group_rows(rows).values():
        ctx = members[0].context
        days: Dict[int, DayRow] = {row.display_day: row for row in members}

        values = [
            ipress["name"],
            ipress["code"],
            ipress["display_name"],
            ipress["red"],
            (ctx.doc_type or "").upper(),
            ctx.doc_number or "",
            ctx.profession,
            ctx.license or "",
            ctx.last_name,
            ctx.first_name,
            ctx.specialty_name or "",
            ctx.section_name or "",
        ]
        for day in range(1, MAX_DAYS + 1):
            row = days.get(day)
            if row is None:
                values.extend(["", ""])
            else:
                values.extend([format_hhmm(row.first_start), checkout_display(row)])
        values.append(f"{members[0].total_hours:.2f}")
        sheet_rows.append(values)
    return sheet_rows


def build_workbook(rows: Sequence[DayRow], ipress: Dict[str, str]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    ws.append(HEADERS)
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
    for col_idx in range(1, len(HEADERS) + 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for values in build_sheet_rows(rows, ipress):
        ws.append(values)

    # Column widths: identity columns wider, day columns narrow
    for col_idx in range(1, len(HEADERS) + 1):
        width = 22 if col_idx <= len(BASE_HEADERS) else 12
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = f"A1:{get_column_letter(len(HEADERS))}{ws.max_row}"
    return wb


def export_workbook_bytes(rows: Sequence[DayRow], ipress: Dict[str, str]) -> io.BytesIO:
    """Serialize the workbook into a rewound in-memory buffer."""
    output = io.BytesIO()
    build_workbook(rows, ipress).save(output)
    output.seek(0)
    return output


def ipress_from_settings(settings) -> Dict[str, str]:
    return {
        "name": settings.IPRESS_NAME,
        "code": settings.IPRESS_CODE,
        "display_name": settings.ipress_display_name,
        "red": settings.IPRESS_RED,
    }

