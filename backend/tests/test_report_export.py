from datetime import time

from openpyxl import load_workbook
from openpyxl.utils import get_column_letter

from clinic_scheduler.services.report_export import (
    BASE_HEADERS,
    HEADERS,
    SHEET_TITLE,
    build_sheet_rows,
    build_workbook,
    export_workbook_bytes,
    report_filename,
)
from clinic_scheduler.services.shift_report import DayAssignment, MonthContext, SlotTimes, build_report_rows

IPRESS = {"name": "CLINICA DEMO", "code": "00001234", "display_name": "CLINICA DEMO", "red": "SIN RED"}


def _night_rows():
    context = MonthContext(
        month_id=1,
        doctor_id=10,
        first_name="Luis",
        last_name="Rojas Diaz",
        profession="Medico",
        license="CMP-12345",
        doc_type="dni",
        doc_number="41234567",
        specialty_id=3,
        specialty_name="Cardiología",
        section_id=2,
        section_name="Medicina",
    )
    slots = {1: {7: SlotTimes(7, time(22, 0), time(6, 0)), 8: SlotTimes(8, time(8, 0), time(14, 0))}}
    days = [DayAssignment(1, 15, (7,)), DayAssignment(1, 2, (8,))]
    return build_report_rows({1: context}, days, slots, 2025, 6)


def _day_columns(day):
    check_in = len(BASE_HEADERS) + (day - 1) * 2
    return check_in, check_in + 1


def test_headers_layout():
    assert len(HEADERS) == 75
    assert HEADERS[:4] == ["IPRESS", "Codigo Unico", "Nombre", "RED"]
    assert HEADERS[12] == "Dia 1 - Ingreso"
    assert HEADERS[13] == "Dia 1 - Salida"
    assert HEADERS[-2] == "Dia 31 - Salida"
    assert HEADERS[-1] == "Horas Mensuales"


def test_sheet_row_pivots_days_and_rewrites_midnight():
    sheet_rows = build_sheet_rows(_night_rows(), IPRESS)

    assert len(sheet_rows) == 1
    values = sheet_rows[0]
    assert len(values) == 75
    assert values[:12] == [
        "CLINICA DEMO", "00001234", "CLINICA DEMO", "SIN RED", "DNI", "41234567",
        "Medico", "CMP-12345", "Rojas Diaz", "Luis", "Cardiología", "Medicina",
    ]
    check_in, check_out = _day_columns(15)
    assert (values[check_in], values[check_out]) == ("22:00", "23:59")
    check_in, check_out = _day_columns(16)
    assert (values[check_in], values[check_out]) == ("00:00", "06:00")
    check_in, check_out = _day_columns(2)
    assert (values[check_in], values[check_out]) == ("08:00", "14:00")
    check_in, check_out = _day_columns(1)
    assert (values[check_in], values[check_out]) == ("", "")
    assert values[-1] == "14.00"


def test_workbook_has_frozen_header_and_filter():
    ws = build_workbook(_night_rows(), IPRESS).active

    assert ws.title == SHEET_TITLE
    assert ws.freeze_panes == "A2"
    assert ws.auto_filter.ref == f"A1:{get_column_letter(75)}2"
    assert ws.cell(row=1, column=1).font.bold
    assert [c.value for c in ws[1]] == HEADERS


def test_exported_bytes_reload():
    buffer = export_workbook_bytes(_night_rows(), IPRESS)
    ws = load_workbook(buffer).active

    assert ws.max_column == 75
    assert ws.max_row == 2
    assert ws.cell(row=2, column=9).value == "Rojas Diaz"


def test_report_filename():
    assert report_filename("2025-06") == "reporte-turnos-2025-06.xlsx"
