import io

from openpyxl import load_workbook

from clinic_scheduler.services.report_export import HEADERS, XLSX_MEDIA_TYPE


def _night_shift_month(client, headers, seeded):
    month = client.post(
        "/api/calendar/months",
        json={"doctor_id": seeded["doctor_id"], "specialty_id": seeded["specialty_id"], "year": 2025, "month": 6},
        headers=headers,
    ).json()["data"]
    slot = client.post(
        "/api/time-slots",
        json={"month_id": month["id"], "name": "Noche", "start_time": "22:00", "end_time": "06:00"},
        headers=headers,
    ).json()["data"]
    response = client.put(f"/api/days/{month['id']}/15", json={"time_slot_ids": [slot["id"]]}, headers=headers)
    assert response.status_code == 200
    return month


def test_empty_month_is_404(client, admin_headers):
    response = client.get("/api/reports/monthly-schedule", params={"month": "2025-06"}, headers=admin_headers)
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "No se encontraron turnos para los filtros seleccionados"


def test_bad_or_missing_month_is_400(client, admin_headers):
    response = client.get("/api/reports/monthly-schedule", params={"month": "2025-13"}, headers=admin_headers)
    assert response.status_code == 400
    assert client.get("/api/reports/monthly-schedule", headers=admin_headers).status_code == 400
    response = client.get(
        "/api/reports/monthly-schedule/preview",
        params={"month": "2025-06", "doctor_id": "abc"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_doctor_role_cannot_download(client, doctor_headers):
    response = client.get("/api/reports/monthly-schedule", params={"month": "2025-06"}, headers=doctor_headers)
    assert response.status_code == 403


def test_night_shift_preview_splits_at_midnight(client, jefe_headers, seeded):
    _night_shift_month(client, jefe_headers, seeded)

    response = client.get(
        "/api/reports/monthly-schedule/preview",
        params={"month": "2025-06", "specialty_id": "", "service_id": ""},
        headers=jefe_headers,
    )
    assert response.status_code == 200
    rows = response.json()["data"]
    assert [r["display_day"] for r in rows] == [15, 16]
    assert rows[0]["first_start"] == "22:00"
    assert rows[0]["spills_next_day"] is True
    assert rows[0]["day_hours"] == 2.0
    assert rows[1]["first_start"] == "00:00"
    assert rows[1]["last_end"] == "06:00"
    assert rows[1]["day_hours"] == 6.0
    assert all(r["total_hours"] == 8.0 for r in rows)
    assert rows[0]["first_name"] == "Luis"
    assert rows[0]["last_name"] == "Alberto Rojas Diaz"
    assert rows[0]["section_name"] == "Cardiología"


def test_filters_narrow_the_report(client, admin_headers, seeded):
    _night_shift_month(client, admin_headers, seeded)

    params = {"month": "2025-06", "doctor_id": str(seeded["doctor_id"] + 100)}
    response = client.get("/api/reports/monthly-schedule/preview", params=params, headers=admin_headers)
    assert response.status_code == 404

    params = {"month": "2025-06", "service_id": str(seeded["section_id"])}
    response = client.get("/api/reports/monthly-schedule/preview", params=params, headers=admin_headers)
    assert response.status_code == 200


def test_download_is_an_xlsx_attachment(client, admin_headers, seeded):
    _night_shift_month(client, admin_headers, seeded)

    response = client.get("/api/reports/monthly-schedule", params={"month": "2025-06"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert response.headers["content-disposition"] == 'attachment; filename="reporte-turnos-2025-06.xlsx"'

    ws = load_workbook(io.BytesIO(response.content)).active
    assert [c.value for c in ws[1]] == HEADERS
    assert ws.max_row == 2

    row = {header: cell.value for header, cell in zip(HEADERS, ws[2])}
    assert row["Apellidos"] == "Alberto Rojas Diaz"
    assert row["Nombres"] == "Luis"
    assert (row["Dia 15 - Ingreso"], row["Dia 15 - Salida"]) == ("22:00", "23:59")
    assert (row["Dia 16 - Ingreso"], row["Dia 16 - Salida"]) == ("00:00", "06:00")
    assert not row["Dia 14 - Ingreso"] and not row["Dia 17 - Salida"]
    assert row["Horas Mensuales"] == "8.00"
