def _create_month(client, headers, seeded, year=2025, month=6):
    response = client.post(
        "/api/calendar/months",
        json={"doctor_id": seeded["doctor_id"], "specialty_id": seeded["specialty_id"], "year": year, "month": month},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _create_slot(client, headers, month_id, start, end, name="Turno"):
    return client.post(
        "/api/time-slots",
        json={"month_id": month_id, "name": name, "start_time": start, "end_time": end, "color": "#123ABC"},
        headers=headers,
    )


# ====== Role gates ======
def test_doctor_cannot_manage_users_or_sections(client, doctor_headers):
    assert client.get("/api/users", headers=doctor_headers).status_code == 403
    response = client.post("/api/sections", json={"name": "Pediatría"}, headers=doctor_headers)
    assert response.status_code == 403
    assert response.json()["success"] is False


def test_jefe_manages_sections_but_only_admin_deletes(client, jefe_headers, admin_headers):
    response = client.post("/api/sections", json={"name": "Pediatría"}, headers=jefe_headers)
    assert response.status_code == 201
    section_id = response.json()["data"]["id"]

    assert client.delete(f"/api/sections/{section_id}", headers=jefe_headers).status_code == 403
    response = client.delete(f"/api/sections/{section_id}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/sections/{section_id}", headers=admin_headers).status_code == 404


# ====== Sections ======
def test_section_with_active_doctors_cannot_be_deleted(client, admin_headers, seeded):
    response = client.delete(f"/api/sections/{seeded['section_id']}", headers=admin_headers)
    assert response.status_code == 400
    assert "doctor" in response.json()["message"]

    response = client.get(f"/api/sections/{seeded['section_id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["doctor_count"] == 1


def test_duplicate_section_name_is_rejected(client, admin_headers):
    response = client.post("/api/sections", json={"name": "Cardiología"}, headers=admin_headers)
    assert response.status_code == 400


# ====== Users ======
def test_admin_cannot_delete_themself(client, admin_headers, seeded):
    response = client.delete(f"/api/users/{seeded['users']['admin']}", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "No puede eliminar su propio usuario"


def test_user_create_never_returns_password(client, admin_headers, seeded):
    payload = {
        "username": "nuevo",
        "email": "Nuevo@Clinic.test",
        "password": "abcdef",
        "first_name": "Nuevo",
        "last_name": "Usuario",
        "role": "jefe",
        "section_id": seeded["section_id"],
    }
    response = client.post("/api/users", json=payload, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["email"] == "nuevo@clinic.test"
    assert data["section_id"] == seeded["section_id"]
    assert "password" not in data and "hashed_password" not in data

    assert client.post("/api/users", json=payload, headers=admin_headers).status_code == 400
    payload.update(username="corto", email="corto@clinic.test", password="123")
    assert client.post("/api/users", json=payload, headers=admin_headers).status_code == 400


# ====== Doctors ======
def test_doctor_crud_and_reactivation(client, jefe_headers, seeded):
    payload = {
        "name": "Carla Mendoza",
        "email": "carla@clinic.test",
        "license": "CMP-999",
        "section_id": seeded["section_id"],
        "specialty_ids": [seeded["specialty_id"]],
    }
    response = client.post("/api/doctors", json=payload, headers=jefe_headers)
    assert response.status_code == 201
    doctor = response.json()["data"]
    assert [s["id"] for s in doctor["specialties"]] == [seeded["specialty_id"]]

    assert client.post("/api/doctors", json=payload, headers=jefe_headers).status_code == 400

    response = client.put(f"/api/doctors/{doctor['id']}/deactivate", headers=jefe_headers)
    assert response.json()["data"]["is_active"] is False
    response = client.put(f"/api/doctors/{doctor['id']}/reactivate", headers=jefe_headers)
    assert response.json()["data"]["is_active"] is True


# ====== Time slots ======
def test_time_slot_validation(client, jefe_headers, seeded):
    month = _create_month(client, jefe_headers, seeded)

    response = _create_slot(client, jefe_headers, month["id"], "08:00", "08:00")
    assert response.status_code == 400

    response = _create_slot(client, jefe_headers, month["id"], "8am", "14:00")
    assert response.status_code == 400

    response = _create_slot(client, jefe_headers, month["id"], "22:00", "06:00", name="Noche")
    assert response.status_code == 201
    assert response.json()["data"]["overnight"] is True

    response = _create_slot(client, jefe_headers, month["id"], "05:00", "09:00", name="Madrugada")
    assert response.status_code == 400
    assert response.json()["errors"][0]["type"] == "overlap"

    response = _create_slot(client, jefe_headers, month["id"], "06:00", "14:00", name="Mañana")
    assert response.status_code == 201

    response = client.post(
        "/api/time-slots/validate",
        json={"month_id": month["id"], "start_time": "13:00", "end_time": "15:00"},
        headers=jefe_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["valid"] is False
    assert [c["name"] for c in response.json()["data"]["conflicts"]] == ["Mañana"]


def test_slot_in_use_cannot_be_deleted(client, jefe_headers, seeded):
    month = _create_month(client, jefe_headers, seeded)
    slot = _create_slot(client, jefe_headers, month["id"], "08:00", "14:00").json()["data"]
    response = client.put(f"/api/days/{month['id']}/3", json={"time_slot_ids": [slot["id"]]}, headers=jefe_headers)
    assert response.status_code == 200

    assert client.delete(f"/api/time-slots/{slot['id']}", headers=jefe_headers).status_code == 400
    assert client.delete(f"/api/days/{month['id']}/3", headers=jefe_headers).status_code == 200
    assert client.delete(f"/api/time-slots/{slot['id']}", headers=jefe_headers).status_code == 200


def test_day_must_exist_in_month(client, jefe_headers, seeded):
    month = _create_month(client, jefe_headers, seeded, month=2)
    response = client.put(f"/api/days/{month['id']}/30", json={"time_slot_ids": []}, headers=jefe_headers)
    assert response.status_code == 400


# ====== Appointments ======
def test_appointment_conflict_then_self_update(client, admin_headers, seeded):
    month = _create_month(client, admin_headers, seeded)
    slot = _create_slot(client, admin_headers, month["id"], "08:00", "14:00").json()["data"]
    office_a = client.post("/api/offices", json={"name": "Consultorio 1"}, headers=admin_headers).json()["data"]
    office_b = client.post("/api/offices", json={"name": "Consultorio 2"}, headers=admin_headers).json()["data"]

    booking = {
        "patient_name": "Maria Quispe",
        "specialty_id": seeded["specialty_id"],
        "doctor_id": seeded["doctor_id"],
        "office_id": office_a["id"],
        "time_slot_id": slot["id"],
        "appointment_date": "2025-06-10",
    }
    response = client.post("/api/appointments", json=booking, headers=admin_headers)
    assert response.status_code == 201
    first_id = response.json()["data"]["id"]

    response = client.post("/api/appointments", json={**booking, "office_id": office_b["id"]}, headers=admin_headers)
    assert response.status_code == 409
    assert f"#{first_id}" in response.json()["message"]

    response = client.put(f"/api/appointments/{first_id}", json={"notes": "control"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["notes"] == "control"

    response = client.delete(f"/api/appointments/{first_id}", headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"/api/appointments/{first_id}", headers=admin_headers).json()["data"]["status"] == "cancelled"

    response = client.post("/api/appointments", json={**booking, "office_id": office_b["id"]}, headers=admin_headers)
    assert response.status_code == 201


def test_appointment_writes_are_admin_only(client, jefe_headers):
    response = client.post("/api/appointments", json={}, headers=jefe_headers)
    assert response.status_code in (400, 403)
    assert client.get("/api/appointments", headers=jefe_headers).status_code == 200


# ====== Schedules ======
def test_whole_month_save_and_publish(client, jefe_headers, seeded):
    payload = {
        "doctor_id": seeded["doctor_id"],
        "specialty_id": seeded["specialty_id"],
        "month": "2025-07",
        "theme_config": {"accent": "#FF0000"},
        "time_slots": [
            {"key": "m", "name": "Mañana", "start_time": "08:00", "end_time": "14:00"},
            {"key": "n", "name": "Noche", "start_time": "22:00", "end_time": "06:00"},
        ],
        "shifts": [{"day": 1, "slot_keys": ["m"]}, {"day": 2, "slot_keys": ["m", "n"]}],
    }
    response = client.post("/api/schedules", json=payload, headers=jefe_headers)
    assert response.status_code == 200, response.text
    month = response.json()["data"]
    assert month["status"] == "draft"
    assert len(month["time_slots"]) == 2
    assert [d["day"] for d in month["days"]] == [1, 2]

    pending = client.get("/api/schedules/pending", headers=jefe_headers).json()["data"]
    assert [m["id"] for m in pending] == [month["id"]]

    response = client.put(f"/api/schedules/{month['id']}/approve", headers=jefe_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "published"
    assert client.get("/api/schedules/pending", headers=jefe_headers).json()["data"] == []
    assert client.delete(f"/api/schedules/{month['id']}", headers=jefe_headers).status_code == 400

    views = client.get(f"/api/schedules/doctor/{seeded['doctor_id']}/2025-07", headers=jefe_headers).json()["data"]
    assert [m["id"] for m in views] == [month["id"]]


def test_whole_month_save_rejects_repeated_slot_keys(client, jefe_headers, seeded):
    base = {"doctor_id": seeded["doctor_id"], "specialty_id": seeded["specialty_id"], "month": "2025-07"}
    morning = {"name": "Mañana", "start_time": "08:00", "end_time": "14:00"}
    evening = {"name": "Tarde", "start_time": "14:00", "end_time": "20:00"}

    payload = {
        **base,
        "time_slots": [{**morning, "key": "m"}, {**evening, "key": "m"}],
        "shifts": [{"day": 1, "slot_keys": ["m"]}],
    }
    response = client.post("/api/schedules", json=payload, headers=jefe_headers)
    assert response.status_code == 400
    assert "repetidas" in response.json()["message"]

    # an explicit key equal to the index of a keyless slot collides too
    payload = {
        **base,
        "time_slots": [{**morning, "key": 1}, evening],
        "shifts": [{"day": 1, "slot_keys": [1]}],
    }
    assert client.post("/api/schedules", json=payload, headers=jefe_headers).status_code == 400

    response = client.get(f"/api/schedules/doctor/{seeded['doctor_id']}/2025-07", headers=jefe_headers)
    assert response.json()["data"] == []

    payload["time_slots"] = [{**morning, "key": "m"}, evening]
    payload["shifts"] = [{"day": 1, "slot_keys": ["m", 1]}]
    response = client.post("/api/schedules", json=payload, headers=jefe_headers)
    assert response.status_code == 200
    month = response.json()["data"]
    slot_ids = {s["name"]: s["id"] for s in month["time_slots"]}
    assert month["days"][0]["time_slot_ids"] == [slot_ids["Mañana"], slot_ids["Tarde"]]


def test_change_request_review(client, doctor_headers, jefe_headers, seeded):
    month = _create_month(client, jefe_headers, seeded)
    response = client.post(
        "/api/change-requests",
        json={"month_id": month["id"], "day": 12, "message": "Necesito cambiar el turno"},
        headers=doctor_headers,
    )
    assert response.status_code == 201
    request_id = response.json()["data"]["id"]

    assert client.put(f"/api/change-requests/{request_id}/review", json={"status": "approved"}, headers=doctor_headers).status_code == 403
    response = client.put(
        f"/api/change-requests/{request_id}/review",
        json={"status": "approved", "review_notes": "ok"},
        headers=jefe_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["reviewed_by"] == seeded["users"]["jefe"]
    assert client.put(f"/api/change-requests/{request_id}/review", json={"status": "rejected"}, headers=jefe_headers).status_code == 400


# ====== Settings and audit ======
def test_settings_defaults_update_and_reset(client, admin_headers):
    response = client.get("/api/settings", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["clinic_name"] == "TUASUSALUD"

    response = client.post("/api/settings", json={"clinic_name": "Mundo Salud"}, headers=admin_headers)
    assert response.json()["data"]["clinic_name"] == "Mundo Salud"

    response = client.get("/api/settings/export", headers=admin_headers)
    assert "attachment" in response.headers["content-disposition"]
    assert response.json()["clinic_name"] == "Mundo Salud"

    response = client.put("/api/settings/reset", headers=admin_headers)
    assert response.json()["data"]["clinic_name"] == "TUASUSALUD"

    assert client.post("/api/settings/import", json={"clinic_name": "X"}, headers=admin_headers).status_code == 400


def test_audit_log_records_writes(client, admin_headers):
    client.post("/api/offices", json={"name": "Consultorio 9"}, headers=admin_headers)
    response = client.get("/api/audit-log", params={"table_name": "offices"}, headers=admin_headers)
    assert response.status_code == 200
    page = response.json()["data"]
    assert page["total"] == 1
    assert page["items"][0]["action"] == "INSERT"
    assert page["items"][0]["new_values"]["name"] == "Consultorio 9"
