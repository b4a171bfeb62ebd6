from conftest import PASSWORD, auth_headers


def test_login_with_username_and_email(client):
    response = client.post("/api/auth/login", json={"identifier": "jefe", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "jefe"
    assert body["data"]["user"]["section_name"] == "Cardiología"
    assert body["data"]["expiresIn"] == 24 * 60 * 60
    assert body["data"]["token"]

    response = client.post("/api/auth/login", json={"identifier": "ADMIN@clinic.test", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["username"] == "admin"


def test_login_rejects_wrong_password(client):
    response = client.post("/api/auth/login", json={"identifier": "admin", "password": "wrong-pass"})
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Credenciales inválidas"
    assert body["code"] == 101


def test_login_validation_error_is_400(client):
    response = client.post("/api/auth/login", json={"identifier": "admin"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert any(e["field"] == "password" for e in body["errors"])


def test_me_requires_a_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_and_logout(client):
    headers = auth_headers(client, "gerencia")
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["role"] == "gerencia"

    response = client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_deactivated_user_token_is_rejected(client, admin_headers, seeded):
    headers = auth_headers(client, "gerencia")
    user_id = seeded["users"]["gerencia"]
    assert client.delete(f"/api/users/{user_id}", headers=admin_headers).status_code == 200

    assert client.get("/api/auth/me", headers=headers).status_code == 401
    response = client.post("/api/auth/login", json={"identifier": "gerencia", "password": PASSWORD})
    assert response.status_code == 401
