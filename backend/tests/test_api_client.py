import httpx
import pytest

from clinic_scheduler.client.api_client import ApiClientError, ClinicApiClient


class Recorder:
    """MockTransport handler that answers from a route table and logs requests."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes[(request.method, request.url.path)]
        if isinstance(body, bytes):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)


def _client(routes):
    recorder = Recorder(routes)
    client = ClinicApiClient("http://testserver", transport=httpx.MockTransport(recorder))
    return client, recorder


async def test_login_stores_token_for_later_calls():
    client, recorder = _client({
        ("POST", "/api/auth/login"): (200, {"success": True, "data": {"token": "abc", "user": {"id": 1}}}),
        ("GET", "/api/auth/me"): (200, {"success": True, "data": {"id": 1, "role": "admin"}}),
    })
    async with client:
        assert await client.login("admin", "secret123") == {"id": 1}
        assert (await client.me())["role"] == "admin"

    assert "authorization" not in recorder.requests[0].headers
    assert recorder.requests[1].headers["authorization"] == "Bearer abc"


async def test_error_envelope_becomes_api_client_error():
    client, _ = _client({
        ("GET", "/api/reports/monthly-schedule"): (
            404,
            {"success": False, "code": 401, "error": "Recurso no encontrado", "message": "No se encontraron turnos"},
        ),
    })
    async with client:
        with pytest.raises(ApiClientError) as exc_info:
            await client.monthly_report("2025-06")
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "No se encontraron turnos"


async def test_reference_data_is_cached_until_a_write():
    slots = {"success": True, "data": [{"id": 1, "name": "Noche"}]}
    client, recorder = _client({
        ("GET", "/api/time-slots/month/4"): (200, slots),
        ("POST", "/api/time-slots"): (201, {"success": True, "data": {"id": 2}}),
    })
    async with client:
        await client.time_slots(4)
        await client.time_slots(4)
        assert len(recorder.requests) == 1

        await client.create_time_slot(4, "Tarde", "14:00", "20:00")
        await client.time_slots(4)
    assert [r.method for r in recorder.requests] == ["GET", "POST", "GET"]


async def test_report_download_returns_bytes_and_drops_empty_filters():
    client, recorder = _client({("GET", "/api/reports/monthly-schedule"): (200, b"PK\x03\x04")})
    async with client:
        content = await client.monthly_report("2025-06", doctor_id=7)
    assert content == b"PK\x03\x04"
    assert dict(recorder.requests[0].url.params) == {"month": "2025-06", "doctor_id": "7"}
