import asyncio
import os
import tempfile

# Point the app at a throw-away database before anything imports the settings
_TMP_DIR = tempfile.mkdtemp(prefix="clinic-scheduler-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from clinic_scheduler.core.security import get_hash_pwd
from clinic_scheduler.db.base import AsyncSessionLocal, Base, engine
from clinic_scheduler.main import app
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.section import Section, UserSection
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.models.user import User, UserRole

PASSWORD = "secret123"


async def _reset_database() -> dict:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    hashed = get_hash_pwd(PASSWORD)
    async with AsyncSessionLocal() as session:
        users = {}
        for role in UserRole:
            user = User(
                username=role.value,
                email=f"{role.value}@clinic.test",
                hashed_password=hashed,
                first_name=role.value.capitalize(),
                last_name="Prueba",
                role=role,
                is_active=True,
            )
            session.add(user)
            users[role.value] = user
        section = Section(name="Cardiología", is_active=True)
        session.add(section)
        await session.flush()

        session.add(UserSection(user_id=users["jefe"].id, section_id=section.id, role="jefe"))
        specialty = Specialty(name="Cardiología Clínica", section_id=section.id, is_active=True)
        session.add(specialty)
        doctor = Doctor(
            name="Luis Alberto Rojas Diaz",
            email="luis.rojas@clinic.test",
            license="CMP-12345",
            doc_type="dni",
            doc_number="41234567",
            section_id=section.id,
            user_id=users["doctor"].id,
            is_active=True,
        )
        session.add(doctor)
        await session.flush()

        ids = {
            "users": {name: user.id for name, user in users.items()},
            "section_id": section.id,
            "specialty_id": specialty.id,
            "doctor_id": doctor.id,
        }
        await session.commit()
    return ids


@pytest.fixture
def seeded():
    """Fresh schema with one user per role, a section, a specialty and a doctor."""
    return asyncio.run(_reset_database())


@pytest.fixture
def client(seeded):
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(client: TestClient, identifier: str, password: str = PASSWORD) -> dict:
    response = client.post("/api/auth/login", json={"identifier": identifier, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


@pytest.fixture
def admin_headers(client):
    return auth_headers(client, "admin")


@pytest.fixture
def jefe_headers(client):
    return auth_headers(client, "jefe")


@pytest.fixture
def doctor_headers(client):
    return auth_headers(client, "doctor")
