"""Create the tables, a first admin account and optionally a small demo calendar.

Usage (from repo root or backend/):

    python backend/scripts/seed_admin.py --username admin --password secret --commit
    python backend/scripts/seed_admin.py --demo --month 2025-06 --commit

Optional args:
    --email        Admin email (default admin@clinic.local)
    --demo         Also create a section, a specialty, a doctor and one month
                   with a day slot and a night slot assigned to a few days
    --month        YYYY-MM of the demo month (default: current month)
    --commit       Persist; without it everything is rolled back
    --verbose      Print created rows

Safety:
  - Does not touch an existing admin with the same username or email.
  - Dry-run by default; must specify --commit to persist.
"""
from __future__ import annotations

import asyncio
import argparse
import os
import sys
from datetime import time

# Ensure backend/ on sys.path so we can import clinic_scheduler.*
_SCRIPT_DIR = os.path.dirname(__file__)
_BACKEND_DIR = os.path.abspath(os.path.join(_SCRIPT_DIR, ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.datetime_utils import get_now, parse_year_month
from clinic_scheduler.core.security import get_hash_pwd
from clinic_scheduler.db.base import AsyncSessionLocal, Base, engine
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.month import Month
from clinic_scheduler.models.month_day import MonthDay
from clinic_scheduler.models.section import Section
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.models.time_slot import TimeSlot
from clinic_scheduler.models.user import User, UserRole


async def seed_admin(session: AsyncSession, username: str, email: str, password: str, verbose: bool = False) -> dict:
    existing = (await session.execute(
        select(User).where(or_(User.username == username, User.email == email.lower()))
    )).scalar_one_or_none()
    if existing is not None:
        return {"status": "exists", "user_id": existing.id}

    user = User(
        username=username,
        email=email.lower(),
        hashed_password=get_hash_pwd(password),
        first_name="Administrador",
        last_name="Sistema",
        role=UserRole.ADMIN,
        is_active=True,
    )
    session.add(user)
    await session.flush()
    if verbose:
        print(f"  user #{user.id} {user.username} ({user.email})")
    return {"status": "created", "user_id": user.id}


async def seed_demo(session: AsyncSession, year: int, month: int, created_by: int, verbose: bool = False) -> dict:
    section = Section(name="Medicina General", description="Servicio de demostración", is_active=True)
    session.add(section)
    await session.flush()

    specialty = Specialty(name="Medicina Interna", section_id=section.id, is_active=True)
    session.add(specialty)
    doctor = Doctor(
        name="Ana María Torres Ruiz",
        email="ana.torres@clinic.local",
        license="CMP-00001",
        doc_type="DNI",
        doc_number="40000001",
        section_id=section.id,
        is_active=True,
    )
    session.add(doctor)
    await session.flush()

    calendar = Month(
        doctor_id=doctor.id,
        specialty_id=specialty.id,
        section_id=section.id,
        year=year,
        month=month,
        status="draft",
        created_by=created_by,
    )
    session.add(calendar)
    await session.flush()

    day_slot = TimeSlot(month_id=calendar.id, name="Mañana", start_time=time(8, 0), end_time=time(14, 0), color="#3B82F6")
    night_slot = TimeSlot(month_id=calendar.id, name="Noche", start_time=time(22, 0), end_time=time(6, 0), color="#1E3A8A")
    session.add_all([day_slot, night_slot])
    await session.flush()

    assignments = {1: [day_slot.id], 2: [day_slot.id], 15: [night_slot.id]}
    for day, slot_ids in assignments.items():
        session.add(MonthDay(month_id=calendar.id, day=day, time_slot_ids=slot_ids))
    await session.flush()

    if verbose:
        print(f"  section #{section.id}, specialty #{specialty.id}, doctor #{doctor.id}")
        print(f"  month #{calendar.id} {year}-{month:02d} with {len(assignments)} assigned days")
    return {"section_id": section.id, "doctor_id": doctor.id, "month_id": calendar.id}


# ------------------------------
# CLI / entrypoint
# ------------------------------

async def async_main(args: argparse.Namespace):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        summary = await seed_admin(session, args.username, args.email, args.password, verbose=args.verbose)
        if args.demo:
            year, month = parse_year_month(args.month) if args.month else (get_now().year, get_now().month)
            summary["demo"] = await seed_demo(session, year, month, summary["user_id"], verbose=args.verbose)
        print("Summary (pending commit):")
        print(summary)
        if args.commit:
            await session.commit()
            print("[COMMIT] Changes persisted.")
        else:
            await session.rollback()
            print("[DRY-RUN] Rolled back; use --commit to persist.")
    await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Create the first admin user (and demo data). Dry-run by default.")
    p.add_argument("--username", default="admin", help="Admin username")
    p.add_argument("--email", default="admin@clinic.local", help="Admin email")
    p.add_argument("--password", required=True, help="Admin password (min 6 chars)")
    p.add_argument("--demo", action="store_true", help="Create a demo section, doctor and month")
    p.add_argument("--month", default=None, help="YYYY-MM of the demo month")
    p.add_argument("--commit", action="store_true", help="Actually commit the inserts")
    p.add_argument("--verbose", action="store_true", help="Print per record details")
    return p


def main():
    parser = build_parser()
    args = parser.parse_args()
    if len(args.password) < 6:
        parser.error("--password must have at least 6 characters")
    asyncio.run(async_main(args))


if __name__ == "__main__":
    main()
