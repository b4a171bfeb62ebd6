from typing import Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.month import Month
from clinic_scheduler.models.section import Section, UserSection
from clinic_scheduler.models.specialty import Specialty
from clinic_scheduler.models.user import User


async def get_or_404(db: AsyncSession, model, entity_id: int, msg: str, options: Iterable = ()):
    """Load ``model`` by primary key or raise a 404 with ``msg``."""
    stmt = select(model).where(model.id == entity_id).execution_options(populate_existing=True)
    for option in options:
        stmt = stmt.options(option)
    result = await db.execute(stmt)
    obj = result.scalar_one_or_none()
    if obj is None:
        raise ResourceHTTPException(code=settings.DATA_GET_FAILED_CODE, msg=msg, status_code=404)
    return obj


async def get_doctor_or_404(db: AsyncSession, doctor_id: int) -> Doctor:
    return await get_or_404(
        db,
        Doctor,
        doctor_id,
        "Doctor no encontrado",
        options=(selectinload(Doctor.section), selectinload(Doctor.specialties)),
    )


async def get_month_or_404(db: AsyncSession, month_id: int, with_children: bool = False) -> Month:
    options = [
        selectinload(Month.doctor),
        selectinload(Month.specialty),
        selectinload(Month.section),
    ]
    if with_children:
        options += [selectinload(Month.time_slots), selectinload(Month.days)]
    return await get_or_404(db, Month, month_id, "Mes no encontrado", options=options)


async def require_existing(db: AsyncSession, model, entity_id: Optional[int], msg: str) -> None:
    """400 when a referenced id does not resolve (bad reference in a request body)."""
    if entity_id is None:
        return
    result = await db.execute(select(model.id).where(model.id == entity_id))
    if result.scalar_one_or_none() is None:
        raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg=msg, status_code=400)


async def load_specialties(db: AsyncSession, specialty_ids: List[int]) -> List[Specialty]:
    """Resolve specialty ids, rejecting unknown or inactive ones."""
    unique_ids = list(dict.fromkeys(specialty_ids))
    if not unique_ids:
        return []
    result = await db.execute(
        select(Specialty).where(Specialty.id.in_(unique_ids), Specialty.is_active.is_(True))
    )
    found = result.scalars().all()
    missing = set(unique_ids) - {s.id for s in found}
    if missing:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg=f"Especialidades no válidas: {sorted(missing)}",
            status_code=400,
        )
    return list(found)


async def count_active_doctors(db: AsyncSession, section_id: int) -> int:
    result = await db.execute(
        select(func.count(Doctor.id)).where(Doctor.section_id == section_id, Doctor.is_active.is_(True))
    )
    return result.scalar_one()


async def current_section(db: AsyncSession, user_id: int) -> Optional[Section]:
    """Most recently assigned section of a user."""
    result = await db.execute(
        select(Section)
        .join(UserSection, UserSection.section_id == Section.id)
        .where(UserSection.user_id == user_id)
        .order_by(UserSection.assigned_at.desc(), UserSection.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def assign_section(db: AsyncSession, user: User, section_id: int) -> None:
    """Make ``section_id`` the user's current section (jefe for chiefs, member otherwise)."""
    await require_existing(db, Section, section_id, "La sección no existe")
    result = await db.execute(
        select(UserSection).where(UserSection.user_id == user.id, UserSection.section_id == section_id)
    )
    link = result.scalar_one_or_none()
    role = "jefe" if getattr(user.role, "value", user.role) == "jefe" else "member"
    if link is not None:
        await db.delete(link)
        await db.flush()
    db.add(UserSection(user_id=user.id, section_id=section_id, role=role))
