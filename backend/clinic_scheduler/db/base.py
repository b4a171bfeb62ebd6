from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool

from clinic_scheduler.core.config import settings


def build_engine(url: str, echo: bool = False):
    """Create the async engine; SQLite gets NullPool and foreign-key enforcement."""
    if url.startswith("sqlite"):
        sqlite_engine = create_async_engine(url, echo=echo, poolclass=NullPool)

        @event.listens_for(sqlite_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,  # ping before handing out a pooled connection
        pool_recycle=3600,  # recycle connections older than an hour
        pool_size=10,
        max_overflow=20,  # extra connections above pool_size
        pool_timeout=30,  # seconds to wait for a free connection
    )


# Async engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)

# Session factory
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Declarative base shared by every model
Base = declarative_base()

# Register the mapped tables (order matters for relationship resolution)

from clinic_scheduler.models.user import User  # noqa
from clinic_scheduler.models.section import Section, UserSection  # noqa
from clinic_scheduler.models.specialty import Specialty  # noqa
from clinic_scheduler.models.doctor import Doctor, doctor_specialties  # noqa
from clinic_scheduler.models.month import Month  # noqa
from clinic_scheduler.models.time_slot import TimeSlot  # noqa
from clinic_scheduler.models.month_day import MonthDay  # noqa
from clinic_scheduler.models.change_request import ChangeRequest  # noqa
from clinic_scheduler.models.office import Office  # noqa
from clinic_scheduler.models.appointment import Appointment  # noqa
from clinic_scheduler.models.audit_log import AuditLog  # noqa
from clinic_scheduler.models.clinic_settings import ClinicSettings  # noqa


# Per-request session: commit on success, roll back on error, always close
async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
