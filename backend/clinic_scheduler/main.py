from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from contextlib import asynccontextmanager
import os

from clinic_scheduler.api import auth, sections, specialties, doctors, users
from clinic_scheduler.api import calendar, time_slots, days, schedules, change_requests
from clinic_scheduler.api import offices, appointments, clinic_settings, audit_log, reports
from clinic_scheduler.core.exception_handler import register_exception_handlers
from clinic_scheduler.core.log_middleware import LogMiddleware
from clinic_scheduler.core.config import settings
from clinic_scheduler.db.base import engine, Base

# make sure the log folder exists
os.makedirs(settings.LOG_DIR, exist_ok=True)

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[
        logging.FileHandler(os.path.join(settings.LOG_DIR, "app.log"), encoding="utf-8"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # create tables when missing
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Application startup complete ({settings.ENVIRONMENT})")

    yield

    try:
        await engine.dispose()
        logger.info("DB engine disposed")
    except Exception as e:
        logger.warning(f"DB engine dispose failed: {e}")
    logger.info("Application shutdown complete")


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

register_exception_handlers(app)

app.add_middleware(
    LogMiddleware
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


try:
    app.include_router(router=auth.router, prefix="/api/auth", tags=["authentication"])
    app.include_router(router=sections.router, prefix="/api/sections", tags=["sections"])
    app.include_router(router=specialties.router, prefix="/api/specialties", tags=["specialties"])
    app.include_router(router=doctors.router, prefix="/api/doctors", tags=["doctors"])
    app.include_router(router=users.router, prefix="/api/users", tags=["users"])
    app.include_router(router=calendar.router, prefix="/api/calendar", tags=["calendar"])
    app.include_router(router=time_slots.router, prefix="/api/time-slots", tags=["calendar"])
    app.include_router(router=days.router, prefix="/api/days", tags=["calendar"])
    app.include_router(router=schedules.router, prefix="/api/schedules", tags=["schedules"])
    app.include_router(router=change_requests.router, prefix="/api/change-requests", tags=["schedules"])
    app.include_router(router=offices.router, prefix="/api/offices", tags=["appointments"])
    app.include_router(router=appointments.router, prefix="/api/appointments", tags=["appointments"])
    app.include_router(router=clinic_settings.router, prefix="/api/settings", tags=["settings"])
    app.include_router(router=audit_log.router, prefix="/api/audit-log", tags=["audit"])
    app.include_router(router=reports.router, prefix="/api/reports", tags=["reports"])
    logger.info("All routers registered successfully")
except Exception as e:
    logger.error(f"Failed to register routers: {e}", exc_info=True)
    raise


@app.get("/")
async def root():
    return {"success": True, "message": f"{settings.PROJECT_NAME} API"}


@app.get("/api/health")
async def health():
    return {"success": True, "data": {"status": "ok", "environment": settings.ENVIRONMENT}}
