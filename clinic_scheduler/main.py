# clinic_scheduler/main.py
from __future__ import annotations

# Load .env early so settings and os.getenv agree
from dotenv import load_dotenv
load_dotenv()

import sqlalchemy as sa
from fastapi import Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.errors import error_aggregator, register_exception_handlers
from clinic_scheduler.core.logging import LoggingMiddleware, get_logger, setup_logging
from clinic_scheduler.db.base import init_db
from clinic_scheduler.db.session import get_session

from clinic_scheduler.api.auth import require_api_key

# Routers
from clinic_scheduler.api.routes.appointments import router as appointments_router
from clinic_scheduler.api.routes.patients import router as patients_router
from clinic_scheduler.api.routes.schedule import router as schedule_router

setup_logging(debug=settings.is_development, max_log_length=settings.MAX_LOG_LENGTH, level=settings.LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(title="Clinic Scheduler", description="Appointment scheduling and availability for a therapy clinic")

app.middleware("http")(LoggingMiddleware(
    log_requests=settings.LOG_REQUESTS or settings.is_development,
    log_responses=settings.LOG_RESPONSES or settings.is_development,
    slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
))

register_exception_handlers(app)


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    await db.execute(sa.text("SELECT 1"))
    return {"db": "ok"}


@app.get("/errors", include_in_schema=False, dependencies=[Depends(require_api_key)])
async def errors_summary():
    return error_aggregator.get_error_summary()


# -------- Include routers --------
app.include_router(appointments_router)
app.include_router(schedule_router)
app.include_router(patients_router)


@app.on_event("startup")
async def startup_event():
    logger.info("application_startup", env=settings.APP_ENV, timezone=settings.CLINIC_TIMEZONE)
    # Production schemas are managed by Alembic
    if settings.is_development:
        await init_db()
        logger.info("database_tables_created")
