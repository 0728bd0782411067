#!/usr/bin/env python3
"""
Pytest configuration and shared fixtures.
Every test gets a fresh in-memory SQLite database and a frozen clock.
"""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

# Test environment must be in place before the settings singleton is built
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_API_KEY = "test_api_key"
os.environ.update({
    "APP_ENV": "testing",
    "DATABASE_URL": TEST_DATABASE_URL,
    "CLINIC_API_KEY": TEST_API_KEY,
    "CLINIC_TIMEZONE": "America/Sao_Paulo",
    "REJECT_PAST_BOOKINGS": "true",
})

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from zoneinfo import ZoneInfo

from clinic_scheduler.core.business import fixed_clock
from clinic_scheduler.db.base import init_db
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.db.models.patient import Patient
from clinic_scheduler.db.session import make_engine

UTC = timezone.utc
CLINIC_TZ = ZoneInfo("America/Sao_Paulo")

# Sunday 1 June 2025, 09:00 in the clinic
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def local(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=CLINIC_TZ)


@pytest.fixture
def clinic_tz():
    return CLINIC_TZ


@pytest.fixture
def frozen_clock():
    return fixed_clock(NOW)


@pytest_asyncio.fixture
async def engine():
    eng = make_engine(TEST_DATABASE_URL)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def patient(db):
    obj = Patient(full_name="Ana Souza", email="ana@example.com", created_at=NOW)
    db.add(obj)
    await db.commit()
    return obj


@pytest_asyncio.fixture
async def make_appointment(db, patient):
    """Insert an appointment row directly, bypassing the booking checks."""

    async def _make(start: datetime, duration: int = 50, status: str = "scheduled",
                    therapist_id: str = "th-1", **extra) -> Appointment:
        appt = Appointment(
            patient_id=patient.id,
            patient_name=patient.full_name,
            therapist_id=therapist_id,
            therapist_name="Dr. Rita",
            date_time=start,
            duration=duration,
            ends_at=start + timedelta(minutes=duration),
            type="regular",
            status=status,
            created_at=NOW,
            **extra,
        )
        db.add(appt)
        await db.commit()
        await db.refresh(appt)
        return appt

    return _make


@pytest_asyncio.fixture
async def client(session_factory, frozen_clock):
    """ASGI client sharing the test database and clock with the app."""
    import httpx
    from clinic_scheduler.core.business import get_clock
    from clinic_scheduler.db.session import get_session
    from clinic_scheduler.main import app

    async def _session_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_clock] = lambda: frozen_clock

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test",
                                 headers={"X-API-Key": TEST_API_KEY}) as c:
        yield c

    app.dependency_overrides.clear()


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "smoke: Quick validation tests")
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests that exercise the database or HTTP layer")
