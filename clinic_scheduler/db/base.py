# clinic_scheduler/db/base.py

"""
Imports all the ORM models so Alembic and create_all can discover them.
"""
from clinic_scheduler.db.models.patient import Patient
from clinic_scheduler.db.models.appointment import Appointment
from clinic_scheduler.db.session import engine, Base


async def init_db(bind=None):
    """Initialize database by creating all tables"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_engine():
    """Get database engine for connection testing"""
    return engine
