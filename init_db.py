#!/usr/bin/env python3
"""
Database initialization script for local SQLite development.
Production Postgres schemas are managed with `alembic upgrade head`.
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent))

import sqlalchemy as sa


async def init_database() -> bool:
    """Create all tables and check the connection"""
    from clinic_scheduler.db.base import init_db
    from clinic_scheduler.db.session import AsyncSessionLocal

    print("Initializing database...")
    Path("data").mkdir(exist_ok=True)

    try:
        await init_db()
        async with AsyncSessionLocal() as session:
            result = await session.execute(sa.text("SELECT 1"))
            if result.scalar() != 1:
                print("Database connection test failed")
                return False
    except sa.exc.SQLAlchemyError as e:
        print(f"Database initialization failed: {e}")
        return False

    print("Database tables created")
    return True


async def create_sample_data() -> bool:
    """Create a couple of patients so the booking form has something to pick"""
    from clinic_scheduler.crud.patient import create_patient, search_patients
    from clinic_scheduler.db.session import AsyncSessionLocal
    from clinic_scheduler.schemas.patient import PatientCreate

    async with AsyncSessionLocal() as session:
        if await search_patients(session, limit=1):
            print("Sample data already exists, skipping creation")
            return True

        for name, email in (("Ana Souza", "ana@example.com"), ("Pedro Lima", None)):
            patient = await create_patient(session, PatientCreate(full_name=name, email=email))
            print(f"Created patient {patient.full_name} ({patient.id})")
    return True


async def main():
    if not await init_database():
        sys.exit(1)
    if "--sample-data" in sys.argv:
        await create_sample_data()


if __name__ == "__main__":
    asyncio.run(main())
