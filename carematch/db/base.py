# carematch/db/base.py

"""
This file imports all the ORM models so Alembic can discover them.
Whenever you add a new model, import it here.
"""
from carematch.db.models.directory import SpecialistProfile, Child
from carematch.db.models.slot import AvailabilitySlot
from carematch.db.models.template import WeeklyTemplate, WeeklyTemplateSlot
from carematch.db.models.booking import Booking, BookingOutcome
from carematch.db.session import engine, Base

async def init_db():
    """Create all tables directly (SQLite/local runs; Postgres goes through alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
