"""
Shared fixtures: a fresh file-backed SQLite database per test, seeded profile
rows, and helpers for building future, 30-minute aligned times.
"""

import os
import sys
import tempfile
import uuid
from datetime import date, datetime, time, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Add the project root to Python path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Settings are read at import time, so the environment goes first
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "carematch-test.db")
os.environ.pop("API_KEY", None)

import carematch.db.base  # noqa: E402,F401  registers every model
from carematch.core.intervals import UTC, utcnow  # noqa: E402
from carematch.db.models.directory import Child, ModerationStatus, SpecialistProfile  # noqa: E402
from carematch.db.models.slot import AvailabilitySlot  # noqa: E402
from carematch.db.session import Base, build_engine  # noqa: E402

SPECIALIST = "spec-1"
OTHER_SPECIALIST = "spec-2"
PARENT = "parent-1"
OTHER_PARENT = "parent-2"


def pytest_collection_modifyitems(config, items):
    """Mark tests by module so `-m unit` / `-m integration` work without per-test noise."""
    for item in items:
        name = item.module.__name__
        if name.endswith(("test_intervals", "test_presets")):
            item.add_marker(pytest.mark.unit)
        elif name.endswith(("test_api_routes", "test_health")):
            item.add_marker(pytest.mark.api)
        else:
            item.add_marker(pytest.mark.integration)


# ---------- Time helpers ----------

def day_at(d: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(d, time(hour, minute), tzinfo=UTC)


def future_at(hour: int, minute: int = 0, days: int = 3) -> datetime:
    """UTC instant `days` days from today at hh:mm; always in the future for days >= 1."""
    return day_at(utcnow().date() + timedelta(days=days), hour, minute)


def next_weekday(dow: int, after: date | None = None) -> date:
    """First date strictly after `after` (default today) with the given 0=Sunday day of week."""
    d = (after or utcnow().date()) + timedelta(days=1)
    while (d.weekday() + 1) % 7 != dow:
        d += timedelta(days=1)
    return d


# ---------- Database ----------

@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}", poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def add_specialist(session_factory, user_id: str, status: ModerationStatus = ModerationStatus.APPROVED):
    async with session_factory() as s:
        s.add(SpecialistProfile(user_id=user_id, moderation_status=status))
        await s.commit()


async def add_child(session_factory, parent_id: str) -> uuid.UUID:
    async with session_factory() as s:
        child = Child(parent_id=parent_id)
        s.add(child)
        await s.commit()
        return child.id


@pytest_asyncio.fixture
async def approved_specialist(session_factory):
    await add_specialist(session_factory, SPECIALIST)
    return SPECIALIST


@pytest_asyncio.fixture
async def child_id(session_factory):
    return await add_child(session_factory, PARENT)


async def reload_slot(db: AsyncSession, slot_id: uuid.UUID) -> AvailabilitySlot | None:
    """Read the slot row again; conditional UPDATEs bypass the identity map."""
    return await db.get(AvailabilitySlot, slot_id, populate_existing=True)
