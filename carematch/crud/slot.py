# carematch/crud/slot.py
"""
Persistence for availability slots.

Nothing here commits; callers own the transaction. The occupied flag is only
ever written by try_occupy() and release(), both single conditional UPDATEs.
"""

from __future__ import annotations
import uuid
import zlib
from datetime import datetime
from typing import Iterable, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.core.intervals import utcnow
from carematch.db.models.slot import AvailabilitySlot


def _schedule_lock_key(specialist_id: str) -> int:
    # signed 32-bit so it fits pg_advisory_xact_lock(bigint) on every platform
    return zlib.crc32(f"schedule:{specialist_id}".encode()) - 2**31


async def lock_schedule(db: AsyncSession, specialist_id: str) -> None:
    """
    Serialize schedule writers for one specialist until the transaction ends.
    PostgreSQL only; SQLite sessions already run under BEGIN IMMEDIATE.
    """
    if db.bind.dialect.name == "postgresql":
        await db.execute(
            sa.select(sa.func.pg_advisory_xact_lock(_schedule_lock_key(specialist_id)))
        )


async def get_slot(db: AsyncSession, slot_id: uuid.UUID) -> Optional[AvailabilitySlot]:
    return await db.get(AvailabilitySlot, slot_id)


async def list_slots(
    db: AsyncSession,
    *,
    specialist_id: str,
    start_utc: datetime,
    end_utc: datetime,
    only_free: bool = False,
) -> Sequence[AvailabilitySlot]:
    """Slots of the specialist intersecting [start_utc, end_utc), earliest first."""
    q = sa.select(AvailabilitySlot).where(
        AvailabilitySlot.specialist_id == specialist_id,
        AvailabilitySlot.starts_at < end_utc,
        AvailabilitySlot.ends_at > start_utc,
    )
    if only_free:
        q = q.where(AvailabilitySlot.is_booked.is_(False))
    q = q.order_by(AvailabilitySlot.starts_at.asc())
    res = await db.execute(q)
    return res.scalars().all()


async def insert_slots(
    db: AsyncSession,
    *,
    specialist_id: str,
    intervals: Iterable[tuple[datetime, datetime, Optional[str]]],
) -> list[AvailabilitySlot]:
    now = utcnow()
    rows = [
        AvailabilitySlot(
            specialist_id=specialist_id,
            starts_at=starts_at,
            ends_at=ends_at,
            note=note,
            is_booked=False,
            created_at=now,
            updated_at=now,
        )
        for starts_at, ends_at, note in intervals
    ]
    db.add_all(rows)
    await db.flush()
    return rows


async def delete_free_slot(db: AsyncSession, slot_id: uuid.UUID) -> bool:
    """DELETE guarded by is_booked = false; False when the slot was occupied meanwhile."""
    stmt = (
        sa.delete(AvailabilitySlot)
        .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.is_booked.is_(False))
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount == 1


async def try_occupy(db: AsyncSession, slot_id: uuid.UUID) -> bool:
    """
    Compare-and-set free -> occupied. False when the slot is missing or
    another transaction already holds it.
    """
    stmt = (
        sa.update(AvailabilitySlot)
        .where(AvailabilitySlot.id == slot_id, AvailabilitySlot.is_booked.is_(False))
        .values(is_booked=True, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount == 1


async def release(db: AsyncSession, slot_id: uuid.UUID, *, now: Optional[datetime] = None) -> bool:
    """Compare-and-set occupied -> free, only while the slot's start is still ahead."""
    now = now or utcnow()
    stmt = (
        sa.update(AvailabilitySlot)
        .where(
            AvailabilitySlot.id == slot_id,
            AvailabilitySlot.is_booked.is_(True),
            AvailabilitySlot.starts_at > now,
        )
        .values(is_booked=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount == 1


async def slots_within(
    db: AsyncSession,
    *,
    specialist_id: str,
    start_utc: datetime,
    end_utc: datetime,
) -> Sequence[AvailabilitySlot]:
    """Slots lying entirely inside [start_utc, end_utc), with is_booked read fresh."""
    q = (
        sa.select(AvailabilitySlot)
        .where(
            AvailabilitySlot.specialist_id == specialist_id,
            AvailabilitySlot.starts_at >= start_utc,
            AvailabilitySlot.ends_at <= end_utc,
        )
        .execution_options(populate_existing=True)
    )
    res = await db.execute(q)
    return res.scalars().all()


async def delete_slots(db: AsyncSession, slot_ids: Sequence[uuid.UUID]) -> int:
    if not slot_ids:
        return 0
    stmt = sa.delete(AvailabilitySlot).where(AvailabilitySlot.id.in_(slot_ids))
    res = await db.execute(stmt)
    return res.rowcount
