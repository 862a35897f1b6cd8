# carematch/crud/booking.py

from __future__ import annotations
import uuid
from datetime import datetime
from typing import Collection, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.core.intervals import utcnow
from carematch.db.models.booking import Booking, BookingOutcome, BookingStatus
from carematch.db.models.slot import AvailabilitySlot


async def get_booking(db: AsyncSession, booking_id: uuid.UUID, *, fresh: bool = False) -> Optional[Booking]:
    """fresh=True overwrites any identity-map copy with the stored row."""
    return await db.get(Booking, booking_id, populate_existing=fresh)


async def add_booking(
    db: AsyncSession,
    *,
    slot: AvailabilitySlot,
    parent_id: str,
    child_id: Optional[uuid.UUID] = None,
    message: Optional[str] = None,
) -> Booking:
    now = utcnow()
    booking = Booking(
        specialist_id=slot.specialist_id,
        parent_id=parent_id,
        child_id=child_id,
        starts_at=slot.starts_at,
        ends_at=slot.ends_at,
        status=BookingStatus.PENDING,
        message_from_parent=message,
        availability_slot_id=slot.id,
        created_at=now,
        updated_at=now,
        outcome=None,
    )
    db.add(booking)
    await db.flush()
    return booking


async def list_bookings(
    db: AsyncSession,
    *,
    specialist_id: Optional[str] = None,
    parent_id: Optional[str] = None,
    status: Optional[BookingStatus] = None,
    start_utc: Optional[datetime] = None,
    end_utc: Optional[datetime] = None,
    limit: int = 200,
) -> Sequence[Booking]:
    """Newest start first. The window filter is an overlap test, not containment."""
    q = sa.select(Booking)
    if specialist_id is not None:
        q = q.where(Booking.specialist_id == specialist_id)
    if parent_id is not None:
        q = q.where(Booking.parent_id == parent_id)
    if status is not None:
        q = q.where(Booking.status == status)
    if end_utc is not None:
        q = q.where(Booking.starts_at < end_utc)
    if start_utc is not None:
        q = q.where(Booking.ends_at > start_utc)
    q = q.order_by(Booking.starts_at.desc()).limit(limit)
    res = await db.execute(q)
    return res.scalars().all()


async def compare_and_set_status(
    db: AsyncSession,
    booking_id: uuid.UUID,
    *,
    expected: Collection[BookingStatus],
    target: BookingStatus,
) -> bool:
    """Move the booking to target only if its stored status is still one of expected."""
    stmt = (
        sa.update(Booking)
        .where(Booking.id == booking_id, Booking.status.in_(list(expected)))
        .values(status=target, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount == 1


async def detach_slots(db: AsyncSession, slot_ids: Sequence[uuid.UUID]) -> int:
    """
    Drop the slot reference from bookings pointing at slots about to be deleted.
    The bookings keep their own start/end copies.
    """
    if not slot_ids:
        return 0
    stmt = (
        sa.update(Booking)
        .where(Booking.availability_slot_id.in_(slot_ids))
        .values(availability_slot_id=None, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount


async def upsert_outcome(
    db: AsyncSession,
    booking: Booking,
    *,
    summary: str,
    recommendations: Optional[str] = None,
    next_steps: Optional[str] = None,
    private_notes: Optional[str] = None,
) -> BookingOutcome:
    now = utcnow()
    outcome = booking.outcome
    if outcome is None:
        outcome = BookingOutcome(
            booking_id=booking.id,
            specialist_id=booking.specialist_id,
            parent_id=booking.parent_id,
            created_at=now,
        )
        booking.outcome = outcome
    outcome.summary = summary
    outcome.recommendations = recommendations
    outcome.next_steps = next_steps
    outcome.private_notes = private_notes
    outcome.updated_at = now
    await db.flush()
    return outcome
