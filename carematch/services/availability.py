# carematch/services/availability.py
"""
Availability store: batch creation, listing and deletion of a specialist's slots.

Validation runs before the transaction starts. Conflict detection and the insert
share one transaction behind the per-specialist schedule lock, so a slot
committed by a concurrent request can't slip in between the check and the write.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from carematch.core.config import settings
from carematch.core.errors import Conflict, Forbidden, NotFound, ValidationError
from carematch.core.intervals import aligned, ensure_utc, first_overlap, overlaps, utcnow
from carematch.core.logging import get_logger
from carematch.crud import booking as booking_crud
from carematch.crud import slot as slot_crud
from carematch.db.models.slot import AvailabilitySlot
from carematch.schemas.slot import SlotCreateItem
from carematch.services.access import AccessLookup, default_access

logger = get_logger(__name__)


def _normalize_batch(slots: Sequence[SlotCreateItem], now: datetime) -> list[tuple[datetime, datetime, Optional[str]]]:
    if not slots:
        raise ValidationError("No slots provided")

    granularity = settings.SLOT_GRANULARITY_MIN
    earliest = now - timedelta(seconds=settings.PAST_GRACE_SECONDS)

    items = []
    for s in slots:
        start, end = ensure_utc(s.starts_at), ensure_utc(s.ends_at)
        if start >= end:
            raise ValidationError("ends_at must be greater than starts_at")
        if not aligned(start, granularity) or not aligned(end, granularity):
            raise ValidationError(
                f"Times must be aligned to {granularity}-minute boundaries (e.g., 09:00, 09:30)"
            )
        if start < earliest:
            raise ValidationError("Slot cannot start in the past")
        items.append((start, end, s.note))

    items.sort(key=lambda i: i[0])
    if first_overlap([(i[0], i[1]) for i in items]) is not None:
        raise ValidationError("Provided slots overlap each other")
    return items


async def create_batch(
    db: AsyncSession,
    *,
    specialist_id: str,
    slots: Sequence[SlotCreateItem],
) -> list[AvailabilitySlot]:
    """
    All-or-nothing insert of free slots. Rejects misaligned, inverted, past or
    mutually overlapping input (ValidationError) and anything overlapping the
    specialist's existing slots, booked or not (Conflict).
    """
    items = _normalize_batch(slots, utcnow())
    range_start = items[0][0]
    range_end = max(i[1] for i in items)

    try:
        await slot_crud.lock_schedule(db, specialist_id)
        existing = await slot_crud.list_slots(
            db, specialist_id=specialist_id, start_utc=range_start, end_utc=range_end
        )
        for start, end, _ in items:
            if any(overlaps(e.starts_at, e.ends_at, start, end) for e in existing):
                raise Conflict("Some slots overlap existing availability")

        created = await slot_crud.insert_slots(db, specialist_id=specialist_id, intervals=items)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "slots_created",
        specialist_id=specialist_id,
        count=len(created),
        range_start=range_start.isoformat(),
        range_end=range_end.isoformat(),
    )
    return sorted(created, key=lambda s: s.starts_at)


async def list_slots(
    db: AsyncSession,
    *,
    specialist_id: str,
    from_utc: datetime,
    to_utc: datetime,
) -> Sequence[AvailabilitySlot]:
    from_utc, to_utc = ensure_utc(from_utc), ensure_utc(to_utc)
    if to_utc <= from_utc:
        raise ValidationError("to_utc must be greater than from_utc")
    return await slot_crud.list_slots(db, specialist_id=specialist_id, start_utc=from_utc, end_utc=to_utc)


async def list_free_slots(
    db: AsyncSession,
    *,
    specialist_id: str,
    from_utc: datetime,
    to_utc: datetime,
    access: AccessLookup = default_access,
) -> Sequence[AvailabilitySlot]:
    """Public view: unoccupied slots of an approved specialist."""
    from_utc, to_utc = ensure_utc(from_utc), ensure_utc(to_utc)
    if to_utc <= from_utc:
        raise ValidationError("to_utc must be greater than from_utc")
    if not await access.is_specialist_approved(db, specialist_id):
        raise NotFound("Specialist not found or not approved")
    return await slot_crud.list_slots(
        db, specialist_id=specialist_id, start_utc=from_utc, end_utc=to_utc, only_free=True
    )


async def delete_slot(db: AsyncSession, *, specialist_id: str, slot_id: uuid.UUID) -> None:
    """Remove a free slot. Occupied slots are a Conflict."""
    try:
        slot = await slot_crud.get_slot(db, slot_id)
        if slot is None:
            raise NotFound("Slot not found")
        if slot.specialist_id != specialist_id:
            raise Forbidden("Slot belongs to another specialist")
        if slot.is_booked:
            raise Conflict("Slot already booked and cannot be deleted")

        # terminal bookings may still point at it
        await booking_crud.detach_slots(db, [slot.id])
        if not await slot_crud.delete_free_slot(db, slot.id):
            raise Conflict("Slot already booked and cannot be deleted")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("slot_deleted", specialist_id=specialist_id, slot_id=str(slot_id))
