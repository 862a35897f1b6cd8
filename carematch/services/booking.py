# carematch/services/booking.py
"""
Booking state machine.

    pending -> confirmed | declined | cancelled_by_parent | cancelled_by_specialist
    confirmed -> completed | cancelled_by_parent

Creation claims the slot with a compare-and-set in the same transaction as the
booking insert: either both commit or neither does. Declines and cancellations
free the slot again only while its start is still in the future.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from carematch.core.config import settings
from carematch.core.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from carematch.core.intervals import ensure_utc, utcnow
from carematch.core.logging import get_logger
from carematch.crud import booking as booking_crud
from carematch.crud import slot as slot_crud
from carematch.db.models.booking import Booking, BookingOutcome, BookingStatus
from carematch.schemas.booking import BookingCreate, CloseBookingRequest
from carematch.services.access import AccessLookup, default_access

logger = get_logger(__name__)


# ---------- Internal helpers ----------

async def _load_for_specialist(db: AsyncSession, booking_id: uuid.UUID, specialist_id: str) -> Booking:
    booking = await booking_crud.get_booking(db, booking_id, fresh=True)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.specialist_id != specialist_id:
        raise Forbidden("Booking belongs to another specialist")
    return booking


async def _load_for_parent(db: AsyncSession, booking_id: uuid.UUID, parent_id: str) -> Booking:
    booking = await booking_crud.get_booking(db, booking_id, fresh=True)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.parent_id != parent_id:
        raise Forbidden("Booking belongs to another parent")
    return booking


async def _release_if_future(db: AsyncSession, booking: Booking, now: datetime) -> bool:
    if booking.availability_slot_id is None or booking.starts_at <= now:
        return False
    released = await slot_crud.release(db, booking.availability_slot_id, now=now)
    if released:
        logger.info("slot_released", slot_id=str(booking.availability_slot_id), booking_id=str(booking.id))
    return released


async def _transition(
    db: AsyncSession,
    booking: Booking,
    target: BookingStatus,
    *,
    release_slot: bool = False,
    idempotent: bool = False,
) -> Booking:
    """
    Compare-and-set previous -> target. When another writer got there first and
    idempotent is set, a booking already in a cancelled state is returned as is.
    """
    previous = booking.status
    now = utcnow()
    try:
        if not await booking_crud.compare_and_set_status(
            db, booking.id, expected=(previous,), target=target
        ):
            current = await booking_crud.get_booking(db, booking.id, fresh=True)
            if not (idempotent and current is not None and current.status.is_cancelled):
                raise InvalidTransition("Booking status changed concurrently; reload and retry")
            await db.commit()
            logger.info(
                "booking_transition_settled",
                booking_id=str(booking.id),
                requested=target.value,
                status=current.status.value,
            )
            return current
        if release_slot:
            await _release_if_future(db, booking, now)
        await db.refresh(booking)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "booking_transition",
        booking_id=str(booking.id),
        from_status=previous.value,
        to_status=target.value,
    )
    return booking


# ---------- Parent actions ----------

async def create_booking(
    db: AsyncSession,
    *,
    parent_id: str,
    payload: BookingCreate,
    access: AccessLookup = default_access,
) -> Booking:
    """
    Claim a free slot for a parent (status pending).

    Checks, in order: slot exists, specialist approved, slot not in the past,
    child belongs to parent, then the atomic occupy. Losing the occupy race is
    a Conflict and leaves no booking row behind.
    """
    try:
        slot = await slot_crud.get_slot(db, payload.availability_slot_id)
        if slot is None:
            raise NotFound("Slot not found")

        if not await access.is_specialist_approved(db, slot.specialist_id):
            raise ValidationError("Specialist is not available for booking (profile not approved)")

        if slot.starts_at < utcnow():
            raise ValidationError("Cannot book a past slot")

        if payload.child_id is None:
            if settings.BOOKING_REQUIRES_CHILD:
                raise ValidationError("child_id is required")
        elif not await access.child_belongs_to_parent(db, payload.child_id, parent_id):
            raise Forbidden("Child does not belong to this parent")

        if not await slot_crud.try_occupy(db, slot.id):
            logger.info("slot_occupy_lost", slot_id=str(slot.id), parent_id=parent_id)
            raise Conflict("Slot already booked")
        logger.info("slot_occupied", slot_id=str(slot.id), parent_id=parent_id)

        booking = await booking_crud.add_booking(
            db,
            slot=slot,
            parent_id=parent_id,
            child_id=payload.child_id,
            message=payload.message_from_parent,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "booking_created",
        booking_id=str(booking.id),
        slot_id=str(slot.id),
        specialist_id=booking.specialist_id,
        parent_id=parent_id,
    )
    return booking


async def cancel_by_parent(db: AsyncSession, *, parent_id: str, booking_id: uuid.UUID) -> Booking:
    """Idempotent: an already cancelled or declined booking is returned unchanged."""
    booking = await _load_for_parent(db, booking_id, parent_id)
    if booking.status.is_cancelled:
        return booking
    if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
        raise InvalidTransition(f"Cannot cancel a {booking.status.value} booking")
    return await _transition(db, booking, BookingStatus.CANCELLED_BY_PARENT, release_slot=True, idempotent=True)


async def acknowledge_outcome(db: AsyncSession, *, parent_id: str, booking_id: uuid.UUID) -> BookingOutcome:
    booking = await _load_for_parent(db, booking_id, parent_id)
    outcome = booking.outcome
    if booking.status != BookingStatus.COMPLETED or outcome is None:
        raise NotFound("Booking has no outcome yet")
    if outcome.parent_acknowledged_at is None:
        try:
            outcome.parent_acknowledged_at = utcnow()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("outcome_acknowledged", booking_id=str(booking.id), parent_id=parent_id)
    return outcome


# ---------- Specialist actions ----------

async def confirm(db: AsyncSession, *, specialist_id: str, booking_id: uuid.UUID) -> Booking:
    booking = await _load_for_specialist(db, booking_id, specialist_id)
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransition("Only pending bookings can be confirmed")
    return await _transition(db, booking, BookingStatus.CONFIRMED)


async def decline(db: AsyncSession, *, specialist_id: str, booking_id: uuid.UUID) -> Booking:
    booking = await _load_for_specialist(db, booking_id, specialist_id)
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransition("Only pending bookings can be declined")
    return await _transition(db, booking, BookingStatus.DECLINED, release_slot=True)


async def cancel_by_specialist(db: AsyncSession, *, specialist_id: str, booking_id: uuid.UUID) -> Booking:
    booking = await _load_for_specialist(db, booking_id, specialist_id)
    if booking.status.is_cancelled:
        return booking
    if booking.status != BookingStatus.PENDING:
        raise InvalidTransition("Only pending bookings can be cancelled by the specialist")
    return await _transition(db, booking, BookingStatus.CANCELLED_BY_SPECIALIST, release_slot=True, idempotent=True)


async def close(
    db: AsyncSession,
    *,
    specialist_id: str,
    booking_id: uuid.UUID,
    payload: CloseBookingRequest,
) -> Booking:
    """confirmed -> completed, writing (or rewriting) the one-to-one outcome."""
    booking = await _load_for_specialist(db, booking_id, specialist_id)
    if booking.status != BookingStatus.CONFIRMED:
        raise InvalidTransition("Only confirmed bookings can be closed")

    try:
        await booking_crud.upsert_outcome(
            db,
            booking,
            summary=payload.summary,
            recommendations=payload.recommendations,
            next_steps=payload.next_steps,
            private_notes=payload.private_notes,
        )
        if not await booking_crud.compare_and_set_status(
            db, booking.id, expected=(BookingStatus.CONFIRMED,), target=BookingStatus.COMPLETED
        ):
            raise InvalidTransition("Booking status changed concurrently; reload and retry")
        await db.refresh(booking)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "booking_transition",
        booking_id=str(booking.id),
        from_status=BookingStatus.CONFIRMED.value,
        to_status=BookingStatus.COMPLETED.value,
    )
    return booking


# ---------- Queries ----------

def _window(from_utc: Optional[datetime], to_utc: Optional[datetime]) -> tuple[Optional[datetime], Optional[datetime]]:
    from_utc = ensure_utc(from_utc) if from_utc is not None else None
    to_utc = ensure_utc(to_utc) if to_utc is not None else None
    if from_utc is not None and to_utc is not None and to_utc <= from_utc:
        raise ValidationError("to_utc must be greater than from_utc")
    return from_utc, to_utc


async def list_for_specialist(
    db: AsyncSession,
    *,
    specialist_id: str,
    status: Optional[BookingStatus] = None,
    from_utc: Optional[datetime] = None,
    to_utc: Optional[datetime] = None,
) -> Sequence[Booking]:
    from_utc, to_utc = _window(from_utc, to_utc)
    return await booking_crud.list_bookings(
        db, specialist_id=specialist_id, status=status, start_utc=from_utc, end_utc=to_utc
    )


async def list_for_parent(
    db: AsyncSession,
    *,
    parent_id: str,
    status: Optional[BookingStatus] = None,
    from_utc: Optional[datetime] = None,
    to_utc: Optional[datetime] = None,
) -> Sequence[Booking]:
    from_utc, to_utc = _window(from_utc, to_utc)
    return await booking_crud.list_bookings(
        db, parent_id=parent_id, status=status, start_utc=from_utc, end_utc=to_utc
    )


async def get_for_specialist(db: AsyncSession, *, specialist_id: str, booking_id: uuid.UUID) -> Booking:
    return await _load_for_specialist(db, booking_id, specialist_id)


async def get_for_parent(db: AsyncSession, *, parent_id: str, booking_id: uuid.UUID) -> Booking:
    return await _load_for_parent(db, booking_id, parent_id)
