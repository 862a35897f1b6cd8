# carematch/api/routes/specialist_bookings.py

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.api.deps import Caller, require_specialist
from carematch.db.models.booking import BookingStatus
from carematch.db.session import get_session
from carematch.schemas.booking import BookingOut, CloseBookingRequest, SpecialistBookingDetailsOut
from carematch.services import booking as booking_service

router = APIRouter(prefix="/specialist/bookings", tags=["specialist-bookings"])

@router.get("", response_model=list[BookingOut])
async def incoming_ep(
    status: Optional[BookingStatus] = Query(None),
    from_utc: Optional[datetime] = Query(None),
    to_utc: Optional[datetime] = Query(None),
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.list_for_specialist(
        db, specialist_id=caller.user_id, status=status, from_utc=from_utc, to_utc=to_utc
    )

@router.get("/{booking_id}", response_model=SpecialistBookingDetailsOut)
async def details_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.get_for_specialist(db, specialist_id=caller.user_id, booking_id=booking_id)

@router.post("/{booking_id}/confirm", response_model=BookingOut)
async def confirm_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.confirm(db, specialist_id=caller.user_id, booking_id=booking_id)

@router.post("/{booking_id}/decline", response_model=BookingOut)
async def decline_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.decline(db, specialist_id=caller.user_id, booking_id=booking_id)

@router.post("/{booking_id}/cancel", response_model=BookingOut)
async def cancel_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.cancel_by_specialist(db, specialist_id=caller.user_id, booking_id=booking_id)

@router.post("/{booking_id}/close", response_model=SpecialistBookingDetailsOut)
async def close_ep(
    booking_id: uuid.UUID,
    payload: CloseBookingRequest,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.close(
        db, specialist_id=caller.user_id, booking_id=booking_id, payload=payload
    )
