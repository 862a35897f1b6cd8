# carematch/api/routes/parent_bookings.py

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.api.deps import Caller, require_parent
from carematch.db.models.booking import BookingStatus
from carematch.db.session import get_session
from carematch.schemas.booking import BookingCreate, BookingDetailsOut, BookingOut, OutcomeOut
from carematch.services import booking as booking_service

router = APIRouter(prefix="/parent/bookings", tags=["parent-bookings"])

@router.post("", response_model=BookingOut, status_code=http_status.HTTP_201_CREATED)
async def create_booking_ep(
    payload: BookingCreate,
    caller: Caller = Depends(require_parent),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.create_booking(db, parent_id=caller.user_id, payload=payload)

@router.get("", response_model=list[BookingOut])
async def my_bookings_ep(
    status: Optional[BookingStatus] = Query(None),
    from_utc: Optional[datetime] = Query(None),
    to_utc: Optional[datetime] = Query(None),
    caller: Caller = Depends(require_parent),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.list_for_parent(
        db, parent_id=caller.user_id, status=status, from_utc=from_utc, to_utc=to_utc
    )

@router.get("/{booking_id}", response_model=BookingDetailsOut)
async def details_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_parent),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.get_for_parent(db, parent_id=caller.user_id, booking_id=booking_id)

@router.post("/{booking_id}/cancel", response_model=BookingOut)
async def cancel_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_parent),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.cancel_by_parent(db, parent_id=caller.user_id, booking_id=booking_id)

@router.post("/{booking_id}/acknowledge", response_model=OutcomeOut)
async def acknowledge_ep(
    booking_id: uuid.UUID,
    caller: Caller = Depends(require_parent),
    db: AsyncSession = Depends(get_session),
):
    return await booking_service.acknowledge_outcome(db, parent_id=caller.user_id, booking_id=booking_id)
