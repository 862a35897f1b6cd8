# carematch/api/routes/availability.py

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.api.deps import Caller, require_specialist
from carematch.db.session import get_session
from carematch.schemas.slot import SlotBatchCreate, SlotOut
from carematch.services import availability

router = APIRouter(prefix="/specialist/availability", tags=["availability"])

@router.post("", response_model=list[SlotOut], status_code=status.HTTP_201_CREATED)
async def create_slots_ep(
    payload: SlotBatchCreate,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await availability.create_batch(db, specialist_id=caller.user_id, slots=payload.slots)

@router.get("", response_model=list[SlotOut])
async def list_slots_ep(
    from_utc: datetime = Query(..., description="Window start (UTC)"),
    to_utc: datetime = Query(..., description="Window end (UTC, exclusive)"),
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await availability.list_slots(db, specialist_id=caller.user_id, from_utc=from_utc, to_utc=to_utc)

@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slot_ep(
    slot_id: uuid.UUID,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    await availability.delete_slot(db, specialist_id=caller.user_id, slot_id=slot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
