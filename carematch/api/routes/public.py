# carematch/api/routes/public.py

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.db.session import get_session
from carematch.schemas.slot import SlotOut
from carematch.services import availability

router = APIRouter(prefix="/specialists", tags=["public"])

@router.get("/{specialist_id}/availability", response_model=list[SlotOut])
async def free_slots_ep(
    specialist_id: str,
    from_utc: datetime = Query(...),
    to_utc: datetime = Query(...),
    db: AsyncSession = Depends(get_session),
):
    return await availability.list_free_slots(
        db, specialist_id=specialist_id, from_utc=from_utc, to_utc=to_utc
    )
