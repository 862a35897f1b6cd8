# carematch/api/routes/templates.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.api.deps import Caller, require_specialist
from carematch.db.session import get_session
from carematch.schemas.template import (
    MaterializeRequest,
    MaterializeResult,
    PresetInfo,
    PresetRequest,
    TemplateOut,
    TemplateUpsert,
)
from carematch.services import presets, templates

router = APIRouter(prefix="/specialist/schedule-template", tags=["schedule-template"])

@router.get("", response_model=TemplateOut)
async def get_template_ep(
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await templates.get_template(db, specialist_id=caller.user_id)

@router.get("/presets", response_model=list[PresetInfo])
async def list_presets_ep(caller: Caller = Depends(require_specialist)):
    return presets.list_presets()

@router.put("", response_model=TemplateOut)
async def upsert_template_ep(
    payload: TemplateUpsert,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await templates.upsert_template(
        db, specialist_id=caller.user_id, slots=payload.slots, is_active=payload.is_active
    )

@router.post("/from-preset", response_model=TemplateOut)
async def from_preset_ep(
    payload: PresetRequest,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await templates.generate_from_preset(db, specialist_id=caller.user_id, req=payload)

@router.post("/materialize", response_model=MaterializeResult)
async def materialize_ep(
    payload: MaterializeRequest,
    caller: Caller = Depends(require_specialist),
    db: AsyncSession = Depends(get_session),
):
    return await templates.materialize(
        db,
        specialist_id=caller.user_id,
        from_date_utc=payload.from_date_utc,
        to_date_utc=payload.to_date_utc,
        skip_past=payload.skip_past,
    )
