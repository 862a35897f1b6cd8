# carematch/schemas/template.py

import uuid
from datetime import datetime, time
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

class TemplateSlotIn(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: time = Field(..., examples=["09:00"])
    end_time: time = Field(..., examples=["09:30"])
    note: Optional[str] = Field(None, max_length=200)

class TemplateSlotOut(TemplateSlotIn):
    model_config = ConfigDict(from_attributes=True)

class TemplateUpsert(BaseModel):
    slots: list[TemplateSlotIn]
    is_active: bool = True

class TemplateOut(BaseModel):
    id: Optional[uuid.UUID] = None  # None when the specialist has no template yet
    is_active: bool
    slots: list[TemplateSlotOut]

class PresetInfo(BaseModel):
    code: str
    name: str
    slot_minutes: int

class BreakIn(BaseModel):
    start: time
    end: time

class PresetRequest(BaseModel):
    preset_code: str = Field(..., examples=["weekdays_10_18"])
    days_of_week: Optional[list[int]] = Field(None, description="Overrides the preset's days")
    start_time: Optional[time] = Field(None, description="Overrides the preset's start")
    end_time: Optional[time] = Field(None, description="Overrides the preset's end")
    slot_minutes: int = 30
    breaks: Optional[list[BreakIn]] = None
    note: Optional[str] = Field(None, max_length=200)
    is_active: bool = True

class MaterializeRequest(BaseModel):
    from_date_utc: datetime = Field(..., description="Only the date part is used")
    to_date_utc: datetime = Field(..., description="Exclusive; at most 90 days after from_date_utc")
    skip_past: bool = True

class MaterializeResult(BaseModel):
    created: int
    removed: int
    from_date_utc: datetime
    to_date_utc: datetime
