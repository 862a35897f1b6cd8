# carematch/schemas/slot.py

import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

class SlotCreateItem(BaseModel):
    starts_at: datetime = Field(..., description="UTC start, aligned to 30 minutes", examples=["2026-11-02T09:00:00Z"])
    ends_at: datetime = Field(..., description="UTC end (exclusive)", examples=["2026-11-02T09:30:00Z"])
    note: Optional[str] = Field(None, max_length=200, examples=["online"])

class SlotBatchCreate(BaseModel):
    slots: list[SlotCreateItem]

class SlotOut(BaseModel):
    id: uuid.UUID
    starts_at: datetime
    ends_at: datetime
    is_booked: bool
    note: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
