# carematch/schemas/booking.py

import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from carematch.db.models.booking import BookingStatus

class BookingCreate(BaseModel):
    availability_slot_id: uuid.UUID
    child_id: Optional[uuid.UUID] = None
    message_from_parent: Optional[str] = Field(None, max_length=1000)

class BookingOut(BaseModel):
    id: uuid.UUID
    specialist_id: str
    parent_id: str
    child_id: Optional[uuid.UUID] = None
    starts_at: datetime
    ends_at: datetime
    status: BookingStatus
    message_from_parent: Optional[str] = None
    availability_slot_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

class CloseBookingRequest(BaseModel):
    summary: str = Field(..., min_length=1, max_length=4000)
    recommendations: Optional[str] = Field(None, max_length=4000)
    next_steps: Optional[str] = Field(None, max_length=1000)
    private_notes: Optional[str] = Field(None, max_length=4000)

    @field_validator("summary")
    @classmethod
    def _clean_summary(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("summary cannot be empty")
        return v

class OutcomeOut(BaseModel):
    """Parent-facing outcome: no private notes."""
    booking_id: uuid.UUID
    summary: str
    recommendations: Optional[str] = None
    next_steps: Optional[str] = None
    created_at: datetime
    parent_acknowledged_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

class SpecialistOutcomeOut(OutcomeOut):
    private_notes: Optional[str] = None

class BookingDetailsOut(BookingOut):
    outcome: Optional[OutcomeOut] = None

class SpecialistBookingDetailsOut(BookingOut):
    outcome: Optional[SpecialistOutcomeOut] = None
