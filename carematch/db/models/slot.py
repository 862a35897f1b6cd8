# carematch/db/models/slot.py

from __future__ import annotations
import uuid
from datetime import datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from carematch.db.session import Base
from carematch.db.types import UTCDateTime

class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"
    __table_args__ = (
        sa.UniqueConstraint("specialist_id", "starts_at", name="uq_availability_slots_specialist_id_starts_at"),
        sa.CheckConstraint("ends_at > starts_at", name="ck_availability_slots_time"),
        sa.Index("ix_availability_slots_specialist_range", "specialist_id", "starts_at", "ends_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    specialist_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)

    # Stored as UTC, exclusive end
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Flipped only by crud.slot.try_occupy / crud.slot.release
    is_booked: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    note: Mapped[str | None] = mapped_column(sa.String(200))

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<AvailabilitySlot {self.id} {self.starts_at:%Y-%m-%d %H:%M}-{self.ends_at:%H:%M} booked={self.is_booked}>"
