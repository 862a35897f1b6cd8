# carematch/db/models/booking.py

from __future__ import annotations
import enum
import uuid
from datetime import datetime, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from carematch.db.session import Base
from carematch.db.types import UTCDateTime


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED_BY_PARENT = "cancelled_by_parent"
    CANCELLED_BY_SPECIALIST = "cancelled_by_specialist"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_cancelled(self) -> bool:
        return self in CANCELLED_STATUSES


TERMINAL_STATUSES = frozenset({
    BookingStatus.DECLINED,
    BookingStatus.CANCELLED_BY_PARENT,
    BookingStatus.CANCELLED_BY_SPECIALIST,
    BookingStatus.COMPLETED,
})
CANCELLED_STATUSES = frozenset({
    BookingStatus.DECLINED,
    BookingStatus.CANCELLED_BY_PARENT,
    BookingStatus.CANCELLED_BY_SPECIALIST,
})


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        sa.CheckConstraint("ends_at > starts_at", name="ck_bookings_time"),
        sa.Index("ix_bookings_specialist_id_starts_at", "specialist_id", "starts_at"),
        sa.Index("ix_bookings_parent_id_starts_at", "parent_id", "starts_at"),
        sa.Index("ix_bookings_availability_slot_id", "availability_slot_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    specialist_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    parent_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    child_id: Mapped[uuid.UUID | None] = mapped_column(sa.Uuid, sa.ForeignKey("children.id"))

    # Copied from the slot at creation; never rewritten
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        sa.Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            length=32,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    message_from_parent: Mapped[str | None] = mapped_column(sa.String(1000))

    # No ON DELETE action: crud.booking.detach_slots clears it before a slot row goes away
    availability_slot_id: Mapped[uuid.UUID | None] = mapped_column(
        sa.Uuid, sa.ForeignKey("availability_slots.id")
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    outcome: Mapped["BookingOutcome | None"] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class BookingOutcome(Base):
    __tablename__ = "booking_outcomes"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    specialist_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    parent_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)

    # Parent-visible part
    summary: Mapped[str] = mapped_column(sa.String(4000), nullable=False)
    recommendations: Mapped[str | None] = mapped_column(sa.String(4000))
    next_steps: Mapped[str | None] = mapped_column(sa.String(1000))

    # Specialist only
    private_notes: Mapped[str | None] = mapped_column(sa.String(4000))

    parent_acknowledged_at: Mapped[datetime | None] = mapped_column(UTCDateTime)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    booking: Mapped[Booking] = relationship(back_populates="outcome")
