# carematch/db/models/template.py

from __future__ import annotations
import uuid
from datetime import datetime, time, timezone
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from carematch.db.session import Base
from carematch.db.types import UTCDateTime

class WeeklyTemplate(Base):
    __tablename__ = "weekly_templates"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    # At most one template per specialist
    specialist_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    slots: Mapped[list["WeeklyTemplateSlot"]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by=lambda: (WeeklyTemplateSlot.day_of_week, WeeklyTemplateSlot.start_time),
    )


class WeeklyTemplateSlot(Base):
    __tablename__ = "weekly_template_slots"
    __table_args__ = (
        sa.UniqueConstraint(
            "template_id", "day_of_week", "start_time", "end_time",
            name="uq_weekly_template_slots_day_range",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_weekly_template_slots_time"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_weekly_template_slots_dow"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("weekly_templates.id", ondelete="CASCADE"), nullable=False
    )

    # 0 = Sunday ... 6 = Saturday
    day_of_week: Mapped[int] = mapped_column(sa.SmallInteger, nullable=False)
    start_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    end_time: Mapped[time] = mapped_column(sa.Time, nullable=False)
    note: Mapped[str | None] = mapped_column(sa.String(200))

    template: Mapped[WeeklyTemplate] = relationship(back_populates="slots")
