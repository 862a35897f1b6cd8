# carematch/db/models/directory.py
"""
Read-only views of rows owned by the profile service.
The scheduler only ever asks two questions of them: is the specialist approved,
and does the child belong to the parent.
"""

from __future__ import annotations
import enum
import uuid
import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from carematch.db.session import Base


class ModerationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SpecialistProfile(Base):
    __tablename__ = "specialist_profiles"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, unique=True)
    moderation_status: Mapped[ModerationStatus] = mapped_column(
        sa.Enum(
            ModerationStatus,
            name="moderation_status",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ModerationStatus.PENDING,
    )
    # IANA zone; not applied to materialized slots (see DESIGN.md)
    timezone: Mapped[str] = mapped_column(sa.String(64), nullable=False, server_default="UTC", default="UTC")


class Child(Base):
    __tablename__ = "children"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    parent_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
