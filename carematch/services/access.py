# carematch/services/access.py
"""
Boolean lookups the scheduler asks of the profile service.
"""
from __future__ import annotations

import uuid
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.db.models.directory import Child, ModerationStatus, SpecialistProfile


class AccessLookup(Protocol):
    async def is_specialist_approved(self, db: AsyncSession, specialist_id: str) -> bool: ...

    async def child_belongs_to_parent(self, db: AsyncSession, child_id: uuid.UUID, parent_id: str) -> bool: ...


class DbAccessLookup:
    """Answers from the profile tables sharing the scheduler's database."""

    async def is_specialist_approved(self, db: AsyncSession, specialist_id: str) -> bool:
        q = sa.select(sa.literal(True)).where(
            SpecialistProfile.user_id == specialist_id,
            SpecialistProfile.moderation_status == ModerationStatus.APPROVED,
        )
        res = await db.execute(q)
        return res.scalar_one_or_none() is not None

    async def child_belongs_to_parent(self, db: AsyncSession, child_id: uuid.UUID, parent_id: str) -> bool:
        q = sa.select(sa.literal(True)).where(Child.id == child_id, Child.parent_id == parent_id)
        res = await db.execute(q)
        return res.scalar_one_or_none() is not None


default_access = DbAccessLookup()
