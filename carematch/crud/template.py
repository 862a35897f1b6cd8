# carematch/crud/template.py

from __future__ import annotations
from datetime import time
from typing import Iterable, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from carematch.core.intervals import utcnow
from carematch.db.models.template import WeeklyTemplate, WeeklyTemplateSlot


async def get_template(db: AsyncSession, specialist_id: str) -> Optional[WeeklyTemplate]:
    q = (
        sa.select(WeeklyTemplate)
        .options(selectinload(WeeklyTemplate.slots))
        .where(WeeklyTemplate.specialist_id == specialist_id)
    )
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def replace_template(
    db: AsyncSession,
    *,
    specialist_id: str,
    slots: Iterable[tuple[int, time, time, Optional[str]]],
    is_active: bool,
) -> WeeklyTemplate:
    """Delete the specialist's template (and its slots) and insert a fresh one."""
    old_ids = sa.select(WeeklyTemplate.id).where(WeeklyTemplate.specialist_id == specialist_id)
    await db.execute(
        sa.delete(WeeklyTemplateSlot)
        .where(WeeklyTemplateSlot.template_id.in_(old_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        sa.delete(WeeklyTemplate)
        .where(WeeklyTemplate.specialist_id == specialist_id)
        .execution_options(synchronize_session=False)
    )

    now = utcnow()
    tpl = WeeklyTemplate(
        specialist_id=specialist_id,
        is_active=is_active,
        created_at=now,
        updated_at=now,
        slots=[
            WeeklyTemplateSlot(day_of_week=dow, start_time=start, end_time=end, note=note)
            for dow, start, end, note in slots
        ],
    )
    db.add(tpl)
    await db.flush()
    return tpl
