# carematch/services/templates.py
"""
Weekly template engine.

A specialist owns at most one template. Upsert is a full replace inside one
transaction (last writer wins). Materialize expands the active template into
concrete availability slots over a bounded date range, first purging the
slots already inside that range.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, time, timedelta
from typing import Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carematch.core.config import settings
from carematch.core.errors import Conflict, NotFound, ValidationError
from carematch.core.intervals import UTC, aligned, day_of_week, ensure_utc, overlaps, utcnow
from carematch.core.logging import get_logger
from carematch.crud import booking as booking_crud
from carematch.crud import slot as slot_crud
from carematch.crud import template as template_crud
from carematch.schemas.template import (
    MaterializeResult,
    PresetRequest,
    TemplateOut,
    TemplateSlotIn,
    TemplateSlotOut,
)
from carematch.services.presets import generate_preset_slots

logger = get_logger(__name__)


def _to_out(tpl) -> TemplateOut:
    slots = sorted(tpl.slots, key=lambda s: (s.day_of_week, s.start_time))
    return TemplateOut(
        id=tpl.id,
        is_active=tpl.is_active,
        slots=[TemplateSlotOut.model_validate(s) for s in slots],
    )


def validate_template_slots(slots: Sequence[TemplateSlotIn]) -> None:
    """end > start, granularity alignment, and no overlap within a day."""
    granularity = settings.SLOT_GRANULARITY_MIN
    for s in slots:
        if s.end_time <= s.start_time:
            raise ValidationError("end_time must be greater than start_time")
        if not aligned(s.start_time, granularity) or not aligned(s.end_time, granularity):
            raise ValidationError(f"Times must be aligned to {granularity} minutes (HH:mm like 09:00 / 09:30)")

    by_day: dict[int, list[TemplateSlotIn]] = defaultdict(list)
    for s in slots:
        by_day[s.day_of_week].append(s)

    for day, group in sorted(by_day.items()):
        group.sort(key=lambda s: s.start_time)
        for prev, nxt in zip(group, group[1:]):
            if prev.end_time > nxt.start_time:
                raise ValidationError(f"Overlap in day {day}")


async def get_template(db: AsyncSession, *, specialist_id: str) -> TemplateOut:
    tpl = await template_crud.get_template(db, specialist_id)
    if tpl is None:
        return TemplateOut(id=None, is_active=False, slots=[])
    return _to_out(tpl)


async def upsert_template(
    db: AsyncSession,
    *,
    specialist_id: str,
    slots: Sequence[TemplateSlotIn],
    is_active: bool = True,
) -> TemplateOut:
    validate_template_slots(slots)

    try:
        await slot_crud.lock_schedule(db, specialist_id)
        tpl = await template_crud.replace_template(
            db,
            specialist_id=specialist_id,
            slots=[(s.day_of_week, s.start_time, s.end_time, s.note) for s in slots],
            is_active=is_active,
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "template_replaced",
        specialist_id=specialist_id,
        template_id=str(tpl.id),
        slots=len(slots),
        is_active=is_active,
    )
    return _to_out(tpl)


async def generate_from_preset(
    db: AsyncSession,
    *,
    specialist_id: str,
    req: PresetRequest,
) -> TemplateOut:
    slots = generate_preset_slots(req)
    return await upsert_template(db, specialist_id=specialist_id, slots=slots, is_active=req.is_active)


async def materialize(
    db: AsyncSession,
    *,
    specialist_id: str,
    from_date_utc: datetime,
    to_date_utc: datetime,
    skip_past: bool = True,
) -> MaterializeResult:
    """
    Expand the active template over [from_date, to_date) (date parts only).

    Start/end are the template's time-of-day composed directly onto each UTC
    date; the specialist's own timezone is not applied. Every slot lying inside
    the range is deleted first, booked or not; bookings that pointed at a
    deleted slot keep their times and lose the slot reference.
    """
    from_dt, to_dt = ensure_utc(from_date_utc), ensure_utc(to_date_utc)
    if to_dt <= from_dt:
        raise ValidationError("to_date_utc must be greater than from_date_utc")
    if to_dt > from_dt + timedelta(days=settings.MATERIALIZE_MAX_DAYS):
        raise ValidationError(f"Range must not exceed {settings.MATERIALIZE_MAX_DAYS} days")

    tpl = await template_crud.get_template(db, specialist_id)
    if tpl is None:
        raise NotFound("No weekly template found")
    if not tpl.is_active:
        raise ValidationError("Weekly template is not active")

    by_day: dict[int, list] = defaultdict(list)
    for s in tpl.slots:
        by_day[s.day_of_week].append(s)

    now = utcnow()
    first_day, last_day = from_dt.date(), to_dt.date()
    range_start = datetime.combine(first_day, time.min, tzinfo=UTC)
    range_end = datetime.combine(last_day, time.min, tzinfo=UTC)

    generated: list[tuple[datetime, datetime, str | None]] = []
    current = first_day
    while current < last_day:
        for s in sorted(by_day.get(day_of_week(current), ()), key=lambda s: s.start_time):
            starts_at = datetime.combine(current, s.start_time, tzinfo=UTC)
            ends_at = datetime.combine(current, s.end_time, tzinfo=UTC)
            if skip_past and ends_at <= now:
                continue
            generated.append((starts_at, ends_at, s.note))
        current += timedelta(days=1)

    result = MaterializeResult(created=0, removed=0, from_date_utc=range_start, to_date_utc=range_end)
    if not generated:
        logger.info("template_materialized", specialist_id=specialist_id, created=0, removed=0)
        return result

    try:
        await slot_crud.lock_schedule(db, specialist_id)
        doomed = await slot_crud.slots_within(
            db, specialist_id=specialist_id, start_utc=range_start, end_utc=range_end
        )
        doomed_ids = [s.id for s in doomed]
        booked = sum(1 for s in doomed if s.is_booked)

        try:
            await booking_crud.detach_slots(db, doomed_ids)
            removed = await slot_crud.delete_slots(db, doomed_ids)
        except IntegrityError as exc:
            # a booking referenced a slot between the detach and the delete
            raise Conflict("Slots in range changed concurrently; retry") from exc

        # slots straddling the range edges survive the purge
        survivors = await slot_crud.list_slots(
            db, specialist_id=specialist_id, start_utc=range_start, end_utc=range_end
        )
        for starts_at, ends_at, _ in generated:
            if any(overlaps(e.starts_at, e.ends_at, starts_at, ends_at) for e in survivors):
                raise Conflict("Generated slots overlap availability outside the materialized range")

        created = await slot_crud.insert_slots(db, specialist_id=specialist_id, intervals=generated)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if booked:
        logger.warning(
            "materialize_purged_booked_slots",
            specialist_id=specialist_id,
            booked=booked,
        )
    logger.info(
        "template_materialized",
        specialist_id=specialist_id,
        created=len(created),
        removed=removed,
        range_start=range_start.isoformat(),
        range_end=range_end.isoformat(),
    )
    result.created = len(created)
    result.removed = removed
    return result
