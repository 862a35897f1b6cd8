# carematch/services/presets.py
"""
Named weekly patterns expanded into template slot lists. Pure functions, no I/O.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta, date
from typing import Iterable, Optional, Sequence

from carematch.core.errors import ValidationError
from carematch.core.intervals import overlaps
from carematch.schemas.template import BreakIn, PresetInfo, PresetRequest, TemplateSlotIn

WEEKDAYS = (1, 2, 3, 4, 5)
WEEKEND = (6, 0)
ALLOWED_SLOT_MINUTES = (30, 60)
DEFAULT_SLOT_MINUTES = 30


@dataclass(frozen=True)
class Preset:
    code: str
    name: str
    days: tuple[int, ...]
    start: time
    end: time
    slot_minutes: int = DEFAULT_SLOT_MINUTES

    def info(self) -> PresetInfo:
        return PresetInfo(code=self.code, name=self.name, slot_minutes=self.slot_minutes)


@dataclass(frozen=True)
class DayBlock:
    days: tuple[int, ...]
    start: time
    end: time


PRESETS: dict[str, Preset] = {
    p.code: p
    for p in (
        Preset("weekdays_10_18", "Weekdays 10:00-18:00", WEEKDAYS, time(10, 0), time(18, 0)),
        Preset("evenings_18_21", "Evenings 18:00-21:00", WEEKDAYS, time(18, 0), time(21, 0)),
        Preset("weekends_10_16", "Weekends 10:00-16:00", WEEKEND, time(10, 0), time(16, 0)),
        # days and hours unused; generated from MIXED_BLOCKS, overrides ignored
        Preset("mixed", "Mixed", WEEKDAYS, time(10, 0), time(20, 0)),
        Preset("empty", "Empty", (), time(0, 0), time(0, 0)),
    )
}

# Mon/Wed/Fri mornings + Tue/Thu evenings
MIXED_BLOCKS = (
    DayBlock((1, 3, 5), time(10, 0), time(13, 0)),
    DayBlock((2, 4), time(16, 0), time(20, 0)),
)


def list_presets() -> list[PresetInfo]:
    return [p.info() for p in PRESETS.values()]


def _add_minutes(t: time, minutes: int) -> Optional[time]:
    """t + minutes, or None when that would run past midnight."""
    moved = datetime.combine(date.min, t) + timedelta(minutes=minutes)
    if moved.date() != date.min:
        return None
    return moved.time()


def build_day_slots(
    days: Iterable[int],
    start: time,
    end: time,
    step_minutes: int,
    breaks: Sequence[BreakIn] = (),
    note: Optional[str] = None,
) -> list[TemplateSlotIn]:
    """
    Fixed-length slots from start to end on each day; a slot that would run
    past end is dropped, as is any slot touching a break.
    """
    slots: list[TemplateSlotIn] = []
    for d in sorted(set(days)):
        t = start
        while t < end:
            nxt = _add_minutes(t, step_minutes)
            if nxt is None or nxt > end:
                break
            if not any(overlaps(t, nxt, b.start, b.end) for b in breaks):
                slots.append(TemplateSlotIn(day_of_week=d, start_time=t, end_time=nxt, note=note))
            t = nxt
    return slots


def generate_preset_slots(req: PresetRequest) -> list[TemplateSlotIn]:
    """Expand a preset request into template slots (not yet validated)."""
    preset = PRESETS.get(req.preset_code)
    if preset is None:
        raise ValidationError(f"Unknown preset '{req.preset_code}'")

    if preset.code == "empty":
        return []

    step = req.slot_minutes if req.slot_minutes in ALLOWED_SLOT_MINUTES else DEFAULT_SLOT_MINUTES

    if preset.code == "mixed":
        slots: list[TemplateSlotIn] = []
        for block in MIXED_BLOCKS:
            slots.extend(build_day_slots(block.days, block.start, block.end, DEFAULT_SLOT_MINUTES, note=req.note))
        return slots

    days = tuple(req.days_of_week) if req.days_of_week is not None else preset.days
    if any(d < 0 or d > 6 for d in days):
        raise ValidationError("days_of_week must be between 0 (Sunday) and 6 (Saturday)")

    start = req.start_time if req.start_time is not None else preset.start
    end = req.end_time if req.end_time is not None else preset.end
    if end <= start:
        raise ValidationError("end_time must be greater than start_time")
    if any(b.end <= b.start for b in req.breaks or ()):
        raise ValidationError("Break end must be greater than break start")

    return build_day_slots(days, start, end, step, req.breaks or (), req.note)
