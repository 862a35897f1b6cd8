"""
Weekly template engine: validation, full replace, preset generation and materialization.
"""

from datetime import time, timedelta

import pytest
import sqlalchemy as sa

from carematch.core.errors import Conflict, NotFound, ValidationError
from carematch.crud import slot as slot_crud
from carematch.db.models.booking import BookingStatus
from carematch.schemas.booking import BookingCreate
from carematch.schemas.slot import SlotCreateItem
from carematch.schemas.template import PresetRequest, TemplateSlotIn
from carematch.services import availability, templates
from carematch.services import booking as booking_service

from conftest import PARENT, SPECIALIST, day_at, next_weekday

MONDAY, TUESDAY = 1, 2


def tslot(dow, start, end, note=None):
    return TemplateSlotIn(day_of_week=dow, start_time=start, end_time=end, note=note)


async def upsert(db, *slots, is_active=True):
    return await templates.upsert_template(db, specialist_id=SPECIALIST, slots=list(slots), is_active=is_active)


async def slots_between(db, start, end):
    return await availability.list_slots(db, specialist_id=SPECIALIST, from_utc=start, to_utc=end)


class TestUpsert:

    async def test_no_template_yet(self, db):
        out = await templates.get_template(db, specialist_id=SPECIALIST)
        assert out.id is None
        assert out.is_active is False
        assert out.slots == []

    async def test_round_trip_sorted_by_day_then_start(self, db):
        await upsert(
            db,
            tslot(TUESDAY, time(9), time(9, 30)),
            tslot(MONDAY, time(14), time(15), "clinic"),
            tslot(MONDAY, time(9), time(9, 30)),
        )
        out = await templates.get_template(db, specialist_id=SPECIALIST)
        assert out.is_active is True
        assert [(s.day_of_week, s.start_time) for s in out.slots] == [
            (MONDAY, time(9)), (MONDAY, time(14)), (TUESDAY, time(9)),
        ]
        assert out.slots[1].note == "clinic"

    async def test_upsert_replaces_everything(self, db):
        first = await upsert(db, tslot(MONDAY, time(9), time(10)), tslot(TUESDAY, time(9), time(10)))
        second = await upsert(db, tslot(MONDAY, time(16), time(16, 30)), is_active=False)

        out = await templates.get_template(db, specialist_id=SPECIALIST)
        assert out.id == second.id != first.id
        assert out.is_active is False
        assert [(s.day_of_week, s.start_time) for s in out.slots] == [(MONDAY, time(16))]

    async def test_overlap_within_a_day_rejected(self, db):
        with pytest.raises(ValidationError):
            await upsert(db, tslot(MONDAY, time(9), time(10)), tslot(MONDAY, time(9, 30), time(10, 30)))

    async def test_same_hours_on_different_days_are_fine(self, db):
        out = await upsert(db, tslot(MONDAY, time(9), time(10)), tslot(TUESDAY, time(9), time(10)))
        assert len(out.slots) == 2

    async def test_misaligned_rejected(self, db):
        with pytest.raises(ValidationError):
            await upsert(db, tslot(MONDAY, time(9, 15), time(9, 45)))

    async def test_inverted_rejected(self, db):
        with pytest.raises(ValidationError):
            await upsert(db, tslot(MONDAY, time(10), time(9)))

    async def test_rejected_upsert_keeps_previous_template(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(10)))
        with pytest.raises(ValidationError):
            await upsert(db, tslot(MONDAY, time(9), time(10)), tslot(MONDAY, time(9), time(9, 30)))
        out = await templates.get_template(db, specialist_id=SPECIALIST)
        assert len(out.slots) == 1


class TestFromPreset:

    async def test_weekdays_preset_becomes_the_template(self, db):
        out = await templates.generate_from_preset(
            db, specialist_id=SPECIALIST, req=PresetRequest(preset_code="weekdays_10_18", slot_minutes=60)
        )
        assert len(out.slots) == 40
        assert {s.day_of_week for s in out.slots} == {1, 2, 3, 4, 5}

    async def test_empty_preset_clears_the_template(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(10)))
        out = await templates.generate_from_preset(
            db, specialist_id=SPECIALIST, req=PresetRequest(preset_code="empty")
        )
        assert out.slots == []
        assert out.id is not None

    async def test_unknown_preset(self, db):
        with pytest.raises(ValidationError):
            await templates.generate_from_preset(
                db, specialist_id=SPECIALIST, req=PresetRequest(preset_code="graveyard")
            )


class TestMaterialize:

    async def materialize(self, db, start, end, skip_past=True):
        return await templates.materialize(
            db, specialist_id=SPECIALIST, from_date_utc=start, to_date_utc=end, skip_past=skip_past
        )

    async def test_two_mondays_in_fourteen_days(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)))
        monday = next_weekday(MONDAY)
        start = day_at(monday, 0)

        result = await self.materialize(db, start, start + timedelta(days=14))

        assert result.created == 2
        assert result.removed == 0
        created = await slots_between(db, start, start + timedelta(days=14))
        assert [(s.starts_at, s.ends_at) for s in created] == [
            (day_at(monday, 9), day_at(monday, 9, 30)),
            (day_at(monday + timedelta(days=7), 9), day_at(monday + timedelta(days=7), 9, 30)),
        ]
        assert all(s.is_booked is False for s in created)

    async def test_time_of_day_is_ignored_in_range(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)))
        monday = next_weekday(MONDAY)
        result = await self.materialize(db, day_at(monday, 17, 30), day_at(monday + timedelta(days=1), 3))
        assert result.created == 1
        assert result.from_date_utc == day_at(monday, 0)

    async def test_range_is_purged_first(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)))
        tuesday = next_weekday(MONDAY) + timedelta(days=1)
        await availability.create_batch(
            db,
            specialist_id=SPECIALIST,
            slots=[SlotCreateItem(starts_at=day_at(tuesday, 12), ends_at=day_at(tuesday, 12, 30))],
        )
        start = day_at(tuesday - timedelta(days=1), 0)

        result = await self.materialize(db, start, start + timedelta(days=7))

        assert result.removed == 1
        remaining = await slots_between(db, start, start + timedelta(days=7))
        assert [s.starts_at.time() for s in remaining] == [time(9)]

    async def test_rerun_is_stable(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)), tslot(MONDAY, time(10), time(11)))
        start = day_at(next_weekday(MONDAY), 0)
        end = start + timedelta(days=7)

        await self.materialize(db, start, end)
        again = await self.materialize(db, start, end)

        assert (again.created, again.removed) == (2, 2)
        assert len(await slots_between(db, start, end)) == 2

    async def test_booked_slots_are_purged_and_bookings_detached(self, db, approved_specialist, child_id):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)))
        start = day_at(next_weekday(MONDAY), 0)
        end = start + timedelta(days=7)
        await self.materialize(db, start, end)
        (slot,) = await slots_between(db, start, end)
        booking = await booking_service.create_booking(
            db, parent_id=PARENT, payload=BookingCreate(availability_slot_id=slot.id, child_id=child_id)
        )

        result = await self.materialize(db, start, end)

        assert (result.created, result.removed) == (1, 1)
        await db.refresh(booking)
        assert booking.status == BookingStatus.PENDING
        assert booking.availability_slot_id is None
        (fresh,) = await slots_between(db, start, end)
        assert fresh.id != slot.id
        assert fresh.is_booked is False

    async def test_slot_referenced_during_purge_is_conflict(self, db, monkeypatch):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)))
        start = day_at(next_weekday(MONDAY), 0)
        end = start + timedelta(days=7)
        await self.materialize(db, start, end)
        (slot,) = await slots_between(db, start, end)
        slot_id = slot.id

        async def referenced_meanwhile(session, slot_ids):
            raise sa.exc.IntegrityError("DELETE FROM availability_slots", {}, Exception("foreign key violation"))

        monkeypatch.setattr(slot_crud, "delete_slots", referenced_meanwhile)
        with pytest.raises(Conflict):
            await self.materialize(db, start, end)

        assert [s.id for s in await slots_between(db, start, end)] == [slot_id]

    async def test_empty_template_changes_nothing(self, db):
        await upsert(db)
        tuesday = next_weekday(TUESDAY)
        await availability.create_batch(
            db,
            specialist_id=SPECIALIST,
            slots=[SlotCreateItem(starts_at=day_at(tuesday, 12), ends_at=day_at(tuesday, 12, 30))],
        )
        start = day_at(tuesday, 0)

        result = await self.materialize(db, start, start + timedelta(days=7))

        assert (result.created, result.removed) == (0, 0)
        assert len(await slots_between(db, start, start + timedelta(days=7))) == 1

    async def test_slot_straddling_the_range_edge_conflicts(self, db):
        await upsert(db, tslot(MONDAY, time(0), time(1)))
        monday = next_weekday(MONDAY) + timedelta(days=7)
        await availability.create_batch(
            db,
            specialist_id=SPECIALIST,
            slots=[SlotCreateItem(starts_at=day_at(monday, 0) - timedelta(minutes=30), ends_at=day_at(monday, 0, 30))],
        )
        with pytest.raises(Conflict):
            await self.materialize(db, day_at(monday, 0), day_at(monday, 0) + timedelta(days=7))

    async def test_skip_past_drops_elapsed_slots(self, db):
        await upsert(db, *[tslot(d, time(0), time(0, 30)) for d in range(7)])
        start = day_at(next_weekday(MONDAY) - timedelta(days=14), 0)

        result = await self.materialize(db, start, start + timedelta(days=7))

        assert result.created == 0

    async def test_no_template(self, db):
        start = day_at(next_weekday(MONDAY), 0)
        with pytest.raises(NotFound):
            await self.materialize(db, start, start + timedelta(days=7))

    async def test_inactive_template(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)), is_active=False)
        start = day_at(next_weekday(MONDAY), 0)
        with pytest.raises(ValidationError):
            await self.materialize(db, start, start + timedelta(days=7))

    async def test_range_limits(self, db):
        await upsert(db, tslot(MONDAY, time(9), time(9, 30)))
        start = day_at(next_weekday(MONDAY), 0)
        with pytest.raises(ValidationError):
            await self.materialize(db, start, start)
        with pytest.raises(ValidationError):
            await self.materialize(db, start, start + timedelta(days=91))
        result = await self.materialize(db, start, start + timedelta(days=90))
        assert result.created == 13
