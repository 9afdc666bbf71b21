from __future__ import annotations

import asyncio
from datetime import date, datetime

import pytest

from swachh_netra.core.constants import WORKER_ATTENDANCE
from swachh_netra.core.enums import AttendanceStatus, Role, TripStatus
from swachh_netra.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from swachh_netra.attendance.model import AttendanceEntry


async def _open_trip(container, location):
    return await container.trip_manager.start_trip("d-1", "v-1", "fp-1", 1, location)


async def _record(container, trip_id, worker_id, status, **kwargs):
    return await container.attendance_recorder.record_attendance(
        trip_id, worker_id, worker_id.upper(), "", "", "", "", status, **kwargs
    )


def test_trip_attendance_updates_counters_and_status(container, at_fp1):
    async def scenario():
        trip = await _open_trip(container, at_fp1)
        for worker_id in ("w-1", "w-2", "w-3"):
            await _record(container, trip.trip_id, worker_id, "present")
        absent = await _record(container, trip.trip_id, "w-4", AttendanceStatus.ABSENT)
        session = await container.trip_manager.get_trip(trip.trip_id)
        records = await container.attendance_recorder.get_trip_attendance(trip.trip_id)
        return session, records, absent

    session, records, absent = asyncio.run(scenario())
    assert session.status == TripStatus.IN_PROGRESS
    assert session.present_workers == 3
    assert session.absent_workers == 1
    assert session.present_workers + session.absent_workers <= session.total_workers
    assert len(session.attendance_record_ids) == 4
    assert {r.record_id for r in records} == set(session.attendance_record_ids)
    # Blank inputs fall back to the trip's own snapshot.
    assert absent.feeder_point_id == "fp-1"
    assert absent.feeder_point_name == "Connaught Place Bin"
    assert absent.driver_id == "d-1"
    assert absent.check_in_time is None
    assert absent.effective_check_in is None


def test_optional_fields_are_stored_as_none(container, at_fp1, seeded_store):
    async def scenario():
        trip = await _open_trip(container, at_fp1)
        record = await _record(container, trip.trip_id, "w-1", True)
        return record, await seeded_store.get(WORKER_ATTENDANCE, record.record_id)

    record, raw = asyncio.run(scenario())
    assert record.status == AttendanceStatus.PRESENT
    for key in ("photo_ref", "notes", "location"):
        assert key in raw
        assert raw[key] is None


def test_attendance_rejected_for_finished_or_unknown_trip(container, at_fp1):
    async def scenario():
        trip = await _open_trip(container, at_fp1)
        await container.trip_manager.end_trip(trip.trip_id, waste_weight_kg=4, photo_refs=["p"])
        with pytest.raises(ValidationError, match="active trip"):
            await _record(container, trip.trip_id, "w-1", "present")
        with pytest.raises(NotFoundError):
            await _record(container, "no-such-trip", "w-1", "present")
        return await container.trip_manager.get_trip(trip.trip_id)

    session = asyncio.run(scenario())
    assert session.present_workers == 0
    assert session.attendance_record_ids == ()


def test_invalid_status_is_rejected(container, at_fp1):
    async def scenario():
        trip = await _open_trip(container, at_fp1)
        await _record(container, trip.trip_id, "w-1", "late")

    with pytest.raises(ValidationError, match="Invalid attendance status"):
        asyncio.run(scenario())


def test_mark_attendance_upserts_one_record_per_day(container, clock, fixed_now):
    recorder = container.attendance_recorder

    async def scenario():
        first = await recorder.mark_attendance("w-1", "Asha", "d-1", is_present=True, notes="on time")
        clock.advance(minutes=15)
        second = await recorder.mark_attendance("w-1", "Asha", "d-1", is_present=False)
        today = await container.attendance_repo.list_for_driver_on("d-1", "2026-03-02")
        return first, second, today

    first, second, today = asyncio.run(scenario())
    assert first.check_in_time == fixed_now
    assert first.notes == "on time"
    assert second.record_id == first.record_id
    assert second.status == AttendanceStatus.ABSENT
    assert second.check_in_time is None
    assert second.notes is None
    assert second.trip_id is None
    assert len(today) == 1


def test_bulk_mark_returns_ids_in_input_order(container):
    recorder = container.attendance_recorder
    checked_in = datetime(2026, 3, 2, 7, 55)
    entries = [
        AttendanceEntry("w-1", "Asha", True, check_in_time=checked_in),
        AttendanceEntry("w-2", "Bala", False),
        AttendanceEntry("w-1", "Asha", True),
    ]

    async def scenario():
        ids = await recorder.bulk_mark_attendance("d-1", entries, vehicle_id="v-9")
        roster = await recorder.get_driver_roster("d-1")
        return ids, roster

    ids, roster = asyncio.run(scenario())
    assert len(ids) == 3
    assert ids[0] == ids[2]
    assert ids[1] != ids[0]

    by_worker = {e.worker_id: e for e in roster.entries}
    assert by_worker["w-1"].status == "present"
    assert by_worker["w-2"].status == "absent"
    assert by_worker["w-3"].status == "pending"
    assert roster.total == 4
    assert roster.to_dict()["pending"] == 2


def test_bulk_mark_requires_entries(container):
    with pytest.raises(ValidationError, match="No workers selected"):
        asyncio.run(container.attendance_recorder.bulk_mark_attendance("d-1", []))


def test_roster_falls_back_to_contractor_workers(container):
    async def scenario():
        return (
            await container.attendance_recorder.get_driver_roster("d-2"),
            await container.attendance_recorder.get_driver_roster("d-3"),
        )

    contractor_roster, empty_roster = asyncio.run(scenario())
    # w-5 shares the contractor but is inactive.
    assert [e.worker_id for e in contractor_roster.entries] == ["w-6"]
    assert contractor_roster.entries[0].status == "pending"
    assert empty_roster.total == 0


def test_bulk_set_status_adjusts_trip_counters(container, at_fp1):
    recorder = container.attendance_recorder

    async def scenario():
        trip = await _open_trip(container, at_fp1)
        r1 = await _record(container, trip.trip_id, "w-1", "present")
        r2 = await _record(container, trip.trip_id, "w-2", "absent")
        direct = await recorder.mark_attendance("w-3", "Chandu", "d-1", is_present=True)
        count = await recorder.bulk_set_status([r1.record_id, r2.record_id, direct.record_id, r1.record_id], "absent")
        session = await container.trip_manager.get_trip(trip.trip_id)
        records = [await container.attendance_repo.get_by_id(r) for r in (r1.record_id, r2.record_id, direct.record_id)]
        return count, session, records

    count, session, records = asyncio.run(scenario())
    assert count == 3
    assert session.present_workers == 0
    assert session.absent_workers == 2
    assert all(r.status == AttendanceStatus.ABSENT for r in records)


def test_bulk_set_status_is_all_or_nothing(container):
    recorder = container.attendance_recorder

    async def scenario():
        record = await recorder.mark_attendance("w-1", "Asha", "d-1", is_present=True)
        with pytest.raises(NotFoundError):
            await recorder.bulk_set_status([record.record_id, "ghost"], "absent")
        with pytest.raises(ValidationError, match="No attendance records selected"):
            await recorder.bulk_set_status([], "absent")
        return await container.attendance_repo.get_by_id(record.record_id)

    assert asyncio.run(scenario()).status == AttendanceStatus.PRESENT


def test_update_record_requires_hr_or_admin(container):
    recorder = container.attendance_recorder

    async def scenario():
        record = await recorder.mark_attendance("w-1", "Asha", "d-1", is_present=True)
        with pytest.raises(AuthorizationError):
            await recorder.update_record(record.record_id, current_role=Role.DRIVER, status="absent")
        with pytest.raises(AuthorizationError):
            await recorder.update_record(record.record_id, current_role="", notes="x")
        with pytest.raises(ValidationError, match="Nothing to update"):
            await recorder.update_record(record.record_id, current_role=Role.ADMIN)
        with pytest.raises(NotFoundError):
            await recorder.update_record("ghost", current_role=Role.HR, notes="x")

    asyncio.run(scenario())


def test_update_record_corrections(container, at_fp1, fixed_now):
    recorder = container.attendance_recorder

    async def scenario():
        trip = await _open_trip(container, at_fp1)
        record = await _record(container, trip.trip_id, "w-1", "absent", notes="sick")
        flipped = await recorder.update_record(record.record_id, current_role="swachh_hr", status="present")
        cleared = await recorder.update_record(record.record_id, current_role=Role.ADMIN, notes="")
        moved = await recorder.update_record(
            record.record_id, current_role=Role.ADMIN, timestamp="2026-03-01T07:45:00"
        )
        session = await container.trip_manager.get_trip(trip.trip_id)
        return flipped, cleared, moved, session

    flipped, cleared, moved, session = asyncio.run(scenario())
    assert flipped.status == AttendanceStatus.PRESENT
    assert flipped.check_in_time == fixed_now
    assert flipped.notes == "sick"
    assert cleared.notes == ""
    assert moved.work_date == "2026-03-01"
    assert moved.check_in_time == datetime(2026, 3, 1, 7, 45)
    assert session.present_workers == 1
    assert session.absent_workers == 0


def test_list_records_filters(container, at_fp1):
    recorder = container.attendance_recorder

    async def scenario():
        trip = await _open_trip(container, at_fp1)
        await _record(container, trip.trip_id, "w-1", "present")
        await _record(container, trip.trip_id, "w-2", "absent")
        await recorder.mark_attendance("w-6", "Farid", "d-2", is_present=True)
        day = date(2026, 3, 2)
        return (
            await recorder.list_records(day, day),
            await recorder.list_records(day, day, driver_id="d-1", status="absent"),
            await recorder.list_records(day, day, feeder_point_id="fp-1"),
            await recorder.list_records(date(2026, 3, 3), date(2026, 3, 4)),
        )

    everything, absent, at_fp, later = asyncio.run(scenario())
    assert len(everything) == 3
    assert [r.worker_id for r in absent] == ["w-2"]
    assert len(at_fp) == 2
    assert later == []


def test_list_records_rejects_inverted_range(container):
    with pytest.raises(ValidationError):
        asyncio.run(container.attendance_recorder.list_records(date(2026, 3, 5), date(2026, 3, 1)))


def test_subscribe_to_driver_attendance(container):
    recorder = container.attendance_recorder
    snapshots = []

    async def scenario():
        sub = recorder.subscribe_to_driver_attendance("d-1", snapshots.append)
        await container.store.flush_subscriptions()
        await recorder.mark_attendance("w-1", "Asha", "d-1", is_present=True)
        await container.store.flush_subscriptions()
        sub()

    asyncio.run(scenario())
    assert snapshots[0] == []
    assert [r.worker_id for r in snapshots[-1]] == ["w-1"]


def test_concurrent_status_flips_count_once(container, at_fp1):
    recorder = container.attendance_recorder

    async def scenario():
        trip = await _open_trip(container, at_fp1)
        record = await _record(container, trip.trip_id, "w-1", "absent")
        await asyncio.gather(
            recorder.bulk_set_status([record.record_id], "present"),
            recorder.bulk_set_status([record.record_id], "present"),
            recorder.update_record(record.record_id, current_role=Role.HR, status="present"),
        )
        return await container.trip_manager.get_trip(trip.trip_id)

    session = asyncio.run(scenario())
    assert session.present_workers == 1
    assert session.absent_workers == 0


def test_timestamp_correction_keeps_absent_record_without_check_in(container, at_fp1):
    recorder = container.attendance_recorder

    async def scenario():
        trip = await _open_trip(container, at_fp1)
        record = await _record(container, trip.trip_id, "w-1", "absent")
        return await recorder.update_record(
            record.record_id, current_role=Role.ADMIN, timestamp="2026-03-01T07:45:00"
        )

    moved = asyncio.run(scenario())
    assert moved.status == AttendanceStatus.ABSENT
    assert moved.work_date == "2026-03-01"
    assert moved.check_in_time is None
    assert moved.effective_check_in is None
