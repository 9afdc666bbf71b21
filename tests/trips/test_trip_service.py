from __future__ import annotations

import asyncio
from datetime import date

import pytest

from swachh_netra.core.enums import TripStatus
from swachh_netra.core.exceptions import NotFoundError, ValidationError


def _start(container, location, *, driver_id="d-1", feeder_point_id="fp-1", trip_number=1):
    return container.trip_manager.start_trip(driver_id, "v-1", feeder_point_id, trip_number, location)


def test_start_trip_snapshots_feeder_point_and_roster(container, at_fp1, fixed_now):
    session = asyncio.run(_start(container, at_fp1))

    assert session.status == TripStatus.STARTED
    assert session.trip_id
    assert session.feeder_point_name == "Connaught Place Bin"
    assert session.area_name == "Central"
    assert session.ward_number == "4"
    # w-1 and w-2 from the feeder point, w-3 and w-4 from their own assignment; w-5 is inactive.
    assert session.total_workers == 4
    assert set(session.worker_ids) == {"w-1", "w-2", "w-3", "w-4"}
    assert session.contractor_id == "c-1"
    assert session.start_time == fixed_now
    assert session.work_date == "2026-03-02"
    assert session.created_at == fixed_now


def test_second_start_while_active_is_rejected(container, at_fp1):
    async def scenario():
        await _start(container, at_fp1)
        await _start(container, at_fp1, feeder_point_id="fp-3")

    with pytest.raises(ValidationError, match="already has an active trip"):
        asyncio.run(scenario())


def test_concurrent_starts_for_one_driver_create_one_session(container, at_fp1):
    async def scenario():
        results = await asyncio.gather(
            _start(container, at_fp1),
            _start(container, at_fp1, feeder_point_id="fp-2"),
            return_exceptions=True,
        )
        active = await container.trips_repo.list_active_for_driver("d-1")
        return results, active

    results, active = asyncio.run(scenario())
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ValidationError)
    assert len(active) == 1


def test_start_with_unknown_feeder_point(container, at_fp1):
    with pytest.raises(NotFoundError):
        asyncio.run(_start(container, at_fp1, feeder_point_id="fp-404"))


def test_start_requires_location(container):
    with pytest.raises(ValidationError, match="Start location"):
        asyncio.run(_start(container, None))


def test_end_trip_validations(container, at_fp1):
    async def scenario():
        session = await _start(container, at_fp1)
        with pytest.raises(ValidationError, match="Waste weight must be greater than 0"):
            await container.trip_manager.end_trip(session.trip_id, waste_weight_kg=0, photo_refs=["p1"])
        with pytest.raises(ValidationError, match="photo"):
            await container.trip_manager.end_trip(session.trip_id, waste_weight_kg=5, photo_refs=[])
        with pytest.raises(NotFoundError, match="Trip not found"):
            await container.trip_manager.end_trip("missing", waste_weight_kg=5, photo_refs=["p1"])
        return await container.trip_manager.get_trip(session.trip_id)

    unchanged = asyncio.run(scenario())
    assert unchanged.status == TripStatus.STARTED
    assert unchanged.end_time is None


def test_end_trip_completes_and_reports_duration(container, at_fp1, clock, offset_from_fp1):
    async def scenario():
        session = await _start(container, at_fp1)
        clock.advance(minutes=42)
        return await container.trip_manager.end_trip(
            session.trip_id,
            waste_weight_kg=12.5,
            end_location=offset_from_fp1(10),
            photo_refs=["photo://1", ""],
            worker_ids=["w-1", "w-2"],
        )

    done = asyncio.run(scenario())
    assert done.status == TripStatus.COMPLETED
    assert done.waste_weight_kg == 12.5
    assert done.photo_refs == ("photo://1",)
    assert done.worker_ids == ("w-1", "w-2")
    assert done.duration_minutes == pytest.approx(42)
    assert done.notes is None
    assert done.end_location is not None


def test_end_trip_twice_is_rejected(container, at_fp1):
    async def scenario():
        session = await _start(container, at_fp1)
        await container.trip_manager.end_trip(session.trip_id, waste_weight_kg=3, photo_refs=["p"])
        await container.trip_manager.end_trip(session.trip_id, waste_weight_kg=3, photo_refs=["p"])

    with pytest.raises(ValidationError, match="Trip is not in progress"):
        asyncio.run(scenario())


def test_cancel_trip_records_reason_and_frees_driver(container, at_fp1):
    async def scenario():
        session = await _start(container, at_fp1)
        cancelled = await container.trip_manager.cancel_trip(session.trip_id, "Vehicle breakdown")
        active = await container.trip_manager.get_active_trip("d-1")
        # The cancelled trip does not occupy number 1.
        restarted = await _start(container, at_fp1)
        return cancelled, active, restarted

    cancelled, active, restarted = asyncio.run(scenario())
    assert cancelled.status == TripStatus.CANCELLED
    assert cancelled.notes == "Cancelled: Vehicle breakdown"
    assert active is None
    assert restarted.trip_number == 1


def test_cancel_without_reason_and_cancel_terminal(container, at_fp1):
    async def scenario():
        session = await _start(container, at_fp1)
        cancelled = await container.trip_manager.cancel_trip(session.trip_id)
        with pytest.raises(ValidationError):
            await container.trip_manager.cancel_trip(session.trip_id, "again")
        return cancelled

    assert asyncio.run(scenario()).notes == "Trip cancelled"


def test_three_trips_then_cap(container, at_fp1, clock):
    async def scenario():
        for n in (1, 2, 3):
            session = await _start(container, at_fp1, trip_number=n)
            clock.advance(minutes=30)
            await container.trip_manager.end_trip(session.trip_id, waste_weight_kg=10 * n, photo_refs=["p"])
        nxt = await container.trip_manager.get_next_trip_number("d-1", "fp-1")
        with pytest.raises(ValidationError, match="Maximum 3 trips"):
            await _start(container, at_fp1, trip_number=4)
        return nxt

    assert asyncio.run(scenario()) is None


def test_today_trips_and_statistics(container, at_fp1, clock):
    async def scenario():
        first = await _start(container, at_fp1)
        clock.advance(minutes=20)
        await container.trip_manager.end_trip(first.trip_id, waste_weight_kg=10, photo_refs=["p"])
        second = await _start(container, at_fp1, trip_number=2)
        clock.advance(minutes=40)
        await container.trip_manager.end_trip(second.trip_id, waste_weight_kg=5.5, photo_refs=["p"])
        other = await _start(container, at_fp1, feeder_point_id="fp-2")
        await container.trip_manager.cancel_trip(other.trip_id)
        clock.advance(minutes=5)
        pending = await _start(container, at_fp1, feeder_point_id="fp-3")

        today = await container.trip_manager.get_today_trips("d-1")
        fp1_only = await container.trip_manager.get_today_trips("d-1", "fp-1")
        stats = await container.trip_manager.get_trip_statistics("d-1", date(2026, 3, 1), date(2026, 3, 2))
        active = await container.trip_manager.get_active_trip("d-1")
        return today, fp1_only, stats, active, pending

    today, fp1_only, stats, active, pending = asyncio.run(scenario())
    assert len(today) == 4
    assert today[0].trip_id == pending.trip_id
    assert [s.trip_number for s in fp1_only] == [2, 1]
    assert stats.total_trips == 4
    assert stats.completed_trips == 2
    assert stats.pending_trips == 1
    assert stats.cancelled_trips == 1
    assert stats.total_waste_collected_kg == pytest.approx(15.5)
    assert stats.average_trip_duration_minutes == pytest.approx(30)
    assert stats.trips_per_feeder_point == {"fp-1": 2}
    assert active.trip_id == pending.trip_id


def test_statistics_rejects_inverted_range(container):
    with pytest.raises(ValidationError):
        asyncio.run(container.trip_manager.get_trip_statistics("d-1", date(2026, 3, 2), date(2026, 3, 1)))


def test_subscribe_to_trips(container, at_fp1):
    snapshots = []

    async def scenario():
        sub = container.trip_manager.subscribe_to_trips("d-1", snapshots.append)
        await container.store.flush_subscriptions()
        session = await _start(container, at_fp1)
        await container.store.flush_subscriptions()
        sub.unsubscribe()
        await container.trip_manager.cancel_trip(session.trip_id)
        await container.store.flush_subscriptions()
        return session

    session = asyncio.run(scenario())
    assert snapshots[0] == []
    assert [s.trip_id for s in snapshots[-1]] == [session.trip_id]
    assert snapshots[-1][0].status == TripStatus.STARTED
