from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import AsyncExitStack
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from ..common.datetime_utils import Clock, day_key, from_iso, now_local, to_iso
from ..common.geo import Location
from ..common.sanitize import MISSING, drop_missing, is_missing, normalize_value
from ..common.validators import require_non_empty
from ..core.enums import AttendanceStatus, Role, TripStatus
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..database.document_store import DocumentStore, Subscription, WriteOp
from ..trips.repository import TripRepository
from ..trips.service import trip_lock_key
from ..workers.repository import WorkerRepository
from .model import AttendanceEntry, AttendanceRecord, DriverRoster, RosterEntry, parse_status
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

CORRECTION_ROLES = (Role.ADMIN, Role.HR)

PENDING = "pending"


def _as_location(location: Any) -> Optional[Location]:
    if is_missing(location) or location is None:
        return None
    if isinstance(location, Location):
        return location
    loc = Location.from_document(location)
    if loc is None:
        raise ValidationError("Location needs latitude and longitude")
    return loc


def _counter_field(status: AttendanceStatus) -> str:
    return "present_workers" if status == AttendanceStatus.PRESENT else "absent_workers"


def record_lock_key(record_id: str) -> str:
    return f"attendance-record:{record_id}"


class AttendanceRecorder:
    """Writes worker attendance, either against an open trip or driver-direct.

    Optional inputs default to `MISSING` and are normalized to None by the
    repository before anything reaches the store.
    """

    def __init__(
        self,
        store: DocumentStore,
        records: AttendanceRepository,
        trips: TripRepository,
        workers: WorkerRepository,
        *,
        clock: Clock = now_local,
    ):
        self._store = store
        self._records = records
        self._trips = trips
        self._workers = workers
        self._clock = clock

    # ----- trip-scoped -----

    async def record_attendance(
        self,
        trip_id: str,
        worker_id: str,
        worker_name: str,
        feeder_point_id: str,
        feeder_point_name: str,
        driver_id: str,
        driver_name: str,
        status,
        location=MISSING,
        photo_ref=MISSING,
        notes=MISSING,
    ) -> AttendanceRecord:
        trip_id = require_non_empty(trip_id, "Trip")
        worker_id = require_non_empty(worker_id, "Worker")
        status = parse_status(status)
        location = _as_location(location)

        async with self._store.exclusive(trip_lock_key(trip_id)):
            session = await self._trips.get_by_id(trip_id)
            if not session:
                raise NotFoundError("Trip not found")
            if not session.is_active:
                raise ValidationError("Attendance can only be recorded for an active trip")

            now = self._clock()
            record = AttendanceRecord(
                record_id=self._records.new_id(),
                worker_id=worker_id,
                worker_name=worker_name or "",
                driver_id=driver_id or session.driver_id,
                driver_name=driver_name or session.driver_name,
                status=status,
                timestamp=now,
                work_date=day_key(now.date()),
                trip_id=trip_id,
                feeder_point_id=feeder_point_id or session.feeder_point_id,
                feeder_point_name=feeder_point_name or session.feeder_point_name,
                vehicle_id=session.vehicle_id,
                check_in_time=now if status == AttendanceStatus.PRESENT else None,
                location=location,
                photo_ref=normalize_value(photo_ref),
                notes=normalize_value(notes),
            )

            trip_patch = {
                "present_workers": session.present_workers + (status == AttendanceStatus.PRESENT),
                "absent_workers": session.absent_workers + (status == AttendanceStatus.ABSENT),
                "attendance_record_ids": list(session.attendance_record_ids) + [record.record_id],
            }
            if session.status == TripStatus.STARTED:
                trip_patch["status"] = TripStatus.IN_PROGRESS.value

            await self._store.batch_write(
                [self._records.create_op(record), self._trips.update_op(trip_id, trip_patch)]
            )

        logger.info("Attendance %s recorded: trip=%s worker=%s status=%s", record.record_id, trip_id, worker_id, status.value)
        return await self._reload(record.record_id)

    async def get_trip_attendance(self, trip_id: str) -> Sequence[AttendanceRecord]:
        return await self._records.list_for_trip(trip_id)

    # ----- driver-direct -----

    async def mark_attendance(
        self,
        worker_id: str,
        worker_name: str,
        driver_id: str,
        *,
        is_present: bool,
        check_in_time: Optional[datetime] = None,
        vehicle_id=MISSING,
        photo_ref=MISSING,
        location=MISSING,
        notes=MISSING,
        driver_name: str = "",
    ) -> AttendanceRecord:
        """Upsert today's driver-direct record for (worker, driver)."""
        entry = AttendanceEntry(
            worker_id=require_non_empty(worker_id, "Worker"),
            worker_name=worker_name or "",
            is_present=bool(is_present),
            check_in_time=check_in_time,
            photo_ref=photo_ref,
            location=location,
            notes=notes,
        )
        driver_id = require_non_empty(driver_id, "Driver")
        ids = await self._upsert_direct(driver_id, driver_name, vehicle_id, [entry])
        return await self._reload(ids[0])

    async def bulk_mark_attendance(
        self,
        driver_id: str,
        entries: Iterable[AttendanceEntry],
        *,
        vehicle_id=MISSING,
        driver_name: str = "",
    ) -> list[str]:
        """Many driver-direct upserts in one atomic batch; returns the record ids in input order."""
        driver_id = require_non_empty(driver_id, "Driver")
        entries = list(entries)
        if not entries:
            raise ValidationError("No workers selected")
        for e in entries:
            require_non_empty(e.worker_id, "Worker")
        return await self._upsert_direct(driver_id, driver_name, vehicle_id, entries)

    async def _upsert_direct(
        self, driver_id: str, driver_name: str, vehicle_id: Any, entries: list[AttendanceEntry]
    ) -> list[str]:
        now = self._clock()
        work_date = day_key(now.date())

        async with self._store.exclusive(f"attendance:{driver_id}:{work_date}"):
            ops: list[WriteOp] = []
            ids_by_worker: dict[str, str] = {}
            for entry in entries:
                record_id = ids_by_worker.get(entry.worker_id)
                if record_id is None:
                    existing = await self._records.find_direct(
                        worker_id=entry.worker_id, driver_id=driver_id, work_date=work_date
                    )
                    record_id = existing.record_id if existing else None

                status = AttendanceStatus.PRESENT if entry.is_present else AttendanceStatus.ABSENT
                record = AttendanceRecord(
                    record_id=record_id or self._records.new_id(),
                    worker_id=entry.worker_id,
                    worker_name=entry.worker_name,
                    driver_id=driver_id,
                    driver_name=driver_name or "",
                    status=status,
                    timestamp=now,
                    work_date=work_date,
                    vehicle_id=normalize_value(vehicle_id),
                    check_in_time=(entry.check_in_time or now) if entry.is_present else None,
                    location=_as_location(entry.location),
                    photo_ref=normalize_value(entry.photo_ref),
                    notes=normalize_value(entry.notes),
                )

                if record_id is not None:
                    # Re-marking overwrites status and evidence in place.
                    ops.append(self._records.update_op(record_id, record.to_document()))
                else:
                    ops.append(self._records.create_op(record))
                ids_by_worker[entry.worker_id] = record.record_id

            await self._store.batch_write(ops)

        logger.info("Driver %s marked attendance for %s worker(s) on %s", driver_id, len(ids_by_worker), work_date)
        return [ids_by_worker[e.worker_id] for e in entries]

    async def get_driver_roster(self, driver_id: str) -> DriverRoster:
        work_date = day_key(self._clock().date())
        workers = await self._workers.list_for_driver(driver_id)
        records = await self._records.list_for_driver_on(driver_id, work_date)

        latest: dict[str, AttendanceRecord] = {}
        for r in records:  # newest first
            latest.setdefault(r.worker_id, r)

        entries = []
        for w in workers:
            r = latest.get(w.worker_id)
            entries.append(
                RosterEntry(
                    worker_id=w.worker_id,
                    worker_name=w.full_name,
                    status=r.status.value if r else PENDING,
                    record_id=r.record_id if r else None,
                    check_in_time=r.effective_check_in if r else None,
                )
            )
        return DriverRoster(driver_id=driver_id, work_date=work_date, entries=tuple(entries))

    def subscribe_to_driver_attendance(
        self, driver_id: str, callback: Callable[[list[AttendanceRecord]], object]
    ) -> Subscription:
        return self._records.subscribe_for_driver_on(driver_id, day_key(self._clock().date()), callback)

    # ----- corrections -----

    async def bulk_set_status(self, record_ids: Iterable[str], status) -> int:
        """Set one status on many records atomically; any unknown id aborts the whole batch."""
        status = parse_status(status)
        ids = list(dict.fromkeys(r for r in record_ids if r))
        if not ids:
            raise ValidationError("No attendance records selected")

        async with AsyncExitStack() as stack:
            records = await self._lock_records(stack, ids)
            changes = [(r, status) for r in records if r.status != status]
            trip_ops = await self._counter_ops(changes)
            ops = [self._records.update_op(record_id, {"status": status.value}) for record_id in ids]
            await self._store.batch_write(ops + trip_ops)

        logger.info("Bulk status %s applied to %s record(s)", status.value, len(ids))
        return len(ids)

    async def update_record(
        self,
        record_id: str,
        *,
        current_role,
        status=MISSING,
        notes=MISSING,
        timestamp=MISSING,
    ) -> AttendanceRecord:
        """HR/admin correction; fields left as MISSING are not touched, notes="" clears them."""
        if _as_role(current_role) not in CORRECTION_ROLES:
            raise AuthorizationError("Only HR or admin can correct attendance records")

        patch = drop_missing({"status": status, "notes": notes, "timestamp": timestamp})
        if not patch:
            raise ValidationError("Nothing to update")

        if "status" in patch:
            patch["status"] = parse_status(patch["status"]).value
        if "notes" in patch and patch["notes"] is not None:
            patch["notes"] = str(patch["notes"])
        when = None
        if "timestamp" in patch:
            when = _as_datetime(patch["timestamp"])
            patch["timestamp"] = to_iso(when)
            patch["work_date"] = day_key(when.date())

        async with AsyncExitStack() as stack:
            (record,) = await self._lock_records(stack, [record_id])

            changes = []
            new_status = AttendanceStatus(patch.get("status", record.status.value))
            if new_status != record.status:
                changes.append((record, new_status))
            # Absent records never carry a check-in time.
            if new_status == AttendanceStatus.ABSENT:
                patch["check_in_time"] = None
            elif when is not None:
                patch["check_in_time"] = to_iso(when)
            elif changes:
                patch["check_in_time"] = to_iso(record.timestamp)

            trip_ops = await self._counter_ops(changes)
            await self._store.batch_write([self._records.update_op(record_id, patch)] + trip_ops)

        logger.info("Attendance %s corrected: %s", record_id, sorted(patch))
        return await self._reload(record_id)

    async def list_records(
        self,
        start_date: date,
        end_date: date,
        *,
        worker_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        feeder_point_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        if start_date > end_date:
            raise ValidationError("Start date must not be after end date")
        return await self._records.list_between(
            start_date=day_key(start_date),
            end_date=day_key(end_date),
            worker_id=worker_id,
            driver_id=driver_id,
            feeder_point_id=feeder_point_id,
            status=parse_status(status).value if status else None,
        )

    async def _lock_records(self, stack: AsyncExitStack, ids: Sequence[str]) -> list[AttendanceRecord]:
        """Lock the records, then the trips they belong to, and read them under those locks.

        Record locks always come before trip locks and each group is taken in
        sorted order, so concurrent corrections cannot deadlock.
        """
        for record_id in sorted(ids):
            await stack.enter_async_context(self._store.exclusive(record_lock_key(record_id)))

        records = []
        for record_id in ids:
            record = await self._records.get_by_id(record_id)
            if not record:
                raise NotFoundError(f"Attendance record {record_id} not found")
            records.append(record)

        for trip_id in sorted({r.trip_id for r in records if r.trip_id}):
            await stack.enter_async_context(self._store.exclusive(trip_lock_key(trip_id)))
        return records

    async def _counter_ops(self, changes) -> list[WriteOp]:
        """Trip counter patches for trip-scoped records whose status flips.

        Callers hold the affected trips' locks.
        """
        deltas: dict[str, dict[str, int]] = defaultdict(lambda: {"present_workers": 0, "absent_workers": 0})
        for record, new_status in changes:
            if not record.trip_id:
                continue
            deltas[record.trip_id][_counter_field(record.status)] -= 1
            deltas[record.trip_id][_counter_field(new_status)] += 1

        ops = []
        for trip_id in sorted(deltas):
            session = await self._trips.get_by_id(trip_id)
            if not session:
                logger.warning("Trip %s referenced by attendance no longer exists", trip_id)
                continue
            delta = deltas[trip_id]
            ops.append(
                self._trips.update_op(
                    trip_id,
                    {
                        "present_workers": max(0, session.present_workers + delta["present_workers"]),
                        "absent_workers": max(0, session.absent_workers + delta["absent_workers"]),
                    },
                )
            )
        return ops

    async def _reload(self, record_id: str) -> AttendanceRecord:
        record = await self._records.get_by_id(record_id)
        if not record:
            raise NotFoundError("Attendance record not found")
        return record


def _as_role(value) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value))
    except ValueError:
        return None


def _as_datetime(value) -> datetime:
    try:
        when = from_iso(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid timestamp")
    if when is None:
        raise ValidationError("Timestamp is required")
    return when
