from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional, Sequence

from ..common.datetime_utils import Clock, day_key, now_local, to_iso
from ..common.geo import Location
from ..common.sanitize import MISSING
from ..common.validators import require_int, require_non_empty, require_positive
from ..core.constants import DEFAULT_MIN_END_TRIP_PHOTOS
from ..core.enums import TripStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..database.document_store import DocumentStore, Subscription
from ..feeder_points.repository import FeederPointRepository
from ..workers.repository import WorkerRepository
from .model import TripSession, TripStatistics
from .repository import TripRepository
from .statistics import summarize_trips
from .validator import TripConstraintValidator

logger = logging.getLogger(__name__)


def trip_lock_key(trip_id: str) -> str:
    return f"trip:{trip_id}"


class TripSessionManager:
    """Owns the trip lifecycle: start, end, cancel.

    Trip start reads the driver's sessions, validates and writes inside
    `store.exclusive("trip-start:<driver_id>")`, so two concurrent starts for
    one driver cannot both pass validation. Mutations of an existing session
    (end, cancel, attendance counters) share the `trip:<trip_id>` key.
    """

    def __init__(
        self,
        store: DocumentStore,
        trips: TripRepository,
        feeder_points: FeederPointRepository,
        workers: WorkerRepository,
        *,
        validator: TripConstraintValidator | None = None,
        min_end_photos: int = DEFAULT_MIN_END_TRIP_PHOTOS,
        clock: Clock = now_local,
    ):
        self._store = store
        self._trips = trips
        self._feeder_points = feeder_points
        self._workers = workers
        self._validator = validator or TripConstraintValidator()
        self._min_end_photos = max(0, int(min_end_photos))
        self._clock = clock

    async def start_trip(
        self,
        driver_id: str,
        vehicle_id: str,
        feeder_point_id: str,
        trip_number: int,
        start_location: Location,
        contractor_id: Optional[str] = None,
        *,
        driver_name: str = "",
        vehicle_number: str = "",
    ) -> TripSession:
        driver_id = require_non_empty(driver_id, "Driver")
        vehicle_id = require_non_empty(vehicle_id, "Vehicle")
        feeder_point_id = require_non_empty(feeder_point_id, "Feeder point")
        trip_number = require_int(trip_number, "Trip number")
        if start_location is None:
            raise ValidationError("Start location is required")

        async with self._store.exclusive(f"trip-start:{driver_id}"):
            now = self._clock()
            work_date = day_key(now.date())

            active = await self._trips.list_active_for_driver(driver_id)
            today = await self._trips.list_for_driver_on(driver_id, work_date)
            result = self._validator.validate_start(
                driver_id=driver_id,
                feeder_point_id=feeder_point_id,
                trip_number=trip_number,
                active_sessions=active,
                today_sessions=today,
            )
            if not result.valid:
                logger.info("Trip start rejected for driver %s: %s", driver_id, result.reason)
                raise ValidationError(result.reason)

            feeder_point = await self._feeder_points.get_by_id(feeder_point_id)
            if not feeder_point:
                raise NotFoundError("Feeder point not found")
            roster = await self._workers.list_for_feeder_point(feeder_point)
            if contractor_id is None:
                contractor_id = await self._workers.get_contractor_id(driver_id)

            session = TripSession(
                trip_id=self._trips.new_id(),
                driver_id=driver_id,
                driver_name=driver_name or "",
                vehicle_id=vehicle_id,
                vehicle_number=vehicle_number or "",
                contractor_id=contractor_id,
                feeder_point_id=feeder_point.feeder_point_id,
                feeder_point_name=feeder_point.name,
                area_name=feeder_point.area_name,
                ward_number=feeder_point.ward_number,
                trip_number=trip_number,
                status=TripStatus.STARTED,
                start_location=start_location,
                start_time=now,
                work_date=work_date,
                worker_ids=tuple(w.worker_id for w in roster),
                total_workers=len(roster),
            )
            await self._trips.create(session)

        logger.info(
            "Trip %s started: driver=%s feeder_point=%s trip_number=%s workers=%s",
            session.trip_id,
            driver_id,
            feeder_point_id,
            trip_number,
            session.total_workers,
        )
        return await self._reload(session.trip_id)

    async def end_trip(
        self,
        trip_id: str,
        *,
        waste_weight_kg,
        end_location: Optional[Location] = None,
        photo_refs: Iterable[str] = (),
        notes=MISSING,
        worker_ids: Optional[Iterable[str]] = None,
    ) -> TripSession:
        weight = require_positive(waste_weight_kg, "Waste weight")
        photos = [str(p) for p in photo_refs if p]
        if len(photos) < self._min_end_photos:
            noun = "photo" if self._min_end_photos == 1 else "photos"
            raise ValidationError(f"At least {self._min_end_photos} {noun} required to end a trip")

        async with self._store.exclusive(trip_lock_key(trip_id)):
            session = await self._trips.get_by_id(trip_id)
            if not session:
                raise NotFoundError("Trip not found")
            if not session.is_active:
                raise ValidationError("Trip is not in progress")

            patch = {
                "status": TripStatus.COMPLETED.value,
                "end_time": to_iso(self._clock()),
                "end_location": end_location.to_document() if end_location else None,
                "waste_weight_kg": weight,
                "photo_refs": photos,
                "notes": notes,
            }
            if worker_ids is not None:
                patch["worker_ids"] = [str(w) for w in worker_ids]
            await self._trips.update(trip_id, patch)

        completed = await self._reload(trip_id)
        logger.info(
            "Trip %s completed: waste=%.2fkg photos=%s duration=%.1fmin",
            trip_id,
            weight,
            len(photos),
            completed.duration_minutes or 0.0,
        )
        return completed

    async def cancel_trip(self, trip_id: str, reason: Optional[str] = None) -> TripSession:
        async with self._store.exclusive(trip_lock_key(trip_id)):
            session = await self._trips.get_by_id(trip_id)
            if not session:
                raise NotFoundError("Trip not found")
            if not session.is_active:
                raise ValidationError("Only active trips can be cancelled")

            reason = (reason or "").strip()
            await self._trips.update(
                trip_id,
                {
                    "status": TripStatus.CANCELLED.value,
                    "end_time": to_iso(self._clock()),
                    "notes": f"Cancelled: {reason}" if reason else "Trip cancelled",
                },
            )

        logger.info("Trip %s cancelled (%s)", trip_id, reason or "no reason")
        return await self._reload(trip_id)

    async def get_trip(self, trip_id: str) -> TripSession:
        return await self._reload(trip_id)

    async def get_active_trip(self, driver_id: str) -> Optional[TripSession]:
        active = await self._trips.list_active_for_driver(driver_id)
        if not active:
            return None
        if len(active) > 1:
            logger.warning("Driver %s has %s active trips; returning the latest", driver_id, len(active))
        return active[-1]

    async def get_today_trips(self, driver_id: str, feeder_point_id: Optional[str] = None) -> Sequence[TripSession]:
        sessions = await self._trips.list_for_driver_on(driver_id, day_key(self._clock().date()))
        if feeder_point_id:
            sessions = [s for s in sessions if s.feeder_point_id == feeder_point_id]
        return sorted(sessions, key=lambda s: s.start_time, reverse=True)

    async def get_next_trip_number(self, driver_id: str, feeder_point_id: str) -> Optional[int]:
        today = await self._trips.list_for_driver_on(driver_id, day_key(self._clock().date()))
        return self._validator.next_trip_number(
            driver_id=driver_id, feeder_point_id=feeder_point_id, today_sessions=today
        )

    async def get_trip_statistics(
        self, driver_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> TripStatistics:
        today = self._clock().date()
        start_date = start_date or today
        end_date = end_date or today
        if start_date > end_date:
            raise ValidationError("Start date must not be after end date")
        sessions = await self._trips.list_for_driver_between(driver_id, day_key(start_date), day_key(end_date))
        return summarize_trips(sessions)

    def subscribe_to_trips(self, driver_id: str, callback: Callable[[list[TripSession]], object]) -> Subscription:
        """Live feed of the driver's trips for today, newest first."""
        return self._trips.subscribe_for_driver_on(driver_id, day_key(self._clock().date()), callback)

    async def _reload(self, trip_id: str) -> TripSession:
        session = await self._trips.get_by_id(trip_id)
        if not session:
            raise NotFoundError("Trip not found")
        return session
