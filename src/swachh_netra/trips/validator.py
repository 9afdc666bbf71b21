from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..core.constants import DEFAULT_MAX_TRIPS_PER_DAY
from ..core.enums import TripStatus
from .model import TripSession


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None


_OK = ValidationResult(valid=True)


class TripConstraintValidator:
    """Trip start rules, checked against a snapshot of the driver's sessions.

    Pure: the caller loads the sessions and performs the write.
    """

    def __init__(self, *, max_trips_per_day: int = DEFAULT_MAX_TRIPS_PER_DAY):
        if int(max_trips_per_day) < 1:
            raise ValueError("max_trips_per_day must be at least 1")
        self._max_trips = int(max_trips_per_day)

    @property
    def max_trips_per_day(self) -> int:
        return self._max_trips

    def validate_start(
        self,
        *,
        driver_id: str,
        feeder_point_id: str,
        trip_number: int,
        active_sessions: Iterable[TripSession],
        today_sessions: Iterable[TripSession],
    ) -> ValidationResult:
        if trip_number < 1:
            return ValidationResult(False, "Trip number must be at least 1")

        if any(s.driver_id == driver_id and s.is_active for s in active_sessions):
            return ValidationResult(False, "Driver already has an active trip. Please complete it first.")

        # Cancelled sessions free their trip number.
        taken = sorted(
            s.trip_number
            for s in today_sessions
            if s.driver_id == driver_id
            and s.feeder_point_id == feeder_point_id
            and s.status != TripStatus.CANCELLED
        )

        if trip_number in taken:
            return ValidationResult(False, f"Trip {trip_number} already completed for this feeder point today")

        if trip_number > self._max_trips:
            return ValidationResult(False, f"Maximum {self._max_trips} trips per day per feeder point allowed")

        expected = (taken[-1] if taken else 0) + 1
        if trip_number != expected:
            return ValidationResult(False, f"Please complete trip {expected} first")

        return _OK

    def next_trip_number(self, *, driver_id: str, feeder_point_id: str, today_sessions: Iterable[TripSession]) -> Optional[int]:
        """Number the driver should request next, or None when the day's cap is reached."""
        taken = [
            s.trip_number
            for s in today_sessions
            if s.driver_id == driver_id
            and s.feeder_point_id == feeder_point_id
            and s.status != TripStatus.CANCELLED
        ]
        nxt = max(taken, default=0) + 1
        return nxt if nxt <= self._max_trips else None
