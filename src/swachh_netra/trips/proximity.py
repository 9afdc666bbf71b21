from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..collaborators.location import LocationProvider
from ..common.geo import Location
from ..core.constants import DEFAULT_ALLOW_UNREGISTERED_FEEDER_POINTS, DEFAULT_PROXIMITY_THRESHOLD_METERS
from ..core.exceptions import LocationUnavailableError, NotFoundError
from ..feeder_points.repository import FeederPointRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProximityResult:
    within_range: bool
    distance_meters: Optional[float]
    feeder_point: dict
    threshold_meters: float

    def to_dict(self) -> dict:
        return {
            "within_range": self.within_range,
            "distance_meters": None if self.distance_meters is None else round(self.distance_meters, 2),
            "threshold_meters": self.threshold_meters,
            "feeder_point": dict(self.feeder_point),
        }


class ProximityGate:
    """Decides whether a driver is close enough to a feeder point to start a trip.

    Feeder points without registered coordinates are let through when
    `fail_open` is set (the default), reporting no distance.
    """

    def __init__(
        self,
        feeder_points: FeederPointRepository,
        *,
        threshold_meters: float = DEFAULT_PROXIMITY_THRESHOLD_METERS,
        fail_open: bool = DEFAULT_ALLOW_UNREGISTERED_FEEDER_POINTS,
    ):
        self._feeder_points = feeder_points
        self._threshold = float(threshold_meters)
        self._fail_open = bool(fail_open)

    @property
    def threshold_meters(self) -> float:
        return self._threshold

    async def check_proximity(self, feeder_point_id: str, current_location: Location) -> ProximityResult:
        feeder_point = await self._feeder_points.get_by_id(feeder_point_id)
        if not feeder_point:
            raise NotFoundError("Feeder point not found")

        if not feeder_point.has_coordinates:
            if self._fail_open:
                logger.warning("Feeder point %s has no GPS coordinates; allowing trip start", feeder_point_id)
            else:
                logger.info("Feeder point %s has no GPS coordinates; blocking trip start", feeder_point_id)
            return ProximityResult(
                within_range=self._fail_open,
                distance_meters=None,
                feeder_point=feeder_point.snapshot(),
                threshold_meters=self._threshold,
            )

        distance = current_location.distance_to(feeder_point.coordinates)
        return ProximityResult(
            within_range=distance <= self._threshold,
            distance_meters=distance,
            feeder_point=feeder_point.snapshot(),
            threshold_meters=self._threshold,
        )

    async def check_current_position(self, feeder_point_id: str, provider: LocationProvider) -> ProximityResult:
        try:
            location = await provider.get_current_location()
        except LocationUnavailableError:
            raise
        except Exception as exc:
            raise LocationUnavailableError(f"Unable to get current location: {exc}") from exc
        return await self.check_proximity(feeder_point_id, location)
