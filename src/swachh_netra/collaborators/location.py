from __future__ import annotations

from typing import Protocol

from ..common.geo import Location


class LocationProvider(Protocol):
    """Device GPS.

    Implementations raise `LocationUnavailableError` when permission is
    denied or no fix can be obtained.
    """

    async def get_current_location(self) -> Location:
        raise NotImplementedError


class FixedLocationProvider:
    """Provider that always reports the same position (kiosks, tests, replays)."""

    def __init__(self, location: Location):
        self._location = location

    async def get_current_location(self) -> Location:
        return self._location
