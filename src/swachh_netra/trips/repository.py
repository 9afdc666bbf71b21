from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from ..database.document_store import Subscription, WriteOp
from .model import TripSession


class TripRepository(Protocol):
    def new_id(self) -> str:
        raise NotImplementedError

    async def get_by_id(self, trip_id: str) -> Optional[TripSession]:
        raise NotImplementedError

    async def list_active_for_driver(self, driver_id: str) -> Sequence[TripSession]:
        raise NotImplementedError

    async def list_for_driver_on(self, driver_id: str, work_date: str) -> Sequence[TripSession]:
        """All sessions of the driver for one calendar day (YYYY-MM-DD), oldest first."""

        raise NotImplementedError

    async def list_for_driver_between(self, driver_id: str, start_date: str, end_date: str) -> Sequence[TripSession]:
        raise NotImplementedError

    async def create(self, session: TripSession) -> None:
        raise NotImplementedError

    def update_op(self, trip_id: str, patch: dict) -> WriteOp:
        """Build a patch for inclusion in a larger atomic batch."""

        raise NotImplementedError

    async def update(self, trip_id: str, patch: dict) -> None:
        raise NotImplementedError

    def subscribe_for_driver_on(
        self, driver_id: str, work_date: str, callback: Callable[[list[TripSession]], object]
    ) -> Subscription:
        raise NotImplementedError
