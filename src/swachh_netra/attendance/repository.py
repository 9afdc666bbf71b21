from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence

from ..database.document_store import Subscription, WriteOp
from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    def new_id(self) -> str:
        raise NotImplementedError

    async def get_by_id(self, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    async def find_direct(self, *, worker_id: str, driver_id: str, work_date: str) -> Optional[AttendanceRecord]:
        """The driver-direct (not trip-scoped) record for the natural key, if any."""

        raise NotImplementedError

    async def list_for_trip(self, trip_id: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    async def list_for_driver_on(self, driver_id: str, work_date: str) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    async def list_between(
        self,
        *,
        start_date: str,
        end_date: str,
        worker_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        feeder_point_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def create_op(self, record: AttendanceRecord) -> WriteOp:
        raise NotImplementedError

    def update_op(self, record_id: str, patch: dict) -> WriteOp:
        raise NotImplementedError

    def subscribe_for_driver_on(
        self, driver_id: str, work_date: str, callback: Callable[[list[AttendanceRecord]], object]
    ) -> Subscription:
        raise NotImplementedError
