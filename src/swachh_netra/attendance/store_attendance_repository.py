from __future__ import annotations

from typing import Callable, Optional, Sequence

from ..common.sanitize import normalize_optional
from ..core.constants import WORKER_ATTENDANCE
from ..database.document_store import SERVER_TIMESTAMP, DocumentStore, Subscription, WriteOp, where
from .model import AttendanceRecord
from .repository import AttendanceRepository

# Optional fields that must be present (as None) on every stored record.
OPTIONAL_FIELDS = (
    "trip_id",
    "feeder_point_id",
    "feeder_point_name",
    "vehicle_id",
    "check_in_time",
    "location",
    "photo_ref",
    "notes",
)


def _newest_first(docs: list) -> list:
    records = [AttendanceRecord.from_document(d) for d in docs]
    records.sort(key=lambda r: r.timestamp, reverse=True)
    return records


class StoreAttendanceRepository(AttendanceRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    def new_id(self) -> str:
        return self._store.generate_id()

    async def get_by_id(self, record_id: str) -> Optional[AttendanceRecord]:
        doc = await self._store.get(WORKER_ATTENDANCE, record_id)
        if not doc:
            return None
        return AttendanceRecord.from_document(doc)

    async def find_direct(self, *, worker_id: str, driver_id: str, work_date: str) -> Optional[AttendanceRecord]:
        docs = await self._store.query(
            WORKER_ATTENDANCE,
            [
                where("worker_id", "==", worker_id),
                where("driver_id", "==", driver_id),
                where("work_date", "==", work_date),
                where("trip_id", "==", None),
            ],
            order_by="timestamp",
            descending=True,
            limit=1,
        )
        return AttendanceRecord.from_document(docs[0]) if docs else None

    async def list_for_trip(self, trip_id: str) -> Sequence[AttendanceRecord]:
        docs = await self._store.query(
            WORKER_ATTENDANCE,
            [where("trip_id", "==", trip_id)],
            order_by="timestamp",
            descending=True,
        )
        return [AttendanceRecord.from_document(d) for d in docs]

    async def list_for_driver_on(self, driver_id: str, work_date: str) -> Sequence[AttendanceRecord]:
        docs = await self._store.query(
            WORKER_ATTENDANCE,
            [where("driver_id", "==", driver_id), where("work_date", "==", work_date)],
            order_by="timestamp",
            descending=True,
        )
        return [AttendanceRecord.from_document(d) for d in docs]

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
        filters = [where("work_date", ">=", start_date), where("work_date", "<=", end_date)]
        if worker_id:
            filters.append(where("worker_id", "==", worker_id))
        if driver_id:
            filters.append(where("driver_id", "==", driver_id))
        if feeder_point_id:
            filters.append(where("feeder_point_id", "==", feeder_point_id))
        if status:
            filters.append(where("status", "==", status))
        docs = await self._store.query(WORKER_ATTENDANCE, filters, order_by="timestamp", descending=True)
        return [AttendanceRecord.from_document(d) for d in docs]

    def create_op(self, record: AttendanceRecord) -> WriteOp:
        body = normalize_optional(record.to_document(), fields=OPTIONAL_FIELDS)
        body["created_at"] = SERVER_TIMESTAMP
        body["updated_at"] = SERVER_TIMESTAMP
        return WriteOp(WORKER_ATTENDANCE, record.record_id, body, create=True)

    def update_op(self, record_id: str, patch: dict) -> WriteOp:
        body = normalize_optional(patch)
        body["updated_at"] = SERVER_TIMESTAMP
        return WriteOp(WORKER_ATTENDANCE, record_id, body)

    def subscribe_for_driver_on(
        self, driver_id: str, work_date: str, callback: Callable[[list[AttendanceRecord]], object]
    ) -> Subscription:
        return self._store.subscribe(
            WORKER_ATTENDANCE,
            [where("driver_id", "==", driver_id), where("work_date", "==", work_date)],
            lambda docs: callback(_newest_first(docs)),
        )
