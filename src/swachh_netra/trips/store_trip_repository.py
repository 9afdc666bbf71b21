from __future__ import annotations

from typing import Callable, Optional, Sequence

from ..common.sanitize import normalize_optional
from ..core.constants import TRIP_SESSIONS
from ..core.enums import ACTIVE_TRIP_STATUSES
from ..database.document_store import SERVER_TIMESTAMP, DocumentStore, Subscription, WriteOp, where
from .model import TripSession
from .repository import TripRepository


class StoreTripRepository(TripRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    def new_id(self) -> str:
        return self._store.generate_id()

    async def get_by_id(self, trip_id: str) -> Optional[TripSession]:
        doc = await self._store.get(TRIP_SESSIONS, trip_id)
        if not doc:
            return None
        return TripSession.from_document(doc)

    async def list_active_for_driver(self, driver_id: str) -> Sequence[TripSession]:
        docs = await self._store.query(
            TRIP_SESSIONS,
            [
                where("driver_id", "==", driver_id),
                where("status", "in", [s.value for s in ACTIVE_TRIP_STATUSES]),
            ],
            order_by="start_time",
        )
        return [TripSession.from_document(d) for d in docs]

    async def list_for_driver_on(self, driver_id: str, work_date: str) -> Sequence[TripSession]:
        docs = await self._store.query(
            TRIP_SESSIONS,
            [where("driver_id", "==", driver_id), where("work_date", "==", work_date)],
            order_by="start_time",
        )
        return [TripSession.from_document(d) for d in docs]

    async def list_for_driver_between(self, driver_id: str, start_date: str, end_date: str) -> Sequence[TripSession]:
        docs = await self._store.query(
            TRIP_SESSIONS,
            [
                where("driver_id", "==", driver_id),
                where("work_date", ">=", start_date),
                where("work_date", "<=", end_date),
            ],
            order_by="start_time",
        )
        return [TripSession.from_document(d) for d in docs]

    async def create(self, session: TripSession) -> None:
        body = normalize_optional(session.to_document())
        body["created_at"] = SERVER_TIMESTAMP
        body["updated_at"] = SERVER_TIMESTAMP
        await self._store.batch_write([WriteOp(TRIP_SESSIONS, session.trip_id, body, create=True)])

    def update_op(self, trip_id: str, patch: dict) -> WriteOp:
        body = normalize_optional(patch)
        body["updated_at"] = SERVER_TIMESTAMP
        return WriteOp(TRIP_SESSIONS, trip_id, body)

    async def update(self, trip_id: str, patch: dict) -> None:
        await self._store.batch_write([self.update_op(trip_id, patch)])

    def subscribe_for_driver_on(
        self, driver_id: str, work_date: str, callback: Callable[[list[TripSession]], object]
    ) -> Subscription:
        def _on_snapshot(docs: list):
            sessions = sorted((TripSession.from_document(d) for d in docs), key=lambda s: s.start_time, reverse=True)
            return callback(sessions)

        return self._store.subscribe(
            TRIP_SESSIONS,
            [where("driver_id", "==", driver_id), where("work_date", "==", work_date)],
            _on_snapshot,
        )
