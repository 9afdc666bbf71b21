from __future__ import annotations

from typing import Optional, Sequence

from ..core.constants import USERS, WORKERS
from ..database.document_store import DocumentStore, where
from ..feeder_points.model import FeederPoint
from .model import Worker
from .repository import WorkerRepository


class StoreWorkerRepository(WorkerRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    async def list_for_feeder_point(self, feeder_point: FeederPoint) -> Sequence[Worker]:
        docs = await self._store.query(
            WORKERS,
            [
                where("is_active", "==", True),
                where("assigned_feeder_point_ids", "array_contains", feeder_point.feeder_point_id),
            ],
        )
        roster = {d["id"]: Worker.from_document(d) for d in docs}

        # The feeder point may also list workers whose own document was not updated.
        for worker_id in feeder_point.assigned_worker_ids:
            if worker_id in roster:
                continue
            doc = await self._store.get(WORKERS, worker_id)
            if doc and doc.get("is_active", True):
                roster[worker_id] = Worker.from_document(doc)
        return list(roster.values())

    async def list_for_driver(self, driver_id: str) -> Sequence[Worker]:
        docs = await self._store.query(
            WORKERS,
            [where("assigned_driver_id", "==", driver_id), where("is_active", "==", True)],
        )
        if docs:
            return [Worker.from_document(d) for d in docs]

        contractor_id = await self.get_contractor_id(driver_id)
        if not contractor_id:
            return []
        docs = await self._store.query(
            WORKERS,
            [where("contractor_id", "==", contractor_id), where("is_active", "==", True)],
        )
        return [Worker.from_document(d) for d in docs]

    async def get_contractor_id(self, driver_id: str) -> Optional[str]:
        driver = await self._store.get(USERS, driver_id)
        if not driver:
            return None
        return driver.get("contractor_id")
