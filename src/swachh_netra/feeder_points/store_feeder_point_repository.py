from __future__ import annotations

from typing import Optional

from ..core.constants import FEEDER_POINTS
from ..database.document_store import DocumentStore
from .model import FeederPoint
from .repository import FeederPointRepository


class StoreFeederPointRepository(FeederPointRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    async def get_by_id(self, feeder_point_id: str) -> Optional[FeederPoint]:
        doc = await self._store.get(FEEDER_POINTS, feeder_point_id)
        if not doc:
            return None
        return FeederPoint.from_document(doc)
