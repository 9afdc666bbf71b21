from __future__ import annotations

import asyncio
import copy
import logging
import threading
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional, Sequence

from ..common.datetime_utils import Clock, now_local, to_iso
from ..common.sanitize import assert_sanitized
from ..core.exceptions import NotFoundError, ValidationError
from .document_store import (
    Filter,
    KeyedLocks,
    Subscription,
    SubscriptionHub,
    WriteOp,
    apply_query,
    resolve_server_timestamps,
)

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """Process-local document store used by the development and testing settings.

    Each operation yields to the event loop once, so concurrent callers
    interleave the way they would against a remote store. The store may be
    shared by callers on different threads and event loops.
    """

    def __init__(self, *, clock: Clock = now_local, id_factory: Optional[Callable[[], str]] = None):
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._collections: dict[str, dict[str, dict]] = {}
        self._data_lock = threading.RLock()
        self._locks = KeyedLocks()
        self._hub = SubscriptionHub(self._snapshot)

    def generate_id(self) -> str:
        return self._id_factory()

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        await asyncio.sleep(0)
        with self._data_lock:
            body = self._collections.get(collection, {}).get(doc_id)
            if body is None:
                return None
            return {"id": doc_id, **copy.deepcopy(body)}

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list:
        await asyncio.sleep(0)
        return self._select(collection, filters, order_by=order_by, descending=descending, limit=limit)

    async def add(self, collection: str, data: dict) -> str:
        doc_id = self.generate_id()
        await self.batch_write([WriteOp(collection, doc_id, data, create=True)])
        return doc_id

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        await self.batch_write([WriteOp(collection, doc_id, data)])

    async def batch_write(self, ops: Sequence[WriteOp]) -> None:
        await asyncio.sleep(0)
        for op in ops:
            assert_sanitized(op.data, path=f"{op.collection}/{op.doc_id}")

        now_iso = to_iso(self._clock())
        with self._data_lock:
            # Validate the whole batch before touching anything.
            staged: dict[tuple[str, str], dict] = {}
            for op in ops:
                key = (op.collection, op.doc_id)
                current = staged.get(key)
                if current is None:
                    current = self._collections.get(op.collection, {}).get(op.doc_id)
                data = copy.deepcopy(resolve_server_timestamps(op.data, now_iso))
                if op.create:
                    if current is not None:
                        raise ValidationError(f"Document {op.collection}/{op.doc_id} already exists")
                    staged[key] = data
                else:
                    if current is None:
                        raise NotFoundError(f"Document {op.collection}/{op.doc_id} not found")
                    merged = copy.deepcopy(current)
                    merged.update(data)
                    staged[key] = merged

            for (collection, doc_id), body in staged.items():
                self._collections.setdefault(collection, {})[doc_id] = body
        self._hub.publish(collection for collection, _ in staged)

    def subscribe(self, collection: str, filters: Sequence[Filter], callback) -> Subscription:
        return self._hub.add(collection, filters, callback)

    async def flush_subscriptions(self) -> None:
        await self._hub.flush()

    @asynccontextmanager
    async def exclusive(self, key: str) -> AsyncIterator[None]:
        async with self._locks.hold(key):
            yield

    def _select(self, collection: str, filters: Sequence[Filter], **kwargs) -> list:
        with self._data_lock:
            docs = [{"id": doc_id, **copy.deepcopy(body)} for doc_id, body in self._collections.get(collection, {}).items()]
        return apply_query(docs, filters, **kwargs)

    async def _snapshot(self, collection: str, filters: Sequence[Filter]) -> list:
        return self._select(collection, filters)
