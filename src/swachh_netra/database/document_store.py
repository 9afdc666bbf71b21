from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
import itertools
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Awaitable, Callable, Iterable, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_ServerTimestamp, ())


# Placeholder replaced by the store's own clock when the write is applied.
SERVER_TIMESTAMP: Any = _ServerTimestamp()

_OPS = {"==", "!=", "<", "<=", ">", ">=", "in", "array_contains"}


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPS:
            raise ValueError(f"Unsupported filter operator: {self.op!r}")

    def matches(self, document: dict) -> bool:
        actual = get_field(document, self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value
        if self.op == "array_contains":
            return isinstance(actual, list) and self.value in actual
        if actual is None or self.value is None:
            return False
        try:
            if self.op == "<":
                return actual < self.value
            if self.op == "<=":
                return actual <= self.value
            if self.op == ">":
                return actual > self.value
            return actual >= self.value
        except TypeError:
            return False


def where(field_name: str, op: str, value: Any) -> Filter:
    return Filter(field_name, op, value)


@dataclass(frozen=True)
class WriteOp:
    """One entry of an atomic batch.

    `create=True` inserts a new document under `doc_id`; otherwise `data` is
    merged into an existing document, and a missing target fails the batch.
    """

    collection: str
    doc_id: str
    data: dict
    create: bool = False


SnapshotCallback = Callable[[list], Any]


class Subscription:
    """Cancellation handle returned by `subscribe`."""

    def __init__(self, hub: "SubscriptionHub", sub_id: int):
        self._hub = hub
        self._id = sub_id
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._hub.remove(self._id)

    def __call__(self) -> None:
        self.unsubscribe()


@dataclass
class _Listener:
    collection: str
    filters: tuple
    callback: SnapshotCallback
    handle: Optional[Subscription] = None


class SubscriptionHub:
    """Observer registry shared by store implementations.

    Listeners receive the full list of matching documents once on
    registration and again after every committed write to their collection.
    Deliveries run one at a time, in scheduling order, on the hub's own event
    loop thread, so they do not depend on the caller having a loop and are
    not cancelled when a request's loop closes.
    """

    def __init__(self, fetch: Callable[[str, Sequence[Filter]], Awaitable[list]]):
        self._fetch = fetch
        self._listeners: dict[int, _Listener] = {}
        self._ids = itertools.count(1)
        self._guard = threading.Lock()
        self._pending: set[concurrent.futures.Future] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._delivery_lock = asyncio.Lock()

    def add(self, collection: str, filters: Sequence[Filter], callback: SnapshotCallback) -> Subscription:
        listener = _Listener(collection=collection, filters=tuple(filters), callback=callback)
        with self._guard:
            sub_id = next(self._ids)
            listener.handle = Subscription(self, sub_id)
            self._listeners[sub_id] = listener
        self._schedule(listener)
        return listener.handle

    def remove(self, sub_id: int) -> None:
        with self._guard:
            self._listeners.pop(sub_id, None)

    def publish(self, collections: Iterable[str]) -> None:
        touched = set(collections)
        with self._guard:
            listeners = [l for l in self._listeners.values() if l.collection in touched]
        for listener in listeners:
            self._schedule(listener)

    async def flush(self) -> None:
        """Wait until every scheduled delivery has run."""
        while True:
            with self._guard:
                pending = list(self._pending)
            if not pending:
                return
            await asyncio.gather(*(asyncio.wrap_future(f) for f in pending), return_exceptions=True)

    def _delivery_loop(self) -> asyncio.AbstractEventLoop:
        with self._guard:
            if self._loop is None:
                loop = asyncio.new_event_loop()
                threading.Thread(target=loop.run_forever, name="subscription-hub", daemon=True).start()
                self._loop = loop
            return self._loop

    def _schedule(self, listener: _Listener) -> None:
        future = asyncio.run_coroutine_threadsafe(self._deliver(listener), self._delivery_loop())
        with self._guard:
            self._pending.add(future)
        future.add_done_callback(self._discard)

    def _discard(self, future: concurrent.futures.Future) -> None:
        with self._guard:
            self._pending.discard(future)

    async def _deliver(self, listener: _Listener) -> None:
        async with self._delivery_lock:
            if listener.handle is None or not listener.handle.active:
                return
            try:
                documents = await self._fetch(listener.collection, listener.filters)
                if not listener.handle.active:
                    return
                result = listener.callback(documents)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Snapshot delivery failed for collection %s", listener.collection)


class KeyedLocks:
    """Per-key mutual exclusion usable from any thread and any event loop.

    Waiters poll a `threading.Lock` instead of blocking, so a cancelled
    waiter never ends up holding the key. Entries are dropped as soon as no
    holder or waiter remains.
    """

    def __init__(self, *, poll_interval: float = 0.005):
        self._guard = threading.Lock()
        self._entries: dict[str, list] = {}  # key -> [lock, users]
        self._poll_interval = poll_interval

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._checkout(key)
        try:
            while not lock.acquire(blocking=False):
                await asyncio.sleep(self._poll_interval)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]


class DocumentStore(Protocol):
    def generate_id(self) -> str:
        raise NotImplementedError

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return the document (with its `id`) or None when it does not exist."""

        raise NotImplementedError

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list:
        raise NotImplementedError

    async def add(self, collection: str, data: dict) -> str:
        raise NotImplementedError

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        raise NotImplementedError

    async def batch_write(self, ops: Sequence[WriteOp]) -> None:
        """Apply all ops or none of them."""

        raise NotImplementedError

    def subscribe(self, collection: str, filters: Sequence[Filter], callback: SnapshotCallback) -> Subscription:
        raise NotImplementedError

    def exclusive(self, key: str) -> AsyncContextManager[None]:
        """Serialize check-then-act sections that share `key`."""

        raise NotImplementedError


def get_field(document: dict, path: str) -> Any:
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def resolve_server_timestamps(data: Any, now_iso: str) -> Any:
    if data is SERVER_TIMESTAMP:
        return now_iso
    if isinstance(data, dict):
        return {k: resolve_server_timestamps(v, now_iso) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_server_timestamps(v, now_iso) for v in data]
    return data


def apply_query(
    documents: Iterable[dict],
    filters: Sequence[Filter],
    *,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> list:
    rows = [d for d in documents if all(f.matches(d) for f in filters)]
    if order_by:
        present = [d for d in rows if get_field(d, order_by) is not None]
        absent = [d for d in rows if get_field(d, order_by) is None]
        present.sort(key=lambda d: get_field(d, order_by), reverse=descending)
        rows = present + absent
    if limit is not None:
        rows = rows[: int(limit)]
    return rows

