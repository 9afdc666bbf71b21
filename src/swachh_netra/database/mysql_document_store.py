from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import threading
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

import mysql.connector

from ..common.datetime_utils import Clock, now_local, to_iso
from ..common.sanitize import assert_sanitized
from ..core.constants import DEFAULT_STORE_TIMEOUT_SECONDS
from ..core.exceptions import NotFoundError, StoreTimeoutError, StoreUnavailableError, ValidationError
from .connection import DatabaseConnection
from .document_store import Filter, Subscription, SubscriptionHub, WriteOp, apply_query, resolve_server_timestamps
from .mysql_base import db_cursor, decode_json_column, fetchall, fetchone, json_path

logger = logging.getLogger(__name__)

_PUSHDOWN_TYPES = (str, int, float, bool)


class _Attempt:
    """Deadline shared by a worker thread and the coroutine awaiting it.

    Exactly one side wins: either the worker claims the attempt before its
    side effect becomes durable, or the waiter abandons it and the worker
    must back out.
    """

    def __init__(self, timeout: float):
        self._guard = threading.Lock()
        self._deadline = time.monotonic() + timeout
        self._state = "running"

    def claim(self) -> bool:
        with self._guard:
            if self._state == "running":
                self._state = "claimed" if time.monotonic() < self._deadline else "abandoned"
            return self._state == "claimed"

    def abandon(self) -> bool:
        with self._guard:
            if self._state == "running":
                self._state = "abandoned"
            return self._state == "abandoned"


class MySQLDocumentStore:
    """Document store over a single `documents` table holding JSON bodies.

    Blocking connector calls run on worker threads and are bounded by
    `timeout_seconds`. A write that times out is rolled back, never committed
    behind the caller's back; connector errors surface as
    `StoreUnavailableError`. Equality filters on scalar values are evaluated
    by MySQL, every filter is re-checked in Python so results match the
    in-memory store exactly. `exclusive` relies on MySQL advisory locks, so it
    holds across threads, event loops and processes alike.
    """

    def __init__(
        self,
        conn_factory: DatabaseConnection,
        *,
        timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS,
        clock: Clock = now_local,
    ):
        self._conn_factory = conn_factory
        self._timeout = float(timeout_seconds)
        self._clock = clock
        self._hub = SubscriptionHub(self._snapshot)

    def generate_id(self) -> str:
        return uuid.uuid4().hex

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        return await self._run(self._get_sync, collection, doc_id)

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list:
        rows = await self._run(self._query_sync, collection, tuple(filters))
        return apply_query(rows, filters, order_by=order_by, descending=descending, limit=limit)

    async def add(self, collection: str, data: dict) -> str:
        doc_id = self.generate_id()
        await self.batch_write([WriteOp(collection, doc_id, data, create=True)])
        return doc_id

    async def update(self, collection: str, doc_id: str, data: dict) -> None:
        await self.batch_write([WriteOp(collection, doc_id, data)])

    async def batch_write(self, ops: Sequence[WriteOp]) -> None:
        for op in ops:
            assert_sanitized(op.data, path=f"{op.collection}/{op.doc_id}")
        if not ops:
            return
        now_iso = to_iso(self._clock())
        await self._run(self._batch_sync, tuple(ops), now_iso)
        self._hub.publish(op.collection for op in ops)

    def subscribe(self, collection: str, filters: Sequence[Filter], callback) -> Subscription:
        return self._hub.add(collection, filters, callback)

    async def flush_subscriptions(self) -> None:
        await self._hub.flush()

    @asynccontextmanager
    async def exclusive(self, key: str) -> AsyncIterator[None]:
        conn = await self._run(self._acquire_named_lock, key)
        try:
            yield
        finally:
            await self._run(self._release_named_lock, conn, key)

    async def _run(self, fn, *args):
        attempt = _Attempt(self._timeout)
        future = asyncio.ensure_future(asyncio.to_thread(fn, attempt, *args))
        future.add_done_callback(_consume_result)
        try:
            try:
                return await asyncio.wait_for(asyncio.shield(future), timeout=self._timeout)
            except asyncio.TimeoutError:
                if attempt.abandon():
                    logger.error("Document store call %s timed out after %.1fs", fn.__name__, self._timeout)
                    raise StoreTimeoutError("Document store did not respond in time") from None
                # The worker already committed; report its real outcome.
                logger.warning("Document store call %s finished past its %.1fs timeout", fn.__name__, self._timeout)
                return await future
        except mysql.connector.Error as exc:
            logger.exception("Document store call %s failed", fn.__name__)
            raise StoreUnavailableError(f"Document store error: {exc}") from exc

    async def _snapshot(self, collection: str, filters: Sequence[Filter]) -> list:
        return await self.query(collection, filters)

    # ----- blocking helpers (run on worker threads) -----

    def _get_sync(self, attempt: _Attempt, collection: str, doc_id: str) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT doc_id, body FROM documents WHERE collection=%s AND doc_id=%s",
                (collection, doc_id),
            )
            row = fetchone(cur)
            if not row:
                return None
            return {"id": row["doc_id"], **decode_json_column(row["body"])}

    def _query_sync(self, attempt: _Attempt, collection: str, filters: tuple) -> list:
        clauses = ["collection=%s"]
        params: list[object] = [collection]
        for f in filters:
            if f.op == "==" and isinstance(f.value, _PUSHDOWN_TYPES):
                clauses.append("JSON_EXTRACT(body, %s) = CAST(%s AS JSON)")
                params.extend([json_path(f.field), json.dumps(f.value)])

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT doc_id, body FROM documents WHERE {where}", tuple(params))
            return [{"id": r["doc_id"], **decode_json_column(r["body"])} for r in fetchall(cur)]

    def _batch_sync(self, attempt: _Attempt, ops: tuple, now_iso: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            for op in ops:
                data = resolve_server_timestamps(op.data, now_iso)
                if op.create:
                    try:
                        cur.execute(
                            "INSERT INTO documents(collection, doc_id, body) VALUES(%s,%s,%s)",
                            (op.collection, op.doc_id, json.dumps(data)),
                        )
                    except mysql.connector.IntegrityError:
                        raise ValidationError(f"Document {op.collection}/{op.doc_id} already exists")
                    continue

                cur.execute(
                    "SELECT body FROM documents WHERE collection=%s AND doc_id=%s FOR UPDATE",
                    (op.collection, op.doc_id),
                )
                row = fetchone(cur)
                if not row:
                    # db_cursor rolls back everything written so far in this batch.
                    raise NotFoundError(f"Document {op.collection}/{op.doc_id} not found")
                merged = decode_json_column(row["body"])
                merged.update(data)
                cur.execute(
                    "UPDATE documents SET body=%s WHERE collection=%s AND doc_id=%s",
                    (json.dumps(merged), op.collection, op.doc_id),
                )

            if not attempt.claim():
                raise StoreTimeoutError("Batch abandoned after timeout; rolled back")

    @staticmethod
    def _lock_name(key: str) -> str:
        # MySQL limits lock names to 64 characters.
        return "swachh:" + hashlib.sha1(key.encode("utf-8")).hexdigest()

    def _acquire_named_lock(self, attempt: _Attempt, key: str):
        conn = self._conn_factory.connect()
        try:
            cur = conn.cursor()
            try:
                cur.execute("SELECT GET_LOCK(%s, %s)", (self._lock_name(key), max(1, int(self._timeout) - 1)))
                (acquired,) = cur.fetchone()
            finally:
                cur.close()
        except Exception:
            conn.close()
            raise
        if acquired != 1:
            conn.close()
            raise StoreTimeoutError(f"Could not acquire lock for {key}")
        if not attempt.claim():
            # Nobody is waiting for this lock any more.
            self._release(conn, key)
            raise StoreTimeoutError(f"Lock for {key} acquired after timeout; released")
        return conn

    def _release_named_lock(self, attempt: _Attempt, conn, key: str) -> None:
        self._release(conn, key)

    def _release(self, conn, key: str) -> None:
        try:
            cur = conn.cursor()
            try:
                cur.execute("SELECT RELEASE_LOCK(%s)", (self._lock_name(key),))
                cur.fetchone()
            finally:
                cur.close()
        finally:
            conn.close()


def _consume_result(future: asyncio.Future) -> None:
    # Abandoned attempts finish unobserved; retrieve their outcome to keep
    # the loop from logging it as never retrieved.
    if not future.cancelled():
        future.exception()
