from __future__ import annotations

import asyncio
import copy
import threading

import pytest

from swachh_netra.common.sanitize import MISSING
from swachh_netra.core.exceptions import NotFoundError, SanitizationError, ValidationError
from swachh_netra.database.document_store import SERVER_TIMESTAMP, Filter, KeyedLocks, WriteOp, where


def test_add_get_and_server_timestamp(store, fixed_now):
    async def scenario():
        doc_id = await store.add("things", {"name": "a", "created_at": SERVER_TIMESTAMP})
        return await store.get("things", doc_id), doc_id

    doc, doc_id = asyncio.run(scenario())
    assert doc == {"id": doc_id, "name": "a", "created_at": "2026-03-02T08:30:00.000000"}


def test_get_missing_returns_none(store):
    assert asyncio.run(store.get("things", "nope")) is None


def test_returned_documents_are_copies(store):
    async def scenario():
        await store.batch_write([WriteOp("things", "t1", {"tags": ["a"]}, create=True)])
        doc = await store.get("things", "t1")
        doc["tags"].append("b")
        return await store.get("things", "t1")

    assert asyncio.run(scenario())["tags"] == ["a"]


def test_batch_is_all_or_nothing(store):
    async def scenario():
        await store.batch_write(
            [
                WriteOp("things", "t1", {"v": 1}, create=True),
                WriteOp("things", "t3", {"v": 3}, create=True),
            ]
        )
        with pytest.raises(NotFoundError):
            await store.batch_write(
                [
                    WriteOp("things", "t1", {"v": 10}),
                    WriteOp("things", "t2", {"v": 20}),
                    WriteOp("things", "t3", {"v": 30}),
                ]
            )
        return await store.query("things", order_by="v")

    docs = asyncio.run(scenario())
    assert [d["v"] for d in docs] == [1, 3]


def test_create_on_existing_document_fails(store):
    async def scenario():
        await store.batch_write([WriteOp("things", "t1", {"v": 1}, create=True)])
        await store.batch_write([WriteOp("things", "t1", {"v": 2}, create=True)])

    with pytest.raises(ValidationError):
        asyncio.run(scenario())


def test_unset_values_are_rejected_before_any_write(store):
    async def scenario():
        with pytest.raises(SanitizationError):
            await store.batch_write(
                [
                    WriteOp("things", "ok", {"v": 1}, create=True),
                    WriteOp("things", "bad", {"notes": MISSING}, create=True),
                ]
            )
        return await store.query("things")

    assert asyncio.run(scenario()) == []


def test_query_filters_order_and_limit(store):
    async def scenario():
        await store.batch_write(
            [
                WriteOp("things", "a", {"n": 3, "tags": ["x"], "kind": "k1"}, create=True),
                WriteOp("things", "b", {"n": 1, "tags": ["y"], "kind": "k2"}, create=True),
                WriteOp("things", "c", {"n": 2, "tags": ["x", "y"], "kind": "k1"}, create=True),
                WriteOp("things", "d", {"tags": [], "kind": "k3"}, create=True),
            ]
        )
        return (
            await store.query("things", [where("tags", "array_contains", "x")], order_by="n"),
            await store.query("things", [where("kind", "in", ["k1", "k2"])], order_by="n", descending=True, limit=2),
            await store.query("things", [where("n", ">=", 2)]),
            await store.query("things", order_by="n"),
        )

    contains_x, top_two, at_least_two, ordered = asyncio.run(scenario())
    assert [d["id"] for d in contains_x] == ["c", "a"]
    assert [d["id"] for d in top_two] == ["a", "c"]
    assert {d["id"] for d in at_least_two} == {"a", "c"}
    # Documents without the order field go last.
    assert [d["id"] for d in ordered] == ["b", "c", "a", "d"]


def test_unknown_filter_operator_is_rejected():
    with pytest.raises(ValueError):
        Filter("n", "~=", 1)


def test_subscribe_delivers_snapshots_until_unsubscribed(store):
    seen = []

    async def scenario():
        sub = store.subscribe("things", [where("kind", "==", "k1")], lambda docs: seen.append(sorted(d["id"] for d in docs)))
        await store.flush_subscriptions()
        await store.add("things", {"kind": "k1"})
        await store.flush_subscriptions()
        await store.batch_write([WriteOp("things", "z", {"kind": "k2"}, create=True)])
        await store.flush_subscriptions()
        sub.unsubscribe()
        await store.batch_write([WriteOp("things", "y", {"kind": "k1"}, create=True)])
        await store.flush_subscriptions()
        return sub

    sub = asyncio.run(scenario())
    assert not sub.active
    assert len(seen) == 3
    assert seen[0] == []
    assert len(seen[1]) == 1
    assert seen[2] == seen[1]


def test_async_callbacks_and_failing_callbacks(store):
    received = []

    async def good(docs):
        received.append(len(docs))

    def bad(docs):
        raise RuntimeError("listener bug")

    async def scenario():
        store.subscribe("things", [], good)
        store.subscribe("things", [], bad)
        await store.add("things", {"v": 1})
        await store.flush_subscriptions()

    asyncio.run(scenario())
    assert received[-1] == 1


def test_exclusive_serializes_same_key(store):
    order = []

    async def worker(name: str):
        async with store.exclusive("k"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    async def scenario():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())
    assert order == ["a-in", "a-out", "b-in", "b-out"]


def test_server_timestamp_survives_copying():
    assert copy.deepcopy(SERVER_TIMESTAMP) is SERVER_TIMESTAMP
    assert copy.copy(SERVER_TIMESTAMP) is SERVER_TIMESTAMP
    assert copy.deepcopy({"at": [SERVER_TIMESTAMP]})["at"][0] is SERVER_TIMESTAMP


def test_server_timestamp_resolved_on_update(store):
    async def scenario():
        await store.batch_write([WriteOp("things", "t1", {"v": 1}, create=True)])
        await store.update("things", "t1", {"touched": {"at": SERVER_TIMESTAMP}})
        return await store.get("things", "t1")

    doc = asyncio.run(scenario())
    assert doc["touched"] == {"at": "2026-03-02T08:30:00.000000"}


def test_exclusive_across_event_loops(store):
    state = {"inside": 0, "peak": 0}
    errors = []
    guard = threading.Lock()

    async def critical():
        async with store.exclusive("shared"):
            with guard:
                state["inside"] += 1
                state["peak"] = max(state["peak"], state["inside"])
            await asyncio.sleep(0.01)
            with guard:
                state["inside"] -= 1

    def run_in_thread():
        try:
            for _ in range(3):
                asyncio.run(critical())
        except Exception as exc:  # surfaced through `errors`
            errors.append(exc)

    threads = [threading.Thread(target=run_in_thread) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert state["peak"] == 1


def test_keyed_locks_forget_released_keys():
    locks = KeyedLocks()

    async def scenario():
        async with locks.hold("a"):
            async with locks.hold("b"):
                assert len(locks) == 2
        await asyncio.gather(*(_hold_briefly(locks, "c") for _ in range(4)))

    asyncio.run(scenario())
    assert len(locks) == 0


async def _hold_briefly(locks, key):
    async with locks.hold(key):
        await asyncio.sleep(0)


def test_cancelled_waiter_does_not_keep_the_key():
    locks = KeyedLocks()

    async def scenario():
        async with locks.hold("k"):
            waiter = asyncio.ensure_future(_hold_briefly(locks, "k"))
            await asyncio.sleep(0.02)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter
        async with locks.hold("k"):
            return True

    assert asyncio.run(scenario()) is True
    assert len(locks) == 0


def test_subscription_registered_outside_a_loop_gets_initial_snapshot(store):
    seen = []
    store.subscribe("things", [], seen.append)
    asyncio.run(store.flush_subscriptions())
    assert seen == [[]]


def test_subscription_outlives_the_loop_that_wrote(store):
    seen = []

    async def write():
        store.subscribe("things", [], lambda docs: seen.append(len(docs)))
        await store.add("things", {"v": 1})

    asyncio.run(write())
    asyncio.run(store.flush_subscriptions())
    assert seen[-1] == 1
