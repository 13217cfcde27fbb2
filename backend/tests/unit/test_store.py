import asyncio
import logging

import pytest

from nightvibe.infra.memory_store import InMemoryDocumentStore
from nightvibe.infra.store import (
    BATCH_LIMIT,
    DocumentNotFound,
    Filter,
    Increment,
    StoreUnavailable,
    WriteOp,
    array_union,
    commit_in_batches,
    store,
)
from nightvibe.settings import settings


@pytest.mark.asyncio
async def test_field_transforms_and_dotted_updates(memory_store):
    await store.set("users", "u1", {"preferences": {"showAge": True, "showOnline": True}, "views": 1})

    await store.update(
        "users",
        "u1",
        {"preferences.showAge": False, "views": Increment(2), "tags": array_union("a", "b")},
    )
    await store.update("users", "u1", {"tags": array_union("b", "c")})

    stored = await store.get("users", "u1")
    assert stored.data["preferences"] == {"showAge": False, "showOnline": True}
    assert stored.data["views"] == 3
    assert stored.data["tags"] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_merge_set_keeps_unmentioned_fields(memory_store):
    await store.set("admin", "settings", {"a": 1, "nested": {"x": 1}})
    await store.set("admin", "settings", {"b": 2, "nested": {"y": 2}}, merge=True)

    stored = await store.get("admin", "settings")
    assert stored.data == {"a": 1, "b": 2, "nested": {"x": 1, "y": 2}}


@pytest.mark.asyncio
async def test_commit_is_all_or_nothing_for_missing_documents(memory_store):
    await store.set("messages", "m1", {"read": False})

    with pytest.raises(DocumentNotFound):
        await store.commit([WriteOp.update("messages", "m1", {"read": True}), WriteOp.update("messages", "gone", {})])

    assert (await store.get("messages", "m1")).data["read"] is False


@pytest.mark.asyncio
async def test_commit_rejects_oversized_batches_and_helper_chunks(memory_store):
    ops = [WriteOp("set", "messages", f"m{index}", {"n": index}) for index in range(BATCH_LIMIT + 1)]

    with pytest.raises(ValueError):
        await store.commit(ops)
    assert await commit_in_batches(ops) == 2
    assert memory_store.commits == [500, 1]


@pytest.mark.asyncio
async def test_range_query_and_limit(memory_store):
    for name in ("anna", "annie", "bob"):
        await store.set("users", name, {"username": name})

    matches = await store.query(
        "users", [Filter("username", ">=", "ann"), Filter("username", "<=", "ann\uf8ff")], limit=1
    )

    assert len(matches) == 1
    assert matches[0].data["username"].startswith("ann")


def test_filter_rejects_unknown_operator():
    with pytest.raises(ValueError):
        Filter("username", "!=", "x")


@pytest.mark.asyncio
async def test_subscription_reports_added_modified_removed(memory_store):
    events = []
    unsubscribe = store.subscribe("messages", [Filter("receiverId", "==", "u2")], events.append)

    await store.set("messages", "m1", {"receiverId": "u2", "read": False})
    await store.update("messages", "m1", {"read": True})
    await store.update("messages", "m1", {"receiverId": "u9"})
    await store.set("messages", "m2", {"receiverId": "u3"})
    await asyncio.sleep(0)

    assert [event.kind for event in events] == ["added", "modified", "removed"]
    unsubscribe()
    assert memory_store.listener_count == 0


@pytest.mark.asyncio
async def test_failing_async_listener_is_logged_and_later_events_arrive(memory_store, caplog):
    seen = []

    async def listener(event):
        seen.append(event.document.id)
        if event.document.id == "bad":
            raise RuntimeError("listener exploded")

    unsubscribe = store.subscribe("messages", [Filter("receiverId", "==", "u2")], listener)
    with caplog.at_level(logging.ERROR, logger="nightvibe.store"):
        await store.set("messages", "bad", {"receiverId": "u2"})
        await store.set("messages", "good", {"receiverId": "u2"})
        for _ in range(5):
            await asyncio.sleep(0)
    unsubscribe()

    assert seen == ["bad", "good"]
    assert [record.getMessage() for record in caplog.records].count("store_listener_callback_failed") == 1


@pytest.mark.asyncio
async def test_proxy_timeout_surfaces_as_store_unavailable(monkeypatch):
    class SlowStore(InMemoryDocumentStore):
        async def get(self, collection, doc_id):
            await asyncio.sleep(1)

    monkeypatch.setattr(settings, "store_timeout_seconds", 0.01)
    store.set_backend(SlowStore())

    with pytest.raises(StoreUnavailable):
        await store.get("users", "u1")


@pytest.mark.asyncio
async def test_unconfigured_proxy_is_unavailable():
    store.set_backend(None)

    with pytest.raises(StoreUnavailable):
        await store.get("users", "u1")
