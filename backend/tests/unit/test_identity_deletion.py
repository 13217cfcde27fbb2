import pytest

from nightvibe.domain.identity import deletion
from nightvibe.domain.moderation import users as user_admin
from nightvibe.domain.moderation.schemas import ConfirmRequest
from nightvibe.domain.identity.policy import ConfirmationMismatch
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import MESSAGES, USERS, StoreUnavailable


async def _seed_u3_traffic(memory_store):
    await memory_store.set(MESSAGES, "s1", {"senderId": "u3", "receiverId": "u1", "content": "a"})
    await memory_store.set(MESSAGES, "s2", {"senderId": "u3", "receiverId": "u2", "content": "b"})
    await memory_store.set(MESSAGES, "s3", {"senderrId": "u3", "receiverrId": "u1", "message": "c"})
    await memory_store.set(MESSAGES, "r1", {"senderId": "u1", "receiverId": "u3", "content": "d"})
    await memory_store.set(MESSAGES, "r2", {"senderId": "u2", "receiverrId": "u3", "content": "e"})
    await memory_store.set(MESSAGES, "keep", {"senderId": "u1", "receiverId": "u2", "content": "f"})


def _references(documents, user_id):
    fields = ("senderId", "senderrId", "receiverId", "receiverrId")
    return [document for document in documents if any(document.data.get(field) == user_id for field in fields)]


@pytest.mark.asyncio
async def test_admin_delete_removes_user_and_all_their_messages(memory_store, seed_user):
    await seed_user("admin", isAdmin=True)
    await seed_user("u3")
    await _seed_u3_traffic(memory_store)

    result = await user_admin.delete_user(
        AuthenticatedUser(id="admin", is_admin=True), "u3", ConfirmRequest(confirmation="DELETE", confirm=True)
    )

    assert result.user_existed is True
    assert result.messages_deleted == 5
    assert await memory_store.get(USERS, "u3") is None
    remaining = await memory_store.list(MESSAGES)
    assert _references(remaining, "u3") == []
    assert [document.id for document in remaining] == ["keep"]


@pytest.mark.asyncio
async def test_delete_requires_typed_confirmation(seed_user):
    await seed_user("u3")
    admin = AuthenticatedUser(id="admin", is_admin=True)

    with pytest.raises(ConfirmationMismatch):
        await user_admin.delete_user(admin, "u3", ConfirmRequest(confirmation="delete", confirm=True))
    with pytest.raises(ConfirmationMismatch):
        await user_admin.delete_user(admin, "u3", ConfirmRequest(confirmation="DELETE", confirm=False))


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(seed_user):
    await seed_user("admin", isAdmin=True)

    with pytest.raises(user_admin.SelfModeration):
        await user_admin.delete_user(
            AuthenticatedUser(id="admin", is_admin=True), "admin", ConfirmRequest(confirmation="DELETE", confirm=True)
        )


@pytest.mark.asyncio
async def test_interrupted_sweep_is_reported_and_retry_finishes(memory_store, seed_user, monkeypatch):
    await seed_user("u3")
    await _seed_u3_traffic(memory_store)
    original_where = deletion.store.where
    calls = {"count": 0}

    async def flaky_where(collection, field_name, value):
        calls["count"] += 1
        if calls["count"] == 3:
            raise StoreUnavailable("query", "deadline exceeded")
        return await original_where(collection, field_name, value)

    monkeypatch.setattr(deletion.store, "where", flaky_where)
    with pytest.raises(deletion.CascadeDeleteError):
        await deletion.delete_user_cascade("u3")
    assert await memory_store.get(USERS, "u3") is None

    monkeypatch.setattr(deletion.store, "where", original_where)
    retry = await deletion.delete_user_cascade("u3")

    assert retry.user_existed is False
    assert _references(await memory_store.list(MESSAGES), "u3") == []
