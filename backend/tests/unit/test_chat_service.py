from datetime import datetime, timezone

import pytest

from nightvibe.domain.chat import service as chat_service
from nightvibe.domain.chat.schemas import SendMessageRequest
from nightvibe.domain.exceptions import NotFound
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import MESSAGES, StoreUnavailable


def _stored(sender, receiver, content, seconds, **extra):
    data = {
        "senderId": sender,
        "receiverId": receiver,
        "content": content,
        "timestamp": datetime.fromtimestamp(seconds, tz=timezone.utc),
        "readBy": [sender],
        "read": False,
    }
    data.update(extra)
    return data


@pytest.mark.asyncio
async def test_anonymous_message_shows_as_one_unread_conversation(memory_store, seed_user):
    await seed_user("u1", "alex")
    await seed_user("u2", "blake")
    await memory_store.set(
        MESSAGES, "m1", _stored("u1", "u2", "hi", 100, isAnonymous=True, senderName="Anonymous")
    )

    listing = await chat_service.list_conversations(AuthenticatedUser(id="u2"))

    assert listing.total_unread == 1
    assert len(listing.items) == 1
    conversation = listing.items[0]
    assert conversation.counterpart_id.startswith("anon_")
    assert "u1" not in conversation.counterpart_id
    assert conversation.unread_count == 1
    assert conversation.display_name == "Anonymous User"
    assert conversation.anonymous is True
    assert conversation.preview == "Anonymous: hi"


@pytest.mark.asyncio
async def test_legacy_receiver_spelling_is_loaded(memory_store, seed_user):
    await seed_user("u1")
    await seed_user("u2")
    await memory_store.set(MESSAGES, "old", {"senderrId": "u1", "receiverrId": "u2", "message": "from 2019"})

    listing = await chat_service.list_conversations(AuthenticatedUser(id="u2"))

    assert [item.counterpart_id for item in listing.items] == ["u1"]
    assert listing.items[0].preview == "from 2019"


@pytest.mark.asyncio
async def test_open_thread_marks_read_once(memory_store, seed_user):
    await seed_user("u1")
    await seed_user("u2")
    await memory_store.set(MESSAGES, "m1", _stored("u1", "u2", "one", 100))
    await memory_store.set(MESSAGES, "m2", _stored("u1", "u2", "two", 200))
    reader = AuthenticatedUser(id="u2")

    first = await chat_service.open_thread(reader, "u1")
    second = await chat_service.open_thread(reader, "u1")

    assert first.marked_read == 2
    assert [message.content for message in first.messages] == ["one", "two"]
    assert second.marked_read == 0
    assert memory_store.commits == [2]
    stored = await memory_store.get(MESSAGES, "m1")
    assert stored.data["readBy"] == ["u1", "u2"]
    assert stored.data["read"] is True
    assert await chat_service.unread_total(reader) == 0


@pytest.mark.asyncio
async def test_mark_read_of_501_messages_commits_in_batches(memory_store, seed_user):
    await seed_user("u1")
    await seed_user("u2")
    for index in range(501):
        await memory_store.set(MESSAGES, f"m{index:03d}", _stored("u1", "u2", f"msg {index}", 1000 + index))

    thread = await chat_service.open_thread(AuthenticatedUser(id="u2"), "u1")

    assert thread.marked_read == 501
    assert len(memory_store.commits) >= 2
    assert max(memory_store.commits) <= 500
    assert sum(memory_store.commits) == 501


@pytest.mark.asyncio
async def test_send_message_stores_anonymous_name(memory_store, seed_user):
    await seed_user("u1", "alex")
    await seed_user("u2", "blake")

    sent = await chat_service.send_message(
        AuthenticatedUser(id="u1"), SendMessageRequest(receiver_id="u2", content="  hello  ", anonymous=True)
    )

    assert sent.content == "hello"
    assert sent.direction == "sent"
    assert sent.status == "sent"
    stored = await memory_store.get(MESSAGES, sent.id)
    assert stored.data["senderName"] == "Anonymous"
    assert stored.data["isAnonymous"] is True


@pytest.mark.asyncio
async def test_send_message_rejections(seed_user):
    await seed_user("u1")
    await seed_user("quiet", preferences={"receiveMessages": False})
    sender = AuthenticatedUser(id="u1")

    with pytest.raises(chat_service.MessageRejected):
        await chat_service.send_message(sender, SendMessageRequest(receiver_id="quiet", content="   "))
    with pytest.raises(chat_service.MessageRejected):
        await chat_service.send_message(sender, SendMessageRequest(receiver_id="u1", content="me"))
    with pytest.raises(chat_service.MessageRejected):
        await chat_service.send_message(sender, SendMessageRequest(receiver_id="quiet", content="x" * 1001))
    with pytest.raises(chat_service.RecipientUnavailable):
        await chat_service.send_message(sender, SendMessageRequest(receiver_id="quiet", content="hey"))
    with pytest.raises(NotFound):
        await chat_service.send_message(sender, SendMessageRequest(receiver_id="ghost", content="hey"))


@pytest.mark.asyncio
async def test_blocked_sender_cannot_send(seed_user):
    await seed_user("u1", isBlocked=True)
    await seed_user("u2")

    with pytest.raises(chat_service.SenderRestricted):
        await chat_service.send_message(AuthenticatedUser(id="u1"), SendMessageRequest(receiver_id="u2", content="hi"))


@pytest.mark.asyncio
async def test_failed_query_fails_the_whole_load(monkeypatch):
    async def broken_query(collection, filters, *, limit=None):
        raise StoreUnavailable("query", "offline")

    monkeypatch.setattr(chat_service.store, "query", broken_query)

    with pytest.raises(chat_service.ConversationLoadError):
        await chat_service.list_conversations(AuthenticatedUser(id="u2"))


@pytest.mark.asyncio
async def test_message_without_sender_is_not_a_conversation(memory_store, seed_user):
    await seed_user("u1", "alex")
    await seed_user("u2")
    await memory_store.set(MESSAGES, "m1", _stored("u1", "u2", "hi", 100))
    await memory_store.set(MESSAGES, "orphan", {"receiverId": "u2", "content": "orphan"})

    listing = await chat_service.list_conversations(AuthenticatedUser(id="u2"))

    assert [item.counterpart_id for item in listing.items] == ["u1"]
    assert listing.total_unread == 1


@pytest.mark.asyncio
async def test_mark_read_skips_messages_deleted_after_loading(memory_store, seed_user):
    await seed_user("u1")
    await seed_user("u2")
    await memory_store.set(MESSAGES, "m1", _stored("u1", "u2", "one", 100))
    await memory_store.set(MESSAGES, "m2", _stored("u1", "u2", "two", 200))
    conversation = (await chat_service._SERVICE.conversations("u2"))[0]
    await memory_store.delete(MESSAGES, "m1")

    marked = await chat_service.mark_read("u2", conversation)

    assert marked == 1
    assert [message.id for message in conversation.messages] == ["m2"]
    assert conversation.last_message.id == "m2"
    assert conversation.unread_count == 0
    assert (await memory_store.get(MESSAGES, "m2")).data["read"] is True
    assert await memory_store.get(MESSAGES, "m1") is None


@pytest.mark.asyncio
async def test_concealed_sender_is_addressed_by_handle(memory_store, seed_user):
    await seed_user("u1", "alex")
    await seed_user("u2", "blake")
    await memory_store.set(
        MESSAGES, "m1", _stored("u1", "u2", "hi", 100, isAnonymous=True, senderName="Anonymous")
    )
    receiver = AuthenticatedUser(id="u2")
    handle = (await chat_service.list_conversations(receiver)).items[0].counterpart_id

    by_real_id = await chat_service.open_thread(receiver, "u1")
    assert by_real_id.messages == []
    assert by_real_id.marked_read == 0

    thread = await chat_service.open_thread(receiver, handle)
    assert thread.conversation.counterpart_id == handle
    assert thread.marked_read == 1
    assert thread.messages[0].sender_id is None

    reply = await chat_service.send_message(receiver, SendMessageRequest(receiver_id=handle, content="who is this?"))
    assert reply.receiver_id == handle
    stored = await memory_store.get(MESSAGES, reply.id)
    assert stored.data["receiverId"] == "u1"

    after_reply = await chat_service.open_thread(receiver, handle)
    assert [message.receiver_id for message in after_reply.messages] == ["u2", handle]

    with pytest.raises(NotFound):
        await chat_service.open_thread(receiver, "anon_0000")
    with pytest.raises(NotFound):
        await chat_service.send_message(receiver, SendMessageRequest(receiver_id="anon_0000", content="hey"))


@pytest.mark.asyncio
async def test_sender_still_sees_the_real_recipient(memory_store, seed_user):
    await seed_user("u1", "alex")
    await seed_user("u2", "blake")
    await memory_store.set(
        MESSAGES, "m1", _stored("u1", "u2", "hi", 100, isAnonymous=True, senderName="Anonymous")
    )

    listing = await chat_service.list_conversations(AuthenticatedUser(id="u1"))

    assert listing.items[0].counterpart_id == "u2"
    assert listing.items[0].display_name == "blake"
