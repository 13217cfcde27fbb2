import pytest

from nightvibe.domain.chat import service as chat_service
from nightvibe.infra.store import MESSAGES, DocumentNotFound

U1 = {"X-User-Id": "u1"}
U2 = {"X-User-Id": "u2"}


@pytest.mark.asyncio
async def test_anonymous_message_flow(api_client, seed_user):
    await seed_user("u1")
    await seed_user("u2")

    send = await api_client.post(
        "/messages",
        json={"receiver_id": "u2", "content": "hi", "anonymous": True},
        headers=U1,
    )
    assert send.status_code == 201
    assert send.headers["X-Request-Id"]
    sent = send.json()
    assert sent["direction"] == "sent"
    assert sent["status"] == "sent"

    unread = await api_client.get("/messages/unread", headers=U2)
    assert unread.json() == {"total_unread": 1}

    inbox = await api_client.get("/messages/conversations", headers=U2)
    assert inbox.status_code == 200
    listing = inbox.json()
    assert listing["total_unread"] == 1
    assert len(listing["items"]) == 1
    assert listing["items"][0]["anonymous"] is True
    assert listing["items"][0]["preview"] == "Anonymous: hi"
    handle = listing["items"][0]["counterpart_id"]
    assert handle != "u1"

    thread = await api_client.get(f"/messages/conversations/{handle}", headers=U2)
    assert thread.status_code == 200
    body = thread.json()
    assert body["marked_read"] == 1
    assert body["messages"][0]["sender_id"] is None
    assert body["messages"][0]["content"] == "hi"

    unread = await api_client.get("/messages/unread", headers=U2)
    assert unread.json() == {"total_unread": 0}

    outbox = await api_client.get("/messages/conversations/u2", headers=U1)
    assert outbox.json()["messages"][0]["status"] == "read"


@pytest.mark.asyncio
async def test_send_validation_error_shape(api_client, seed_user):
    await seed_user("u1")

    response = await api_client.post("/messages", json={"content": "hi"}, headers=U1)

    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "validation_error"
    assert body["errors"]


@pytest.mark.asyncio
async def test_recipient_who_disabled_messages_is_refused(api_client, seed_user):
    await seed_user("u1")
    await seed_user(
        "u2",
        preferences={"showAge": True, "showStatus": True, "receiveMessages": False, "showOnline": True},
    )

    response = await api_client.post("/messages", json={"receiver_id": "u2", "content": "hi"}, headers=U1)

    assert response.status_code == 403
    assert response.json()["message"]


@pytest.mark.asyncio
async def test_report_a_message(api_client, seed_user, memory_store):
    await seed_user("u1")
    await seed_user("u2")
    sent = await api_client.post("/messages", json={"receiver_id": "u2", "content": "rude"}, headers=U1)
    message_id = sent.json()["id"]

    report = await api_client.post(
        "/reports",
        json={"reported_user_id": "u1", "reasons": ["harassment"], "message_id": message_id},
        headers=U2,
    )

    assert report.status_code == 201
    assert report.json()["status"] == "pending"
    stored = await memory_store.get("messages", message_id)
    assert stored.data["reported"] is True


@pytest.mark.asyncio
async def test_vanished_document_maps_to_404_with_error_body(api_client, seed_user, monkeypatch):
    await seed_user("u2")

    async def vanished(auth_user):
        raise DocumentNotFound(MESSAGES, "m1")

    monkeypatch.setattr(chat_service, "unread_total", vanished)

    response = await api_client.get("/messages/unread", headers=U2)

    assert response.status_code == 404
    body = response.json()
    assert body["detail"] == "not_found"
    assert body["message"]
    assert body["request_id"]
