from datetime import datetime, timedelta, timezone

import pytest

from nightvibe.domain.identity.policy import ConfirmationMismatch
from nightvibe.domain.moderation import console
from nightvibe.domain.moderation import messages as message_admin
from nightvibe.domain.moderation.schemas import ConfirmRequest
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import ADMIN, MESSAGES, REPORTS, SETTINGS_DOC

ADMIN_USER = AuthenticatedUser(id="admin", is_admin=True)
NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


async def _message(memory_store, message_id, minutes_ago, **extra):
    data = {
        "senderId": "u1",
        "receiverId": "u2",
        "content": f"body {message_id}",
        "timestamp": NOW - timedelta(minutes=minutes_ago),
        "readBy": ["u1"],
    }
    data.update(extra)
    await memory_store.set(MESSAGES, message_id, data)


@pytest.mark.asyncio
async def test_stats_count_today(memory_store, seed_user):
    await seed_user("u1", createdAt=NOW - timedelta(hours=2), lastActive=NOW)
    await seed_user("u2", createdAt=NOW - timedelta(days=5), lastActive=NOW - timedelta(days=2))
    await _message(memory_store, "m1", 30)
    await _message(memory_store, "m2", 60 * 24 * 3)
    await memory_store.set(REPORTS, "r1", {"status": "pending"})
    await memory_store.set(REPORTS, "r2", {"status": "resolved"})

    stats = await console.stats(now=NOW)

    assert stats.total_users == 2
    assert stats.active_today == 1
    assert stats.new_users_today == 1
    assert stats.total_messages == 2
    assert stats.messages_today == 1
    assert stats.pending_reports == 1


@pytest.mark.asyncio
async def test_export_names_file_by_date_and_caps_messages(memory_store, seed_user):
    await seed_user("u1")
    await _message(memory_store, "old", 100)
    await _message(memory_store, "new", 1)

    payload, filename = await console.export_data(ADMIN_USER, now=NOW)

    assert filename == "nightvibe-export-2024-06-15.json"
    assert payload["exportedBy"] == "admin"
    assert [message["id"] for message in payload["messages"]] == ["new", "old"]
    assert payload["users"][0]["username"] == "u1"


@pytest.mark.asyncio
async def test_settings_merge_over_defaults_and_ignore_unknown_keys(memory_store):
    assert (await console.get_settings())["maxLoginAttempts"] == 5

    saved = await console.save_settings(ADMIN_USER, {"maintenanceMode": True, "bogus": 1})

    assert saved["maintenanceMode"] is True
    assert "bogus" not in saved
    assert saved["updatedBy"] == "admin"
    assert isinstance(saved["lastUpdated"], str)
    stored = await memory_store.get(ADMIN, SETTINGS_DOC)
    assert stored.data["maintenanceMode"] is True


@pytest.mark.asyncio
async def test_message_filters_and_listing_cap(memory_store):
    await _message(memory_store, "today", 10, isAnonymous=True)
    await _message(memory_store, "lastweek", 60 * 24 * 5, reported=True)
    await _message(memory_store, "old", 60 * 24 * 60)

    assert (await message_admin.list_messages(now=NOW)).total == 3
    assert [item.id for item in (await message_admin.list_messages(filter_name="today", now=NOW)).items] == ["today"]
    week = await message_admin.list_messages(filter_name="week", now=NOW)
    assert [item.id for item in week.items] == ["today", "lastweek"]
    assert [item.id for item in (await message_admin.list_messages(filter_name="anonymous", now=NOW)).items] == ["today"]
    assert [item.id for item in (await message_admin.list_messages(filter_name="reported", now=NOW)).items] == ["lastweek"]
    searched = await message_admin.list_messages(search="BODY OLD", now=NOW)
    assert [item.id for item in searched.items] == ["old"]
    capped = await message_admin.list_messages(limit=2, now=NOW)
    assert capped.total == 3
    assert len(capped.items) == 2


@pytest.mark.asyncio
async def test_delete_all_requires_phrase_and_batches(memory_store):
    for index in range(501):
        await memory_store.set(MESSAGES, f"m{index}", {"senderId": "a", "receiverId": "b", "content": "x"})

    with pytest.raises(ConfirmationMismatch):
        await message_admin.delete_all_messages(ADMIN_USER, ConfirmRequest(confirmation="DELETE", confirm=True))
    result = await message_admin.delete_all_messages(ADMIN_USER, ConfirmRequest(confirmation="DELETE ALL", confirm=True))

    assert result.deleted == 501
    assert result.batches == 2
    assert await memory_store.list(MESSAGES) == []
