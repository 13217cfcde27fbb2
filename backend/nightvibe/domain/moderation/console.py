"""Admin dashboard: headline stats, data export and console settings."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from nightvibe.domain.chat.models import EPOCH
from nightvibe.domain.chat.normalize import normalize_document
from nightvibe.domain.identity import models
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import ADMIN, MESSAGES, REPORTS, SERVER_TIMESTAMP, SETTINGS_DOC, USERS, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger

from . import schemas

log = get_logger("nightvibe.moderation.console")

EXPORT_MESSAGE_LIMIT = 1000

DEFAULT_SETTINGS: Dict[str, Any] = {
	"maintenanceMode": False,
	"maintenanceMessage": "",
	"allowRegistrations": True,
	"requireEmailVerification": False,
	"requirePhoneVerification": False,
	"profanityFilter": True,
	"imageModeration": False,
	"sessionTimeout": 60,
	"maxLoginAttempts": 5,
	"passwordResetTimeout": 24,
	"emailNotifications": True,
	"reportNotifications": True,
	"newUserNotifications": False,
}


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _same_day(value: Any, now: datetime) -> bool:
	stamp = models.parse_timestamp(value)
	return stamp is not None and stamp.date() == now.date()


def _iso(value: Any) -> Optional[str]:
	stamp = models.parse_timestamp(value)
	return stamp.isoformat() if stamp else None


async def stats(*, now: Optional[datetime] = None) -> schemas.StatsOut:
	now = now or _now()
	users, messages, reports = await asyncio.gather(store.list(USERS), store.list(MESSAGES), store.list(REPORTS))
	normalized = [normalize_document(document) for document in messages]
	return schemas.StatsOut(
		total_users=len(users),
		active_today=sum(1 for user in users if _same_day(user.data.get("lastActive"), now)),
		new_users_today=sum(1 for user in users if _same_day(user.data.get("createdAt"), now)),
		total_messages=len(normalized),
		messages_today=sum(1 for message in normalized if message.timestamp and message.timestamp.date() == now.date()),
		total_reports=len(reports),
		pending_reports=sum(1 for report in reports if (report.data.get("status") or "pending") == "pending"),
	)


async def export_data(admin: AuthenticatedUser, *, now: Optional[datetime] = None) -> Tuple[Dict[str, Any], str]:
	"""Snapshot users, the newest messages and reports as one JSON document."""
	now = now or _now()
	users, messages, reports = await asyncio.gather(store.list(USERS), store.list(MESSAGES), store.list(REPORTS))
	normalized = sorted(
		(normalize_document(document) for document in messages),
		key=lambda message: message.timestamp or EPOCH,
		reverse=True,
	)
	payload = {
		"users": [
			{
				"id": user.id,
				"username": user.data.get("username"),
				"realName": user.data.get("realName"),
				"phone": user.data.get("phone"),
				"stats": user.data.get("stats"),
				"createdAt": _iso(user.data.get("createdAt")),
				"lastActive": _iso(user.data.get("lastActive")),
				"isAdmin": models.is_admin(user.data),
				"isBlocked": models.is_blocked(user.data),
				"status": user.data.get("status"),
			}
			for user in users
		],
		"messages": [
			{
				"id": message.id,
				"senderId": message.sender_id,
				"receiverId": message.receiver_id,
				"content": message.content,
				"isAnonymous": message.is_anonymous,
				"timestamp": message.timestamp.isoformat() if message.timestamp else None,
				"readBy": list(message.read_by),
			}
			for message in normalized[:EXPORT_MESSAGE_LIMIT]
		],
		"reports": [
			{
				"id": report.id,
				"reporterId": report.data.get("reporterId"),
				"reportedUserId": report.data.get("reportedUserId"),
				"reasons": report.data.get("reasons"),
				"details": report.data.get("details"),
				"status": report.data.get("status"),
				"timestamp": _iso(report.data.get("timestamp")),
			}
			for report in reports
		],
		"exportDate": now.isoformat(),
		"exportedBy": admin.id,
	}
	obs_metrics.inc_moderation_action("export")
	log.info("data_exported", extra={"admin_id": admin.id, "users": len(users), "messages": len(payload["messages"])})
	return payload, f"nightvibe-export-{now.date().isoformat()}.json"


def _serialisable(data: Dict[str, Any]) -> Dict[str, Any]:
	return {key: (value.isoformat() if isinstance(value, datetime) else value) for key, value in data.items()}


async def get_settings() -> Dict[str, Any]:
	document = await store.get(ADMIN, SETTINGS_DOC)
	merged = dict(DEFAULT_SETTINGS)
	if document is not None:
		merged.update(document.data)
	return _serialisable(merged)


async def save_settings(admin: AuthenticatedUser, values: Dict[str, Any]) -> Dict[str, Any]:
	"""Merge ``values`` into the settings document; unknown keys are ignored."""
	known = {key: value for key, value in values.items() if key in DEFAULT_SETTINGS}
	await store.set(
		ADMIN,
		SETTINGS_DOC,
		{**known, "lastUpdated": SERVER_TIMESTAMP, "updatedBy": admin.id},
		merge=True,
	)
	obs_metrics.inc_moderation_action("save_settings")
	return await get_settings()
