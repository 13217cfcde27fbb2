"""Admin user management: listing, moderation actions and deletion."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from nightvibe.domain.chat.normalize import RECEIVER_FIELDS, SENDER_FIELDS
from nightvibe.domain.exceptions import Conflict, NotFound, ValidationFailed
from nightvibe.domain.identity import deletion, models, policy, sessions
from nightvibe.domain.identity.service import new_user_record
from nightvibe.domain.identity.users import require_user, username_taken
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.identity_toolkit import AuthProviderError, email_for, get_auth_provider, register_message
from nightvibe.infra.store import MESSAGES, SERVER_TIMESTAMP, USERS, Document, array_union, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger

from . import schemas
from .pagination import USERS_PER_PAGE, paginate

log = get_logger("nightvibe.moderation.users")

BAN_DURATIONS = {"1d": timedelta(days=1), "3d": timedelta(days=3), "7d": timedelta(days=7), "30d": timedelta(days=30)}
INACTIVE_AFTER = timedelta(days=30)


class SelfModeration(ValidationFailed):
	reason = "self_moderation"
	default_message = "You cannot perform this action on your own account."


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _created_key(record: Document) -> datetime:
	return models.parse_timestamp(record.data.get("createdAt")) or datetime.min.replace(tzinfo=timezone.utc)


def matches_search(record: Document, term: str) -> bool:
	if not term:
		return True
	term = term.lower()
	data = record.data
	for value in (data.get("username"), data.get("realName")):
		if value and term in str(value).lower():
			return True
	if data.get("phone") and term in str(data["phone"]):
		return True
	return term in record.id.lower()


def matches_filter(data: Mapping[str, Any], name: str, *, now: datetime) -> bool:
	if name == "admin":
		return models.is_admin(data)
	if name == "active":
		last_active = models.parse_timestamp(data.get("lastActive"))
		return last_active is not None and last_active.date() == now.date()
	if name == "inactive":
		last_active = models.parse_timestamp(data.get("lastActive"))
		return last_active is None or last_active < now - INACTIVE_AFTER
	if name == "reported":
		return int(data.get("reportedCount") or 0) > 0
	if name == "blocked":
		return models.is_blocked(data)
	return True


async def list_users(
	*,
	search: str = "",
	filter_name: str = "all",
	page: int = 1,
	per_page: int = USERS_PER_PAGE,
	now: Optional[datetime] = None,
) -> schemas.AdminUserListResponse:
	now = now or _now()
	records = sorted(await store.list(USERS), key=_created_key, reverse=True)
	matched = [
		record
		for record in records
		if matches_search(record, search.strip()) and matches_filter(record.data, filter_name, now=now)
	]
	page_items, info = paginate(matched, page, per_page)
	return schemas.AdminUserListResponse(
		items=[schemas.AdminUserOut.from_record(record.id, record.data) for record in page_items],
		page=schemas.PageOut.from_info(info),
	)


async def message_count(user_id: str) -> int:
	results = await asyncio.gather(
		*(store.where(MESSAGES, field, user_id) for field in (*SENDER_FIELDS, *RECEIVER_FIELDS))
	)
	return len({document.id for batch in results for document in batch})


async def user_detail(user_id: str) -> schemas.AdminUserDetail:
	record = await require_user(user_id, "User not found")
	base = schemas.AdminUserOut.from_record(record.id, record.data)
	stats = record.data.get("stats")
	warnings = record.data.get("warnings")
	return schemas.AdminUserDetail(
		**base.model_dump(),
		photos=[photo.url for photo in models.photos_of(record.data)],
		stats=dict(stats) if isinstance(stats, dict) else {},
		interests=models.stat(record.data, "iamInto"),
		message_count=await message_count(user_id),
		warnings=[dict(item) for item in warnings if isinstance(item, dict)] if isinstance(warnings, list) else [],
	)


def _guard_not_self(admin: AuthenticatedUser, user_id: str) -> None:
	if admin.id == user_id:
		raise SelfModeration()


async def _apply(admin: AuthenticatedUser, user_id: str, action: str, changes: Dict[str, Any]) -> schemas.AdminUserOut:
	await require_user(user_id, "User not found")
	await store.update(USERS, user_id, changes)
	obs_metrics.inc_moderation_action(action)
	log.info("moderation_action", extra={"action": action, "target_user_id": user_id, "admin_id": admin.id})
	record = await require_user(user_id, "User not found")
	return schemas.AdminUserOut.from_record(record.id, record.data)


async def edit_username(admin: AuthenticatedUser, user_id: str, username: str) -> schemas.AdminUserOut:
	username = policy.normalise_username(username)
	policy.guard_required(username)
	policy.guard_username(username)
	if await username_taken(username, exclude_id=user_id):
		raise Conflict("Username already exists. Please choose another.", reason="username_taken")
	return await _apply(admin, user_id, "edit_username", {"username": username})


async def block_user(admin: AuthenticatedUser, user_id: str) -> schemas.AdminUserOut:
	_guard_not_self(admin, user_id)
	result = await _apply(
		admin,
		user_id,
		"block",
		{"isBlocked": True, "blockedAt": SERVER_TIMESTAMP, "blockedBy": admin.id, "status": "offline"},
	)
	await sessions.delete_user_sessions(user_id)
	return result


async def unblock_user(admin: AuthenticatedUser, user_id: str) -> schemas.AdminUserOut:
	return await _apply(
		admin,
		user_id,
		"unblock",
		{"isBlocked": False, "unblockedAt": SERVER_TIMESTAMP, "unblockedBy": admin.id},
	)


async def make_admin(admin: AuthenticatedUser, user_id: str) -> schemas.AdminUserOut:
	return await _apply(
		admin,
		user_id,
		"promote",
		{"isAdmin": True, "adminSince": SERVER_TIMESTAMP, "adminGrantedBy": admin.id},
	)


async def ban_user(admin: AuthenticatedUser, user_id: str, payload: schemas.BanRequest) -> schemas.AdminUserOut:
	_guard_not_self(admin, user_id)
	until = _now() + BAN_DURATIONS[payload.duration]
	result = await _apply(
		admin,
		user_id,
		"ban",
		{
			"banUntil": until,
			"bannedAt": SERVER_TIMESTAMP,
			"bannedBy": admin.id,
			"banReason": payload.reason.strip(),
			"status": "offline",
		},
	)
	await sessions.delete_user_sessions(user_id)
	return result


async def lift_ban(admin: AuthenticatedUser, user_id: str) -> schemas.AdminUserOut:
	return await _apply(
		admin,
		user_id,
		"lift_ban",
		{"banUntil": None, "banLiftedAt": SERVER_TIMESTAMP, "banLiftedBy": admin.id},
	)


async def warn_user(admin: AuthenticatedUser, user_id: str, payload: schemas.WarnRequest) -> schemas.AdminUserOut:
	warning = {"reason": payload.reason.strip(), "issuedBy": admin.id, "issuedAt": _now().isoformat()}
	return await _apply(admin, user_id, "warn", {"warnings": array_union(warning)})


async def create_user(admin: AuthenticatedUser, payload: schemas.CreateUserRequest) -> schemas.AdminUserOut:
	username = policy.normalise_username(payload.username)
	policy.guard_required(username, payload.password, payload.real_name, payload.phone)
	policy.guard_username(username)
	policy.guard_password(payload.password)
	if await username_taken(username):
		raise Conflict("Username already exists. Please choose another.", reason="username_taken")
	email = (payload.email or "").strip() or email_for(username)
	try:
		created = await get_auth_provider().sign_up(email, payload.password)
	except AuthProviderError as exc:
		raise ValidationFailed(register_message(exc.code), reason=exc.code.lower()) from None
	record = new_user_record(
		username=username,
		real_name=payload.real_name.strip(),
		phone=payload.phone.strip(),
		age=None,
		position="",
		relationship_status="",
		is_admin=payload.user_type == "admin",
		user_type=payload.user_type,
	)
	record.update({"email": email, "isModerator": payload.user_type == "moderator", "status": "offline"})
	await store.set(USERS, created.uid, record)
	obs_metrics.inc_moderation_action("create_user")
	log.info("user_created_by_admin", extra={"target_user_id": created.uid, "admin_id": admin.id})
	stored = await require_user(created.uid)
	return schemas.AdminUserOut.from_record(stored.id, stored.data)


async def delete_user(admin: AuthenticatedUser, user_id: str, payload: schemas.ConfirmRequest) -> deletion.CascadeResult:
	policy.guard_confirmation(payload.confirmation, payload.confirm)
	_guard_not_self(admin, user_id)
	result = await deletion.delete_user_cascade(user_id)
	if not result.user_existed and result.messages_deleted == 0:
		raise NotFound("User not found", reason="user_not_found")
	await sessions.delete_user_sessions(user_id)
	obs_metrics.inc_moderation_action("delete_user")
	return result


async def clear_expired_bans(*, now: Optional[datetime] = None) -> List[str]:
	"""Reset ``banUntil`` on every user whose ban has run out."""
	now = now or _now()
	cleared: List[str] = []
	for record in await store.list(USERS):
		until = models.parse_timestamp(record.data.get("banUntil"))
		if until is not None and until <= now:
			await store.update(USERS, record.id, {"banUntil": None, "banExpiredAt": SERVER_TIMESTAMP})
			cleared.append(record.id)
	return cleared
