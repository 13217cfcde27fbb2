"""Admin message browser and bulk deletion."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from nightvibe.domain.chat.models import EPOCH, Message
from nightvibe.domain.chat.normalize import normalize_document
from nightvibe.domain.exceptions import NotFound
from nightvibe.domain.identity import models, policy
from nightvibe.domain.identity.users import get_user
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import MESSAGES, WriteOp, commit_in_batches, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger

from . import schemas

log = get_logger("nightvibe.moderation.messages")

MAX_LISTED = 50
DELETE_ALL_PHRASE = "DELETE ALL"


def _now() -> datetime:
	return datetime.now(timezone.utc)


def matches_filter(message: Message, reported: bool, name: str, *, now: datetime) -> bool:
	stamp = message.timestamp
	if name == "today":
		return stamp is not None and stamp.date() == now.date()
	if name == "week":
		return stamp is not None and stamp >= now - timedelta(days=7)
	if name == "month":
		return stamp is not None and stamp >= now - timedelta(days=30)
	if name == "anonymous":
		return message.is_anonymous
	if name == "reported":
		return reported
	return True


async def _all_messages() -> List[Tuple[Message, bool]]:
	documents = await store.list(MESSAGES)
	pairs = [(normalize_document(document), document.data.get("reported") is True) for document in documents]
	pairs.sort(key=lambda pair: pair[0].timestamp or EPOCH, reverse=True)
	return pairs


async def list_messages(
	*,
	search: str = "",
	filter_name: str = "all",
	limit: int = MAX_LISTED,
	now: Optional[datetime] = None,
) -> schemas.AdminMessageListResponse:
	"""Newest first; ``total`` counts every match, ``items`` holds at most ``limit``."""
	now = now or _now()
	term = search.strip().lower()
	matched = [
		(message, reported)
		for message, reported in await _all_messages()
		if (not term or term in message.content.lower()) and matches_filter(message, reported, filter_name, now=now)
	]
	return schemas.AdminMessageListResponse(
		items=[schemas.AdminMessageOut.from_model(message, reported=reported) for message, reported in matched[:limit]],
		total=len(matched),
	)


async def message_detail(message_id: str) -> schemas.AdminMessageDetail:
	document = await store.get(MESSAGES, message_id)
	if document is None:
		raise NotFound("Message not found", reason="message_not_found")
	message = normalize_document(document)
	sender, receiver = await asyncio.gather(get_user(message.sender_id), get_user(message.receiver_id))
	base = schemas.AdminMessageOut.from_model(message, reported=document.data.get("reported") is True)
	return schemas.AdminMessageDetail(
		**base.model_dump(),
		sender_username=models.username_of(sender.data) if sender else None,
		receiver_username=models.username_of(receiver.data) if receiver else None,
		read_by=list(message.read_by),
	)


async def delete_message(admin: AuthenticatedUser, message_id: str) -> None:
	document = await store.get(MESSAGES, message_id)
	if document is None:
		raise NotFound("Message not found", reason="message_not_found")
	await store.delete(MESSAGES, message_id)
	obs_metrics.inc_moderation_action("delete_message")
	log.info("message_deleted", extra={"message_id": message_id, "admin_id": admin.id})


async def delete_all_messages(admin: AuthenticatedUser, payload: schemas.ConfirmRequest) -> schemas.BulkDeleteResponse:
	policy.guard_confirmation(payload.confirmation, payload.confirm, DELETE_ALL_PHRASE)
	documents = await store.list(MESSAGES)
	ops = [WriteOp.delete(MESSAGES, document.id) for document in documents]
	batches = await commit_in_batches(ops)
	obs_metrics.inc_moderation_action("delete_all_messages")
	log.warning("all_messages_deleted", extra={"count": len(ops), "batches": batches, "admin_id": admin.id})
	return schemas.BulkDeleteResponse(deleted=len(ops), batches=batches)
