"""Messaging service: load, assemble, read-mark and send."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

from nightvibe.domain.exceptions import NotFound, PermissionDenied, ServiceUnavailable, ValidationFailed
from nightvibe.domain.identity import models as user_models
from nightvibe.domain.identity.users import get_user, require_user
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import (
	MESSAGES,
	Document,
	DocumentNotFound,
	Filter,
	StoreUnavailable,
	WriteOp,
	array_union,
	commit_in_batches,
	store,
)
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

from . import conversations as assembly
from .models import MAX_MESSAGE_LENGTH, Conversation, Counterpart, Message
from .normalize import RECEIVER_FIELDS, SENDER_FIELDS, encode_message, normalize_document, normalize_documents
from .schemas import ConversationListResponse, ConversationOut, MessageOut, SendMessageRequest, ThreadResponse

log = get_logger("nightvibe.chat")

FALLBACK_SENDER_NAME = "User"


class ConversationLoadError(ServiceUnavailable):
	reason = "messages_unavailable"
	default_message = "Failed to load messages"


class MessageRejected(ValidationFailed):
	reason = "message_invalid"


class RecipientUnavailable(PermissionDenied):
	reason = "recipient_unavailable"
	default_message = "This user is not accepting messages."


class SenderRestricted(PermissionDenied):
	reason = "sender_restricted"
	default_message = "Your account cannot send messages right now."


def participant_filters(user_id: str) -> List[Filter]:
	"""One equality filter per sender/receiver spelling, canonical and legacy."""
	return [Filter(field, "==", user_id) for field in (*RECEIVER_FIELDS, *SENDER_FIELDS)]


def _read_ops(user_id: str, messages: Sequence[Message]) -> List[WriteOp]:
	return [
		WriteOp.update(MESSAGES, message.id, {"readBy": array_union(user_id), "read": True})
		for message in messages
	]


class MessagingService:
	async def load_messages(self, user_id: str) -> List[Message]:
		"""Fetch every message touching ``user_id``; any failing query fails the load."""
		try:
			results = await asyncio.gather(
				*(store.query(MESSAGES, [flt]) for flt in participant_filters(user_id))
			)
		except StoreUnavailable as exc:
			obs_metrics.inc_conversation_load("error")
			log.error("conversation_load_failed", extra={"operation": exc.operation})
			raise ConversationLoadError() from exc
		pool = [document for batch in results for document in batch]
		return assembly.dedupe(normalize_documents(pool))

	async def conversations(self, user_id: str) -> List[Conversation]:
		messages = await self.load_messages(user_id)
		result = assembly.assemble(messages, user_id)
		obs_metrics.inc_conversation_load("ok")
		return result

	async def _counterparts(self, ids: Sequence[str]) -> Dict[str, Counterpart]:
		records = await asyncio.gather(*(get_user(counterpart_id) for counterpart_id in ids))
		resolved: Dict[str, Counterpart] = {}
		for counterpart_id, record in zip(ids, records):
			if record is None:
				resolved[counterpart_id] = Counterpart(id=counterpart_id)
				continue
			resolved[counterpart_id] = Counterpart(
				id=counterpart_id,
				username=user_models.username_of(record.data),
				avatar_url=user_models.avatar_of(record.data),
				exists=True,
			)
		return resolved

	async def list_conversations(self, auth_user: AuthenticatedUser) -> ConversationListResponse:
		items = await self.conversations(auth_user.id)
		counterparts = await self._counterparts([item.counterpart_id for item in items])
		return ConversationListResponse(
			items=[ConversationOut.from_model(item, counterparts.get(item.counterpart_id), auth_user.id) for item in items],
			total_unread=assembly.total_unread(items),
		)

	async def _drop_missing(self, conversation: Conversation, messages: Sequence[Message]) -> List[Message]:
		"""Remove messages no longer stored from ``conversation``; returns the survivors of ``messages``."""
		documents = await asyncio.gather(*(store.get(MESSAGES, message.id) for message in messages))
		missing = {message.id for message, document in zip(messages, documents) if document is None}
		conversation.messages = [message for message in conversation.messages if message.id not in missing]
		if conversation.last_message is not None and conversation.last_message.id in missing:
			conversation.last_message = max(conversation.messages, key=assembly.time_key, default=None)
		return [message for message in messages if message.id not in missing]

	async def mark_read(self, user_id: str, conversation: Conversation) -> int:
		"""Mark every unread message of ``conversation`` addressed to ``user_id`` as read.

		Writes go out in batches of at most 500 operations. The conversation is
		updated in place, so repeating the call issues no further writes.
		"""
		unread = conversation.unread_for(user_id)
		if not unread:
			return 0
		try:
			batches = await commit_in_batches(_read_ops(user_id, unread))
		except DocumentNotFound as exc:
			# A message was deleted after the conversation was loaded; retry with the survivors.
			log.info("mark_read_target_missing", extra={"doc_id": exc.doc_id})
			unread = await self._drop_missing(conversation, unread)
			batches = await commit_in_batches(_read_ops(user_id, unread)) if unread else 0
		for message in unread:
			if user_id not in message.read_by:
				message.read_by = (*message.read_by, user_id)
			message.read = True
		conversation.unread_count = 0
		obs_metrics.inc_marked_read(len(unread))
		log.info("messages_marked_read", extra={"count": len(unread), "batches": batches})
		return len(unread)

	async def open_thread(self, auth_user: AuthenticatedUser, counterpart_key: str) -> ThreadResponse:
		"""``counterpart_key`` is a user id or, for a concealed sender, the conversation handle."""
		items = await self.conversations(auth_user.id)
		conversation = assembly.resolve(items, counterpart_key, auth_user.id, settings.secret_key)
		if conversation is None:
			if counterpart_key.startswith(assembly.ANONYMOUS_HANDLE_PREFIX):
				raise NotFound("Conversation not found", reason="conversation_not_found")
			conversation = Conversation(counterpart_id=counterpart_key)
		marked = await self.mark_read(auth_user.id, conversation)
		counterpart_id = conversation.counterpart_id
		handle = assembly.conversation_handle(conversation, auth_user.id, settings.secret_key)
		counterparts = await self._counterparts([counterpart_id])
		return ThreadResponse(
			conversation=ConversationOut.from_model(conversation, counterparts.get(counterpart_id), auth_user.id),
			messages=[
				MessageOut.from_model(message, auth_user.id, counterpart_handle=handle)
				for message in assembly.thread(conversation)
			],
			marked_read=marked,
		)

	async def counterpart_handle(self, user_id: str, counterpart_id: str) -> str:
		conversation = assembly.find(await self.conversations(user_id), counterpart_id)
		if conversation is None:
			return counterpart_id
		return assembly.conversation_handle(conversation, user_id, settings.secret_key)

	async def _recipient(self, user_id: str, key: str) -> Tuple[str, Optional[str]]:
		"""Real recipient id for ``key``, plus the handle to echo back when ``key`` was one."""
		if not key.startswith(assembly.ANONYMOUS_HANDLE_PREFIX):
			return key, None
		conversation = assembly.resolve(await self.conversations(user_id), key, user_id, settings.secret_key)
		if conversation is None:
			raise NotFound("Recipient not found", reason="recipient_not_found")
		return conversation.counterpart_id, key

	async def unread_total(self, auth_user: AuthenticatedUser) -> int:
		return assembly.total_unread(await self.conversations(auth_user.id))

	async def send_message(self, auth_user: AuthenticatedUser, payload: SendMessageRequest) -> MessageOut:
		content = (payload.content or "").strip()
		if not content:
			raise MessageRejected("Please enter a message", reason="message_empty")
		if len(content) > MAX_MESSAGE_LENGTH:
			raise MessageRejected(
				f"Messages are limited to {MAX_MESSAGE_LENGTH} characters", reason="message_too_long"
			)
		receiver_id, handle = await self._recipient(auth_user.id, payload.receiver_id)
		if receiver_id == auth_user.id:
			raise MessageRejected("You cannot message yourself", reason="self_message")
		sender = await require_user(auth_user.id, "Your profile could not be loaded")
		if user_models.is_blocked(sender.data) or user_models.ban_until(sender.data):
			raise SenderRestricted()
		receiver = await get_user(receiver_id)
		if receiver is None:
			raise NotFound("Recipient not found", reason="recipient_not_found")
		if not user_models.preference(receiver.data, "receiveMessages") or user_models.is_blocked(receiver.data):
			raise RecipientUnavailable()
		sender_name = user_models.username_of(sender.data) or FALLBACK_SENDER_NAME
		data = encode_message(
			auth_user.id,
			receiver_id,
			content,
			anonymous=payload.anonymous,
			sender_name=sender_name,
		)
		message_id = await store.create(MESSAGES, data)
		stored = await store.get(MESSAGES, message_id) or Document(id=message_id, data=data)
		message = normalize_document(stored)
		obs_metrics.inc_message_sent(payload.anonymous)
		log.info("message_sent", extra={"message_id": message_id, "anonymous": payload.anonymous})
		return MessageOut.from_model(message, auth_user.id, counterpart_handle=handle)


_SERVICE = MessagingService()


async def list_conversations(auth_user: AuthenticatedUser) -> ConversationListResponse:
	return await _SERVICE.list_conversations(auth_user)


async def open_thread(auth_user: AuthenticatedUser, counterpart_key: str) -> ThreadResponse:
	return await _SERVICE.open_thread(auth_user, counterpart_key)


async def send_message(auth_user: AuthenticatedUser, payload: SendMessageRequest) -> MessageOut:
	return await _SERVICE.send_message(auth_user, payload)


async def unread_total(auth_user: AuthenticatedUser) -> int:
	return await _SERVICE.unread_total(auth_user)


async def mark_read(user_id: str, conversation: Conversation) -> int:
	return await _SERVICE.mark_read(user_id, conversation)


async def counterpart_handle(user_id: str, counterpart_id: str) -> str:
	return await _SERVICE.counterpart_handle(user_id, counterpart_id)
