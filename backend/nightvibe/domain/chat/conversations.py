"""Conversation assembly from a flat pool of messages.

Pure functions only: callers fetch and normalize, this module groups, orders and
projects. Conversations are derived state and are rebuilt (or patched with
:func:`apply_change`) rather than persisted.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
	ANONYMOUS_PREFIX,
	ANONYMOUS_USER_LABEL,
	NO_MESSAGES,
	PREVIEW_LENGTH,
	UNKNOWN_USER_LABEL,
	Conversation,
	Counterpart,
	Message,
)

_ANONYMOUS_PREFIX_RE = re.compile(r"^Anonymous:\s*", re.IGNORECASE)

ANONYMOUS_HANDLE_PREFIX = "anon_"


def time_key(message: Message) -> Tuple[bool, datetime]:
	"""Ordering key; messages without a timestamp sort before every timestamped one."""
	return (message.timestamp is not None, message.sort_time)


def dedupe(messages: Iterable[Message]) -> List[Message]:
	seen: Dict[str, Message] = {}
	for message in messages:
		if message.id not in seen:
			seen[message.id] = message
	return list(seen.values())


def _conversation_key(conversation: Conversation) -> Tuple[bool, datetime]:
	if conversation.last_message is None:
		return (False, conversation.last_time)
	return time_key(conversation.last_message)


def assemble(messages: Iterable[Message], user_id: str) -> List[Conversation]:
	"""Group ``messages`` into one conversation per counterpart, newest first.

	Messages not involving ``user_id`` are dropped. Duplicate ids (the same
	document returned by several queries) count once.
	"""
	grouped: Dict[str, Conversation] = {}
	for message in dedupe(messages):
		counterpart = message.counterpart_of(user_id)
		if counterpart is None:
			continue
		conversation = grouped.get(counterpart)
		if conversation is None:
			conversation = grouped[counterpart] = Conversation(counterpart_id=counterpart)
		conversation.messages.append(message)
		if conversation.last_message is None or time_key(message) > time_key(conversation.last_message):
			conversation.last_message = message
		if message.is_unread_for(user_id):
			conversation.unread_count += 1
	return sorted(grouped.values(), key=_conversation_key, reverse=True)


def thread(conversation: Conversation) -> List[Message]:
	"""Messages of a conversation, oldest first."""
	return sorted(conversation.messages, key=time_key)


def total_unread(conversations: Iterable[Conversation]) -> int:
	return sum(conversation.unread_count for conversation in conversations)


def find(conversations: Iterable[Conversation], counterpart_id: str) -> Optional[Conversation]:
	for conversation in conversations:
		if conversation.counterpart_id == counterpart_id:
			return conversation
	return None


def apply_change(
	conversations: List[Conversation],
	message: Message,
	user_id: str,
	*,
	removed: bool = False,
) -> List[Conversation]:
	"""Fold one real-time change into an assembled list and return the new list."""
	pool: List[Message] = []
	for conversation in conversations:
		pool.extend(item for item in conversation.messages if item.id != message.id)
	if not removed:
		pool.append(message)
	return assemble(pool, user_id)


def display_content(message: Message, viewer_id: str) -> str:
	if message.hides_sender_from(viewer_id):
		return _ANONYMOUS_PREFIX_RE.sub("", message.content, count=1)
	return message.content


def preview(message: Optional[Message], viewer_id: str) -> str:
	if message is None:
		return NO_MESSAGES
	text = message.content
	if len(text) > PREVIEW_LENGTH:
		text = text[:PREVIEW_LENGTH] + "..."
	if message.hides_sender_from(viewer_id):
		text = ANONYMOUS_PREFIX + text
	return text


def conceals_counterpart(conversation: Conversation, viewer_id: str) -> bool:
	"""True when everything the counterpart sent the viewer was sent anonymously."""
	received = [message for message in conversation.messages if message.sender_id != viewer_id]
	return bool(received) and all(message.hides_sender_from(viewer_id) for message in received)


def counterpart_label(conversation: Conversation, counterpart: Optional[Counterpart], viewer_id: str) -> str:
	"""Name shown for the other participant.

	An anonymous sender's identity is suppressed from the receiver even when
	their user record was loaded.
	"""
	if conceals_counterpart(conversation, viewer_id):
		return ANONYMOUS_USER_LABEL
	if counterpart is not None and counterpart.exists and counterpart.username:
		return counterpart.username
	last = conversation.last_message
	if last is not None and last.is_anonymous:
		return ANONYMOUS_USER_LABEL
	return UNKNOWN_USER_LABEL


def conversation_handle(conversation: Conversation, viewer_id: str, secret: str) -> str:
	"""Id the viewer uses to address ``conversation``.

	While the counterpart is concealed this is an opaque keyed digest, stable per
	(viewer, counterpart) pair, so the anonymous sender's user id never leaves
	the server.
	"""
	if not conceals_counterpart(conversation, viewer_id):
		return conversation.counterpart_id
	pair = f"{viewer_id}:{conversation.counterpart_id}".encode("utf-8")
	digest = hmac.new(secret.encode("utf-8"), pair, hashlib.sha256).hexdigest()
	return ANONYMOUS_HANDLE_PREFIX + digest[:32]


def resolve(conversations: Iterable[Conversation], key: str, viewer_id: str, secret: str) -> Optional[Conversation]:
	"""Conversation addressed by ``key``; a concealed counterpart answers only to its handle."""
	for conversation in conversations:
		if conversation_handle(conversation, viewer_id, secret) == key:
			return conversation
	return None
