"""Translate raw message documents into canonical :class:`Message` records.

Message documents in the store were written by several client generations.
Older writers used misspelled keys (``senderrId``, ``receiverrId``,
``senderrName``) and kept the body under ``message`` instead of ``content``.
Both spellings are live inputs and converge here; nothing past this module
reads a raw message document.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from nightvibe.infra.store import Document, SERVER_TIMESTAMP

from .models import ANONYMOUS_SENDER_NAME, NO_CONTENT, Message

SENDER_FIELDS = ("senderId", "senderrId")
RECEIVER_FIELDS = ("receiverId", "receiverrId")
SENDER_NAME_FIELDS = ("senderName", "senderrName")
CONTENT_FIELDS = ("content", "message")


def _first(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
	for key in keys:
		value = data.get(key)
		if value:
			return value
	return None


def parse_timestamp(value: Any) -> Optional[datetime]:
	"""Coerce stored timestamps to aware UTC datetimes.

	Accepts datetimes (naive values are taken as UTC), ISO-8601 strings, epoch
	milliseconds and ``{"seconds": ...}`` maps. Anything else yields ``None``.
	"""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, datetime):
		return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
	if isinstance(value, (int, float)):
		try:
			return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
		except (OverflowError, OSError, ValueError):
			return None
	if isinstance(value, str):
		text = value.strip()
		if not text:
			return None
		if text.endswith("Z"):
			text = text[:-1] + "+00:00"
		try:
			return parse_timestamp(datetime.fromisoformat(text))
		except ValueError:
			return None
	if isinstance(value, Mapping):
		seconds = value.get("seconds", value.get("_seconds"))
		if isinstance(seconds, (int, float)):
			nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
			return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
	return None


def normalize_message(doc_id: str, data: Mapping[str, Any]) -> Message:
	read_by = data.get("readBy") or ()
	participants = data.get("participants") or ()
	sender_name = _first(data, SENDER_NAME_FIELDS)
	return Message(
		id=str(doc_id),
		sender_id=str(_first(data, SENDER_FIELDS) or ""),
		receiver_id=str(_first(data, RECEIVER_FIELDS) or ""),
		content=str(_first(data, CONTENT_FIELDS) or NO_CONTENT),
		is_anonymous=data.get("isAnonymous") is True,
		sender_name=str(sender_name) if sender_name else None,
		timestamp=parse_timestamp(data.get("timestamp")),
		read_by=tuple(str(item) for item in read_by if item) if isinstance(read_by, (list, tuple)) else (),
		read=data.get("read") is True,
		participants=tuple(str(item) for item in participants) if isinstance(participants, (list, tuple)) else (),
	)


def normalize_document(document: Document) -> Message:
	return normalize_message(document.id, document.data)


def normalize_documents(documents: Iterable[Document]) -> List[Message]:
	return [normalize_document(document) for document in documents]


def encode_message(
	sender_id: str,
	receiver_id: str,
	content: str,
	*,
	anonymous: bool,
	sender_name: str,
) -> dict[str, Any]:
	"""Build the stored shape of a new message.

	The body is written under both ``content`` and ``message`` so every client
	generation can read it.
	"""
	return {
		"content": content,
		"message": content,
		"senderId": sender_id,
		"receiverId": receiver_id,
		"participants": [sender_id, receiver_id],
		"isAnonymous": anonymous,
		"senderName": ANONYMOUS_SENDER_NAME if anonymous else sender_name,
		"timestamp": SERVER_TIMESTAMP,
		"readBy": [sender_id],
		"read": False,
	}
