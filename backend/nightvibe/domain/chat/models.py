"""Domain models for direct messaging."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ANONYMOUS_SENDER_NAME = "Anonymous"
ANONYMOUS_PREFIX = "Anonymous: "
ANONYMOUS_USER_LABEL = "Anonymous User"
UNKNOWN_USER_LABEL = "Unknown User"
NO_CONTENT = "No content"
NO_MESSAGES = "No messages"
PLACEHOLDER_AVATAR = "after-dark-banner.jpg"

MAX_MESSAGE_LENGTH = 1000
PREVIEW_LENGTH = 30


@dataclass(slots=True)
class Message:
	"""Canonical message; never built from raw documents outside ``normalize``."""

	id: str
	sender_id: str
	receiver_id: str
	content: str
	is_anonymous: bool = False
	sender_name: Optional[str] = None
	timestamp: Optional[datetime] = None
	read_by: Tuple[str, ...] = ()
	read: bool = False
	participants: Tuple[str, ...] = ()

	@property
	def sort_time(self) -> datetime:
		return self.timestamp or EPOCH

	def is_read_by(self, user_id: str) -> bool:
		return user_id in self.read_by or self.read

	def is_unread_for(self, user_id: str) -> bool:
		return self.receiver_id == user_id and not self.is_read_by(user_id)

	def counterpart_of(self, user_id: str) -> Optional[str]:
		"""The other participant, or None when unrelated to ``user_id`` or the other side is missing."""
		if self.sender_id == user_id:
			counterpart = self.receiver_id
		elif self.receiver_id == user_id:
			counterpart = self.sender_id
		else:
			return None
		return counterpart or None

	def hides_sender_from(self, viewer_id: str) -> bool:
		return self.is_anonymous and viewer_id != self.sender_id and self.sender_name == ANONYMOUS_SENDER_NAME

	@property
	def delivered_read(self) -> bool:
		"""True once the receiver appears in ``readBy`` (double tick)."""
		return self.receiver_id in self.read_by


@dataclass(slots=True)
class Conversation:
	counterpart_id: str
	messages: List[Message] = field(default_factory=list)
	last_message: Optional[Message] = None
	unread_count: int = 0

	@property
	def last_time(self) -> datetime:
		return self.last_message.sort_time if self.last_message else EPOCH

	def unread_for(self, user_id: str) -> List[Message]:
		return [message for message in self.messages if message.is_unread_for(user_id)]


@dataclass(slots=True)
class Counterpart:
	"""Display data for the other participant, resolved from their user record."""

	id: str
	username: Optional[str] = None
	avatar_url: str = PLACEHOLDER_AVATAR
	exists: bool = False
