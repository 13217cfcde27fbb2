"""Pydantic schemas for the messaging API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from nightvibe.settings import settings

from . import conversations as assembly
from .models import MAX_MESSAGE_LENGTH, Conversation, Counterpart, Message, PLACEHOLDER_AVATAR


class SendMessageRequest(BaseModel):
	receiver_id: str = Field(..., min_length=1, description="Recipient user id")
	content: str = Field(..., max_length=MAX_MESSAGE_LENGTH * 2)
	anonymous: bool = False


class MessageOut(BaseModel):
	id: str
	sender_id: Optional[str] = None
	receiver_id: str
	content: str
	is_anonymous: bool
	sender_name: Optional[str] = None
	timestamp: Optional[datetime] = None
	direction: str
	status: Optional[str] = None

	@classmethod
	def from_model(cls, message: Message, viewer_id: str, *, counterpart_handle: Optional[str] = None) -> "MessageOut":
		"""``counterpart_handle`` replaces the recipient id on the viewer's own messages to a concealed sender."""
		hidden = message.hides_sender_from(viewer_id)
		sent = message.sender_id == viewer_id
		status = None
		if sent:
			status = "read" if message.delivered_read else "sent"
		return cls(
			id=message.id,
			sender_id=None if hidden else message.sender_id,
			receiver_id=counterpart_handle if sent and counterpart_handle else message.receiver_id,
			content=assembly.display_content(message, viewer_id),
			is_anonymous=message.is_anonymous,
			sender_name=None if hidden else message.sender_name,
			timestamp=message.timestamp,
			direction="sent" if sent else "received",
			status=status,
		)


class ConversationOut(BaseModel):
	counterpart_id: str
	display_name: str
	avatar_url: str = PLACEHOLDER_AVATAR
	anonymous: bool = False
	preview: str
	last_message_at: Optional[datetime] = None
	unread_count: int = 0

	@classmethod
	def from_model(
		cls,
		conversation: Conversation,
		counterpart: Optional[Counterpart],
		viewer_id: str,
	) -> "ConversationOut":
		concealed = assembly.conceals_counterpart(conversation, viewer_id)
		last = conversation.last_message
		return cls(
			counterpart_id=assembly.conversation_handle(conversation, viewer_id, settings.secret_key),
			display_name=assembly.counterpart_label(conversation, counterpart, viewer_id),
			avatar_url=PLACEHOLDER_AVATAR if concealed or counterpart is None else counterpart.avatar_url,
			anonymous=concealed,
			preview=assembly.preview(last, viewer_id),
			last_message_at=last.timestamp if last else None,
			unread_count=conversation.unread_count,
		)


class ConversationListResponse(BaseModel):
	items: List[ConversationOut]
	total_unread: int


class ThreadResponse(BaseModel):
	conversation: ConversationOut
	messages: List[MessageOut]
	marked_read: int = 0


class UnreadResponse(BaseModel):
	total_unread: int
