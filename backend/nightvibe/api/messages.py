"""Messaging endpoints: conversation list, thread view and send."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from nightvibe.api.request_id import get_request_id
from nightvibe.domain.chat import service as chat_service
from nightvibe.domain.chat.schemas import (
	ConversationListResponse,
	MessageOut,
	SendMessageRequest,
	ThreadResponse,
	UnreadResponse,
)
from nightvibe.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations_endpoint(
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ConversationListResponse:
	return await chat_service.list_conversations(auth_user)


@router.get("/conversations/{counterpart_id}", response_model=ThreadResponse)
async def open_thread_endpoint(
	counterpart_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ThreadResponse:
	"""Return the thread with ``counterpart_id`` and mark its incoming messages read."""
	return await chat_service.open_thread(auth_user, counterpart_id)


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
	payload: SendMessageRequest,
	request: Request,
	response: Response,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> MessageOut:
	result = await chat_service.send_message(auth_user, payload)
	response.headers["X-Request-Id"] = get_request_id(request)
	return result


@router.get("/unread", response_model=UnreadResponse)
async def unread_endpoint(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UnreadResponse:
	return UnreadResponse(total_unread=await chat_service.unread_total(auth_user))
