"""Schemas for profile cards and the full profile view."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Mapping, Optional

from pydantic import BaseModel, Field

from nightvibe.domain.identity import models

INTERESTS_PREVIEW_LENGTH = 50
NO_INTERESTS = "No interests listed"


def _shorten(text: str, length: int) -> str:
	return text[:length] + ("..." if len(text) > length else "")


class ProfileCard(BaseModel):
	id: str
	username: str
	avatar_url: str
	photo_count: int = 0
	age: Optional[int] = None
	position: Optional[str] = None
	status: Optional[str] = None
	interests: str = NO_INTERESTS

	@classmethod
	def from_record(cls, user_id: str, data: Mapping[str, Any]) -> "ProfileCard":
		interests = str(models.stat(data, "iamInto") or NO_INTERESTS)
		return cls(
			id=user_id,
			username=models.username_of(data) or "Unknown User",
			avatar_url=models.avatar_of(data),
			photo_count=len(models.photos_of(data)),
			age=models.age_of(data) if models.preference(data, "showAge") else None,
			position=models.position_label(models.stat(data, "position")),
			status=models.status_segment(models.stat(data, "relationshipStatus"))
			if models.preference(data, "showStatus")
			else None,
			interests=_shorten(interests, INTERESTS_PREVIEW_LENGTH),
		)


class ProfileListResponse(BaseModel):
	items: List[ProfileCard]
	total: int


class ProfileDetail(BaseModel):
	id: str
	username: str
	photos: List[str] = Field(default_factory=list)
	age: Optional[int] = None
	position: Optional[str] = None
	status: Optional[str] = None
	interests: str = "Not specified"
	member_since: Optional[datetime] = None
	last_active: Optional[datetime] = None
	online: Optional[bool] = None
	accepts_messages: bool = True

	@classmethod
	def from_record(cls, user_id: str, data: Mapping[str, Any]) -> "ProfileDetail":
		online = None
		if models.preference(data, "showOnline"):
			online = data.get("status") == "online"
		return cls(
			id=user_id,
			username=models.username_of(data) or "Unknown User",
			photos=[photo.url for photo in models.photos_of(data)],
			age=models.age_of(data) if models.preference(data, "showAge") else None,
			position=models.position_label(models.stat(data, "position")),
			status=models.status_segment(models.stat(data, "relationshipStatus"))
			if models.preference(data, "showStatus")
			else None,
			interests=str(models.stat(data, "iamInto") or "Not specified"),
			member_since=models.parse_timestamp(data.get("createdAt")),
			last_active=models.parse_timestamp(data.get("lastActive")),
			online=online,
			accepts_messages=models.preference(data, "receiveMessages"),
		)


class ViewTargetRequest(BaseModel):
	profile_id: str = Field(..., min_length=1)
