"""Pydantic schemas for the admin console and user reports."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from nightvibe.domain.chat.models import Message
from nightvibe.domain.identity import models

from .pagination import PageInfo

UserFilter = Literal["all", "admin", "active", "inactive", "reported", "blocked"]
MessageFilter = Literal["all", "today", "week", "month", "anonymous", "reported"]
BanDuration = Literal["1d", "3d", "7d", "30d"]
UserType = Literal["user", "moderator", "admin"]
ReportStatus = Literal["pending", "resolved", "dismissed"]


class AdminUserOut(BaseModel):
	id: str
	username: Optional[str] = None
	real_name: Optional[str] = None
	phone: Optional[str] = None
	age: Optional[int] = None
	avatar_url: str
	photo_count: int = 0
	is_admin: bool = False
	is_blocked: bool = False
	ban_until: Optional[datetime] = None
	reported_count: int = 0
	warning_count: int = 0
	status: Optional[str] = None
	profile_complete: bool = False
	created_at: Optional[datetime] = None
	last_active: Optional[datetime] = None

	@classmethod
	def from_record(cls, user_id: str, data: Mapping[str, Any]) -> "AdminUserOut":
		warnings = data.get("warnings")
		return cls(
			id=user_id,
			username=models.username_of(data),
			real_name=data.get("realName"),
			phone=data.get("phone"),
			age=models.age_of(data),
			avatar_url=models.avatar_of(data),
			photo_count=len(models.photos_of(data)),
			is_admin=models.is_admin(data),
			is_blocked=models.is_blocked(data),
			ban_until=models.ban_until(data),
			reported_count=int(data.get("reportedCount") or 0),
			warning_count=len(warnings) if isinstance(warnings, list) else 0,
			status=data.get("status"),
			profile_complete=data.get("profileComplete") is True,
			created_at=models.parse_timestamp(data.get("createdAt")),
			last_active=models.parse_timestamp(data.get("lastActive")),
		)


class PageOut(BaseModel):
	page: int
	per_page: int
	total: int
	total_pages: int
	window: List[int]
	has_prev: bool
	has_next: bool

	@classmethod
	def from_info(cls, info: PageInfo) -> "PageOut":
		return cls(
			page=info.page,
			per_page=info.per_page,
			total=info.total,
			total_pages=info.total_pages,
			window=info.window,
			has_prev=info.has_prev,
			has_next=info.has_next,
		)


class AdminUserListResponse(BaseModel):
	items: List[AdminUserOut]
	page: PageOut


class AdminUserDetail(AdminUserOut):
	photos: List[str] = Field(default_factory=list)
	stats: Dict[str, Any] = Field(default_factory=dict)
	interests: Optional[str] = None
	message_count: int = 0
	warnings: List[Dict[str, Any]] = Field(default_factory=list)


class EditUsernameRequest(BaseModel):
	username: str


class BanRequest(BaseModel):
	duration: BanDuration
	reason: str = ""


class WarnRequest(BaseModel):
	reason: str = Field(..., min_length=1, max_length=500)


class CreateUserRequest(BaseModel):
	username: str
	password: str
	real_name: str
	phone: str
	email: Optional[str] = None
	user_type: UserType = "user"


class ConfirmRequest(BaseModel):
	confirmation: str
	confirm: bool = False


class AdminMessageOut(BaseModel):
	id: str
	sender_id: str
	receiver_id: str
	sender_name: Optional[str] = None
	content: str
	is_anonymous: bool = False
	timestamp: Optional[datetime] = None
	read: bool = False
	reported: bool = False

	@classmethod
	def from_model(cls, message: Message, *, reported: bool = False) -> "AdminMessageOut":
		return cls(
			id=message.id,
			sender_id=message.sender_id,
			receiver_id=message.receiver_id,
			sender_name=message.sender_name,
			content=message.content,
			is_anonymous=message.is_anonymous,
			timestamp=message.timestamp,
			read=message.read or message.delivered_read,
			reported=reported,
		)


class AdminMessageListResponse(BaseModel):
	items: List[AdminMessageOut]
	total: int


class AdminMessageDetail(AdminMessageOut):
	sender_username: Optional[str] = None
	receiver_username: Optional[str] = None
	read_by: List[str] = Field(default_factory=list)


class BulkDeleteResponse(BaseModel):
	deleted: int
	batches: int


class ReportCreate(BaseModel):
	reported_user_id: str = Field(..., min_length=1)
	reasons: List[str] = Field(..., min_length=1)
	details: str = Field(default="", max_length=1000)
	message_id: Optional[str] = None


class ReportDecision(BaseModel):
	resolution: str = ""


class ReportOut(BaseModel):
	id: str
	reporter_id: Optional[str] = None
	reported_user_id: Optional[str] = None
	message_id: Optional[str] = None
	reasons: List[str] = Field(default_factory=list)
	details: str = ""
	status: str = "pending"
	resolution: Optional[str] = None
	timestamp: Optional[datetime] = None
	resolved_at: Optional[datetime] = None
	resolved_by: Optional[str] = None
	dismissed_at: Optional[datetime] = None
	dismissed_by: Optional[str] = None

	@classmethod
	def from_record(cls, report_id: str, data: Mapping[str, Any]) -> "ReportOut":
		reasons = data.get("reasons")
		return cls(
			id=report_id,
			reporter_id=data.get("reporterId"),
			reported_user_id=data.get("reportedUserId"),
			message_id=data.get("messageId"),
			reasons=[str(reason) for reason in reasons] if isinstance(reasons, list) else [],
			details=str(data.get("details") or ""),
			status=str(data.get("status") or "pending"),
			resolution=data.get("resolution"),
			timestamp=models.parse_timestamp(data.get("timestamp")),
			resolved_at=models.parse_timestamp(data.get("resolvedAt")),
			resolved_by=data.get("resolvedBy"),
			dismissed_at=models.parse_timestamp(data.get("dismissedAt")),
			dismissed_by=data.get("dismissedBy"),
		)


class StatsOut(BaseModel):
	total_users: int
	active_today: int
	new_users_today: int
	total_messages: int
	messages_today: int
	total_reports: int
	pending_reports: int


class SettingsUpdate(BaseModel):
	values: Dict[str, Any]
