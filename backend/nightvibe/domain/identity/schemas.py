"""Pydantic schemas for registration, login and own-profile flows."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from . import models
from .policy import ABOUT_MAX_LEN, INTERESTS_MAX_LEN

Landing = Literal["admin", "upload-photos", "dashboard"]


class RegisterRequest(BaseModel):
	username: str
	password: str
	real_name: str = ""
	phone: str = ""
	age: Optional[int] = None
	position: str = ""
	relationship_status: str = ""
	interests: Annotated[str, Field(default="", max_length=INTERESTS_MAX_LEN)]


class RegisterResponse(BaseModel):
	user_id: str
	username: str
	next: Landing = "upload-photos"


class LoginRequest(BaseModel):
	username: str
	password: str


class LoginResponse(BaseModel):
	access_token: str
	token_type: Literal["bearer"] = "bearer"
	expires_in: int
	user_id: str
	is_admin: bool = False
	next: Landing


class ChangePasswordRequest(BaseModel):
	new_password: str
	confirm_password: str


class DeleteAccountRequest(BaseModel):
	confirmation: str
	confirm: bool = False


class DataExport(BaseModel):
	userData: Dict[str, Any]
	downloadDate: datetime


class PhotoOut(BaseModel):
	url: str
	asset_id: Optional[str] = None
	uploaded_at: Optional[datetime] = None
	format: Optional[str] = None
	bytes: Optional[int] = None

	@classmethod
	def from_model(cls, photo: models.Photo) -> "PhotoOut":
		return cls(
			url=photo.url,
			asset_id=photo.asset_id,
			uploaded_at=photo.uploaded_at,
			format=photo.format,
			bytes=photo.bytes,
		)


class Preferences(BaseModel):
	showAge: bool = True
	showStatus: bool = True
	receiveMessages: bool = True
	showOnline: bool = True


class ProfileOut(BaseModel):
	id: str
	username: Optional[str] = None
	real_name: Optional[str] = None
	phone: Optional[str] = None
	age: Optional[int] = None
	position: Optional[str] = None
	position_label: Optional[str] = None
	relationship_status: Optional[str] = None
	interests: Optional[str] = None
	about: Optional[str] = None
	avatar_url: str
	photos: List[PhotoOut] = Field(default_factory=list)
	preferences: Preferences
	profile_views: int = 0
	likes: int = 0
	is_admin: bool = False
	profile_complete: bool = False
	created_at: Optional[datetime] = None
	last_active: Optional[datetime] = None

	@classmethod
	def from_record(cls, user_id: str, data: Dict[str, Any]) -> "ProfileOut":
		position = models.stat(data, "position")
		return cls(
			id=user_id,
			username=models.username_of(data),
			real_name=data.get("realName"),
			phone=data.get("phone"),
			age=models.age_of(data),
			position=position,
			position_label=models.position_label(position),
			relationship_status=models.stat(data, "relationshipStatus"),
			interests=models.stat(data, "iamInto"),
			about=data.get("about"),
			avatar_url=models.avatar_of(data),
			photos=[PhotoOut.from_model(photo) for photo in models.photos_of(data)],
			preferences=Preferences(**{name: models.preference(data, name) for name in models.PREFERENCE_NAMES}),
			profile_views=models.view_count(data),
			likes=int(data.get("likes") or 0),
			is_admin=models.is_admin(data),
			profile_complete=data.get("profileComplete") is True,
			created_at=models.parse_timestamp(data.get("createdAt")),
			last_active=models.parse_timestamp(data.get("lastActive")),
		)


class ProfileUpdateRequest(BaseModel):
	age: Optional[int] = None
	position: Optional[str] = None
	relationship_status: Optional[str] = None
	interests: Optional[Annotated[str, Field(max_length=INTERESTS_MAX_LEN)]] = None
	about: Optional[Annotated[str, Field(max_length=ABOUT_MAX_LEN)]] = None


class PreferenceUpdateRequest(BaseModel):
	name: Literal["showAge", "showStatus", "receiveMessages", "showOnline"]
	value: bool
