"""Service layer for registration, login and account self-service."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from nightvibe.domain.exceptions import AuthFailed, Conflict, PermissionDenied, RateLimited, ValidationFailed
from nightvibe.domain.identity import deletion, models, policy, schemas, sessions
from nightvibe.domain.identity.users import get_user, require_user, username_taken
from nightvibe.infra import jwt as jwt_helper
from nightvibe.infra import rate_limit
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.identity_toolkit import (
	AuthProviderError,
	email_for,
	get_auth_provider,
	login_message,
	register_message,
)
from nightvibe.infra.store import SERVER_TIMESTAMP, USERS, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

log = get_logger("nightvibe.identity")

MIN_PROFILE_PHOTOS = 5


class RegistrationFailed(ValidationFailed):
	reason = "registration_failed"


class LoginFailed(AuthFailed):
	reason = "invalid_credentials"


class AccountBlocked(PermissionDenied):
	reason = "account_blocked"
	default_message = "Your account has been blocked. Please contact support."


class AccountBanned(PermissionDenied):
	reason = "account_banned"


class ProviderUnavailable(AuthFailed):
	reason = "session_expired"
	default_message = "Your session has expired. Please log in again."


def _now() -> datetime:
	return datetime.now(timezone.utc)


def landing_for(data: Optional[Dict[str, Any]]) -> schemas.Landing:
	"""Where a freshly logged-in user goes next."""
	if data is None:
		return "upload-photos"
	if models.is_admin(data):
		return "admin"
	if len(models.photos_of(data)) < MIN_PROFILE_PHOTOS:
		return "upload-photos"
	return "dashboard"


def guard_account_usable(data: Dict[str, Any]) -> None:
	if models.is_blocked(data):
		raise AccountBlocked()
	until = models.ban_until(data)
	if until is not None:
		raise AccountBanned(f"Your account is suspended until {until.strftime('%Y-%m-%d %H:%M')} UTC.")


def new_user_record(
	*,
	username: str,
	real_name: str,
	phone: str,
	age: Optional[int],
	position: str,
	relationship_status: str,
	interests: str = "",
	is_admin: bool = False,
	user_type: str = "user",
) -> Dict[str, Any]:
	return {
		"username": username,
		"realName": real_name,
		"phone": phone,
		"stats": {
			"age": age,
			"position": position,
			"iamInto": interests,
			"relationshipStatus": relationship_status,
		},
		"createdAt": SERVER_TIMESTAMP,
		"lastActive": SERVER_TIMESTAMP,
		"isAdmin": is_admin,
		"isBlocked": False,
		"userType": user_type,
		"photos": [],
		"status": "online",
		"preferences": {name: True for name in models.PREFERENCE_NAMES},
		"profileComplete": False,
		"profileViews": 0,
		"likes": 0,
		"reportedCount": 0,
	}


async def register(payload: schemas.RegisterRequest) -> schemas.RegisterResponse:
	username = policy.normalise_username(payload.username)
	real_name = payload.real_name.strip()
	phone = payload.phone.strip()
	policy.guard_required(
		username,
		payload.password,
		real_name,
		phone,
		payload.age or None,
		payload.position,
		payload.relationship_status,
	)
	policy.guard_age(payload.age)
	policy.guard_username(username)
	policy.guard_password(payload.password)
	policy.guard_phone(phone)
	policy.guard_position(payload.position)
	if await username_taken(username):
		obs_metrics.inc_auth_event("register", "conflict")
		raise Conflict("Username already exists. Please choose another.", reason="username_taken")
	try:
		provider_session = await get_auth_provider().sign_up(email_for(username), payload.password)
	except AuthProviderError as exc:
		obs_metrics.inc_auth_event("register", "rejected")
		if exc.code == "EMAIL_EXISTS":
			raise Conflict(register_message(exc.code), reason="username_taken") from None
		raise RegistrationFailed(register_message(exc.code), reason=exc.code.lower()) from None
	record = new_user_record(
		username=username,
		real_name=real_name,
		phone=phone,
		age=payload.age,
		position=payload.position,
		relationship_status=payload.relationship_status,
		interests=payload.interests.strip(),
	)
	await store.set(USERS, provider_session.uid, record)
	obs_metrics.inc_auth_event("register", "ok")
	log.info("user_registered", extra={"user_id": provider_session.uid})
	return schemas.RegisterResponse(user_id=provider_session.uid, username=username)


async def login(payload: schemas.LoginRequest) -> schemas.LoginResponse:
	username = policy.normalise_username(payload.username)
	policy.guard_required(username, payload.password)
	allowed = await rate_limit.allow(
		"login",
		username.lower(),
		limit=settings.login_attempts_per_window,
		window_seconds=settings.login_window_seconds,
	)
	if not allowed:
		obs_metrics.inc_auth_event("login", "rate_limited")
		raise RateLimited("Too many failed attempts. Please try again later.")
	try:
		provider_session = await get_auth_provider().sign_in(email_for(username), payload.password)
	except AuthProviderError as exc:
		obs_metrics.inc_auth_event("login", "rejected")
		raise LoginFailed(login_message(exc.code)) from None
	record = await get_user(provider_session.uid)
	data = record.data if record is not None else None
	if data is not None:
		try:
			guard_account_usable(data)
		except PermissionDenied:
			obs_metrics.inc_auth_event("login", "restricted")
			raise
		await store.update(USERS, provider_session.uid, {"lastActive": SERVER_TIMESTAMP, "status": "online"})
	await rate_limit.clear("login", username.lower(), window_seconds=settings.login_window_seconds)
	session_id = await sessions.create_session(provider_session)
	ttl = settings.access_ttl_minutes * 60
	token = jwt_helper.issue_access_token(provider_session.uid, session_id, ttl_seconds=ttl)
	obs_metrics.inc_auth_event("login", "ok")
	log.info("user_logged_in", extra={"user_id": provider_session.uid})
	return schemas.LoginResponse(
		access_token=token,
		expires_in=ttl,
		user_id=provider_session.uid,
		is_admin=bool(data and models.is_admin(data)),
		next=landing_for(data),
	)


async def logout(auth_user: AuthenticatedUser) -> None:
	if auth_user.session_id:
		await sessions.delete_session(auth_user.session_id)
	record = await get_user(auth_user.id)
	if record is not None:
		await store.update(USERS, auth_user.id, {"status": "offline", "lastActive": SERVER_TIMESTAMP})
	obs_metrics.inc_auth_event("logout", "ok")


async def _provider_id_token(auth_user: AuthenticatedUser) -> str:
	"""Exchange the session's refresh token for a fresh provider id token."""
	session = await sessions.get_session(auth_user.session_id or "")
	if not session or not session.get("refresh_token"):
		raise ProviderUnavailable()
	try:
		refreshed = await get_auth_provider().refresh(session["refresh_token"])
	except AuthProviderError as exc:
		log.info("provider_refresh_failed", extra={"code": exc.code})
		raise ProviderUnavailable() from None
	await sessions.update_tokens(auth_user.session_id or "", refreshed)
	return refreshed.id_token


async def change_password(auth_user: AuthenticatedUser, payload: schemas.ChangePasswordRequest) -> None:
	policy.guard_password(payload.new_password)
	if payload.new_password != payload.confirm_password:
		raise ValidationFailed("Passwords do not match", reason="password_mismatch")
	id_token = await _provider_id_token(auth_user)
	try:
		updated = await get_auth_provider().update_password(id_token, payload.new_password)
	except AuthProviderError as exc:
		obs_metrics.inc_auth_event("password_change", "rejected")
		raise ValidationFailed(register_message(exc.code), reason=exc.code.lower()) from None
	await sessions.update_tokens(auth_user.session_id or "", updated)
	obs_metrics.inc_auth_event("password_change", "ok")


def _exportable(value: Any) -> Any:
	if isinstance(value, datetime):
		return value.isoformat()
	if isinstance(value, dict):
		return {key: _exportable(item) for key, item in value.items()}
	if isinstance(value, list):
		return [_exportable(item) for item in value]
	return value


async def download_data(auth_user: AuthenticatedUser) -> Tuple[schemas.DataExport, str]:
	record = await require_user(auth_user.id)
	export = schemas.DataExport(userData=_exportable(record.data), downloadDate=_now())
	return export, f"nightvibe-data-{auth_user.id}.json"


async def delete_account(auth_user: AuthenticatedUser, payload: schemas.DeleteAccountRequest) -> deletion.CascadeResult:
	policy.guard_confirmation(payload.confirmation, payload.confirm)
	id_token = await _provider_id_token(auth_user)
	result = await deletion.delete_user_cascade(auth_user.id)
	try:
		await get_auth_provider().delete_account(id_token)
	except AuthProviderError as exc:
		log.error("auth_principal_delete_failed", extra={"code": exc.code})
		raise ProviderUnavailable(
			"Your profile was deleted but the login could not be removed. Please log in and retry."
		) from None
	finally:
		await sessions.delete_user_sessions(auth_user.id)
	obs_metrics.inc_auth_event("delete_account", "ok")
	return result
