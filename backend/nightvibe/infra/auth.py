"""Authentication helpers for FastAPI endpoints.

Access tokens are HS256 JWTs minted at login. A token is only honoured while
its session still exists in Redis, so logging out or blocking a user revokes
it immediately. Admin endpoints re-read the user record on every call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from nightvibe.domain.exceptions import AuthFailed, PermissionDenied
from nightvibe.domain.identity import sessions
from nightvibe.domain.identity.models import is_admin
from nightvibe.infra import jwt as jwt_helper
from nightvibe.infra.store import USERS, store
from nightvibe.obs import logging as obs_logging
from nightvibe.settings import settings

ADMIN_REQUIRED_MESSAGE = "Access denied. Admin privileges required."


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	session_id: Optional[str] = None
	is_admin: bool = False


bearer_scheme = HTTPBearer(auto_error=False)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode an access JWT; the session is checked separately."""
	try:
		claims = jwt_helper.decode_access(token)
	except jwt_helper.InvalidTokenError:
		raise AuthFailed(reason="invalid_token") from None
	return AuthenticatedUser(id=claims.user_id, session_id=claims.session_id)


async def resolve_token(token: str) -> AuthenticatedUser:
	user = verify_access_jwt(token)
	session = await sessions.get_session(user.session_id or "")
	if not session or session.get("uid") != user.id:
		raise AuthFailed(reason="session_expired")
	return user


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development a bare ``X-User-Id`` header is accepted for local tools. In all
	other environments a valid Bearer JWT with a live session is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		user = await resolve_token(credentials.credentials)
	elif settings.is_dev() and x_user_id:
		user = AuthenticatedUser(id=x_user_id)
	else:
		raise AuthFailed(reason="invalid_token")
	obs_logging.bind_context(user_id=user.id)
	return user


async def get_admin_user(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
	record = await store.get(USERS, user.id)
	if record is None or not is_admin(record.data):
		raise PermissionDenied(ADMIN_REQUIRED_MESSAGE, reason="admin_required")
	user.is_admin = True
	return user
