"""Access tokens handed out at login.

A token names the user (``sub``) and the Redis session it belongs to (``sid``).
It is HS256-signed with ``settings.secret_key``; revocation happens by deleting
the session, not the token.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import jwt
from jwt import InvalidTokenError

from nightvibe.settings import settings

ISSUER = "nightvibe-api"
AUDIENCE = "nightvibe-web"
ALGORITHM = "HS256"
LEEWAY_SECONDS = 5


@dataclass(frozen=True, slots=True)
class AccessClaims:
    user_id: str
    session_id: str
    expires_at: int


def issue_access_token(user_id: str, session_id: str, *, ttl_seconds: Optional[int] = None) -> str:
    now = int(time.time())
    ttl = ttl_seconds if ttl_seconds is not None else settings.access_ttl_minutes * 60
    claims = {"iss": ISSUER, "aud": AUDIENCE, "iat": now, "exp": now + ttl, "sub": user_id, "sid": session_id}
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def decode_access(token: str) -> AccessClaims:
    """Validate signature, expiry, issuer and audience.

    Raises ``jwt.InvalidTokenError`` (or a subclass) when the token is unusable.
    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[ALGORITHM],
        audience=AUDIENCE,
        issuer=ISSUER,
        leeway=LEEWAY_SECONDS,
        options={"require": ["exp", "iat", "iss", "aud", "sub"]},
    )
    user_id = str(payload.get("sub") or "").strip()
    session_id = str(payload.get("sid") or "").strip()
    if not user_id or not session_id:
        raise InvalidTokenError("missing_subject_or_session")
    return AccessClaims(user_id=user_id, session_id=session_id, expires_at=int(payload["exp"]))
