"""User record lookups shared across screens."""

from __future__ import annotations

from typing import Optional

from nightvibe.domain.exceptions import NotFound
from nightvibe.infra.store import SERVER_TIMESTAMP, USERS, Document, store


async def get_user(user_id: str) -> Optional[Document]:
	if not user_id:
		return None
	return await store.get(USERS, user_id)


async def require_user(user_id: str, message: str = "Profile not found") -> Document:
	record = await get_user(user_id)
	if record is None:
		raise NotFound(message, reason="user_not_found")
	return record


async def username_taken(username: str, *, exclude_id: Optional[str] = None) -> bool:
	matches = await store.where(USERS, "username", username)
	return any(match.id != exclude_id for match in matches)


async def touch(user_id: str, **fields) -> None:
	"""Update ``fields`` and bump ``lastActive``."""
	await store.update(USERS, user_id, {**fields, "lastActive": SERVER_TIMESTAMP})
