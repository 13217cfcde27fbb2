"""Per-tab "selected profile" slot shared between the browse and view screens."""

from __future__ import annotations

from typing import Optional

from nightvibe.infra.redis import redis_client
from nightvibe.settings import settings


def _key(session_id: str, tab_id: Optional[str]) -> str:
	return f"view_target:{session_id}:{tab_id or 'default'}"


async def remember(session_id: str, tab_id: Optional[str], profile_id: str) -> None:
	await redis_client.set(_key(session_id, tab_id), profile_id, ex=settings.view_target_ttl_seconds)


async def recall(session_id: str, tab_id: Optional[str]) -> Optional[str]:
	value = await redis_client.get(_key(session_id, tab_id))
	return value or None
