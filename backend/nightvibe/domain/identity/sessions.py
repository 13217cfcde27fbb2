"""Redis-backed login sessions.

A session pairs our access token's ``sid`` with the auth provider's tokens so
that logout is real (the key is deleted) and account operations that need the
provider's id token can run server-side.
"""

from __future__ import annotations

from typing import Optional

import ulid

from nightvibe.infra.identity_toolkit import ProviderSession
from nightvibe.infra.redis import redis_client
from nightvibe.settings import settings


def _session_key(session_id: str) -> str:
	return f"session:{session_id}"


def _user_key(user_id: str) -> str:
	return f"user_sessions:{user_id}"


def _ttl_seconds() -> int:
	return max(60, settings.access_ttl_minutes * 60)


async def create_session(provider: ProviderSession) -> str:
	session_id = ulid.new().str
	ttl = _ttl_seconds()
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.hset(
			_session_key(session_id),
			mapping={
				"uid": provider.uid,
				"id_token": provider.id_token,
				"refresh_token": provider.refresh_token,
			},
		)
		pipe.expire(_session_key(session_id), ttl)
		pipe.sadd(_user_key(provider.uid), session_id)
		pipe.expire(_user_key(provider.uid), ttl)
		await pipe.execute()
	return session_id


async def get_session(session_id: str) -> Optional[dict[str, str]]:
	data = await redis_client.hgetall(_session_key(session_id))
	return data or None


async def update_tokens(session_id: str, provider: ProviderSession) -> None:
	await redis_client.hset(
		_session_key(session_id),
		mapping={"id_token": provider.id_token, "refresh_token": provider.refresh_token},
	)


async def delete_session(session_id: str) -> None:
	data = await get_session(session_id)
	await redis_client.delete(_session_key(session_id))
	if data and data.get("uid"):
		await redis_client.srem(_user_key(data["uid"]), session_id)


async def delete_user_sessions(user_id: str) -> int:
	"""Drop every session of ``user_id``; used when an account is blocked or deleted."""
	session_ids = await redis_client.smembers(_user_key(user_id))
	keys = [_session_key(session_id) for session_id in session_ids]
	if keys:
		await redis_client.delete(*keys)
	await redis_client.delete(_user_key(user_id))
	return len(keys)
