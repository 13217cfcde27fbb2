"""Redis access for sessions, view targets and rate limits.

``redis_client`` is a stable proxy: modules import it once and the real client
is created from ``settings.redis_url`` on first use, or swapped in with
:func:`set_redis_client` (fakeredis in tests).
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as redis

from nightvibe.settings import settings


class RedisProxy:
	"""Forward attribute access to the active client, connecting lazily."""

	def __init__(self, client: Optional[redis.Redis] = None) -> None:
		self._client = client

	def set_client(self, client: Optional[redis.Redis]) -> None:
		self._client = client

	@property
	def client(self) -> redis.Redis:
		if self._client is None:
			self._client = redis.from_url(settings.redis_url, decode_responses=True)
		return self._client

	def __getattr__(self, item):
		return getattr(self.client, item)

	async def close(self) -> None:
		if self._client is not None:
			await self._client.aclose()
			self._client = None


redis_client = RedisProxy()


def set_redis_client(client: Optional[redis.Redis]) -> None:
	redis_client.set_client(client)
