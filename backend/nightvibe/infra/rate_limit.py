"""Fixed-window attempt counters in Redis.

Each (kind, actor) pair gets one counter per window. ``allow`` records an
attempt and reports whether the window still has budget; ``clear`` forgets the
current window, e.g. after a successful login.
"""

from __future__ import annotations

import time
from typing import Optional

from nightvibe.infra.redis import redis_client


def _window_key(kind: str, actor_id: str, window: int, now: float) -> str:
	return f"rl:{kind}:{actor_id}:{int(now // window)}:{window}"


async def allow(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> bool:
	if limit <= 0:
		return False
	window = max(1, int(window_seconds))
	key = _window_key(kind, actor_id, window, now or time.time())
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.incr(key)
		pipe.expire(key, window)
		count, _ = await pipe.execute()
	return int(count) <= limit


async def clear(kind: str, actor_id: str, *, window_seconds: int = 60, now: Optional[float] = None) -> None:
	window = max(1, int(window_seconds))
	await redis_client.delete(_window_key(kind, actor_id, window, now or time.time()))
