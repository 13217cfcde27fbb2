"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
from time import perf_counter
from typing import Any, Dict, Tuple

from nightvibe.infra.redis import redis_client
from nightvibe.infra.store import ADMIN, SETTINGS_DOC, store
from nightvibe.obs.logging import get_logger

LOGGER = get_logger(__name__)


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
		return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}
	except Exception as exc:  # pragma: no cover - depends on runtime
		LOGGER.warning("redis_readiness_failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def _store_status() -> Dict[str, Any]:
	start = perf_counter()
	try:
		await store.get(ADMIN, SETTINGS_DOC)
		return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}
	except Exception as exc:
		LOGGER.warning("store_readiness_failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	redis_state, store_state = await asyncio.gather(_redis_status(), _store_status())
	ok = bool(redis_state.get("ok") and store_state.get("ok"))
	return (200 if ok else 503), {
		"status": "ok" if ok else "degraded",
		"redis": redis_state,
		"store": store_state,
	}
