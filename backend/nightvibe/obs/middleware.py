"""Request middleware: request ids, Prometheus request metrics and the access log."""

from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from nightvibe.obs import logging as obs_logging
from nightvibe.obs import metrics
from nightvibe.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 128

# Probes and scrapes are counted but not written to the access log.
QUIET_PATHS = ("/health/", "/metrics")


def _request_id(request: Request) -> str:
	supplied = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
	if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH:
		return supplied
	return uuid4().hex


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
	def __init__(self, app, *, enabled: bool = True) -> None:
		super().__init__(app)
		self._enabled = enabled
		self._log = obs_logging.get_logger("nightvibe.http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request.state.request_id = _request_id(request)
		if not (self._enabled and settings.obs_enabled):
			response = await call_next(request)
			response.headers.setdefault(REQUEST_ID_HEADER, request.state.request_id)
			return response

		client = request.client
		token = obs_logging.bind_context(
			request_id=request.state.request_id,
			route=request.url.path,
			client_ip=client.host if client else None,
		)
		started = time.perf_counter()
		response: Optional[Response] = None
		try:
			response = await call_next(request)
		except Exception:
			self._log.exception("http_request_error", extra={"method": request.method, "path": request.url.path})
			raise
		finally:
			status_code = response.status_code if response is not None else 500
			self._record(request, status_code, time.perf_counter() - started)
			obs_logging.reset_context(token)
		response.headers.setdefault(REQUEST_ID_HEADER, request.state.request_id)
		return response

	def _record(self, request: Request, status_code: int, elapsed: float) -> None:
		route = _route_template(request)
		metrics.observe_request(route, request.method, status_code, elapsed)
		latency_ms = round(elapsed * 1000, 3)
		if request.url.path.startswith(QUIET_PATHS) and status_code < 500:
			return
		extra = {"status": status_code, "method": request.method, "route": route, "latency_ms": latency_ms}
		if status_code >= 500:
			self._log.error("http_request", extra=extra)
		elif latency_ms >= settings.obs_slow_request_ms:
			self._log.warning("http_request_slow", extra=extra)
		else:
			self._log.info("http_request", extra=extra)


def install(app, *, enabled: bool = True) -> None:
	app.add_middleware(ObservabilityMiddleware, enabled=enabled)
