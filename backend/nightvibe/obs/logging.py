"""JSON logging with per-request context and redaction of personal fields."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from nightvibe.settings import settings

_LOGGER_NAME = "nightvibe"

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("nightvibe_log_context", default={})

# Output key for each bindable context field.
_CONTEXT_KEYS = {"request_id": "request_id", "route": "route", "user_id": "user_id", "client_ip": "ip"}

# Message bodies, credentials and profile contact details never reach the log stream.
_REDACT = (
	"token",
	"secret",
	"authorization",
	"password",
	"email",
	"phone",
	"realname",
	"real_name",
	"content",
	"signature",
	"api_key",
)

# Admin actions form the moderation audit trail and are never sampled away.
_UNSAMPLED_PREFIXES = ("nightvibe.moderation", "nightvibe.identity.deletion")

_MAX_STRING = 256
_MAX_ITEMS = 10

_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def bind_context(
	*,
	request_id: Optional[str] = None,
	route: Optional[str] = None,
	user_id: Optional[str] = None,
	client_ip: Optional[str] = None,
) -> Token:
	"""Add fields to the logging context; pass the token to :func:`reset_context`."""
	values = {"request_id": request_id, "route": route, "user_id": user_id, "client_ip": client_ip}
	merged = dict(_CONTEXT.get())
	merged.update({key: value for key, value in values.items() if value is not None})
	return _CONTEXT.set(merged)


def reset_context(token: Token) -> None:
	_CONTEXT.reset(token)


def current_request_id() -> Optional[str]:
	return _CONTEXT.get().get("request_id")


def _clip(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _MAX_STRING else value[:_MAX_STRING] + "..."
	if isinstance(value, Mapping):
		clipped = {str(key): redact(str(key), nested) for key, nested in list(value.items())[:_MAX_ITEMS]}
		if len(value) > _MAX_ITEMS:
			clipped["..."] = f"+{len(value) - _MAX_ITEMS} keys"
		return clipped
	if isinstance(value, (list, tuple, set)):
		items = [_clip(item) for item in list(value)[:_MAX_ITEMS]]
		if len(value) > _MAX_ITEMS:
			items.append("...")
		return items
	if isinstance(value, datetime):
		return value.isoformat()
	if value is None or isinstance(value, (bool, int, float)):
		return value
	return str(value)


def redact(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(marker in lowered for marker in _REDACT):
		return "[redacted]"
	return _clip(value)


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per record: base fields, bound context, then ``extra``."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
		}
		if settings.git_commit:
			payload["commit"] = settings.git_commit
		for field_name, value in _CONTEXT.get().items():
			payload[_CONTEXT_KEYS.get(field_name, field_name)] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key in _STANDARD_ATTRS or key in payload:
				continue
			payload[key] = redact(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Sample INFO records at ``LOG_SAMPLING_RATE_INFO``; other levels always pass."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or record.name.startswith(_UNSAMPLED_PREFIXES):
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or _LOGGER_NAME)
