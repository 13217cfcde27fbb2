"""Domain error taxonomy shared by every screen's service layer.

Each error carries a machine ``reason`` and the user-facing ``message`` shown as
the toast text. The HTTP layer maps ``status_code`` straight onto the response.
"""

from __future__ import annotations

from typing import Optional


class DomainError(ValueError):
	"""Base class for expected, user-visible failures."""

	status_code: int = 400
	reason: str = "domain_error"
	default_message: str = "Something went wrong."

	def __init__(self, message: Optional[str] = None, *, reason: Optional[str] = None) -> None:
		self.message = message or self.default_message
		if reason is not None:
			self.reason = reason
		super().__init__(self.message)


class ValidationFailed(DomainError):
	status_code = 400
	reason = "validation_failed"
	default_message = "Please check the form and try again."


class AuthFailed(DomainError):
	status_code = 401
	reason = "auth_failed"
	default_message = "Please log in to continue."


class PermissionDenied(DomainError):
	status_code = 403
	reason = "forbidden"
	default_message = "Access denied."


class NotFound(DomainError):
	status_code = 404
	reason = "not_found"
	default_message = "Not found."


class Conflict(DomainError):
	status_code = 409
	reason = "conflict"
	default_message = "That value is already taken."


class RateLimited(DomainError):
	status_code = 429
	reason = "rate_limited"
	default_message = "Too many attempts. Please try again later."


class ServiceUnavailable(DomainError):
	status_code = 503
	reason = "unavailable"
	default_message = "Service temporarily unavailable. Please try again."


__all__ = [
	"AuthFailed",
	"Conflict",
	"DomainError",
	"NotFound",
	"PermissionDenied",
	"RateLimited",
	"ServiceUnavailable",
	"ValidationFailed",
]
