"""Client for the hosted email/password auth provider (Identity Toolkit REST API)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import httpx

from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

log = get_logger("nightvibe.auth_provider")

LOGIN_MESSAGES = {
	"EMAIL_NOT_FOUND": "User not found. Please check your username.",
	"USER_NOT_FOUND": "User not found. Please check your username.",
	"INVALID_PASSWORD": "Incorrect password. Please try again.",
	"INVALID_LOGIN_CREDENTIALS": "Incorrect password. Please try again.",
	"TOO_MANY_ATTEMPTS_TRY_LATER": "Too many failed attempts. Please try again later.",
	"INVALID_EMAIL": "Invalid username format.",
	"USER_DISABLED": "This account has been disabled.",
}

REGISTER_MESSAGES = {
	"EMAIL_EXISTS": "Username already exists. Please choose another.",
	"WEAK_PASSWORD": "Password is too weak. Use at least 6 characters.",
	"INVALID_EMAIL": "Invalid username format.",
	"TOO_MANY_ATTEMPTS_TRY_LATER": "Too many failed attempts. Please try again later.",
}


class AuthProviderError(Exception):
	"""Raised with the provider's error code (e.g. ``EMAIL_EXISTS``)."""

	def __init__(self, code: str, detail: str = "") -> None:
		super().__init__(detail or code)
		self.code = code
		self.detail = detail or code


def login_message(code: str) -> str:
	return LOGIN_MESSAGES.get(code, f"Login failed. {code}")


def register_message(code: str) -> str:
	return REGISTER_MESSAGES.get(code, f"Registration failed. {code}")


def email_for(username: str) -> str:
	"""Usernames map onto synthetic addresses under a fixed domain."""
	return f"{username}@{settings.auth_email_domain}"


@dataclass(frozen=True, slots=True)
class ProviderSession:
	uid: str
	id_token: str
	refresh_token: str


class AuthProvider(Protocol):
	async def sign_up(self, email: str, password: str) -> ProviderSession: ...

	async def sign_in(self, email: str, password: str) -> ProviderSession: ...

	async def refresh(self, refresh_token: str) -> ProviderSession: ...

	async def update_password(self, id_token: str, new_password: str) -> ProviderSession: ...

	async def delete_account(self, id_token: str) -> None: ...


def _error_code(response: httpx.Response) -> tuple[str, str]:
	try:
		payload = response.json()
	except ValueError:
		return ("HTTP_" + str(response.status_code), response.text[:200])
	error = payload.get("error") if isinstance(payload, Mapping) else None
	message = ""
	if isinstance(error, Mapping):
		message = str(error.get("message") or "")
	elif isinstance(error, str):
		message = error
	# Messages look like "WEAK_PASSWORD : Password should be at least 6 characters".
	code = message.split(":", 1)[0].strip().split(" ", 1)[0] if message else f"HTTP_{response.status_code}"
	return code, message


@dataclass
class IdentityToolkitClient:
	"""Thin async wrapper over the ``accounts:*`` endpoints."""

	http: httpx.AsyncClient
	api_key: str
	base_url: str = "https://identitytoolkit.googleapis.com/v1"
	token_url: str = "https://securetoken.googleapis.com/v1"

	async def _post(self, url: str, *, json: Optional[dict[str, Any]] = None, data: Optional[dict[str, str]] = None) -> dict[str, Any]:
		try:
			response = await self.http.post(url, params={"key": self.api_key}, json=json, data=data)
		except httpx.HTTPError as exc:
			log.warning("auth_provider_unreachable", extra={"error": str(exc)})
			raise AuthProviderError("NETWORK_ERROR", str(exc)) from exc
		if response.status_code >= 400:
			code, message = _error_code(response)
			log.info("auth_provider_rejected", extra={"code": code})
			raise AuthProviderError(code, message)
		return response.json()

	async def _accounts(self, action: str, body: dict[str, Any]) -> dict[str, Any]:
		return await self._post(f"{self.base_url}/accounts:{action}", json=body)

	@staticmethod
	def _session(payload: Mapping[str, Any]) -> ProviderSession:
		uid = payload.get("localId") or payload.get("user_id")
		id_token = payload.get("idToken") or payload.get("id_token")
		refresh_token = payload.get("refreshToken") or payload.get("refresh_token")
		if not uid or not id_token:
			raise AuthProviderError("MALFORMED_RESPONSE")
		return ProviderSession(uid=str(uid), id_token=str(id_token), refresh_token=str(refresh_token or ""))

	async def sign_up(self, email: str, password: str) -> ProviderSession:
		payload = await self._accounts("signUp", {"email": email, "password": password, "returnSecureToken": True})
		return self._session(payload)

	async def sign_in(self, email: str, password: str) -> ProviderSession:
		payload = await self._accounts(
			"signInWithPassword", {"email": email, "password": password, "returnSecureToken": True}
		)
		return self._session(payload)

	async def refresh(self, refresh_token: str) -> ProviderSession:
		payload = await self._post(
			f"{self.token_url}/token",
			data={"grant_type": "refresh_token", "refresh_token": refresh_token},
		)
		return self._session(payload)

	async def update_password(self, id_token: str, new_password: str) -> ProviderSession:
		payload = await self._accounts(
			"update", {"idToken": id_token, "password": new_password, "returnSecureToken": True}
		)
		return self._session(payload)

	async def delete_account(self, id_token: str) -> None:
		await self._accounts("delete", {"idToken": id_token})


_provider: AuthProvider | None = None


def get_auth_provider() -> AuthProvider:
	global _provider
	if _provider is None:
		_provider = IdentityToolkitClient(
			http=httpx.AsyncClient(timeout=settings.auth_timeout_seconds),
			api_key=settings.auth_api_key,
			base_url=settings.auth_base_url,
			token_url=settings.auth_token_url,
		)
	return _provider


def set_auth_provider(provider: AuthProvider | None) -> None:
	global _provider
	_provider = provider
