from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from nightvibe.domain.identity import sessions
from nightvibe.infra import jwt as jwt_helper
from nightvibe.infra.cloudinary import ImageHostError, UploadedImage, set_image_host
from nightvibe.infra.identity_toolkit import AuthProviderError, ProviderSession, set_auth_provider
from nightvibe.infra.memory_store import InMemoryDocumentStore
from nightvibe.infra.store import USERS, set_store
from nightvibe.settings import settings


def _uid_from(id_token: str) -> str:
	return id_token[len("id-") :].rsplit("-", 1)[0]


class FakeAuthProvider:
	"""In-memory stand-in for the hosted email/password provider."""

	def __init__(self) -> None:
		self.accounts: Dict[str, Dict[str, str]] = {}
		self.deleted: List[str] = []
		self._counter = 0

	def _session(self, uid: str) -> ProviderSession:
		self._counter += 1
		return ProviderSession(uid=uid, id_token=f"id-{uid}-{self._counter}", refresh_token=f"refresh-{uid}")

	def add(self, email: str, password: str, uid: str) -> None:
		self.accounts[email] = {"uid": uid, "password": password}

	async def sign_up(self, email: str, password: str) -> ProviderSession:
		if email in self.accounts:
			raise AuthProviderError("EMAIL_EXISTS")
		if len(password) < 6:
			raise AuthProviderError("WEAK_PASSWORD")
		uid = f"uid-{len(self.accounts) + 1}"
		self.add(email, password, uid)
		return self._session(uid)

	async def sign_in(self, email: str, password: str) -> ProviderSession:
		account = self.accounts.get(email)
		if account is None:
			raise AuthProviderError("EMAIL_NOT_FOUND")
		if account["password"] != password:
			raise AuthProviderError("INVALID_PASSWORD")
		return self._session(account["uid"])

	async def refresh(self, refresh_token: str) -> ProviderSession:
		uid = refresh_token.removeprefix("refresh-")
		if not any(account["uid"] == uid for account in self.accounts.values()):
			raise AuthProviderError("USER_NOT_FOUND")
		return self._session(uid)

	async def update_password(self, id_token: str, new_password: str) -> ProviderSession:
		uid = _uid_from(id_token)
		for account in self.accounts.values():
			if account["uid"] == uid:
				account["password"] = new_password
		return self._session(uid)

	async def delete_account(self, id_token: str) -> None:
		uid = _uid_from(id_token)
		self.deleted.append(uid)
		self.accounts = {email: account for email, account in self.accounts.items() if account["uid"] != uid}


class FakeImageHost:
	def __init__(self) -> None:
		self.uploaded: List[str] = []
		self.destroyed: List[str] = []
		self.fail_for: set[str] = set()
		self.fail_destroy = False

	async def upload(self, content: bytes, filename: str, content_type: str, on_progress=None) -> UploadedImage:
		if filename in self.fail_for:
			raise ImageHostError("upload_failed", "Upload failed: Bad Request")
		if on_progress is not None:
			await on_progress(0)
			await on_progress(100)
		self.uploaded.append(filename)
		return UploadedImage(
			url=f"https://img.test/{filename}",
			asset_id=f"nightvibe/{filename}",
			bytes=len(content),
			format=content_type.split("/")[-1],
		)

	async def destroy(self, asset_id: str) -> bool:
		if self.fail_destroy:
			raise ImageHostError("destroy_failed", "HTTP 500")
		self.destroyed.append(asset_id)
		return True


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from nightvibe.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def memory_store():
	backend = InMemoryDocumentStore()
	set_store(backend)
	try:
		yield backend
	finally:
		backend.clear()
		set_store(None)


@pytest.fixture(autouse=True)
def auth_provider():
	provider = FakeAuthProvider()
	set_auth_provider(provider)
	try:
		yield provider
	finally:
		set_auth_provider(None)


@pytest.fixture(autouse=True)
def image_host():
	host = FakeImageHost()
	set_image_host(host)
	try:
		yield host
	finally:
		set_image_host(None)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate with X-User-Id, which is only honoured in dev."""
	original_env = settings.environment
	original_workers = settings.workers_enabled
	settings.environment = "dev"
	settings.workers_enabled = False
	try:
		yield
	finally:
		settings.environment = original_env
		settings.workers_enabled = original_workers


def user_record(username: str, **overrides: Any) -> Dict[str, Any]:
	record: Dict[str, Any] = {
		"username": username,
		"realName": username.title(),
		"phone": "5550001111",
		"stats": {"age": 30, "position": "V", "iamInto": "music", "relationshipStatus": "single"},
		"isAdmin": False,
		"isBlocked": False,
		"photos": [],
		"status": "online",
		"preferences": {"showAge": True, "showStatus": True, "receiveMessages": True, "showOnline": True},
		"profileViews": 0,
		"reportedCount": 0,
	}
	record.update(overrides)
	return record


@pytest_asyncio.fixture
async def seed_user(memory_store):
	async def _seed(user_id: str, username: Optional[str] = None, **overrides: Any) -> str:
		await memory_store.set(USERS, user_id, user_record(username or user_id, **overrides))
		return user_id

	return _seed


@pytest_asyncio.fixture
async def bearer_for():
	"""Mint a real session plus access token for ``user_id``."""

	async def _bearer(user_id: str) -> Dict[str, str]:
		session_id = await sessions.create_session(
			ProviderSession(uid=user_id, id_token=f"id-{user_id}-0", refresh_token=f"refresh-{user_id}")
		)
		token = jwt_helper.issue_access_token(user_id, session_id)
		return {"Authorization": f"Bearer {token}"}

	return _bearer


@pytest_asyncio.fixture
async def api_client():
	from nightvibe.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
