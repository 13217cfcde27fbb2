"""Image host client: unsigned uploads with progress, signed destroys."""

from __future__ import annotations

import hashlib
import inspect
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Protocol, Union

import httpx

from nightvibe.obs.logging import get_logger
from nightvibe.settings import settings

log = get_logger("nightvibe.image_host")

CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int], Union[None, Awaitable[None]]]


class ImageHostError(Exception):
	def __init__(self, reason: str, detail: str = "") -> None:
		super().__init__(detail or reason)
		self.reason = reason


@dataclass(frozen=True, slots=True)
class UploadedImage:
	url: str
	asset_id: str
	bytes: Optional[int] = None
	format: Optional[str] = None
	width: Optional[int] = None
	height: Optional[int] = None


class ImageHost(Protocol):
	async def upload(
		self,
		content: bytes,
		filename: str,
		content_type: str,
		on_progress: Optional[ProgressCallback] = None,
	) -> UploadedImage: ...

	async def destroy(self, asset_id: str) -> bool: ...


def sign_params(params: dict[str, Any], api_secret: str) -> str:
	"""SHA-1 request signature: sorted ``key=value`` pairs joined by ``&`` plus the secret."""
	to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
	return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


async def _notify(callback: Optional[ProgressCallback], percent: int) -> None:
	if callback is None:
		return
	result = callback(percent)
	if inspect.isawaitable(result):
		await result


@dataclass
class CloudinaryClient:
	http: httpx.AsyncClient
	cloud_name: str
	upload_preset: str
	api_key: Optional[str] = None
	api_secret: Optional[str] = None
	base_url: str = "https://api.cloudinary.com/v1_1"

	def _endpoint(self, action: str) -> str:
		return f"{self.base_url}/{self.cloud_name}/image/{action}"

	async def upload(
		self,
		content: bytes,
		filename: str,
		content_type: str,
		on_progress: Optional[ProgressCallback] = None,
	) -> UploadedImage:
		"""Upload one image, reporting whole percentages as the body is sent."""
		prepared = self.http.build_request(
			"POST",
			self._endpoint("upload"),
			data={"upload_preset": self.upload_preset},
			files={"file": (filename, content, content_type)},
		)
		body = prepared.read()
		total = len(body) or 1

		async def _stream() -> AsyncIterator[bytes]:
			sent = 0
			last = -1
			for start in range(0, len(body), CHUNK_SIZE):
				chunk = body[start : start + CHUNK_SIZE]
				yield chunk
				sent += len(chunk)
				percent = min(100, round(sent * 100 / total))
				if percent != last:
					last = percent
					await _notify(on_progress, percent)

		headers = {key: value for key, value in prepared.headers.items() if key.lower() != "transfer-encoding"}
		headers["Content-Length"] = str(len(body))
		await _notify(on_progress, 0)
		try:
			response = await self.http.post(self._endpoint("upload"), content=_stream(), headers=headers)
		except httpx.HTTPError as exc:
			log.warning("image_upload_network_error", extra={"file": filename, "error": str(exc)})
			raise ImageHostError("network_error", "Network error during upload") from exc
		if response.status_code != 200:
			log.warning("image_upload_rejected", extra={"file": filename, "status": response.status_code})
			raise ImageHostError("upload_failed", f"Upload failed: {response.reason_phrase}")
		try:
			data = response.json()
		except ValueError as exc:
			raise ImageHostError("invalid_response", "Invalid response from image host") from exc
		if not data.get("secure_url") or not data.get("public_id"):
			raise ImageHostError("invalid_response", "Invalid response from image host")
		return UploadedImage(
			url=str(data["secure_url"]),
			asset_id=str(data["public_id"]),
			bytes=data.get("bytes"),
			format=data.get("format"),
			width=data.get("width"),
			height=data.get("height"),
		)

	async def destroy(self, asset_id: str) -> bool:
		if not self.api_key or not self.api_secret:
			raise ImageHostError("destroy_unconfigured", "Image host credentials are not configured")
		params: dict[str, Any] = {"public_id": asset_id, "timestamp": int(time.time())}
		form = {
			**{key: str(value) for key, value in params.items()},
			"api_key": self.api_key,
			"signature": sign_params(params, self.api_secret),
		}
		try:
			response = await self.http.post(self._endpoint("destroy"), data=form)
		except httpx.HTTPError as exc:
			raise ImageHostError("network_error", str(exc)) from exc
		if response.status_code >= 400:
			raise ImageHostError("destroy_failed", f"HTTP {response.status_code}")
		try:
			data = response.json()
		except ValueError as exc:
			raise ImageHostError("invalid_response", "Invalid response from image host") from exc
		return isinstance(data, dict) and data.get("result") == "ok"


_host: ImageHost | None = None


def get_image_host() -> ImageHost:
	global _host
	if _host is None:
		_host = CloudinaryClient(
			http=httpx.AsyncClient(timeout=settings.image_host_timeout_seconds),
			cloud_name=settings.cloudinary_cloud_name,
			upload_preset=settings.cloudinary_upload_preset,
			api_key=settings.cloudinary_api_key,
			api_secret=settings.cloudinary_api_secret,
			base_url=settings.cloudinary_base_url,
		)
	return _host


def set_image_host(host: ImageHost | None) -> None:
	global _host
	_host = host
