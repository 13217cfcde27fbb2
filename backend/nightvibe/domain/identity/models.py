"""User record helpers: photo normalization and legacy field fallbacks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from nightvibe.domain.chat.models import PLACEHOLDER_AVATAR
from nightvibe.domain.chat.normalize import parse_timestamp

POSITION_LABELS = {
	"T": "Top",
	"TV": "Versatile Top",
	"V": "Versatile",
	"BV": "Versatile Bottom",
	"B": "Bottom",
}

PREFERENCE_NAMES = ("showAge", "showStatus", "receiveMessages", "showOnline")

DEFAULT_INTERESTS = "No interests listed"


@dataclass(slots=True)
class Photo:
	url: str
	asset_id: Optional[str] = None
	uploaded_at: Optional[datetime] = None
	format: Optional[str] = None
	bytes: Optional[int] = None

	@classmethod
	def from_raw(cls, raw: Any) -> Optional["Photo"]:
		"""Accept both bare URL strings and the object shapes older clients stored."""
		if isinstance(raw, str):
			return cls(url=raw) if raw else None
		if not isinstance(raw, Mapping):
			return None
		url = raw.get("url") or raw.get("secure_url") or raw.get("src") or raw.get("path")
		if not url:
			return None
		size = raw.get("bytes")
		return cls(
			url=str(url),
			asset_id=raw.get("assetId") or raw.get("publicId") or raw.get("public_id"),
			uploaded_at=parse_timestamp(raw.get("uploadedAt")),
			format=raw.get("format"),
			bytes=int(size) if isinstance(size, (int, float)) else None,
		)

	def to_store(self) -> dict[str, Any]:
		uploaded = self.uploaded_at or datetime.now(timezone.utc)
		data: dict[str, Any] = {
			"url": self.url,
			"assetId": self.asset_id,
			"uploadedAt": uploaded.isoformat(),
		}
		if self.format:
			data["format"] = self.format
		if self.bytes is not None:
			data["bytes"] = self.bytes
		return data


def photos_of(data: Mapping[str, Any]) -> List[Photo]:
	raw = data.get("photos") or []
	if not isinstance(raw, list):
		return []
	return [photo for photo in (Photo.from_raw(item) for item in raw) if photo is not None]


def avatar_of(data: Mapping[str, Any]) -> str:
	if data.get("photoURL"):
		return str(data["photoURL"])
	photos = photos_of(data)
	return photos[0].url if photos else PLACEHOLDER_AVATAR


def stat(data: Mapping[str, Any], name: str) -> Any:
	"""Read a profile stat, falling back to the top-level field older records used."""
	stats = data.get("stats")
	if isinstance(stats, Mapping) and stats.get(name) not in (None, ""):
		return stats.get(name)
	return data.get(name)


def age_of(data: Mapping[str, Any]) -> Optional[int]:
	value = stat(data, "age")
	if isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		return int(value)
	if isinstance(value, str):
		try:
			return int(value.strip())
		except ValueError:
			return None
	return None


def status_segment(status: Any) -> Optional[str]:
	"""Relationship statuses are colon-delimited; only the first segment is shown or matched."""
	if not status:
		return None
	return str(status).split(":", 1)[0]


def position_label(code: Any) -> Optional[str]:
	return POSITION_LABELS.get(str(code)) if code else None


def preference(data: Mapping[str, Any], name: str) -> bool:
	prefs = data.get("preferences")
	if not isinstance(prefs, Mapping):
		return True
	return prefs.get(name) is not False


def is_blocked(data: Mapping[str, Any]) -> bool:
	return data.get("isBlocked") is True


def ban_until(data: Mapping[str, Any], *, now: Optional[datetime] = None) -> Optional[datetime]:
	"""Return the end of an active temporary ban, if any."""
	until = parse_timestamp(data.get("banUntil"))
	if until is None:
		return None
	now = now or datetime.now(timezone.utc)
	return until if until > now else None


def is_admin(data: Mapping[str, Any]) -> bool:
	return data.get("isAdmin") is True


def username_of(data: Optional[Mapping[str, Any]]) -> Optional[str]:
	if not data:
		return None
	name = data.get("username") or data.get("displayName")
	return str(name) if name else None


def view_count(data: Mapping[str, Any]) -> int:
	"""Older records kept the counter under ``views``."""
	value = data.get("profileViews")
	if value is None:
		value = data.get("views")
	return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0
