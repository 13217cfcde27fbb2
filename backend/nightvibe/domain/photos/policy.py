"""Upload checks applied before anything is sent to the image host."""

from __future__ import annotations

from dataclasses import dataclass

from nightvibe.domain.exceptions import ValidationFailed

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"})
MAX_FILE_BYTES = 10 * 1024 * 1024
ONBOARDING_PHOTO_CAP = 5
PROFILE_PHOTO_CAP = 10
MIN_COMPLETE_PHOTOS = 5


class PhotoRejected(ValidationFailed):
	reason = "photo_invalid"


class PhotoLimitReached(ValidationFailed):
	reason = "photo_limit"


class NotEnoughPhotos(ValidationFailed):
	reason = "photos_required"
	default_message = f"You need at least {MIN_COMPLETE_PHOTOS} photos to complete setup"


@dataclass(frozen=True, slots=True)
class ImageFile:
	filename: str
	content_type: str
	content: bytes

	@property
	def size(self) -> int:
		return len(self.content)


def guard_file(image: ImageFile) -> None:
	if (image.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
		raise PhotoRejected("Invalid file type. Please select JPG, PNG, WebP, or GIF files.", reason="invalid_type")
	if image.size == 0:
		raise PhotoRejected("The file is empty", reason="empty_file")
	if image.size > MAX_FILE_BYTES:
		raise PhotoRejected("File too large (max 10MB)", reason="file_too_large")


def guard_capacity(existing: int, incoming: int, cap: int) -> None:
	if existing + incoming > cap:
		raise PhotoLimitReached(f"You can only upload up to {cap} photos total. You have {existing} already.")
