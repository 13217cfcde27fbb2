"""Photo manager: uploads through the image host, ordering and removal."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from nightvibe.domain.chat import sockets as message_sockets
from nightvibe.domain.exceptions import NotFound
from nightvibe.domain.identity import models
from nightvibe.domain.identity.schemas import PhotoOut
from nightvibe.domain.identity.users import require_user, touch
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.cloudinary import ImageHostError, get_image_host
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger

from . import policy
from .schemas import PhotoListResponse, UploadBatchResponse, UploadResult

log = get_logger("nightvibe.photos")


def _listing(photos: Sequence[models.Photo]) -> PhotoListResponse:
	return PhotoListResponse(
		photos=[PhotoOut.from_model(photo) for photo in photos],
		count=len(photos),
		can_complete=len(photos) >= policy.MIN_COMPLETE_PHOTOS,
	)


async def _save(user_id: str, photos: Sequence[models.Photo]) -> None:
	await touch(user_id, photos=[photo.to_store() for photo in photos])


async def _upload_one(user_id: str, image: policy.ImageFile, index: int) -> models.Photo:
	policy.guard_file(image)

	async def report(percent: int) -> None:
		await message_sockets.emit_upload_progress(
			user_id, {"file": image.filename, "index": index, "percent": percent}
		)

	uploaded = await get_image_host().upload(image.content, image.filename, image.content_type, report)
	return models.Photo(
		url=uploaded.url,
		asset_id=uploaded.asset_id,
		uploaded_at=datetime.now(timezone.utc),
		format=uploaded.format,
		bytes=uploaded.bytes,
	)


async def list_photos(auth_user: AuthenticatedUser) -> PhotoListResponse:
	record = await require_user(auth_user.id)
	return _listing(models.photos_of(record.data))


async def upload_photos(
	auth_user: AuthenticatedUser,
	files: Sequence[policy.ImageFile],
	*,
	cap: int = policy.PROFILE_PHOTO_CAP,
) -> UploadBatchResponse:
	"""Upload ``files`` one after another, persisting the photo list after each success.

	A failed file is reported in its result entry and does not stop the rest.
	"""
	record = await require_user(auth_user.id)
	photos: List[models.Photo] = models.photos_of(record.data)
	policy.guard_capacity(len(photos), len(files), cap)
	results: List[UploadResult] = []
	for index, image in enumerate(files):
		try:
			photo = await _upload_one(auth_user.id, image, index)
		except policy.PhotoRejected as exc:
			obs_metrics.inc_photo_upload("rejected")
			results.append(UploadResult(file=image.filename, index=index, ok=False, error=exc.message))
			continue
		except ImageHostError as exc:
			obs_metrics.inc_photo_upload("error")
			log.warning("photo_upload_failed", extra={"file": image.filename, "reason": exc.reason})
			results.append(UploadResult(file=image.filename, index=index, ok=False, error="Upload failed"))
			continue
		photos.append(photo)
		await _save(auth_user.id, photos)
		obs_metrics.inc_photo_upload("ok")
		results.append(UploadResult(file=image.filename, index=index, ok=True, photo=PhotoOut.from_model(photo)))
	listing = _listing(photos)
	return UploadBatchResponse(**listing.model_dump(), results=results)


async def upload_avatar(auth_user: AuthenticatedUser, image: policy.ImageFile) -> PhotoListResponse:
	record = await require_user(auth_user.id)
	photos = models.photos_of(record.data)
	policy.guard_capacity(len(photos), 1, policy.PROFILE_PHOTO_CAP)
	try:
		photo = await _upload_one(auth_user.id, image, 0)
	except ImageHostError as exc:
		obs_metrics.inc_photo_upload("error")
		log.warning("avatar_upload_failed", extra={"file": image.filename, "reason": exc.reason})
		raise policy.PhotoRejected("Upload failed", reason="upload_failed") from None
	updated = [photo, *(existing for existing in photos if existing.url != photo.url)]
	await _save(auth_user.id, updated)
	obs_metrics.inc_photo_upload("ok")
	return _listing(updated)


def _at(photos: Sequence[models.Photo], index: int) -> models.Photo:
	if index < 0 or index >= len(photos):
		raise NotFound("Photo not found", reason="photo_not_found")
	return photos[index]


async def delete_photo(auth_user: AuthenticatedUser, index: int) -> PhotoListResponse:
	"""Drop the photo from the record, then ask the host to delete the asset.

	The host call is best effort; a failure is logged and the record change stands.
	"""
	record = await require_user(auth_user.id)
	photos = models.photos_of(record.data)
	removed = _at(photos, index)
	remaining = [photo for position, photo in enumerate(photos) if position != index]
	await _save(auth_user.id, remaining)
	if removed.asset_id:
		try:
			deleted = await get_image_host().destroy(removed.asset_id)
		except ImageHostError as exc:
			log.warning("photo_destroy_failed", extra={"asset_id": removed.asset_id, "reason": exc.reason})
		else:
			if not deleted:
				log.warning("photo_destroy_not_ok", extra={"asset_id": removed.asset_id})
	return _listing(remaining)


async def set_primary(auth_user: AuthenticatedUser, index: int) -> PhotoListResponse:
	record = await require_user(auth_user.id)
	photos = models.photos_of(record.data)
	chosen = _at(photos, index)
	if index == 0:
		return _listing(photos)
	reordered = [chosen, *(photo for position, photo in enumerate(photos) if position != index)]
	await _save(auth_user.id, reordered)
	return _listing(reordered)


async def complete_onboarding(auth_user: AuthenticatedUser) -> PhotoListResponse:
	record = await require_user(auth_user.id)
	photos = models.photos_of(record.data)
	if len(photos) < policy.MIN_COMPLETE_PHOTOS:
		raise policy.NotEnoughPhotos()
	await touch(auth_user.id, profileComplete=True)
	return _listing(photos)
