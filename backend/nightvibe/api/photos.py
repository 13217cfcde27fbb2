"""Photo upload endpoints for onboarding and the profile photo manager."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile

from nightvibe.domain.photos import policy
from nightvibe.domain.photos import service as photo_service
from nightvibe.domain.photos.schemas import PhotoListResponse, UploadBatchResponse
from nightvibe.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(tags=["photos"])


async def _image(upload: UploadFile) -> policy.ImageFile:
    """Read an upload into memory; size and type are checked by the policy."""
    content = await upload.read()
    return policy.ImageFile(
        filename=upload.filename or "upload",
        content_type=(upload.content_type or "").lower(),
        content=content,
    )


@router.get("/onboarding/photos", response_model=PhotoListResponse)
async def onboarding_photos(auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    return await photo_service.list_photos(auth_user)


@router.post("/onboarding/photos", response_model=UploadBatchResponse)
async def onboarding_upload(
    files: List[UploadFile] = File(...),
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> UploadBatchResponse:
    images = [await _image(upload) for upload in files]
    return await photo_service.upload_photos(auth_user, images, cap=policy.ONBOARDING_PHOTO_CAP)


@router.delete("/onboarding/photos/{index}", response_model=PhotoListResponse)
async def onboarding_remove(index: int, auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    return await photo_service.delete_photo(auth_user, index)


@router.post("/onboarding/photos/{index}/primary", response_model=PhotoListResponse)
async def onboarding_primary(index: int, auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    return await photo_service.set_primary(auth_user, index)


@router.post("/onboarding/complete", response_model=PhotoListResponse)
async def onboarding_complete(auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    """Finish setup; requires the minimum photo count."""
    return await photo_service.complete_onboarding(auth_user)


@router.get("/me/photos", response_model=PhotoListResponse)
async def my_photos(auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    return await photo_service.list_photos(auth_user)


@router.post("/me/photos", response_model=UploadBatchResponse)
async def upload_my_photos(
    files: List[UploadFile] = File(...),
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> UploadBatchResponse:
    images = [await _image(upload) for upload in files]
    return await photo_service.upload_photos(auth_user, images, cap=policy.PROFILE_PHOTO_CAP)


@router.post("/me/avatar", response_model=PhotoListResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PhotoListResponse:
    """Upload a single photo and make it the primary one."""
    return await photo_service.upload_avatar(auth_user, await _image(file))


@router.delete("/me/photos/{index}", response_model=PhotoListResponse)
async def delete_my_photo(index: int, auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    return await photo_service.delete_photo(auth_user, index)


@router.post("/me/photos/{index}/primary", response_model=PhotoListResponse)
async def set_my_primary(index: int, auth_user: AuthenticatedUser = Depends(get_current_user)) -> PhotoListResponse:
    return await photo_service.set_primary(auth_user, index)
