"""Schemas for the photo manager and onboarding upload flow."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from nightvibe.domain.identity.schemas import PhotoOut

from .policy import MIN_COMPLETE_PHOTOS


class UploadResult(BaseModel):
	file: str
	index: int
	ok: bool
	photo: Optional[PhotoOut] = None
	error: Optional[str] = None


class PhotoListResponse(BaseModel):
	photos: List[PhotoOut]
	count: int
	required: int = MIN_COMPLETE_PHOTOS
	can_complete: bool = False


class UploadBatchResponse(PhotoListResponse):
	results: List[UploadResult]
