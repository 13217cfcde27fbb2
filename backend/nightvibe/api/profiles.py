"""Directory endpoints: browse, search and view other members."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Response, status

from nightvibe.domain.directory import service as directory_service
from nightvibe.domain.directory.filters import ProfileFilter
from nightvibe.domain.directory.schemas import ProfileCard, ProfileDetail, ProfileListResponse, ViewTargetRequest
from nightvibe.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=ProfileListResponse)
async def list_profiles_endpoint(
	age: Optional[str] = Query(default=None),
	position: Optional[str] = Query(default=None),
	status_filter: Optional[str] = Query(default=None, alias="status"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileListResponse:
	profile_filter = ProfileFilter.from_query(age=age, position=position, status=status_filter)
	return await directory_service.list_profiles(auth_user, profile_filter)


@router.get("/search", response_model=List[ProfileCard])
async def search_profiles_endpoint(
	q: str = Query(default="", max_length=64),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[ProfileCard]:
	return await directory_service.search_usernames(auth_user, q)


@router.put("/view", status_code=status.HTTP_204_NO_CONTENT)
async def select_profile_endpoint(
	payload: ViewTargetRequest,
	x_tab_id: Optional[str] = Header(default=None, alias="X-Tab-Id"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Response:
	await directory_service.select_profile(auth_user, payload.profile_id, x_tab_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/view", response_model=ProfileDetail)
async def view_selected_endpoint(
	x_tab_id: Optional[str] = Header(default=None, alias="X-Tab-Id"),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileDetail:
	return await directory_service.view_selected(auth_user, x_tab_id)


@router.get("/{profile_id}", response_model=ProfileDetail)
async def view_profile_endpoint(
	profile_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ProfileDetail:
	return await directory_service.view_profile(auth_user, profile_id)
