"""Profile directory: browse, search and view."""

from __future__ import annotations

from typing import List, Optional

from nightvibe.domain.exceptions import NotFound
from nightvibe.domain.identity import models
from nightvibe.infra.auth import AuthenticatedUser
from nightvibe.infra.store import USERS, Filter, Increment, store
from nightvibe.obs import metrics as obs_metrics
from nightvibe.obs.logging import get_logger

from . import filters as profile_filters
from . import view_target
from .schemas import ProfileCard, ProfileDetail, ProfileListResponse

log = get_logger("nightvibe.directory")

PREFIX_SENTINEL = "\uf8ff"
SEARCH_LIMIT = 20


def _session_slot(auth_user: AuthenticatedUser) -> str:
	return auth_user.session_id or auth_user.id


async def list_profiles(auth_user: AuthenticatedUser, profile_filter: profile_filters.ProfileFilter) -> ProfileListResponse:
	"""Every user except the caller and admins, filtered from the full list."""
	records = await store.list(USERS)
	candidates = [
		record for record in records if record.id != auth_user.id and not models.is_admin(record.data)
	]
	matched = profile_filters.apply(candidates, profile_filter)
	return ProfileListResponse(
		items=[ProfileCard.from_record(record.id, record.data) for record in matched],
		total=len(candidates),
	)


async def search_usernames(auth_user: AuthenticatedUser, prefix: str, *, limit: int = SEARCH_LIMIT) -> List[ProfileCard]:
	prefix = prefix.strip()
	if not prefix:
		return []
	records = await store.query(
		USERS,
		[Filter("username", ">=", prefix), Filter("username", "<=", prefix + PREFIX_SENTINEL)],
		limit=limit,
	)
	return [
		ProfileCard.from_record(record.id, record.data)
		for record in records
		if record.id != auth_user.id and not models.is_admin(record.data)
	]


async def select_profile(auth_user: AuthenticatedUser, profile_id: str, tab_id: Optional[str] = None) -> None:
	await view_target.remember(_session_slot(auth_user), tab_id, profile_id)


async def view_selected(auth_user: AuthenticatedUser, tab_id: Optional[str] = None) -> ProfileDetail:
	profile_id = await view_target.recall(_session_slot(auth_user), tab_id)
	if not profile_id:
		raise NotFound("No profile selected", reason="no_profile_selected")
	return await view_profile(auth_user, profile_id)


async def view_profile(auth_user: AuthenticatedUser, profile_id: str) -> ProfileDetail:
	record = await store.get(USERS, profile_id)
	if record is None:
		raise NotFound("Profile not found", reason="profile_not_found")
	if profile_id != auth_user.id:
		await store.update(USERS, profile_id, {"profileViews": Increment(1)})
		obs_metrics.inc_profile_view()
	return ProfileDetail.from_record(record.id, record.data)
