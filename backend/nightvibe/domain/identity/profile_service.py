"""Own-profile reads and edits."""

from __future__ import annotations

from typing import Any, Dict

from nightvibe.domain.exceptions import ValidationFailed
from nightvibe.domain.identity import models, policy, schemas
from nightvibe.domain.identity.users import require_user, touch
from nightvibe.infra.auth import AuthenticatedUser


async def get_profile(auth_user: AuthenticatedUser) -> schemas.ProfileOut:
	record = await require_user(auth_user.id)
	return schemas.ProfileOut.from_record(record.id, record.data)


async def update_profile(auth_user: AuthenticatedUser, payload: schemas.ProfileUpdateRequest) -> schemas.ProfileOut:
	"""Apply the non-empty fields; stats are merged into the stored map, not replaced."""
	policy.guard_age(payload.age or None)
	policy.guard_position(payload.position)
	record = await require_user(auth_user.id)
	changes: Dict[str, Any] = {}
	stats_changes = {
		"age": payload.age or None,
		"position": payload.position or None,
		"relationshipStatus": (payload.relationship_status or "").strip() or None,
		"iamInto": (payload.interests or "").strip() or None,
	}
	stats_changes = {key: value for key, value in stats_changes.items() if value is not None}
	if stats_changes:
		current = record.data.get("stats")
		merged = dict(current) if isinstance(current, dict) else {}
		merged.update(stats_changes)
		changes["stats"] = merged
	about = (payload.about or "").strip()
	if about:
		changes["about"] = about
	await touch(auth_user.id, **changes)
	data = {**record.data, **changes}
	return schemas.ProfileOut.from_record(record.id, data)


async def set_preference(auth_user: AuthenticatedUser, payload: schemas.PreferenceUpdateRequest) -> schemas.Preferences:
	if payload.name not in models.PREFERENCE_NAMES:
		raise ValidationFailed("Unknown preference", reason="preference_unknown")
	record = await require_user(auth_user.id)
	await touch(auth_user.id, **{f"preferences.{payload.name}": payload.value})
	current = {name: models.preference(record.data, name) for name in models.PREFERENCE_NAMES}
	current[payload.name] = payload.value
	return schemas.Preferences(**current)
