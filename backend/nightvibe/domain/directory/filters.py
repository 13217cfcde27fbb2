"""Profile filter predicates.

Filters are pure functions over user records already fetched in full. Every
call re-filters the master list; nothing is cached between filter changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from nightvibe.domain.exceptions import ValidationFailed
from nightvibe.domain.identity import models


class InvalidAgeRange(ValidationFailed):
	reason = "age_range_invalid"
	default_message = "Age filter must look like 25-34"


def parse_age_range(raw: Optional[str]) -> Optional[Tuple[int, Optional[int]]]:
	"""Parse ``"min-max"`` (inclusive) or ``"min+"`` (open upper bound)."""
	if raw is None or not raw.strip():
		return None
	text = raw.strip()
	try:
		if text.endswith("+"):
			return int(text[:-1]), None
		low, high = text.split("-", 1)
		lower, upper = int(low), int(high)
	except ValueError:
		raise InvalidAgeRange() from None
	if lower > upper:
		raise InvalidAgeRange()
	return lower, upper


@dataclass(slots=True)
class ProfileFilter:
	age: Optional[Tuple[int, Optional[int]]] = None
	position: Optional[str] = None
	status: Optional[str] = None

	@classmethod
	def from_query(cls, age: Optional[str], position: Optional[str], status: Optional[str]) -> "ProfileFilter":
		return cls(
			age=parse_age_range(age),
			position=(position or "").strip() or None,
			status=(status or "").strip() or None,
		)

	def matches_age(self, data: Mapping[str, Any]) -> bool:
		if self.age is None:
			return True
		age = models.age_of(data)
		if not age:
			return False
		lower, upper = self.age
		return age >= lower and (upper is None or age <= upper)

	def matches_position(self, data: Mapping[str, Any]) -> bool:
		if self.position is None:
			return True
		return models.stat(data, "position") == self.position

	def matches_status(self, data: Mapping[str, Any]) -> bool:
		if self.status is None:
			return True
		status = models.stat(data, "relationshipStatus")
		return bool(status) and str(status).startswith(self.status)

	def __call__(self, data: Mapping[str, Any]) -> bool:
		return self.matches_age(data) and self.matches_position(data) and self.matches_status(data)


def apply(records: Iterable[Any], profile_filter: ProfileFilter) -> List[Any]:
	"""Filter ``Document``-like records (anything with ``.data``)."""
	return [record for record in records if profile_filter(record.data)]
