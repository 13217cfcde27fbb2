"""Validation guards for registration and profile edits."""

from __future__ import annotations

from typing import Any, Optional

from nightvibe.domain.exceptions import ValidationFailed

from .models import POSITION_LABELS

USERNAME_MIN_LEN = 3
PASSWORD_MIN_LEN = 6
PHONE_MIN_LEN = 10
AGE_MIN = 18
AGE_MAX = 65
ABOUT_MAX_LEN = 1000
INTERESTS_MAX_LEN = 500

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"
DELETE_PHRASE = "DELETE"


class MissingFields(ValidationFailed):
	reason = "missing_fields"
	default_message = REQUIRED_FIELDS_MESSAGE


class AgeOutOfRange(ValidationFailed):
	reason = "age_out_of_range"
	default_message = f"Age must be between {AGE_MIN} and {AGE_MAX}"


class UsernameTooShort(ValidationFailed):
	reason = "username_too_short"
	default_message = f"Username must be at least {USERNAME_MIN_LEN} characters"


class PasswordTooShort(ValidationFailed):
	reason = "password_too_short"
	default_message = f"Password must be at least {PASSWORD_MIN_LEN} characters"


class PhoneInvalid(ValidationFailed):
	reason = "phone_invalid"
	default_message = "Please enter a valid phone number"


class PositionInvalid(ValidationFailed):
	reason = "position_invalid"
	default_message = "Please choose a valid position"


class ConfirmationMismatch(ValidationFailed):
	reason = "confirmation_required"
	default_message = "Deletion cancelled"


def normalise_username(username: str) -> str:
	return (username or "").strip()


def guard_required(*values: Any) -> None:
	for value in values:
		if value is None or (isinstance(value, str) and not value.strip()):
			raise MissingFields()


def guard_username(username: str) -> None:
	if len(username) < USERNAME_MIN_LEN:
		raise UsernameTooShort()


def guard_password(password: str) -> None:
	if len(password or "") < PASSWORD_MIN_LEN:
		raise PasswordTooShort()


def guard_phone(phone: str) -> None:
	if len(phone.strip()) < PHONE_MIN_LEN:
		raise PhoneInvalid()


def guard_age(age: Optional[int]) -> None:
	if age is None:
		return
	if age < AGE_MIN or age > AGE_MAX:
		raise AgeOutOfRange()


def guard_position(position: Optional[str]) -> None:
	if position and position not in POSITION_LABELS:
		raise PositionInvalid()


def guard_confirmation(phrase: Optional[str], confirmed: bool, expected: str = DELETE_PHRASE) -> None:
	"""Destructive actions need the exact typed phrase and an explicit confirm."""
	if phrase != expected or not confirmed:
		raise ConfirmationMismatch(f'Type "{expected}" and confirm to continue')
