"""Settings for the NightVibe backend."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
	if env_names:
		alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
		return Field(default=default, validation_alias=alias)
	return Field(default=default)


class Settings(BaseSettings):
	environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
	secret_key: str = _env_field("change-me", "SECRET_KEY")
	access_ttl_minutes: int = _env_field(60 * 24, "ACCESS_TTL_MINUTES")
	redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")

	# Document store
	store_backend: str = _env_field("firestore", "STORE_BACKEND")
	firestore_project: Optional[str] = _env_field(None, "FIRESTORE_PROJECT", "GOOGLE_CLOUD_PROJECT")
	firestore_database: Optional[str] = _env_field(None, "FIRESTORE_DATABASE")
	store_timeout_seconds: float = _env_field(10.0, "STORE_TIMEOUT_SECONDS")

	# Hosted auth provider (identity toolkit REST API)
	auth_api_key: str = _env_field("", "AUTH_API_KEY", "FIREBASE_API_KEY")
	auth_base_url: str = _env_field("https://identitytoolkit.googleapis.com/v1", "AUTH_BASE_URL")
	auth_token_url: str = _env_field("https://securetoken.googleapis.com/v1", "AUTH_TOKEN_URL")
	auth_email_domain: str = _env_field("nightvibe.com", "AUTH_EMAIL_DOMAIN")
	auth_timeout_seconds: float = _env_field(10.0, "AUTH_TIMEOUT_SECONDS")
	login_attempts_per_window: int = _env_field(10, "LOGIN_ATTEMPTS_PER_WINDOW")
	login_window_seconds: int = _env_field(300, "LOGIN_WINDOW_SECONDS")

	# Image host
	cloudinary_cloud_name: str = _env_field("do71fxllc", "CLOUDINARY_CLOUD_NAME")
	cloudinary_upload_preset: str = _env_field("nightvibe_upload", "CLOUDINARY_UPLOAD_PRESET")
	cloudinary_api_key: Optional[str] = _env_field(None, "CLOUDINARY_API_KEY")
	cloudinary_api_secret: Optional[str] = _env_field(None, "CLOUDINARY_API_SECRET")
	cloudinary_base_url: str = _env_field("https://api.cloudinary.com/v1_1", "CLOUDINARY_BASE_URL")
	image_host_timeout_seconds: float = _env_field(60.0, "IMAGE_HOST_TIMEOUT_SECONDS")

	# Selected-profile hand-off between browse and profile view
	view_target_ttl_seconds: int = _env_field(3600, "VIEW_TARGET_TTL_SECONDS")
	ban_sweep_interval_hours: int = _env_field(1, "BAN_SWEEP_INTERVAL_HOURS")
	workers_enabled: bool = _env_field(True, "WORKERS_ENABLED")

	obs_enabled: bool = _env_field(True, "OBS_ENABLED")
	obs_metrics_public: bool = _env_field(False, "OBS_METRICS_PUBLIC")
	obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
	obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
	obs_slow_request_ms: int = _env_field(1000, "OBS_SLOW_REQUEST_MS")
	service_name: str = _env_field("nightvibe-api", "SERVICE_NAME")
	git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

	cors_allow_origins: Any = _env_field((), "CORS_ALLOW_ORIGINS")

	model_config = SettingsConfigDict(
		env_prefix="",
		env_file=".env",
		case_sensitive=False,
		env_nested_delimiter="__",
	)

	def is_prod(self) -> bool:
		return self.environment.lower() in ("prod", "production", "live")

	def is_dev(self) -> bool:
		return self.environment.lower() in ("dev", "development")

	@field_validator("cors_allow_origins", mode="before")
	def _split_origins(cls, value):  # type: ignore[override]
		if value in (None, ""):
			return ()
		if isinstance(value, (list, tuple, set)):
			return tuple(str(item).strip() for item in value if str(item).strip())
		return tuple(part.strip() for part in str(value).split(",") if part.strip())

	@field_validator("store_backend", mode="before")
	def _normalise_backend(cls, value):  # type: ignore[override]
		text = str(value or "firestore").strip().lower()
		if text not in ("firestore", "memory"):
			raise ValueError("STORE_BACKEND must be 'firestore' or 'memory'")
		return text


settings = Settings()
