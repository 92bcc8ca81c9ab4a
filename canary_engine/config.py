"""Canary configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class CanarySettings(BaseSettings):
    """Settings for the canary engine, loaded with the ``KAPABLE_`` prefix.

    Values can be overridden via environment variables (``KAPABLE_API_URL``,
    ``KAPABLE_API_KEY``, ...) or through a ``.env`` file in the working
    directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="KAPABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Remote platform and credentials.
    api_url: str = ""
    api_key: SecretStr = SecretStr("")
    admin_key: SecretStr = SecretStr("")

    # Request timeouts (milliseconds).
    request_timeout_ms: int = 10_000
    extended_timeout_ms: int = 30_000

    # Single-flight lock.
    lock_stale_after_ms: int = 120_000

    # Identifiers consumed by individual checks.  A missing identifier makes
    # the dependent check skip instead of fail.
    app_id: str | None = None
    env_name: str = "production"

    # App lifecycle check.
    deploy_app_slug: str = "canary-smoke"
    app_domain: str = "kapable.run"

    # Public health URL of this canary app (proxy -> container -> app chain).
    self_health_url: str | None = None

    # Logging.
    structured_logging: bool = False
    log_level: str = "INFO"

    @field_validator("api_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, v: str | None) -> str:
        if v is None:
            return ""
        return str(v).rstrip("/")

    @field_validator("app_id", "self_health_url", mode="before")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    def missing_credentials(self) -> list[str]:
        """Return the environment variable names of unset required settings."""
        missing: list[str] = []
        if not self.api_url:
            missing.append("KAPABLE_API_URL")
        if not self.api_key.get_secret_value():
            missing.append("KAPABLE_API_KEY")
        if not self.admin_key.get_secret_value():
            missing.append("KAPABLE_ADMIN_KEY")
        return missing


def load_settings(**overrides: object) -> CanarySettings:
    """Load settings from environment, with optional overrides for testing."""
    settings = CanarySettings(**overrides)  # type: ignore[arg-type]

    for name in settings.missing_credentials():
        logger.warning("%s is not set", name)

    return settings
