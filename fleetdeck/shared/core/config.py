from functools import lru_cache
from threading import Lock
from typing import Optional

import structlog
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PRODUCTION = "production"
ENV_STAGING = "staging"
ENV_DEVELOPMENT = "development"


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the application settings."""
    return Settings()


_settings_reload_lock = Lock()


def reload_settings_from_environment() -> "Settings":
    """
    Atomically rebuild and replace cached settings from environment values.

    This avoids mutating the cached singleton instance in-place.
    """
    logger = structlog.get_logger()
    with _settings_reload_lock:
        logger.info("settings_reload_started")
        get_settings.cache_clear()
        refreshed = get_settings()
        logger.info("settings_reload_completed")
        return refreshed


class Settings(BaseSettings):
    """
    Main configuration for FleetDeck.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "FleetDeck"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    # ENVIRONMENT options: development, staging, production
    ENVIRONMENT: str = ENV_DEVELOPMENT
    TESTING: bool = False

    # Credential file handed to the account catalog loader
    ACCOUNTS_FILE: str = "config/conoha-credentials.json"
    ENDPOINT_DOMAIN: str = "conoha.io"
    IDENTITY_DOMAIN_ID: str = "default"

    # Identity tokens live 24h upstream; refresh 2h early
    TOKEN_LIFETIME_SECONDS: int = 24 * 60 * 60
    TOKEN_SAFETY_MARGIN_SECONDS: int = 2 * 60 * 60
    FLAVOR_CACHE_TTL_SECONDS: int = 10 * 60

    HTTP_TIMEOUT_SECONDS: float = 20.0
    HTTP_CONNECT_TIMEOUT_SECONDS: float = 10.0
    # Upper bound for one account inside a cross-account fan-out. 0 disables.
    ACCOUNT_FANOUT_TIMEOUT_SECONDS: float = 30.0
    USER_AGENT: Optional[str] = None

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        if self.TESTING and self.ENVIRONMENT in {ENV_PRODUCTION, ENV_STAGING}:
            raise ValueError(
                "TESTING must be false in staging/production runtime environments."
            )
        self._validate_token_window()
        self._validate_timeouts()
        return self

    def _validate_token_window(self) -> None:
        if self.TOKEN_LIFETIME_SECONDS <= 0:
            raise ValueError("TOKEN_LIFETIME_SECONDS must be positive.")
        if self.TOKEN_SAFETY_MARGIN_SECONDS < 0:
            raise ValueError("TOKEN_SAFETY_MARGIN_SECONDS must not be negative.")
        if self.TOKEN_SAFETY_MARGIN_SECONDS >= self.TOKEN_LIFETIME_SECONDS:
            raise ValueError(
                "TOKEN_SAFETY_MARGIN_SECONDS must be smaller than "
                "TOKEN_LIFETIME_SECONDS to leave a positive refresh window."
            )

    def _validate_timeouts(self) -> None:
        if self.FLAVOR_CACHE_TTL_SECONDS <= 0:
            raise ValueError("FLAVOR_CACHE_TTL_SECONDS must be positive.")
        if self.HTTP_TIMEOUT_SECONDS <= 0 or self.HTTP_CONNECT_TIMEOUT_SECONDS <= 0:
            raise ValueError("HTTP timeouts must be positive.")
        if self.ACCOUNT_FANOUT_TIMEOUT_SECONDS < 0:
            raise ValueError("ACCOUNT_FANOUT_TIMEOUT_SECONDS must not be negative.")

    @property
    def token_ttl_seconds(self) -> int:
        """Seconds a freshly issued token is served from cache."""
        return self.TOKEN_LIFETIME_SECONDS - self.TOKEN_SAFETY_MARGIN_SECONDS

    @property
    def is_deployed(self) -> bool:
        """Staging and production hide internal error detail from clients."""
        return self.ENVIRONMENT.lower() in {ENV_PRODUCTION, ENV_STAGING}
