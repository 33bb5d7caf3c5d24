from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PROJECT_NAME: str = "Dual Push Notification Server"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"
    # Empty prefix keeps /register, /subscribe, /send at the root
    API_PREFIX: str = ""
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # WNS (OAuth2 client credentials)
    WNS_TENANT_ID: str = ""
    WNS_CLIENT_ID: str = ""
    WNS_CLIENT_SECRET: str = ""
    WNS_SCOPE: str = "https://wns.windows.com/.default"
    OAUTH_AUTHORITY: str = "login.microsoftonline.com"

    # Web Push (VAPID)
    VAPID_SUBJECT: str = "mailto:admin@example.com"
    WEB_PUSH_ENDPOINT_MARKER: str = "notify.windows.com/w/"

    # Outbound calls
    PUSH_TIMEOUT_SECONDS: float = 15.0
    TOKEN_SAFETY_MARGIN_SECONDS: int = 300
    DEFAULT_TTL: int = 3600
    BULK_MAX_CONCURRENT: int = 5

    RATE_LIMIT_DEFAULT: str = "600/minute"

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: List[str] | str) -> List[str]:
        """Allow both comma-separated strings and list inputs."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @property
    def wns_configured(self) -> bool:
        return bool(self.WNS_TENANT_ID and self.WNS_CLIENT_ID and self.WNS_CLIENT_SECRET)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
