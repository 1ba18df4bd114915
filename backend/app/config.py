"""
Application configuration loaded from environment variables via pydantic-settings.
All settings are validated at startup — bad values fail fast and loudly.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Land Registry API ──────────────────────────────────────────────────
    land_registry_base_url: str = Field(
        default="http://localhost:3001/api/land-registry",
        alias="LAND_REGISTRY_BASE_URL",
    )
    land_registry_api_token: str = Field(default="", alias="LAND_REGISTRY_API_TOKEN")
    request_timeout_seconds: float = Field(default=15.0, alias="REQUEST_TIMEOUT_SECONDS")

    # ── Cache tiers ────────────────────────────────────────────────────────
    # Short: volatile list/search results. Long: one title's history.
    cache_ttl_short_seconds: int = Field(default=300, alias="CACHE_TTL_SHORT_SECONDS")
    cache_ttl_long_seconds: int = Field(default=1800, alias="CACHE_TTL_LONG_SECONDS")

    # ── Bulk jobs ──────────────────────────────────────────────────────────
    bulk_job_retention_seconds: int = Field(default=3600, alias="BULK_JOB_RETENTION_SECONDS")

    # ── App config ─────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    backend_port: int = Field(default=8000, alias="BACKEND_PORT")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}")
        return upper

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("cache_ttl_short_seconds", "cache_ttl_long_seconds", "bulk_job_retention_seconds")
    @classmethod
    def validate_durations(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("TTL and retention windows must be positive")
        return v

    @property
    def land_registry_configured(self) -> bool:
        """True when a real token is set (used by the health endpoint)."""
        return bool(self.land_registry_api_token and not self.land_registry_api_token.startswith("your-"))

    def auth_headers(self) -> dict[str, str]:
        """Per-request auth headers for the Land Registry API, empty without a token."""
        if not self.land_registry_api_token:
            return {}
        return {"Authorization": f"Bearer {self.land_registry_api_token}"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
