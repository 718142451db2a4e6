"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
from dataclasses import dataclass
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, ConfigDict, field_validator, model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Database Configuration
    # ============================================================
    database_url: str = Field("sqlite:///./webtracker.db", description="SQLAlchemy connection URL")
    auto_create_tables: bool = Field(True, description="Create missing tables on startup")

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field("*", description="Comma-separated CORS allowed origins")
    api_port: int = Field(4001, description="API server port")

    # ============================================================
    # Signed Device Authentication
    # ============================================================
    clock_skew_seconds: int = Field(
        300,
        ge=1,
        validation_alias=AliasChoices("clock_skew_seconds", "time_skew_sec"),
        description="Maximum allowed |now - X-Ts| in seconds",
    )
    auth_lookup_timeout_seconds: float = Field(
        5.0,
        gt=0,
        description="Upper bound for each device lookup / nonce claim / bearer check",
    )
    nonce_retention_seconds: int = Field(86400, description="How long nonce claims are kept")
    nonce_cleanup_interval_seconds: int = Field(3600, ge=1, description="Nonce purge cadence")

    # ============================================================
    # Bearer Identity (external identity provider)
    # ============================================================
    bearer_backend: str = Field("firebase", description="Bearer verifier: firebase, jwt or none")
    firebase_project_id: Optional[str] = Field(None, description="Firebase project id (token audience)")
    jwt_secret: Optional[str] = Field(None, description="Shared secret for jwt bearer backend")
    jwt_issuer: str = Field("webtracker", description="Expected iss claim for jwt bearer backend")
    jwt_audience: str = Field("webtracker-api", description="Expected aud claim for jwt bearer backend")
    jwt_algorithm: str = Field("HS256", description="Signing algorithm for jwt bearer backend")

    # ============================================================
    # Device Linking
    # ============================================================
    device_code_ttl_seconds: int = Field(600, ge=1, description="Lifetime of a device link code")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @field_validator("database_url")
    @classmethod
    def _normalize_postgres_scheme(cls, value: str) -> str:
        # Hosted Postgres providers sometimes hand out postgres://
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql://", 1)
        return value

    @field_validator("bearer_backend")
    @classmethod
    def _check_bearer_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("firebase", "jwt", "none"):
            raise ValueError(f"Unknown bearer backend: {value!r}")
        return value

    @model_validator(mode="after")
    def _retention_covers_skew_window(self) -> "Settings":
        if self.nonce_retention_seconds < self.clock_skew_seconds:
            raise ValueError(
                "nonce_retention_seconds must be >= clock_skew_seconds, "
                "otherwise a purged nonce could be replayed inside the skew window"
            )
        return self

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@dataclass(frozen=True)
class AuthConfig:
    """
    Immutable settings consumed by the Authenticator.

    Built once at process start and handed to the Authenticator, so request
    handling never reads process-wide configuration.
    """
    clock_skew_seconds: int = 300
    lookup_timeout_seconds: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            clock_skew_seconds=settings.clock_skew_seconds,
            lookup_timeout_seconds=settings.auth_lookup_timeout_seconds,
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
