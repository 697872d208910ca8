"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__", so ISSUERS__DIRECTORY maps to
issuers.directory, RESIGN__TIMEOUT_SECONDS to resign.timeout_seconds, etc.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crl_resigner.domain.models import RevocationSignatureAlgorithm
from crl_resigner.durations import parse_duration

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class IssuerStoreSettings(BaseModel):
    """
    Where issuer certificates and keys live, and which one "default" means.

    signature_algorithm overrides the per-key default (e.g. "SHA256WithRSAPSS").
    """

    directory: Path = Field(description="Directory holding one sub-directory per issuer")
    default_issuer: str = Field(default="default", min_length=1, description="Issuer name used for the 'default' reference")
    signature_algorithm: RevocationSignatureAlgorithm | None = Field(
        default=None,
        description="CRL signature algorithm; derived from the key type when unset",
    )


class ResignSettings(BaseModel):
    """Request defaults and limits for the resign operation."""

    default_next_update: str = Field(default="72h", description="next_update used when the request omits it")
    revocation_time_tolerance_seconds: int = Field(
        default=0,
        ge=0,
        description="Revocation times this close together are the same revocation (no warning)",
    )
    timeout_seconds: float = Field(default=60.0, gt=0, description="Deadline for one resign request")

    @field_validator("default_next_update")
    @classmethod
    def validate_default_next_update(cls, value: str) -> str:
        """Reject defaults that a request could not use either."""
        parsed = parse_duration(value)
        if parsed.is_failure():
            raise ValueError(parsed.error().message)
        if parsed.value().total_seconds() <= 0:
            raise ValueError(f"default_next_update must be greater than 0, got {value!r}")
        return value


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    issuers: IssuerStoreSettings
    resign: ResignSettings = Field(default_factory=lambda: ResignSettings())

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: str = Field(default="INFO")
