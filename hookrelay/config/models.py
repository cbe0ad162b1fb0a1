"""Configuration models for HookRelay."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookrelay.pipeline.tiers import DEFAULT_TIER_LIMITS, FALLBACK_TIER, TierLimits


class TierLimitsConfig(BaseModel):
    """Quota values for one subscription tier."""

    max_webhooks: int = Field(ge=1)
    max_timeout_seconds: int = Field(ge=1)
    max_conversations: int = Field(ge=1)

    def to_limits(self) -> TierLimits:
        return TierLimits(
            max_webhooks=self.max_webhooks,
            max_timeout_seconds=self.max_timeout_seconds,
            max_conversations=self.max_conversations,
        )


def _default_tiers() -> dict[str, TierLimitsConfig]:
    return {
        name: TierLimitsConfig(
            max_webhooks=limits.max_webhooks,
            max_timeout_seconds=limits.max_timeout_seconds,
            max_conversations=limits.max_conversations,
        )
        for name, limits in DEFAULT_TIER_LIMITS.items()
    }


class HttpClientConfig(BaseModel):
    """Outbound webhook client configuration."""

    user_agent: str = Field(default="hookrelay/1.0")
    follow_redirects: bool = Field(default=False)


class SecurityConfig(BaseModel):
    """Secret handling configuration."""

    encryption_key: str = Field(default="", description="Key used for secure header values.")


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = Field(default="")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        normalized = value.upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError("level must be one of DEBUG/INFO/WARNING/ERROR")
        return normalized


class HookRelayConfig(BaseSettings):
    """Root configuration model for HookRelay."""

    tiers: dict[str, TierLimitsConfig] = Field(default_factory=_default_tiers)
    http: HttpClientConfig = Field(default_factory=HttpClientConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    data_encryption_key: str = Field(
        default="",
        validation_alias=AliasChoices("DATA_ENCRYPTION_KEY", "data_encryption_key"),
        description="Legacy variable name for the secure header key.",
    )

    model_config = SettingsConfigDict(
        env_prefix="HOOKRELAY_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("tiers")
    @classmethod
    def _require_fallback_tier(cls, value: dict[str, TierLimitsConfig]) -> dict[str, TierLimitsConfig]:
        if FALLBACK_TIER not in value:
            raise ValueError(f"tiers must define '{FALLBACK_TIER}'")
        return value

    def tier_limits(self) -> dict[str, TierLimits]:
        return {name: item.to_limits() for name, item in self.tiers.items()}

    def encryption_key(self) -> str:
        return self.security.encryption_key or self.data_encryption_key
