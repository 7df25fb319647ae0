import json
import os
import re
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Used when the configuration leaves requests_per_minute unset or zero.
DEFAULT_REQUESTS_PER_MINUTE = 5
DEFAULT_TIER_LIMITS = {"free": 5, "basic": 10, "premium": 15}

# Tier ceilings relative to requests_per_minute when it is configured.
TIER_MULTIPLIERS = {"free": 1, "basic": 2, "premium": 5}

DEFAULT_CONFIG_FILE = "configs/config.yaml"


def _parse_cors_origins(raw: Any) -> list[str]:
    """Accept CORS origins as a YAML list, a JSON array or a comma list.

    Bare hosts are expanded to both schemes since browsers send the scheme
    in the Origin header.
    """
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(item).strip() for item in raw if str(item).strip()]

    text = str(raw).strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return _parse_cors_origins(decoded)

    entries = [entry for entry in re.split(r"[,\s]+", text.strip("\"'")) if entry]
    if "*" in entries:
        return ["*"]

    origins: dict[str, None] = {}
    for entry in entries:
        if "://" in entry:
            origins[entry] = None
        else:
            origins[f"http://{entry}"] = None
            origins[f"https://{entry}"] = None
    return list(origins)


class TierLimits(BaseModel):
    """Per-tier request ceilings for the generation route.

    A value of zero means "derive from requests_per_minute".
    """

    free: int = 0
    basic: int = 0
    premium: int = 0

    @field_validator("free", "basic", "premium", mode="before")
    @classmethod
    def coerce_missing_to_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


class RateLimitSettings(BaseModel):
    """Rate limiting section of the configuration."""

    requests_per_minute: int = 0
    tiers: TierLimits = TierLimits()
    default_tier: Literal["free", "basic", "premium"] = "free"

    # Honour the first X-Forwarded-For hop when deriving client keys.
    # Only enable behind a proxy that overwrites the header.
    trust_forwarded_for: bool = False

    # Cap on tracked client windows before LRU eviction kicks in.
    max_entries: int = 10000

    @field_validator("requests_per_minute", mode="before")
    @classmethod
    def coerce_missing_rpm(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("tiers", mode="before")
    @classmethod
    def tiers_section_optional(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("max_entries")
    @classmethod
    def validate_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_entries must be at least 1")
        return v

    @property
    def is_configured(self) -> bool:
        return self.requests_per_minute > 0

    @property
    def effective_requests_per_minute(self) -> int:
        """Global ceiling, falling back to the default when unconfigured."""
        if self.is_configured:
            return self.requests_per_minute
        return DEFAULT_REQUESTS_PER_MINUTE

    def tier_limits(self) -> dict[str, int]:
        """Resolve the ceiling for every tier.

        Resolution order per tier:
        1. an explicit positive value under ``tiers``
        2. ``requests_per_minute`` times the tier multiplier
        3. the hardcoded defaults when nothing is configured
        """
        limits: dict[str, int] = {}
        for tier, multiplier in TIER_MULTIPLIERS.items():
            explicit = getattr(self.tiers, tier)
            if explicit > 0:
                limits[tier] = explicit
            elif self.is_configured:
                limits[tier] = self.requests_per_minute * multiplier
            else:
                limits[tier] = DEFAULT_TIER_LIMITS[tier]
        return limits


class Settings(BaseSettings):
    """Application settings.

    Values come from constructor arguments, environment variables, a ``.env``
    file and finally the YAML config file, in that order of precedence. Nested
    values use ``__`` in environment variables, e.g.
    ``RATE_LIMIT__REQUESTS_PER_MINUTE=10``.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # HTTP listener
    host: str = "0.0.0.0"
    port: int = 8080

    # Gemini backend
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    default_models: list[str] = ["gemini-1.5-pro"]
    max_tokens: int = 2048
    temperature: float = 0.7
    top_p: float = 0.95

    # Swap the Gemini backend for the local mock (development and tests)
    mock_provider: bool = Field(
        default=False,
        validation_alias=AliasChoices("MARLOWEQUILL_MOCK_PROVIDER", "mock_provider"),
    )

    # HTTP client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0  # Upper bound on a single generation call
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Content storage
    output_dir: str = "generated_content"
    storage_timeout_seconds: float = 10.0

    # Rate limiting
    rate_limit: RateLimitSettings = RateLimitSettings()

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("default_models", mode="before")
    @classmethod
    def default_models_not_empty(cls, v: Any) -> Any:
        if not v:
            return ["gemini-1.5-pro"]
        return v

    @field_validator("rate_limit", mode="before")
    @classmethod
    def rate_limit_section_optional(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator(
        "httpx_connect_timeout",
        "httpx_read_timeout",
        "httpx_write_timeout",
        "storage_timeout_seconds",
    )
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def model_name(self) -> str:
        return self.default_models[0]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        yaml_file = os.getenv("MARLOWEQUILL_CONFIG_FILE", DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
