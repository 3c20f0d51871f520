"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WAYWISE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Waywise API"
    app_version: str = "1.0.0"
    api_prefix: str = "/api/v1"
    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"

    # Authentication
    jwt_secret: str = Field(default="change-me-in-production", min_length=8)
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = Field(default=24 * 60 * 60, ge=60)
    password_hash_rounds: int = Field(default=12, ge=4, le=16)

    # Entity lifetimes
    schedule_ttl_seconds: int = Field(default=60 * 60, ge=1)
    route_ttl_seconds: int = Field(default=60 * 60, ge=1)

    # Storage
    store_backend: Literal["memory", "supabase"] = "memory"
    store_shards: int = Field(default=16, ge=1)
    store_max_entries: Optional[int] = Field(default=50_000, ge=1)
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    supabase_entities_table: str = "entities"

    # Planning defaults
    default_timezone: str = "UTC"
    default_visit_minutes: float = Field(default=30.0, ge=0.0)

    # Optimizer
    optimizer_exhaustive_threshold: int = Field(default=8, ge=1, le=10)
    optimizer_max_destinations: int = Field(default=25, ge=1)
    optimizer_local_search_iterations: int = Field(default=200, ge=0)
    optimizer_max_workers: int = Field(default=8, ge=1)
    optimizer_time_bucket_seconds: int = Field(default=300, ge=1)
    optimizer_prefetch_timeout_seconds: float = Field(default=30.0, gt=0.0)

    # Traffic provider
    traffic_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for an OSRM routing service. Unset uses the haversine estimator.",
    )
    traffic_profile: Literal["driving", "driving-hgv"] = "driving"
    traffic_timeout_seconds: float = Field(default=10.0, gt=0.0)
    traffic_max_retries: int = Field(default=2, ge=0)
    traffic_backoff_seconds: float = Field(default=0.5, ge=0.0)
    average_speed_kmh: float = Field(default=40.0, gt=0.0)
    road_detour_factor: float = Field(default=1.3, ge=1.0)

    # Schedule parser
    parser_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the schedule parsing service. Unset uses the rule-based parser.",
    )
    parser_api_key: Optional[str] = None
    parser_timeout_seconds: float = Field(default=15.0, gt=0.0)
    geocoder_base_url: Optional[str] = Field(
        default=None,
        description="Nominatim-compatible geocoder used by the rule-based parser.",
    )
    geocoder_timeout_seconds: float = Field(default=5.0, gt=0.0)
    geocoder_min_delay_seconds: float = Field(default=1.0, ge=0.0)
    geocoder_max_retries: int = Field(default=2, ge=0)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://localhost:19006",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return tuple()

    @field_validator("traffic_base_url", "parser_base_url", "geocoder_base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().rstrip("/")
            return value or None
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


settings = Settings()
