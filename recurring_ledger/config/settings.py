"""
Configuration Management for Recurring Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The projection engine itself never reads settings; callers pass the
relevant values in explicitly so expansions stay reproducible.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProjectionSettings(BaseSettings):
    """Projection horizon and lookback configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROJECTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    months_ahead: int = Field(
        default=6,
        ge=1,
        le=36,
        description="How many months past the current month to project"
    )
    lookback_months: int = Field(
        default=3,
        ge=0,
        le=24,
        description="How many months before the current month projections start"
    )
    enforce_end_date: bool = Field(
        default=False,
        description="Stop generating occurrences after a rule's end date"
    )


class PersistenceSettings(BaseSettings):
    """Durable storage and debounced save configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PERSISTENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the JSON documents"
    )
    quiet_period_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Quiet period before a burst of changes is written"
    )
    audit_log_filename: str = Field(
        default="audit.jsonl",
        description="Name of the append-only audit log inside data_dir"
    )

    @field_validator('audit_log_filename')
    @classmethod
    def validate_audit_log_filename(cls, v: str) -> str:
        """The audit log must live directly inside data_dir."""
        if not v or Path(v).name != v:
            raise ValueError(f"Audit log filename must be a bare file name, got {v!r}")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Level for the local structured log"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def projection(self) -> ProjectionSettings:
        return ProjectionSettings()

    @property
    def persistence(self) -> PersistenceSettings:
        return PersistenceSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries describing failures.
    """
    results = {}

    settings = get_settings()

    for name in ("projection", "persistence", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
