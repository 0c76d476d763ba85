"""
Configuration Management for Subscription Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The billing core itself takes no configuration: every value it needs is
passed in by the caller. The projection step ceiling is a constant of the
projector, not a setting.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Record store access configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts when reading snapshots from the record store"
    )
    retry_wait_min: float = Field(
        default=0.5,
        ge=0.0,
        description="Minimum back-off between attempts, in seconds"
    )
    retry_wait_max: float = Field(
        default=5.0,
        ge=0.0,
        description="Maximum back-off between attempts, in seconds"
    )
    seed_default_rates: bool = Field(
        default=True,
        description="Start an empty rate store with the default rates"
    )


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment, bound to every log line"
    )
    debug_mode: bool = Field(
        default=False,
        description="Log at DEBUG level instead of INFO"
    )

    # Currencies
    base_currency_code: str = Field(
        default="JPY",
        min_length=3,
        max_length=3,
        description="Currency all totals are expressed in"
    )
    default_currency_code: str = Field(
        default="JPY",
        min_length=3,
        max_length=3,
        description="Currency preselected for new subscriptions"
    )
    supported_currencies: str = Field(
        default="JPY,USD,EUR",
        description="Comma-separated list of currencies offered for input"
    )

    # Dashboard
    cost_per_use_limit: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Entries shown in the cost-per-use ranking"
    )

    # Validation thresholds
    max_subscription_amount: float = Field(
        default=1000000.0,
        description="Amounts above this are flagged for review"
    )
    future_date_tolerance_days: int = Field(
        default=366,
        description="How far in the future a first payment date may be before it is flagged"
    )

    @field_validator('base_currency_code', 'default_currency_code')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def supported_currencies_list(self) -> list[str]:
        """Get supported currencies as a list."""
        return [code.strip().upper() for code in self.supported_currencies.split(",") if code.strip()]


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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.storage
        results["storage"] = True
    except ValueError as e:
        results["storage"] = False
        results["storage_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except ValueError as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
