"""
Configuration Management for Net Worth Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Provider clients receive their settings object explicitly, so tests can
inject fake endpoints and keys without touching the environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoinGeckoSettings(BaseSettings):
    """CoinGecko crypto price API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="COINGECKO_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Pro API key (enables higher rate limits and the pro base URL)"
    )
    base_url: str = Field(
        default="https://api.coingecko.com/api/v3",
        description="Public API base URL"
    )
    pro_base_url: str = Field(
        default="https://pro-api.coingecko.com/api/v3",
        description="Pro API base URL, used when an API key is set"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout per request"
    )

    @property
    def effective_base_url(self) -> str:
        """Base URL to call, depending on whether a key is configured."""
        return self.pro_base_url if self.api_key else self.base_url


class YahooFinanceSettings(BaseSettings):
    """Yahoo Finance stock price API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="YAHOO_FINANCE_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://query1.finance.yahoo.com",
        description="Yahoo Finance query host"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="HTTP timeout per request"
    )
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; networth-tracker/1.0)",
        description="User-Agent header (Yahoo rejects empty agents)"
    )


class PriceSettings(BaseSettings):
    """Price fetching, caching and retry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PRICE_",
        extra="ignore"
    )

    cache_ttl_minutes: int = Field(
        default=15,
        ge=1,
        description="Minutes a cached price is considered fresh"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the first failed attempt"
    )
    initial_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay before the first retry"
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Exponential backoff multiplier"
    )
    max_delay_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Upper bound on any single retry delay"
    )
    batch_concurrency: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum concurrent provider calls during a batch refresh"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    holdings_sheet_name: str = Field(default="Holdings")
    transactions_sheet_name: str = Field(default="Transactions")
    snapshots_sheet_name: str = Field(default="Snapshots")
    contributions_sheet_name: str = Field(default="Contributions")
    price_cache_sheet_name: str = Field(default="PriceCache")
    import_history_sheet_name: str = Field(default="ImportHistory")
    audit_sheet_name: str = Field(default="AuditLog")

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
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

    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum CSV upload size in MB"
    )
    default_currency: str = Field(
        default="AUD",
        pattern="^(AUD|NZD|USD)$",
        description="Currency for imported records that don't specify one"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def coingecko(self) -> CoinGeckoSettings:
        return CoinGeckoSettings()

    @property
    def yahoo_finance(self) -> YahooFinanceSettings:
        return YahooFinanceSettings()

    @property
    def prices(self) -> PriceSettings:
        return PriceSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    for name in ("coingecko", "yahoo_finance", "prices", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
