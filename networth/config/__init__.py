"""Configuration package."""

from networth.config.settings import (
    AppSettings,
    CoinGeckoSettings,
    GoogleSheetsSettings,
    PriceSettings,
    Settings,
    YahooFinanceSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CoinGeckoSettings",
    "GoogleSheetsSettings",
    "PriceSettings",
    "Settings",
    "YahooFinanceSettings",
    "get_settings",
    "validate_all_settings",
]
