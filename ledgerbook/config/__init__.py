"""Configuration package."""

from ledgerbook.config.settings import (
    AppSettings,
    LedgerSettings,
    NegativeBalancePolicy,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerSettings",
    "NegativeBalancePolicy",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
