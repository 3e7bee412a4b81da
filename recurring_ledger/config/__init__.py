"""Configuration package."""

from recurring_ledger.config.settings import (
    AppSettings,
    PersistenceSettings,
    ProjectionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)
from recurring_ledger.config.logging_setup import configure_logging

__all__ = [
    "AppSettings",
    "PersistenceSettings",
    "ProjectionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
    "configure_logging",
]
