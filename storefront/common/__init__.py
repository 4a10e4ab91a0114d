"""Shared utilities for the storefront cart engine."""

from .config import DEFAULT_APP_NAME, StorefrontSettings, get_settings
from .logging import configure_logging
from .database import (
    create_engine,
    dispose_engines,
    get_session_factory,
    lifespan_session,
    resolve_database_url,
)
from .money import clamp_non_negative, clamp_quantity, round_money, to_decimal
from .tasks import SyncTaskRunner

__all__ = [
    "StorefrontSettings",
    "get_settings",
    "configure_logging",
    "DEFAULT_APP_NAME",
    "create_engine",
    "dispose_engines",
    "get_session_factory",
    "lifespan_session",
    "resolve_database_url",
    "clamp_non_negative",
    "clamp_quantity",
    "round_money",
    "to_decimal",
    "SyncTaskRunner",
]
