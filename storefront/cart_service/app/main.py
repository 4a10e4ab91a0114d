"""Wiring helpers that build a ready-to-use cart session from settings."""

from __future__ import annotations

import logging

from storefront.common import (
    StorefrontSettings,
    SyncTaskRunner,
    configure_logging,
    get_session_factory,
    resolve_database_url,
)

from .catalog import CouponCatalog
from .metrics import record_sync_failure
from .repository import SqlCartSyncAdapter
from .services import CartSession, Clock, utcnow
from .sync import RemoteSyncAdapter

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./storefront.db"


def create_sync_adapter(settings: StorefrontSettings) -> SqlCartSyncAdapter:
    database_url = resolve_database_url(settings, DEFAULT_DATABASE_URL)
    return SqlCartSyncAdapter(get_session_factory(database_url))


def create_runner(settings: StorefrontSettings) -> SyncTaskRunner:
    return SyncTaskRunner(mode=settings.sync_mode, on_failure=record_sync_failure)


def create_cart_session(
    user_id: str | None,
    *,
    settings: StorefrontSettings | None = None,
    adapter: RemoteSyncAdapter | None = None,
    catalog: CouponCatalog | None = None,
    clock: Clock = utcnow,
) -> CartSession:
    """Create a cart session wired to the configured remote store.

    The session owns its sync runner; callers release it with ``aclose()``.
    """

    resolved_settings = settings or StorefrontSettings()
    configure_logging(resolved_settings)
    logger.debug("%s: opening cart session for %s", resolved_settings.app_name, user_id or "guest")
    return CartSession(
        user_id,
        adapter=adapter or create_sync_adapter(resolved_settings),
        runner=create_runner(resolved_settings),
        catalog=catalog,
        clock=clock,
    )
