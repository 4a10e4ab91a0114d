import asyncio
from decimal import Decimal

import pytest

from storefront.cart_service.app.main import create_cart_session, create_runner, create_sync_adapter
from storefront.cart_service.app.models import Base
from storefront.cart_service.app.repository import SqlCartSyncAdapter
from storefront.cart_service.app.schemas import LineItem
from storefront.common import StorefrontSettings, create_engine, dispose_engines


def test_runner_mode_follows_settings() -> None:
    assert create_runner(StorefrontSettings(sync_mode="concurrent")).mode == "concurrent"
    assert create_runner(StorefrontSettings()).mode == "serialized"


@pytest.mark.asyncio
async def test_session_syncs_to_configured_database(tmp_path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'wired.db'}"
    settings = StorefrontSettings(app_name="Wiring Test", database_url=database_url)
    engine = create_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        adapter = create_sync_adapter(settings)
        assert isinstance(adapter, SqlCartSyncAdapter)

        session = create_cart_session("user-7", settings=settings, adapter=adapter)
        session.add_item(LineItem(product_id="A", name="Masala Dosa", unit_price=Decimal("120")))
        await session.flush()

        snapshot = await adapter.get_active_cart("user-7")
        assert snapshot is not None
        assert snapshot.cart_id == session.cart_id
        assert [(item.name, item.quantity) for item in snapshot.items] == [("Masala Dosa", 1)]
        await session.aclose()
    finally:
        await dispose_engines()


@pytest.mark.asyncio
async def test_aclose_pushes_pending_writes_and_stops_workers(tmp_path) -> None:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'closing.db'}"
    settings = StorefrontSettings(database_url=database_url)
    engine = create_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        adapter = create_sync_adapter(settings)
        session = create_cart_session("user-8", settings=settings, adapter=adapter)
        session.add_item(LineItem(product_id="B", name="Filter Coffee", unit_price=Decimal("40")))
        session.add_item(LineItem(product_id="B", name="Filter Coffee", unit_price=Decimal("40")))

        await session.aclose()

        leftover = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
        assert leftover == []
        snapshot = await adapter.get_active_cart("user-8")
        assert snapshot is not None
        assert [(item.name, item.quantity) for item in snapshot.items] == [("Filter Coffee", 2)]
    finally:
        await dispose_engines()
