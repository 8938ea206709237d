from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ALLOW_NEGATIVE_STOCK"] = "false"

from db.database import Base  # noqa: E402
from db.inventory import (  # noqa: E402,F401
    InventoryItem,
    InventoryItemComponent,
    InventoryMovement,
    InventoryStock,
    Location,
)


@pytest_asyncio.fixture()
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    TestingSession = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with TestingSession() as session:
            yield session
    finally:
        await engine.dispose()
