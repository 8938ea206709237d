import asyncio
import sys
from pathlib import Path

"""
Seed demo inventory (two warehouses, GPS units, antennas and an install kit).

Idempotent: existing locations/items are matched by name/SKU and stock is
only received when the item holds none yet.

This script can be run from either:
- backend/: `uv run python scripts/seed_demo_data.py`
- repo root: `uv run python backend/scripts/seed_demo_data.py`
"""

# Allow running from repo root by ensuring `backend/` is on sys.path
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402

from db.database import async_session_maker, create_db_and_tables  # noqa: E402
from db.inventory import InventoryItem, InventoryItemComponent, Location  # noqa: E402
from db.inventory.repository import StockRepository  # noqa: E402


LOCATIONS = [
    ("Warehouse-A", "Main warehouse"),
    ("Warehouse-B", "Field depot"),
]

SIMPLE_ITEMS = [
    # sku, name, unit cost (minor), min threshold, initial stock at Warehouse-A
    ("GPS-1", "GPS tracker", 8900, 5, 10),
    ("Antenna-1", "GPS antenna", 1250, 5, 3),
]

KITS = [
    ("Kit-1", "GPS install kit", 2, [("GPS-1", 2), ("Antenna-1", 1)]),
]

SERVICES = [
    ("Install-Service", "On-site installation"),
]


async def get_or_create_location(session, name: str, description: str) -> Location:
    res = await session.execute(select(Location).where(Location.name == name))
    loc = res.scalar_one_or_none()
    if loc:
        return loc
    loc = Location(name=name, description=description)
    session.add(loc)
    await session.flush()
    return loc


async def get_item(session, sku: str):
    res = await session.execute(select(InventoryItem).where(InventoryItem.sku == sku))
    return res.scalar_one_or_none()


async def main() -> None:
    await create_db_and_tables()
    async with async_session_maker() as session:
        locations = {}
        for name, description in LOCATIONS:
            locations[name] = await get_or_create_location(session, name, description)

        items = {}
        for sku, name, cost_minor, threshold, _qty in SIMPLE_ITEMS:
            item = await get_item(session, sku)
            if not item:
                item = InventoryItem(
                    sku=sku,
                    name=name,
                    item_type="simple",
                    unit="ud",
                    unit_cost_minor=cost_minor,
                    min_threshold=threshold,
                    components=[],
                )
                session.add(item)
                await session.flush()
            items[sku] = item

        for sku, name, threshold, parts in KITS:
            if await get_item(session, sku):
                continue
            session.add(
                InventoryItem(
                    sku=sku,
                    name=name,
                    item_type="composite",
                    unit="ud",
                    min_threshold=threshold,
                    components=[
                        InventoryItemComponent(component_item_id=items[part].id, quantity=qty, sort_order=i)
                        for i, (part, qty) in enumerate(parts)
                    ],
                )
            )

        for sku, name in SERVICES:
            if not await get_item(session, sku):
                session.add(InventoryItem(sku=sku, name=name, item_type="service", unit="ud", components=[]))
        await session.flush()

        repo = StockRepository(session)
        ledger = await repo.load_ledger(item_ids=[items[sku].id for sku, *_ in SIMPLE_ITEMS], lock=True)
        warehouse = locations["Warehouse-A"].id
        for sku, _name, _cost, _threshold, qty in SIMPLE_ITEMS:
            if ledger.stock_level(items[sku].id) == 0:
                ledger.receive(items[sku].id, warehouse, qty)
        await repo.save(ledger, reason="SEED", source_type="seed")

        await session.commit()
        print("Seeded demo inventory:", ", ".join(sorted(items)))


if __name__ == "__main__":
    asyncio.run(main())
