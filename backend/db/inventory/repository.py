"""
Persistence boundary for the stock ledger.

StockRepository loads a StockLedger snapshot inside the caller's
transaction and writes the ledger's diff back (update / insert / delete of
InventoryStock rows plus one InventoryMovement per delta). With `lock=True`
the stock rows are read with SELECT ... FOR UPDATE so concurrent transfers
against the same (item, location) serialize instead of losing updates.
Committing is left to the caller.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import LocationNotFound
from core.stock import StockLedger, StockRecord
from .item import InventoryItem
from .location import Location
from .movement import InventoryMovement
from .stock import InventoryStock

logger = logging.getLogger(__name__)


class StockRepository:
    def __init__(self, db: AsyncSession):
        self.db = db
        self._rows: Dict[Tuple[UUID, UUID], InventoryStock] = {}
        self.items: Dict[UUID, InventoryItem] = {}

    async def _load_items(self, item_ids: Optional[Iterable[UUID]]) -> Dict[UUID, InventoryItem]:
        stmt = select(InventoryItem)
        if item_ids is not None:
            stmt = stmt.where(InventoryItem.id.in_(list(item_ids)))
        items = {it.id: it for it in (await self.db.execute(stmt)).scalars().all()}

        # Kits need their components in the snapshot too.
        missing = {
            c.component_item_id
            for it in items.values()
            for c in it.components
            if c.component_item_id not in items
        }
        if missing:
            res = await self.db.execute(select(InventoryItem).where(InventoryItem.id.in_(list(missing))))
            for it in res.scalars().all():
                items[it.id] = it
        return items

    async def load_ledger(
        self,
        *,
        item_ids: Optional[Iterable[UUID]] = None,
        location_id: Optional[UUID] = None,
        lock: bool = False,
    ) -> StockLedger:
        """Snapshot of stock for `item_ids` (all items when None).

        Stock rows are read in a single statement so every figure derived
        from the ledger comes from the same database snapshot.
        """
        self.items = await self._load_items(item_ids)
        location_ids = (await self.db.execute(select(Location.id))).scalars().all()
        if location_id is not None and location_id not in location_ids:
            raise LocationNotFound(location_id)

        stmt = select(InventoryStock)
        if item_ids is not None:
            stmt = stmt.where(InventoryStock.inventory_item_id.in_(list(self.items.keys())))
        if location_id is not None:
            stmt = stmt.where(InventoryStock.location_id == location_id)
        if lock:
            stmt = stmt.order_by(InventoryStock.inventory_item_id, InventoryStock.location_id).with_for_update()
        rows = (await self.db.execute(stmt)).scalars().all()

        self._rows = {(r.inventory_item_id, r.location_id): r for r in rows}
        return StockLedger(
            items=[it.to_stock_item() for it in self.items.values()],
            location_ids=location_ids,
            records=[StockRecord(r.inventory_item_id, r.location_id, int(r.quantity or 0)) for r in rows],
        )

    async def save(
        self,
        ledger: StockLedger,
        *,
        reason: Optional[str] = None,
        source_type: Optional[str] = None,
        source_id: Optional[str] = None,
    ) -> List[InventoryMovement]:
        touched, deltas = ledger.pop_changes()

        for key in touched:
            record = ledger.get(*key)
            row = self._rows.get(key)
            if record is None:
                if row is not None:
                    await self.db.delete(row)
                    del self._rows[key]
            elif row is None:
                row = InventoryStock(
                    inventory_item_id=record.item_id,
                    location_id=record.location_id,
                    quantity=record.quantity,
                )
                self.db.add(row)
                self._rows[key] = row
            else:
                row.quantity = record.quantity

        movements = [
            InventoryMovement(
                location_id=d.location_id,
                inventory_item_id=d.item_id,
                change=d.change,
                reason=reason,
                source_type=source_type,
                source_id=source_id,
            )
            for d in deltas
        ]
        self.db.add_all(movements)
        await self.db.flush()
        logger.debug("Persisted %d stock rows and %d movements (%s)", len(touched), len(movements), source_type)
        return movements
