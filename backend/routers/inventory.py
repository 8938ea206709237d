import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import InventoryError, http_error
from db.database import get_async_session
from db.inventory.item import InventoryItem as InventoryItemModel
from db.inventory.location import Location as LocationModel
from db.inventory.movement import InventoryMovement as InventoryMovementModel
from db.inventory.repository import StockRepository
from db.inventory.stock import InventoryStock as InventoryStockModel
from schemas.inventory import (
    InventoryDespatchCreate,
    InventoryMovementOut,
    InventoryReceptionCreate,
    InventoryTransferCreate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _allow_shortfall(requested: Optional[bool]) -> bool:
    if requested is None:
        return bool(settings.allow_negative_stock)
    return bool(requested)


async def mutation_error(
    db: AsyncSession,
    what: str,
    e: Exception,
    conflict_detail: str = "Stock was modified concurrently, please retry",
) -> HTTPException:
    """Roll back and convert an exception raised while writing to the database."""
    await db.rollback()
    if isinstance(e, InventoryError):
        logger.info("[inventory] %s rejected: %s", what, e.message)
        return http_error(e)
    if isinstance(e, IntegrityError):
        logger.warning("[inventory] %s hit an integrity conflict: %s", what, e)
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=conflict_detail,
        )
    logger.exception("[inventory] %s failed", what)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {what}: {e}")


@router.get("/stock", response_model=List[Dict])
async def get_stock(
    location_id: Optional[UUID] = None,
    item_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """
    List stock records, optionally narrowed to one location and/or item.

    Only records holding stock exist; an item absent from a location has zero there.
    """
    if location_id and not await db.get(LocationModel, location_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    if item_id and not await db.get(InventoryItemModel, item_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    stmt = (
        select(InventoryStockModel, InventoryItemModel, LocationModel)
        .join(InventoryItemModel, InventoryStockModel.inventory_item_id == InventoryItemModel.id)
        .join(LocationModel, InventoryStockModel.location_id == LocationModel.id)
    )
    if location_id:
        stmt = stmt.where(InventoryStockModel.location_id == location_id)
    if item_id:
        stmt = stmt.where(InventoryStockModel.inventory_item_id == item_id)
    stmt = stmt.order_by(InventoryItemModel.sku.asc(), LocationModel.name.asc())

    rows = (await db.execute(stmt)).all()
    return [
        {
            "location_id": st.location_id,
            "location_name": loc.name,
            "inventory_item_id": st.inventory_item_id,
            "sku": it.sku,
            "name": it.name,
            "unit": it.unit,
            "quantity": int(st.quantity),
        }
        for (st, it, loc) in rows
    ]


@router.get("/stock/item/{item_id}", response_model=Dict)
async def get_stock_for_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Return stock for a single inventory item in every location that holds it.
    """
    res = await db.execute(select(InventoryItemModel).where(InventoryItemModel.id == item_id))
    it = res.scalar_one_or_none()
    if not it:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    by_location = await get_stock(location_id=None, item_id=item_id, db=db)
    return {
        "inventory_item_id": it.id,
        "sku": it.sku,
        "name": it.name,
        "unit": it.unit,
        "item_type": it.item_type,
        "total_quantity": sum(row["quantity"] for row in by_location),
        "locations": [
            {"location_id": row["location_id"], "location_name": row["location_name"], "quantity": row["quantity"]}
            for row in by_location
        ],
    }


@router.post("/transfers", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    payload: InventoryTransferCreate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Transfer stock of a simple item between two locations.

    - Creates two movement rows (negative in from_location, positive in to_location).
    - Strict by default: the source must hold at least `quantity`.
      `allow_shortfall` (or ALLOW_NEGATIVE_STOCK) restores the legacy permissive behaviour.
    - Records emptied by the transfer are removed.
    """
    allow_shortfall = _allow_shortfall(payload.allow_shortfall)
    reason = payload.reason or "TRANSFER"
    repo = StockRepository(db)

    try:
        ledger = await repo.load_ledger(item_ids=[payload.inventory_item_id], lock=True)
        result = ledger.transfer(
            payload.inventory_item_id,
            payload.from_location_id,
            payload.to_location_id,
            payload.quantity,
            allow_shortfall=allow_shortfall,
        )
        if not result.ok:
            await db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    f"Not enough quantity in {payload.from_location_id}. "
                    f"Available={result.available} requested={result.quantity}"
                ),
            )

        movements = await repo.save(
            ledger,
            reason=reason,
            source_type=payload.source_type or "transfer",
            source_id=payload.source_id,
        )
        await db.commit()
    except HTTPException:
        raise
    except Exception as e:
        raise await mutation_error(db, "create transfer", e)

    logger.info(
        "[inventory] transferred %s x %s from %s to %s",
        result.quantity, result.item_id, result.from_location_id, result.to_location_id,
    )
    return {
        "status": result.status.value,
        "inventory_item_id": result.item_id,
        "from_location_id": result.from_location_id,
        "to_location_id": result.to_location_id,
        "quantity": result.quantity,
        "reason": reason,
        "from": {"location_id": result.from_location_id, "quantity": result.from_quantity},
        "to": {"location_id": result.to_location_id, "quantity": result.to_quantity},
        "movements": [m.to_schema for m in movements],
    }


@router.post("/receptions", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_reception(
    payload: InventoryReceptionCreate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Receive goods into a location (e.g. a purchase order delivery).

    Each line credits a simple item; a missing stock record is created.
    """
    repo = StockRepository(db)
    try:
        ledger = await repo.load_ledger(item_ids=[line.inventory_item_id for line in payload.lines], lock=True)
        for line in payload.lines:
            ledger.receive(line.inventory_item_id, payload.location_id, line.quantity)
        movements = await repo.save(
            ledger,
            reason=payload.reason or "RECEPTION",
            source_type=payload.source_type or "reception",
            source_id=payload.source_id,
        )
        await db.commit()
    except Exception as e:
        raise await mutation_error(db, "create reception", e)

    logger.info("[inventory] received %d lines into %s", len(payload.lines), payload.location_id)
    return {
        "location_id": payload.location_id,
        "movements": [m.to_schema for m in movements],
        "stock": [
            {"inventory_item_id": r.item_id, "quantity": r.quantity}
            for r in ledger.records(location_id=payload.location_id)
        ],
    }


@router.post("/despatches", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_despatch(
    payload: InventoryDespatchCreate,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Despatch a delivery note out of one location.

    Composite lines deduct every component (component quantity x line quantity).
    The whole note is applied or rejected together.
    """
    allow_shortfall = _allow_shortfall(payload.allow_shortfall)
    repo = StockRepository(db)
    try:
        ledger = await repo.load_ledger(item_ids=[line.inventory_item_id for line in payload.lines], lock=True)
        ledger.despatch(
            payload.location_id,
            [(line.inventory_item_id, line.quantity) for line in payload.lines],
            allow_shortfall=allow_shortfall,
        )
        movements = await repo.save(
            ledger,
            reason=payload.reason or "DESPATCH",
            source_type=payload.source_type or "despatch",
            source_id=payload.source_id,
        )
        await db.commit()
    except Exception as e:
        raise await mutation_error(db, "create despatch", e)

    logger.info("[inventory] despatched %d lines from %s", len(payload.lines), payload.location_id)
    return {
        "location_id": payload.location_id,
        "movements": [m.to_schema for m in movements],
    }


@router.get("/movements", response_model=List[InventoryMovementOut])
async def list_movements(
    location_id: Optional[UUID] = None,
    inventory_item_id: Optional[UUID] = None,
    source_type: Optional[str] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    limit: int = Query(200, ge=1, le=1000),
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(InventoryMovementModel)
    if location_id:
        stmt = stmt.where(InventoryMovementModel.location_id == location_id)
    if inventory_item_id:
        stmt = stmt.where(InventoryMovementModel.inventory_item_id == inventory_item_id)
    if source_type:
        stmt = stmt.where(InventoryMovementModel.source_type == source_type)
    if from_date:
        start_dt = datetime.combine(from_date, time.min, tzinfo=timezone.utc)
        stmt = stmt.where(InventoryMovementModel.created_at >= start_dt)
    if to_date:
        end_excl = datetime.combine(to_date, time.min, tzinfo=timezone.utc) + timedelta(days=1)
        stmt = stmt.where(InventoryMovementModel.created_at < end_excl)

    stmt = stmt.order_by(InventoryMovementModel.created_at.desc()).limit(limit)
    res = await db.execute(stmt)
    return [mv.to_schema for mv in res.scalars().all()]
