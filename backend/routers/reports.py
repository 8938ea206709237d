"""
Read-only stock reports: availability (buildable kits), low stock and
inventory value. Every figure in one response comes from a single ledger
snapshot; nothing is cached between requests.
"""

from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core import availability
from core.errors import InventoryError, http_error
from core.stock import ItemType, StockLedger
from db.database import get_async_session
from db.inventory.item import InventoryItem as InventoryItemModel
from db.inventory.repository import StockRepository

router = APIRouter()


def _availability_row(model: InventoryItemModel, ledger: StockLedger, location_id: Optional[UUID]) -> dict:
    item = model.to_stock_item()
    stock_by_item = ledger.stock_by_item(location_id)
    available = availability.available_quantity(item, stock_by_item)
    return {
        "inventory_item_id": model.id,
        "sku": model.sku,
        "name": model.name,
        "item_type": model.item_type,
        "location_id": location_id,
        "available_quantity": available,
        "min_threshold": item.min_threshold,
        "is_low_stock": availability.is_low_stock(item, stock_by_item),
        "shortfall": max(item.min_threshold - available, 0) if available is not None else None,
    }


async def _snapshot(db: AsyncSession, location_id: Optional[UUID], item_ids=None):
    repo = StockRepository(db)
    try:
        ledger = await repo.load_ledger(item_ids=item_ids, location_id=location_id)
    except InventoryError as e:
        raise http_error(e)
    return repo, ledger


@router.get("/availability", response_model=List[Dict])
async def availability_report(
    location_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Available units per stocked item; composites report buildable kits."""
    repo, ledger = await _snapshot(db, location_id)
    try:
        rows = [
            _availability_row(model, ledger, location_id)
            for model in repo.items.values()
            if model.item_type != ItemType.SERVICE.value
        ]
    except InventoryError as e:
        raise http_error(e)
    return sorted(rows, key=lambda r: r["sku"])


@router.get("/availability/{item_id}", response_model=Dict)
async def item_availability(
    item_id: UUID,
    location_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Availability of one item; kits include the per-component breakdown."""
    repo, ledger = await _snapshot(db, location_id, item_ids=[item_id])
    model = repo.items.get(item_id)
    if not model:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")

    try:
        out = _availability_row(model, ledger, location_id)
    except InventoryError as e:
        raise http_error(e)

    if model.item_type == ItemType.COMPOSITE.value:
        breakdown = availability.component_breakdown(model.to_stock_item(), ledger.stock_by_item(location_id))
        for row in breakdown:
            component = repo.items.get(row["component_item_id"])
            row["sku"] = component.sku if component else None
        out["components"] = breakdown
    return out


@router.get("/low-stock", response_model=List[Dict])
async def low_stock_report(
    location_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_async_session),
):
    rows = await availability_report(location_id=location_id, db=db)
    return [r for r in rows if r["is_low_stock"]]


@router.get("/inventory-value", response_model=Dict)
async def inventory_value_report(
    location_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Stock value per simple item (quantity x unit cost), in minor units and as a float."""
    repo, ledger = await _snapshot(db, location_id)
    stock_by_item = ledger.stock_by_item(location_id)

    rows = []
    for model in repo.items.values():
        if model.item_type != ItemType.SIMPLE.value:
            continue
        quantity = availability.stock_level(model.id, stock_by_item)
        unit_cost_minor = int(model.unit_cost_minor or 0)
        rows.append(
            {
                "inventory_item_id": model.id,
                "sku": model.sku,
                "name": model.name,
                "supplier": model.supplier,
                "quantity": quantity,
                "unit_cost_minor": unit_cost_minor,
                "total_value_minor": quantity * unit_cost_minor,
                "total_value": float(quantity * unit_cost_minor) / 100.0,
            }
        )
    rows.sort(key=lambda r: r["total_value_minor"], reverse=True)
    total_minor = sum(r["total_value_minor"] for r in rows)
    return {
        "location_id": location_id,
        "items": rows,
        "total_value_minor": total_minor,
        "total_value": float(total_minor) / 100.0,
    }
