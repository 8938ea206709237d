import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core import availability
from core.errors import InventoryError, http_error
from core.stock import ItemType, StockLedger
from db.database import get_async_session
from db.inventory.item import InventoryItem as InventoryItemModel
from db.inventory.item import InventoryItemComponent as InventoryItemComponentModel
from db.inventory.repository import StockRepository
from db.inventory.stock import InventoryStock as InventoryStockModel
from routers.inventory import mutation_error
from schemas.inventory import ComponentInput, InventoryItemCreate, InventoryItemUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _minor_from_price(price: Optional[float]) -> Optional[int]:
    if price is None:
        return None
    return int(round(float(price) * 100))


def _item_out(model: InventoryItemModel, ledger: StockLedger, location_id: Optional[UUID] = None) -> dict:
    """Item row with stock figures derived from the ledger snapshot."""
    item = model.to_stock_item()
    stock_by_item = ledger.stock_by_item(location_id)
    items_by_id = {i.id: i for i in ledger.items}

    out = model.to_schema
    out["quantity"] = (
        availability.stock_level(item.id, stock_by_item) if item.item_type == ItemType.SIMPLE else None
    )
    out["available_quantity"] = availability.available_quantity(item, stock_by_item)
    out["is_low_stock"] = availability.is_low_stock(item, stock_by_item)
    if item.item_type == ItemType.COMPOSITE:
        cost_minor = availability.composite_unit_cost(item, items_by_id)
        out["kit_cost_minor"] = cost_minor
        out["kit_cost"] = float(cost_minor) / 100.0
    return out


async def _validate_components(
    db: AsyncSession,
    components: Iterable[ComponentInput],
    composite_id: Optional[UUID] = None,
) -> List[InventoryItemComponentModel]:
    components = list(components)
    ids = [c.item_id for c in components]
    if composite_id is not None and composite_id in ids:
        raise HTTPException(status_code=422, detail="A kit cannot contain itself")

    res = await db.execute(select(InventoryItemModel).where(InventoryItemModel.id.in_(ids)))
    found = {it.id: it for it in res.scalars().all()}
    for c in components:
        it = found.get(c.item_id)
        if not it:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Component item {c.item_id} not found")
        if it.item_type != ItemType.SIMPLE.value:
            raise HTTPException(
                status_code=422,
                detail=f"Component {it.sku} must be a simple item",
            )
    return [
        InventoryItemComponentModel(component_item_id=c.item_id, quantity=c.quantity, sort_order=i)
        for i, c in enumerate(components)
    ]


async def _ensure_unique_sku(db: AsyncSession, sku: str, exclude_id: Optional[UUID] = None) -> None:
    stmt = select(InventoryItemModel).where(func.lower(InventoryItemModel.sku) == sku.lower())
    if exclude_id is not None:
        stmt = stmt.where(InventoryItemModel.id != exclude_id)
    if (await db.execute(stmt)).scalars().first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"SKU {sku} already exists")


async def _load_item(db: AsyncSession, item_id: UUID) -> InventoryItemModel:
    res = await db.execute(select(InventoryItemModel).where(InventoryItemModel.id == item_id))
    model = res.scalar_one_or_none()
    if not model:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return model


@router.get("/", response_model=List[Dict])
async def list_inventory_items(
    item_type: Optional[str] = None,
    q: Optional[str] = None,
    location_id: Optional[UUID] = None,
    low_stock_only: bool = False,
    db: AsyncSession = Depends(get_async_session),
):
    """
    List inventory items with their stock figures.

    - quantity: total across locations (or at `location_id`) for simple items.
    - available_quantity: quantity for simple items, buildable kits for composites.
    """
    repo = StockRepository(db)
    try:
        ledger = await repo.load_ledger(location_id=location_id)
        rows = [_item_out(model, ledger, location_id) for model in repo.items.values()]
    except InventoryError as e:
        raise http_error(e)

    if item_type:
        rows = [r for r in rows if r["item_type"] == item_type]
    if q:
        qq = q.strip().lower()
        rows = [r for r in rows if qq in r["name"].lower() or qq in r["sku"].lower()]
    if low_stock_only:
        rows = [r for r in rows if r["is_low_stock"]]
    return sorted(rows, key=lambda r: r["name"].lower())


@router.get("/{item_id}", response_model=Dict)
async def get_inventory_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    await _load_item(db, item_id)
    repo = StockRepository(db)
    try:
        ledger = await repo.load_ledger(item_ids=[item_id])
        return _item_out(repo.items[item_id], ledger)
    except InventoryError as e:
        raise http_error(e)


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    payload: InventoryItemCreate,
    db: AsyncSession = Depends(get_async_session),
):
    await _ensure_unique_sku(db, payload.sku)
    components = []
    if payload.item_type == ItemType.COMPOSITE.value:
        components = await _validate_components(db, payload.components)

    model = InventoryItemModel(
        sku=payload.sku,
        name=payload.name,
        item_type=payload.item_type,
        unit=payload.unit,
        family=payload.family,
        supplier=payload.supplier,
        observations=payload.observations,
        unit_cost_minor=_minor_from_price(payload.unit_cost) if payload.item_type == ItemType.SIMPLE.value else None,
        min_threshold=payload.min_threshold,
        components=components,
    )
    try:
        db.add(model)
        await db.commit()
    except Exception as e:
        raise await mutation_error(
            db, "create inventory item", e, conflict_detail=f"SKU {payload.sku} already exists"
        )
    logger.info("[inventory] created %s item %s", model.item_type, model.sku)
    return model.to_schema


@router.patch("/{item_id}", response_model=Dict)
async def update_inventory_item(
    item_id: UUID,
    payload: InventoryItemUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    model = await _load_item(db, item_id)

    new_components = None
    if payload.components is not None:
        if model.item_type != ItemType.COMPOSITE.value:
            raise HTTPException(
                status_code=422,
                detail="Only composite items have components",
            )
        new_components = await _validate_components(db, payload.components, composite_id=item_id)

    data = payload.model_dump(exclude_unset=True)
    if data.get("sku") is not None:
        await _ensure_unique_sku(db, data["sku"], exclude_id=item_id)
        model.sku = data["sku"]
    if data.get("name") is not None:
        model.name = data["name"]
    if data.get("unit") is not None and model.item_type != ItemType.SERVICE.value:
        model.unit = data["unit"]
    for field in ("family", "supplier", "observations"):
        if field in data:
            setattr(model, field, (data[field] or "").strip() or None)
    if data.get("min_threshold") is not None:
        model.min_threshold = data["min_threshold"]
    if "unit_cost" in data and model.item_type == ItemType.SIMPLE.value:
        model.unit_cost_minor = _minor_from_price(data["unit_cost"])

    try:
        if new_components is not None:
            # Flush the removals first; the (kit, component) pair is unique.
            model.components.clear()
            await db.flush()
            model.components.extend(new_components)
        await db.commit()
    except Exception as e:
        raise await mutation_error(db, "update inventory item", e, conflict_detail="SKU already exists")
    return model.to_schema


@router.delete("/{item_id}", response_model=Dict)
async def delete_inventory_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    model = await _load_item(db, item_id)

    res = await db.execute(
        select(InventoryItemModel.sku)
        .join(InventoryItemComponentModel, InventoryItemComponentModel.composite_item_id == InventoryItemModel.id)
        .where(InventoryItemComponentModel.component_item_id == item_id)
    )
    kits = res.scalars().all()
    if kits:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Item is a component of: {', '.join(sorted(kits))}",
        )

    res = await db.execute(
        select(func.coalesce(func.sum(InventoryStockModel.quantity), 0))
        .where(InventoryStockModel.inventory_item_id == item_id)
    )
    on_hand = int(res.scalar_one())
    if on_hand > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Item still holds {on_hand} units in stock",
        )

    await db.delete(model)
    await db.commit()
    logger.info("[inventory] deleted item %s", model.sku)
    return {"ok": True}
