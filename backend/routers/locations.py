import logging
from typing import Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_async_session
from db.inventory.location import Location as LocationModel
from db.inventory.movement import InventoryMovement as InventoryMovementModel
from db.inventory.stock import InventoryStock as InventoryStockModel
from routers.inventory import get_stock, mutation_error
from schemas.locations import LocationCreate, LocationRead, LocationUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _ensure_unique_name(db: AsyncSession, name: str) -> None:
    existing = await db.execute(select(LocationModel).where(func.lower(LocationModel.name) == name.lower()))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Location already exists")


@router.get("/", response_model=List[LocationRead])
async def list_locations(db: AsyncSession = Depends(get_async_session)):
    res = await db.execute(select(LocationModel).order_by(func.lower(LocationModel.name).asc()))
    return [LocationRead(**loc.to_schema) for loc in res.scalars().all()]


@router.get("/{location_id}", response_model=Dict)
async def get_location(location_id: UUID, db: AsyncSession = Depends(get_async_session)):
    """Location details with the stock it currently holds."""
    res = await db.execute(select(LocationModel).where(LocationModel.id == location_id))
    loc = res.scalar_one_or_none()
    if not loc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")

    out = loc.to_schema
    out["stock"] = await get_stock(location_id=location_id, item_id=None, db=db)
    return out


@router.post("/", response_model=LocationRead, status_code=status.HTTP_201_CREATED)
async def create_location(payload: LocationCreate, db: AsyncSession = Depends(get_async_session)):
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")
    await _ensure_unique_name(db, name)

    m = LocationModel(name=name, description=payload.description)
    try:
        db.add(m)
        await db.commit()
    except Exception as e:
        raise await mutation_error(db, "create location", e, conflict_detail="Location already exists")
    logger.info("[locations] created %s", name)
    return LocationRead(**m.to_schema)


@router.patch("/{location_id}", response_model=LocationRead)
async def update_location(
    location_id: UUID,
    payload: LocationUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    res = await db.execute(select(LocationModel).where(LocationModel.id == location_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")

    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        name = data["name"].strip()
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name is required")
        if name.lower() != m.name.lower():
            await _ensure_unique_name(db, name)
        m.name = name
    if "description" in data:
        m.description = data["description"]

    try:
        await db.commit()
    except Exception as e:
        raise await mutation_error(db, "update location", e, conflict_detail="Location already exists")
    return LocationRead(**m.to_schema)


@router.delete("/{location_id}", response_model=Dict)
async def delete_location(location_id: UUID, db: AsyncSession = Depends(get_async_session)):
    res = await db.execute(select(LocationModel).where(LocationModel.id == location_id))
    m = res.scalar_one_or_none()
    if not m:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")

    res = await db.execute(
        select(func.count(InventoryStockModel.id)).where(InventoryStockModel.location_id == location_id)
    )
    if res.scalar_one() > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Location still holds stock; transfer it out first",
        )

    res = await db.execute(
        select(func.count(InventoryMovementModel.id)).where(InventoryMovementModel.location_id == location_id)
    )
    if res.scalar_one() > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Location has movement history and cannot be deleted",
        )

    await db.delete(m)
    await db.commit()
    logger.info("[locations] deleted %s", m.name)
    return {"ok": True}
