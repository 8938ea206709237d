from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator, model_validator


InventoryItemType = Literal["simple", "composite", "service"]
InventoryUnit = Literal["ud", "ml"]


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class ComponentInput(BaseModel):
    item_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def _quantity_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("component quantity must be >= 1")
        return v


def _check_unique_components(components: List[ComponentInput]) -> None:
    ids = [c.item_id for c in components]
    if len(ids) != len(set(ids)):
        raise ValueError("each component may appear only once")


class InventoryItemCreate(BaseModel):
    item_type: InventoryItemType = "simple"
    sku: str
    name: str
    unit: InventoryUnit = "ud"
    family: Optional[str] = None
    supplier: Optional[str] = None
    observations: Optional[str] = None
    unit_cost: Optional[float] = None
    min_threshold: int = 0
    components: List[ComponentInput] = []

    @field_validator("sku", "name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("family", "supplier", "observations")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)

    @field_validator("unit_cost")
    @classmethod
    def _cost_non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("unit_cost must be >= 0")
        return v

    @field_validator("min_threshold")
    @classmethod
    def _threshold_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_threshold must be >= 0")
        return v

    @model_validator(mode="after")
    def _validate_by_type(self):
        if self.item_type == "composite":
            if not self.components:
                raise ValueError("a composite item needs at least one component")
            _check_unique_components(self.components)
        elif self.components:
            raise ValueError("only composite items have components")
        if self.item_type == "service":
            self.unit = "ud"
        return self


class InventoryItemUpdate(BaseModel):
    sku: Optional[str] = None
    name: Optional[str] = None
    unit: Optional[InventoryUnit] = None
    family: Optional[str] = None
    supplier: Optional[str] = None
    observations: Optional[str] = None
    unit_cost: Optional[float] = None
    min_threshold: Optional[int] = None
    components: Optional[List[ComponentInput]] = None

    @field_validator("sku", "name")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = (v or "").strip()
        if not v:
            raise ValueError("cannot be empty")
        return v

    @field_validator("min_threshold")
    @classmethod
    def _threshold_non_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("min_threshold must be >= 0")
        return v

    @field_validator("unit_cost")
    @classmethod
    def _cost_non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("unit_cost must be >= 0")
        return v

    @model_validator(mode="after")
    def _validate_components(self):
        if self.components is not None:
            if not self.components:
                raise ValueError("a composite item needs at least one component")
            _check_unique_components(self.components)
        return self


class InventoryTransferCreate(BaseModel):
    inventory_item_id: UUID
    from_location_id: UUID
    to_location_id: UUID
    quantity: int
    # None -> follow the ALLOW_NEGATIVE_STOCK setting
    allow_shortfall: Optional[bool] = None
    reason: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None

    @field_validator("reason", "source_type", "source_id")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class StockLineInput(BaseModel):
    inventory_item_id: UUID
    quantity: int


class InventoryReceptionCreate(BaseModel):
    location_id: UUID
    lines: List[StockLineInput]
    reason: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None

    @field_validator("reason", "source_type", "source_id")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)

    @field_validator("lines")
    @classmethod
    def _lines_required(cls, v: List[StockLineInput]) -> List[StockLineInput]:
        if not v:
            raise ValueError("at least one line is required")
        return v


class InventoryDespatchCreate(InventoryReceptionCreate):
    allow_shortfall: Optional[bool] = None


class InventoryMovementOut(BaseModel):
    id: UUID
    location_id: UUID
    inventory_item_id: UUID
    change: int
    reason: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    created_at: datetime
