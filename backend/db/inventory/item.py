import uuid

from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from core.stock import Component, ItemType, StockItem
from ..database import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sku = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)

    # 'simple' | 'composite' | 'service'
    item_type = Column(Text, nullable=False, index=True)
    unit = Column(Text, nullable=False, default="ud")  # 'ud' | 'ml'
    family = Column(Text, nullable=True)
    supplier = Column(Text, nullable=True)
    observations = Column(Text, nullable=True)

    unit_cost_minor = Column(Integer, nullable=True)
    min_threshold = Column(Integer, nullable=False, default=0)

    components = relationship(
        "InventoryItemComponent",
        foreign_keys="InventoryItemComponent.composite_item_id",
        back_populates="composite_item",
        cascade="all, delete-orphan",
        order_by="InventoryItemComponent.sort_order",
        lazy="selectin",
    )

    def to_stock_item(self) -> StockItem:
        return StockItem(
            id=self.id,
            sku=self.sku,
            item_type=ItemType(self.item_type),
            min_threshold=int(self.min_threshold or 0),
            unit_cost_minor=int(self.unit_cost_minor or 0),
            components=tuple(
                Component(item_id=c.component_item_id, quantity_required=int(c.quantity))
                for c in self.components
            ),
        )

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "item_type": self.item_type,
            "unit": self.unit,
            "family": self.family,
            "supplier": self.supplier,
            "observations": self.observations,
            "unit_cost_minor": self.unit_cost_minor,
            "unit_cost": float(self.unit_cost_minor) / 100.0 if self.unit_cost_minor is not None else None,
            "min_threshold": int(self.min_threshold or 0),
            "components": [
                {"item_id": c.component_item_id, "quantity": int(c.quantity)}
                for c in self.components
            ],
        }


class InventoryItemComponent(Base):
    """Bill-of-materials line: `quantity` units of a simple item per kit."""

    __tablename__ = "inventory_item_components"
    __table_args__ = (
        UniqueConstraint("composite_item_id", "component_item_id", name="ux_inventory_item_components_pair"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    composite_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    component_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quantity = Column(Integer, nullable=False)
    sort_order = Column(Integer, nullable=True)

    composite_item = relationship("InventoryItem", foreign_keys=[composite_item_id], back_populates="components")
