"""
Stock ledger for simple inventory items.

The ledger is a snapshot of StockRecords loaded for one request by
db.inventory.repository.StockRepository. Operations mutate the snapshot and
remember which (item, location) keys they touched so the repository can
write back only the diff. Canonical state lives in the database.

Missing records read as zero: `get()` returns None for an absent record and
`quantity()` maps that to 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

from core.errors import (
    InsufficientStock,
    InvalidComposite,
    InvalidQuantity,
    ItemNotFound,
    LocationNotFound,
    NotStockable,
    SameLocation,
)


class ItemType(str, Enum):
    SIMPLE = "simple"
    COMPOSITE = "composite"
    SERVICE = "service"


@dataclass(frozen=True)
class Component:
    item_id: Hashable
    quantity_required: int


@dataclass(frozen=True)
class StockItem:
    id: Hashable
    sku: str
    item_type: ItemType
    min_threshold: int = 0
    unit_cost_minor: int = 0
    components: Tuple[Component, ...] = ()


@dataclass
class StockRecord:
    item_id: Hashable
    location_id: Hashable
    quantity: int


@dataclass(frozen=True)
class Movement:
    item_id: Hashable
    location_id: Hashable
    change: int


class TransferStatus(str, Enum):
    OK = "ok"
    INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass(frozen=True)
class TransferResult:
    status: TransferStatus
    item_id: Hashable
    from_location_id: Hashable
    to_location_id: Hashable
    quantity: int
    # source quantity before the transfer
    available: int
    from_quantity: int
    to_quantity: int

    @property
    def ok(self) -> bool:
        return self.status == TransferStatus.OK

    def raise_for_status(self) -> "TransferResult":
        if not self.ok:
            raise InsufficientStock(self.item_id, self.from_location_id, self.available, self.quantity)
        return self


StockKey = Tuple[Hashable, Hashable]


def check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(f"quantity must be an integer, got {quantity!r}")
    if quantity <= 0:
        raise InvalidQuantity("quantity must be > 0")
    return quantity


class StockLedger:
    def __init__(
        self,
        items: Iterable[StockItem],
        location_ids: Iterable[Hashable],
        records: Iterable[StockRecord] = (),
    ):
        self._items: Dict[Hashable, StockItem] = {item.id: item for item in items}
        self._location_ids = set(location_ids)
        self._records: Dict[StockKey, StockRecord] = {}
        for record in records:
            key = (record.item_id, record.location_id)
            if key in self._records:
                raise ValueError(f"Duplicate stock record for item {key[0]} at {key[1]}")
            self._records[key] = StockRecord(record.item_id, record.location_id, int(record.quantity))
        self._touched: set = set()
        self._movements: List[Movement] = []

    # -- lookups -----------------------------------------------------------

    def item(self, item_id) -> StockItem:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFound(item_id) from None

    @property
    def items(self) -> List[StockItem]:
        return list(self._items.values())

    def require_location(self, location_id) -> None:
        if location_id not in self._location_ids:
            raise LocationNotFound(location_id)

    def get(self, item_id, location_id) -> Optional[StockRecord]:
        return self._records.get((item_id, location_id))

    def quantity(self, item_id, location_id) -> int:
        record = self.get(item_id, location_id)
        return record.quantity if record is not None else 0

    def stock_level(self, item_id, location_id=None) -> int:
        if location_id is not None:
            return self.quantity(item_id, location_id)
        return sum(r.quantity for r in self._records.values() if r.item_id == item_id)

    def stock_by_item(self, location_id=None) -> Dict[Hashable, int]:
        out: Dict[Hashable, int] = {}
        for record in self._records.values():
            if location_id is not None and record.location_id != location_id:
                continue
            out[record.item_id] = out.get(record.item_id, 0) + record.quantity
        return out

    def records(self, item_id=None, location_id=None) -> List[StockRecord]:
        return [
            r
            for r in self._records.values()
            if (item_id is None or r.item_id == item_id)
            and (location_id is None or r.location_id == location_id)
        ]

    # -- mutations ---------------------------------------------------------

    def _stockable(self, item_id) -> StockItem:
        item = self.item(item_id)
        if item.item_type != ItemType.SIMPLE:
            raise NotStockable(f"{item.sku} is a {item.item_type.value} item and holds no stock")
        return item

    def _adjust(self, item_id, location_id, delta: int) -> None:
        key = (item_id, location_id)
        record = self._records.get(key)
        if record is None:
            record = StockRecord(item_id, location_id, 0)
            self._records[key] = record
        record.quantity += delta
        self._touched.add(key)
        self._movements.append(Movement(item_id, location_id, delta))

    def _prune(self) -> None:
        for key in [k for k, r in self._records.items() if r.quantity <= 0]:
            del self._records[key]
            self._touched.add(key)

    def transfer(
        self,
        item_id,
        from_location_id,
        to_location_id,
        quantity: int,
        *,
        allow_shortfall: bool = False,
    ) -> TransferResult:
        """Move `quantity` units of a simple item between two locations.

        In strict mode a source holding less than `quantity` yields an
        INSUFFICIENT_STOCK result and the ledger is left untouched. With
        `allow_shortfall` the debit is applied regardless (legacy behaviour)
        and the emptied source record is pruned.
        """
        check_quantity(quantity)
        if from_location_id == to_location_id:
            raise SameLocation("Source and destination locations must differ")
        self._stockable(item_id)
        self.require_location(from_location_id)
        self.require_location(to_location_id)

        available = self.quantity(item_id, from_location_id)
        if available < quantity and not allow_shortfall:
            return TransferResult(
                status=TransferStatus.INSUFFICIENT_STOCK,
                item_id=item_id,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                quantity=quantity,
                available=available,
                from_quantity=available,
                to_quantity=self.quantity(item_id, to_location_id),
            )

        self._adjust(item_id, from_location_id, -quantity)
        self._adjust(item_id, to_location_id, quantity)
        self._prune()
        return TransferResult(
            status=TransferStatus.OK,
            item_id=item_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            quantity=quantity,
            available=available,
            from_quantity=self.quantity(item_id, from_location_id),
            to_quantity=self.quantity(item_id, to_location_id),
        )

    def receive(self, item_id, location_id, quantity: int) -> StockRecord:
        """Credit goods received into a location."""
        check_quantity(quantity)
        self._stockable(item_id)
        self.require_location(location_id)
        self._adjust(item_id, location_id, quantity)
        return self._records[(item_id, location_id)]

    def requirements(self, item_id, quantity: int) -> Dict[Hashable, int]:
        """Simple-item quantities consumed by `quantity` units of `item_id`."""
        item = self.item(item_id)
        if item.item_type == ItemType.SERVICE:
            raise NotStockable(f"{item.sku} is a service item and holds no stock")
        if item.item_type == ItemType.SIMPLE:
            return {item_id: quantity}

        if not item.components:
            raise InvalidComposite(f"Composite item {item.sku} has no components")
        out: Dict[Hashable, int] = {}
        for component in item.components:
            if component.quantity_required <= 0:
                raise InvalidComposite(f"Composite item {item.sku} has a component with quantity <= 0")
            self._stockable(component.item_id)
            out[component.item_id] = out.get(component.item_id, 0) + component.quantity_required * quantity
        return out

    def despatch(
        self,
        location_id,
        lines: Iterable[Tuple[Hashable, int]],
        *,
        allow_shortfall: bool = False,
    ) -> List[Movement]:
        """Deduct delivery-note lines from one location, all or nothing.

        Composite lines deduct every component times the line quantity.
        """
        self.require_location(location_id)
        needed: Dict[Hashable, int] = {}
        for item_id, quantity in lines:
            check_quantity(quantity)
            for component_id, amount in self.requirements(item_id, quantity).items():
                needed[component_id] = needed.get(component_id, 0) + amount
        if not needed:
            raise InvalidQuantity("despatch requires at least one line")

        if not allow_shortfall:
            for component_id, amount in needed.items():
                available = self.quantity(component_id, location_id)
                if available < amount:
                    raise InsufficientStock(component_id, location_id, available, amount)

        start = len(self._movements)
        for component_id, amount in needed.items():
            self._adjust(component_id, location_id, -amount)
        self._prune()
        return self._movements[start:]

    # -- change tracking ---------------------------------------------------

    @property
    def movements(self) -> List[Movement]:
        return list(self._movements)

    @property
    def touched_keys(self) -> frozenset:
        return frozenset(self._touched)

    def pop_changes(self) -> Tuple[frozenset, List[Movement]]:
        touched, movements = frozenset(self._touched), self._movements
        self._touched = set()
        self._movements = []
        return touched, movements
