"""
Composite availability and low-stock flags.

Every function here is pure over a `stock_by_item` mapping (item id ->
quantity), built either across all locations or for a single location by
StockLedger.stock_by_item(). Items absent from the mapping hold zero stock.
"""

from typing import Dict, Hashable, Iterable, List, Mapping, Optional

from core.errors import InvalidComposite, ItemNotFound
from core.stock import ItemType, StockItem


def stock_level(item_id, stock_by_item: Mapping[Hashable, int]) -> int:
    return int(stock_by_item.get(item_id, 0))


def buildable_quantity(item: StockItem, stock_by_item: Mapping[Hashable, int]) -> int:
    """Number of kits constructible from current component stock."""
    if item.item_type != ItemType.COMPOSITE:
        raise InvalidComposite(f"{item.sku} is not a composite item")
    if not item.components:
        raise InvalidComposite(f"Composite item {item.sku} has no components")

    per_component = []
    for component in item.components:
        if component.quantity_required <= 0:
            raise InvalidComposite(f"Composite item {item.sku} has a component with quantity <= 0")
        per_component.append(stock_level(component.item_id, stock_by_item) // component.quantity_required)
    return min(per_component)


def available_quantity(item: StockItem, stock_by_item: Mapping[Hashable, int]) -> Optional[int]:
    if item.item_type == ItemType.SIMPLE:
        return stock_level(item.id, stock_by_item)
    if item.item_type == ItemType.COMPOSITE:
        return buildable_quantity(item, stock_by_item)
    return None


def is_low_stock(item: StockItem, stock_by_item: Mapping[Hashable, int]) -> bool:
    available = available_quantity(item, stock_by_item)
    if available is None:
        return False
    return available < item.min_threshold


def composite_unit_cost(item: StockItem, items_by_id: Mapping[Hashable, StockItem]) -> int:
    """Kit cost in minor units: sum of component unit cost times quantity."""
    if item.item_type != ItemType.COMPOSITE:
        return item.unit_cost_minor
    total = 0
    for component in item.components:
        component_item = items_by_id.get(component.item_id)
        if component_item is None:
            raise ItemNotFound(component.item_id)
        total += component_item.unit_cost_minor * component.quantity_required
    return total


def component_breakdown(item: StockItem, stock_by_item: Mapping[Hashable, int]) -> List[Dict]:
    """Per-component view of a kit; the smallest `buildable` is the bottleneck."""
    out = []
    for component in item.components:
        level = stock_level(component.item_id, stock_by_item)
        out.append(
            {
                "component_item_id": component.item_id,
                "quantity_required": component.quantity_required,
                "stock_level": level,
                "buildable": level // component.quantity_required if component.quantity_required > 0 else 0,
            }
        )
    return out


def low_stock_items(items: Iterable[StockItem], stock_by_item: Mapping[Hashable, int]) -> List[StockItem]:
    return [item for item in items if is_low_stock(item, stock_by_item)]
