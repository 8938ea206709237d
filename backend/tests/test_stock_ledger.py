import pytest

from core.errors import (
    InsufficientStock,
    InvalidComposite,
    InvalidQuantity,
    ItemNotFound,
    LocationNotFound,
    NotStockable,
    SameLocation,
)
from core.stock import Component, ItemType, StockItem, StockLedger, StockRecord, TransferStatus


GPS = StockItem(id="GPS-1", sku="GPS-1", item_type=ItemType.SIMPLE, min_threshold=5, unit_cost_minor=8900)
ANTENNA = StockItem(id="Antenna-1", sku="Antenna-1", item_type=ItemType.SIMPLE, min_threshold=5, unit_cost_minor=1250)
KIT = StockItem(
    id="Kit-1",
    sku="Kit-1",
    item_type=ItemType.COMPOSITE,
    min_threshold=4,
    components=(Component("GPS-1", 2), Component("Antenna-1", 1)),
)
EMPTY_KIT = StockItem(id="Kit-0", sku="Kit-0", item_type=ItemType.COMPOSITE)
SERVICE = StockItem(id="Install", sku="Install", item_type=ItemType.SERVICE)

A, B, C = "Warehouse-A", "Warehouse-B", "Warehouse-C"


def _ledger(*records):
    return StockLedger(
        items=[GPS, ANTENNA, KIT, EMPTY_KIT, SERVICE],
        location_ids=[A, B, C],
        records=[StockRecord(*r) for r in records],
    )


def test_transfer_moves_stock_between_locations():
    ledger = _ledger(("GPS-1", A, 10))

    result = ledger.transfer("GPS-1", A, B, 4)

    assert result.ok
    assert result.status == TransferStatus.OK
    assert (result.from_quantity, result.to_quantity) == (6, 4)
    assert ledger.quantity("GPS-1", A) == 6
    assert ledger.quantity("GPS-1", B) == 4
    assert len(ledger.records(item_id="GPS-1")) == 2


def test_transfer_of_entire_record_prunes_it():
    ledger = _ledger(("GPS-1", A, 6))

    ledger.transfer("GPS-1", A, B, 6)

    assert ledger.get("GPS-1", A) is None
    assert ledger.quantity("GPS-1", B) == 6
    assert ("GPS-1", A) in ledger.touched_keys


@pytest.mark.parametrize("quantity", [1, 4, 9, 10])
def test_transfer_preserves_total_and_moves_exact_quantity(quantity):
    ledger = _ledger(("GPS-1", A, 10), ("GPS-1", C, 2), ("Antenna-1", A, 3))
    total = ledger.stock_level("GPS-1")
    from_before, to_before = ledger.quantity("GPS-1", A), ledger.quantity("GPS-1", B)

    ledger.transfer("GPS-1", A, B, quantity)

    assert ledger.stock_level("GPS-1") == total
    assert ledger.quantity("GPS-1", A) == from_before - quantity
    assert ledger.quantity("GPS-1", B) == to_before + quantity
    assert ledger.quantity("Antenna-1", A) == 3
    assert all(r.quantity > 0 for r in ledger.records())


def test_transfer_records_paired_movements():
    ledger = _ledger(("GPS-1", A, 10))

    ledger.transfer("GPS-1", A, B, 4)

    assert [(m.location_id, m.change) for m in ledger.movements] == [(A, -4), (B, 4)]


def test_strict_transfer_with_shortfall_leaves_ledger_unchanged():
    ledger = _ledger(("GPS-1", A, 3))

    result = ledger.transfer("GPS-1", A, B, 5)

    assert not result.ok
    assert result.status == TransferStatus.INSUFFICIENT_STOCK
    assert result.available == 3
    assert ledger.quantity("GPS-1", A) == 3
    assert ledger.get("GPS-1", B) is None
    assert ledger.touched_keys == frozenset()
    assert ledger.movements == []
    with pytest.raises(InsufficientStock) as exc:
        result.raise_for_status()
    assert exc.value.available == 3
    assert exc.value.requested == 5


def test_strict_transfer_without_source_record_is_a_shortfall():
    ledger = _ledger()

    result = ledger.transfer("GPS-1", A, B, 1)

    assert result.status == TransferStatus.INSUFFICIENT_STOCK
    assert result.available == 0
    assert ledger.records() == []


def test_permissive_transfer_applies_debit_and_prunes_source():
    ledger = _ledger(("GPS-1", A, 3))

    result = ledger.transfer("GPS-1", A, B, 5, allow_shortfall=True)

    assert result.ok
    assert ledger.get("GPS-1", A) is None
    assert ledger.quantity("GPS-1", B) == 5
    assert all(r.quantity > 0 for r in ledger.records())


@pytest.mark.parametrize("quantity", [0, -3, 1.5, True, "2"])
def test_transfer_rejects_invalid_quantity(quantity):
    ledger = _ledger(("GPS-1", A, 10))
    with pytest.raises(InvalidQuantity):
        ledger.transfer("GPS-1", A, B, quantity)


def test_transfer_rejects_same_location():
    ledger = _ledger(("GPS-1", A, 10))
    with pytest.raises(SameLocation):
        ledger.transfer("GPS-1", A, A, 1)


def test_transfer_rejects_unknown_item_and_location():
    ledger = _ledger(("GPS-1", A, 10))
    with pytest.raises(ItemNotFound):
        ledger.transfer("Nope", A, B, 1)
    with pytest.raises(LocationNotFound):
        ledger.transfer("GPS-1", A, "Warehouse-Z", 1)
    with pytest.raises(LocationNotFound):
        ledger.transfer("GPS-1", "Warehouse-Z", A, 1)


@pytest.mark.parametrize("item_id", ["Kit-1", "Install"])
def test_only_simple_items_are_transferred(item_id):
    ledger = _ledger(("GPS-1", A, 10))
    with pytest.raises(NotStockable):
        ledger.transfer(item_id, A, B, 1)


def test_duplicate_records_are_rejected():
    with pytest.raises(ValueError):
        _ledger(("GPS-1", A, 1), ("GPS-1", A, 2))


def test_missing_record_reads_as_zero():
    ledger = _ledger(("GPS-1", A, 10))
    assert ledger.get("GPS-1", B) is None
    assert ledger.quantity("GPS-1", B) == 0
    assert ledger.stock_level("Antenna-1") == 0


def test_stock_by_item_totals_and_single_location():
    ledger = _ledger(("GPS-1", A, 4), ("GPS-1", B, 6), ("Antenna-1", A, 3))
    assert ledger.stock_by_item() == {"GPS-1": 10, "Antenna-1": 3}
    assert ledger.stock_by_item(B) == {"GPS-1": 6}


def test_receive_creates_then_increments_record():
    ledger = _ledger()

    ledger.receive("GPS-1", A, 4)
    record = ledger.receive("GPS-1", A, 3)

    assert record.quantity == 7
    assert ledger.quantity("GPS-1", A) == 7


def test_receive_rejects_kits():
    with pytest.raises(NotStockable):
        _ledger().receive("Kit-1", A, 1)


def test_despatch_kit_deducts_components():
    ledger = _ledger(("GPS-1", A, 10), ("Antenna-1", A, 3))

    movements = ledger.despatch(A, [("Kit-1", 2)])

    assert ledger.quantity("GPS-1", A) == 6
    assert ledger.quantity("Antenna-1", A) == 1
    assert sorted((m.item_id, m.change) for m in movements) == [("Antenna-1", -2), ("GPS-1", -4)]


def test_despatch_is_all_or_nothing():
    ledger = _ledger(("GPS-1", A, 10), ("Antenna-1", A, 3))

    with pytest.raises(InsufficientStock) as exc:
        ledger.despatch(A, [("GPS-1", 1), ("Kit-1", 4)])

    assert exc.value.item_id == "Antenna-1"
    assert ledger.quantity("GPS-1", A) == 10
    assert ledger.quantity("Antenna-1", A) == 3
    assert ledger.movements == []


def test_despatch_aggregates_lines_before_checking():
    ledger = _ledger(("GPS-1", A, 10), ("Antenna-1", A, 3))

    with pytest.raises(InsufficientStock) as exc:
        ledger.despatch(A, [("Kit-1", 1), ("GPS-1", 9)])

    assert exc.value.item_id == "GPS-1"
    assert exc.value.requested == 11


def test_despatch_to_zero_prunes_records():
    ledger = _ledger(("GPS-1", A, 2), ("Antenna-1", A, 1))

    ledger.despatch(A, [("Kit-1", 1)])

    assert ledger.records() == []


def test_permissive_despatch_prunes_negative_records():
    ledger = _ledger(("GPS-1", A, 1))

    ledger.despatch(A, [("GPS-1", 3)], allow_shortfall=True)

    assert ledger.get("GPS-1", A) is None


def test_despatch_of_kit_without_components_fails_fast():
    with pytest.raises(InvalidComposite):
        _ledger().despatch(A, [("Kit-0", 1)])


def test_pop_changes_resets_tracking():
    ledger = _ledger(("GPS-1", A, 6))
    ledger.transfer("GPS-1", A, B, 6)

    touched, movements = ledger.pop_changes()

    assert touched == frozenset({("GPS-1", A), ("GPS-1", B)})
    assert len(movements) == 2
    assert ledger.touched_keys == frozenset()
    assert ledger.movements == []
