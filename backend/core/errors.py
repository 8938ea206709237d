"""Inventory domain errors.

All of these are local validation failures raised synchronously by the
stock ledger and availability calculator. None of them is retried.
"""

from fastapi import HTTPException, status


class InventoryError(Exception):
    """Base class for stock ledger failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidQuantity(InventoryError):
    pass


class SameLocation(InventoryError):
    pass


class ItemNotFound(InventoryError):
    def __init__(self, item_id):
        super().__init__(f"Inventory item {item_id} not found")
        self.item_id = item_id


class LocationNotFound(InventoryError):
    def __init__(self, location_id):
        super().__init__(f"Location {location_id} not found")
        self.location_id = location_id


class NotStockable(InventoryError):
    """Raised when stock is moved for a composite or service item."""


class InvalidComposite(InventoryError):
    """Raised for a composite item whose bill of materials is unusable."""


class InsufficientStock(InventoryError):
    def __init__(self, item_id, location_id, available: int, requested: int):
        super().__init__(
            f"Not enough quantity of {item_id} in {location_id}. "
            f"Available={available} requested={requested}"
        )
        self.item_id = item_id
        self.location_id = location_id
        self.available = available
        self.requested = requested


_HTTP_STATUS = (
    (ItemNotFound, 404),
    (LocationNotFound, 404),
    (InsufficientStock, 409),
    (InvalidComposite, 422),
)


def http_error(exc: InventoryError) -> HTTPException:
    """Translate a domain error into the HTTPException the routers raise."""
    for cls, code in _HTTP_STATUS:
        if isinstance(exc, cls):
            return HTTPException(status_code=code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
