"""Errors raised by the work-order, inventory and audit services."""


class FirewoodError(Exception):
    """Base exception; `message` is safe to show to the caller."""

    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class Forbidden(FirewoodError):
    """Raised when the actor's role or capability does not allow the operation."""

    code = "forbidden"


class ValidationError(FirewoodError):
    """Raised when a request is missing a required field or asks for an illegal transition."""

    code = "validation_error"


class NotFound(FirewoodError):
    """Raised when an entity is missing or soft-deleted."""

    code = "not_found"

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is not None:
            message = f"{entity} '{entity_id}' not found"
        else:
            message = f"{entity} not found"
        super().__init__(message)


class InsufficientInventoryError(FirewoodError):
    """Raised when a reservation or consumption would exceed available stock."""

    code = "insufficient_inventory"

    def __init__(self, requested: float, available: float, unit: str = "cords"):
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(
            f"Insufficient inventory: requested {requested:g} {unit}, only {available:g} {unit} available"
        )


class NoTrackedStockError(FirewoodError):
    """Raised when no inventory record can be bound to a work order."""

    code = "no_tracked_stock"

    def __init__(self, detail: str = "No tracked wood inventory item found"):
        super().__init__(detail)


class StoreError(FirewoodError):
    """Raised when the underlying database operation fails."""

    code = "store_error"
