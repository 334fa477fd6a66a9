"""
Inventory ledger for the tracked wood stock.

Owns the reservation/consumption invariant `0 <= reserved <= on_hand` for a
single fungible quantity (cords). All reads and writes happen inside the
caller's transaction; the stock row is selected FOR UPDATE so two concurrent
reservations cannot both pass the availability check.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import InsufficientInventoryError, NoTrackedStockError
from ..models.models import InventoryItem


logger = structlog.get_logger(__name__)

RESERVING_STATUSES = frozenset({"scheduled", "in_progress"})
CONSUMING_STATUS = "completed"

# Tolerance for float cords (e.g. a half F250 load is 0.33)
EPSILON = 1e-9


def resolve_tracked_stock(db: Session) -> InventoryItem:
    """
    Find the stock record work orders draw from.

    Uses the configured TRACKED_STOCK_ITEM_ID when set; otherwise the oldest
    non-deleted item whose unit or name matches one of the stock match terms.
    """
    if settings.tracked_stock_item_id:
        try:
            item_id = uuid.UUID(str(settings.tracked_stock_item_id))
        except ValueError:
            raise NoTrackedStockError(f"Configured stock item id '{settings.tracked_stock_item_id}' is not a valid id")
        return load_stock(db, item_id)

    terms = [t.lower() for t in settings.stock_match_terms if t]
    conditions = []
    for term in terms:
        like = f"%{term}%"
        conditions.append(func.lower(InventoryItem.unit).like(like))
        conditions.append(func.lower(InventoryItem.name).like(like))
    query = db.query(InventoryItem).filter(InventoryItem.is_deleted == False)  # noqa: E712
    if conditions:
        query = query.filter(or_(*conditions))
    item = query.order_by(InventoryItem.created_at.asc()).first()
    if not item:
        raise NoTrackedStockError()
    return item


def load_stock(db: Session, item_id: uuid.UUID, for_update: bool = False) -> InventoryItem:
    query = db.query(InventoryItem).filter(
        InventoryItem.id == item_id,
        InventoryItem.is_deleted == False,  # noqa: E712
    )
    if for_update:
        # Re-read inside this transaction
        query = query.with_for_update().populate_existing()
    item = query.first()
    if not item:
        raise NoTrackedStockError(f"Tracked inventory item '{item_id}' not found")
    return item


def reservation_delta(previous_status: str, next_status: str, quantity: float) -> float:
    was_reserving = previous_status in RESERVING_STATUSES
    is_reserving = next_status in RESERVING_STATUSES
    if is_reserving and not was_reserving:
        return quantity
    if was_reserving and not is_reserving:
        return -quantity
    return 0.0


def adjust_for_transition(
    db: Session,
    previous_status: str,
    next_status: str,
    quantity: Optional[float],
    item_id: Optional[uuid.UUID] = None,
) -> Optional[InventoryItem]:
    """
    Apply the inventory effect of a work-order status change.

    Entering a reserving status reserves `quantity`; leaving one releases it.
    Moving to `completed` also consumes `quantity` from on-hand stock.

    Returns the adjusted item, or None when there was nothing to do.
    Raises InsufficientInventoryError if the result would over-commit stock and
    NoTrackedStockError if the stock record cannot be found.
    """
    if quantity is None or quantity <= 0:
        return None
    if previous_status == next_status:
        return None

    delta = reservation_delta(previous_status, next_status, quantity)
    consumed = quantity if next_status == CONSUMING_STATUS else 0.0
    if delta == 0 and consumed == 0:
        return None

    if item_id is None:
        item_id = resolve_tracked_stock(db).id
    item = load_stock(db, item_id, for_update=True)

    on_hand = item.quantity_on_hand or 0.0
    reserved = item.reserved_quantity or 0.0
    new_reserved = reserved + delta
    new_on_hand = on_hand - consumed

    if delta > 0 or consumed > 0:
        # Stock released by this same transition counts towards what it may consume
        available = on_hand - reserved - min(delta, 0.0)
        needed = max(delta, 0.0) + consumed
        if needed > available + EPSILON:
            logger.info(
                "inventory_rejected",
                item_id=str(item.id),
                previous_status=previous_status,
                next_status=next_status,
                requested=needed,
                available=available,
            )
            raise InsufficientInventoryError(needed, max(available, 0.0), item.unit)

    if new_reserved < -EPSILON or new_on_hand < -EPSILON:
        # Unreachable while the invariant holds
        logger.error(
            "inventory_invariant_breach",
            item_id=str(item.id),
            reserved=new_reserved,
            on_hand=new_on_hand,
        )
    item.reserved_quantity = max(new_reserved, 0.0)
    item.quantity_on_hand = max(new_on_hand, 0.0)
    item.updated_at = datetime.now(timezone.utc)
    db.flush()

    logger.info(
        "inventory_adjusted",
        item_id=str(item.id),
        previous_status=previous_status,
        next_status=next_status,
        quantity=quantity,
        reserved=item.reserved_quantity,
        on_hand=item.quantity_on_hand,
    )
    return item
