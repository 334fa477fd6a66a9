"""
Delivery calendar entries linked 1:1 to work orders.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import DeliveryEvent, WorkOrder


logger = structlog.get_logger(__name__)

STATUS_COLORS = {
    "draft": "#6b7280",
    "scheduled": "#3b82f6",
    "in_progress": "#f59e0b",
    "delivered": "#10b981",
    "completed": "#059669",
    "cancelled": "#ef4444",
    "issue": "#dc2626",
}


def get_linked_event(db: Session, work_order_id: uuid.UUID) -> Optional[DeliveryEvent]:
    return db.query(DeliveryEvent).filter(
        DeliveryEvent.work_order_id == work_order_id,
        DeliveryEvent.is_deleted == False,  # noqa: E712
    ).first()


def _title(order: WorkOrder) -> str:
    kind = "Pickup" if order.pickup_delivery_type == "pickup" else "Delivery"
    return f"{kind}: {order.client_name} ({order.work_order_number})"


def upsert_for_order(db: Session, order: WorkOrder) -> Optional[DeliveryEvent]:
    """Create the linked event when the order has a date, or move an existing one."""
    if order.scheduled_date is None:
        return None
    event = get_linked_event(db, order.id)
    if event is None:
        event = DeliveryEvent(
            title=_title(order),
            description=order.directions,
            event_type="delivery",
            work_order_id=order.id,
            start_date=order.scheduled_date,
            color_code=STATUS_COLORS.get(order.status),
            assigned_user_ids_json=list(order.assignees_json or []),
        )
        db.add(event)
        db.flush()
        logger.info("delivery_event_created", work_order_id=str(order.id), event_id=str(event.id))
        return event
    if event.start_date != order.scheduled_date:
        event.start_date = order.scheduled_date
        event.updated_at = datetime.now(timezone.utc)
        db.flush()
    return event


def sync_assignees(db: Session, order: WorkOrder) -> Optional[DeliveryEvent]:
    event = get_linked_event(db, order.id)
    if event is None:
        return None
    event.assigned_user_ids_json = list(order.assignees_json or [])
    event.updated_at = datetime.now(timezone.utc)
    db.flush()
    return event


def sync_status(db: Session, order: WorkOrder) -> Optional[DeliveryEvent]:
    """Recolor the linked event; a cancelled order takes its event off the calendar."""
    event = get_linked_event(db, order.id)
    if event is None:
        return None
    event.color_code = STATUS_COLORS.get(order.status, event.color_code)
    if order.status == "cancelled":
        event.is_deleted = True
    event.updated_at = datetime.now(timezone.utc)
    db.flush()
    return event


def remove_for_order(db: Session, order: WorkOrder) -> Optional[DeliveryEvent]:
    event = get_linked_event(db, order.id)
    if event is None:
        return None
    event.is_deleted = True
    event.updated_at = datetime.now(timezone.utc)
    db.flush()
    logger.info("delivery_event_removed", work_order_id=str(order.id), event_id=str(event.id))
    return event
