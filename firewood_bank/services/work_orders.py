"""
Work-order lifecycle.

Every status change goes through `transition_status`, which validates the
move against TRANSITIONS and the actor, applies the inventory effect through
the ledger, and only then writes the new status. Callers own the transaction;
a raised error means nothing in it may be committed.
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import Forbidden, NoTrackedStockError, NotFound, ValidationError
from ..models.models import WorkOrder, WorkOrderStatusHistory
from ..schemas.work_orders import WorkOrderCreate, WorkOrderStatus
from . import delivery_events
from .audit import record_event, record_field_change, record_field_changes
from .clients import get_client
from .inventory_ledger import adjust_for_transition, resolve_tracked_stock
from .permissions import ActorContext, can_record_mileage, is_restricted_driver, require_roles
from .projection import is_assigned


logger = structlog.get_logger(__name__)

STATUSES = tuple(s.value for s in WorkOrderStatus)
INITIAL_STATUSES = ("draft", "scheduled")
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})
MILEAGE_REQUIRED_STATUSES = frozenset({"completed", "delivered"})
DRIVER_TARGET_STATUSES = frozenset({"in_progress", "delivered", "issue"})

# "driver" stands for any driver-capable actor
_STAFF = frozenset({"admin", "lead", "staff"})
_STAFF_AND_DRIVERS = _STAFF | {"driver"}
_MANAGERS = frozenset({"admin", "lead"})

TRANSITIONS = {
    ("draft", "scheduled"): _STAFF,
    ("draft", "cancelled"): _STAFF,
    ("scheduled", "in_progress"): _STAFF_AND_DRIVERS,
    ("scheduled", "completed"): _MANAGERS,
    ("scheduled", "cancelled"): _STAFF,
    ("in_progress", "delivered"): _STAFF_AND_DRIVERS,
    ("in_progress", "completed"): _MANAGERS,
    ("in_progress", "issue"): _STAFF_AND_DRIVERS,
    ("in_progress", "cancelled"): _STAFF,
    ("delivered", "completed"): _MANAGERS,
    ("delivered", "in_progress"): _MANAGERS,
    ("delivered", "cancelled"): _MANAGERS,
    ("issue", "in_progress"): _STAFF,
    ("issue", "cancelled"): _MANAGERS,
}

UPDATABLE_FIELDS = (
    "notes",
    "directions",
    "gate_combo",
    "telephone",
    "email",
    "scheduled_date",
    "wood_size_label",
    "delivery_size_label",
    "work_hours",
)

CLIENT_SNAPSHOT_FIELDS = (
    "physical_address_line1",
    "physical_address_line2",
    "physical_address_city",
    "physical_address_state",
    "physical_address_postal_code",
    "mailing_address_line1",
    "mailing_address_line2",
    "mailing_address_city",
    "mailing_address_state",
    "mailing_address_postal_code",
    "telephone",
    "email",
)

CUBIC_FEET_PER_CORD = 128.0
CUBIC_INCHES_PER_CORD = CUBIC_FEET_PER_CORD * 1728.0


def generate_work_order_number(db: Session) -> str:
    """Generate a unique work order number"""
    prefix = settings.work_order_number_prefix
    year = datetime.now().year
    # Get count of work orders this year
    count = db.query(WorkOrder).filter(
        WorkOrder.work_order_number.like(f"{prefix}-{year}-%")
    ).count()
    return f"{prefix}-{year}-{count + 1:05d}"


def resolve_quantity(source) -> float:
    """
    Cords a work order draws from stock.

    Delivery orders use `delivery_size_cords`. Pickup orders use
    `pickup_quantity_cords`, falling back to the measured stack
    (length x width x height in feet or inches).
    """
    fulfillment = getattr(source, "pickup_delivery_type", None) or "delivery"
    fulfillment = getattr(fulfillment, "value", fulfillment)
    if fulfillment != "pickup":
        return float(source.delivery_size_cords or 0)

    if source.pickup_quantity_cords:
        return float(source.pickup_quantity_cords)
    dims = (source.pickup_length, source.pickup_width, source.pickup_height)
    if any(d is None for d in dims):
        return 0.0
    units = getattr(source.pickup_units, "value", source.pickup_units) or "feet"
    volume = dims[0] * dims[1] * dims[2]
    divisor = CUBIC_INCHES_PER_CORD if units == "inches" else CUBIC_FEET_PER_CORD
    return round(volume / divisor, 4)


def normalize_assignees(assignees: Sequence[str]) -> List[str]:
    """Trim, drop blanks, de-duplicate case-insensitively; first spelling and order win."""
    seen = set()
    out = []
    for name in assignees or []:
        name = str(name).strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        out.append(name)
    return out


def get_work_order(db: Session, work_order_id: uuid.UUID, for_update: bool = False) -> WorkOrder:
    query = db.query(WorkOrder).filter(
        WorkOrder.id == work_order_id,
        WorkOrder.is_deleted == False,  # noqa: E712
    )
    if for_update:
        query = query.with_for_update().populate_existing()
    order = query.first()
    if not order:
        raise NotFound("Work order", work_order_id)
    return order


def order_to_dict(order: WorkOrder) -> Dict:
    return {
        "id": order.id,
        "work_order_number": order.work_order_number,
        "client_id": order.client_id,
        "client_name": order.client_name,
        "status": order.status,
        "scheduled_date": order.scheduled_date,
        **{f: getattr(order, f) for f in CLIENT_SNAPSHOT_FIELDS},
        "directions": order.directions,
        "gate_combo": order.gate_combo,
        "notes": order.notes,
        "wood_size_label": order.wood_size_label,
        "delivery_size_label": order.delivery_size_label,
        "delivery_size_cords": order.delivery_size_cords,
        "pickup_delivery_type": order.pickup_delivery_type or "delivery",
        "pickup_quantity_cords": order.pickup_quantity_cords,
        "pickup_length": order.pickup_length,
        "pickup_width": order.pickup_width,
        "pickup_height": order.pickup_height,
        "pickup_units": order.pickup_units,
        "assignees": list(order.assignees_json or []),
        "mileage": order.mileage,
        "work_hours": order.work_hours,
        "paired_order_id": order.paired_order_id,
        "tracked_inventory_item_id": order.tracked_inventory_item_id,
        "created_by_display": order.created_by_display,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _link_pair(db: Session, order: WorkOrder, partner: WorkOrder) -> None:
    if partner.paired_order_id and partner.paired_order_id != order.id:
        # The partner's previous pairing is broken on both sides
        previous = db.query(WorkOrder).filter(WorkOrder.id == partner.paired_order_id).first()
        if previous is not None and previous.paired_order_id == partner.id:
            previous.paired_order_id = None
            logger.info("work_order_pair_replaced", work_order_id=str(previous.id), partner_id=str(partner.id))
    order.paired_order_id = partner.id
    partner.paired_order_id = order.id


def create_work_order(db: Session, payload: WorkOrderCreate, actor: ActorContext) -> WorkOrder:
    require_roles(actor, "admin", "staff", action="create work orders")

    status = payload.status.value
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"New work orders must start as draft or scheduled, not '{status}'")

    client = get_client(db, payload.client_id)

    partner = get_work_order(db, payload.paired_order_id) if payload.paired_order_id else None

    quantity = resolve_quantity(payload)
    tracked_item_id = None
    if quantity > 0:
        try:
            tracked_item_id = resolve_tracked_stock(db).id
        except NoTrackedStockError:
            # Drafts bind on their first reserving transition
            if status != "draft":
                raise

    order = WorkOrder(
        id=uuid.uuid4(),
        work_order_number=generate_work_order_number(db),
        client_id=client.id,
        client_name=client.name,
        **{f: getattr(client, f) for f in CLIENT_SNAPSHOT_FIELDS},
        directions=payload.directions or client.directions,
        gate_combo=payload.gate_combo or client.gate_combo,
        notes=payload.notes,
        scheduled_date=payload.scheduled_date,
        status=status,
        wood_size_label=payload.wood_size_label,
        delivery_size_label=payload.delivery_size_label,
        delivery_size_cords=payload.delivery_size_cords,
        pickup_delivery_type=payload.pickup_delivery_type.value,
        pickup_quantity_cords=payload.pickup_quantity_cords,
        pickup_length=payload.pickup_length,
        pickup_width=payload.pickup_width,
        pickup_height=payload.pickup_height,
        pickup_units=payload.pickup_units.value if payload.pickup_units else None,
        tracked_inventory_item_id=tracked_item_id,
        assignees_json=normalize_assignees(payload.assignees),
        created_by_user_id=actor.user_id,
        created_by_display=actor.username,
    )
    db.add(order)
    db.flush()

    adjust_for_transition(db, "draft", status, quantity, tracked_item_id)

    if partner is not None:
        _link_pair(db, order, partner)
    delivery_events.upsert_for_order(db, order)
    db.flush()

    record_event(db, "create_work_order", actor)
    record_field_change(db, "create_work_order", actor, "work_orders", order.id, "status", None, status)
    logger.info(
        "work_order_created",
        work_order_id=str(order.id),
        work_order_number=order.work_order_number,
        status=status,
        quantity=quantity,
        actor=actor.username,
    )
    return order


def check_mileage(order: WorkOrder, actor: ActorContext, mileage: Optional[float]) -> None:
    if mileage is None:
        return
    if not can_record_mileage(actor):
        raise Forbidden("Only drivers, admins and leads may record mileage")
    if mileage < 0:
        raise ValidationError("Mileage cannot be negative")
    if order.mileage is not None and mileage != order.mileage:
        raise ValidationError(f"Mileage was already recorded as {order.mileage:g} for this trip")


def check_transition(
    order: WorkOrder,
    new_status: str,
    actor: ActorContext,
    mileage: Optional[float] = None,
) -> None:
    """Raise Forbidden or ValidationError unless `actor` may move `order` to `new_status`."""
    if actor.role == "volunteer" and not actor.is_driver_capable:
        raise Forbidden("Volunteers without driver capability cannot change work order status")
    if new_status not in STATUSES:
        raise ValidationError(f"Unknown work order status '{new_status}'")

    current = order.status
    allowed_roles = TRANSITIONS.get((current, new_status))
    if allowed_roles is None:
        if current in TERMINAL_STATUSES:
            raise ValidationError(f"Work order is {current}; no further status changes are allowed")
        raise ValidationError(f"Cannot move a work order from '{current}' to '{new_status}'")

    if is_restricted_driver(actor):
        if new_status not in DRIVER_TARGET_STATUSES or "driver" not in allowed_roles:
            raise Forbidden(f"Drivers cannot move a work order from '{current}' to '{new_status}'")
    elif actor.role not in allowed_roles:
        raise Forbidden(f"Role '{actor.role}' cannot move a work order from '{current}' to '{new_status}'")

    check_mileage(order, actor, mileage)
    if new_status in MILEAGE_REQUIRED_STATUSES and mileage is None and order.mileage is None:
        raise ValidationError(f"Mileage is required to mark a work order {new_status}")


def _record_trip(
    db: Session,
    order: WorkOrder,
    actor: ActorContext,
    mileage: Optional[float],
    work_hours: Optional[float],
) -> WorkOrder:
    """Record mileage or work hours on an order without changing its status."""
    if actor.role == "volunteer" and not actor.is_driver_capable:
        raise Forbidden("Volunteers without driver capability cannot update work orders")
    check_mileage(order, actor, mileage)
    if work_hours is not None and work_hours < 0:
        raise ValidationError("Work hours cannot be negative")

    old_mileage = order.mileage
    old_work_hours = order.work_hours
    if mileage is not None:
        order.mileage = mileage
    if work_hours is not None:
        order.work_hours = work_hours
    if (old_mileage, old_work_hours) == (order.mileage, order.work_hours):
        return order
    order.updated_at = datetime.now(timezone.utc)
    db.flush()

    event = "update_work_order_status"
    record_event(db, event, actor)
    record_field_change(db, event, actor, "work_orders", order.id, "mileage", old_mileage, order.mileage)
    record_field_change(db, event, actor, "work_orders", order.id, "work_hours", old_work_hours, order.work_hours)
    logger.info("work_order_trip_recorded", work_order_id=str(order.id), mileage=order.mileage, actor=actor.username)
    return order


def transition_status(
    db: Session,
    work_order_id: uuid.UUID,
    new_status: str,
    actor: ActorContext,
    mileage: Optional[float] = None,
    work_hours: Optional[float] = None,
    reason: Optional[str] = None,
) -> WorkOrder:
    new_status = getattr(new_status, "value", new_status)
    new_status = str(new_status or "").strip().lower()

    order = get_work_order(db, work_order_id, for_update=True)
    current = order.status

    if is_restricted_driver(actor) and not is_assigned(order.assignees_json, actor.username):
        raise Forbidden("Drivers may only update work orders assigned to them")
    if new_status == current:
        if mileage is None and work_hours is None:
            return order
        return _record_trip(db, order, actor, mileage, work_hours)

    try:
        check_transition(order, new_status, actor, mileage)
    except (Forbidden, ValidationError) as e:
        logger.info(
            "work_order_transition_rejected",
            work_order_id=str(order.id),
            current=current,
            requested=new_status,
            actor=actor.username,
            reason=e.message,
        )
        raise
    if work_hours is not None and work_hours < 0:
        raise ValidationError("Work hours cannot be negative")

    # Inventory first: if it fails nothing on the order has changed
    quantity = resolve_quantity(order)
    item = adjust_for_transition(db, current, new_status, quantity, order.tracked_inventory_item_id)
    if item is not None and order.tracked_inventory_item_id is None:
        order.tracked_inventory_item_id = item.id

    old_mileage = order.mileage
    old_work_hours = order.work_hours
    order.status = new_status
    if mileage is not None:
        order.mileage = mileage
    if work_hours is not None:
        order.work_hours = work_hours
    order.updated_at = datetime.now(timezone.utc)

    db.add(WorkOrderStatusHistory(
        work_order_id=order.id,
        old_status=current,
        new_status=new_status,
        changed_by=actor.username,
        change_reason=reason,
        mileage_recorded=mileage,
        work_hours_recorded=work_hours,
    ))
    delivery_events.sync_status(db, order)
    db.flush()

    event = "update_work_order_status"
    record_event(db, event, actor)
    record_field_change(db, event, actor, "work_orders", order.id, "status", current, new_status)
    record_field_change(db, event, actor, "work_orders", order.id, "mileage", old_mileage, order.mileage)
    record_field_change(db, event, actor, "work_orders", order.id, "work_hours", old_work_hours, order.work_hours)

    logger.info(
        "work_order_transitioned",
        work_order_id=str(order.id),
        previous_status=current,
        status=new_status,
        quantity=quantity,
        actor=actor.username,
    )
    return order


def update_assignees(db: Session, work_order_id: uuid.UUID, assignees: Sequence[str], actor: ActorContext) -> WorkOrder:
    require_roles(actor, "admin", "lead", action="assign work orders")
    order = get_work_order(db, work_order_id, for_update=True)

    old = list(order.assignees_json or [])
    new = normalize_assignees(assignees)
    if new == old:
        return order

    order.assignees_json = new
    order.updated_at = datetime.now(timezone.utc)
    db.flush()
    delivery_events.sync_assignees(db, order)

    record_event(db, "update_work_order_assignees", actor)
    record_field_change(db, "update_work_order_assignees", actor, "work_orders", order.id, "assignees", old, new)
    logger.info("assignees_updated", work_order_id=str(order.id), assignees=new, actor=actor.username)
    return order


def update_work_order(db: Session, work_order_id: uuid.UUID, changes: Dict, actor: ActorContext) -> WorkOrder:
    """Edit descriptive fields; one audit row per field that actually changed."""
    require_roles(actor, "admin", "lead", "staff", action="edit work orders")
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
    if changes.get("work_hours") is not None and changes["work_hours"] < 0:
        raise ValidationError("Work hours cannot be negative")

    order = get_work_order(db, work_order_id, for_update=True)
    before = {f: getattr(order, f) for f in UPDATABLE_FIELDS}
    after = dict(before)
    after.update(changes)

    rescheduled = after["scheduled_date"] != before["scheduled_date"]
    if rescheduled and order.status in TERMINAL_STATUSES:
        raise ValidationError(f"Cannot reschedule a {order.status} work order")
    if before == after:
        return order

    for field in UPDATABLE_FIELDS:
        setattr(order, field, after[field])
    order.updated_at = datetime.now(timezone.utc)
    db.flush()

    if rescheduled:
        if order.scheduled_date is None:
            delivery_events.remove_for_order(db, order)
        else:
            delivery_events.upsert_for_order(db, order)

    record_event(db, "update_work_order", actor)
    record_field_changes(db, "update_work_order", actor, "work_orders", order.id, before, after, fields=UPDATABLE_FIELDS)
    return order


def unlink_pair(db: Session, work_order_id: uuid.UUID, actor: ActorContext) -> WorkOrder:
    """Break a pairing on both sides."""
    require_roles(actor, "admin", "lead", action="unlink paired work orders")
    order = get_work_order(db, work_order_id, for_update=True)
    partner_id = order.paired_order_id
    if partner_id is None:
        return order

    order.paired_order_id = None
    order.updated_at = datetime.now(timezone.utc)
    partner = db.query(WorkOrder).filter(WorkOrder.id == partner_id).first()
    if partner is not None and partner.paired_order_id == order.id:
        partner.paired_order_id = None
        partner.updated_at = datetime.now(timezone.utc)
        record_field_change(db, "unlink_work_order_pair", actor, "work_orders", partner.id, "paired_order_id", order.id, None)
    db.flush()
    record_field_change(db, "unlink_work_order_pair", actor, "work_orders", order.id, "paired_order_id", partner_id, None)
    return order


def delete_work_order(db: Session, work_order_id: uuid.UUID, actor: ActorContext) -> WorkOrder:
    """Soft delete. Open orders are cancelled first so their reservation is released."""
    require_roles(actor, "admin", action="delete work orders")
    order = get_work_order(db, work_order_id, for_update=True)
    if order.status not in TERMINAL_STATUSES:
        transition_status(db, order.id, "cancelled", actor, reason="deleted")
    if order.paired_order_id is not None:
        unlink_pair(db, order.id, actor)

    delivery_events.remove_for_order(db, order)
    order.is_deleted = True
    order.updated_at = datetime.now(timezone.utc)
    db.flush()
    record_event(db, "delete_work_order", actor)
    record_field_change(db, "delete_work_order", actor, "work_orders", order.id, "is_deleted", False, True)
    return order


def list_work_orders(
    db: Session,
    status: Optional[str] = None,
    client_id: Optional[uuid.UUID] = None,
    limit: int = 500,
) -> List[WorkOrder]:
    query = db.query(WorkOrder).filter(WorkOrder.is_deleted == False)  # noqa: E712
    if status:
        query = query.filter(WorkOrder.status == status)
    if client_id:
        query = query.filter(WorkOrder.client_id == client_id)
    return query.order_by(WorkOrder.created_at.desc()).limit(limit).all()


def assigned_client_ids(db: Session, username: str) -> Set[uuid.UUID]:
    """Clients with at least one live work order assigned to `username`."""
    rows = db.query(WorkOrder.client_id, WorkOrder.assignees_json).filter(
        WorkOrder.is_deleted == False,  # noqa: E712
    ).all()
    return {client_id for client_id, assignees in rows if is_assigned(assignees, username)}


def status_history(db: Session, work_order_id: uuid.UUID) -> List[WorkOrderStatusHistory]:
    return (
        db.query(WorkOrderStatusHistory)
        .filter(WorkOrderStatusHistory.work_order_id == work_order_id)
        .order_by(WorkOrderStatusHistory.changed_at.asc())
        .all()
    )
