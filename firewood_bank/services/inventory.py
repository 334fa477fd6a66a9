import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFound, ValidationError
from ..models.models import InventoryItem
from .audit import record_event, record_field_changes
from .permissions import ActorContext, require_roles


logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = (
    "name",
    "category",
    "quantity_on_hand",
    "unit",
    "reorder_threshold",
    "reorder_amount",
    "notes",
)

DEFAULT_WOOD_STOCK = (
    ("Split Firewood", "%split%firewood%", "Ready-to-deliver split firewood"),
    ("Unsplit Rounds", "%unsplit%round%", "Raw logs/rounds needing splitting"),
)


def list_inventory_items(db: Session) -> List[InventoryItem]:
    return (
        db.query(InventoryItem)
        .filter(InventoryItem.is_deleted == False)  # noqa: E712
        .order_by(InventoryItem.name.asc())
        .all()
    )


def low_stock_items(db: Session) -> List[InventoryItem]:
    return [item for item in list_inventory_items(db) if item.available <= (item.reorder_threshold or 0)]


def get_inventory_item(db: Session, item_id: uuid.UUID, for_update: bool = False) -> InventoryItem:
    query = db.query(InventoryItem).filter(
        InventoryItem.id == item_id,
        InventoryItem.is_deleted == False,  # noqa: E712
    )
    if for_update:
        query = query.with_for_update().populate_existing()
    item = query.first()
    if not item:
        raise NotFound("Inventory item", item_id)
    return item


def create_inventory_item(db: Session, actor: Optional[ActorContext], **fields) -> InventoryItem:
    if actor is not None:
        require_roles(actor, "admin", "lead", "staff", action="create inventory items")
    if not (fields.get("name") or "").strip():
        raise ValidationError("Inventory item name is required")
    if not (fields.get("unit") or "").strip():
        raise ValidationError("Inventory item unit is required")
    if (fields.get("quantity_on_hand") or 0) < 0:
        raise ValidationError("quantity_on_hand cannot be negative")
    item = InventoryItem(**fields)
    item.reserved_quantity = 0
    db.add(item)
    db.flush()
    record_event(db, "create_inventory_item", actor)
    return item


def update_inventory_item(db: Session, item_id: uuid.UUID, changes: Dict, actor: ActorContext) -> InventoryItem:
    """
    Edit descriptive fields and restock. `reserved_quantity` is never editable here;
    it belongs to the ledger.
    """
    require_roles(actor, "admin", "lead", "staff", action="update inventory items")
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")

    item = get_inventory_item(db, item_id, for_update=True)
    before = {f: getattr(item, f) for f in EDITABLE_FIELDS}
    after = dict(before)
    after.update(changes)

    if not (after["name"] or "").strip():
        raise ValidationError("Inventory item name is required")
    if not (after["unit"] or "").strip():
        raise ValidationError("Inventory item unit is required")
    if after["reorder_threshold"] is None or after["reorder_threshold"] < 0:
        raise ValidationError("reorder_threshold cannot be empty or negative")
    if after["quantity_on_hand"] is None or after["quantity_on_hand"] < 0:
        raise ValidationError("quantity_on_hand cannot be negative")
    if after["quantity_on_hand"] < (item.reserved_quantity or 0):
        raise ValidationError(
            f"quantity_on_hand cannot drop below the {item.reserved_quantity:g} {item.unit} already reserved"
        )
    if before == after:
        return item

    for field in EDITABLE_FIELDS:
        setattr(item, field, after[field])
    item.updated_at = datetime.now(timezone.utc)
    db.flush()

    record_event(db, "update_inventory_item", actor)
    record_field_changes(
        db, "update_inventory_item", actor, "inventory_items", item.id, before, after, fields=EDITABLE_FIELDS
    )
    return item


def seed_wood_inventory(db: Session) -> List[InventoryItem]:
    """Create the default wood stock records if they don't exist."""
    created = []
    for name, pattern, notes in DEFAULT_WOOD_STOCK:
        exists = db.query(InventoryItem).filter(
            func.lower(InventoryItem.name).like(pattern),
            InventoryItem.is_deleted == False,  # noqa: E712
        ).first()
        if exists:
            continue
        item = InventoryItem(
            name=name,
            category="Wood",
            unit="cords",
            quantity_on_hand=0,
            reserved_quantity=0,
            reorder_threshold=1,
            reorder_amount=1,
            notes=notes,
        )
        db.add(item)
        created.append(item)
    db.flush()
    if created:
        logger.info("wood_inventory_seeded", items=[i.name for i in created])
    return created
