import uuid
from typing import List

from sqlalchemy.orm import Session

from ..schemas.inventory import InventoryItemResponse, InventoryItemUpdate
from ..services import inventory as service
from ..services.permissions import ActorContext
from .base import transaction


def list_inventory_items(db: Session, actor: ActorContext) -> List[InventoryItemResponse]:
    with transaction(db, "list_inventory_items", actor):
        items = service.list_inventory_items(db)
        return [InventoryItemResponse.model_validate(i) for i in items]


def low_stock_items(db: Session, actor: ActorContext) -> List[InventoryItemResponse]:
    with transaction(db, "low_stock_items", actor):
        items = service.low_stock_items(db)
        return [InventoryItemResponse.model_validate(i) for i in items]


def update_inventory_item(
    db: Session, item_id: uuid.UUID, payload: InventoryItemUpdate, actor: ActorContext
) -> InventoryItemResponse:
    with transaction(db, "update_inventory_item", actor):
        item = service.update_inventory_item(db, item_id, payload.model_dump(exclude_unset=True), actor)
    return InventoryItemResponse.model_validate(item)
