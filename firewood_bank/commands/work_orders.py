import uuid
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..errors import NotFound
from ..schemas.work_orders import (
    StatusHistoryResponse,
    WorkOrderCreate,
    WorkOrderResponse,
    WorkOrderUpdate,
)
from ..services import work_orders as service
from ..services.permissions import ActorContext
from ..services.projection import project_work_orders
from .base import transaction


def _visible_row(order, actor: ActorContext) -> dict:
    rows = project_work_orders([service.order_to_dict(order)], actor)
    if not rows:
        raise NotFound("Work order", order.id)
    return rows[0]


def _response(order, actor: ActorContext) -> WorkOrderResponse:
    return WorkOrderResponse(**_visible_row(order, actor))


def create_work_order(db: Session, payload: WorkOrderCreate, actor: ActorContext) -> WorkOrderResponse:
    with transaction(db, "create_work_order", actor):
        order = service.create_work_order(db, payload, actor)
    return _response(order, actor)


def transition_work_order(
    db: Session,
    work_order_id: uuid.UUID,
    new_status: str,
    actor: ActorContext,
    mileage: Optional[float] = None,
    work_hours: Optional[float] = None,
    reason: Optional[str] = None,
) -> WorkOrderResponse:
    with transaction(db, "transition_work_order", actor):
        order = service.transition_status(
            db, work_order_id, new_status, actor, mileage=mileage, work_hours=work_hours, reason=reason
        )
    return _response(order, actor)


def update_work_order_assignees(
    db: Session, work_order_id: uuid.UUID, assignees: Sequence[str], actor: ActorContext
) -> WorkOrderResponse:
    with transaction(db, "update_work_order_assignees", actor):
        order = service.update_assignees(db, work_order_id, assignees, actor)
    return _response(order, actor)


def update_work_order(
    db: Session, work_order_id: uuid.UUID, payload: WorkOrderUpdate, actor: ActorContext
) -> WorkOrderResponse:
    with transaction(db, "update_work_order", actor):
        changes = payload.model_dump(exclude_unset=True)
        order = service.update_work_order(db, work_order_id, changes, actor)
    return _response(order, actor)


def unlink_work_order_pair(db: Session, work_order_id: uuid.UUID, actor: ActorContext) -> WorkOrderResponse:
    with transaction(db, "unlink_work_order_pair", actor):
        order = service.unlink_pair(db, work_order_id, actor)
    return _response(order, actor)


def delete_work_order(db: Session, work_order_id: uuid.UUID, actor: ActorContext) -> dict:
    with transaction(db, "delete_work_order", actor):
        service.delete_work_order(db, work_order_id, actor)
    return {"message": "Work order deleted successfully"}


def list_work_orders(
    db: Session,
    actor: ActorContext,
    status: Optional[str] = None,
    client_id: Optional[uuid.UUID] = None,
) -> List[WorkOrderResponse]:
    with transaction(db, "list_work_orders", actor):
        rows = [service.order_to_dict(o) for o in service.list_work_orders(db, status=status, client_id=client_id)]
    return [WorkOrderResponse(**row) for row in project_work_orders(rows, actor)]


def get_work_order(db: Session, work_order_id: uuid.UUID, actor: ActorContext) -> WorkOrderResponse:
    """Single order through the same projection as the list; invisible orders are NotFound."""
    with transaction(db, "get_work_order", actor):
        row = _visible_row(service.get_work_order(db, work_order_id), actor)
    return WorkOrderResponse(**row)


def get_status_history(db: Session, work_order_id: uuid.UUID, actor: ActorContext) -> List[StatusHistoryResponse]:
    with transaction(db, "get_status_history", actor):
        _visible_row(service.get_work_order(db, work_order_id), actor)
        rows = service.status_history(db, work_order_id)
    return [StatusHistoryResponse.model_validate(r) for r in rows]
