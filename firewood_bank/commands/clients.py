from typing import List

from sqlalchemy.orm import Session

from ..schemas.clients import ClientResponse
from ..services import clients as service
from ..services.permissions import ActorContext, has_full_client_access
from ..services.projection import project_clients
from ..services.work_orders import assigned_client_ids
from .base import transaction


def list_clients(db: Session, actor: ActorContext) -> List[ClientResponse]:
    with transaction(db, "list_clients", actor):
        rows = [service.client_to_dict(c) for c in service.list_clients(db)]
        assigned = None
        if not has_full_client_access(actor):
            assigned = assigned_client_ids(db, actor.username)
    return [ClientResponse(**row) for row in project_clients(rows, actor, assigned)]
