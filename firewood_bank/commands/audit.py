import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from ..schemas.audit import AuditLogResponse
from ..services.audit import get_audit_logs
from ..services.permissions import ActorContext, require_roles
from .base import transaction


def list_audit_logs(
    db: Session,
    actor: ActorContext,
    entity: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    event: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AuditLogResponse]:
    with transaction(db, "list_audit_logs", actor):
        require_roles(actor, "admin", "lead", action="read the audit log")
        limit = max(1, min(limit, 500))
        rows = get_audit_logs(db, entity=entity, entity_id=entity_id, event=event, limit=limit, offset=max(offset, 0))
        return [AuditLogResponse.model_validate(r) for r in rows]
