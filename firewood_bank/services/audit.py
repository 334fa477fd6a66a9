"""
Audit logging service.
Append-only audit log with integrity hashing and per-field diffs.

Rows are written inside the caller's transaction under a SAVEPOINT, so they
commit or roll back together with the change they describe. A failed audit
write is logged and swallowed; it never fails the business operation.
"""
import hashlib
import json
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import AuditLog
from .permissions import ActorContext


logger = structlog.get_logger(__name__)


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, default=str)
    return str(value)


def _integrity_hash(row: AuditLog, secret: Optional[str]) -> Optional[str]:
    if not secret:
        return None
    canonical_data = {
        "event": row.event,
        "role": row.role,
        "actor": row.actor,
        "entity": row.entity,
        "entity_id": row.entity_id,
        "field": row.field,
        "old_value": row.old_value,
        "new_value": row.new_value,
        "created_at": row.created_at.replace(tzinfo=None).isoformat() if row.created_at else None,
    }
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def _append(db: Session, **fields) -> Optional[AuditLog]:
    row = AuditLog(id=uuid.uuid4(), created_at=datetime.utcnow(), **fields)
    row.integrity_hash = _integrity_hash(row, settings.audit_integrity_secret)
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except Exception as e:
        logger.warning(
            "audit_write_failed",
            audit_event=fields.get("event"),
            entity=fields.get("entity"),
            entity_id=fields.get("entity_id"),
            field=fields.get("field"),
            error=str(e),
        )
        return None
    return row


def _actor_fields(actor: Optional[ActorContext]) -> Dict[str, Optional[str]]:
    if actor is None:
        return {"role": "system", "actor": "system"}
    return {"role": actor.role, "actor": actor.username}


def record_event(db: Session, event: str, actor: Optional[ActorContext]) -> Optional[AuditLog]:
    """Append an event row with no field payload. Best-effort."""
    return _append(db, event=event, **_actor_fields(actor))


def record_field_change(
    db: Session,
    event: str,
    actor: Optional[ActorContext],
    entity: str,
    entity_id: Any,
    field: str,
    old_value: Any,
    new_value: Any,
) -> Optional[AuditLog]:
    """
    Append one row describing a single field change.

    No-op (returns None) when the old and new values are equal, including
    when both are None.
    """
    if old_value == new_value:
        return None
    return _append(
        db,
        event=event,
        entity=entity,
        entity_id=str(entity_id),
        field=field,
        old_value=_to_text(old_value),
        new_value=_to_text(new_value),
        **_actor_fields(actor),
    )


def compute_diff(before: Dict, after: Dict, fields: Optional[Iterable[str]] = None) -> Dict:
    """
    Compute a diff between two dictionaries.

    Args:
        before: Before state
        after: After state
        fields: Restrict the comparison to these keys, in this order

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    if fields is None:
        fields = sorted(set(before.keys()) | set(after.keys()))

    for key in fields:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff


def record_field_changes(
    db: Session,
    event: str,
    actor: Optional[ActorContext],
    entity: str,
    entity_id: Any,
    before: Dict,
    after: Dict,
    fields: Optional[Iterable[str]] = None,
) -> List[AuditLog]:
    """Diff every field and append one row per changed field, all sharing event/entity/entity_id."""
    rows = []
    for field, change in compute_diff(before, after, fields).items():
        row = record_field_change(db, event, actor, entity, entity_id, field, change["before"], change["after"])
        if row is not None:
            rows.append(row)
    return rows


def get_audit_logs(
    db: Session,
    entity: Optional[str] = None,
    entity_id: Optional[Any] = None,
    event: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[AuditLog]:
    """
    Get audit logs with optional filtering, newest first.
    """
    query = db.query(AuditLog)

    if entity:
        query = query.filter(AuditLog.entity == entity)

    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == str(entity_id))

    if event:
        query = query.filter(AuditLog.event == event)

    query = query.order_by(AuditLog.created_at.desc())
    query = query.limit(limit).offset(offset)

    return query.all()


def verify_audit_integrity(row: AuditLog, secret: Optional[str] = None) -> bool:
    """Recompute the integrity hash of a stored row and compare."""
    if secret is None:
        secret = settings.audit_integrity_secret
    if not row.integrity_hash:
        return not secret
    return _integrity_hash(row, secret) == row.integrity_hash
