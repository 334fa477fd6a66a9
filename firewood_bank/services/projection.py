"""
Read-time redaction of query results by actor role and capability.

Pure functions over plain dicts: rows are copied, never mutated, and nothing
here touches the database.
"""
from typing import Dict, Iterable, List, Optional, Set

from ..config import settings
from .permissions import ActorContext, has_full_client_access, is_restricted_driver


ADDRESS_FIELDS = (
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
)

# Not needed to execute a delivery
DRIVER_HIDDEN_FIELDS = ("gate_combo", "notes")
VOLUNTEER_HIDDEN_FIELDS = ("telephone", "email", "gate_combo", "notes", "directions") + ADDRESS_FIELDS
MASKED_CONTACT_FIELDS = ("telephone", "email", "gate_combo")


def is_assigned(assignees: Optional[Iterable[str]], username: str) -> bool:
    wanted = username.strip().lower()
    return any(str(a).strip().lower() == wanted for a in (assignees or []))


def _null(row: Dict, fields: Iterable[str]) -> Dict:
    out = dict(row)
    for f in fields:
        if f in out:
            out[f] = None
    return out


def _mask(row: Dict) -> Dict:
    out = _null(row, MASKED_CONTACT_FIELDS)
    for f in ADDRESS_FIELDS:
        if f in out:
            out[f] = settings.redacted_sentinel
    return out


def project_work_orders(rows: Iterable[Dict], actor: ActorContext) -> List[Dict]:
    if is_restricted_driver(actor):
        return [
            _null(row, DRIVER_HIDDEN_FIELDS)
            for row in rows
            if is_assigned(row.get("assignees"), actor.username)
        ]
    if actor.role == "volunteer":
        return [
            _null(row, VOLUNTEER_HIDDEN_FIELDS)
            for row in rows
            if is_assigned(row.get("assignees"), actor.username)
        ]
    if has_full_client_access(actor):
        return [dict(row) for row in rows]
    return [_mask(row) for row in rows]


def project_clients(rows: Iterable[Dict], actor: ActorContext, assigned_client_ids: Optional[Set] = None) -> List[Dict]:
    """
    `assigned_client_ids` are the clients with a work order assigned to the
    actor; only consulted for drivers and volunteers.
    """
    assigned = {str(cid) for cid in (assigned_client_ids or ())}
    if is_restricted_driver(actor):
        return [
            _null(row, DRIVER_HIDDEN_FIELDS + ADDRESS_FIELDS)
            for row in rows
            if str(row.get("id")) in assigned
        ]
    if actor.role == "volunteer":
        return [
            _null(row, VOLUNTEER_HIDDEN_FIELDS)
            for row in rows
            if str(row.get("id")) in assigned
        ]
    if has_full_client_access(actor):
        return [dict(row) for row in rows]
    return [_mask(row) for row in rows]
