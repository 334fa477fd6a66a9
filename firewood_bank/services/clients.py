import uuid
from typing import Dict, List

from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models.models import Client


CLIENT_FIELDS = (
    "id",
    "name",
    "approval_status",
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
    "directions",
    "gate_combo",
    "notes",
    "default_mileage",
    "created_at",
)


def list_clients(db: Session) -> List[Client]:
    return (
        db.query(Client)
        .filter(Client.is_deleted == False)  # noqa: E712
        .order_by(Client.name.asc())
        .all()
    )


def get_client(db: Session, client_id: uuid.UUID) -> Client:
    client = db.query(Client).filter(
        Client.id == client_id,
        Client.is_deleted == False,  # noqa: E712
    ).first()
    if not client:
        raise NotFound("Client", client_id)
    return client


def client_to_dict(client: Client) -> Dict:
    return {f: getattr(client, f) for f in CLIENT_FIELDS}
