import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ClientResponse(BaseModel):
    id: uuid.UUID
    name: str
    approval_status: Optional[str] = None

    physical_address_line1: Optional[str] = None
    physical_address_line2: Optional[str] = None
    physical_address_city: Optional[str] = None
    physical_address_state: Optional[str] = None
    physical_address_postal_code: Optional[str] = None
    mailing_address_line1: Optional[str] = None
    mailing_address_line2: Optional[str] = None
    mailing_address_city: Optional[str] = None
    mailing_address_state: Optional[str] = None
    mailing_address_postal_code: Optional[str] = None

    telephone: Optional[str] = None
    email: Optional[str] = None
    directions: Optional[str] = None
    gate_combo: Optional[str] = None
    notes: Optional[str] = None
    default_mileage: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
