import uuid
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator


class WorkOrderStatus(str, Enum):
    draft = "draft"
    scheduled = "scheduled"
    in_progress = "in_progress"
    delivered = "delivered"
    issue = "issue"
    completed = "completed"
    cancelled = "cancelled"


class FulfillmentType(str, Enum):
    delivery = "delivery"
    pickup = "pickup"


class PickupUnits(str, Enum):
    feet = "feet"
    inches = "inches"


class WorkOrderCreate(BaseModel):
    client_id: uuid.UUID
    status: WorkOrderStatus = WorkOrderStatus.draft
    scheduled_date: Optional[date] = None
    notes: Optional[str] = None
    directions: Optional[str] = None
    gate_combo: Optional[str] = None
    wood_size_label: Optional[str] = None
    delivery_size_label: Optional[str] = None
    delivery_size_cords: Optional[float] = None
    pickup_delivery_type: FulfillmentType = FulfillmentType.delivery
    pickup_quantity_cords: Optional[float] = None
    pickup_length: Optional[float] = None
    pickup_width: Optional[float] = None
    pickup_height: Optional[float] = None
    pickup_units: Optional[PickupUnits] = None
    assignees: List[str] = []
    paired_order_id: Optional[uuid.UUID] = None

    @field_validator("notes", "directions", "gate_combo", "wood_size_label", "delivery_size_label", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("delivery_size_cords", "pickup_quantity_cords", "pickup_length", "pickup_width", "pickup_height")
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("must not be negative")
        return v


class WorkOrderUpdate(BaseModel):
    """Descriptive fields editable after creation. Sizing is bound to the reservation and is not editable."""
    notes: Optional[str] = None
    directions: Optional[str] = None
    gate_combo: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[str] = None
    scheduled_date: Optional[date] = None
    wood_size_label: Optional[str] = None
    delivery_size_label: Optional[str] = None
    work_hours: Optional[float] = None


class WorkOrderResponse(BaseModel):
    id: uuid.UUID
    work_order_number: str
    client_id: uuid.UUID
    client_name: str
    status: WorkOrderStatus
    scheduled_date: Optional[date] = None

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

    wood_size_label: Optional[str] = None
    delivery_size_label: Optional[str] = None
    delivery_size_cords: Optional[float] = None
    pickup_delivery_type: FulfillmentType = FulfillmentType.delivery
    pickup_quantity_cords: Optional[float] = None
    pickup_length: Optional[float] = None
    pickup_width: Optional[float] = None
    pickup_height: Optional[float] = None
    pickup_units: Optional[str] = None

    assignees: List[str] = []
    mileage: Optional[float] = None
    work_hours: Optional[float] = None
    paired_order_id: Optional[uuid.UUID] = None
    tracked_inventory_item_id: Optional[uuid.UUID] = None
    created_by_display: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusHistoryResponse(BaseModel):
    id: uuid.UUID
    work_order_id: uuid.UUID
    old_status: Optional[str] = None
    new_status: str
    changed_by: Optional[str] = None
    change_reason: Optional[str] = None
    mileage_recorded: Optional[float] = None
    work_hours_recorded: Optional[float] = None
    changed_at: datetime

    class Config:
        from_attributes = True
