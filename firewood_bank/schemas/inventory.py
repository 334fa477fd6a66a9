import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class InventoryItemBase(BaseModel):
    name: str
    category: Optional[str] = None
    unit: str
    quantity_on_hand: float = 0
    reorder_threshold: float = 0
    reorder_amount: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("category", "notes", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class InventoryItemCreate(InventoryItemBase):
    pass


class InventoryItemUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    quantity_on_hand: Optional[float] = None
    reorder_threshold: Optional[float] = None
    reorder_amount: Optional[float] = None
    notes: Optional[str] = None


class InventoryItemResponse(InventoryItemBase):
    id: uuid.UUID
    reserved_quantity: float
    available: float
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
