import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Float,
    JSON,
    Text,
    Index,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    telephone: Mapped[Optional[str]] = mapped_column(String(50))
    role: Mapped[str] = mapped_column(String(50), nullable=False)  # admin|lead|staff|driver|volunteer
    hipaa_certified: Mapped[bool] = mapped_column(Boolean, default=False)
    is_driver: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Physical address
    physical_address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    physical_address_line2: Mapped[Optional[str]] = mapped_column(String(255))
    physical_address_city: Mapped[str] = mapped_column(String(100), nullable=False)
    physical_address_state: Mapped[str] = mapped_column(String(100), nullable=False)
    physical_address_postal_code: Mapped[str] = mapped_column(String(50), nullable=False)

    # Mailing address
    mailing_address_line1: Mapped[Optional[str]] = mapped_column(String(255))
    mailing_address_line2: Mapped[Optional[str]] = mapped_column(String(255))
    mailing_address_city: Mapped[Optional[str]] = mapped_column(String(100))
    mailing_address_state: Mapped[Optional[str]] = mapped_column(String(100))
    mailing_address_postal_code: Mapped[Optional[str]] = mapped_column(String(50))

    # Contact
    telephone: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    directions: Mapped[Optional[str]] = mapped_column(Text)
    gate_combo: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    approval_status: Mapped[str] = mapped_column(String(50), default="pending")
    default_mileage: Mapped[Optional[float]] = mapped_column(Float)  # Auto-fill for future work orders

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class InventoryItem(Base):
    """Fungible stock record; reserved_quantity is owned by the inventory ledger"""
    __tablename__ = "inventory_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    unit: Mapped[str] = mapped_column(String(50), nullable=False)  # cords|pcs|gal
    quantity_on_hand: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    reserved_quantity: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    reorder_threshold: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    reorder_amount: Mapped[Optional[float]] = mapped_column(Float)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @property
    def available(self) -> float:
        return (self.quantity_on_hand or 0) - (self.reserved_quantity or 0)


class WorkOrder(Base):
    """Delivery or pickup of firewood for a client"""
    __tablename__ = "work_orders"

    id: Mapped[uuid.UUID] = uuid_pk()
    work_order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)  # Auto-generated
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)

    # Client snapshot captured at creation
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    physical_address_line1: Mapped[Optional[str]] = mapped_column(String(255))
    physical_address_line2: Mapped[Optional[str]] = mapped_column(String(255))
    physical_address_city: Mapped[Optional[str]] = mapped_column(String(100))
    physical_address_state: Mapped[Optional[str]] = mapped_column(String(100))
    physical_address_postal_code: Mapped[Optional[str]] = mapped_column(String(50))
    mailing_address_line1: Mapped[Optional[str]] = mapped_column(String(255))
    mailing_address_line2: Mapped[Optional[str]] = mapped_column(String(255))
    mailing_address_city: Mapped[Optional[str]] = mapped_column(String(100))
    mailing_address_state: Mapped[Optional[str]] = mapped_column(String(100))
    mailing_address_postal_code: Mapped[Optional[str]] = mapped_column(String(50))
    telephone: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    directions: Mapped[Optional[str]] = mapped_column(Text)
    gate_combo: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Scheduling
    scheduled_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(50), default="draft", nullable=False, index=True)

    # Sizing
    wood_size_label: Mapped[Optional[str]] = mapped_column(String(100))
    delivery_size_label: Mapped[Optional[str]] = mapped_column(String(100))
    delivery_size_cords: Mapped[Optional[float]] = mapped_column(Float)
    pickup_delivery_type: Mapped[str] = mapped_column(String(20), default="delivery")  # delivery|pickup
    pickup_quantity_cords: Mapped[Optional[float]] = mapped_column(Float)
    pickup_length: Mapped[Optional[float]] = mapped_column(Float)
    pickup_width: Mapped[Optional[float]] = mapped_column(Float)
    pickup_height: Mapped[Optional[float]] = mapped_column(Float)
    pickup_units: Mapped[Optional[str]] = mapped_column(String(20))  # feet|inches

    # Bound once, at creation or on first reservation; never re-resolved
    tracked_inventory_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("inventory_items.id"))

    # Dispatch
    assignees_json: Mapped[Optional[list]] = mapped_column(JSON, default=list)  # Ordered list of usernames
    mileage: Mapped[Optional[float]] = mapped_column(Float)  # Driver-reported, write-once
    work_hours: Mapped[Optional[float]] = mapped_column(Float)
    paired_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("work_orders.id"))

    created_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True))
    created_by_display: Mapped[Optional[str]] = mapped_column(String(255))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index('idx_work_orders_status_scheduled_date', 'status', 'scheduled_date'),
        Index('idx_work_orders_client_status', 'client_id', 'status'),
    )


class DeliveryEvent(Base):
    """Calendar entry, optionally linked 1:1 to a work order"""
    __tablename__ = "delivery_events"

    id: Mapped[uuid.UUID] = uuid_pk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    event_type: Mapped[str] = mapped_column(String(50), default="delivery")  # delivery|meeting|workday
    work_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), ForeignKey("work_orders.id"), index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    color_code: Mapped[Optional[str]] = mapped_column(String(20))
    assigned_user_ids_json: Mapped[Optional[list]] = mapped_column(JSON, default=list)  # Mirrors work order assignees
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class WorkOrderStatusHistory(Base):
    """One row per applied status transition"""
    __tablename__ = "work_order_status_history"

    id: Mapped[uuid.UUID] = uuid_pk()
    work_order_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("work_orders.id"), nullable=False, index=True)
    old_status: Mapped[Optional[str]] = mapped_column(String(50))
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_by: Mapped[Optional[str]] = mapped_column(String(100))
    change_reason: Mapped[Optional[str]] = mapped_column(Text)
    mileage_recorded: Mapped[Optional[float]] = mapped_column(Float)
    work_hours_recorded: Mapped[Optional[float]] = mapped_column(Float)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, index=True)


class AuditLog(Base):
    """Append-only audit log; field columns are set only for field-level changes"""
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    event: Mapped[str] = mapped_column(String(100), nullable=False, index=True)  # create_work_order|update_work_order_status|...
    role: Mapped[Optional[str]] = mapped_column(String(50))
    actor: Mapped[Optional[str]] = mapped_column(String(100))
    entity: Mapped[Optional[str]] = mapped_column(String(50))  # work_orders|inventory_items|delivery_events
    entity_id: Mapped[Optional[str]] = mapped_column(String(64))
    field: Mapped[Optional[str]] = mapped_column(String(100))
    old_value: Mapped[Optional[str]] = mapped_column(Text)
    new_value: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification

    __table_args__ = (
        Index('idx_audit_entity', 'entity', 'entity_id'),
        Index('idx_audit_actor', 'actor', 'created_at'),
    )
