# SQLAlchemy ORM models for the rental domain (users, motels, rooms, contracts, invoices,
# maintenance requests, appointments).
# Keep business logic out of models; lifecycle rules live in occupancy.py and services/.
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import declarative_mixin, relationship

from .db import Base

# Status vocabularies (stored as plain strings)
ROOM_STATUSES = ("AVAILABLE", "RENTED", "MAINTENANCE")
CONTRACT_STATUSES = ("ACTIVE", "EXPIRED", "TERMINATED")
MAINTENANCE_STATUSES = ("PENDING", "IN_PROGRESS", "RESOLVED", "CANCELLED")
OPEN_MAINTENANCE_STATUSES = ("PENDING", "IN_PROGRESS")
APPOINTMENT_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED")
INVOICE_STATUSES = ("PENDING", "PAID", "OVERDUE")
ROLES = ("ADMIN", "LANDLORD", "STAFF", "TENANT", "USER")


@declarative_mixin
class TimestampMixin:
    """Common UTC-aware timestamps automatically managed by the database.

    - created_at: set on insert
    - updated_at: set on insert and updated on each modification
    """
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base, TimestampMixin):
    """Application user account.

    Roles:
    - ADMIN: full access
    - LANDLORD: owns motels and manages their rooms, contracts and requests
    - STAFF: operates on behalf of landlords
    - TENANT: party to a contract
    - USER: registered visitor (books viewings)
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, index=True, default="USER")


class Motel(Base, TimestampMixin):
    """Rental property owned by a landlord; contains rooms."""
    __tablename__ = "motels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)

    owner = relationship("User")
    rooms = relationship("Room", back_populates="motel")


class Room(Base, TimestampMixin):
    """A rentable room. status is AVAILABLE, RENTED or MAINTENANCE."""
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    motel_id = Column(Integer, ForeignKey("motels.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    floor = Column(Integer, nullable=True)
    area = Column(Float, nullable=True)
    room_type = Column(String(20), nullable=False, default="SINGLE")
    price = Column(Integer, nullable=False)
    deposit = Column(Integer, nullable=True)
    max_tenants = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="AVAILABLE", index=True)

    motel = relationship("Motel", back_populates="rooms")


class Contract(Base, TimestampMixin):
    """Lease binding one room to a tenant roster.

    Created ACTIVE; later TERMINATED (administrative action) or EXPIRED.
    At most one ACTIVE contract per room: enforced by the partial unique index below
    on SQLite/PostgreSQL, and by a row lock on the room elsewhere.
    """
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    contract_number = Column(String(32), nullable=False, unique=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    rent_price = Column(Integer, nullable=False)
    deposit_amount = Column(Integer, nullable=False, default=0)
    payment_due_day = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")

    room = relationship("Room")
    tenant = relationship("User")
    tenants = relationship(
        "Tenant",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Tenant.id",
    )
    invoices = relationship("Invoice", back_populates="contract", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_contracts_status", "status"),
        Index(
            "uq_contracts_room_active",
            "room_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )


class Tenant(Base):
    """Roster entry of a contract (occupant details); no lifecycle of its own."""
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    identity_card = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(10), nullable=True)
    relationship_to_primary = Column("relationship", String(50), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)

    contract = relationship("Contract", back_populates="tenants")


class MaintenanceRequest(Base, TimestampMixin):
    """Repair ticket for a room.

    Status transitions:
    PENDING -> IN_PROGRESS -> RESOLVED / CANCELLED
       └──────────────────────┘ (skipping IN_PROGRESS is allowed)
    """
    __tablename__ = "maintenance_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default="MEDIUM")
    status = Column(String(20), nullable=False, default="PENDING")
    estimated_cost = Column(Integer, nullable=True)
    actual_cost = Column(Integer, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    room = relationship("Room")
    requester = relationship("User", foreign_keys=[requester_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])

    # Open-request counts per room are taken on every resolution
    __table_args__ = (
        Index("ix_maintenance_room_status", "room_id", "status"),
    )


class Appointment(Base, TimestampMixin):
    """Room viewing booked by a registered user or a guest.

    Status transitions:
    PENDING -> CONFIRMED -> COMPLETED
       └──────────┴──> CANCELLED
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_name = Column(String(255), nullable=True)
    guest_phone = Column(String(20), nullable=True)
    guest_email = Column(String(255), nullable=True)
    visit_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="PENDING")
    note = Column(Text, nullable=True)

    room = relationship("Room")
    user = relationship("User")

    __table_args__ = (
        Index("ix_appointments_room_visit", "room_id", "visit_date"),
    )


class Invoice(Base, TimestampMixin):
    """Monthly bill for a contract: PENDING -> PAID, or OVERDUE once past due."""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_number = Column(String(32), nullable=False, unique=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    billing_month = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True, index=True)
    amount_total = Column(Integer, nullable=False, default=0)
    amount_paid = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    contract = relationship("Contract", back_populates="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    __table_args__ = (
        UniqueConstraint("contract_id", "billing_month", name="uq_invoices_contract_month"),
    )


class InvoiceItem(Base):
    """Line item of an invoice (rent, electricity, water, services)."""
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    service_name = Column(String(255), nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    unit_price = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)
    notes = Column(String(255), nullable=True)

    invoice = relationship("Invoice", back_populates="items")
