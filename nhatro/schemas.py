# Pydantic models (request/response DTOs) used by the API layer.
# Fields are snake_case in Python and camelCase on the wire; business rules live in services.
from datetime import date, datetime, timezone
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

Role = Literal["ADMIN", "LANDLORD", "STAFF", "TENANT", "USER"]
RoomStatus = Literal["AVAILABLE", "RENTED", "MAINTENANCE"]
RoomType = Literal["SINGLE", "DOUBLE", "FAMILY", "STUDIO"]
ContractStatus = Literal["ACTIVE", "EXPIRED", "TERMINATED"]
MaintenanceStatus = Literal["PENDING", "IN_PROGRESS", "RESOLVED", "CANCELLED"]
MaintenancePriority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
AppointmentStatus = Literal["PENDING", "CONFIRMED", "CANCELLED", "COMPLETED"]
InvoiceStatus = Literal["PENDING", "PAID", "OVERDUE"]
PaymentMethod = Literal["CASH", "BANK_TRANSFER", "MOMO", "VNPAY", "ZALOPAY"]

# Vietnamese mobile numbers: 10 digits starting 03/05/07/08/09
PHONE_PATTERN = r"^0[35789][0-9]{8}$"


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _strip(v):
    if isinstance(v, str):
        v = v.strip()
    return v


def _normalize_email(v):
    if isinstance(v, str):
        v = v.strip().lower()
    return v


# Envelopes
class Envelope(ApiModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(ApiModel, Generic[T]):
    success: bool = True
    data: List[T]
    pagination: Pagination


# Users and authentication
class UserCreate(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    # Self-registration only creates visitors and landlords; other roles are assigned by an admin
    role: Literal["USER", "LANDLORD"] = "USER"

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_full_name(cls, v):
        return _strip(v)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return _normalize_email(v)


class UserRead(ApiModel):
    id: int
    email: EmailStr
    full_name: str
    phone: Optional[str] = None
    role: Role


class UserSummary(ApiModel):
    id: int
    full_name: str
    phone: Optional[str] = None


class TokenResponse(ApiModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


# Motels and rooms
class MotelCreate(ApiModel):
    name: str = Field(..., min_length=2, max_length=255)
    address: str = Field(..., min_length=5, max_length=500)
    description: Optional[str] = None

    @field_validator("name", "address", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class MotelRead(MotelCreate):
    id: int
    owner_id: int


class MotelSummary(ApiModel):
    id: int
    name: str


class RoomCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    floor: Optional[int] = Field(None, ge=0)
    area: Optional[float] = Field(None, gt=0)
    room_type: RoomType = "SINGLE"
    price: int = Field(..., gt=0)
    deposit: Optional[int] = Field(None, ge=0)
    max_tenants: Optional[int] = Field(None, ge=1)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return _strip(v)


class RoomRead(RoomCreate):
    id: int
    motel_id: int
    status: RoomStatus


class RoomSummary(ApiModel):
    id: int
    name: str
    floor: Optional[int] = None
    status: RoomStatus
    motel: MotelSummary


class RoomStatusUpdate(ApiModel):
    status: RoomStatus


# Contracts
class TenantEntry(ApiModel):
    full_name: str = Field(..., min_length=2, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    identity_card: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=10)
    relationship: Optional[str] = Field(None, max_length=50)
    is_primary: bool = False

    @field_validator("full_name", mode="before")
    @classmethod
    def strip_full_name(cls, v):
        return _strip(v)


class TenantRead(TenantEntry):
    id: int
    # The ORM column attribute is relationship_to_primary
    relationship: Optional[str] = Field(
        None, validation_alias=AliasChoices("relationship_to_primary", "relationship")
    )


class ContractCreate(ApiModel):
    room_id: int = Field(..., ge=1)
    tenant_id: Optional[int] = Field(None, ge=1)
    start_date: date
    end_date: Optional[date] = None
    rent_price: int = Field(..., gt=0)
    deposit_amount: int = Field(0, ge=0)
    payment_due_day: Optional[int] = Field(None, ge=1, le=28)
    notes: Optional[str] = None
    tenants: List[TenantEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates_and_roster(self) -> "ContractCreate":
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        if sum(1 for t in self.tenants if t.is_primary) > 1:
            raise ValueError("at most one tenant can be primary")
        return self


class ContractUpdate(ApiModel):
    action: Optional[Literal["terminate", "renew"]] = None
    termination_reason: Optional[str] = None
    new_end_date: Optional[date] = None
    new_rent_price: Optional[int] = Field(None, gt=0)
    rent_price: Optional[int] = Field(None, gt=0)
    deposit_amount: Optional[int] = Field(None, ge=0)
    payment_due_day: Optional[int] = Field(None, ge=1, le=28)
    notes: Optional[str] = None


class ContractRead(ApiModel):
    id: int
    contract_number: str
    room_id: int
    room: RoomSummary
    tenant_id: Optional[int] = None
    tenant: Optional[UserSummary] = None
    tenants: List[TenantRead] = []
    start_date: date
    end_date: Optional[date] = None
    rent_price: int
    deposit_amount: int
    payment_due_day: Optional[int] = None
    notes: Optional[str] = None
    status: ContractStatus
    created_at: datetime


# Maintenance
class MaintenanceCreate(ApiModel):
    room_id: int = Field(..., ge=1)
    title: str = Field(..., min_length=5, max_length=255)
    description: Optional[str] = None
    priority: MaintenancePriority = "MEDIUM"

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return _strip(v)


class MaintenanceStatusUpdate(ApiModel):
    status: MaintenanceStatus
    assigned_to_id: Optional[int] = Field(None, ge=1)
    estimated_cost: Optional[int] = Field(None, ge=0)
    actual_cost: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class MaintenanceRead(ApiModel):
    id: int
    room_id: int
    room: RoomSummary
    requester_id: int
    requester: Optional[UserSummary] = None
    assigned_to_id: Optional[int] = None
    assigned_to: Optional[UserSummary] = None
    title: str
    description: Optional[str] = None
    priority: MaintenancePriority
    status: MaintenanceStatus
    estimated_cost: Optional[int] = None
    actual_cost: Optional[int] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime


# Appointments
class AppointmentCreate(ApiModel):
    room_id: int = Field(..., ge=1)
    visit_date: datetime
    guest_name: Optional[str] = Field(None, min_length=2, max_length=255)
    guest_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    guest_email: Optional[EmailStr] = None
    note: Optional[str] = None

    @field_validator("guest_email", mode="before")
    @classmethod
    def normalize_guest_email(cls, v):
        return _normalize_email(v)

    @field_validator("visit_date")
    @classmethod
    def visit_date_utc(cls, v: datetime) -> datetime:
        # Offset-aware inputs are stored in UTC so one instant compares equal however it was sent
        return v.astimezone(timezone.utc) if v.tzinfo is not None else v


class AppointmentStatusUpdate(ApiModel):
    status: AppointmentStatus
    note: Optional[str] = None


class AppointmentRead(ApiModel):
    id: int
    room_id: int
    room: RoomSummary
    user_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[str] = None
    visit_date: datetime
    status: AppointmentStatus
    note: Optional[str] = None
    created_at: datetime


# Invoices
class InvoiceItemCreate(ApiModel):
    service_name: str = Field(..., min_length=1, max_length=255)
    quantity: float = Field(1, gt=0)
    unit_price: int = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=255)


class InvoiceCreate(ApiModel):
    contract_id: int = Field(..., ge=1)
    # YYYY-MM
    billing_month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    due_date: Optional[date] = None
    items: List[InvoiceItemCreate] = Field(..., min_length=1)


class InvoiceGenerate(ApiModel):
    motel_id: int = Field(..., ge=1)
    # YYYY-MM
    billing_month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    # Lines billed to every contract after the rent line
    items: List[InvoiceItemCreate] = Field(default_factory=list)


class InvoiceItemRead(InvoiceItemCreate):
    id: int
    total_price: int


class InvoiceRead(ApiModel):
    id: int
    invoice_number: str
    contract_id: int
    billing_month: date
    due_date: Optional[date] = None
    amount_total: int
    amount_paid: int
    status: InvoiceStatus
    paid_at: Optional[datetime] = None
    items: List[InvoiceItemRead] = []
    created_at: datetime


class PaymentCreate(ApiModel):
    amount: int = Field(..., gt=0)
    payment_method: PaymentMethod = "CASH"
    notes: Optional[str] = None


# Dashboard
class OccupancyStats(ApiModel):
    total_rooms: int
    occupied_rooms: int
    available_rooms: int
    maintenance_rooms: int
    # Whole percent of rooms RENTED
    occupancy_rate: int


class MotelOccupancy(OccupancyStats):
    motel_id: int
    motel_name: str


class OccupancyOverall(OccupancyStats):
    total_motels: int


class OccupancyReport(ApiModel):
    overall: OccupancyOverall
    by_motel: List[MotelOccupancy]
