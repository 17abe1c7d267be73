"""
Pydantic schemas
Request/response validation for the API; one request model per operation
"""
import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Union, Any, Dict
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from app.models.ontology import (
    ResourceKind, ResourceStatus, SlotType, ReservationStatus, PaymentStatus,
    PaymentMode, Channel, OccupantType, IdProofType, HistoryAction
)

PHONE_SEPARATORS = re.compile(r"[\s\-().]")

# Dates stay raw so the service can apply the start/end-of-day rules
InstantInput = Union[str, datetime, date]


def normalize_phone(value: str) -> str:
    digits = PHONE_SEPARATORS.sub("", value or "")
    if digits.startswith("+91") and len(digits) == 13:
        digits = digits[3:]
    if not re.fullmatch(r"\d{10}", digits):
        raise ValueError("Phone number must have 10 digits")
    return digits


# ============== Resource Schemas ==============

class ResourceBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    kind: ResourceKind = ResourceKind.ROOM
    category: Optional[str] = Field(None, max_length=50)
    floor: Optional[int] = None
    capacity: int = Field(default=2, ge=1)
    base_price: Decimal = Field(..., ge=0)


class ResourceCreate(ResourceBase):
    status: ResourceStatus = ResourceStatus.AVAILABLE
    model_config = ConfigDict(extra="forbid")


class ResourceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, max_length=50)
    floor: Optional[int] = None
    capacity: Optional[int] = Field(None, ge=1)
    base_price: Optional[Decimal] = Field(None, ge=0)
    status: Optional[ResourceStatus] = None
    is_active: Optional[bool] = None
    model_config = ConfigDict(extra="forbid")


class ResourceResponse(ResourceBase):
    id: int
    status: ResourceStatus
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ResourceSummary(BaseModel):
    id: int
    code: str
    name: str
    kind: ResourceKind
    model_config = ConfigDict(from_attributes=True)


class SlotResponse(BaseModel):
    id: int
    resource_id: int
    slot_date: date
    slot_type: SlotType
    price: Decimal
    booked_count: int
    is_available: bool
    model_config = ConfigDict(from_attributes=True)


# ============== Occupant Schemas ==============

class OccupantResponse(BaseModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    id_proof: Optional[str] = None
    id_proof_type: Optional[IdProofType] = None
    occupant_type: OccupantType
    model_config = ConfigDict(from_attributes=True)


# ============== Reservation Schemas ==============

class ReservationRequestBase(BaseModel):
    """Fields shared by the staff and public create requests"""
    resource_id: Optional[int] = None
    resource_ids: List[int] = Field(default_factory=list)
    guest_name: str = Field(..., min_length=2, max_length=100)
    guest_phone: str
    guest_email: Optional[str] = Field(None, max_length=100)
    guest_address: Optional[str] = None
    id_proof: Optional[str] = Field(None, max_length=50)
    id_proof_type: Optional[IdProofType] = None
    check_in: InstantInput
    check_out: InstantInput
    guest_count: int = Field(default=1, ge=1)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    advance_amount: Decimal = Field(default=Decimal("0"), ge=0)
    apply_tax: Optional[bool] = None
    payment_mode: Optional[PaymentMode] = None
    slot_type: SlotType = SlotType.FULL_DAY
    special_requests: Optional[str] = None
    model_config = ConfigDict(extra="forbid")

    @field_validator('guest_name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Guest name must have at least 2 characters")
        return v

    @field_validator('guest_phone')
    @classmethod
    def check_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @model_validator(mode='after')
    def require_resource(self):
        if self.resource_id is None and not self.resource_ids:
            raise ValueError("At least one resource must be selected")
        return self

    def requested_resource_ids(self) -> List[int]:
        """Requested resources, deduplicated, in request order"""
        ids = ([self.resource_id] if self.resource_id is not None else []) + list(self.resource_ids)
        return list(dict.fromkeys(ids))


class CreateReservationRequest(ReservationRequestBase):
    """Staff channel create request"""
    occupant_type: OccupantType = OccupantType.WALK_IN
    status: Optional[ReservationStatus] = None


class PublicReservationRequest(ReservationRequestBase):
    """Public channel create request"""
    occupant_type: OccupantType = OccupantType.ONLINE


class UpdateReservationRequest(BaseModel):
    status: Optional[ReservationStatus] = None
    resource_id: Optional[int] = None
    check_in: Optional[InstantInput] = None
    check_out: Optional[InstantInput] = None
    guest_count: Optional[int] = Field(None, ge=1)
    discount: Optional[Decimal] = Field(None, ge=0)
    apply_tax: Optional[bool] = None
    payment_mode: Optional[PaymentMode] = None
    special_requests: Optional[str] = None
    notes: Optional[str] = None
    model_config = ConfigDict(extra="forbid")


class CancelReservationRequest(BaseModel):
    reason: Optional[str] = None
    model_config = ConfigDict(extra="forbid")


class PaymentRequest(BaseModel):
    amount: Decimal
    payment_mode: Optional[PaymentMode] = None
    notes: Optional[str] = None
    model_config = ConfigDict(extra="forbid")


class HistoryEntryResponse(BaseModel):
    id: int
    reservation_id: str
    action: HistoryAction
    actor_id: Optional[str] = None
    changes: List[Dict[str, Any]] = []
    notes: Optional[str] = None
    timestamp: datetime
    model_config = ConfigDict(from_attributes=True)

    @field_validator('changes', mode='before')
    @classmethod
    def decode_changes(cls, v):
        if isinstance(v, str):
            return json.loads(v or "[]")
        return v or []


class ReservationResponse(BaseModel):
    id: str
    reference: str
    resource_id: int
    occupant_id: int
    check_in: datetime
    check_out: datetime
    guest_count: int
    days: int
    base_rate: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    apply_tax: bool
    total: Decimal
    advance_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    payment_status: PaymentStatus
    payment_mode: Optional[PaymentMode] = None
    status: ReservationStatus
    channel: Channel
    special_requests: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_by: Optional[str] = None
    booked_at: Optional[datetime] = None
    created_at: datetime
    resource: Optional[ResourceSummary] = None
    occupant: Optional[OccupantResponse] = None
    model_config = ConfigDict(from_attributes=True)


class ReservationDetailResponse(ReservationResponse):
    """Reservation with its most recent history entries"""
    recent_history: List[HistoryEntryResponse] = []
    allowed_transitions: List[ReservationStatus] = []


class BatchReservationResponse(BaseModel):
    reservations: List[ReservationResponse]
    total_amount: Decimal
    currency: str


class PublicReservationResponse(BaseModel):
    """What a guest sees when quoting a reference code"""
    reference: str
    status: ReservationStatus
    guest_name: str
    resource_code: str
    resource_name: str
    resource_kind: ResourceKind
    check_in: datetime
    check_out: datetime
    guest_count: int
    total: Decimal
    paid_amount: Decimal
    balance: Decimal
    payment_status: PaymentStatus


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ReservationSummary(BaseModel):
    confirmed: int = 0
    checked_in: int = 0
    checked_out: int = 0
    total_revenue: Decimal = Decimal("0")


class ReservationListResponse(BaseModel):
    reservations: List[ReservationResponse]
    pagination: PaginationMeta
    summary: ReservationSummary


class HistoryListResponse(BaseModel):
    entries: List[HistoryEntryResponse]
    pagination: PaginationMeta


class ErrorBody(BaseModel):
    code: str
    message: str
    context: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorBody


# Documented error statuses shared by every router
ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 404, 409, 422, 500)}


class PublicBookingResponse(BaseModel):
    reservations: List[PublicReservationResponse]
    total_amount: Decimal
    currency: str
