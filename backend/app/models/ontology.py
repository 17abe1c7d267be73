"""
Ontology objects
Every business entity of the reservation engine: resources, occupants,
slots, reservations and their history
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Table,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric, UniqueConstraint, event
)
from sqlalchemy.orm import relationship
from app.database import Base


# ============== Enums ==============

class ResourceKind(str, Enum):
    """Kind of bookable resource"""
    ROOM = "ROOM"
    HALL = "HALL"


class ResourceStatus(str, Enum):
    """Resource status"""
    AVAILABLE = "AVAILABLE"
    BOOKED = "BOOKED"            # occupied
    MAINTENANCE = "MAINTENANCE"  # unavailable


class SlotType(str, Enum):
    """Interval type of a resource slot"""
    FULL_DAY = "FULL_DAY"
    MORNING = "MORNING"
    EVENING = "EVENING"


class ReservationStatus(str, Enum):
    """Reservation lifecycle status"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"  # terminal
    CANCELLED = "CANCELLED"      # terminal


class PaymentStatus(str, Enum):
    """Payment status, derived from paid amount vs total"""
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class PaymentMode(str, Enum):
    """Payment mode"""
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    NET_BANKING = "NET_BANKING"
    WALLET = "WALLET"
    CHEQUE = "CHEQUE"


class Channel(str, Enum):
    """Origin of a reservation request"""
    STAFF = "STAFF"
    ONLINE = "ONLINE"


class OccupantType(str, Enum):
    """Occupant classification"""
    WALK_IN = "WALK_IN"
    CORPORATE = "CORPORATE"
    AGENCY = "AGENCY"
    ONLINE = "ONLINE"
    OTHER = "OTHER"


class IdProofType(str, Enum):
    """Identity document type"""
    AADHAR = "AADHAR"
    PASSPORT = "PASSPORT"
    DRIVING_LICENSE = "DRIVING_LICENSE"
    PAN_CARD = "PAN_CARD"
    VOTER_ID = "VOTER_ID"
    OTHER = "OTHER"


class HistoryAction(str, Enum):
    """Action tag of a history entry"""
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = (ReservationStatus.CHECKED_OUT, ReservationStatus.CANCELLED)
ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN)


# ============== Ontology objects ==============

class Resource(Base):
    """
    Bookable resource - a room or a function hall
    Never deleted while a reservation references it
    """
    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False)       # room number or hall name
    name = Column(String(100), nullable=False)
    kind = Column(SQLEnum(ResourceKind), nullable=False, default=ResourceKind.ROOM)
    category = Column(String(50))                                # DELUXE, BANQUET, ...
    floor = Column(Integer)
    capacity = Column(Integer, nullable=False, default=2)
    base_price = Column(Numeric(12, 2), nullable=False)         # per day
    status = Column(SQLEnum(ResourceStatus), nullable=False, default=ResourceStatus.AVAILABLE)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Links
    reservations = relationship("Reservation", back_populates="resource")
    slots = relationship("ResourceSlot", back_populates="resource")


class Occupant(Base):
    """
    Occupant snapshot
    Created fresh per reservation request, never updated in place
    """
    __tablename__ = "occupants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=False, index=True)
    email = Column(String(100))
    address = Column(Text)
    id_proof = Column(String(50))
    id_proof_type = Column(SQLEnum(IdProofType))
    occupant_type = Column(SQLEnum(OccupantType), default=OccupantType.WALK_IN)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Links
    reservations = relationship("Reservation", back_populates="occupant")


reservation_slots = Table(
    "reservation_slots",
    Base.metadata,
    Column("reservation_id", String(20), ForeignKey("reservations.id"), primary_key=True),
    Column("slot_id", Integer, ForeignKey("resource_slots.id"), primary_key=True),
)


class ResourceSlot(Base):
    """
    Resource slot - one (resource, date, slot type) unit with its price snapshot
    is_available is false while any non-terminal reservation holds the slot
    """
    __tablename__ = "resource_slots"
    __table_args__ = (
        UniqueConstraint("resource_id", "slot_date", "slot_type", name="uq_resource_slot"),
    )

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False)
    slot_date = Column(Date, nullable=False)
    slot_type = Column(SQLEnum(SlotType), nullable=False, default=SlotType.FULL_DAY)
    price = Column(Numeric(12, 2), nullable=False)
    booked_count = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Links
    resource = relationship("Resource", back_populates="slots")
    reservations = relationship("Reservation", secondary=reservation_slots, back_populates="slots")


class Reservation(Base):
    """
    Reservation - the aggregate root
    Exactly one resource per row; multi-resource bookings are sibling rows
    sharing one occupant snapshot
    """
    __tablename__ = "reservations"

    id = Column(String(20), primary_key=True)                     # RES0001
    reference = Column(String(16), unique=True, nullable=False)   # public lookup code
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    occupant_id = Column(Integer, ForeignKey("occupants.id"), nullable=False)
    check_in = Column(DateTime, nullable=False)
    check_out = Column(DateTime, nullable=False)
    guest_count = Column(Integer, nullable=False, default=1)
    days = Column(Integer, nullable=False, default=1)
    base_rate = Column(Numeric(12, 2), nullable=False)           # rate snapshot
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    apply_tax = Column(Boolean, nullable=False, default=False)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    advance_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    payment_mode = Column(SQLEnum(PaymentMode))
    status = Column(SQLEnum(ReservationStatus), nullable=False, default=ReservationStatus.CONFIRMED, index=True)
    channel = Column(SQLEnum(Channel), nullable=False, default=Channel.STAFF)
    special_requests = Column(Text)
    cancel_reason = Column(Text)
    created_by = Column(String(50))                               # actor id, None for public requests
    booked_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Links
    resource = relationship("Resource", back_populates="reservations")
    occupant = relationship("Occupant", back_populates="reservations")
    slots = relationship("ResourceSlot", secondary=reservation_slots, back_populates="reservations")
    history = relationship(
        "ReservationHistory",
        back_populates="reservation",
        order_by="ReservationHistory.id",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ReservationHistory(Base):
    """
    History entry - append-only audit record of one mutation
    changes holds a JSON list of {field, old_value, new_value}
    """
    __tablename__ = "reservation_history"

    id = Column(Integer, primary_key=True, index=True)
    reservation_id = Column(String(20), ForeignKey("reservations.id"), nullable=False, index=True)
    action = Column(SQLEnum(HistoryAction), nullable=False)
    actor_id = Column(String(50))
    changes = Column(Text, nullable=False, default="[]")
    notes = Column(Text)
    timestamp = Column(DateTime, default=datetime.utcnow, index=True)

    # Links
    reservation = relationship("Reservation", back_populates="history")


class ImmutableHistoryError(RuntimeError):
    """Raised when a flush tries to rewrite or remove a history entry"""


@event.listens_for(ReservationHistory, "before_update")
def _refuse_history_update(mapper, connection, target):
    raise ImmutableHistoryError(f"History entry {target.id} is immutable")


@event.listens_for(ReservationHistory, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    raise ImmutableHistoryError(f"History entry {target.id} cannot be deleted")
