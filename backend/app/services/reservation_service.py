"""
Reservation service - the reservation orchestrator

Every write runs in one unit of work spanning the resource lock, conflict
check, id generation, row writes, resource status and history append.
Notifications are published only after the commit.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple
import logging
import math
import re

from sqlalchemy import func, or_
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import is_transient_error, unit_of_work
from app.models.events import EventType, ResourceBookedData
from app.models.ontology import (
    Channel, HistoryAction, Occupant, PaymentMode, Reservation, ReservationHistory,
    ReservationStatus, Resource, PaymentStatus, SlotType,
)
from app.models.schemas import ReservationRequestBase, UpdateReservationRequest
from app.services.audit_service import HistoryService, compute_changes, snapshot
from app.services.conflict_service import ConflictDetector
from app.services.errors import InternalError, NotFoundError, ValidationError
from app.services.event_bus import Event, event_bus
from app.services.identifier_service import generate_references, next_reservation_ids
from app.services.interval_service import ensure_valid_interval, parse_instant, parse_interval
from app.services.price_service import (
    apportion_capped, balance_for, calculate_price, count_days, payment_status_for, to_money, ZERO,
)
from app.services.resource_service import ResourceService
from app.services.status_service import allowed_next_statuses, validate_status_transition

logger = logging.getLogger(__name__)

# Fields compared for every history entry, in display order
TRACKED_FIELDS = (
    "status", "resource_id", "check_in", "check_out", "guest_count", "days",
    "base_rate", "subtotal", "discount", "tax", "apply_tax", "total",
    "advance_amount", "paid_amount", "balance", "payment_status", "payment_mode",
    "special_requests", "cancel_reason",
)

INITIAL_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
RELEASING_STATUSES = (ReservationStatus.CHECKED_OUT, ReservationStatus.CANCELLED)


@dataclass
class ReservationDetail:
    """A reservation with its most recent history"""
    reservation: Reservation
    recent_history: List[ReservationHistory]
    allowed_transitions: List[ReservationStatus] = field(default_factory=list)


@dataclass
class ReservationPage:
    reservations: List[Reservation]
    total: int
    page: int
    limit: int
    summary: Dict[str, object]

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def resolve_apply_tax(requested: Optional[bool], channel: Channel) -> bool:
    """Staff requests opt in to tax; public requests opt out"""
    if channel == Channel.ONLINE:
        return requested is not False
    return requested is True


class ReservationService:
    """Reservation orchestrator"""

    def __init__(self, db: Session, event_publisher: Callable[[Event], None] = None,
                 now_provider: Callable[[], datetime] = None):
        self.db = db
        self._publish_event = event_publisher or event_bus.publish
        self._now = now_provider or datetime.now
        self.resources = ResourceService(db)
        self.conflicts = ConflictDetector(db)
        self.history = HistoryService(db)

    # ============== Queries ==============

    def get_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    def get(self, reservation_id: str) -> ReservationDetail:
        """Read-only view of a reservation and its recent history"""
        reservation = self.get_reservation(reservation_id)
        recent = self.history.get_for_reservation(
            reservation_id, newest_first=True, limit=settings.HISTORY_RECENT_LIMIT
        )
        return ReservationDetail(reservation, recent, allowed_next_statuses(reservation.status))

    def get_by_reference(self, reference: str, phone: str) -> Reservation:
        """
        Public lookup. The phone must match in full or by its last four digits;
        any mismatch is reported as not found.
        """
        code = (reference or "").strip().upper()
        digits = re.sub(r"\D", "", phone or "")
        reservation = self.db.query(Reservation).filter(Reservation.reference == code).first() if code else None
        if reservation is None or not digits:
            raise NotFoundError("Reservation", code)

        stored = reservation.occupant.phone
        if len(digits) == 4:
            matches = stored.endswith(digits)
        else:
            matches = stored == digits[-10:]
        if not matches:
            raise NotFoundError("Reservation", code)
        return reservation

    def list_reservations(
        self,
        status: Optional[ReservationStatus] = None,
        channel: Optional[Channel] = None,
        payment_status: Optional[PaymentStatus] = None,
        resource_id: Optional[int] = None,
        on_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> ReservationPage:
        """
        Filtered, paginated reservation list, most recent check-in first.
        Cancelled reservations only appear when a status filter asks for them.
        """
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        page = max(page, 1)

        query = self.db.query(Reservation)
        if status is not None:
            query = query.filter(Reservation.status == status)
        else:
            query = query.filter(Reservation.status != ReservationStatus.CANCELLED)
        if channel is not None:
            query = query.filter(Reservation.channel == channel)
        if payment_status is not None:
            query = query.filter(Reservation.payment_status == payment_status)
        if resource_id is not None:
            query = query.filter(Reservation.resource_id == resource_id)
        if on_date is not None:
            query = query.filter(
                Reservation.check_in <= datetime.combine(on_date, time.max),
                Reservation.check_out > datetime.combine(on_date, time.min),
            )
        if start_date is not None:
            query = query.filter(Reservation.check_out > datetime.combine(start_date, time.min))
        if end_date is not None:
            query = query.filter(Reservation.check_in <= datetime.combine(end_date, time.max))
        if search:
            term = f"%{search.strip()}%"
            query = query.join(Occupant, Reservation.occupant_id == Occupant.id).join(
                Resource, Reservation.resource_id == Resource.id
            ).filter(or_(
                Reservation.id.ilike(term),
                Reservation.reference.ilike(term),
                Occupant.name.ilike(term),
                Occupant.phone.ilike(term),
                Resource.code.ilike(term),
            ))

        total = query.count()
        summary = self._summarize(query)
        reservations = query.order_by(
            Reservation.check_in.desc(), Reservation.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return ReservationPage(reservations, total, page, limit, summary)

    def _summarize(self, query) -> Dict[str, object]:
        rows = query.with_entities(
            Reservation.status, func.count(Reservation.id), func.sum(Reservation.total)
        ).group_by(Reservation.status).all()
        counts = {status: count for status, count, _ in rows}
        revenue = sum(
            (Decimal(str(amount or 0)) for status, _, amount in rows if status != ReservationStatus.CANCELLED),
            ZERO,
        )
        return {
            "confirmed": counts.get(ReservationStatus.CONFIRMED, 0),
            "checked_in": counts.get(ReservationStatus.CHECKED_IN, 0),
            "checked_out": counts.get(ReservationStatus.CHECKED_OUT, 0),
            "total_revenue": to_money(revenue),
        }

    # ============== Create ==============

    def create(self, request: ReservationRequestBase, actor_id: Optional[str],
               channel: Channel = Channel.STAFF) -> List[Reservation]:
        """
        Book one or more resources for one occupant.

        All requested resources are booked or none is. Transient storage
        failures (lock contention, id collisions) are retried a bounded
        number of times; business errors never are.

        Returns:
            One reservation per distinct requested resource
        """
        attempts = settings.CREATE_MAX_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                reservations, notices = self._create_once(request, actor_id, channel)
                break
            except DBAPIError as e:
                if not is_transient_error(e):
                    raise
                logger.warning(f"Transient storage failure on create (attempt {attempt}/{attempts}): {e.orig}")
                if attempt == attempts:
                    raise InternalError(
                        "The reservation could not be saved, please retry",
                        {"attempts": attempts},
                    ) from e

        logger.info(
            f"Reservations {[n.reservation_id for n in notices]} created via {channel.value} by {actor_id or 'public'}"
        )
        self._notify(notices)
        return reservations

    def _create_once(self, request: ReservationRequestBase, actor_id: Optional[str],
                     channel: Channel) -> Tuple[List[Reservation], List[ResourceBookedData]]:
        now = self._now()
        check_in, check_out = parse_interval(request.check_in, request.check_out)
        resource_ids = request.requested_resource_ids()
        apply_tax = resolve_apply_tax(request.apply_tax, channel)
        status = self._initial_status(request, channel)

        with unit_of_work(self.db):
            resources = [self.resources.ensure_bookable(rid) for rid in resource_ids]
            for resource in resources:
                ensure_valid_interval(check_in, check_out, resource.kind, now=now)
                self._ensure_capacity(resource, request.guest_count)
                self.conflicts.ensure_no_conflict(resource, check_in, check_out)

            count = len(resources)
            days = count_days(check_in, check_out)
            discounts = apportion_capped(
                request.discount, [to_money(resource.base_price) * days for resource in resources]
            )
            prices = [
                calculate_price(resource.base_price, check_in, check_out, discount, apply_tax)
                for resource, discount in zip(resources, discounts)
            ]
            grand_total = sum((p.total for p in prices), ZERO)
            if to_money(request.advance_amount) > grand_total:
                raise ValidationError(
                    "Advance amount cannot exceed the total",
                    {"advance_amount": str(request.advance_amount), "total": str(grand_total)},
                )
            advances = apportion_capped(request.advance_amount, [p.total for p in prices])

            occupant = Occupant(
                name=request.guest_name,
                phone=request.guest_phone,
                email=request.guest_email,
                address=request.guest_address,
                id_proof=request.id_proof,
                id_proof_type=request.id_proof_type,
                occupant_type=request.occupant_type,
            )
            self.db.add(occupant)
            self.db.flush()

            ids = next_reservation_ids(self.db, count)
            references = generate_references(self.db, count)
            reservations = []
            for resource, price, advance, reservation_id, reference in zip(
                resources, prices, advances, ids, references
            ):
                reservation = Reservation(
                    id=reservation_id,
                    reference=reference,
                    resource_id=resource.id,
                    occupant_id=occupant.id,
                    check_in=check_in,
                    check_out=check_out,
                    guest_count=request.guest_count,
                    days=price.days,
                    base_rate=price.base_rate,
                    subtotal=price.subtotal,
                    discount=price.discount,
                    tax=price.tax,
                    apply_tax=price.apply_tax,
                    total=price.total,
                    advance_amount=advance,
                    paid_amount=advance,
                    balance=balance_for(price.total, advance),
                    payment_status=payment_status_for(advance, price.total),
                    payment_mode=request.payment_mode,
                    status=status,
                    channel=channel,
                    special_requests=request.special_requests,
                    created_by=actor_id,
                    booked_at=now,
                )
                reservation.slots = self.resources.reserve_slots(
                    resource, check_in, check_out, request.slot_type, price.base_rate
                )
                self.db.add(reservation)
                self.db.flush()

                if check_in <= now:
                    self.resources.mark_booked(resource)

                self.history.log(
                    reservation.id,
                    HistoryAction.CREATED,
                    actor_id,
                    compute_changes(None, reservation, TRACKED_FIELDS),
                    notes=(
                        f"Booking created for {resource.kind.value.title()} {resource.code}. "
                        f"Total {settings.CURRENCY} {price.total}, advance {settings.CURRENCY} {advance} "
                        f"({status.value})"
                    ),
                )
                reservations.append(reservation)

            notices = [
                ResourceBookedData(
                    reservation_id=r.id,
                    reference=r.reference,
                    guest_name=occupant.name,
                    guest_phone=occupant.phone,
                    guest_email=occupant.email,
                    resource_code=res.code,
                    resource_kind=res.kind.value,
                    check_in=r.check_in,
                    check_out=r.check_out,
                    total=r.total,
                    channel=channel.value,
                    is_batch=count > 1,
                    batch_reservation_ids=[x.id for x in reservations] if count > 1 else [],
                )
                for r, res in zip(reservations, resources)
            ]
        return reservations, notices

    def _initial_status(self, request: ReservationRequestBase, channel: Channel) -> ReservationStatus:
        requested = getattr(request, "status", None)
        if channel == Channel.ONLINE or requested is None:
            return ReservationStatus.CONFIRMED
        if requested not in INITIAL_STATUSES:
            raise ValidationError(
                f"A new reservation must be PENDING or CONFIRMED, not {requested.value}",
                {"status": requested.value},
            )
        return requested

    def _ensure_capacity(self, resource: Resource, guest_count: int) -> None:
        if guest_count > resource.capacity:
            raise ValidationError(
                f"{resource.kind.value.title()} {resource.code} capacity is {resource.capacity} guests",
                {"resource_id": resource.id, "capacity": resource.capacity, "guest_count": guest_count},
            )

    def _notify(self, notices: List[ResourceBookedData]) -> None:
        for notice in notices:
            try:
                self._publish_event(Event(
                    event_type=EventType.RESOURCE_BOOKED.value,
                    timestamp=datetime.now(),
                    data=notice.to_dict(),
                    source="reservation_service",
                ))
            except Exception as e:
                logger.error(f"resource.booked publish failed for {notice.reservation_id}: {e}", exc_info=True)

    # ============== Update ==============

    def _lock_reservation(self, reservation_id: str) -> Reservation:
        reservation = self.db.query(Reservation).filter(
            Reservation.id == reservation_id
        ).with_for_update().first()
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    def update(self, reservation_id: str, request: UpdateReservationRequest,
               actor_id: Optional[str]) -> Reservation:
        """
        Apply a partial update: status transition, dates, resource, guest
        count, discount, tax flag, payment mode, special requests.

        Date or resource changes are revalidated and conflict-checked against
        every other reservation; monetary fields are recomputed and diffed.
        """
        data = request.model_dump(exclude_unset=True)
        notes = data.pop("notes", None)
        requested_status = data.pop("status", None)
        now = self._now()

        with unit_of_work(self.db):
            reservation = self._lock_reservation(reservation_id)
            if requested_status == reservation.status:
                requested_status = None
            if reservation.is_terminal:
                if requested_status is not None:
                    validate_status_transition(reservation.status, requested_status)
                raise ValidationError(
                    f"Reservation {reservation.id} is {reservation.status.value} and can no longer be modified",
                    {"reservation_id": reservation.id, "status": reservation.status.value},
                )
            if requested_status is not None:
                validate_status_transition(reservation.status, requested_status)

            before = snapshot(reservation, TRACKED_FIELDS)
            self._apply_field_changes(reservation, data, now)

            if requested_status is not None:
                self._apply_status(reservation, requested_status, now)
                if requested_status == ReservationStatus.CANCELLED and notes:
                    reservation.cancel_reason = notes

            changes = compute_changes(before, reservation, TRACKED_FIELDS)
            if not changes and not notes:
                return reservation

            if requested_status == ReservationStatus.CANCELLED:
                action = HistoryAction.CANCELLED
            elif requested_status is not None:
                action = HistoryAction.STATUS_CHANGED
            else:
                action = HistoryAction.UPDATED
            self.history.log(reservation.id, action, actor_id, changes, notes=notes)

        logger.info(f"Reservation {reservation_id} {action.value} by {actor_id}")
        return reservation

    def _apply_field_changes(self, reservation: Reservation, data: Dict, now: datetime) -> None:
        new_resource_id = data.get("resource_id")
        if new_resource_id == reservation.resource_id:
            new_resource_id = None
        if new_resource_id is not None and reservation.status == ReservationStatus.CHECKED_IN:
            raise ValidationError(
                "The resource of a checked-in reservation cannot be changed",
                {"reservation_id": reservation.id},
            )

        check_in = parse_instant(data["check_in"], "check_in") if data.get("check_in") is not None \
            else reservation.check_in
        check_out = parse_instant(data["check_out"], "check_out", end_of_day=True) \
            if data.get("check_out") is not None else reservation.check_out
        dates_changed = (check_in, check_out) != (reservation.check_in, reservation.check_out)
        if reservation.status == ReservationStatus.CHECKED_IN and check_in != reservation.check_in:
            raise ValidationError(
                "The check-in of a checked-in reservation cannot be changed",
                {"reservation_id": reservation.id},
            )

        guest_count = data.get("guest_count") or reservation.guest_count
        current_resource = self.resources.lock_resource(reservation.resource_id)
        if new_resource_id is not None:
            target = self.resources.ensure_bookable(new_resource_id)
        else:
            target = current_resource

        if dates_changed or new_resource_id is not None:
            ensure_valid_interval(
                check_in, check_out, target.kind, now=now,
                allow_past=check_in == reservation.check_in,
            )
            self.conflicts.ensure_no_conflict(target, check_in, check_out, exclude_id=reservation.id)
        if new_resource_id is not None or "guest_count" in data:
            self._ensure_capacity(target, guest_count)

        if dates_changed or new_resource_id is not None:
            slot_type = reservation.slots[0].slot_type if reservation.slots else None
            self.resources.release_slots(reservation.slots)
            rate = target.base_price if new_resource_id is not None else reservation.base_rate
            reservation.slots = self.resources.reserve_slots(
                target, check_in, check_out, slot_type or SlotType.FULL_DAY, to_money(rate)
            )
            reservation.check_in = check_in
            reservation.check_out = check_out

        if new_resource_id is not None:
            reservation.resource_id = target.id
            reservation.resource = target
            reservation.base_rate = to_money(target.base_price)
            self.resources.release_resource(current_resource, exclude_id=reservation.id, now=now)
            if reservation.check_in <= now:
                self.resources.mark_booked(target)
        elif dates_changed and reservation.status != ReservationStatus.CHECKED_IN:
            self.resources.release_resource(current_resource, exclude_id=reservation.id, now=now)
            if reservation.check_in <= now:
                self.resources.mark_booked(current_resource)

        reprice = dates_changed or new_resource_id is not None or "discount" in data or "apply_tax" in data
        if reprice:
            discount = data["discount"] if data.get("discount") is not None else reservation.discount
            apply_tax = data["apply_tax"] if data.get("apply_tax") is not None else reservation.apply_tax
            price = calculate_price(reservation.base_rate, reservation.check_in, reservation.check_out,
                                    discount, apply_tax)
            reservation.days = price.days
            reservation.subtotal = price.subtotal
            reservation.discount = price.discount
            reservation.tax = price.tax
            reservation.apply_tax = price.apply_tax
            reservation.total = price.total
            self._refresh_balance(reservation)

        if "guest_count" in data and data["guest_count"] is not None:
            reservation.guest_count = data["guest_count"]
        if data.get("payment_mode") is not None:
            reservation.payment_mode = data["payment_mode"]
        if "special_requests" in data:
            reservation.special_requests = data["special_requests"]

    def _apply_status(self, reservation: Reservation, status: ReservationStatus, now: datetime) -> None:
        """Transition side effects: check-in books the resource, check-out and cancel release it"""
        reservation.status = status
        resource = reservation.resource
        if status == ReservationStatus.CHECKED_IN:
            self.resources.mark_booked(resource)
        elif status in RELEASING_STATUSES:
            self.resources.release_slots(reservation.slots)
            self.resources.release_resource(resource, exclude_id=reservation.id, now=now)

    def _refresh_balance(self, reservation: Reservation) -> None:
        reservation.balance = balance_for(reservation.total, reservation.paid_amount)
        reservation.payment_status = payment_status_for(reservation.paid_amount, reservation.total)

    # ============== Cancel ==============

    def cancel(self, reservation_id: str, actor_id: Optional[str],
               reason: Optional[str] = None) -> Reservation:
        """Cancel a non-terminal reservation and release its slots and resource"""
        now = self._now()
        with unit_of_work(self.db):
            reservation = self._lock_reservation(reservation_id)
            validate_status_transition(reservation.status, ReservationStatus.CANCELLED)
            before = snapshot(reservation, TRACKED_FIELDS)
            self._apply_status(reservation, ReservationStatus.CANCELLED, now)
            reservation.cancel_reason = reason
            self.history.log(
                reservation.id,
                HistoryAction.CANCELLED,
                actor_id,
                compute_changes(before, reservation, TRACKED_FIELDS),
                notes=reason or "Reservation cancelled",
            )
        logger.info(f"Reservation {reservation_id} cancelled by {actor_id}")
        return reservation

    # ============== Payments ==============

    def record_payment(self, reservation_id: str, amount: Decimal, actor_id: Optional[str],
                       payment_mode: Optional[PaymentMode] = None,
                       notes: Optional[str] = None) -> Reservation:
        """
        Add a payment to a reservation.

        Raises:
            ValidationError: non-positive amount, amount above the balance,
                or a reservation that is checked out or cancelled
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", {"amount": str(amount)})

        with unit_of_work(self.db):
            reservation = self._lock_reservation(reservation_id)
            if reservation.is_terminal:
                raise ValidationError(
                    f"Reservation {reservation.id} is {reservation.status.value} and can no longer be modified",
                    {"reservation_id": reservation.id, "status": reservation.status.value},
                )
            if amount > reservation.balance:
                raise ValidationError(
                    f"Payment of {amount} exceeds the outstanding balance of {reservation.balance}",
                    {"amount": str(amount), "balance": str(reservation.balance)},
                )

            before = snapshot(reservation, TRACKED_FIELDS)
            reservation.paid_amount = to_money(reservation.paid_amount) + amount
            if payment_mode is not None:
                reservation.payment_mode = payment_mode
            self._refresh_balance(reservation)
            self.history.log(
                reservation.id,
                HistoryAction.PAYMENT_RECORDED,
                actor_id,
                compute_changes(before, reservation, TRACKED_FIELDS),
                notes=notes or f"Payment of {settings.CURRENCY} {amount} recorded",
            )

        logger.info(f"Payment {amount} recorded on {reservation_id} by {actor_id}")
        return reservation
