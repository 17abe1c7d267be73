"""
Resource service - rooms, halls and their slots
Resource CRUD, availability queries and the slot upsert primitives used by
the reservation orchestrator inside its transaction
"""
from typing import List, Optional
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
from sqlalchemy.orm import Session
from app.database import unit_of_work
from app.models.ontology import (
    ACTIVE_STATUSES, Reservation, Resource, ResourceKind, ResourceSlot,
    ResourceStatus, SlotType,
)
from app.models.schemas import ResourceCreate, ResourceUpdate
from app.services.conflict_service import ConflictDetector
from app.services.errors import NotFoundError, ResourceUnavailableError, ValidationError

logger = logging.getLogger(__name__)


def covered_dates(check_in: datetime, check_out: datetime) -> List[date]:
    """Calendar days touched by [check_in, check_out); the check-out instant is exclusive"""
    days = []
    current = check_in.date()
    while datetime.combine(current, time.min) < check_out:
        days.append(current)
        current += timedelta(days=1)
    return days or [check_in.date()]


class ResourceService:
    """Resource service"""

    def __init__(self, db: Session):
        self.db = db

    # ============== Resource operations ==============

    def get_resources(self, kind: Optional[ResourceKind] = None,
                      status: Optional[ResourceStatus] = None,
                      is_active: Optional[bool] = True) -> List[Resource]:
        query = self.db.query(Resource)
        if kind is not None:
            query = query.filter(Resource.kind == kind)
        if status is not None:
            query = query.filter(Resource.status == status)
        if is_active is not None:
            query = query.filter(Resource.is_active == is_active)
        return query.order_by(Resource.kind, Resource.code).all()

    def get_resource(self, resource_id: int) -> Optional[Resource]:
        return self.db.query(Resource).filter(Resource.id == resource_id).first()

    def require_resource(self, resource_id: int) -> Resource:
        resource = self.get_resource(resource_id)
        if resource is None:
            raise NotFoundError("Resource", resource_id)
        return resource

    def create_resource(self, data: ResourceCreate) -> Resource:
        """Create a room or hall; codes are unique"""
        if self.db.query(Resource).filter(Resource.code == data.code).first():
            raise ValidationError(f"Resource code '{data.code}' already exists", {"code": data.code})

        with unit_of_work(self.db):
            resource = Resource(**data.model_dump())
            self.db.add(resource)
        self.db.refresh(resource)
        logger.info(f"Resource {resource.code} created ({resource.kind.value})")
        return resource

    def update_resource(self, resource_id: int, data: ResourceUpdate) -> Resource:
        resource = self.require_resource(resource_id)
        with unit_of_work(self.db):
            for key, value in data.model_dump(exclude_unset=True).items():
                setattr(resource, key, value)
        self.db.refresh(resource)
        logger.info(f"Resource {resource.code} updated")
        return resource

    def delete_resource(self, resource_id: int) -> bool:
        """Delete a resource no reservation references"""
        resource = self.require_resource(resource_id)
        referenced = self.db.query(Reservation).filter(Reservation.resource_id == resource_id).count()
        if referenced:
            raise ValidationError(
                f"Resource {resource.code} is referenced by {referenced} reservation(s) and cannot be deleted",
                {"resource_id": resource_id, "reservations": referenced},
            )
        with unit_of_work(self.db):
            self.db.query(ResourceSlot).filter(ResourceSlot.resource_id == resource_id).delete()
            self.db.delete(resource)
        logger.info(f"Resource {resource.code} deleted")
        return True

    # ============== Booking support ==============

    def lock_resource(self, resource_id: int) -> Optional[Resource]:
        """Load the resource row with a write lock (no-op clause on SQLite, which locks at BEGIN IMMEDIATE)"""
        return self.db.query(Resource).filter(Resource.id == resource_id).with_for_update().first()

    def ensure_bookable(self, resource_id: int) -> Resource:
        """
        Raises:
            ResourceUnavailableError: absent, inactive or under maintenance
        """
        resource = self.lock_resource(resource_id)
        if resource is None:
            raise ResourceUnavailableError(resource_id, f"Resource {resource_id} does not exist")
        if not resource.is_active:
            raise ResourceUnavailableError(resource_id, f"{resource.kind.value.title()} {resource.code} is not active")
        if resource.status == ResourceStatus.MAINTENANCE:
            raise ResourceUnavailableError(
                resource_id, f"{resource.kind.value.title()} {resource.code} is under maintenance"
            )
        return resource

    def get_available(self, check_in: datetime, check_out: datetime,
                      kind: Optional[ResourceKind] = None) -> List[Resource]:
        """Active, non-maintenance resources with no overlapping active reservation"""
        detector = ConflictDetector(self.db)
        candidates = [
            r for r in self.get_resources(kind=kind)
            if r.status != ResourceStatus.MAINTENANCE
        ]
        return [r for r in candidates if not detector.has_conflict(r.id, check_in, check_out)]

    def mark_booked(self, resource: Resource) -> None:
        if resource.status != ResourceStatus.MAINTENANCE:
            resource.status = ResourceStatus.BOOKED

    def release_resource(self, resource: Resource, exclude_id: Optional[str] = None,
                         now: Optional[datetime] = None) -> None:
        """Back to AVAILABLE unless under maintenance or another active reservation spans now"""
        if resource.status == ResourceStatus.MAINTENANCE:
            return
        now = now or datetime.now()
        query = self.db.query(Reservation).filter(
            Reservation.resource_id == resource.id,
            Reservation.status.in_(ACTIVE_STATUSES),
            Reservation.check_in <= now,
            Reservation.check_out > now,
        )
        if exclude_id:
            query = query.filter(Reservation.id != exclude_id)
        resource.status = ResourceStatus.BOOKED if query.first() else ResourceStatus.AVAILABLE

    # ============== Slot operations ==============

    def reserve_slot(self, resource: Resource, slot_date: date, slot_type: SlotType,
                     price: Decimal) -> ResourceSlot:
        """Create the slot if absent, else take one more hold on it"""
        slot = self.db.query(ResourceSlot).filter(
            ResourceSlot.resource_id == resource.id,
            ResourceSlot.slot_date == slot_date,
            ResourceSlot.slot_type == slot_type,
        ).first()
        if slot is None:
            slot = ResourceSlot(
                resource_id=resource.id,
                slot_date=slot_date,
                slot_type=slot_type,
                price=price,
                booked_count=1,
                is_available=False,
            )
            self.db.add(slot)
            self.db.flush()
        else:
            slot.booked_count = (slot.booked_count or 0) + 1
            slot.is_available = False
        return slot

    def release_slot(self, slot: ResourceSlot) -> None:
        slot.booked_count = max(0, (slot.booked_count or 0) - 1)
        slot.is_available = slot.booked_count == 0

    def reserve_slots(self, resource: Resource, check_in: datetime, check_out: datetime,
                      slot_type: SlotType, price: Decimal) -> List[ResourceSlot]:
        return [
            self.reserve_slot(resource, day, slot_type, price)
            for day in covered_dates(check_in, check_out)
        ]

    def release_slots(self, slots: List[ResourceSlot]) -> None:
        for slot in slots:
            self.release_slot(slot)

    def get_slots(self, resource_id: int, start_date: Optional[date] = None,
                  end_date: Optional[date] = None) -> List[ResourceSlot]:
        self.require_resource(resource_id)
        query = self.db.query(ResourceSlot).filter(ResourceSlot.resource_id == resource_id)
        if start_date:
            query = query.filter(ResourceSlot.slot_date >= start_date)
        if end_date:
            query = query.filter(ResourceSlot.slot_date <= end_date)
        return query.order_by(ResourceSlot.slot_date, ResourceSlot.slot_type).all()
