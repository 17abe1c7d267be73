# Business Services
from app.services.resource_service import ResourceService
from app.services.reservation_service import ReservationService
from app.services.audit_service import HistoryService
from app.services.conflict_service import ConflictDetector

__all__ = [
    'ResourceService', 'ReservationService', 'HistoryService', 'ConflictDetector'
]
