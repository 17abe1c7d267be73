"""
Audit service - append-only reservation history

Entries are written in the same transaction as the mutation they describe;
the service only flushes, the caller's unit of work commits.
"""
from dataclasses import dataclass, asdict
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from sqlalchemy.orm import Session
import json
import logging

from app.config import settings
from app.models.ontology import HistoryAction, ReservationHistory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_value(value: Any) -> Any:
    """JSON-friendly form used both for comparison and storage"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value.quantize(Decimal("0.01")))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _read(record: Any, field: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def compute_changes(old: Any, new: Any, fields: Iterable[str]) -> List[FieldChange]:
    """
    Ordered field-level diff between two records.

    Args:
        old: Record before the mutation (mapping or object), None for creation
        new: Record after the mutation (mapping or object)
        fields: Fields to compare, in output order

    Returns:
        One FieldChange per field whose normalized value differs
    """
    changes = []
    for field in fields:
        before = normalize_value(_read(old, field)) if old is not None else None
        after = normalize_value(_read(new, field))
        if before != after:
            changes.append(FieldChange(field, before, after))
    return changes


def snapshot(record: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Copy of the given fields, taken before a mutation"""
    return {field: _read(record, field) for field in fields}


def decode_changes(entry: ReservationHistory) -> List[Dict[str, Any]]:
    return json.loads(entry.changes or "[]")


class HistoryService:
    """Reservation history writer and reader"""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        reservation_id: str,
        action: HistoryAction,
        actor_id: Optional[str],
        changes: List[FieldChange],
        notes: Optional[str] = None,
    ) -> ReservationHistory:
        """Append one entry to the current transaction"""
        entry = ReservationHistory(
            reservation_id=reservation_id,
            action=action,
            actor_id=actor_id,
            changes=json.dumps([c.to_dict() for c in changes], default=str, ensure_ascii=False),
            notes=notes,
            timestamp=datetime.utcnow(),
        )
        self.db.add(entry)
        self.db.flush()
        logger.debug(f"History {action.value} appended for {reservation_id}")
        return entry

    def get_for_reservation(
        self,
        reservation_id: str,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[ReservationHistory]:
        query = self.db.query(ReservationHistory).filter(
            ReservationHistory.reservation_id == reservation_id
        )
        if newest_first:
            query = query.order_by(ReservationHistory.timestamp.desc(), ReservationHistory.id.desc())
        else:
            query = query.order_by(ReservationHistory.timestamp, ReservationHistory.id)
        if limit:
            query = query.limit(limit)
        return query.all()

    def list_entries(
        self,
        reservation_id: Optional[str] = None,
        action: Optional[HistoryAction] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[List[ReservationHistory], int]:
        """
        Global audit view, newest first.

        The date range is inclusive: start_date from its first instant,
        end_date through its last.

        Returns:
            (entries of the requested page, total matching entries)
        """
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        page = max(page, 1)

        query = self.db.query(ReservationHistory)
        if reservation_id:
            query = query.filter(ReservationHistory.reservation_id == reservation_id)
        if action:
            query = query.filter(ReservationHistory.action == action)
        if start_date:
            query = query.filter(ReservationHistory.timestamp >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(ReservationHistory.timestamp <= datetime.combine(end_date, time.max))

        total = query.count()
        entries = query.order_by(
            ReservationHistory.timestamp.desc(), ReservationHistory.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return entries, total
