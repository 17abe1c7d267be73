"""
Domain events
Business events emitted by the reservation engine after a commit
"""
from enum import Enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List


class EventType(str, Enum):
    """Event type names"""
    RESOURCE_BOOKED = "resource.booked"


@dataclass
class BaseEventData:
    """Base class of event payloads"""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict"""
        result = asdict(self)
        for key, value in result.items():
            if isinstance(value, datetime):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = str(value)
        return result


@dataclass
class ResourceBookedData(BaseEventData):
    """Payload of resource.booked, one per created reservation"""
    reservation_id: str = ""
    reference: str = ""
    guest_name: str = ""
    guest_phone: str = ""
    guest_email: Optional[str] = None
    resource_code: str = ""
    resource_kind: str = ""
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    total: Decimal = Decimal("0")
    channel: str = ""
    is_batch: bool = False
    batch_reservation_ids: List[str] = field(default_factory=list)
