"""
Identifier service - reservation ids and public reference codes

Both values are computed inside the inserting transaction; the unique
constraints on reservations.id and reservations.reference are the final
arbiter and a collision makes the create path retry.
"""
import secrets
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.models.ontology import Reservation
from app.services.errors import InternalError

# No 0/O, 1/I/L
REFERENCE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
REFERENCE_ATTEMPTS = 10


def format_reservation_id(sequence: int) -> str:
    return f"{settings.RESERVATION_ID_PREFIX}{sequence:0{settings.RESERVATION_ID_DIGITS}d}"


def current_max_sequence(db: Session) -> int:
    """Highest numeric suffix among existing reservation ids, 0 when there are none"""
    prefix = settings.RESERVATION_ID_PREFIX
    last = db.query(Reservation.id).filter(
        Reservation.id.like(f"{prefix}%")
    ).order_by(func.length(Reservation.id).desc(), Reservation.id.desc()).first()
    if last is None:
        return 0
    suffix = last[0][len(prefix):]
    return int(suffix) if suffix.isdigit() else 0


def next_reservation_ids(db: Session, count: int = 1) -> List[str]:
    """Consecutive ids following the current maximum, e.g. RES0007, RES0008"""
    start = current_max_sequence(db) + 1
    return [format_reservation_id(start + i) for i in range(count)]


def next_reservation_id(db: Session) -> str:
    return next_reservation_ids(db, 1)[0]


def random_reference(length: Optional[int] = None) -> str:
    length = length or settings.REFERENCE_LENGTH
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))


def generate_reference(db: Session, exclude: Iterable[str] = ()) -> str:
    """
    A reference code not yet stored and not in exclude.

    Raises:
        InternalError: no free code found after REFERENCE_ATTEMPTS draws
    """
    taken = set(exclude)
    for _ in range(REFERENCE_ATTEMPTS):
        code = random_reference()
        if code in taken:
            continue
        exists = db.query(Reservation.id).filter(Reservation.reference == code).first()
        if exists is None:
            return code
    raise InternalError("Could not generate a unique reservation reference")


def generate_references(db: Session, count: int) -> List[str]:
    codes: List[str] = []
    for _ in range(count):
        codes.append(generate_reference(db, exclude=codes))
    return codes
