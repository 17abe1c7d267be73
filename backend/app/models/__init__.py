# Ontology Models
from app.models.ontology import (
    Resource, Occupant, ResourceSlot, Reservation, ReservationHistory
)

__all__ = [
    'Resource', 'Occupant', 'ResourceSlot', 'Reservation', 'ReservationHistory'
]
