"""
Reservation status machine

PENDING -> CONFIRMED -> CHECKED_IN -> CHECKED_OUT, with CANCELLED reachable
from every non-terminal state. Side effects of a transition (slot release,
resource status) are applied by the reservation orchestrator.
"""
from typing import List, Union

from core.engine.state_machine import (
    StateMachine, StateMachineConfig, StateTransition, state_machine_engine,
)
from app.models.ontology import ReservationStatus
from app.services.errors import InvalidStatusTransitionError

S = ReservationStatus

RESERVATION_STATE_MACHINE = StateMachine(StateMachineConfig(
    name="Reservation",
    states=[s.value for s in ReservationStatus],
    transitions=[
        StateTransition(S.PENDING.value, S.CONFIRMED.value, "confirm"),
        StateTransition(S.PENDING.value, S.CANCELLED.value, "cancel"),
        StateTransition(S.CONFIRMED.value, S.CHECKED_IN.value, "check_in"),
        StateTransition(S.CONFIRMED.value, S.CANCELLED.value, "cancel"),
        StateTransition(S.CHECKED_IN.value, S.CHECKED_OUT.value, "check_out"),
        StateTransition(S.CHECKED_IN.value, S.CANCELLED.value, "cancel"),
    ],
    initial_state=S.PENDING.value,
    final_states=frozenset({S.CHECKED_OUT.value, S.CANCELLED.value}),
))

state_machine_engine.register("Reservation", RESERVATION_STATE_MACHINE)

StatusLike = Union[ReservationStatus, str]


def _value(status: StatusLike) -> str:
    return status.value if isinstance(status, ReservationStatus) else str(status)


def can_transition(current: StatusLike, requested: StatusLike) -> bool:
    return RESERVATION_STATE_MACHINE.is_valid_transition(_value(current), _value(requested))


def validate_status_transition(current: StatusLike, requested: StatusLike) -> None:
    """
    Raises:
        InvalidStatusTransitionError: the edge is not in the table
    """
    if not can_transition(current, requested):
        raise InvalidStatusTransitionError(current, requested)


def allowed_next_statuses(current: StatusLike) -> List[ReservationStatus]:
    return [ReservationStatus(s) for s in RESERVATION_STATE_MACHINE.get_allowed_transitions(_value(current))]


def is_terminal(status: StatusLike) -> bool:
    return RESERVATION_STATE_MACHINE.is_final(_value(status))
