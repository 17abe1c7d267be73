"""
core/engine/state_machine.py

State machine engine - transition table validation

The machine is a pure validator: it answers whether an edge exists and which
edges leave a state. Side effects of a transition belong to the caller.
"""
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateTransition:
    """
    State transition definition

    Attributes:
        from_state: Source state
        to_state: Target state
        trigger: Name of the action that performs the transition
    """

    from_state: str
    to_state: str
    trigger: str = ""


@dataclass
class StateMachineConfig:
    """
    State machine configuration

    Attributes:
        name: Machine name
        states: All states
        transitions: Allowed transitions
        initial_state: Initial state
        final_states: States with no outgoing transitions
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str
    final_states: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        unknown = {
            s for t in self.transitions for s in (t.from_state, t.to_state)
        } - set(self.states)
        if unknown:
            raise ValueError(f"Transitions reference unknown states: {sorted(unknown)}")
        if self.initial_state not in self.states:
            raise ValueError(f"Unknown initial state: {self.initial_state}")
        leaving = {t.from_state for t in self.transitions}
        if leaving & set(self.final_states):
            raise ValueError(f"Final states have outgoing transitions: {sorted(leaving & set(self.final_states))}")


class StateMachine:
    """
    Transition table validator

    Example:
        >>> machine = StateMachine(StateMachineConfig(
        ...     name="Door",
        ...     states=["open", "closed"],
        ...     transitions=[StateTransition("open", "closed", "close")],
        ...     initial_state="open",
        ... ))
        >>> machine.is_valid_transition("open", "closed")
        True
        >>> machine.is_valid_transition("closed", "open")
        False
    """

    def __init__(self, config: StateMachineConfig):
        self._config = config
        self._edges: Dict[str, Dict[str, StateTransition]] = {state: {} for state in config.states}
        for t in config.transitions:
            self._edges[t.from_state][t.to_state] = t

    @property
    def config(self) -> StateMachineConfig:
        return self._config

    @property
    def states(self) -> List[str]:
        return list(self._config.states)

    @property
    def initial_state(self) -> str:
        return self._config.initial_state

    @property
    def final_states(self) -> FrozenSet[str]:
        return frozenset(self._config.final_states)

    def is_final(self, state: str) -> bool:
        """Whether the state is terminal"""
        return state in self._config.final_states

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        """Whether the edge from_state -> to_state exists"""
        return to_state in self._edges.get(from_state, {})

    def get_transition(self, from_state: str, to_state: str) -> Optional[StateTransition]:
        """Transition definition for an edge, or None"""
        return self._edges.get(from_state, {}).get(to_state)

    def get_allowed_transitions(self, from_state: str) -> List[str]:
        """Target states reachable in one step, in declaration order"""
        return list(self._edges.get(from_state, {}).keys())

    def edges(self) -> Iterable[Tuple[str, str]]:
        """All (from, to) pairs of the table"""
        for from_state, targets in self._edges.items():
            for to_state in targets:
                yield from_state, to_state


class StateMachineEngine:
    """
    Registry of state machines keyed by entity type

    Example:
        >>> engine = StateMachineEngine()
        >>> engine.register("Reservation", reservation_machine)
        >>> engine.get("Reservation").is_valid_transition("PENDING", "CONFIRMED")
    """

    def __init__(self):
        self._machines: Dict[str, StateMachine] = {}

    def register(self, entity_type: str, machine: StateMachine) -> None:
        """Register a state machine"""
        self._machines[entity_type] = machine
        logger.info(f"StateMachine registered for {entity_type}")

    def get(self, entity_type: str) -> Optional[StateMachine]:
        """Get a state machine"""
        return self._machines.get(entity_type)

    def get_all(self) -> Dict[str, StateMachine]:
        """All registered state machines"""
        return self._machines.copy()

    def clear(self) -> None:
        """Remove all state machines (for tests)"""
        self._machines.clear()


# Global state machine engine instance
state_machine_engine = StateMachineEngine()


__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
    "StateMachineEngine",
    "state_machine_engine",
]
