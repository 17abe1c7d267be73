"""
core/engine - Core engine components

- state_machine: transition table validation
"""
from core.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachine,
    StateMachineEngine,
    state_machine_engine,
)

__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
    "StateMachineEngine",
    "state_machine_engine",
]
