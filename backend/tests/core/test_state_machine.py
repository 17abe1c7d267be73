"""
State machine engine tests
"""
import pytest

from core.engine import StateMachine, StateMachineConfig, StateMachineEngine, StateTransition


def _make_door_machine():
    return StateMachine(StateMachineConfig(
        name="Door",
        states=["open", "closed", "locked", "removed"],
        transitions=[
            StateTransition("open", "closed", "close"),
            StateTransition("closed", "open", "open"),
            StateTransition("closed", "locked", "lock"),
            StateTransition("locked", "closed", "unlock"),
            StateTransition("closed", "removed", "remove"),
        ],
        initial_state="closed",
        final_states=frozenset({"removed"}),
    ))


class TestStateMachineConfig:

    def test_unknown_state_in_transition(self):
        with pytest.raises(ValueError, match="unknown states"):
            StateMachineConfig(
                name="Broken",
                states=["a"],
                transitions=[StateTransition("a", "b")],
                initial_state="a",
            )

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError, match="initial state"):
            StateMachineConfig(name="Broken", states=["a"], transitions=[], initial_state="z")

    def test_final_state_with_outgoing_edge(self):
        with pytest.raises(ValueError, match="outgoing"):
            StateMachineConfig(
                name="Broken",
                states=["a", "b"],
                transitions=[StateTransition("a", "b"), StateTransition("b", "a")],
                initial_state="a",
                final_states=frozenset({"b"}),
            )


class TestStateMachine:

    def test_valid_and_invalid_edges(self):
        machine = _make_door_machine()

        assert machine.is_valid_transition("closed", "locked")
        assert not machine.is_valid_transition("open", "locked")
        assert not machine.is_valid_transition("unknown", "open")

    def test_get_transition(self):
        machine = _make_door_machine()

        assert machine.get_transition("locked", "closed").trigger == "unlock"
        assert machine.get_transition("open", "locked") is None

    def test_allowed_transitions_in_declaration_order(self):
        machine = _make_door_machine()
        assert machine.get_allowed_transitions("closed") == ["open", "locked", "removed"]

    def test_final_states(self):
        machine = _make_door_machine()

        assert machine.is_final("removed")
        assert not machine.is_final("closed")
        assert machine.get_allowed_transitions("removed") == []

    def test_edges(self):
        machine = _make_door_machine()
        assert len(list(machine.edges())) == 5


class TestStateMachineEngine:

    def test_register_and_get(self):
        engine = StateMachineEngine()
        machine = _make_door_machine()
        engine.register("Door", machine)

        assert engine.get("Door") is machine
        assert engine.get("Window") is None
        assert set(engine.get_all()) == {"Door"}

    def test_clear(self):
        engine = StateMachineEngine()
        engine.register("Door", _make_door_machine())
        engine.clear()

        assert engine.get_all() == {}
