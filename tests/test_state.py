import pytest

from formchat.errors import InvalidTransitionError
from formchat.state import (
    Begin,
    BusyChanged,
    Complete,
    ConversationStateMachine,
    FieldRecorded,
    Reset,
    SessionState,
    Stage,
    Submitted,
    transition,
)


def test_initial_state() -> None:
    state = SessionState()

    assert state.stage is Stage.WELCOME
    assert state.busy is False
    assert state.last_answered_field_index == -1
    assert state.submitted is False
    assert state.current_field_identifier == ""


def test_begin_advances_once() -> None:
    state = transition(SessionState(), Begin())

    assert state.stage is Stage.FIELDS
    assert transition(state, Begin()) is state


def test_complete_from_fields_and_idempotent() -> None:
    fields = transition(SessionState(), Begin())
    end = transition(fields, Complete())

    assert end.stage is Stage.END
    assert transition(end, Complete()) is end
    assert transition(end, Begin()) is end


def test_welcome_never_jumps_to_end() -> None:
    with pytest.raises(InvalidTransitionError):
        transition(SessionState(), Complete())


def test_reset_clears_progress_but_keeps_busy() -> None:
    state = SessionState(
        stage=Stage.END,
        busy=True,
        last_answered_field_index=3,
        submitted=True,
        current_field_identifier="finish",
    )

    assert transition(state, Reset()) == SessionState(busy=True)


def test_reset_of_fresh_state_is_noop() -> None:
    state = SessionState()

    assert transition(state, Reset()) is state


def test_field_and_flag_events() -> None:
    state = transition(SessionState(), FieldRecorded(identifier="email", index=1))
    assert (state.current_field_identifier, state.last_answered_field_index) == ("email", 1)
    assert transition(state, FieldRecorded(identifier="email", index=1)) is state

    busy = transition(state, BusyChanged(busy=True))
    assert busy.busy is True
    assert transition(busy, BusyChanged(busy=True)) is busy

    submitted = transition(busy, Submitted())
    assert submitted.submitted is True
    assert transition(submitted, Submitted()) is submitted


def test_snapshots_are_immutable() -> None:
    state = SessionState()

    with pytest.raises(AttributeError):
        state.stage = Stage.END  # type: ignore[misc]


def test_machine_reports_changes() -> None:
    machine = ConversationStateMachine()

    assert machine.begin() is True
    assert machine.begin() is False
    assert machine.complete() is True
    assert machine.complete() is False
    assert machine.stage is Stage.END
    assert machine.reset() is True
    assert machine.stage is Stage.WELCOME
