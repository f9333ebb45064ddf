"""Conversation stage state machine.

Session state is an immutable snapshot. Every change goes through
``transition(state, event)``, a pure function; returning the very same
snapshot means the event was a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TypeAlias

from loguru import logger

from formchat.errors import InvalidTransitionError
from formchat.progress import NO_FIELD_INDEX


class Stage(StrEnum):
    WELCOME = "welcome"
    FIELDS = "fields"
    END = "end"


@dataclass(frozen=True)
class SessionState:
    """Progress of one form-filling attempt."""

    stage: Stage = Stage.WELCOME
    busy: bool = False
    last_answered_field_index: int = NO_FIELD_INDEX
    submitted: bool = False
    current_field_identifier: str = ""


@dataclass(frozen=True)
class Begin:
    pass


@dataclass(frozen=True)
class Complete:
    pass


@dataclass(frozen=True)
class Reset:
    pass


@dataclass(frozen=True)
class FieldRecorded:
    identifier: str
    index: int


@dataclass(frozen=True)
class BusyChanged:
    busy: bool


@dataclass(frozen=True)
class Submitted:
    pass


Event: TypeAlias = Begin | Complete | Reset | FieldRecorded | BusyChanged | Submitted


def transition(state: SessionState, event: Event) -> SessionState:
    """Apply one event to a snapshot and return the resulting snapshot."""

    match event:
        case Begin():
            if state.stage is not Stage.WELCOME:
                return state
            return replace(state, stage=Stage.FIELDS)
        case Complete():
            if state.stage is Stage.END:
                return state
            if state.stage is Stage.WELCOME:
                raise InvalidTransitionError("cannot complete a session that has not begun")
            return replace(state, stage=Stage.END)
        case Reset():
            fresh = SessionState(busy=state.busy)
            return state if state == fresh else fresh
        case FieldRecorded(identifier=identifier, index=index):
            if state.current_field_identifier == identifier and state.last_answered_field_index == index:
                return state
            return replace(state, current_field_identifier=identifier, last_answered_field_index=index)
        case BusyChanged(busy=busy):
            if state.busy == busy:
                return state
            return replace(state, busy=busy)
        case Submitted():
            if state.submitted:
                return state
            return replace(state, submitted=True)
    raise TypeError(f"unknown event: {event!r}")


class ConversationStateMachine:
    """Holds the current snapshot and exposes named transitions."""

    def __init__(self, state: SessionState | None = None) -> None:
        self._state = state or SessionState()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def stage(self) -> Stage:
        return self._state.stage

    def begin(self) -> bool:
        """welcome -> fields; False when already past welcome."""
        return self._apply(Begin())

    def complete(self) -> bool:
        """fields -> end; False when already at end."""
        return self._apply(Complete())

    def reset(self) -> bool:
        return self._apply(Reset())

    def record_field(self, identifier: str, index: int) -> bool:
        return self._apply(FieldRecorded(identifier=identifier, index=index))

    def set_busy(self, busy: bool) -> bool:
        return self._apply(BusyChanged(busy=busy))

    def mark_submitted(self) -> bool:
        return self._apply(Submitted())

    def _apply(self, event: Event) -> bool:
        previous = self._state
        current = transition(previous, event)
        if current is previous:
            logger.debug("state.noop event={} stage={}", type(event).__name__, previous.stage)
            return False
        self._state = current
        if current.stage is not previous.stage:
            logger.info("state.stage_changed from={} to={}", previous.stage, current.stage)
        return True
