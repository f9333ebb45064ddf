"""Completion sentinel detection."""

from __future__ import annotations

from loguru import logger

from formchat.config import DEFAULT_SENTINEL
from formchat.state import SessionState


class CompletionDetector:
    """Fire once per session when the tracked field is the completion sentinel.

    The agent owns dialogue completeness: the detector does not check that
    every field was answered before accepting the sentinel.
    """

    def __init__(self, sentinel: str = DEFAULT_SENTINEL) -> None:
        self._sentinel = sentinel.casefold()
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def is_sentinel(self, identifier: str | None) -> bool:
        return bool(identifier) and identifier.casefold() == self._sentinel

    def evaluate(self, state: SessionState) -> bool:
        """Return True exactly once, on the first snapshot carrying the sentinel."""

        if not self.is_sentinel(state.current_field_identifier):
            return False
        if self._fired:
            logger.debug("completion.duplicate identifier={}", state.current_field_identifier)
            return False
        self._fired = True
        logger.info("completion.detected identifier={}", state.current_field_identifier)
        return True

    def reset(self) -> None:
        self._fired = False
