"""Application-level exception types for formchat."""

from __future__ import annotations


class FormChatError(Exception):
    """Base exception for formchat."""


class ConfigurationError(FormChatError):
    """Raised when settings are missing or inconsistent."""


class FormDefinitionError(ConfigurationError):
    """Raised when a form definition cannot be loaded or validated."""


class TransportError(FormChatError):
    """Raised when a chat round-trip fails before a turn is finalized."""


class SubmissionError(FormChatError):
    """Raised by persistence clients when the answers cannot be written."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BusyError(FormChatError):
    """Raised when a round-trip is started without holding its in-flight slot."""


class InvalidTransitionError(FormChatError):
    """Raised when a stage transition is not allowed from the current stage."""
