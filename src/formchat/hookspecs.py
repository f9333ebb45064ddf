"""Pluggy hook namespace and presentation hook specifications."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeAlias

import pluggy

from formchat.types import Turn

FORMCHAT_HOOK_NAMESPACE = "formchat"
hookspec = pluggy.HookspecMarker(FORMCHAT_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(FORMCHAT_HOOK_NAMESPACE)

RetryAction: TypeAlias = Callable[[], Awaitable[object]]


class FormChatHookSpecs:
    """Notifications emitted by a form session to presentation plugins."""

    @hookspec
    def on_turn_delta(self, form_id: str, delta: str, content: str) -> None:
        """Observe one streamed chunk of the agent response in progress."""

    @hookspec
    def on_turn_finished(self, form_id: str, turn: Turn) -> None:
        """Observe one finalized and annotated agent turn."""

    @hookspec
    def on_stage_changed(self, form_id: str, previous: str, current: str) -> None:
        """Observe a stage transition."""

    @hookspec
    def on_chat_failed(self, form_id: str, error: Exception) -> None:
        """Observe a failed chat round-trip."""

    @hookspec
    def on_submission_started(self, form_id: str) -> None:
        """Submission in progress."""

    @hookspec
    def on_submission_succeeded(self, form_id: str) -> None:
        """Submission succeeded."""

    @hookspec
    def on_submission_failed(self, form_id: str, error: Exception, retry: RetryAction) -> None:
        """Submission failed; `retry` re-issues the same commit when awaited."""

    @hookspec
    def on_error(self, stage: str, error: Exception) -> None:
        """Observe notifier failures from any hook."""
