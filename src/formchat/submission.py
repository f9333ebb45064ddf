"""Submission of the finished dialogue to the persistence collaborator."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from loguru import logger

from formchat.concurrency import InFlightSlot
from formchat.config import DEFAULT_SENTINEL, Settings
from formchat.errors import SubmissionError
from formchat.hook_runtime import Notifier
from formchat.http import describe_status_error
from formchat.types import Turn

FINISH_TURN_ID = "finish"


@dataclass(frozen=True)
class SubmissionPayload:
    """Full history plus the synthetic closing turn."""

    messages: tuple[Turn, ...]
    is_preview: bool = False
    is_form_submitted: bool = True

    def to_wire(self) -> dict[str, Any]:
        return {
            "messages": [turn.to_wire() for turn in self.messages],
            "isFormSubmitted": self.is_form_submitted,
            "isPreview": self.is_preview,
        }


@dataclass(frozen=True)
class CommitCommand:
    """Everything needed to replay one commit."""

    form_id: str
    history: tuple[Turn, ...]


@dataclass(frozen=True)
class SubmissionOutcome:
    ok: bool
    command: CommitCommand
    error: str | None = None


class PersistenceClient(Protocol):
    async def write(self, form_id: str, payload: SubmissionPayload) -> None: ...


class HttpPersistenceClient:
    """Write submissions to the per-form conversation endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    async def write(self, form_id: str, payload: SubmissionPayload) -> None:
        url = self._settings.form_endpoint(form_id)
        try:
            response = await self._client.post(url, json=payload.to_wire())
        except httpx.HTTPError as exc:
            raise SubmissionError(f"submission_transport_error: {exc!s}") from exc
        if response.is_error:
            raise SubmissionError(describe_status_error(response), status_code=response.status_code)


def build_payload(history: Sequence[Turn], *, closing: str = DEFAULT_SENTINEL, is_preview: bool = False) -> SubmissionPayload:
    """Build the commit payload; the live history is never modified."""

    closing_turn = Turn.user(closing, turn_id=FINISH_TURN_ID)
    return SubmissionPayload(messages=(*history, closing_turn), is_preview=is_preview)


class SubmissionManager:
    """Commit the dialogue once, with user-triggered retry on failure."""

    def __init__(
        self,
        client: PersistenceClient,
        notifier: Notifier,
        *,
        slot: InFlightSlot | None = None,
        closing: str = DEFAULT_SENTINEL,
        is_preview: Callable[[], bool] = lambda: False,
        on_submitted: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._slot = slot or InFlightSlot("submission")
        self._closing = closing
        self._is_preview = is_preview
        self._on_submitted = on_submitted
        self._submitted = False
        self._last_failed: CommitCommand | None = None

    @property
    def submitted(self) -> bool:
        return self._submitted

    @property
    def busy(self) -> bool:
        return self._slot.held

    @property
    def last_failed(self) -> CommitCommand | None:
        return self._last_failed

    async def commit(self, history: Sequence[Turn], form_id: str) -> SubmissionOutcome | None:
        """Write history plus the closing turn; None when a commit is already in flight."""

        return await self._run(CommitCommand(form_id=form_id, history=tuple(history)))

    async def retry(self) -> SubmissionOutcome | None:
        """Re-issue the last failed commit; None when there is nothing to retry."""

        command = self._last_failed
        if command is None or self._slot.held:
            logger.debug("submission.retry_ignored pending={} busy={}", command is not None, self._slot.held)
            return None
        self._last_failed = None
        logger.info("submission.retry form_id={}", command.form_id)
        return await self._run(command)

    def reset(self) -> None:
        self._submitted = False
        self._last_failed = None

    async def _run(self, command: CommitCommand) -> SubmissionOutcome | None:
        if self._slot.held:
            logger.warning("submission.ignored reason=in_flight form_id={}", command.form_id)
            return None

        error: SubmissionError | None = None
        with self._slot.hold():
            payload = build_payload(command.history, closing=self._closing, is_preview=self._is_preview())
            self._submitted = True
            if self._on_submitted is not None:
                self._on_submitted()
            await self._notifier.notify("on_submission_started", form_id=command.form_id)
            try:
                await self._client.write(command.form_id, payload)
            except SubmissionError as exc:
                error = exc
            except Exception as exc:
                # Persistence is an external boundary; every failure offers a retry.
                error = SubmissionError(f"submission_error: {exc!s}")

        if error is not None:
            logger.warning("submission.failed form_id={} error={}", command.form_id, error)
            self._last_failed = command
            await self._notifier.notify("on_submission_failed", form_id=command.form_id, error=error, retry=self.retry)
            return SubmissionOutcome(ok=False, command=command, error=str(error))

        logger.info("submission.succeeded form_id={} turns={}", command.form_id, len(payload.messages))
        await self._notifier.notify("on_submission_succeeded", form_id=command.form_id)
        return SubmissionOutcome(ok=True, command=command)
