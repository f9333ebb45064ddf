"""Form session orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable

from loguru import logger

from formchat.chat.stream import ChatStreamAdapter, RequestFlags
from formchat.chat.transport import ChatTransport
from formchat.completion import CompletionDetector
from formchat.concurrency import InFlightSlot, InFlightToken
from formchat.config import Settings
from formchat.errors import BusyError, TransportError
from formchat.forms import FormDefinition
from formchat.hook_runtime import Notifier
from formchat.logging_utils import form_context
from formchat.progress import NO_FIELD_INDEX, FieldProgressTracker
from formchat.state import ConversationStateMachine, SessionState, Stage
from formchat.submission import PersistenceClient, SubmissionManager, SubmissionOutcome
from formchat.types import FieldDescriptor, Role, Turn

GREETING_TURN_ID = "greeting"


class FormSession:
    """One form-filling attempt: dialogue, progress, completion and commit."""

    def __init__(
        self,
        form_id: str,
        fields: Iterable[FieldDescriptor],
        *,
        transport: ChatTransport,
        persistence: PersistenceClient,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.form_id = form_id
        self._settings = settings or Settings()
        self._notifier = notifier or Notifier()
        self._machine = ConversationStateMachine()
        self._tracker = FieldProgressTracker(fields)
        self._detector = CompletionDetector(self._settings.completion_sentinel)
        self._chat_slot = InFlightSlot("chat", on_change=self._sync_busy)
        self._adapter = ChatStreamAdapter(
            transport,
            form_id=form_id,
            slot=self._chat_slot,
            flags=self._request_flags,
            finalize=self._tracker.annotate,
            on_turn_received=self._handle_turn_received,
            on_turn_finished=self._handle_turn_finished,
        )
        self._submission = SubmissionManager(
            persistence,
            self._notifier,
            slot=InFlightSlot("submission", on_change=self._sync_busy),
            closing=self._settings.completion_sentinel,
            is_preview=lambda: self._settings.preview,
            on_submitted=self._machine.mark_submitted,
        )
        self._submission_task: asyncio.Task[SubmissionOutcome | None] | None = None

    @classmethod
    def from_definition(
        cls,
        form: FormDefinition,
        *,
        transport: ChatTransport,
        persistence: PersistenceClient,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ) -> FormSession:
        return cls(
            form.id,
            form.descriptors(),
            transport=transport,
            persistence=persistence,
            notifier=notifier,
            settings=settings,
        )

    @property
    def state(self) -> SessionState:
        return self._machine.state

    @property
    def stage(self) -> Stage:
        return self._machine.stage

    @property
    def history(self) -> tuple[Turn, ...]:
        return self._adapter.history

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return self._tracker.fields

    @property
    def input(self) -> str:
        return self._adapter.input

    @property
    def submission(self) -> SubmissionManager:
        return self._submission

    def current_question(self) -> str:
        """Text of the latest agent turn, or an empty string."""

        for turn in reversed(self._adapter.history):
            if turn.role is Role.AGENT:
                return turn.content
        return ""

    async def begin(self) -> Turn | None:
        """Leave the welcome stage and send the greeting; no-op after the first call."""

        with form_context(self.form_id):
            previous = self._machine.stage
            if not self._machine.begin():
                return None
            await self._stage_changed(previous)
            return await self._round_trip(
                lambda token: self._adapter.send(self._settings.greeting, token=token, turn_id=GREETING_TURN_ID)
            )

    async def send_input(self, content: str) -> Turn | None:
        """Send one user answer; ignored outside the fields stage or while a round-trip is outstanding."""

        with form_context(self.form_id):
            if not self._accepts_input():
                return None
            return await self._round_trip(lambda token: self._adapter.send(content, token=token))

    def set_input(self, value: str) -> None:
        self._adapter.set_input(value)

    async def submit_input(self) -> Turn | None:
        with form_context(self.form_id):
            if not self._accepts_input():
                return None
            return await self._round_trip(lambda token: self._adapter.submit(token=token))

    async def retry_chat(self) -> Turn | None:
        """Re-run a round-trip whose user turn was left unanswered, e.g. a failed greeting."""

        with form_context(self.form_id):
            if not self._accepts_input() or not self._adapter.awaiting_agent:
                return None
            return await self._round_trip(lambda token: self._adapter.reload(token=token))

    async def retry_submission(self) -> SubmissionOutcome | None:
        with form_context(self.form_id):
            return await self._submission.retry()

    async def wait_for_submission(self) -> SubmissionOutcome | None:
        if self._submission_task is None:
            return None
        return await self._submission_task

    async def reset(self) -> None:
        """Restart the attempt from the welcome stage with an empty history."""

        with form_context(self.form_id):
            if self._chat_slot.held or self._submission_pending():
                raise BusyError("cannot reset while a round-trip is outstanding")
            previous = self._machine.stage
            self._machine.reset()
            self._detector.reset()
            self._adapter.clear()
            self._submission.reset()
            self._submission_task = None
            logger.info("session.reset form_id={}", self.form_id)
            await self._stage_changed(previous)

    def _submission_pending(self) -> bool:
        # A scheduled commit only takes its slot once the task first runs.
        task = self._submission_task
        return self._submission.busy or (task is not None and not task.done())

    def _accepts_input(self) -> bool:
        if self._machine.stage is not Stage.FIELDS:
            logger.debug("session.input_ignored stage={}", self._machine.stage)
            return False
        if self._chat_slot.held:
            logger.debug("session.input_ignored reason=busy")
            return False
        return True

    async def _round_trip(self, run: Callable[[InFlightToken], Awaitable[Turn | None]]) -> Turn | None:
        try:
            token = self._chat_slot.acquire()
        except BusyError:
            logger.debug("session.round_trip_ignored reason=busy")
            return None
        try:
            turn = await run(token)
        except TransportError as exc:
            logger.warning("session.chat_failed error={}", exc)
            await self._notifier.notify("on_chat_failed", form_id=self.form_id, error=exc)
            raise
        finally:
            self._chat_slot.release(token)

        await self._check_completion()
        return turn

    async def _handle_turn_received(self, delta: str, content: str) -> None:
        await self._notifier.notify("on_turn_delta", form_id=self.form_id, delta=delta, content=content)

    async def _handle_turn_finished(self, turn: Turn) -> None:
        identifier = turn.answered_field
        if identifier:
            index = self._tracker.lookup_field_index(identifier)
            if index == NO_FIELD_INDEX and not self._detector.is_sentinel(identifier):
                logger.warning("progress.unknown_field identifier={}", identifier)
            self._machine.record_field(identifier, index)
        await self._notifier.notify("on_turn_finished", form_id=self.form_id, turn=turn)

    async def _check_completion(self) -> None:
        if not self._detector.evaluate(self._machine.state):
            return
        self._submission_task = asyncio.create_task(self._submission.commit(self._adapter.history, self.form_id))
        previous = self._machine.stage
        if self._machine.complete():
            await self._stage_changed(previous)

    async def _stage_changed(self, previous: Stage) -> None:
        current = self._machine.stage
        if current is previous:
            return
        await self._notifier.notify(
            "on_stage_changed",
            form_id=self.form_id,
            previous=previous.value,
            current=current.value,
        )

    def _request_flags(self) -> RequestFlags:
        return RequestFlags(is_form_submitted=self._machine.state.submitted, is_preview=self._settings.preview)

    def _sync_busy(self, _held: bool) -> None:
        self._machine.set_busy(self._chat_slot.held or self._submission.busy)
