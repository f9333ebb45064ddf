from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import pytest

from formchat.chat.transport import ChatRequest
from formchat.config import Settings
from formchat.errors import SubmissionError
from formchat.hook_runtime import Notifier
from formchat.hookspecs import hookimpl
from formchat.submission import SubmissionPayload
from formchat.types import FieldDescriptor, StreamEvent


@dataclass
class FakeTransport:
    """Streams scripted agent replies; an Exception entry fails that round-trip."""

    replies: list[str | Exception]
    requests: list[ChatRequest] = field(default_factory=list)
    gate: asyncio.Event | None = None

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(reply, Exception):
            yield StreamEvent("error", {"kind": "transport", "message": str(reply)})
            return
        half = len(reply) // 2
        for chunk in (reply[:half], reply[half:]):
            yield StreamEvent("text", {"delta": chunk})
        yield StreamEvent("final", {"text": reply})


@dataclass
class FakePersistence:
    failures: int = 0
    writes: list[tuple[str, SubmissionPayload]] = field(default_factory=list)
    stored: list[tuple[str, SubmissionPayload]] = field(default_factory=list)

    async def write(self, form_id: str, payload: SubmissionPayload) -> None:
        self.writes.append((form_id, payload))
        if self.failures > 0:
            self.failures -= 1
            raise SubmissionError("http_503: Service Unavailable", status_code=503)
        self.stored.append((form_id, payload))


@dataclass
class RecordingPlugin:
    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    @hookimpl
    def on_turn_delta(self, delta: str) -> None:
        self.events.append(("on_turn_delta", {"delta": delta}))

    @hookimpl
    def on_turn_finished(self, turn) -> None:
        self.events.append(("on_turn_finished", {"turn": turn}))

    @hookimpl
    def on_stage_changed(self, previous: str, current: str) -> None:
        self.events.append(("on_stage_changed", {"previous": previous, "current": current}))

    @hookimpl
    def on_chat_failed(self, error: Exception) -> None:
        self.events.append(("on_chat_failed", {"error": error}))

    @hookimpl
    def on_submission_started(self, form_id: str) -> None:
        self.events.append(("on_submission_started", {"form_id": form_id}))

    @hookimpl
    def on_submission_succeeded(self, form_id: str) -> None:
        self.events.append(("on_submission_succeeded", {"form_id": form_id}))

    @hookimpl
    def on_submission_failed(self, form_id: str, error: Exception, retry) -> None:
        self.events.append(("on_submission_failed", {"form_id": form_id, "error": error, "retry": retry}))


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, api_base="http://forms.test/api")


@pytest.fixture
def plugin() -> RecordingPlugin:
    return RecordingPlugin()


@pytest.fixture
def notifier(plugin: RecordingPlugin) -> Notifier:
    notifier = Notifier()
    notifier.register(plugin, name="recording")
    return notifier


@pytest.fixture
def two_fields() -> list[FieldDescriptor]:
    return [FieldDescriptor("q1", 0), FieldDescriptor("q2", 1)]


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    return FakeTransport


@pytest.fixture
def persistence() -> FakePersistence:
    return FakePersistence()
