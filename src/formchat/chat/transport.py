"""Chat transport boundary and its HTTP implementation."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from loguru import logger

from formchat.config import Settings
from formchat.http import describe_status_error
from formchat.types import StreamEvent, Turn

DATA_TEXT_PART = "0"
DATA_ERROR_PART = "3"


@dataclass(frozen=True)
class ChatRequest:
    """One round-trip request: the full history plus session flags."""

    form_id: str
    history: Sequence[Turn]
    is_form_submitted: bool = False
    is_preview: bool = False

    def to_wire(self) -> dict[str, Any]:
        return {
            "messages": [turn.to_wire() for turn in self.history],
            "isFormSubmitted": self.is_form_submitted,
            "isPreview": self.is_preview,
        }


class ChatTransport(Protocol):
    """Streams one agent response for a request.

    Implementations yield ``text`` events carrying ``delta``, then one
    ``final`` event carrying the full ``text``, or an ``error`` event.
    """

    def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]: ...


class HttpChatTransport:
    """Stream agent turns from the per-form conversation endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._settings = settings
        self._client = client

    async def stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        url = self._settings.form_endpoint(request.form_id)
        parts: list[str] = []
        try:
            async with self._client.stream("POST", url, json=request.to_wire()) as response:
                if response.is_error:
                    await response.aread()
                    yield StreamEvent("error", {"kind": "http", "message": describe_status_error(response)})
                    return
                async for event in self._decode(response):
                    if event.kind == "error":
                        yield event
                        return
                    parts.append(event.data["delta"])
                    yield event
        except httpx.HTTPError as exc:
            logger.warning("chat.transport.error url={} error={}", url, exc)
            yield StreamEvent("error", {"kind": "transport", "message": str(exc) or type(exc).__name__})
            return

        yield StreamEvent("final", {"text": "".join(parts)})

    async def _decode(self, response: httpx.Response) -> AsyncIterator[StreamEvent]:
        if self._settings.stream_protocol == "text":
            async for chunk in response.aiter_text():
                if chunk:
                    yield StreamEvent("text", {"delta": chunk})
            return

        async for line in response.aiter_lines():
            event = decode_data_line(line)
            if event is not None:
                yield event


def decode_data_line(line: str) -> StreamEvent | None:
    """Decode one ``<code>:<json>`` line of the data stream protocol."""

    code, separator, body = line.strip().partition(":")
    if not separator:
        return None
    if code not in (DATA_TEXT_PART, DATA_ERROR_PART):
        return None
    try:
        value = json.loads(body)
    except json.JSONDecodeError:
        logger.debug("chat.transport.bad_line line={}", line)
        return None
    if not isinstance(value, str):
        return None
    if code == DATA_ERROR_PART:
        return StreamEvent("error", {"kind": "agent", "message": value})
    return StreamEvent("text", {"delta": value})
