"""Chat stream adapter over a streaming transport."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeAlias

from loguru import logger

from formchat.chat.transport import ChatRequest, ChatTransport
from formchat.concurrency import InFlightSlot, InFlightToken
from formchat.errors import TransportError
from formchat.types import Role, StreamEvent, Turn

TurnReceivedHook: TypeAlias = Callable[[str, str], Awaitable[None] | None]
TurnFinishedHook: TypeAlias = Callable[[Turn], Awaitable[None] | None]
TurnFinalizer: TypeAlias = Callable[[Turn], Turn]


@dataclass(frozen=True)
class RequestFlags:
    is_form_submitted: bool = False
    is_preview: bool = False


class ChatStreamAdapter:
    """Own the turn history and the pending input of one session."""

    def __init__(
        self,
        transport: ChatTransport,
        *,
        form_id: str,
        slot: InFlightSlot,
        flags: Callable[[], RequestFlags] = RequestFlags,
        finalize: TurnFinalizer | None = None,
        on_turn_received: TurnReceivedHook | None = None,
        on_turn_finished: TurnFinishedHook | None = None,
    ) -> None:
        self._transport = transport
        self._form_id = form_id
        self._slot = slot
        self._flags = flags
        self._finalize = finalize
        self._on_turn_received = on_turn_received
        self._on_turn_finished = on_turn_finished
        self._history: list[Turn] = []
        self._input = ""

    @property
    def history(self) -> tuple[Turn, ...]:
        return tuple(self._history)

    @property
    def input(self) -> str:
        return self._input

    def set_input(self, value: str) -> None:
        self._input = value

    async def submit(self, *, token: InFlightToken) -> Turn | None:
        """Send the pending input buffer and clear it; blank input is ignored."""

        content = self._input
        if not content.strip():
            return None
        self._input = ""
        return await self.send(content, token=token)

    async def send(self, content: str, *, token: InFlightToken, turn_id: str | None = None) -> Turn:
        """Append a user turn and run one round-trip; return the finalized agent turn."""

        self._slot.check(token)
        self._history.append(Turn.user(content, turn_id=turn_id))
        return await self._round_trip()

    async def reload(self, *, token: InFlightToken) -> Turn | None:
        """Re-run the round-trip for a trailing user turn left unanswered by a failure."""

        self._slot.check(token)
        if not self._history or self._history[-1].role is not Role.USER:
            return None
        return await self._round_trip()

    @property
    def awaiting_agent(self) -> bool:
        return bool(self._history) and self._history[-1].role is Role.USER

    async def _round_trip(self) -> Turn:
        request = self._build_request()
        logger.debug("chat.send turns={}", len(request.history))

        text = await self._read_stream(request)
        turn = Turn.agent(text)
        if self._finalize is not None:
            turn = self._finalize(turn)
        self._history.append(turn)
        logger.info("chat.turn_finished turn_id={} field={}", turn.id, turn.answered_field)
        await _call_hook(self._on_turn_finished, turn)
        return turn

    def clear(self) -> None:
        self._history.clear()
        self._input = ""

    def _build_request(self) -> ChatRequest:
        flags = self._flags()
        return ChatRequest(
            form_id=self._form_id,
            history=tuple(self._history),
            is_form_submitted=flags.is_form_submitted,
            is_preview=flags.is_preview,
        )

    async def _read_stream(self, request: ChatRequest) -> str:
        parts: list[str] = []
        final_text: str | None = None
        try:
            async for event in self._transport.stream(request):
                if event.kind == "text":
                    delta = str(event.data.get("delta", ""))
                    if not delta:
                        continue
                    parts.append(delta)
                    await _call_hook(self._on_turn_received, delta, "".join(parts))
                elif event.kind == "error":
                    raise TransportError(_format_error_event(event))
                elif event.kind == "final":
                    text = event.data.get("text")
                    final_text = text if isinstance(text, str) else "".join(parts)
        except TransportError:
            raise
        except Exception as exc:
            # Transports are an external boundary; normalize their failures.
            raise TransportError(f"chat_stream_error: {exc!s}") from exc

        if final_text is None:
            raise TransportError("chat_stream_error: missing final event")
        return final_text


def _format_error_event(event: StreamEvent) -> str:
    kind = event.data.get("kind")
    message = event.data.get("message")
    if isinstance(kind, str) and isinstance(message, str):
        return f"{kind}: {message}"
    if isinstance(message, str):
        return message
    return "chat_stream_error: unknown"


async def _call_hook(hook: Callable[..., Awaitable[None] | None] | None, *args: object) -> None:
    if hook is None:
        return
    result = hook(*args)
    if inspect.isawaitable(result):
        await result
