"""Single-slot in-flight tokens guarding round-trips."""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from itertools import count

from formchat.errors import BusyError

_token_ids = count(1)


@dataclass
class InFlightToken:
    """Proof that the holder owns one in-flight slot."""

    slot: str
    id: int = field(default_factory=lambda: next(_token_ids))
    active: bool = True


class InFlightSlot:
    """At most one outstanding request; acquiring the token is the only way to start one."""

    def __init__(self, name: str, *, on_change: Callable[[bool], None] | None = None) -> None:
        self.name = name
        self._on_change = on_change
        self._token: InFlightToken | None = None

    @property
    def held(self) -> bool:
        return self._token is not None

    def acquire(self) -> InFlightToken:
        if self._token is not None:
            raise BusyError(f"{self.name} request already in flight")
        self._token = InFlightToken(slot=self.name)
        self._changed()
        return self._token

    def release(self, token: InFlightToken) -> None:
        if self._token is not token:
            return
        token.active = False
        self._token = None
        self._changed()

    def check(self, token: InFlightToken) -> None:
        if not token.active or self._token is not token:
            raise BusyError(f"{self.name} token is not active")

    @contextlib.contextmanager
    def hold(self) -> Generator[InFlightToken, None, None]:
        token = self.acquire()
        try:
            yield token
        finally:
            self.release(token)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.held)
