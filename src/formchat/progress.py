"""Field progress tracking from agent turn markers.

The answering agent annotates each question with a bracketed marker naming
the field it asks about, e.g. ``"What is your name? [name]"``. Parsing the
marker and resolving it against the form's fields are separate steps so the
marker format can change without touching index resolution.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from formchat.types import FieldDescriptor, Role, Turn, TurnAnnotation

MARKER_RE = re.compile(r"\[([^\[\]]*)\]")
NO_FIELD_INDEX = -1


def extract_field_identifier(text: str) -> str | None:
    """Return the inner text of the first bracketed span without nested brackets."""

    match = MARKER_RE.search(text)
    if match is None:
        return None
    return match.group(1)


def strip_marker(text: str) -> str:
    """Drop the first marker for display."""
    return MARKER_RE.sub("", text, count=1).strip()


class FieldProgressTracker:
    """Resolve agent turn markers against the ordered field list."""

    def __init__(self, fields: Iterable[FieldDescriptor]) -> None:
        self._fields = tuple(sorted(fields, key=lambda descriptor: descriptor.order))
        self._index: dict[str, int] = {}
        for position, descriptor in enumerate(self._fields):
            self._index.setdefault(descriptor.identifier, position)

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return self._fields

    def extract_field_identifier(self, text: str) -> str | None:
        return extract_field_identifier(text)

    def lookup_field_index(self, identifier: str) -> int:
        """Zero-based position of the first field named `identifier`, or -1."""

        return self._index.get(identifier, NO_FIELD_INDEX)

    def annotate(self, turn: Turn) -> Turn:
        """Attach the parsed marker to an agent turn."""

        if turn.role is not Role.AGENT:
            return turn
        identifier = extract_field_identifier(turn.content)
        return turn.with_annotation(TurnAnnotation(answered_field=identifier or None))
