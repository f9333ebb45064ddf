"""Shared dialogue and form dataclasses."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, TypeAlias

WireMessage: TypeAlias = dict[str, Any]

WIRE_ROLES = {"user": "user", "agent": "assistant"}


class Role(StrEnum):
    USER = "user"
    AGENT = "agent"

    @property
    def wire_name(self) -> str:
        return WIRE_ROLES[self.value]


@dataclass(frozen=True)
class FieldDescriptor:
    """One form field and its position in the form."""

    identifier: str
    order: int


@dataclass(frozen=True)
class TurnAnnotation:
    """Structured data parsed from one agent turn."""

    answered_field: str | None = None


@dataclass(frozen=True)
class Turn:
    """One message in the dialogue."""

    id: str
    role: Role
    content: str
    annotation: TurnAnnotation | None = None

    @classmethod
    def user(cls, content: str, *, turn_id: str | None = None) -> Turn:
        return cls(id=turn_id or new_turn_id(), role=Role.USER, content=content)

    @classmethod
    def agent(cls, content: str, *, turn_id: str | None = None) -> Turn:
        return cls(id=turn_id or new_turn_id(), role=Role.AGENT, content=content)

    @property
    def answered_field(self) -> str | None:
        if self.annotation is None:
            return None
        return self.annotation.answered_field

    def with_annotation(self, annotation: TurnAnnotation) -> Turn:
        return replace(self, annotation=annotation)

    def to_wire(self) -> WireMessage:
        return {"id": self.id, "role": self.role.wire_name, "content": self.content}


@dataclass(frozen=True)
class StreamEvent:
    """One event of a streamed agent response."""

    kind: str  # text|final|error
    data: dict[str, Any] = field(default_factory=dict)


def new_turn_id() -> str:
    return uuid.uuid4().hex[:16]
