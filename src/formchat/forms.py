"""Form definitions loaded from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from formchat.errors import FormDefinitionError
from formchat.types import FieldDescriptor


class FieldSpec(BaseModel):
    identifier: str = Field(..., min_length=1, description="Marker the agent uses for this field")
    order: int | None = Field(default=None, description="Position in the form; defaults to list position")


class FormDefinition(BaseModel):
    """A form and its ordered fields."""

    id: str = Field(..., min_length=1)
    title: str = ""
    fields: list[FieldSpec] = Field(default_factory=list)

    @field_validator("fields", mode="before")
    @classmethod
    def _accept_plain_identifiers(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [{"identifier": item} if isinstance(item, str) else item for item in value]

    def descriptors(self) -> list[FieldDescriptor]:
        return [
            FieldDescriptor(identifier=item.identifier, order=position if item.order is None else item.order)
            for position, item in enumerate(self.fields)
        ]


def load_form(path: Path) -> FormDefinition:
    """Read and validate one form definition file."""

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise FormDefinitionError(f"cannot read form definition {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise FormDefinitionError(f"invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise FormDefinitionError(f"form definition {path} must be a mapping")
    try:
        return FormDefinition.model_validate(raw)
    except ValidationError as exc:
        raise FormDefinitionError(f"invalid form definition {path}: {exc}") from exc
