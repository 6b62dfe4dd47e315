"""Serializable view of form controller state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from core.fields.models import Field as FormField


class FormState(BaseModel):
    """Snapshot returned to rendering surfaces after every action."""

    model_config = ConfigDict(extra="forbid")

    fields: list[FormField] = Field(default_factory=list)
    can_remove: bool
    has_image: bool
    generating: bool = False
    image_data_url: str | None = None
    payload_text: str | None = None
