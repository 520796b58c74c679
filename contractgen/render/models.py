"""Merge report models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ReplaceLogEntry(BaseModel):
    """How one distinct placeholder was resolved."""

    model_config = ConfigDict(extra="forbid")

    status: Literal["replaced", "dynamic", "implicit", "ignored", "missing"]
    placeholder: str
    occurrences: int
    source: str | None = None
    new_text: str | None = None
    reason: str | None = None


class MergeResult(BaseModel):
    """Filled template body with warnings for unresolved placeholders."""

    model_config = ConfigDict(extra="forbid")

    content: str
    warnings: list[str] = Field(default_factory=list)
    success: bool
    template_fields: list[str] = Field(default_factory=list)
    entries: list[ReplaceLogEntry] = Field(default_factory=list)
