"""Generation settings model."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FormatTag = Literal["currency", "date", "fte", "number", "text"]


class GenerationSettings(BaseModel):
    """Settings shared by the merger, orchestrator and archive writer."""

    model_config = ConfigDict(extra="forbid")

    currency_symbol: str = "$"
    field_formats: dict[str, FormatTag] = Field(default_factory=dict)
    ignore_unmapped: list[str] = Field(default_factory=list)
    archive_root: str = "archive"
    archive_version: str = "1.0.0"
    write_retries: int = Field(default=3, ge=1)
    retry_initial_seconds: float = Field(default=0.2, ge=0)
    retry_max_seconds: float = Field(default=2.0, ge=0)
    bundle_partial: bool = False
    bundle_name_pattern: str = "contracts_{contract_year}_{run_date}.zip"
