"""Immutable archive snapshot model."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ImmutableContractSnapshot(BaseModel):
    """Permanent record of one generated contract version.

    ``provider`` and ``template`` are full copies taken at generation time, so
    later edits to the source records never change what was archived.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    contract_id: str
    generated_at: datetime
    version: str
    provider: dict[str, Any] = Field(default_factory=dict)
    template: dict[str, Any] = Field(default_factory=dict)
    file_name: str
    file_hash: str
    file_size: int
    artifact_key: str
    metadata_key: str
    reference: str
