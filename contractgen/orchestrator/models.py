"""Generation outcome, run progress, and bulk report models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from contractgen.render.models import ReplaceLogEntry


class GenerationStatus(str, Enum):
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"


class RunStatus(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    RUNNING = "RUNNING"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class GenerationOutcome(BaseModel):
    """Result of generating one contract. Immutable once recorded."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    provider_id: str
    provider_name: str
    template_id: str | None = None
    template_name: str | None = None
    status: GenerationStatus
    artifact: bytes | None = None
    file_name: str | None = None
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None
    entries: list[ReplaceLogEntry] = Field(default_factory=list)
    snapshot_reference: str | None = None
    generated_at: datetime

    def summary(self) -> dict[str, object]:
        """JSON-friendly view without the artifact bytes."""

        return self.model_dump(mode="json", exclude={"artifact"})


class RunProgress(BaseModel):
    """Observable progress of a bulk run."""

    model_config = ConfigDict(extra="forbid")

    total: int = 0
    completed: int = 0
    percentage: float = 0.0
    current_operation: str = ""
    success_count: int = 0
    partial_count: int = 0
    failed_count: int = 0

    def reset(self, total: int) -> None:
        """Start a new run on this same object so held references stay live."""

        self.total = total
        self.completed = 0
        self.percentage = 0.0
        self.current_operation = ""
        self.success_count = 0
        self.partial_count = 0
        self.failed_count = 0

    def advance(self, status: GenerationStatus) -> None:
        self.completed += 1
        if status is GenerationStatus.SUCCESS:
            self.success_count += 1
        elif status is GenerationStatus.PARTIAL_SUCCESS:
            self.partial_count += 1
        else:
            self.failed_count += 1
        if self.total:
            # Never move backwards, even if total were adjusted mid-run.
            self.percentage = max(self.percentage, round(100.0 * self.completed / self.total, 2))


class BulkRunReport(BaseModel):
    """Final report of a bulk run."""

    model_config = ConfigDict(extra="forbid")

    run_id: str
    status: RunStatus
    outcomes: list[GenerationOutcome] = Field(default_factory=list)
    total: int
    success_count: int = 0
    partial_count: int = 0
    failed_count: int = 0
    cancelled_count: int = 0
    bundle: bytes | None = None
    bundle_name: str | None = None
    bundled_files: list[str] = Field(default_factory=list)

    def summary(self) -> dict[str, object]:
        """JSON-friendly view without artifact or bundle bytes."""

        payload = self.model_dump(mode="json", exclude={"outcomes", "bundle"})
        payload["outcomes"] = [outcome.summary() for outcome in self.outcomes]
        return payload
