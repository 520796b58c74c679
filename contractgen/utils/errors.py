"""Custom exceptions for core logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contractgen.templates.models import ParseResult


class TemplateError(Exception):
    """Raised when template placeholders are unsupported in strict mode."""

    def __init__(self, message: str, *, result: ParseResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class SettingsError(ValueError):
    """Raised when generation settings cannot be loaded or validated."""


class BatchValidationError(Exception):
    """Raised before a bulk run starts when the selection cannot be processed."""

    def __init__(
        self,
        message: str,
        *,
        empty_selection: bool = False,
        missing_template: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.empty_selection = empty_selection
        self.missing_template = list(missing_template or [])


class ArtifactEncodingError(Exception):
    """Raised when a filled body cannot be turned into a binary artifact."""


class ArchiveWriteError(Exception):
    """Raised when an artifact or its metadata cannot be durably stored."""

    def __init__(self, message: str, *, contract_id: str, key: str | None = None) -> None:
        super().__init__(message)
        self.contract_id = contract_id
        self.key = key


class IntegrityMismatchError(Exception):
    """Raised when a stored artifact no longer matches its recorded hash."""

    def __init__(
        self,
        message: str,
        *,
        contract_id: str,
        expected_hash: str,
        actual_hash: str | None,
    ) -> None:
        super().__init__(message)
        self.contract_id = contract_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash


class StorageError(Exception):
    """Base class for durable storage failures."""


class TransientStorageError(StorageError):
    """Storage failure that may succeed when retried."""


class StorageKeyExistsError(StorageError):
    """Raised when a write would overwrite an existing key."""


class StorageKeyNotFoundError(StorageError):
    """Raised when a key does not exist in storage."""
