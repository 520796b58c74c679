"""Write-once archive of generated contracts with integrity verification."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from contractgen.archive.models import ImmutableContractSnapshot
from contractgen.archive.storage import DurableStorage
from contractgen.config.models import GenerationSettings
from contractgen.utils.errors import (
    ArchiveWriteError,
    IntegrityMismatchError,
    StorageError,
    StorageKeyNotFoundError,
    TransientStorageError,
)

logger = logging.getLogger("contractgen.archive")

ARTIFACT_PREFIX = "contracts/immutable"
METADATA_PREFIX = "contracts/metadata"
_KEY_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compute_file_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def format_key_timestamp(value: datetime) -> str:
    """Render a timestamp as a path-safe, lexicographically sortable key part."""

    return _as_utc(value).strftime(_KEY_TIMESTAMP_FORMAT)


def parse_key_timestamp(raw: str) -> datetime:
    return datetime.strptime(raw, _KEY_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def artifact_key(contract_id: str, generated_at: datetime, file_name: str) -> str:
    return f"{ARTIFACT_PREFIX}/{contract_id}/{format_key_timestamp(generated_at)}/{file_name}"


def metadata_key(contract_id: str, generated_at: datetime) -> str:
    return f"{METADATA_PREFIX}/{contract_id}/{format_key_timestamp(generated_at)}.json"


class ImmutableArchiveWriter:
    """Store every generated contract as a new, never-overwritten version.

    Each ``store`` call writes the artifact and a metadata snapshot under a
    fresh timestamp. Timestamps are strictly increasing per contract id; a
    clock collision is bumped forward by one microsecond.
    """

    def __init__(
        self,
        storage: DurableStorage,
        *,
        settings: GenerationSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.storage = storage
        self.settings = settings or GenerationSettings()
        self._clock = clock
        self._sleep = sleep
        self._last_issued: dict[str, datetime] = {}

    def store(
        self,
        contract_id: str,
        file_name: str,
        artifact: bytes,
        *,
        provider: dict[str, Any],
        template: dict[str, Any],
    ) -> ImmutableContractSnapshot:
        """Archive one artifact; raise ArchiveWriteError unless fully written."""

        try:
            _check_segment("contract id", contract_id)
            _check_segment("file name", file_name)
        except ValueError as exc:
            raise ArchiveWriteError(str(exc), contract_id=contract_id) from exc

        generated_at = self._next_timestamp(contract_id)
        file_key = artifact_key(contract_id, generated_at, file_name)
        meta_key = metadata_key(contract_id, generated_at)
        file_hash = compute_file_hash(artifact)

        reference = self._put(
            contract_id,
            file_key,
            artifact,
            {"contract_id": contract_id, "file_hash": file_hash},
        )
        snapshot = ImmutableContractSnapshot(
            contract_id=contract_id,
            generated_at=generated_at,
            version=self.settings.archive_version,
            provider=dict(provider),
            template=dict(template),
            file_name=file_name,
            file_hash=file_hash,
            file_size=len(artifact),
            artifact_key=file_key,
            metadata_key=meta_key,
            reference=reference,
        )
        metadata_bytes = json.dumps(
            snapshot.model_dump(mode="json"),
            ensure_ascii=False,
            sort_keys=True,
            indent=2,
        ).encode("utf-8")
        self._put(contract_id, meta_key, metadata_bytes, {"contract_id": contract_id})

        logger.info(
            "archived contract %s version %s (%d bytes)",
            contract_id,
            format_key_timestamp(generated_at),
            len(artifact),
        )
        return snapshot

    def verify(self, snapshot: ImmutableContractSnapshot) -> bool:
        """Recompute the artifact hash and compare it with the recorded one."""

        actual = self._stored_hash(snapshot)
        return actual is not None and actual == snapshot.file_hash

    def verify_or_raise(self, snapshot: ImmutableContractSnapshot) -> None:
        actual = self._stored_hash(snapshot)
        if actual != snapshot.file_hash:
            raise IntegrityMismatchError(
                f"Integrity check failed for {snapshot.contract_id} at {snapshot.artifact_key}",
                contract_id=snapshot.contract_id,
                expected_hash=snapshot.file_hash,
                actual_hash=actual,
            )

    def list_versions(self, contract_id: str) -> list[ImmutableContractSnapshot]:
        """Return all archived snapshots for a contract id, newest first."""

        _check_segment("contract id", contract_id)
        snapshots = [
            self._load_snapshot(key)
            for key in self.storage.list_keys(f"{METADATA_PREFIX}/{contract_id}/")
            if key.endswith(".json")
        ]
        snapshots.sort(key=lambda item: item.generated_at, reverse=True)
        return snapshots

    def get_snapshot(
        self, contract_id: str, generated_at: datetime | str | None = None
    ) -> ImmutableContractSnapshot:
        """Return one snapshot; the newest when ``generated_at`` is omitted."""

        if generated_at is None:
            versions = self.list_versions(contract_id)
            if not versions:
                raise StorageKeyNotFoundError(f"No archived versions for {contract_id}")
            return versions[0]

        if isinstance(generated_at, str):
            generated_at = _parse_timestamp(generated_at)
        return self._load_snapshot(metadata_key(contract_id, generated_at))

    def _next_timestamp(self, contract_id: str) -> datetime:
        candidate = _as_utc(self._clock())
        previous = self._last_issued.get(contract_id)
        if previous is None:
            previous = self._latest_stored(contract_id)
        if previous is not None and candidate <= previous:
            candidate = previous + timedelta(microseconds=1)
        self._last_issued[contract_id] = candidate
        return candidate

    def _latest_stored(self, contract_id: str) -> datetime | None:
        latest: datetime | None = None
        for key in self.storage.list_keys(f"{METADATA_PREFIX}/{contract_id}/"):
            stem = key.rsplit("/", 1)[-1].removesuffix(".json")
            try:
                stamp = parse_key_timestamp(stem)
            except ValueError:
                continue
            if latest is None or stamp > latest:
                latest = stamp
        return latest

    def _put(self, contract_id: str, key: str, data: bytes, metadata: dict[str, str]) -> str:
        retrying = Retrying(
            retry=retry_if_exception_type(TransientStorageError),
            stop=stop_after_attempt(max(1, self.settings.write_retries)),
            wait=wait_exponential(
                multiplier=self.settings.retry_initial_seconds,
                max=self.settings.retry_max_seconds,
            )
            + wait_random(0, self.settings.retry_initial_seconds),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return retrying(self.storage.put, key, data, metadata)
        except StorageError as exc:
            logger.warning("archive write failed for %s: %s", key, exc)
            raise ArchiveWriteError(
                f"Failed to archive {key}: {exc}", contract_id=contract_id, key=key
            ) from exc

    def _stored_hash(self, snapshot: ImmutableContractSnapshot) -> str | None:
        try:
            data = self.storage.get(snapshot.artifact_key)
        except StorageKeyNotFoundError:
            return None
        return compute_file_hash(data)

    def _load_snapshot(self, key: str) -> ImmutableContractSnapshot:
        raw = self.storage.get(key)
        try:
            return ImmutableContractSnapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise StorageError(f"Invalid snapshot metadata at {key}: {exc}") from exc


def _check_segment(label: str, value: str) -> None:
    if not value or "/" in value or "\\" in value or value in {".", ".."}:
        raise ValueError(f"Invalid {label}: {value!r}")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(raw: str) -> datetime:
    # Accepts both the key form and ISO 8601.
    if ":" not in raw and raw.count("-") > 2:
        return parse_key_timestamp(raw)
    try:
        return _as_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError as exc:
        raise ValueError(f"Invalid timestamp: {raw}") from exc
