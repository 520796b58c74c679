from __future__ import annotations

import hashlib
import json
import warnings
from datetime import datetime, timezone
from pathlib import Path

import pytest

import contractgen.archive.storage as storage_module
from contractgen.archive.storage import InMemoryStorage, LocalFileStorage
from contractgen.archive.writer import ImmutableArchiveWriter, format_key_timestamp
from contractgen.config.models import GenerationSettings
from contractgen.utils.errors import (
    ArchiveWriteError,
    IntegrityMismatchError,
    StorageKeyNotFoundError,
    TransientStorageError,
)

FIXED = datetime(2025, 7, 1, 12, 0, 0, tzinfo=timezone.utc)
PROVIDER = {"id": "P1", "name": "Ada Lovelace", "fields": {"baseSalary": 250000}}
TEMPLATE = {"id": "T1", "name": "Schedule A", "contract_year": "2025", "body": "{{Name}}"}


class FlakyStorage(InMemoryStorage):
    """Fails the first ``failures`` puts whose key starts with ``prefix``."""

    def __init__(self, failures: int, prefix: str = "") -> None:
        super().__init__()
        self.failures = failures
        self.prefix = prefix
        self.attempts = 0

    def put(self, key: str, data: bytes, metadata: dict[str, str] | None = None) -> str:
        if key.startswith(self.prefix):
            self.attempts += 1
            if self.failures > 0:
                self.failures -= 1
                raise TransientStorageError(f"simulated outage for {key}")
        return super().put(key, data, metadata)


def _writer(storage, *, clock=lambda: FIXED, retries: int = 3) -> ImmutableArchiveWriter:
    return ImmutableArchiveWriter(
        storage,
        settings=GenerationSettings(write_retries=retries),
        clock=clock,
        sleep=lambda _: None,
    )


def _store(writer: ImmutableArchiveWriter, artifact: bytes = b"docx-bytes"):
    return writer.store(
        "P1-T1-2025",
        "2025_AdaLovelace_ScheduleA_2025-07-01.docx",
        artifact,
        provider=PROVIDER,
        template=TEMPLATE,
    )


def test_store_writes_artifact_and_metadata_under_timestamped_keys() -> None:
    storage = InMemoryStorage()

    snapshot = _store(_writer(storage))

    assert snapshot.artifact_key == (
        "contracts/immutable/P1-T1-2025/2025-07-01T12-00-00-000000Z/"
        "2025_AdaLovelace_ScheduleA_2025-07-01.docx"
    )
    assert snapshot.metadata_key == (
        "contracts/metadata/P1-T1-2025/2025-07-01T12-00-00-000000Z.json"
    )
    assert snapshot.file_hash == hashlib.sha256(b"docx-bytes").hexdigest()
    assert snapshot.file_size == len(b"docx-bytes")
    assert snapshot.version == "1.0.0"
    assert snapshot.provider == PROVIDER
    assert snapshot.template == TEMPLATE
    assert snapshot.reference == f"memory://{snapshot.artifact_key}"

    metadata = json.loads(storage.get(snapshot.metadata_key))
    assert metadata["file_hash"] == snapshot.file_hash
    assert metadata["contract_id"] == "P1-T1-2025"


def test_repeated_store_creates_new_versions_with_increasing_timestamps() -> None:
    storage = InMemoryStorage()
    writer = _writer(storage)

    first = _store(writer, b"v1")
    second = _store(writer, b"v2")

    assert second.generated_at > first.generated_at
    assert (second.generated_at - first.generated_at).microseconds == 1
    assert first.artifact_key != second.artifact_key
    assert storage.get(first.artifact_key) == b"v1"
    assert storage.get(second.artifact_key) == b"v2"


def test_new_writer_instance_continues_after_stored_versions() -> None:
    storage = InMemoryStorage()
    first = _store(_writer(storage))

    second = _store(_writer(storage))

    assert second.generated_at > first.generated_at


def test_list_versions_is_newest_first() -> None:
    stamps = iter(
        [
            datetime(2025, 1, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 1, tzinfo=timezone.utc),
            datetime(2025, 2, 1, tzinfo=timezone.utc),
        ]
    )
    storage = InMemoryStorage()
    writer = _writer(storage, clock=lambda: next(stamps))
    for payload in (b"a", b"b", b"c"):
        _store(writer, payload)

    versions = writer.list_versions("P1-T1-2025")

    assert [item.generated_at for item in versions] == sorted(
        (item.generated_at for item in versions), reverse=True
    )
    assert len(versions) == 3
    assert writer.get_snapshot("P1-T1-2025") == versions[0]


def test_get_snapshot_accepts_key_and_iso_timestamps() -> None:
    writer = _writer(InMemoryStorage())
    snapshot = _store(writer)

    assert writer.get_snapshot("P1-T1-2025", format_key_timestamp(FIXED)) == snapshot
    assert writer.get_snapshot("P1-T1-2025", "2025-07-01T12:00:00Z") == snapshot
    assert writer.get_snapshot("P1-T1-2025", FIXED) == snapshot


def test_get_snapshot_without_versions_raises() -> None:
    with pytest.raises(StorageKeyNotFoundError):
        _writer(InMemoryStorage()).get_snapshot("P9-T1-2025")


def test_verify_detects_tampering() -> None:
    storage = InMemoryStorage()
    writer = _writer(storage)
    snapshot = _store(writer)

    assert writer.verify(snapshot) is True
    writer.verify_or_raise(snapshot)

    storage.corrupt(snapshot.artifact_key, b"tampered")

    assert writer.verify(snapshot) is False
    with pytest.raises(IntegrityMismatchError) as exc_info:
        writer.verify_or_raise(snapshot)
    assert exc_info.value.expected_hash == snapshot.file_hash
    assert exc_info.value.actual_hash == hashlib.sha256(b"tampered").hexdigest()


def test_verify_missing_artifact_is_false() -> None:
    writer = _writer(InMemoryStorage())
    snapshot = _store(writer)
    missing = snapshot.model_copy(update={"artifact_key": "contracts/immutable/none/x.docx"})

    assert writer.verify(missing) is False
    with pytest.raises(IntegrityMismatchError):
        writer.verify_or_raise(missing)


def test_transient_failures_are_retried() -> None:
    storage = FlakyStorage(failures=2, prefix="contracts/immutable/")

    snapshot = _store(_writer(storage, retries=3))

    assert storage.attempts == 3
    assert storage.get(snapshot.artifact_key) == b"docx-bytes"


def test_exhausted_retries_raise_archive_write_error() -> None:
    storage = FlakyStorage(failures=10, prefix="contracts/immutable/")

    with pytest.raises(ArchiveWriteError) as exc_info:
        _store(_writer(storage, retries=3))

    assert storage.attempts == 3
    assert exc_info.value.contract_id == "P1-T1-2025"
    assert exc_info.value.key is not None
    assert exc_info.value.key.startswith("contracts/immutable/P1-T1-2025/")


def test_metadata_write_failure_is_not_success() -> None:
    storage = FlakyStorage(failures=10, prefix="contracts/metadata/")

    with pytest.raises(ArchiveWriteError) as exc_info:
        _store(_writer(storage, retries=2))

    assert exc_info.value.key is not None
    assert exc_info.value.key.startswith("contracts/metadata/")


def test_contract_id_with_path_separator_is_rejected() -> None:
    storage = InMemoryStorage()
    writer = _writer(storage)

    with pytest.raises(ArchiveWriteError) as exc_info:
        writer.store("P1/T1", "f.docx", b"x", provider={}, template={})

    assert exc_info.value.contract_id == "P1/T1"
    assert exc_info.value.key is None
    assert storage.list_keys("") == []
    with pytest.raises(ValueError):
        writer.list_versions("P1/T1")


def test_local_storage_end_to_end(tmp_path: Path) -> None:
    writer = _writer(LocalFileStorage(tmp_path))

    snapshot = _store(writer)

    assert snapshot.reference.startswith("file://")
    assert writer.verify(snapshot) is True
    stored = tmp_path.joinpath(*snapshot.artifact_key.split("/"))
    stored.write_bytes(b"changed")
    assert writer.verify(snapshot) is False


def test_transient_sidecar_failure_is_retried_on_local_storage(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_write = storage_module._atomic_write_bytes
    failed: list[Path] = []

    def flaky_write(path: Path, data: bytes) -> None:
        if path.name.endswith(".meta.json") and not failed:
            failed.append(path)
            raise OSError("disk busy")
        real_write(path, data)

    monkeypatch.setattr(storage_module, "_atomic_write_bytes", flaky_write)
    writer = _writer(LocalFileStorage(tmp_path), retries=3)

    snapshot = _store(writer)

    assert len(failed) == 1
    assert writer.verify(snapshot) is True
    stored = tmp_path.joinpath(*snapshot.artifact_key.split("/"))
    sidecar = stored.with_name(stored.name + ".meta.json")
    assert json.loads(sidecar.read_text(encoding="utf-8"))["file_hash"] == snapshot.file_hash


def test_retry_backoff_is_bounded_and_raises_no_deprecation_warning() -> None:
    storage = FlakyStorage(failures=3, prefix="contracts/immutable/")
    sleeps: list[float] = []
    writer = ImmutableArchiveWriter(
        storage,
        settings=GenerationSettings(
            write_retries=4, retry_initial_seconds=0.5, retry_max_seconds=1.0
        ),
        clock=lambda: FIXED,
        sleep=sleeps.append,
    )

    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        _store(writer)

    assert len(sleeps) == 3
    assert all(0.5 <= delay <= 1.5 for delay in sleeps)
