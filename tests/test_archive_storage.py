from __future__ import annotations

import json
from pathlib import Path

import pytest

from contractgen.archive.storage import InMemoryStorage, LocalFileStorage
from contractgen.utils.errors import StorageError, StorageKeyExistsError, StorageKeyNotFoundError


def test_in_memory_storage_put_get_and_list() -> None:
    storage = InMemoryStorage()

    ref = storage.put("contracts/a/1.bin", b"one", {"k": "v"})
    storage.put("contracts/b/2.bin", b"two")

    assert ref == "memory://contracts/a/1.bin"
    assert storage.get("contracts/a/1.bin") == b"one"
    assert storage.metadata["contracts/a/1.bin"] == {"k": "v"}
    assert storage.list_keys("contracts/") == ["contracts/a/1.bin", "contracts/b/2.bin"]
    assert storage.list_keys("contracts/a/") == ["contracts/a/1.bin"]


def test_in_memory_storage_refuses_overwrite_and_reports_missing() -> None:
    storage = InMemoryStorage()
    storage.put("k/1", b"one")

    with pytest.raises(StorageKeyExistsError):
        storage.put("k/1", b"two")
    with pytest.raises(StorageKeyNotFoundError):
        storage.get("k/2")
    assert storage.get("k/1") == b"one"


def test_local_storage_writes_file_uri_and_sidecar(tmp_path: Path) -> None:
    storage = LocalFileStorage(tmp_path)

    ref = storage.put("contracts/immutable/C1/ts/file.docx", b"data", {"file_hash": "abc"})

    target = tmp_path / "contracts" / "immutable" / "C1" / "ts" / "file.docx"
    assert ref == target.resolve().as_uri()
    assert target.read_bytes() == b"data"
    sidecar = target.with_name("file.docx.meta.json")
    assert json.loads(sidecar.read_text(encoding="utf-8")) == {"file_hash": "abc"}
    assert not list(target.parent.glob("*.tmp"))


def test_local_storage_refuses_overwrite(tmp_path: Path) -> None:
    storage = LocalFileStorage(tmp_path)
    storage.put("a/b.txt", b"first")

    with pytest.raises(StorageKeyExistsError):
        storage.put("a/b.txt", b"second")
    assert storage.get("a/b.txt") == b"first"


def test_local_storage_list_keys_skips_sidecars(tmp_path: Path) -> None:
    storage = LocalFileStorage(tmp_path)
    storage.put("a/1.txt", b"1", {"x": "y"})
    storage.put("a/2.txt", b"2")
    storage.put("b/3.txt", b"3")

    assert storage.list_keys("a/") == ["a/1.txt", "a/2.txt"]
    assert LocalFileStorage(tmp_path / "missing").list_keys("") == []


def test_local_storage_get_missing_key(tmp_path: Path) -> None:
    with pytest.raises(StorageKeyNotFoundError):
        LocalFileStorage(tmp_path).get("nope/none.txt")


@pytest.mark.parametrize("key", ["", "/abs/key", "a/../b", "a//b"])
def test_storage_rejects_unsafe_keys(tmp_path: Path, key: str) -> None:
    with pytest.raises(StorageError):
        LocalFileStorage(tmp_path).put(key, b"x")
    with pytest.raises(StorageError):
        InMemoryStorage().put(key, b"x")
