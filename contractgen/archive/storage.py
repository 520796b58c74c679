"""Durable key/value storage backends for archived contracts."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from contractgen.utils.errors import (
    StorageError,
    StorageKeyExistsError,
    StorageKeyNotFoundError,
    TransientStorageError,
)

_META_SUFFIX = ".meta.json"


class DurableStorage(Protocol):
    """Write-once storage addressed by slash-separated keys."""

    def put(self, key: str, data: bytes, metadata: dict[str, str] | None = None) -> str:
        """Store bytes under a new key and return a durable reference."""

    def get(self, key: str) -> bytes:
        """Return stored bytes or raise StorageKeyNotFoundError."""

    def list_keys(self, prefix: str) -> list[str]:
        """Return every stored key starting with prefix, sorted."""


class InMemoryStorage:
    """Dict-backed storage for tests and dry runs."""

    def __init__(self) -> None:
        self._objects: dict[str, bytes] = {}
        self.metadata: dict[str, dict[str, str]] = {}

    def put(self, key: str, data: bytes, metadata: dict[str, str] | None = None) -> str:
        _validate_key(key)
        if key in self._objects:
            raise StorageKeyExistsError(f"Key already exists: {key}")
        self._objects[key] = bytes(data)
        self.metadata[key] = dict(metadata or {})
        return f"memory://{key}"

    def get(self, key: str) -> bytes:
        try:
            return self._objects[key]
        except KeyError as exc:
            raise StorageKeyNotFoundError(f"Key not found: {key}") from exc

    def list_keys(self, prefix: str) -> list[str]:
        return sorted(key for key in self._objects if key.startswith(prefix))

    def corrupt(self, key: str, data: bytes) -> None:
        """Replace stored bytes in place, bypassing write-once rules."""

        if key not in self._objects:
            raise StorageKeyNotFoundError(f"Key not found: {key}")
        self._objects[key] = bytes(data)


class LocalFileStorage:
    """Filesystem storage rooted at one directory.

    Objects are written via temp file + replace and never overwritten.
    Metadata, when given, lands in a ``<key>.meta.json`` sidecar.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def put(self, key: str, data: bytes, metadata: dict[str, str] | None = None) -> str:
        path = self._path_for(key)
        if path.exists():
            raise StorageKeyExistsError(f"Key already exists: {key}")

        # Sidecar first: an existing object key always means a complete write.
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if metadata:
                meta_payload = json.dumps(metadata, ensure_ascii=False, sort_keys=True)
                meta_path = path.with_name(path.name + _META_SUFFIX)
                _atomic_write_bytes(meta_path, meta_payload.encode("utf-8"))
            _atomic_write_bytes(path, data)
        except OSError as exc:
            raise TransientStorageError(f"Failed to write {key}: {exc}") from exc

        return path.resolve().as_uri()

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise StorageKeyNotFoundError(f"Key not found: {key}") from exc
        except OSError as exc:
            raise TransientStorageError(f"Failed to read {key}: {exc}") from exc

    def list_keys(self, prefix: str) -> list[str]:
        if not self.root.exists():
            return []
        keys: list[str] = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.name.endswith((_META_SUFFIX, ".tmp")):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    def _path_for(self, key: str) -> Path:
        _validate_key(key)
        return self.root.joinpath(*key.split("/"))


def _validate_key(key: str) -> None:
    if any(part in {"", ".", ".."} for part in key.split("/")):
        raise StorageError(f"Invalid storage key: {key!r}")


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise
