"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def merge_report_path(out_dir: Path, file_name: str) -> Path:
    """Build the merge report path that sits beside a generated contract."""

    stem = file_name[: -len(".docx")] if file_name.endswith(".docx") else file_name
    return out_dir / f"{stem}.merge_report.json"


def bulk_report_path(out_dir: Path) -> Path:
    return out_dir / "bulk_report.json"


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """Write binary output atomically using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)

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


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, indent=2)

    tmp_path.replace(path)
