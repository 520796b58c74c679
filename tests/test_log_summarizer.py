from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path


def test_log_summarizer_json_output(tmp_path: Path) -> None:
    log_path = tmp_path / "contractgen.log"
    log_path.write_text(
        "\n".join(
            [
                json.dumps({"event": "bulk_started", "run_id": "r1", "total": 2}),
                json.dumps(
                    {"event": "contract_generated", "run_id": "r1", "duration_ms": 40}
                ),
                json.dumps({"event": "item_completed", "run_id": "r1", "status": "SUCCESS"}),
                json.dumps(
                    {"event": "contract_generated", "run_id": "r1", "duration_ms": 60}
                ),
                json.dumps({"event": "item_completed", "run_id": "r1", "status": "FAILED"}),
                json.dumps(
                    {
                        "event": "bulk_completed",
                        "run_id": "r1",
                        "status": "COMPLETED",
                        "duration_ms": 120,
                    }
                ),
                json.dumps({"event": "bulk_rejected", "run_id": "r2"}),
                "not-json-line",
                json.dumps(["no", "event"]),
            ]
        ),
        encoding="utf-8",
    )

    result = subprocess.run(
        [
            sys.executable,
            "scripts/summarize_logs.py",
            "--json",
            str(log_path),
            str(tmp_path / "missing.log"),
        ],
        cwd=Path(__file__).resolve().parents[1],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0

    payload = json.loads(result.stdout)
    assert payload["skipped_lines"] == 2
    assert payload["unreadable_files"] == 1
    assert payload["runs"] == 2
    assert payload["event_counts"]["item_completed"] == 2
    assert payload["item_status_counts"] == {"FAILED": 1, "SUCCESS": 1}
    assert payload["run_status_counts"] == {"COMPLETED": 1}
    assert payload["bulk_ms_p95"] == 120
    assert payload["contract_ms_p50"] == 40
    assert payload["contract_ms_p95"] == 60


def test_log_summarizer_text_output(tmp_path: Path) -> None:
    log_path = tmp_path / "contractgen.log"
    log_path.write_text(json.dumps({"event": "bulk_started", "run_id": "r1"}), encoding="utf-8")

    result = subprocess.run(
        [sys.executable, "scripts/summarize_logs.py", str(log_path)],
        cwd=Path(__file__).resolve().parents[1],
        check=False,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0
    assert "Contractgen Log Summary" in result.stdout
    assert "runs=1" in result.stdout
