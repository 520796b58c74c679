#!/usr/bin/env python3
"""Summarize contractgen JSON line logs for ops/CI usage."""

from __future__ import annotations

import argparse
import json
import math
from collections import Counter
from pathlib import Path
from typing import Any


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize contractgen structured logs.")
    parser.add_argument("files", nargs="+", help="One or more JSONL log files.")
    parser.add_argument("--json", action="store_true", help="Output JSON.")
    return parser.parse_args()


def _percentile(values: list[int], p: float) -> int | None:
    if not values:
        return None
    ordered = sorted(values)
    index = min(len(ordered) - 1, max(0, math.ceil((p / 100) * len(ordered)) - 1))
    return ordered[index]


def summarize_log_files(paths: list[Path]) -> dict[str, Any]:
    event_counts: Counter[str] = Counter()
    item_status_counts: Counter[str] = Counter()
    run_status_counts: Counter[str] = Counter()
    run_ids: set[str] = set()
    bulk_ms_values: list[int] = []
    item_ms_values: list[int] = []
    skipped_lines = 0
    unreadable_files = 0
    lines_total = 0

    for path in paths:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError:
            unreadable_files += 1
            continue

        for line in lines:
            lines_total += 1
            raw = line.strip()
            if not raw:
                continue

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                skipped_lines += 1
                continue

            if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
                skipped_lines += 1
                continue

            event = payload["event"]
            event_counts[event] += 1
            run_id = payload.get("run_id")
            if isinstance(run_id, str) and run_id != "-":
                run_ids.add(run_id)

            status = payload.get("status")
            if event == "item_completed" and isinstance(status, str):
                item_status_counts[status] += 1
            elif event == "bulk_completed" and isinstance(status, str):
                run_status_counts[status] += 1

            duration_ms = payload.get("duration_ms")
            if isinstance(duration_ms, int | float):
                if event == "bulk_completed":
                    bulk_ms_values.append(int(duration_ms))
                elif event == "contract_generated":
                    item_ms_values.append(int(duration_ms))

    return {
        "files": [str(path) for path in paths],
        "lines_total": lines_total,
        "skipped_lines": skipped_lines,
        "unreadable_files": unreadable_files,
        "runs": len(run_ids),
        "event_counts": dict(sorted(event_counts.items())),
        "item_status_counts": dict(sorted(item_status_counts.items())),
        "run_status_counts": dict(sorted(run_status_counts.items())),
        "bulk_ms_p50": _percentile(bulk_ms_values, 50),
        "bulk_ms_p95": _percentile(bulk_ms_values, 95),
        "contract_ms_p50": _percentile(item_ms_values, 50),
        "contract_ms_p95": _percentile(item_ms_values, 95),
    }


def main() -> None:
    args = _parse_args()
    paths = [Path(item).expanduser() for item in args.files]
    summary = summarize_log_files(paths)

    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2, sort_keys=True))
        return

    print("Contractgen Log Summary")
    print(f"files={len(summary['files'])}")
    print(f"lines_total={summary['lines_total']}")
    print(f"skipped_lines={summary['skipped_lines']}")
    print(f"runs={summary['runs']}")
    print(f"event_counts={summary['event_counts']}")
    print(f"item_status_counts={summary['item_status_counts']}")
    print(f"run_status_counts={summary['run_status_counts']}")
    print(f"bulk_ms_p50={summary['bulk_ms_p50']}")
    print(f"bulk_ms_p95={summary['bulk_ms_p95']}")
    print(f"contract_ms_p50={summary['contract_ms_p50']}")
    print(f"contract_ms_p95={summary['contract_ms_p95']}")


if __name__ == "__main__":
    main()
