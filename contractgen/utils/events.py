"""Structured JSON-line event logging."""

from __future__ import annotations

import json
import logging
from typing import Any


def dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def log_event(
    logger: logging.Logger, level: int, event: str, run_id: str, **fields: Any
) -> None:
    """Emit one compact JSON object describing an engine event."""

    payload = {
        "event": event,
        "run_id": run_id,
        **fields,
    }
    logger.log(level, dump_json(payload))
