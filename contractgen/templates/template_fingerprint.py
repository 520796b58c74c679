"""Template body fingerprint used as the placeholder cache key."""

from __future__ import annotations

import hashlib


def compute_body_fingerprint(body: str) -> str:
    """Compute a SHA256 fingerprint of a template body, insensitive to line endings."""

    normalized = body.replace("\r\n", "\n").replace("\r", "\n")
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
