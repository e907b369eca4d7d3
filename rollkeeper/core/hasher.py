"""Canonical serialization and hashing helpers.

Canonical JSON gives a byte-stable encoding of rollout records, so the
version token of a stored record is simply the SHA-256 of its bytes.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

# Version token reported for a workload that has no record yet.
EMPTY_VERSION_TOKEN = ""


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def version_token(data: bytes | None) -> str:
    """Version token for stored bytes; ``EMPTY_VERSION_TOKEN`` when absent."""
    if data is None:
        return EMPTY_VERSION_TOKEN
    return f"sha256:{sha256_hex(data)}"
