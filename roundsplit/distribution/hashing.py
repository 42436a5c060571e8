"""Canonical JSON encoding and SHA256 content references."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(data: Any) -> str:
    """Serialize to JSON with sorted keys and no whitespace.

    Pydantic models are dumped in JSON mode first.
    """
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(mode="json") if hasattr(item, "model_dump") else item
            for item in data
        ]
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def compute_hash(data: Any) -> str:
    """SHA256 hex digest of the canonical JSON form of ``data``.

    ``bytes`` are hashed as-is.
    """
    if isinstance(data, (bytes, bytearray)):
        raw = bytes(data)
    else:
        raw = canonical_json(data).encode()
    return hashlib.sha256(raw).hexdigest()


__all__ = ["canonical_json", "compute_hash"]
