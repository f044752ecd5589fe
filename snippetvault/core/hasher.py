"""Canonical serialization and digest helpers."""

from __future__ import annotations

import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Deterministic JSON bytes with sorted keys and no whitespace."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def utf8_length(text: str) -> int:
    """Length of *text* in UTF-8 bytes."""
    return len(text.encode("utf-8"))
