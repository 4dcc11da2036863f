"""Canonical hashing helpers for content addressing and reproducibility.

Every artifact hiveforge persists is serialized through
``canonical_json_bytes`` so that equal configurations always produce
byte-identical output, independent of mapping insertion order.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

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


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object.

    Returns "sha256:<hex>" format used by the artifact store.
    """
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"


def compute_config_hash(name: str, config: dict[str, Any]) -> str:
    """SHA-256 of canonical(node name + configuration).

    Two resolutions of the same node with the same inputs yield the same hash.
    """
    payload = {"node": name, "config": config}
    return sha256_hex(canonical_json_bytes(payload))


def to_jsonable(value: Any) -> Any:
    """Copy *value* into JSON-compatible types; unknown objects become strings."""
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
