"""JSON helpers for payload columns.

Event and projection payloads are stored as JSON text in SQLite. These keep
the encoding consistent between the two stores.
"""

import json
from typing import Any


def encode_payload(data: dict[str, Any]) -> str:
    """Serialize a payload mapping for storage.

    Compact separators; non-ASCII kept as-is. Raises TypeError for values
    that are not JSON-serializable.
    """
    if not isinstance(data, dict):
        raise TypeError(f"Payload must be a mapping, got {type(data).__name__}")
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def decode_payload(raw: str | bytes | dict | None) -> dict[str, Any]:
    """Parse a stored payload back into a dict.

    Accepts an already-decoded dict as-is. None and empty text decode to {}.
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError(f"Stored payload is not a JSON object: {raw!r}")
    return parsed
