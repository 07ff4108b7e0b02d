"""Strip control characters from inbound structured payloads."""

import re
from typing import Any

# C0 controls, DEL and C1 controls
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_string(value: str) -> str:
    return CONTROL_CHARS.sub("", value)


def sanitize(payload: Any) -> Any:
    """Return a copy of ``payload`` with control characters removed from string leaves.

    Mappings, lists and tuples are walked recursively; keys and non-string
    leaves (numbers, booleans, None) are kept as they are.
    """
    if isinstance(payload, str):
        return sanitize_string(payload)
    if isinstance(payload, dict):
        return {key: sanitize(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [sanitize(item) for item in payload]
    if isinstance(payload, tuple):
        return tuple(sanitize(item) for item in payload)
    return payload
