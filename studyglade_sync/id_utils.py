"""ID generation and parsing utilities.

Local ids are ``{epoch_ms}-{6 hex chars}``: sortable by creation time and
unlikely to collide between two tabs writing in the same millisecond.
"""

from __future__ import annotations

import secrets
import time
from datetime import UTC, datetime
from typing import Any

_SUFFIX_BYTES = 3


def generate_local_id(now_ms: int | None = None) -> str:
    """Generate a record id for local mode."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}-{secrets.token_hex(_SUFFIX_BYTES)}"


def generate_owner_key(prefix: str = "student") -> str:
    """Synthesize a default owner identity."""
    return f"{prefix}-{secrets.token_hex(4)}"


def parse_local_id_timestamp(record_id: str) -> datetime:
    """Extract the creation time from a locally generated id.

    Raises ValueError on ids that were not generated locally.
    """
    try:
        millis, suffix = record_id.split("-", 1)
        if len(suffix) != _SUFFIX_BYTES * 2:
            raise ValueError
        return datetime.fromtimestamp(int(millis) / 1000, tz=UTC)
    except (ValueError, AttributeError):
        raise ValueError(f"Malformed local id: {record_id}") from None


def normalize_id(value: Any) -> str | None:
    """Normalize an external id (numbers included) to a string."""
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)
