"""
Durable local key-value adapter.

Stores opaque string blobs, one file per key:

    {base_path}/
      collection.assignments.json
      collection.documents.json
      identity.current_owner.json

No schema is enforced here; callers serialize and parse their own blobs.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..exceptions import StorageQuotaExceededError, ValidationError
from .file_ops import read_text, remove_file, write_text_atomic

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class LocalDurableAdapter:
    """File-backed key-value persistence for string blobs.

    Args:
        base_path: Directory holding one file per key
        quota_bytes: Optional cap on a single blob's UTF-8 size; writes
            above it raise StorageQuotaExceededError and leave the previous
            value in place
    """

    def __init__(self, base_path: Path, quota_bytes: int | None = None) -> None:
        self.base_path = Path(base_path)
        self.quota_bytes = quota_bytes

    def _path_for(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key) or ".." in key:
            raise ValidationError("key", "invalid storage key", key)
        return self.base_path / f"{key}.json"

    async def get(self, key: str) -> str | None:
        """Return the blob stored under key, or None."""
        return await read_text(self._path_for(key))

    async def set(self, key: str, value: str) -> None:
        """Store a blob under key, replacing any previous value."""
        path = self._path_for(key)
        if self.quota_bytes is not None:
            size = len(value.encode("utf-8"))
            if size > self.quota_bytes:
                raise StorageQuotaExceededError(key, size, self.quota_bytes)
        await write_text_atomic(path, value)
        logger.debug(f"Stored {key} ({len(value)} chars)")

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns False if it was absent."""
        return await remove_file(self._path_for(key))
