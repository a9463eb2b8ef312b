"""
In-memory registry for attachments uploaded while in local mode.

URLs have the form ``local://{collection}/{record_id}/{token}/{name}`` and
resolve only within the process that registered them; the bytes are gone
after a restart.
"""

from __future__ import annotations

import secrets
from urllib.parse import quote

from ..records import Attachment, AttachmentFile

LOCAL_URL_SCHEME = "local://"


class LocalBlobRegistry:
    """Keeps uploaded bytes addressable by a local URL."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def register(self, collection: str, record_id: str, file: AttachmentFile) -> Attachment:
        token = secrets.token_hex(8)
        url = (
            f"{LOCAL_URL_SCHEME}{quote(collection, safe='')}/{quote(record_id, safe='')}"
            f"/{token}/{quote(file.name, safe='')}"
        )
        self._blobs[url] = file.content
        return Attachment(name=file.name, url=url, mime_type=file.mime_type or "")

    def resolve(self, url: str) -> bytes | None:
        """Return the bytes behind a local URL, or None once they are gone."""
        return self._blobs.get(url)

    def is_local_url(self, url: str) -> bool:
        return url.startswith(LOCAL_URL_SCHEME)

    def __len__(self) -> int:
        return len(self._blobs)

    def clear(self) -> None:
        self._blobs.clear()
