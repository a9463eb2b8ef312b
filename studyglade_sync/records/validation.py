"""
Record validation.

Runs before any I/O so a malformed record never reaches either source.
"""

from __future__ import annotations

import json
from numbers import Real
from typing import Any

from ..exceptions import ValidationError
from .types import Attachment, AttachmentFile, Record


def validate_record(record: Record) -> None:
    """Validate a complete record.

    Raises:
        ValidationError: On the first problem found
    """
    if not isinstance(record.owner_key, str) or not record.owner_key.strip():
        raise ValidationError("owner_key", "is required")
    validate_payload(record.payload)
    for attachment in record.attachments:
        if not isinstance(attachment, Attachment):
            raise ValidationError("attachments", "entries must be Attachment descriptors")
        if not attachment.name or not attachment.url:
            raise ValidationError("attachments", "name and url are required")


def validate_payload(payload: dict[str, Any]) -> None:
    """Validate the domain fields the store persists verbatim."""
    if not isinstance(payload, dict):
        raise ValidationError("payload", "must be a mapping")

    title = payload.get("title")
    if title is not None and (not isinstance(title, str) or not title.strip()):
        raise ValidationError("title", "must be a non-empty string", repr(title))

    amount = payload.get("amount")
    if amount is not None:
        if isinstance(amount, bool) or not isinstance(amount, Real):
            raise ValidationError("amount", "must be a number", repr(amount))
        if amount < 0:
            raise ValidationError("amount", "must not be negative", repr(amount))

    try:
        json.dumps(payload)
    except (TypeError, ValueError) as e:
        raise ValidationError("payload", f"must be JSON serializable: {e}") from None


def validate_attachment_file(
    file: AttachmentFile,
    max_bytes: int | None,
    allowed_mime_types: frozenset[str] | None,
) -> None:
    """Check an upload against a collection's limits."""
    if not file.name:
        raise ValidationError("file", "name is required")
    if max_bytes is not None and file.size > max_bytes:
        raise ValidationError("file", f"exceeds {max_bytes} bytes", str(file.size))
    if allowed_mime_types is not None and file.mime_type not in allowed_mime_types:
        raise ValidationError("file", "file type not allowed", file.mime_type)
