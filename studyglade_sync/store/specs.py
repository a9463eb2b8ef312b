"""
Collection definitions.

A spec names the collection on both sources and carries the per-collection
rules: whether reads are scoped to the acting owner, and upload limits.
"""

from __future__ import annotations

from dataclasses import dataclass

MIB = 1024 * 1024

DOCUMENT_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "image/jpeg",
        "image/png",
    }
)


@dataclass(frozen=True)
class CollectionSpec:
    """Definition of a synced collection.

    Attributes:
        name: Collection name, used as the API path and the local key
        owner_scoped: Restrict reads (and writes) to the acting owner
        max_attachment_bytes: Upload size limit, None for no limit
        allowed_mime_types: Upload type whitelist, None for any type
    """

    name: str
    owner_scoped: bool = True
    max_attachment_bytes: int | None = None
    allowed_mime_types: frozenset[str] | None = None


# Student dashboard: a student's own questions
ASSIGNMENTS = CollectionSpec("assignments", owner_scoped=True, max_attachment_bytes=5 * MIB)

# Tutor dashboard: every student's assignments
TUTOR_ASSIGNMENTS = CollectionSpec("assignments", owner_scoped=False, max_attachment_bytes=5 * MIB)

# Shared documents library
DOCUMENTS = CollectionSpec(
    "documents",
    owner_scoped=False,
    max_attachment_bytes=10 * MIB,
    allowed_mime_types=DOCUMENT_MIME_TYPES,
)
