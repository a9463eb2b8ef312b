"""
Documents library actions and views.

Documents are shared: the store is not owner-scoped, and the uploader is
kept in ``owner_key`` for display and search.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from numbers import Real
from typing import Any

from ..records import AttachmentFile, Record, validate_attachment_file
from ..store import SyncedCollectionStore
from .results import CommandResult, require_record, require_text, run_command, saved_id

DEFAULT_CATEGORIES = ("notes", "past-papers", "guides", "books", "presentations")
DEFAULT_SUBJECTS = ("mathematics", "physics", "biology", "chemistry", "english", "history")

_EPOCH = datetime.min.replace(tzinfo=UTC)


async def upload_document(
    store: SyncedCollectionStore,
    title: str,
    file: AttachmentFile,
    category: str = "other",
    subject: str = "general",
) -> CommandResult:
    """Publish a file to the library.

    The document is created first and the file attached after. A failure
    in between leaves the document without its file fields; the failed
    result carries it.
    """
    progress: list[Record] = []

    async def action() -> Record:
        title_text = require_text("title", title)
        spec = store.spec
        validate_attachment_file(file, spec.max_attachment_bytes, spec.allowed_mime_types)
        record = await store.save(
            {
                "title": title_text,
                "category": (category or "other").strip(),
                "subject": (subject or "general").strip(),
                "downloads": 0,
            }
        )
        progress.append(record)
        record_id = saved_id(store, record)
        record = await store.append_attachment(record_id, file)
        progress.append(record)
        stored = record.attachments[-1]
        return await store.save(
            {
                "id": record_id,
                "file_url": stored.url,
                "file_name": stored.name,
                "file_size": file.size,
                "mime_type": stored.mime_type,
            }
        )

    return await run_command("upload_document", action, "Document uploaded.", progress)


async def record_download(store: SyncedCollectionStore, document_id: str) -> CommandResult:
    async def action() -> Record:
        require_record(store, document_id)
        return await store.increment_counter(document_id, "downloads")

    return await run_command("record_download", action)


def filter_documents(
    records: Iterable[Record],
    category: str | None = None,
    subject: str | None = None,
    search: str | None = None,
) -> list[Record]:
    """Filter a loaded document list.

    ``search`` is a case-insensitive substring of the title, subject,
    category or uploader.
    """
    term = (search or "").strip().casefold()
    matched = []
    for record in records:
        if category and record.get("category") != category:
            continue
        if subject and record.get("subject") != subject:
            continue
        if term:
            haystack = (
                record.title,
                str(record.get("subject") or ""),
                str(record.get("category") or ""),
                record.owner_key,
            )
            if not any(term in value.casefold() for value in haystack):
                continue
        matched.append(record)
    return matched


def popular_documents(records: Iterable[Record], limit: int = 6) -> list[Record]:
    return sorted(records, key=_downloads, reverse=True)[:limit]


def recent_documents(records: Iterable[Record], limit: int = 6) -> list[Record]:
    return sorted(records, key=lambda r: r.created_at or _EPOCH, reverse=True)[:limit]


def available_filters(records: Iterable[Record]) -> dict[str, list[str]]:
    """Category and subject choices: the defaults plus anything in use."""
    categories = set(DEFAULT_CATEGORIES)
    subjects = set(DEFAULT_SUBJECTS)
    for record in records:
        for values, name in ((categories, "category"), (subjects, "subject")):
            value = record.get(name)
            if isinstance(value, str) and value.strip():
                values.add(value.strip())
    return {"categories": sorted(categories), "subjects": sorted(subjects)}


def _downloads(record: Record) -> Any:
    value = record.get("downloads")
    if isinstance(value, Real) and not isinstance(value, bool):
        return value
    return 0
