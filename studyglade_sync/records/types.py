"""
Record types and the normalization boundary.

A Record is the generic unit persisted by the store (assignment/question or
document). Every external shape, whether an API response or a durable blob,
passes through ``normalize_record_data`` exactly once before it becomes a
Record, so the rest of the library only ever sees canonical snake_case
fields and lowercase status values.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import aiofiles

from ..exceptions import StorageIOError, ValidationError
from ..id_utils import normalize_id


class RecordStatus(Enum):
    """Lifecycle tag of a record."""

    PENDING = "pending"
    PENDING_PAYMENT = "pending_payment"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    DISPUTE = "dispute"

    @classmethod
    def parse(cls, value: Any) -> RecordStatus:
        """Parse any casing/separator variant ("Pending Payment", "in-progress")."""
        if isinstance(value, RecordStatus):
            return value
        if not isinstance(value, str):
            raise ValidationError("status", "must be a string", repr(value))
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        key = _STATUS_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValidationError("status", "unknown status", value) from None

    @property
    def rank(self) -> int | None:
        """Position in the normal flow, None for off-flow states."""
        return _FLOW_RANK.get(self)

    def can_transition_to(self, target: RecordStatus) -> bool:
        """Check a status change against the lifecycle.

        Normal flow never moves backwards (forward jumps are allowed),
        ``failed`` is only reachable from and returns to ``pending_payment``,
        and ``dispute`` can be entered from anything not yet completed.
        """
        if self is target:
            return True
        if self in (RecordStatus.COMPLETED, RecordStatus.DISPUTE):
            return False
        if target is RecordStatus.DISPUTE:
            return True
        if target is RecordStatus.FAILED:
            return self is RecordStatus.PENDING_PAYMENT
        if self is RecordStatus.FAILED:
            return target is RecordStatus.PENDING_PAYMENT
        return (target.rank or 0) > (self.rank or 0)


_STATUS_ALIASES = {
    "disputed": "dispute",
    "inprogress": "in_progress",
    "complete": "completed",
    "paymentpending": "pending_payment",
}

_FLOW_RANK = {
    RecordStatus.PENDING: 0,
    RecordStatus.PENDING_PAYMENT: 1,
    RecordStatus.IN_PROGRESS: 2,
    RecordStatus.COMPLETED: 3,
}

RESERVED_FIELDS = frozenset(
    {"id", "owner_key", "status", "attachments", "created_at", "updated_at"}
)

_FIELD_ALIASES = {
    "_id": "id",
    "ownerKey": "owner_key",
    "owner": "owner_key",
    "student": "owner_key",
    "studentName": "owner_key",
    "uploadedBy": "owner_key",
    "uploader": "owner_key",
    "createdAt": "created_at",
    "postedAt": "created_at",
    "uploaded_at": "created_at",
    "updatedAt": "updated_at",
}

# Wire artifacts that carry no domain meaning
_DROPPED_FIELDS = frozenset({"__v"})


@dataclass
class Attachment:
    """Descriptor of a file attached to a record."""

    name: str
    url: str
    mime_type: str = "application/octet-stream"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "mime_type": self.mime_type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        if not isinstance(data, dict):
            raise ValidationError("attachments", "entries must be objects", repr(data))
        name = data.get("name") or data.get("fileName") or data.get("file_name")
        url = data.get("url") or data.get("fileUrl") or data.get("file_url")
        if not name or not url:
            raise ValidationError("attachments", "name and url are required", repr(data))
        mime_type = (
            data.get("mime_type")
            or data.get("mimeType")
            or data.get("type")
            or "application/octet-stream"
        )
        return cls(name=str(name), url=str(url), mime_type=str(mime_type))


@dataclass
class AttachmentFile:
    """A file about to be uploaded."""

    name: str
    content: bytes
    mime_type: str | None = None

    def __post_init__(self) -> None:
        if self.mime_type is None:
            guessed, _ = mimetypes.guess_type(self.name)
            self.mime_type = guessed or "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    async def from_path(cls, path: Path, mime_type: str | None = None) -> AttachmentFile:
        """Read a file from disk."""
        try:
            async with aiofiles.open(path, "rb") as f:
                content = await f.read()
        except OSError as e:
            raise StorageIOError("read_attachment", str(path), e) from e
        return cls(name=Path(path).name, content=content, mime_type=mime_type)


@dataclass
class Record:
    """A persisted unit of a synced collection.

    Attributes:
        id: Opaque identifier, None until the record is first saved
        owner_key: Owning actor, used to scope reads
        status: Lifecycle tag
        payload: Domain fields, never interpreted by the store
        attachments: Ordered, append-only attachment descriptors
        created_at: Set on creation
        updated_at: Set on creation and on every mutation
    """

    id: str | None = None
    owner_key: str = ""
    status: RecordStatus = RecordStatus.PENDING
    payload: dict[str, Any] = field(default_factory=dict)
    attachments: list[Attachment] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def get(self, name: str, default: Any = None) -> Any:
        """Read a top-level field or, failing that, a payload field."""
        if name in RESERVED_FIELDS:
            value = getattr(self, name)
            return value.value if isinstance(value, RecordStatus) else value
        return self.payload.get(name, default)

    @property
    def title(self) -> str:
        return str(self.payload.get("title") or "")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the flat form used for storage and the wire."""
        data: dict[str, Any] = dict(self.payload)
        data.update(
            {
                "id": self.id,
                "owner_key": self.owner_key,
                "status": self.status.value,
                "attachments": [a.to_dict() for a in self.attachments],
                "created_at": self.created_at.isoformat() if self.created_at else None,
                "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            }
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Record:
        """Deserialize from any supported external shape."""
        normalized = normalize_record_data(data)
        return cls(
            id=normalized.get("id"),
            owner_key=normalized.get("owner_key") or "",
            status=normalized.get("status", RecordStatus.PENDING),
            payload=normalized.get("payload", {}),
            attachments=normalized.get("attachments", []),
            created_at=normalized.get("created_at"),
            updated_at=normalized.get("updated_at"),
        )

    def apply(self, changes: dict[str, Any]) -> Record:
        """Return a copy with normalized changes merged in.

        Payload keys are merged one by one; omitted fields are kept.
        ``id`` and ``created_at`` never change through a patch.
        """
        payload = dict(self.payload)
        payload.update(changes.get("payload", {}))
        return replace(
            self,
            owner_key=changes.get("owner_key") or self.owner_key,
            status=changes.get("status", self.status),
            payload=payload,
            attachments=list(changes.get("attachments", self.attachments)),
            updated_at=changes.get("updated_at", self.updated_at),
        )


def parse_timestamp(value: Any, field_name: str = "timestamp") -> datetime | None:
    """Parse ISO strings (with or without Z), epoch milliseconds, or datetimes.

    Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        raise ValidationError(field_name, "not a timestamp", repr(value))
    elif isinstance(value, int | float):
        parsed = datetime.fromtimestamp(value / 1000, tz=UTC)
    elif isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            parsed = datetime.fromtimestamp(int(text) / 1000, tz=UTC)
        else:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise ValidationError(field_name, "not an ISO timestamp", value) from None
    else:
        raise ValidationError(field_name, "not a timestamp", repr(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def normalize_record_data(raw: dict[str, Any]) -> dict[str, Any]:
    """Map an external record shape onto canonical fields.

    Only keys present in ``raw`` appear in the result, so the output doubles
    as a patch. Returned keys: id, owner_key, status, attachments,
    created_at, updated_at, payload.
    """
    if not isinstance(raw, dict):
        raise ValidationError("record", "must be an object", repr(raw))

    flat: dict[str, Any] = {}
    nested = raw.get("payload")
    if isinstance(nested, dict):
        flat.update(nested)
    for key, value in raw.items():
        if key == "payload" and isinstance(value, dict):
            continue
        canonical = _FIELD_ALIASES.get(key, key)
        # Canonical spelling wins over an alias when both are present
        if canonical != key and canonical in raw:
            continue
        flat[canonical] = value

    result: dict[str, Any] = {}
    payload: dict[str, Any] = {}
    for key, value in flat.items():
        if key in _DROPPED_FIELDS:
            continue
        if key == "id":
            result["id"] = normalize_id(value)
        elif key == "owner_key":
            owner = _normalize_owner(value)
            if owner is not None:
                result["owner_key"] = owner
        elif key == "status":
            if value is not None:
                result["status"] = RecordStatus.parse(value)
        elif key == "attachments":
            if value is None:
                value = []
            if not isinstance(value, list):
                raise ValidationError("attachments", "must be a list", repr(value))
            result["attachments"] = [
                a if isinstance(a, Attachment) else Attachment.from_dict(a) for a in value
            ]
        elif key in ("created_at", "updated_at"):
            result[key] = parse_timestamp(value, key)
        else:
            payload[key] = value
    if payload or "payload" in raw:
        result["payload"] = payload
    return result


def _normalize_owner(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        # Populated references from the API: {"_id": ..., "name": ...}
        value = value.get("_id") or value.get("id") or value.get("name")
        if value is None:
            return None
    return str(value)


_LIST_ENVELOPES = ("records", "assignments", "documents", "questions", "items")
_RECORD_ENVELOPES = ("record", "assignment", "document", "question", "updated")


def unwrap_record_list(body: Any) -> list[dict[str, Any]]:
    """Extract the list of raw records from a list response."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in _LIST_ENVELOPES:
            if isinstance(body.get(key), list):
                return body[key]
    raise ValidationError("response", "expected a list of records", type(body).__name__)


def unwrap_record(body: Any) -> dict[str, Any]:
    """Extract a single raw record from a create/update response."""
    if isinstance(body, dict):
        for key in _RECORD_ENVELOPES:
            if isinstance(body.get(key), dict):
                return body[key]
        return body
    raise ValidationError("response", "expected a record object", type(body).__name__)
