"""
Synced collection store.

Presents one collection-like interface backed by exactly one source at a
time: the remote API, or the durable local adapter once the session has
fallen back. Remote failures are absorbed into the fallback; validation
errors and local persistence failures reach the caller.

Read-after-write: every mutation re-runs ``load`` before returning, so
``records`` always reflects what the active source holds.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from ..exceptions import (
    PersistenceError,
    RecordNotFoundError,
    StorageIOError,
    ValidationError,
)
from ..id_utils import generate_local_id
from ..local import LocalBlobRegistry, LocalCollection
from ..logging_utils import SyncLoggerAdapter, get_sync_logger
from ..records import (
    RESERVED_FIELDS,
    Attachment,
    AttachmentFile,
    Record,
    RecordStatus,
    normalize_record_data,
    validate_attachment_file,
    validate_record,
)
from .fallback import FallbackListener, FallbackPolicy, StoreMode
from .specs import CollectionSpec

if TYPE_CHECKING:
    from ..identity import IdentityResolver, OwnerIdentity
    from ..remote import RemoteApiClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

RecordInput = Record | Mapping[str, Any]


def _now() -> datetime:
    return datetime.now(UTC)


class SyncedCollectionStore:
    """One collection, synced against the remote API or local storage.

    Stores are normally obtained from ``StudySession.collection()`` so that
    every store of a session shares the same mode and identity.

    Example:
        >>> store = session.collection(ASSIGNMENTS)
        >>> await store.initialize("alice")
        >>> essay = await store.save({"title": "Essay", "amount": 5})
        >>> await store.save({"id": essay.id, "status": "completed"})
        >>> store.records
    """

    def __init__(
        self,
        spec: CollectionSpec,
        policy: FallbackPolicy,
        local: LocalCollection,
        blobs: LocalBlobRegistry,
        identity: IdentityResolver,
        remote: RemoteApiClient | None = None,
        write_lock: asyncio.Lock | None = None,
    ) -> None:
        self.spec = spec
        self.policy = policy
        self.local = local
        self.blobs = blobs
        self.identity = identity
        self.remote = remote

        self._records: list[Record] = []
        self._filters: dict[str, Any] = {}
        # Shared by every store of the session writing the same collection
        self._write_lock = write_lock if write_lock is not None else asyncio.Lock()
        self._log = SyncLoggerAdapter(
            get_sync_logger(f"store.{spec.name}"),
            {
                "collection": spec.name,
                "mode": lambda: self.mode.value,
                "owner_key": lambda: self.owner_key,
            },
        )

    # State

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def mode(self) -> StoreMode:
        return self.policy.mode

    @property
    def auth_required(self) -> bool:
        return self.policy.auth_required

    @property
    def owner_key(self) -> str | None:
        current = self.identity.current
        return current.owner_key if current else None

    @property
    def records(self) -> tuple[Record, ...]:
        """The current in-memory view. Read-only for consumers."""
        return tuple(self._records)

    def get(self, record_id: str) -> Record | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def on_fallback(self, listener: FallbackListener) -> Callable[[], None]:
        """Subscribe to the one-time fallback notice. Returns an unsubscribe callable."""
        return self.policy.subscribe(listener)

    # Operations

    async def initialize(self, owner_key: str | None = None) -> OwnerIdentity:
        """Resolve the acting identity, then load the collection."""
        identity = await self.identity.resolve(owner_key)
        await self.load()
        return identity

    async def load(self, filters: Mapping[str, Any] | None = None) -> list[Record]:
        """Replace the in-memory view with what the active source returns.

        Args:
            filters: Field equality filters (top-level or payload fields);
                ``search`` matches a case-insensitive substring of the title

        Raises:
            PersistenceError: If the local source could not be read
        """
        filters = dict(filters or {})
        owner = await self._acting_owner()

        async def remote_load(remote: RemoteApiClient) -> list[Record]:
            params = dict(filters)
            if self.spec.owner_scoped:
                params["owner_key"] = owner
            records = await remote.list_records(self.name, params)
            return [r for r in records if self._in_scope(r, owner)]

        async def local_load() -> list[Record]:
            try:
                records = await self.local.read_all()
            except StorageIOError as e:
                raise PersistenceError("load", self.name, e) from e
            return [r for r in records if self._in_scope(r, owner) and _matches(r, filters)]

        records = await self._run("load", remote_load, local_load)
        self._records = _unique_by_id(records)
        self._filters = filters
        self._log.debug(f"Loaded {len(self._records)} records")
        return list(self._records)

    async def save(self, record: RecordInput) -> Record:
        """Create or update a record.

        A record without an id is created. A mapping with an id is a patch:
        its fields are merged onto the stored record. A Record instance with
        an id replaces the stored fields wholesale (``created_at`` is kept).

        Returns:
            The record as stored by the active source

        Raises:
            ValidationError: If the record is malformed (nothing is written)
            PersistenceError: If the local write failed
        """
        async with self._write_lock:
            return await self._save(record)

    async def upload_attachment(self, record_id: str, file: AttachmentFile) -> Attachment:
        """Upload a file for a record and return its descriptor.

        The record itself is not modified; append the descriptor with a
        follow-up ``save`` (or use ``append_attachment``). In local mode the
        bytes live in memory only and do not survive a restart.
        """
        validate_attachment_file(file, self.spec.max_attachment_bytes, self.spec.allowed_mime_types)

        async def remote_upload(remote: RemoteApiClient) -> Attachment:
            return await remote.upload_attachment(self.name, record_id, file)

        async def local_upload() -> Attachment:
            await self._require_local(record_id, "upload_attachment")
            return self.blobs.register(self.name, record_id, file)

        attachment = await self._run("upload_attachment", remote_upload, local_upload)
        self._log.debug(f"Uploaded {file.name} for {record_id}")
        return attachment

    async def append_attachment(self, record_id: str, file: AttachmentFile) -> Record:
        """Upload a file and append its descriptor to the record."""
        async with self._write_lock:
            attachment = await self.upload_attachment(record_id, file)
            current = await self._current(record_id)
            return await self._save(
                {"id": record_id, "attachments": [*current.attachments, attachment]}
            )

    async def increment_counter(self, record_id: str, field: str) -> Record:
        """Increment a numeric payload field (e.g. document downloads).

        Remote increments are atomic on the server. The local fallback is a
        plain read-increment-write; concurrent processes sharing the local
        path can lose increments.
        """
        if field in RESERVED_FIELDS:
            raise ValidationError("field", "not a counter field", field)

        async with self._write_lock:

            async def remote_increment(remote: RemoteApiClient) -> Record | None:
                return await remote.increment_counter(self.name, record_id, field)

            async def local_increment() -> Record | None:
                def bump(existing: Record | None) -> Record:
                    if existing is None:
                        raise RecordNotFoundError(record_id, self.name)
                    value = existing.payload.get(field)
                    count = value if isinstance(value, int) and not isinstance(value, bool) else 0
                    return existing.apply({"payload": {field: count + 1}, "updated_at": _now()})

                try:
                    return await self.local.upsert(record_id, bump)
                except StorageIOError as e:
                    raise PersistenceError("increment_counter", self.name, e) from e

            updated = await self._run("increment_counter", remote_increment, local_increment)
            await self.load(self._filters)
            result = self.get(record_id) or updated
            if result is None:
                raise RecordNotFoundError(record_id, self.name)
            return result

    # Internals

    async def _save(self, record: RecordInput) -> Record:
        owner = await self._acting_owner()
        record_id, patch = _split_input(record)

        # Validate against what we already hold before touching any source
        candidate = self._build(record, record_id, patch, self.get(record_id) if record_id else None, owner)

        async def remote_save(remote: RemoteApiClient) -> Record:
            if record_id is None:
                body = candidate.to_dict()
                body.pop("id", None)
                return await remote.create_record(self.name, body)
            if isinstance(record, Record):
                body = candidate.to_dict()
            else:
                body = _patch_to_wire(patch, _now())
            return await remote.update_record(self.name, record_id, body)

        async def local_save() -> Record:
            def build(existing: Record | None) -> Record:
                if existing is None and record_id is not None:
                    existing = self.get(record_id)
                return self._build(record, record_id, patch, existing, owner)

            try:
                return await self.local.upsert(record_id, build)
            except StorageIOError as e:
                raise PersistenceError("save", self.name, e) from e

        saved = await self._run("save", remote_save, local_save)
        await self.load(self._filters)
        self._log.debug(f"Saved {saved.id}")
        return self.get(saved.id) or saved

    def _build(
        self,
        record: RecordInput,
        record_id: str | None,
        patch: dict[str, Any],
        existing: Record | None,
        owner: str | None,
    ) -> Record:
        now = _now()
        if isinstance(record, Record):
            result = replace(
                record,
                id=record.id or generate_local_id(),
                owner_key=record.owner_key or (existing.owner_key if existing else owner) or "",
                payload=dict(record.payload),
                attachments=list(record.attachments),
                created_at=(existing.created_at if existing else None) or record.created_at or now,
                updated_at=now,
            )
        else:
            base = existing or Record(
                id=record_id or generate_local_id(),
                owner_key=owner or "",
                created_at=patch.get("created_at") or now,
            )
            result = base.apply({**patch, "updated_at": now})

        validate_record(result)
        if self.spec.owner_scoped:
            if result.owner_key != owner or (existing is not None and existing.owner_key != owner):
                raise ValidationError("owner_key", "record belongs to another owner", result.owner_key)
        return result

    async def _current(self, record_id: str) -> Record:
        """The freshest copy of a record from the active source's point of view."""
        record = None
        if self.mode is StoreMode.LOCAL:
            record = await self._find_local(record_id, "append_attachment")
        if record is None:
            record = self.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id, self.name)
        return record

    async def _require_local(self, record_id: str, operation: str) -> None:
        if self.get(record_id) is None and await self._find_local(record_id, operation) is None:
            raise RecordNotFoundError(record_id, self.name)

    async def _find_local(self, record_id: str, operation: str) -> Record | None:
        try:
            return await self.local.find(record_id)
        except StorageIOError as e:
            raise PersistenceError(operation, self.name, e) from e

    async def _acting_owner(self) -> str | None:
        if self.identity.current is None:
            await self.identity.resolve()
        return self.owner_key

    def _in_scope(self, record: Record, owner: str | None) -> bool:
        return not self.spec.owner_scoped or record.owner_key == owner

    async def _run(
        self,
        operation: str,
        remote_call: Callable[[RemoteApiClient], Awaitable[T]],
        local_call: Callable[[], Awaitable[T]],
    ) -> T:
        remote = self.remote
        if remote is None:
            return await local_call()
        return await self.policy.run(
            f"{self.name}.{operation}", functools.partial(remote_call, remote), local_call
        )


def _split_input(record: RecordInput) -> tuple[str | None, dict[str, Any]]:
    """Return (id, normalized patch) for a save() argument."""
    if isinstance(record, Record):
        collisions = RESERVED_FIELDS & record.payload.keys()
        if collisions:
            raise ValidationError("payload", "uses reserved field names", ", ".join(sorted(collisions)))
        if not isinstance(record.status, RecordStatus):
            raise ValidationError("status", "must be a RecordStatus", repr(record.status))
        return record.id, {}
    if not isinstance(record, Mapping):
        raise ValidationError("record", "must be a Record or a mapping", type(record).__name__)
    patch = normalize_record_data(dict(record))
    record_id = patch.pop("id", None)
    return record_id, patch


def _patch_to_wire(patch: dict[str, Any], now: datetime) -> dict[str, Any]:
    wire: dict[str, Any] = dict(patch.get("payload", {}))
    if "owner_key" in patch:
        wire["owner_key"] = patch["owner_key"]
    if "status" in patch:
        wire["status"] = patch["status"].value
    if "attachments" in patch:
        wire["attachments"] = [a.to_dict() for a in patch["attachments"]]
    wire["updated_at"] = now.isoformat()
    return wire


def _matches(record: Record, filters: dict[str, Any]) -> bool:
    for key, expected in filters.items():
        if expected is None:
            continue
        if key == "search":
            if str(expected).casefold() not in record.title.casefold():
                return False
        elif key == "status":
            if record.status is not RecordStatus.parse(expected):
                return False
        else:
            actual = record.get(key)
            if actual != expected and str(actual) != str(expected):
                return False
    return True


def _unique_by_id(records: list[Record]) -> list[Record]:
    seen: set[str | None] = set()
    unique: list[Record] = []
    for record in records:
        if record.id in seen:
            logger.warning(f"Dropping duplicate record id {record.id}")
            continue
        seen.add(record.id)
        unique.append(record)
    return unique
