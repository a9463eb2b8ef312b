"""
A record collection persisted as one JSON array in the durable adapter.

Every write rewrites the full collection under a single key. Stores of one
session that share a collection name also share a write lock. Two processes
sharing the same directory can still lose each other's updates on
concurrent read-modify-write cycles.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from ..exceptions import StorageIOError, ValidationError
from ..records import Record
from .adapter import LocalDurableAdapter

logger = logging.getLogger(__name__)


def collection_key(name: str) -> str:
    return f"collection.{name}"


class LocalCollection:
    """Read/write access to one collection's durable blob."""

    def __init__(self, adapter: LocalDurableAdapter, name: str) -> None:
        self.adapter = adapter
        self.name = name
        self.key = collection_key(name)

    async def read_all(self) -> list[Record]:
        """Load and normalize every stored record, in stored order.

        Entries that fail normalization are left out of the result but stay
        on disk; see ``upsert``.
        """
        records: list[Record] = []
        seen: set[str | None] = set()
        for item in await self._read_raw():
            try:
                record = Record.from_dict(item)
            except ValidationError as e:
                # One damaged entry must not hide the rest of the collection
                logger.warning(f"Skipping unreadable record in {self.key}: {e}")
                continue
            if record.id in seen:
                logger.warning(f"Skipping duplicate id {record.id} in {self.key}")
                continue
            seen.add(record.id)
            records.append(record)
        return records

    async def find(self, record_id: str) -> Record | None:
        for record in await self.read_all():
            if record.id == record_id:
                return record
        return None

    async def upsert(
        self,
        record_id: str | None,
        build: Callable[[Record | None], Record],
    ) -> Record:
        """One read-modify-write cycle over the whole collection.

        ``build`` receives the stored record with ``record_id`` (or None) and
        returns the record to store. It replaces the first readable entry
        with a matching id and is appended otherwise. Every other entry is
        written back exactly as it was read, unreadable ones included.
        Nothing is written if ``build`` raises.
        """
        raw = await self._read_raw()
        index = None
        existing = None
        if record_id is not None:
            for i, item in enumerate(raw):
                parsed = _parse_quietly(item)
                if parsed is not None and parsed.id == record_id:
                    index, existing = i, parsed
                    break

        record = build(existing)
        if index is None:
            raw.append(record.to_dict())
        else:
            raw[index] = record.to_dict()

        await self.adapter.set(self.key, json.dumps(raw))
        return record

    async def _read_raw(self) -> list[Any]:
        blob = await self.adapter.get(self.key)
        if blob is None or not blob.strip():
            return []
        try:
            raw = json.loads(blob)
        except json.JSONDecodeError as e:
            raise StorageIOError("parse_collection", self.key, e) from e
        if not isinstance(raw, list):
            raise StorageIOError("parse_collection", self.key, reason="expected a JSON array")
        return raw


def _parse_quietly(item: Any) -> Record | None:
    try:
        return Record.from_dict(item)
    except ValidationError:
        return None
