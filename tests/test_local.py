"""Tests for durable local persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from studyglade_sync.exceptions import StorageIOError, StorageQuotaExceededError, ValidationError
from studyglade_sync.local import LocalBlobRegistry, LocalCollection, LocalDurableAdapter, collection_key
from studyglade_sync.local.file_ops import read_text, remove_file, write_text_atomic
from studyglade_sync.records import AttachmentFile, Record, RecordStatus


class TestFileOps:
    async def test_write_and_read(self, temp_dir: Path) -> None:
        path = temp_dir / "nested" / "blob.json"

        await write_text_atomic(path, "[]")

        assert await read_text(path) == "[]"
        # No temp files left behind
        assert [p.name for p in path.parent.iterdir()] == ["blob.json"]

    async def test_read_missing(self, temp_dir: Path) -> None:
        assert await read_text(temp_dir / "missing.json") is None

    async def test_remove(self, temp_dir: Path) -> None:
        path = temp_dir / "blob.json"
        await write_text_atomic(path, "x")

        assert await remove_file(path) is True
        assert await remove_file(path) is False

    async def test_write_into_file_path_fails(self, temp_dir: Path) -> None:
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(StorageIOError):
            await write_text_atomic(blocker / "blob.json", "x")


class TestLocalDurableAdapter:
    """Tests for LocalDurableAdapter."""

    async def test_get_set_delete(self, temp_dir: Path) -> None:
        adapter = LocalDurableAdapter(temp_dir)

        assert await adapter.get("collection.assignments") is None
        await adapter.set("collection.assignments", '[{"id": "1"}]')
        assert await adapter.get("collection.assignments") == '[{"id": "1"}]'
        assert (temp_dir / "collection.assignments.json").exists()

        assert await adapter.delete("collection.assignments") is True
        assert await adapter.get("collection.assignments") is None

    async def test_invalid_keys(self, temp_dir: Path) -> None:
        adapter = LocalDurableAdapter(temp_dir)

        for key in ("../escape", "a/b", "", ".hidden", "a..b"):
            with pytest.raises(ValidationError):
                await adapter.get(key)

    async def test_quota_keeps_previous_value(self, temp_dir: Path) -> None:
        adapter = LocalDurableAdapter(temp_dir, quota_bytes=8)
        await adapter.set("k", "small")

        with pytest.raises(StorageQuotaExceededError) as exc_info:
            await adapter.set("k", "much too large")

        assert exc_info.value.quota_bytes == 8
        assert isinstance(exc_info.value, StorageIOError)
        assert await adapter.get("k") == "small"


class TestLocalCollection:
    """Tests for LocalCollection."""

    @pytest.fixture
    def adapter(self, temp_dir: Path) -> LocalDurableAdapter:
        return LocalDurableAdapter(temp_dir)

    @pytest.fixture
    def collection(self, adapter: LocalDurableAdapter) -> LocalCollection:
        return LocalCollection(adapter, "assignments")

    async def test_empty(self, collection: LocalCollection) -> None:
        assert collection.key == collection_key("assignments") == "collection.assignments"
        assert await collection.read_all() == []

    async def test_upsert_appends_then_replaces(self, collection: LocalCollection) -> None:
        first = Record(id="1", owner_key="alice", payload={"title": "Essay"})
        second = Record(id="2", owner_key="alice", payload={"title": "Lab"})
        await collection.upsert("1", lambda existing: first)
        await collection.upsert("2", lambda existing: second)

        seen: list[Record | None] = []

        def complete(existing: Record | None) -> Record:
            seen.append(existing)
            assert existing is not None
            return existing.apply({"status": RecordStatus.COMPLETED})

        await collection.upsert("1", complete)

        records = await collection.read_all()
        assert [r.id for r in records] == ["1", "2"]
        assert records[0].status is RecordStatus.COMPLETED
        assert seen == [first]

    async def test_failed_build_writes_nothing(
        self, collection: LocalCollection, adapter: LocalDurableAdapter
    ) -> None:
        await collection.upsert("1", lambda existing: Record(id="1", owner_key="alice"))
        before = await adapter.get(collection.key)

        def explode(existing: Record | None) -> Record:
            raise ValidationError("title", "is required")

        with pytest.raises(ValidationError):
            await collection.upsert("2", explode)

        assert await adapter.get(collection.key) == before

    async def test_blob_is_json_array_of_flat_dicts(
        self, collection: LocalCollection, adapter: LocalDurableAdapter
    ) -> None:
        await collection.upsert(
            "1", lambda existing: Record(id="1", owner_key="alice", payload={"title": "Essay"})
        )

        blob = json.loads(await adapter.get(collection.key) or "")

        assert blob[0]["id"] == "1"
        assert blob[0]["title"] == "Essay"
        assert blob[0]["status"] == "pending"

    async def test_skips_damaged_and_duplicate_entries(
        self, collection: LocalCollection, adapter: LocalDurableAdapter
    ) -> None:
        await adapter.set(
            collection.key,
            json.dumps(
                [
                    {"_id": "1", "ownerKey": "alice", "status": "Pending"},
                    {"id": "2", "status": "archived"},
                    {"id": "1", "owner_key": "bob"},
                ]
            ),
        )

        records = await collection.read_all()

        assert [(r.id, r.owner_key) for r in records] == [("1", "alice")]

    async def test_upsert_keeps_unreadable_entries(
        self, collection: LocalCollection, adapter: LocalDurableAdapter
    ) -> None:
        legacy = {"id": "legacy-1", "owner_key": "alice", "status": "Archived", "title": "Old"}
        await adapter.set(
            collection.key,
            json.dumps([legacy, {"_id": "1", "ownerKey": "alice", "status": "Pending"}, "junk"]),
        )

        await collection.upsert("2", lambda existing: Record(id="2", owner_key="alice"))
        await collection.upsert("1", lambda existing: existing.apply({"status": RecordStatus.COMPLETED}))

        blob = json.loads(await adapter.get(collection.key) or "")
        assert blob[0] == legacy
        assert blob[2] == "junk"
        assert [entry["id"] for entry in (blob[1], blob[3])] == ["1", "2"]
        assert blob[1]["status"] == "completed"
        assert [r.id for r in await collection.read_all()] == ["1", "2"]

    async def test_upsert_updates_first_of_duplicate_ids(
        self, collection: LocalCollection, adapter: LocalDurableAdapter
    ) -> None:
        await adapter.set(
            collection.key,
            json.dumps([{"id": "1", "owner_key": "alice"}, {"id": "1", "owner_key": "bob"}]),
        )

        await collection.upsert("1", lambda existing: existing.apply({"status": RecordStatus.COMPLETED}))

        blob = json.loads(await adapter.get(collection.key) or "")
        assert [(e["owner_key"], e.get("status")) for e in blob] == [("alice", "completed"), ("bob", None)]

    async def test_corrupt_blob_raises(
        self, collection: LocalCollection, adapter: LocalDurableAdapter
    ) -> None:
        await adapter.set(collection.key, "{not json")
        with pytest.raises(StorageIOError):
            await collection.read_all()

        await adapter.set(collection.key, '{"id": "1"}')
        with pytest.raises(StorageIOError):
            await collection.read_all()

    async def test_find(self, collection: LocalCollection) -> None:
        await collection.upsert("1", lambda existing: Record(id="1", owner_key="alice"))

        found = await collection.find("1")
        assert found is not None
        assert found.owner_key == "alice"
        assert await collection.find("2") is None


class TestLocalBlobRegistry:
    def test_register_and_resolve(self) -> None:
        registry = LocalBlobRegistry()

        attachment = registry.register("assignments", "1", AttachmentFile("my notes.pdf", b"%PDF"))

        assert attachment.name == "my notes.pdf"
        assert attachment.mime_type == "application/pdf"
        assert attachment.url.startswith("local://assignments/1/")
        assert registry.is_local_url(attachment.url)
        assert registry.resolve(attachment.url) == b"%PDF"
        assert len(registry) == 1

    def test_cleared_blobs_are_gone(self) -> None:
        registry = LocalBlobRegistry()
        attachment = registry.register("documents", "1", AttachmentFile("a.txt", b"a"))

        registry.clear()

        assert registry.resolve(attachment.url) is None
