"""Tests for note_manager.storage and the store's load/save policies."""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Optional

import pytest

from note_manager.config import SaveMode, Settings
from note_manager.errors import BackendUnavailableError, SerializationError
from note_manager.models import Note, Notification
from note_manager.redis_storage import RedisBackend
from note_manager.storage import (
    JsonFileBackend,
    PersistenceBackend,
    create_backend,
    dump_notes,
    parse_notes,
)
from note_manager.store import NotesStore

KEY = "notesData"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Collector:
    """Notifier that records every notification."""

    def __init__(self) -> None:
        self.items: list[Notification] = []

    def __call__(self, notification: Notification) -> None:
        self.items.append(notification)

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.items if n.is_error]


class SlowBackend(PersistenceBackend):
    """Backend whose calls never finish in time."""

    name = "slow"

    async def _persist(self, key: str, payload: str) -> None:
        await asyncio.sleep(10)

    async def _retrieve(self, key: str) -> Optional[str]:
        await asyncio.sleep(10)
        return None


class SlowWriteBackend(JsonFileBackend):
    """File backend whose writes stall before the temp file is renamed."""

    @staticmethod
    def _write_atomic(path, payload, guard=None):
        time.sleep(0.3)
        JsonFileBackend._write_atomic(path, payload, guard)


class BrokenBackend(PersistenceBackend):
    """Backend that fails every call."""

    name = "broken"

    async def _persist(self, key: str, payload: str) -> None:
        raise BackendUnavailableError("disk on fire")

    async def _retrieve(self, key: str) -> Optional[str]:
        raise BackendUnavailableError("disk on fire")


def _note(note_id: str, title: Optional[str] = None) -> Note:
    return Note.create(title or f"title {note_id}", f"content {note_id}", id=note_id)


@pytest.fixture()
def backend(tmp_path: Path) -> JsonFileBackend:
    return JsonFileBackend(tmp_path)


@pytest.fixture()
def collector() -> Collector:
    return Collector()


def _store(backend: PersistenceBackend, collector: Collector, **kwargs) -> NotesStore:
    return NotesStore(backend, notifier=collector, **kwargs)


def _stored_ids(path: Path) -> list[str]:
    return [r["id"] for r in json.loads(path.read_text(encoding="utf-8"))]


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_dump_is_flat_json_array(self) -> None:
        data = json.loads(dump_notes([_note("a")]))
        assert isinstance(data, list)
        assert set(data[0]) == {"id", "title", "content", "createdAt", "updatedAt"}

    def test_roundtrip_preserves_fields(self) -> None:
        notes = [_note("a"), _note("b")]
        restored = parse_notes(dump_notes(notes))
        assert [n.to_record() for n in restored] == [n.to_record() for n in notes]

    def test_parse_original_format(self) -> None:
        raw = json.dumps(
            [
                {
                    "id": "k2j3h4g5f",
                    "title": "Things to Study",
                    "content": "How to structure projects.",
                    "createdAt": "2024-02-10T08:30:00.000Z",
                    "updatedAt": "2024-02-10T08:30:00.000Z",
                }
            ]
        )
        (note,) = parse_notes(raw)
        assert note.id == "k2j3h4g5f"
        assert note.created_at == note.updated_at

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"id": "a"}',
            '[{"id": "a", "title": "t"}]',
            '[{"id": "a", "title": "t", "content": "c", '
            '"createdAt": "2024-01-02T00:00:00Z", "updatedAt": "2024-01-01T00:00:00Z"}]',
        ],
    )
    def test_parse_malformed_raises(self, raw: str) -> None:
        with pytest.raises(SerializationError):
            parse_notes(raw)


# ---------------------------------------------------------------------------
# JSON file backend
# ---------------------------------------------------------------------------


class TestJsonFileBackend:
    @pytest.mark.asyncio
    async def test_retrieve_missing_returns_none(self, backend: JsonFileBackend) -> None:
        assert await backend.retrieve("nothing-here") is None

    @pytest.mark.asyncio
    async def test_persist_then_retrieve(
        self, backend: JsonFileBackend, tmp_path: Path
    ) -> None:
        await backend.persist(KEY, "[]")
        assert (tmp_path / KEY).read_text(encoding="utf-8") == "[]"
        assert await backend.retrieve(KEY) == "[]"

    @pytest.mark.asyncio
    async def test_persist_creates_directories(self, tmp_path: Path) -> None:
        backend = JsonFileBackend(tmp_path / "nested" / "dir")
        await backend.persist(KEY, "[]")
        assert (tmp_path / "nested" / "dir" / KEY).exists()

    @pytest.mark.asyncio
    async def test_absolute_key(self, backend: JsonFileBackend, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere.json"
        await backend.persist(str(target), "[]")
        assert target.exists()

    @pytest.mark.asyncio
    async def test_no_temp_files_left(
        self, backend: JsonFileBackend, tmp_path: Path
    ) -> None:
        await backend.persist(KEY, "[1]")
        await backend.persist(KEY, "[2]")
        assert sorted(p.name for p in tmp_path.iterdir()) == [KEY]

    @pytest.mark.asyncio
    async def test_read_error_is_backend_error(
        self, backend: JsonFileBackend, tmp_path: Path
    ) -> None:
        (tmp_path / KEY).mkdir()
        with pytest.raises(BackendUnavailableError):
            await backend.retrieve(KEY)

    @pytest.mark.asyncio
    async def test_write_error_is_backend_error(
        self, backend: JsonFileBackend, tmp_path: Path
    ) -> None:
        (tmp_path / KEY).mkdir()
        (tmp_path / KEY / "child").write_text("x")
        with pytest.raises(BackendUnavailableError):
            await backend.persist(KEY, "[]")

    def test_describe_key(self, backend: JsonFileBackend, tmp_path: Path) -> None:
        assert str(tmp_path / KEY) in backend.describe_key(KEY)


class TestCreateBackend:
    def test_file_backend(self, tmp_path: Path) -> None:
        backend = create_backend(Settings(storage_backend="file", data_dir=tmp_path))
        assert isinstance(backend, JsonFileBackend)
        assert backend.path_for(KEY) == tmp_path / KEY

    def test_redis_backend(self) -> None:
        backend = create_backend(
            Settings(storage_backend="redis", redis_url="redis://example:6379")
        )
        assert isinstance(backend, RedisBackend)
        assert backend.available is False


# ---------------------------------------------------------------------------
# Store load
# ---------------------------------------------------------------------------


class TestStoreLoad:
    @pytest.mark.asyncio
    async def test_save_then_load_into_fresh_store(
        self, backend: JsonFileBackend, collector: Collector
    ) -> None:
        store = _store(backend, collector)
        store.add(_note("a"))
        store.add(_note("b"))
        assert await store.save(KEY)

        fresh = _store(backend, collector)
        assert await fresh.load(KEY)
        assert [n.to_record() for n in fresh.list_notes()] == [
            n.to_record() for n in store.list_notes()
        ]
        # loaded notes are not undoable
        assert not fresh.can_undo

    @pytest.mark.asyncio
    async def test_load_skips_existing_ids(
        self, backend: JsonFileBackend, collector: Collector
    ) -> None:
        writer = _store(backend, collector)
        writer.add(_note("a", title="stored"))
        writer.add(_note("b"))
        await writer.save(KEY)

        store = _store(backend, collector)
        local = _note("a", title="local")
        store.add(local)
        assert await store.load(KEY)
        assert [n.id for n in store.list_notes()] == ["a", "b"]
        assert store.get_by_id("a") is local
        assert store.get_by_id("a").title == "local"

    @pytest.mark.asyncio
    async def test_load_is_idempotent(
        self, backend: JsonFileBackend, collector: Collector
    ) -> None:
        writer = _store(backend, collector)
        writer.add(_note("a"))
        await writer.save(KEY)

        store = _store(backend, collector)
        await store.load(KEY)
        await store.load(KEY)
        assert [n.id for n in store.list_notes()] == ["a"]

    @pytest.mark.asyncio
    async def test_load_missing_key(
        self, backend: JsonFileBackend, collector: Collector
    ) -> None:
        store = _store(backend, collector)
        assert await store.load("absent") is False
        assert "No notes found" in collector.errors[-1].message

    @pytest.mark.asyncio
    async def test_load_malformed_leaves_store_unchanged(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        good = json.loads(dump_notes([_note("x")]))
        (tmp_path / KEY).write_text(json.dumps(good + [{"id": "broken"}]))
        store = _store(backend, collector)
        store.add(_note("a"))
        assert await store.load(KEY) is False
        assert [n.id for n in store.list_notes()] == ["a"]
        assert collector.errors[-1].error == "SerializationError"

    @pytest.mark.asyncio
    async def test_load_backend_failure(self, collector: Collector) -> None:
        store = _store(BrokenBackend(), collector)
        assert await store.load(KEY) is False
        assert collector.errors[-1].error == "BackendUnavailableError"

    @pytest.mark.asyncio
    async def test_load_without_backend(self, collector: Collector) -> None:
        store = NotesStore(notifier=collector)
        assert await store.load(KEY) is False
        assert collector.errors[-1].error == "BackendUnavailableError"

    @pytest.mark.asyncio
    async def test_load_timeout(self, collector: Collector) -> None:
        store = _store(SlowBackend(), collector, io_timeout=0.05)
        assert await store.load(KEY) is False
        assert "timed out" in collector.errors[-1].message

    @pytest.mark.asyncio
    async def test_load_records_without_offset(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        records = [
            {
                "id": "a1",
                "title": "Plain",
                "content": "no offsets",
                "createdAt": "2024-03-01T10:00:00",
                "updatedAt": "2024-03-01T10:30:00",
            },
            {
                "id": "b2",
                "title": "Mixed",
                "content": "one of each",
                "createdAt": "2024-03-01T10:00:00",
                "updatedAt": "2024-03-01T11:00:00Z",
            },
        ]
        (tmp_path / KEY).write_text(json.dumps(records))
        store = _store(backend, collector)
        assert await store.load(KEY)
        assert [n.id for n in store.list_notes()] == ["a1", "b2"]

        updated = store.update("a1", "Edited", "now with an offset")
        assert updated is not None
        assert updated.updated_at > updated.created_at
        assert not collector.errors


# ---------------------------------------------------------------------------
# Store save
# ---------------------------------------------------------------------------


class TestStoreSave:
    @pytest.mark.asyncio
    async def test_merge_keeps_stored_and_appends_new(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        first = _store(backend, collector)
        first.add(_note("a"))
        first.add(_note("b"))
        await first.save(KEY)

        second = _store(backend, collector)
        second.add(_note("c"))
        await second.save(KEY)
        assert _stored_ids(tmp_path / KEY) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_merge_does_not_duplicate(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        store = _store(backend, collector)
        store.add(_note("a"))
        await store.save(KEY)
        await store.save(KEY)
        assert _stored_ids(tmp_path / KEY) == ["a"]

    @pytest.mark.asyncio
    async def test_merge_writes_live_edits(
        self, backend: JsonFileBackend, collector: Collector
    ) -> None:
        store = _store(backend, collector)
        store.add(_note("a"))
        await store.save(KEY)
        store.update("a", "edited", "edited body")
        await store.save(KEY)

        (stored,) = parse_notes(await backend.retrieve(KEY))
        assert stored.title == "edited"
        assert stored.updated_at == store.get_by_id("a").updated_at

    @pytest.mark.asyncio
    async def test_merge_keeps_deleted_notes(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        store = _store(backend, collector)
        store.add(_note("a"))
        store.add(_note("b"))
        await store.save(KEY)
        store.delete_by_id("a")
        await store.save(KEY)
        assert _stored_ids(tmp_path / KEY) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_replace_mode_propagates_deletes(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        store = _store(backend, collector, save_mode=SaveMode.REPLACE)
        store.add(_note("a"))
        store.add(_note("b"))
        await store.save(KEY)
        store.delete_by_id("a")
        await store.save(KEY)
        assert _stored_ids(tmp_path / KEY) == ["b"]

    @pytest.mark.asyncio
    async def test_malformed_existing_blocks_merge_save(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        (tmp_path / KEY).write_text("garbage")
        store = _store(backend, collector)
        store.add(_note("a"))
        assert await store.save(KEY) is False
        assert (tmp_path / KEY).read_text() == "garbage"
        assert collector.errors[-1].error == "SerializationError"

    @pytest.mark.asyncio
    async def test_save_backend_failure(self, collector: Collector) -> None:
        store = _store(BrokenBackend(), collector, save_mode=SaveMode.REPLACE)
        store.add(_note("a"))
        assert await store.save(KEY) is False
        assert collector.errors[-1].message == "disk on fire"

    @pytest.mark.asyncio
    async def test_save_timeout(self, collector: Collector) -> None:
        store = _store(SlowBackend(), collector, io_timeout=0.05)
        assert await store.save(KEY) is False
        assert collector.errors[-1].error == "BackendUnavailableError"

    @pytest.mark.asyncio
    async def test_timed_out_write_never_lands(
        self, collector: Collector, tmp_path: Path
    ) -> None:
        store = _store(SlowWriteBackend(tmp_path), collector, io_timeout=0.05)
        store.add(_note("a"))
        assert await store.save(KEY) is False
        assert "timed out" in collector.errors[-1].message

        await asyncio.sleep(0.4)
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_save_after_timed_out_write_wins(
        self, collector: Collector, tmp_path: Path
    ) -> None:
        slow = _store(SlowWriteBackend(tmp_path), collector, io_timeout=0.05)
        slow.add(_note("stale"))
        assert await slow.save(KEY) is False

        fast = _store(JsonFileBackend(tmp_path), collector, save_mode=SaveMode.REPLACE)
        fast.add(_note("fresh"))
        assert await fast.save(KEY)
        await asyncio.sleep(0.4)
        assert _stored_ids(tmp_path / KEY) == ["fresh"]

    @pytest.mark.asyncio
    async def test_concurrent_saves_do_not_lose_notes(
        self, backend: JsonFileBackend, collector: Collector, tmp_path: Path
    ) -> None:
        stores = []
        for i in range(5):
            store = _store(backend, collector)
            store.add(_note(f"n{i}"))
            stores.append(store)

        results = await asyncio.gather(*(s.save(KEY) for s in stores))
        assert all(results)
        assert sorted(_stored_ids(tmp_path / KEY)) == [f"n{i}" for i in range(5)]

    def test_lock_is_per_key(self, backend: JsonFileBackend) -> None:
        assert backend.lock("a") is backend.lock("a")
        assert backend.lock("a") is not backend.lock("b")
