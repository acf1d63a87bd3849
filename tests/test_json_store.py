"""
Unit tests for the JSON store.

Tests lenient and strict reads, atomic writes and serialized updates.
"""
import asyncio
import json

import pytest

from rukh.storage.json_store import JsonStore, StoreCorruptError


class TestReads:
    """Test reading missing, valid and corrupt documents."""

    async def test_missing_file_yields_default_without_creating_it(self, tmp_path):
        """Reading a missing store returns the default and leaves the disk untouched."""
        store = JsonStore(tmp_path / "doc.json")

        assert await store.read(lambda: {"messages": []}) == {"messages": []}
        assert not store.exists()

    async def test_corrupt_file_is_treated_as_empty(self, tmp_path):
        """Lenient reads fall back to the default on invalid JSON."""
        path = tmp_path / "doc.json"
        path.write_text("{not json", encoding="utf-8")

        assert await JsonStore(path).read(dict) == {}

    async def test_strict_read_raises_on_corrupt_file(self, tmp_path):
        """Strict reads surface corruption to the caller."""
        path = tmp_path / "doc.json"
        path.write_text("[1, 2", encoding="utf-8")

        with pytest.raises(StoreCorruptError):
            await JsonStore(path).read_strict(dict)


class TestWrites:
    """Test whole-document writes and read-modify-write updates."""

    async def test_write_creates_parent_directories(self, tmp_path):
        """Writing into a missing directory creates it."""
        store = JsonStore(tmp_path / "nested" / "dir" / "doc.json")
        await store.write({"a": 1})

        assert json.loads(store.path.read_text(encoding="utf-8")) == {"a": 1}

    async def test_write_leaves_no_temp_files(self, tmp_path):
        """Atomic writes clean up after themselves."""
        store = JsonStore(tmp_path / "doc.json")
        await store.write({"a": 1})
        await store.write({"a": 2})

        assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]

    async def test_update_returns_mutator_result(self, tmp_path):
        """update() hands back whatever the mutator returned."""
        store = JsonStore(tmp_path / "doc.json")

        def _add(doc):
            doc["items"].append("x")
            return len(doc["items"])

        assert await store.update(_add, default_factory=lambda: {"items": []}) == 1
        assert await store.update(_add, default_factory=lambda: {"items": []}) == 2

    async def test_update_rebuilds_corrupt_document(self, tmp_path):
        """A corrupt file is replaced by the default before mutation."""
        path = tmp_path / "doc.json"
        path.write_text("garbage", encoding="utf-8")
        store = JsonStore(path)

        await store.update(lambda doc: doc.update(ok=True), default_factory=dict)

        assert await store.read(dict) == {"ok": True}

    async def test_concurrent_updates_are_not_lost(self, tmp_path):
        """Parallel updates on one store serialize under its lock."""
        store = JsonStore(tmp_path / "doc.json")

        async def _bump():
            await store.update(
                lambda doc: doc.update(count=doc["count"] + 1),
                default_factory=lambda: {"count": 0},
            )

        await asyncio.gather(*(_bump() for _ in range(20)))

        assert (await store.read(dict))["count"] == 20
