"""
Unit tests for context management.
"""
import json

import pytest

from rukh.core.exceptions import (
    ConflictError,
    ContextFileNotFoundError,
    ContextNotFoundError,
    InvalidPasswordError,
    NotFoundError,
    ValidationError,
)
from rukh.core.outcomes import Severity
from rukh.services.context_service import INDEX_FILE, ContextService

from tests.conftest import WALLET

PASSWORD = "secret"


@pytest.fixture
def contexts(tmp_path) -> ContextService:
    return ContextService(tmp_path / "contexts", max_file_bytes=2048)


def _index(contexts: ContextService, name: str) -> dict:
    return json.loads((contexts.contexts_dir / name / INDEX_FILE).read_text(encoding="utf-8"))


class TestContexts:
    """Test creating, listing and deleting contexts."""

    async def test_create_writes_empty_index(self, contexts):
        path = await contexts.create_context("my-docs", PASSWORD, "Docs")

        assert path.endswith("my-docs")
        index = _index(contexts, "my-docs")
        assert index["name"] == "my-docs"
        assert index["numberOfFiles"] == 0
        assert index["files"] == [] and index["links"] == [] and index["queries"] == []

    async def test_duplicate_name_conflicts(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(ConflictError):
            await contexts.create_context("my-docs", PASSWORD)

    @pytest.mark.parametrize("name", ["My-Docs", "../escape", "has space", ""])
    async def test_invalid_names(self, contexts, name):
        with pytest.raises(ValidationError):
            await contexts.create_context(name, PASSWORD)

    async def test_password_required(self, contexts):
        with pytest.raises(ValidationError):
            await contexts.create_context("my-docs", "")

    async def test_list_contexts(self, contexts):
        assert await contexts.list_contexts() == []

        await contexts.create_context("beta", PASSWORD, "B")
        await contexts.create_context("alpha", PASSWORD, "A")

        assert await contexts.list_contexts() == [
            {"name": "alpha", "description": "A"},
            {"name": "beta", "description": "B"},
        ]

    async def test_delete_requires_password(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(InvalidPasswordError):
            await contexts.delete_context("my-docs", "wrong")

        await contexts.delete_context("my-docs", PASSWORD)
        assert await contexts.list_contexts() == []

    async def test_unknown_context(self, contexts):
        with pytest.raises(ContextNotFoundError):
            await contexts.list_files("nope", PASSWORD)


class TestFiles:
    """Test markdown uploads."""

    async def test_upload_and_overwrite(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        first = await contexts.upload_file("my-docs", "intro.md", "# Intro", PASSWORD, "Intro")
        second = await contexts.upload_file("my-docs", "intro.md", "# Intro v2", PASSWORD)

        assert first["wasOverwritten"] is False
        assert second["wasOverwritten"] is True
        files = await contexts.list_files("my-docs", PASSWORD)
        assert files == [{"name": "intro.md", "description": "Intro", "size": 1}]
        assert _index(contexts, "my-docs")["numberOfFiles"] == 1
        assert await contexts.get_file("my-docs", "intro.md", PASSWORD) == "# Intro v2"

    async def test_only_markdown(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(ValidationError):
            await contexts.upload_file("my-docs", "notes.txt", "text", PASSWORD)

    async def test_size_cap(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(ValidationError):
            await contexts.upload_file("my-docs", "big.md", "x" * 4096, PASSWORD)

    async def test_upload_requires_password(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(InvalidPasswordError):
            await contexts.upload_file("my-docs", "intro.md", "# Intro", "wrong")

    async def test_delete_file_updates_index(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)
        await contexts.upload_file("my-docs", "a.md", "A", PASSWORD)
        await contexts.upload_file("my-docs", "b.md", "B", PASSWORD)

        await contexts.delete_file("my-docs", "a.md", PASSWORD)

        index = _index(contexts, "my-docs")
        assert [f["name"] for f in index["files"]] == ["b.md"]
        assert index["numberOfFiles"] == 1
        assert index["totalSize"] == 1
        with pytest.raises(ContextFileNotFoundError):
            await contexts.get_file("my-docs", "a.md", PASSWORD)


class TestLinks:
    """Test link management."""

    async def test_add_list_delete(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        link = await contexts.add_link("my-docs", PASSWORD, "https://example.com", "Example")

        assert link["url"] == "https://example.com"
        assert link["addedAt"]
        assert [l["url"] for l in await contexts.list_links("my-docs", PASSWORD)] == ["https://example.com"]

        await contexts.delete_link("my-docs", "https://example.com", PASSWORD)
        assert await contexts.list_links("my-docs", PASSWORD) == []

    async def test_re_adding_replaces(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)
        await contexts.add_link("my-docs", PASSWORD, "https://example.com", "Old")
        await contexts.add_link("my-docs", PASSWORD, "https://example.com", "New")

        links = await contexts.list_links("my-docs", PASSWORD)
        assert [l["title"] for l in links] == ["New"]

    async def test_rejects_non_http(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(ValidationError):
            await contexts.add_link("my-docs", PASSWORD, "ftp://example.com")

    async def test_delete_unknown_link(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)

        with pytest.raises(NotFoundError):
            await contexts.delete_link("my-docs", "https://example.com", PASSWORD)


class TestQueryLogAndText:
    """Test the query log and the injected text."""

    async def test_record_and_count_queries(self, contexts):
        await contexts.create_context("rukh", PASSWORD)

        await contexts.record_query("rukh", WALLET, ["a.md"])
        await contexts.record_query("rukh", WALLET.lower(), [])
        await contexts.record_query("rukh", "anonymous", [])

        assert await contexts.count_queries("rukh", WALLET) == 2
        assert await contexts.count_queries("rukh", "anonymous") == 1
        assert _index(contexts, "rukh")["queries"][0]["contextFilesUsed"] == ["a.md"]

    async def test_record_query_on_missing_context_is_cosmetic(self, contexts):
        outcome = await contexts.record_query("nope", WALLET, [])

        assert not outcome.ok
        assert outcome.severity is Severity.COSMETIC
        assert await contexts.count_queries("nope", WALLET) == 0

    async def test_load_context_text(self, contexts):
        await contexts.create_context("my-docs", PASSWORD)
        await contexts.upload_file("my-docs", "a.md", "Alpha", PASSWORD)
        await contexts.upload_file("my-docs", "b.md", "Beta", PASSWORD)
        await contexts.add_link("my-docs", PASSWORD, "https://example.com", "Example")

        loaded = await contexts.load_context_text("my-docs")

        assert loaded["files"] == ["a.md", "b.md"]
        assert loaded["text"] == (
            "## a.md\n\nAlpha\n\n## b.md\n\nBeta\n\n## Links\n\n- Example: https://example.com"
        )

    async def test_empty_or_missing_context_has_no_text(self, contexts):
        await contexts.create_context("empty", PASSWORD)

        assert await contexts.load_context_text("empty") is None
        assert await contexts.load_context_text("missing") is None

    @pytest.mark.parametrize("name", ["General", "../etc", "my docs"])
    async def test_malformed_names_are_not_found_on_lookup(self, contexts, name):
        """Lookups from the ask flow treat a malformed name as a missing context."""
        assert await contexts.load_context_text(name) is None
        assert await contexts.count_queries(name, WALLET) == 0
        outcome = await contexts.record_query(name, WALLET, [])
        assert outcome.severity is Severity.COSMETIC

        with pytest.raises(ValidationError):
            await contexts.list_files(name, PASSWORD)
