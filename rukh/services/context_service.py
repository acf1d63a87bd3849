"""
Context Service - Password-protected bundles of markdown reference text.

On-disk layout, one directory per context:

    data/contexts/<name>/index.json   metadata, file list, links, query log
    data/contexts/<name>/<file>.md    uploaded documents

Every mutating operation except record_query requires the context's
password. record_query is a usage log the access gate counts against;
its failures are cosmetic.
"""
import asyncio
import hmac
import math
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from rukh.core.exceptions import (
    ConflictError,
    ContextFileNotFoundError,
    ContextNotFoundError,
    InvalidPasswordError,
    NotFoundError,
    ValidationError,
)
from rukh.core.logging_config import LoggerMixin
from rukh.core.outcomes import Outcome, Severity
from rukh.core.validators import validate_context_name, validate_markdown_upload
from rukh.storage.json_store import JsonStore

INDEX_FILE = "index.json"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _size_kb(content: str) -> int:
    return math.ceil(len(content.encode("utf-8")) / 1024)


class ContextService(LoggerMixin):
    """
    CRUD over context directories plus the text blob the orchestrator injects.

    Index stores are created once per context and cached, so every writer
    of a given index.json shares the same lock.
    """

    def __init__(self, contexts_dir: Path, max_file_bytes: int = 1024 * 1024):
        self.contexts_dir = Path(contexts_dir)
        self.max_file_bytes = max_file_bytes
        self._indexes: Dict[str, JsonStore] = {}

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _context_path(self, name: str) -> Path:
        ok, error = validate_context_name(name)
        if not ok:
            raise ValidationError(error, field="name")
        return self.contexts_dir / name

    def _file_path(self, name: str, file_name: str) -> Path:
        if not file_name or "/" in file_name or "\\" in file_name or file_name.startswith("."):
            raise ValidationError("Invalid file name", field="fileName")
        return self._context_path(name) / file_name

    def _index(self, name: str) -> JsonStore:
        store = self._indexes.get(name)
        if store is None:
            store = JsonStore(self._context_path(name) / INDEX_FILE)
            self._indexes[name] = store
        return store

    async def _read_index(self, name: str) -> Optional[Dict[str, Any]]:
        store = self._index(name)
        if not store.exists():
            return None
        index = await store.read(lambda: None)
        return index if isinstance(index, dict) else None

    async def _find_index(self, name: str) -> Optional[Dict[str, Any]]:
        """Like _read_index, but a malformed name is simply not found."""
        ok, _ = validate_context_name(name)
        if not ok:
            return None
        return await self._read_index(name)

    async def _require_index(self, name: str, password: str) -> Dict[str, Any]:
        index = await self._read_index(name)
        if index is None:
            raise ContextNotFoundError(name)
        stored = str(index.get("password", ""))
        if not hmac.compare_digest(stored.encode("utf-8"), (password or "").encode("utf-8")):
            self.logger.warning(f"Invalid password for context: {name}")
            raise InvalidPasswordError(name)
        return index

    # =========================================================================
    # Contexts
    # =========================================================================

    async def create_context(self, name: str, password: str, description: str = "") -> str:
        """
        Create an empty context.

        Returns:
            Path of the new context directory

        Raises:
            ValidationError: Bad name or empty password
            ConflictError: A context with this name exists
        """
        path = self._context_path(name)
        if not password:
            raise ValidationError("Password is required", field="password")
        if path.exists():
            raise ConflictError(f"Context '{name}' already exists", details=f"context={name}")

        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=False)
        await self._index(name).write({
            "name": name,
            "password": password,
            "description": description,
            "numberOfFiles": 0,
            "totalSize": 0,
            "files": [],
            "links": [],
            "queries": [],
        })

        self.logger.info(f"Created new context: {name}")
        return str(path)

    async def delete_context(self, name: str, password: str) -> None:
        await self._require_index(name, password)
        await asyncio.to_thread(shutil.rmtree, self._context_path(name))
        self._indexes.pop(name, None)
        self.logger.info(f"Deleted context: {name}")

    async def list_contexts(self) -> List[Dict[str, str]]:
        """Name and description of every readable context."""
        if not self.contexts_dir.exists():
            return []

        entries = await asyncio.to_thread(
            lambda: sorted(p.name for p in self.contexts_dir.iterdir() if p.is_dir())
        )
        contexts = []
        for entry in entries:
            ok, _ = validate_context_name(entry)
            if not ok:
                continue
            index = await self._read_index(entry)
            if index is not None:
                contexts.append({"name": entry, "description": index.get("description", "")})
        return contexts

    # =========================================================================
    # Files
    # =========================================================================

    async def upload_file(
        self,
        name: str,
        file_name: str,
        content: str,
        password: str,
        description: str = "",
    ) -> Dict[str, Any]:
        """
        Write a markdown file into a context and update its index.

        Returns:
            {"path": ..., "wasOverwritten": bool}
        """
        await self._require_index(name, password)

        size_bytes = len(content.encode("utf-8"))
        ok, error = validate_markdown_upload(file_name, size_bytes, self.max_file_bytes)
        if not ok:
            raise ValidationError(error, field="file")

        path = self._file_path(name, file_name)
        was_overwritten = path.exists()
        await asyncio.to_thread(path.write_text, content, encoding="utf-8")
        size_kb = _size_kb(content)

        def _register(index: Dict[str, Any]) -> None:
            files = index.setdefault("files", [])
            for i, entry in enumerate(files):
                if entry.get("name") == file_name:
                    index["totalSize"] = index.get("totalSize", 0) - entry.get("size", 0) + size_kb
                    files[i] = {
                        "name": file_name,
                        "description": description or entry.get("description", ""),
                        "size": size_kb,
                    }
                    return
            files.append({"name": file_name, "description": description, "size": size_kb})
            index["numberOfFiles"] = index.get("numberOfFiles", 0) + 1
            index["totalSize"] = index.get("totalSize", 0) + size_kb

        await self._index(name).update(_register, default_factory=dict)

        self.logger.info(
            f"{'Updated' if was_overwritten else 'Added'} file {file_name} in context: {name}"
        )
        return {"path": str(path), "wasOverwritten": was_overwritten}

    async def list_files(self, name: str, password: str) -> List[Dict[str, Any]]:
        index = await self._require_index(name, password)
        return list(index.get("files", []))

    async def get_file(self, name: str, file_name: str, password: str) -> str:
        await self._require_index(name, password)
        path = self._file_path(name, file_name)
        if not path.exists():
            raise ContextFileNotFoundError(name, file_name)
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def delete_file(self, name: str, file_name: str, password: str) -> None:
        await self._require_index(name, password)
        path = self._file_path(name, file_name)
        if not path.exists():
            raise ContextFileNotFoundError(name, file_name)

        await asyncio.to_thread(path.unlink)

        def _unregister(index: Dict[str, Any]) -> None:
            files = index.get("files", [])
            removed = [f for f in files if f.get("name") == file_name]
            index["files"] = [f for f in files if f.get("name") != file_name]
            if removed:
                index["numberOfFiles"] = max(0, index.get("numberOfFiles", 0) - 1)
                index["totalSize"] = max(0, index.get("totalSize", 0) - removed[0].get("size", 0))

        await self._index(name).update(_unregister, default_factory=dict)
        self.logger.info(f"Deleted file {file_name} from context: {name}")

    # =========================================================================
    # Links
    # =========================================================================

    async def add_link(
        self,
        name: str,
        password: str,
        url: str,
        title: str = "",
        description: str = "",
    ) -> Dict[str, str]:
        await self._require_index(name, password)
        if not url or not url.startswith(("http://", "https://")):
            raise ValidationError("Link must be an http(s) URL", field="url")

        link = {"url": url, "title": title, "description": description, "addedAt": _utc_now()}

        def _add(index: Dict[str, Any]) -> Dict[str, str]:
            links = [l for l in index.get("links", []) if l.get("url") != url]
            links.append(link)
            index["links"] = links
            return link

        await self._index(name).update(_add, default_factory=dict)
        self.logger.info(f"Added link {url} to context: {name}")
        return link

    async def list_links(self, name: str, password: str) -> List[Dict[str, str]]:
        index = await self._require_index(name, password)
        return list(index.get("links", []))

    async def delete_link(self, name: str, url: str, password: str) -> None:
        index = await self._require_index(name, password)
        if not any(l.get("url") == url for l in index.get("links", [])):
            raise NotFoundError(f"Link '{url}' not found in context '{name}'")

        def _remove(index: Dict[str, Any]) -> None:
            index["links"] = [l for l in index.get("links", []) if l.get("url") != url]

        await self._index(name).update(_remove, default_factory=dict)
        self.logger.info(f"Deleted link {url} from context: {name}")

    # =========================================================================
    # Query log and injection text
    # =========================================================================

    async def record_query(self, name: str, origin: str, files_used: List[str]) -> Outcome:
        """Append a usage entry to the context's query log."""
        if await self._find_index(name) is None:
            self.logger.warning(f"Unable to record query: context {name} not found")
            return Outcome.failure("context_query_log", "context not found", Severity.COSMETIC)

        entry = {"timestamp": _utc_now(), "origin": origin, "contextFilesUsed": list(files_used)}

        def _append(index: Dict[str, Any]) -> None:
            index.setdefault("queries", []).append(entry)

        try:
            await self._index(name).update(_append, default_factory=dict)
        except Exception as e:
            self.logger.error(f"Failed to record query: {e}")
            return Outcome.failure("context_query_log", str(e), Severity.COSMETIC)

        self.logger.debug(f"Recorded query from {origin} in context: {name}")
        return Outcome.success("context_query_log")

    async def count_queries(self, name: str, origin: str) -> int:
        """Number of logged queries for `origin` (case-insensitive)."""
        index = await self._find_index(name)
        if index is None:
            return 0
        origin = origin.lower()
        return sum(
            1 for q in index.get("queries", [])
            if isinstance(q, dict) and str(q.get("origin", "")).lower() == origin
        )

    async def load_context_text(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Concatenate a context's documents for injection.

        Returns:
            {"text": ..., "files": [...]}, or None if the context does not
            exist or holds nothing
        """
        index = await self._find_index(name)
        if index is None:
            self.logger.warning(f"Context not found: {name}")
            return None

        sections = []
        files_used = []
        for entry in index.get("files", []):
            file_name = entry.get("name", "")
            try:
                path = self._file_path(name, file_name)
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except (ValidationError, OSError) as e:
                self.logger.warning(f"Skipping unreadable context file {file_name}: {e}")
                continue
            sections.append(f"## {file_name}\n\n{text}")
            files_used.append(file_name)

        links = index.get("links", [])
        if links:
            lines = [f"- {l.get('title') or l.get('url')}: {l.get('url')}" for l in links]
            sections.append("## Links\n\n" + "\n".join(lines))

        if not sections:
            return None
        return {"text": "\n\n".join(sections), "files": files_used}
