"""
JSON Store - Whole-document JSON persistence with serialized updates.

Each store wraps a single file. Reads treat a missing or unparsable file
as empty (the availability-over-durability policy of the chat path);
writes go through a temp file and an atomic rename so a crash never
leaves half a document behind.

File I/O runs in worker threads so the event loop keeps serving other
requests while a store is being read or written.
"""
import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from rukh.core.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class StoreCorruptError(Exception):
    """Raised by read_strict() when the file exists but is not valid JSON."""


class JsonStore:
    """
    Serialized access to one JSON document on disk.

    Example:
        >>> store = JsonStore(Path("data/chat-history.json"))
        >>> await store.update(lambda doc: doc["messages"].append(msg),
        ...                    default_factory=lambda: {"messages": []})
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    async def read(self, default_factory: Callable[[], T]) -> T:
        """
        Read the document, falling back to a fresh default.

        Never creates the file.
        """
        try:
            return await self.read_strict(default_factory)
        except (StoreCorruptError, OSError) as e:
            logger.warning(f"Treating unreadable store as empty: {self.path} ({e})")
            return default_factory()

    async def read_strict(self, default_factory: Callable[[], T]) -> T:
        """Read the document; a missing file yields the default, a corrupt one raises."""
        return await asyncio.to_thread(self._read_sync, default_factory)

    async def write(self, data: Any) -> None:
        """Overwrite the whole document."""
        async with self._lock:
            await asyncio.to_thread(self._write_sync, data)

    async def update(
        self,
        mutator: Callable[[Any], Optional[T]],
        default_factory: Callable[[], Any],
        coerce: Optional[Callable[[Any], Any]] = None,
    ) -> Optional[T]:
        """
        Read, mutate in place and write back under the store's lock.

        Args:
            mutator: Called with the loaded document; may return a value
            default_factory: Builds the document when the file is missing or corrupt
            coerce: Repairs a loaded document whose shape is unexpected

        Returns:
            Whatever the mutator returned
        """
        async with self._lock:
            try:
                document = await asyncio.to_thread(self._read_sync, default_factory)
            except StoreCorruptError as e:
                logger.warning(f"Rebuilding corrupt store: {self.path} ({e})")
                document = default_factory()
            if coerce is not None:
                document = coerce(document)
            result = mutator(document)
            await asyncio.to_thread(self._write_sync, document)
            return result

    def _read_sync(self, default_factory: Callable[[], T]) -> T:
        if not self.path.exists():
            return default_factory()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreCorruptError(str(e)) from e

    def _write_sync(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
