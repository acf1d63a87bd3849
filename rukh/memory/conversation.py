"""
Conversation Memory - Session-scoped message log backed by one JSON file.

This module provides:
- Message: one immutable entry of a conversation
- SessionStore: append-only log of messages keyed by session id

All sessions share a single document ({"messages": [...]}) so an append
rewrites the whole log; the JsonStore lock serializes those rewrites.
A session exists implicitly once it has a message. There is no removal:
clearing a conversation appends two empty messages.
"""
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Literal

from rukh.core.logging_config import get_logger
from rukh.core.outcomes import Outcome
from rukh.storage.json_store import JsonStore

logger = get_logger(__name__)

CHAT_HISTORY_FILE = "chat-history.json"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _empty_log() -> Dict[str, Any]:
    return {"messages": []}


@dataclass(frozen=True)
class Message:
    """
    Represents a single message in a conversation.

    Attributes:
        role: user or assistant
        content: The message text
        timestamp: Milliseconds since the epoch
        session_id: Conversation the message belongs to
    """
    role: Literal["user", "assistant"]
    content: str
    timestamp: int
    session_id: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dict format for LLM APIs (role + content only)."""
        return {"role": self.role, "content": self.content}

    def to_record(self) -> Dict[str, Any]:
        """On-disk shape."""
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Message":
        return cls(
            role="user" if record.get("role") == "user" else "assistant",
            content=str(record.get("content", "")),
            timestamp=int(record.get("timestamp", 0)),
            session_id=str(record.get("sessionId", "")),
        )


def _messages_of(document: Any) -> List[Dict[str, Any]]:
    if not isinstance(document, dict):
        return []
    messages = document.get("messages")
    return messages if isinstance(messages, list) else []


def _coerce_log(document: Any) -> Dict[str, Any]:
    if isinstance(document, dict) and isinstance(document.get("messages"), list):
        return document
    return {"messages": _messages_of(document)}


class SessionStore:
    """
    Append-only conversation log.

    Example:
        >>> store = SessionStore.in_directory(Path("data"))
        >>> await store.load("a0eebc99-...")
        []
        >>> await store.append("a0eebc99-...", "Hello", "Hi there")
        >>> [m.content for m in await store.load("a0eebc99-...")]
        ['Hello', 'Hi there']
    """

    def __init__(self, store: JsonStore):
        self.store = store

    @classmethod
    def in_directory(cls, data_dir: Path) -> "SessionStore":
        return cls(JsonStore(Path(data_dir) / CHAT_HISTORY_FILE))

    async def load(self, session_id: str) -> List[Message]:
        """
        Get a session's messages in insertion order.

        An unknown session, or an unreadable log, yields an empty list.
        Reading never creates the backing file.
        """
        document = await self.store.read(_empty_log)
        return [
            Message.from_record(record)
            for record in _messages_of(document)
            if isinstance(record, dict) and record.get("sessionId") == session_id
        ]

    async def is_first_message(self, session_id: str) -> bool:
        return not await self.load(session_id)

    async def append(self, session_id: str, user_text: str, assistant_text: str) -> Outcome:
        """
        Append one exchange (user then assistant) to the log.

        Returns:
            Outcome of the write; failures are logged, never raised
        """
        timestamp = _now_ms()
        exchange = [
            Message("user", user_text, timestamp, session_id).to_record(),
            Message("assistant", assistant_text, timestamp, session_id).to_record(),
        ]

        def _append(document: Dict[str, Any]) -> None:
            document["messages"].extend(exchange)

        try:
            await self.store.update(_append, default_factory=_empty_log, coerce=_coerce_log)
        except Exception as e:
            logger.error(f"Failed to persist exchange for session {session_id}: {e}")
            return Outcome.failure("session_append", str(e))

        logger.debug(f"Persisted exchange for session {session_id}")
        return Outcome.success("session_append")

    async def clear(self, session_id: str) -> bool:
        """
        Make a conversation look blank by appending two empty messages.

        Returns:
            True if the session had history, False otherwise
        """
        if not await self.load(session_id):
            return False
        outcome = await self.append(session_id, "", "")
        return outcome.ok
