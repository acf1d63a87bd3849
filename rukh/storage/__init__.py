"""
Storage package - JSON document persistence.

Every backing file is owned by one JsonStore whose lock serializes
read-modify-write cycles, so concurrent requests cannot lose updates.
"""
from rukh.storage.json_store import JsonStore, StoreCorruptError

__all__ = [
    "JsonStore",
    "StoreCorruptError",
]
