# utils/memory.py
from __future__ import annotations

import logging
from typing import Any

from food_assistant.schemas import MemoryKind, UserMemory
from food_assistant.utils.db import Store, StoreError

log = logging.getLogger(__name__)

USER_MEMORY = "user_memory"


def _kind(kind: MemoryKind | str) -> str:
    return kind.value if isinstance(kind, MemoryKind) else str(kind)


class MemoryStore:
    """Per-user key/value memory, partitioned by kind. One row per (user, kind, key)."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def get(self, user_id: str) -> UserMemory:
        try:
            rows = self.store.select(USER_MEMORY, [("user_id", "eq", user_id)])
        except StoreError as e:
            log.warning("[Memory] read failed for %s: %s", user_id, e)
            return UserMemory(user_id=user_id)
        entries: dict = {}
        for row in rows:
            entries.setdefault(row["memory_type"], {})[row["memory_key"]] = row.get("memory_value")
        return UserMemory(user_id=user_id, entries=entries)

    def set(self, user_id: str, kind: MemoryKind | str, key: str, value: Any) -> None:
        self.store.upsert(
            USER_MEMORY,
            {"user_id": user_id, "memory_type": _kind(kind), "memory_key": key, "memory_value": value},
            on_conflict=("user_id", "memory_type", "memory_key"),
        )

    def clear(self, user_id: str, kind: MemoryKind | str) -> int:
        return self.store.delete(USER_MEMORY, [("user_id", "eq", user_id), ("memory_type", "eq", _kind(kind))])
