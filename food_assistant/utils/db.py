# utils/db.py
"""
Data-access capability used by every agent.

Rows are JSON-able dicts keyed by ``id``. Predicates are ``(field, op, value)``
tuples; ops: eq, neq, contains (case-insensitive substring, or membership for
list fields), lt, lte, gt, gte, in. A store is always passed in explicitly,
there is no module-level client.
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import redis

from food_assistant.utils.config import REDIS_URL, STORE_PREFIX

log = logging.getLogger(__name__)

Where = Sequence[Tuple[str, str, Any]]


class StoreError(RuntimeError):
    """The backing store could not be reached or refused the operation."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _contains(actual: Any, needle: Any) -> bool:
    if actual is None:
        return False
    if isinstance(actual, (list, tuple, set)):
        n = str(needle).lower()
        return any(n in str(a).lower() for a in actual)
    return str(needle).lower() in str(actual).lower()


def _compare(op: str, actual: Any, value: Any) -> bool:
    if op == "eq":
        return actual == value
    if op == "neq":
        return actual != value
    if op == "contains":
        return _contains(actual, value)
    if op == "in":
        return actual in value
    if actual is None:
        # SQL-style: NULL never satisfies a range predicate
        return False
    if op == "lt":
        return actual < value
    if op == "lte":
        return actual <= value
    if op == "gt":
        return actual > value
    if op == "gte":
        return actual >= value
    raise ValueError(f"unknown predicate op: {op}")


def matches(row: Dict[str, Any], where: Where = ()) -> bool:
    return all(_compare(op, row.get(field), value) for field, op, value in where)


def apply_query(
    rows: Iterable[Dict[str, Any]],
    where: Where = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    out = [dict(r) for r in rows if matches(r, where)]
    if order_by:
        present = [r for r in out if r.get(order_by) is not None]
        missing = [r for r in out if r.get(order_by) is None]
        present.sort(key=lambda r: r[order_by], reverse=descending)
        out = present + missing
    if limit is not None:
        out = out[:limit]
    return out


class Store(ABC):
    """Read/query/insert/update/delete over named tables."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock

    def _stamp(self, row: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._clock().isoformat())
        return row

    @abstractmethod
    def select(self, table: str, where: Where = (), order_by: Optional[str] = None,
               descending: bool = False, limit: Optional[int] = None) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]: ...

    def insert_many(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self.insert(table, r) for r in rows]

    @abstractmethod
    def update(self, table: str, row_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def delete(self, table: str, where: Where) -> int: ...

    @abstractmethod
    def upsert(self, table: str, row: Dict[str, Any], on_conflict: Sequence[str]) -> Dict[str, Any]: ...

    @abstractmethod
    def increment(self, table: str, row_id: str, field: str, delta: int) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def ping(self) -> bool: ...

    def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        rows = self.select(table, [("id", "eq", row_id)], limit=1)
        return rows[0] if rows else None


class InMemoryStore(Store):
    """Process-local store; used by tests and the demo seed script."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        super().__init__(clock)
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self._tables.setdefault(table, {})

    def select(self, table, where=(), order_by=None, descending=False, limit=None):
        with self._lock:
            rows = list(self._table(table).values())
        return apply_query(rows, where, order_by, descending, limit)

    def insert(self, table, row):
        row = self._stamp(row)
        with self._lock:
            self._table(table)[row["id"]] = row
        return dict(row)

    def update(self, table, row_id, changes):
        with self._lock:
            row = self._table(table).get(row_id)
            if row is None:
                return None
            row.update(changes)
            row["updated_at"] = self._clock().isoformat()
            return dict(row)

    def delete(self, table, where):
        with self._lock:
            rows = self._table(table)
            doomed = [rid for rid, r in rows.items() if matches(r, where)]
            for rid in doomed:
                del rows[rid]
        return len(doomed)

    def upsert(self, table, row, on_conflict):
        where = [(k, "eq", row.get(k)) for k in on_conflict]
        with self._lock:
            rows = self._table(table)
            existing = next((r for r in rows.values() if matches(r, where)), None)
            if existing is not None:
                existing.update({k: v for k, v in row.items() if k != "id"})
                existing["updated_at"] = self._clock().isoformat()
                return dict(existing)
            new = self._stamp(row)
            rows[new["id"]] = new
            return dict(new)

    def increment(self, table, row_id, field, delta):
        with self._lock:
            row = self._table(table).get(row_id)
            if row is None:
                return None
            row[field] = int(row.get(field) or 0) + delta
            row["updated_at"] = self._clock().isoformat()
            return dict(row)

    def ping(self):
        return True


class RedisStore(Store):
    """One Redis hash per table: ``{prefix}:{table}`` -> id -> JSON row."""

    def __init__(self, client: Optional[redis.Redis] = None, url: str = REDIS_URL,
                 prefix: str = STORE_PREFIX, clock: Callable[[], datetime] = utcnow) -> None:
        super().__init__(clock)
        self._redis = client or redis.Redis.from_url(url, decode_responses=True)
        self._prefix = prefix

    def _key(self, table: str) -> str:
        return f"{self._prefix}:{table}"

    @staticmethod
    def _load(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, (bytes, bytearray, memoryview)):
            raw = bytes(raw).decode("utf-8")
        return json.loads(raw)

    def _all(self, table: str) -> List[Dict[str, Any]]:
        rows = [self._load(v) for v in self._redis.hvals(self._key(table))]
        # hash field order is not stable once Redis converts the encoding
        rows.sort(key=lambda r: (r.get("created_at") or "", r.get("id") or ""))
        return rows

    def select(self, table, where=(), order_by=None, descending=False, limit=None):
        try:
            return apply_query(self._all(table), where, order_by, descending, limit)
        except redis.RedisError as e:
            log.error("[DB Error] select %s failed: %s", table, e)
            raise StoreError(str(e)) from e

    def insert(self, table, row):
        row = self._stamp(row)
        try:
            self._redis.hset(self._key(table), row["id"], json.dumps(row, default=str))
        except redis.RedisError as e:
            log.error("[DB Error] insert into %s failed: %s", table, e)
            raise StoreError(str(e)) from e
        return row

    def _mutate(self, table: str, fn: Callable[[Any], Any]) -> Any:
        """Run ``fn(pipe)`` inside WATCH/MULTI on the table hash; retried by redis-py on conflict."""
        try:
            return self._redis.transaction(fn, self._key(table), value_from_callable=True)
        except redis.RedisError as e:
            log.error("[DB Error] write to %s failed: %s", table, e)
            raise StoreError(str(e)) from e

    def update(self, table, row_id, changes):
        key = self._key(table)

        def _tx(pipe):
            raw = pipe.hget(key, row_id)
            if raw is None:
                return None
            row = self._load(raw)
            row.update(changes)
            row["updated_at"] = self._clock().isoformat()
            pipe.multi()
            pipe.hset(key, row_id, json.dumps(row, default=str))
            return row

        return self._mutate(table, _tx)

    def delete(self, table, where):
        key = self._key(table)

        def _tx(pipe):
            doomed = [r["id"] for r in (self._load(v) for v in pipe.hvals(key)) if matches(r, where)]
            pipe.multi()
            if doomed:
                pipe.hdel(key, *doomed)
            return len(doomed)

        return self._mutate(table, _tx)

    def upsert(self, table, row, on_conflict):
        key = self._key(table)
        where = [(k, "eq", row.get(k)) for k in on_conflict]

        def _tx(pipe):
            existing = next((r for r in (self._load(v) for v in pipe.hvals(key)) if matches(r, where)), None)
            if existing is not None:
                existing.update({k: v for k, v in row.items() if k != "id"})
                existing["updated_at"] = self._clock().isoformat()
                out = existing
            else:
                out = self._stamp(row)
            pipe.multi()
            pipe.hset(key, out["id"], json.dumps(out, default=str))
            return out

        return self._mutate(table, _tx)

    def increment(self, table, row_id, field, delta):
        key = self._key(table)

        def _tx(pipe):
            raw = pipe.hget(key, row_id)
            if raw is None:
                return None
            row = self._load(raw)
            row[field] = int(row.get(field) or 0) + delta
            row["updated_at"] = self._clock().isoformat()
            pipe.multi()
            pipe.hset(key, row_id, json.dumps(row, default=str))
            return row

        return self._mutate(table, _tx)

    def ping(self):
        try:
            return bool(self._redis.ping())
        except redis.RedisError:
            return False
