# networth/services/market_data/cache_store.py
"""
Key/value stores backing the price cache.

Two implementations of the CacheStore protocol:

- MemoryCacheStore: process-local, least-recently-used eviction once the
  stored values exceed a byte budget.
- SqlCacheStore: SQLAlchemy table (cache_entries) so prices fetched today
  survive restarts; evicts the oldest rows when over budget.

Both are last-write-wins with no locking. Values are opaque strings (the
price cache stores JSON). SQL failures on read are logged and reported as a
miss so a broken cache degrades to live fetching instead of failing a
valuation.

Usage:
    store = MemoryCacheStore(capacity_bytes=5 * 1024 * 1024)
    store.set("price:AAPL:2024-03-15", payload)
    store.get("price:AAPL:2024-03-15")
"""

import logging
from collections import OrderedDict

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from networth.database import create_session_factory
from networth.models import CacheEntry
from networth.services.exceptions import CacheStoreError

logger = logging.getLogger(__name__)


def _size_of(value: str) -> int:
    return len(value.encode("utf-8"))


# =============================================================================
# IN-MEMORY STORE
# =============================================================================

class MemoryCacheStore:
    """
    Process-local store with a byte budget.

    Reads refresh recency; writes evict least recently used entries until
    the total size fits. A value larger than the whole budget is dropped.
    """

    def __init__(self, capacity_bytes: int) -> None:
        if capacity_bytes <= 0:
            raise CacheStoreError(f"capacity_bytes must be positive, got {capacity_bytes}")
        self._capacity = capacity_bytes
        self._entries: OrderedDict[str, str] = OrderedDict()
        self._size = 0

    @property
    def size_bytes(self) -> int:
        return self._size

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> str | None:
        value = self._entries.get(key)
        if value is not None:
            self._entries.move_to_end(key)
        return value

    def has(self, key: str) -> bool:
        return key in self._entries

    def set(self, key: str, value: str) -> None:
        size = _size_of(value)
        if size > self._capacity:
            logger.warning(
                f"Cache value for {key} ({size} bytes) exceeds capacity "
                f"({self._capacity} bytes), not stored"
            )
            return

        self.remove(key)
        self._entries[key] = value
        self._size += size

        while self._size > self._capacity:
            evicted_key, evicted = self._entries.popitem(last=False)
            self._size -= _size_of(evicted)
            logger.debug(f"Evicted {evicted_key} from memory cache")

    def remove(self, key: str) -> None:
        value = self._entries.pop(key, None)
        if value is not None:
            self._size -= _size_of(value)

    def clear(self) -> None:
        self._entries.clear()
        self._size = 0


# =============================================================================
# SQL STORE
# =============================================================================

class SqlCacheStore:
    """
    SQLAlchemy-backed store using the cache_entries table.

    Each operation runs in its own short session. Eviction deletes rows in
    updated_at order until the summed size_bytes fits the budget.
    """

    def __init__(self, engine: Engine, capacity_bytes: int) -> None:
        if capacity_bytes <= 0:
            raise CacheStoreError(f"capacity_bytes must be positive, got {capacity_bytes}")
        self._capacity = capacity_bytes
        self._session_factory = create_session_factory(engine)

    def get(self, key: str) -> str | None:
        try:
            with self._session_factory() as session:
                entry = session.get(CacheEntry, key)
                return entry.value if entry is not None else None
        except SQLAlchemyError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def set(self, key: str, value: str) -> None:
        size = _size_of(value)
        if size > self._capacity:
            logger.warning(
                f"Cache value for {key} ({size} bytes) exceeds capacity "
                f"({self._capacity} bytes), not stored"
            )
            return

        try:
            with self._session_factory() as session:
                session.merge(CacheEntry(key=key, value=value, size_bytes=size))
                session.flush()
                self._evict(session, keep=key)
                session.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _evict(self, session, keep: str) -> None:
        total = session.scalar(select(func.coalesce(func.sum(CacheEntry.size_bytes), 0)))
        if total <= self._capacity:
            return

        rows = session.execute(
            select(CacheEntry.key, CacheEntry.size_bytes)
            .where(CacheEntry.key != keep)
            .order_by(CacheEntry.updated_at)
        ).all()

        to_delete = []
        for row_key, row_size in rows:
            if total <= self._capacity:
                break
            to_delete.append(row_key)
            total -= row_size

        session.execute(delete(CacheEntry).where(CacheEntry.key.in_(to_delete)))
        logger.debug(f"Evicted {len(to_delete)} entries from SQL cache")

    def remove(self, key: str) -> None:
        try:
            with self._session_factory() as session:
                session.execute(delete(CacheEntry).where(CacheEntry.key == key))
                session.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    def clear(self) -> None:
        with self._session_factory() as session:
            session.execute(delete(CacheEntry))
            session.commit()
