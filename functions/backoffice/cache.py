"""
Two-tier local cache used to avoid re-downloading large collections.

The durable tier survives restarts (SQLAlchemy table or Redis); the volatile
tier lives for the process/session only. Entries carry the time they were
written and freshness is decided per call by the caller.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions
from sqlalchemy import JSON, Column, Float, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from backoffice.errors import CacheError

logger = logging.getLogger(__name__)

DURABLE = "durable"
VOLATILE = "volatile"


@dataclass
class CacheEntry:
    data: Any
    timestamp: float = field(default_factory=time.time)

    def age(self, now: float) -> float:
        return now - self.timestamp

    def as_dict(self) -> dict:
        return {"data": self.data, "timestamp": self.timestamp}


class CacheStore(Protocol):
    """Key/value store holding whole cache entries."""

    def get(self, key: str) -> Optional[CacheEntry]:
        ...

    def set(self, key: str, entry: CacheEntry) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryCacheStore:
    """Volatile per-process cache; also the test double for the durable tier."""

    entries: Dict[str, CacheEntry] = field(default_factory=dict)

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        # Hand out a copy so callers cannot mutate the cached payload in place.
        return CacheEntry(data=json.loads(json.dumps(entry.data)), timestamp=entry.timestamp)

    def set(self, key: str, entry: CacheEntry) -> None:
        self.entries[key] = CacheEntry(
            data=json.loads(json.dumps(entry.data)), timestamp=entry.timestamp
        )

    def delete(self, key: str) -> None:
        self.entries.pop(key, None)

    def clear(self) -> None:
        self.entries.clear()


Base = declarative_base()


class CacheRow(Base):
    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)
    data = Column(JSON, nullable=True)
    timestamp = Column(Float, nullable=False)


class SqlCacheStore:
    """
    Durable cache in a SQL table. Accepts any SQLAlchemy URL; SQLite files
    are the default so the cache survives restarts on a single host.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("A database URL is required for SqlCacheStore")
        connect_args = (
            {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        )
        self.engine = create_engine(
            database_url, future=True, pool_pre_ping=True, connect_args=connect_args
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            with self.Session() as session:
                row = session.get(CacheRow, key)
                if not row:
                    return None
                return CacheEntry(data=row.data, timestamp=row.timestamp)
        except SQLAlchemyError as e:
            raise CacheError(f"Cache read failed for {key}: {e}") from e

    def set(self, key: str, entry: CacheEntry) -> None:
        try:
            with self.Session() as session:
                row = session.get(CacheRow, key)
                if row:
                    row.data = entry.data
                    row.timestamp = entry.timestamp
                else:
                    session.add(
                        CacheRow(key=key, data=entry.data, timestamp=entry.timestamp)
                    )
                session.commit()
        except SQLAlchemyError as e:
            raise CacheError(f"Cache write failed for {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self.Session() as session:
                row = session.get(CacheRow, key)
                if row:
                    session.delete(row)
                    session.commit()
        except SQLAlchemyError as e:
            raise CacheError(f"Cache delete failed for {key}: {e}") from e


@dataclass
class RedisCacheStore:
    """Durable cache holding JSON-encoded entries under a key prefix."""

    url: str
    prefix: str = "backoffice:cache:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = self.client.get(self.prefix + key)
        except redis_exceptions.RedisError as e:
            raise CacheError(f"Cache read failed for {key}: {e}") from e
        if raw is None:
            return None
        payload = json.loads(raw)
        return CacheEntry(data=payload.get("data"), timestamp=payload.get("timestamp", 0.0))

    def set(self, key: str, entry: CacheEntry) -> None:
        try:
            self.client.set(self.prefix + key, json.dumps(entry.as_dict()))
        except redis_exceptions.RedisError as e:
            raise CacheError(f"Cache write failed for {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self.prefix + key)
        except redis_exceptions.RedisError as e:
            raise CacheError(f"Cache delete failed for {key}: {e}") from e


class CacheService:
    """
    Read-through/write-through helper shared by the controllers.

    A cache failure is logged and treated as a miss (on read) or skipped (on
    write); it never fails the operation that asked for the data.
    """

    def __init__(
        self,
        durable: CacheStore,
        volatile: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.tiers: Dict[str, CacheStore] = {
            DURABLE: durable,
            VOLATILE: volatile if volatile is not None else InMemoryCacheStore(),
        }
        self.clock = clock

    def _tier(self, tier: str) -> CacheStore:
        try:
            return self.tiers[tier]
        except KeyError:
            raise ValueError(f"Unknown cache tier: {tier}") from None

    def get(self, key: str, *, tier: str = DURABLE) -> Optional[CacheEntry]:
        try:
            return self._tier(tier).get(key)
        except CacheError as e:
            logger.warning("Cache read failed, falling back to network: %s", e)
            return None

    def store(self, key: str, data: Any, *, tier: str = DURABLE) -> CacheEntry:
        entry = CacheEntry(data=data, timestamp=self.clock())
        try:
            self._tier(tier).set(key, entry)
        except CacheError as e:
            logger.warning("Cache write failed (will simply not cache): %s", e)
        return entry

    def invalidate(self, key: str, *, tier: str = DURABLE) -> None:
        try:
            self._tier(tier).delete(key)
        except CacheError as e:
            logger.warning("Cache delete failed: %s", e)

    def is_fresh(self, entry: Optional[CacheEntry], max_age: Optional[float]) -> bool:
        if entry is None:
            return False
        if max_age is None:
            return True
        return entry.age(self.clock()) < max_age

    def load(
        self,
        key: str,
        fetch: Callable[[], Any],
        *,
        max_age: Optional[float] = None,
        force: bool = False,
        tier: str = DURABLE,
    ) -> CacheEntry:
        """
        Return the cached entry for key, or call fetch() and cache its result.

        max_age is in seconds; None keeps an entry fresh until a forced
        reload. Errors raised by fetch propagate and leave the cache as is.
        """
        if not force:
            entry = self.get(key, tier=tier)
            if self.is_fresh(entry, max_age):
                return entry
        data = fetch()
        return self.store(key, data, tier=tier)

    def patch_item(
        self,
        key: str,
        item_key: str,
        fields: Dict[str, Any],
        *,
        tier: str = DURABLE,
    ) -> bool:
        """
        Merge fields into one record of a cached key->record mapping.

        Returns False (and writes nothing) when the key or record is absent.
        """
        entry = self.get(key, tier=tier)
        if entry is None or not isinstance(entry.data, dict):
            return False
        record = entry.data.get(item_key)
        if not isinstance(record, dict):
            return False
        entry.data[item_key] = {**record, **fields}
        self.store(key, entry.data, tier=tier)
        return True
