from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from papercapsule.domain.reading import now_ms
from papercapsule.errors import CacheQuotaExceeded
from papercapsule.infrastructure.stores.models import Base, CacheEntryModel
from papercapsule.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from papercapsule.utils.logging_config import LogFiles, Logger

_MINUTE_MS = 60 * 1000


class CacheTTL:
    """Per-operation cache lifetimes (ms). Callers choose; the store does not."""

    CATEGORY_FEED = 30 * _MINUTE_MS
    TRENDING = 60 * _MINUTE_MS
    SEARCH = 15 * _MINUTE_MS


@dataclass
class CacheEntry:
    payload: Any
    created_at: int
    ttl_ms: int

    def is_expired(self, now: int) -> bool:
        return now - self.created_at > self.ttl_ms


class CacheStore:
    """
    Expiring key/value cache with an in-memory mirror over a SQL table.

    Reads are served from memory only. Writes go to memory first, then to the
    ``cache_entries`` table; a failed durable write never reaches the caller.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        max_entries: Optional[int] = None,
        auto_create_schema: bool = True,
    ):
        self.db_url = db_url or get_db_url()
        self._clock = clock or now_ms
        self.max_entries = max_entries if max_entries and max_entries > 0 else None
        self._memory: Dict[str, CacheEntry] = {}
        self._provider = SessionProvider(self.db_url)
        try:
            if auto_create_schema:
                Base.metadata.create_all(self._provider.engine)
            self._load()
        except SQLAlchemyError as exc:
            Logger.warning(f"Cache durable layer unavailable, memory only: {exc}", file=LogFiles.CACHE)

    def _load(self) -> None:
        now = self._clock()
        dropped = 0
        with self._provider.session() as session:
            rows = session.execute(select(CacheEntryModel)).scalars().all()
            for row in rows:
                entry = CacheEntry(payload=None, created_at=int(row.created_at), ttl_ms=int(row.ttl_ms))
                if entry.is_expired(now):
                    session.delete(row)
                    dropped += 1
                    continue
                try:
                    entry.payload = json.loads(row.payload_json)
                except ValueError:
                    session.delete(row)
                    dropped += 1
                    continue
                self._memory[row.key] = entry
            session.commit()
        Logger.info(
            f"Cache loaded {len(self._memory)} entries, dropped {dropped}", file=LogFiles.CACHE
        )

    def get(self, key: str) -> Optional[Any]:
        entry = self._memory.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._memory.pop(key, None)
            return None
        return entry.payload

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        entry = CacheEntry(payload=value, created_at=self._clock(), ttl_ms=int(ttl_ms))
        self._memory[key] = entry

        try:
            payload_json = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            Logger.warning(f"Cache value for {key!r} is not serializable: {exc}", file=LogFiles.CACHE)
            return

        try:
            self._write(key, payload_json, entry)
            return
        except (SQLAlchemyError, CacheQuotaExceeded) as exc:
            Logger.warning(f"Cache write failed for {key!r}, evicting: {exc}", file=LogFiles.CACHE)

        self.evict_expired()
        try:
            self._write(key, payload_json, entry)
        except (SQLAlchemyError, CacheQuotaExceeded) as exc:
            Logger.warning(
                f"Cache retry failed for {key!r}, keeping memory copy only: {exc}",
                file=LogFiles.CACHE,
            )

    def _write(self, key: str, payload_json: str, entry: CacheEntry) -> None:
        with self._provider.session() as session:
            row = session.get(CacheEntryModel, key)
            if row is None:
                if self.max_entries is not None:
                    count = session.execute(select(func.count()).select_from(CacheEntryModel)).scalar_one()
                    if count >= self.max_entries:
                        raise CacheQuotaExceeded(f"cache holds {count}/{self.max_entries} entries")
                row = CacheEntryModel(key=key)
                session.add(row)
            row.payload_json = payload_json
            row.created_at = entry.created_at
            row.ttl_ms = entry.ttl_ms
            session.commit()

    def _evict_expired_rows(self, now: int) -> int:
        with self._provider.session() as session:
            result = session.execute(
                delete(CacheEntryModel).where(CacheEntryModel.created_at + CacheEntryModel.ttl_ms < now)
            )
            session.commit()
            return int(result.rowcount or 0)

    def evict_expired(self) -> int:
        """Drop expired entries from both layers; returns the number of durable rows removed."""
        now = self._clock()
        for key in [k for k, e in self._memory.items() if e.is_expired(now)]:
            del self._memory[key]
        try:
            removed = self._evict_expired_rows(now)
        except SQLAlchemyError as exc:
            Logger.warning(f"Cache eviction failed: {exc}", file=LogFiles.CACHE)
            return 0
        if removed:
            Logger.info(f"Cache evicted {removed} expired rows", file=LogFiles.CACHE)
        return removed

    def clear(self) -> None:
        self._memory.clear()
        try:
            with self._provider.session() as session:
                session.execute(delete(CacheEntryModel))
                session.commit()
        except SQLAlchemyError as exc:
            Logger.warning(f"Cache clear failed on durable layer: {exc}", file=LogFiles.CACHE)
            return
        Logger.info("Cache cleared", file=LogFiles.CACHE)

    def keys(self) -> List[str]:
        return list(self._memory.keys())

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def close(self) -> None:
        try:
            self._provider.engine.dispose()
        except SQLAlchemyError:
            pass
