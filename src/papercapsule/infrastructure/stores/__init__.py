from papercapsule.infrastructure.stores.cache_store import CacheEntry, CacheStore, CacheTTL
from papercapsule.infrastructure.stores.reading_store import ReadingEventStore

__all__ = ["CacheEntry", "CacheStore", "CacheTTL", "ReadingEventStore"]
