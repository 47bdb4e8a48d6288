"""Wiring of the library's components from ``Settings``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from papercapsule.application.services.paper_aggregator import PaperAggregator
from papercapsule.application.services.reading_analytics import ReadingAnalytics
from papercapsule.config import Settings
from papercapsule.infrastructure.adapters import build_adapter_registry
from papercapsule.infrastructure.enrichment.translation_client import TranslationClient
from papercapsule.infrastructure.stores.cache_store import CacheStore
from papercapsule.infrastructure.stores.reading_store import ReadingEventStore

logger = logging.getLogger(__name__)


@dataclass
class PaperCapsuleApp:
    settings: Settings
    cache: CacheStore
    aggregator: PaperAggregator
    reading_store: ReadingEventStore
    analytics: ReadingAnalytics

    async def close(self) -> None:
        await self.aggregator.close()
        self.cache.close()
        self.reading_store.close()


def build_app(settings: Optional[Settings] = None) -> PaperCapsuleApp:
    """Construct every component once; the cache and stores share the database."""
    settings = settings or Settings.from_env()

    cache = CacheStore(settings.db_url, max_entries=settings.cache_max_entries)

    enricher = None
    if settings.translation_enabled:
        enricher = TranslationClient(
            settings.translation_url,
            api_key=settings.translation_api_key,
            target_language=settings.translation_language,
            timeout=settings.translation_timeout,
        )
    else:
        logger.info("Translation disabled (PAPERCAPSULE_TRANSLATION_URL not set)")

    aggregator = PaperAggregator(build_adapter_registry(settings), cache, enricher=enricher)

    reading_store = ReadingEventStore(settings.db_url)
    analytics = ReadingAnalytics(reading_store)

    return PaperCapsuleApp(
        settings=settings,
        cache=cache,
        aggregator=aggregator,
        reading_store=reading_store,
        analytics=analytics,
    )
