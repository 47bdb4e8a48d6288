"""PaperAggregator: fan-out search and feeds across the live paper sources."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from papercapsule.application.ports.enrichment_port import EnrichmentPort
from papercapsule.application.ports.source_adapter_port import SourceAdapter
from papercapsule.application.services.paper_deduplicator import dedupe
from papercapsule.domain.paper import (
    DEFAULT_CATEGORY,
    AggregateResult,
    FeedResult,
    Paper,
    PaperSource,
    SearchQuery,
    SourceError,
    SourcePage,
    TopicCategory,
)
from papercapsule.errors import SourceRequestError
from papercapsule.infrastructure.stores.cache_store import CacheStore, CacheTTL
from papercapsule.utils.logging_config import LogFiles, Logger, set_trace_id

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_TIMEOUT = 25.0
FEED_PAGE_SIZE = 12
ALL_SOURCES_PAGE_SIZE = 6
TRANSLATION_SOURCE = "translation"

Outcome = Union[SourcePage, BaseException]


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, SourceRequestError):
        return exc.message
    return str(exc) or exc.__class__.__name__


def _by_citations(papers: List[Paper]) -> List[Paper]:
    # sorted() is stable: equal counts keep merge order
    return sorted(papers, key=lambda p: -p.citation_count)


class PaperAggregator:
    """
    Facade over the source adapters.

    Adapters are invoked concurrently; a failing or slow source becomes a
    ``SourceError`` entry and never aborts the aggregate. Results are cached
    in the given ``CacheStore`` with per-operation TTLs.
    """

    def __init__(
        self,
        adapters: Dict[str, SourceAdapter],
        cache: CacheStore,
        *,
        enricher: Optional[EnrichmentPort] = None,
        adapter_timeout: float = DEFAULT_ADAPTER_TIMEOUT,
    ):
        self._adapters = adapters
        self._cache = cache
        self._enricher = enricher
        self._adapter_timeout = adapter_timeout

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def adapters(self) -> Dict[str, SourceAdapter]:
        return dict(self._adapters)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, query: SearchQuery) -> AggregateResult:
        """Search every source in ``query.scope``, merge, dedupe, translate, rank."""
        trace_id = set_trace_id()
        key = query.cache_key()

        cached = self._cache.get(key)
        if cached is not None:
            result = AggregateResult.from_dict(cached)
            result.from_cache = True
            logger.debug("Search cache hit for %s", key)
            return result

        selected = self._select_adapters(query.scope.sources())
        outcomes = await self._fan_out(
            selected, lambda a: a.search(query.text.strip(), query.page, query.page_size)
        )

        result = AggregateResult()
        merged: List[Paper] = []
        for name, outcome in outcomes:
            if isinstance(outcome, BaseException):
                result.errors.append(SourceError(source=name, message=_error_message(outcome)))
                result.per_source_counts[name] = 0
                continue
            merged.extend(outcome.papers)
            result.has_more = result.has_more or outcome.has_more
            result.per_source_counts[name] = len(outcome.papers)

        papers = dedupe(merged)
        papers = await self._translate(papers, result.errors)
        result.papers = _by_citations(papers)

        self._cache.set(key, result.to_dict(), CacheTTL.SEARCH)
        Logger.info(
            f"search {key} [{trace_id}]: {len(merged)} raw, {len(result.papers)} unique, "
            f"{len(result.errors)} errors",
            file=LogFiles.AGGREGATOR,
        )
        return result

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------

    async def fetch_category_feed(
        self,
        category: TopicCategory,
        page: int = 1,
        per_page: int = FEED_PAGE_SIZE,
    ) -> FeedResult:
        """Recent OpenAlex works for a topic, newest first."""
        category = TopicCategory.parse(category)
        key = f"feed:{category.value}|{page}|{per_page}"
        year = self._current_year()
        return await self._openalex_feed(
            key,
            CacheTTL.CATEGORY_FEED,
            search=category.search_term,
            page=page,
            per_page=per_page,
            sort="publication_date:desc",
            from_publication_year=year - 1,
            category=category,
            keywords=[category.value, "OpenAlex"],
            read_time_minutes=10,
        )

    async def fetch_trending(self, page: int = 1) -> FeedResult:
        """Most-cited OpenAlex works published since the start of last year."""
        key = f"trending:{page}"
        year = self._current_year()
        return await self._openalex_feed(
            key,
            CacheTTL.TRENDING,
            search=None,
            page=page,
            per_page=FEED_PAGE_SIZE,
            sort="cited_by_count:desc",
            from_publication_year=year - 1,
            category=DEFAULT_CATEGORY,
            keywords=["Trending", "Global"],
            read_time_minutes=15,
        )

    async def fetch_from_all_sources(self, category: TopicCategory, page: int = 1) -> FeedResult:
        """
        A small page from every source for one topic.

        The OpenAlex share comes from the category feed (which translates its
        own papers); only arXiv and Semantic Scholar papers are translated here.
        """
        category = TopicCategory.parse(category)
        key = f"all_sources:{category.value}|{page}"
        cached = self._cache.get(key)
        if cached is not None:
            return FeedResult(papers=[Paper.from_dict(p) for p in cached], from_cache=True)

        term = category.search_term
        errors: List[SourceError] = []
        others = self._select_adapters([PaperSource.ARXIV, PaperSource.SEMANTIC_SCHOLAR])

        feed, outcomes = await asyncio.gather(
            self.fetch_category_feed(category, page, ALL_SOURCES_PAGE_SIZE),
            self._fan_out(others, lambda a: a.search(term, page, ALL_SOURCES_PAGE_SIZE)),
        )

        merged: List[Paper] = list(feed.papers)
        errors.extend(feed.errors)
        for name, outcome in outcomes:
            if isinstance(outcome, BaseException):
                errors.append(SourceError(source=name, message=_error_message(outcome)))
                continue
            merged.extend(outcome.papers)

        stamped = [self._stamp_category(p, category) for p in merged]
        papers = dedupe(stamped)
        papers = await self._translate(
            papers,
            errors,
            only=lambda p: p.source in (PaperSource.ARXIV, PaperSource.SEMANTIC_SCHOLAR),
        )
        papers = _by_citations(papers)

        self._cache.set(key, [p.to_dict() for p in papers], CacheTTL.CATEGORY_FEED)
        return FeedResult(papers=papers, errors=errors, from_cache=False)

    async def _openalex_feed(self, key: str, ttl_ms: int, **works_kwargs) -> FeedResult:
        cached = self._cache.get(key)
        if cached is not None:
            return FeedResult(papers=[Paper.from_dict(p) for p in cached], from_cache=True)

        adapter = self._adapters.get(PaperSource.OPENALEX.value)
        fetch_works = getattr(adapter, "fetch_works", None)
        if fetch_works is None:
            return FeedResult(
                errors=[SourceError(PaperSource.OPENALEX.value, "OpenAlex adapter not configured")]
            )

        try:
            page = await asyncio.wait_for(fetch_works(**works_kwargs), timeout=self._adapter_timeout)
        except asyncio.TimeoutError:
            logger.warning("OpenAlex feed timed out after %.0fs", self._adapter_timeout)
            return FeedResult(
                errors=[
                    SourceError(
                        PaperSource.OPENALEX.value,
                        f"Connection timed out after {self._adapter_timeout:.0f}s",
                    )
                ]
            )
        except Exception as exc:
            logger.warning("OpenAlex feed %s failed: %s", key, exc)
            return FeedResult(errors=[SourceError(PaperSource.OPENALEX.value, _error_message(exc))])

        errors: List[SourceError] = []
        papers = await self._translate(page.papers, errors)
        self._cache.set(key, [p.to_dict() for p in papers], ttl_ms)
        return FeedResult(papers=papers, errors=errors, from_cache=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select_adapters(self, sources: Sequence[PaperSource]) -> List[SourceAdapter]:
        return [self._adapters[s.value] for s in sources if s.value in self._adapters]

    async def _fan_out(
        self,
        adapters: List[SourceAdapter],
        call: Callable[[SourceAdapter], Awaitable[SourcePage]],
    ) -> List[Tuple[str, Outcome]]:
        """Run ``call`` on every adapter concurrently; outcomes keep adapter order."""
        timeout = self._adapter_timeout

        async def _guarded(adapter: SourceAdapter) -> Outcome:
            try:
                return await asyncio.wait_for(call(adapter), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning("Adapter %s timed out after %.0fs", adapter.source_name, timeout)
                return TimeoutError(f"Connection timed out after {timeout:.0f}s")
            except Exception as exc:
                return exc

        results = await asyncio.gather(*(_guarded(a) for a in adapters), return_exceptions=True)

        outcomes: List[Tuple[str, Outcome]] = []
        failed: List[str] = []
        for adapter, result in zip(adapters, results):
            if isinstance(result, BaseException):
                logger.warning("Adapter %s failed: %s", adapter.source_name, result)
                failed.append(adapter.source_name)
            outcomes.append((adapter.source_name, result))

        if failed:
            logger.info(
                "Search degraded: %d/%d sources failed (%s)",
                len(failed),
                len(adapters),
                ", ".join(failed),
            )
        return outcomes

    async def _translate(
        self,
        papers: List[Paper],
        errors: List[SourceError],
        *,
        only: Optional[Callable[[Paper], bool]] = None,
    ) -> List[Paper]:
        if self._enricher is None or not papers:
            return list(papers)

        positions = [i for i, p in enumerate(papers) if only is None or only(p)]
        if not positions:
            return list(papers)

        try:
            translated = await self._enricher.enrich([papers[i] for i in positions])
        except Exception as exc:
            logger.warning("Translation failed: %s", exc)
            errors.append(SourceError(source=TRANSLATION_SOURCE, message=_error_message(exc)))
            return list(papers)

        if len(translated) != len(positions):
            logger.warning(
                "Translation returned %d papers for %d inputs; keeping originals",
                len(translated),
                len(positions),
            )
            return list(papers)

        result = list(papers)
        for i, paper in zip(positions, translated):
            result[i] = paper
        return result

    @staticmethod
    def _stamp_category(paper: Paper, category: TopicCategory) -> Paper:
        keywords = list(paper.keywords)
        if category.value not in keywords:
            keywords.append(category.value)
        return replace(
            paper,
            category=category,
            keywords=keywords,
            authors=list(paper.authors),
            figures=list(paper.figures),
        )

    @staticmethod
    def _current_year() -> int:
        return datetime.now(timezone.utc).year

    def clear_cache(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        closables = list(self._adapters.values())
        if self._enricher is not None:
            closables.append(self._enricher)
        for item in closables:
            try:
                await item.close()
            except Exception as exc:
                logger.debug("Close failed for %r: %s", item, exc)
