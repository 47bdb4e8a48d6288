"""
End-to-end wiring: real adapters and stores on a temporary SQLite database,
with only the HTTP layer of each adapter replaced.
"""

from unittest.mock import AsyncMock, patch

import pytest

from papercapsule.bootstrap import build_app
from papercapsule.config import Settings
from papercapsule.domain.paper import SearchQuery, SourceError, TopicCategory
from papercapsule.errors import SourceRequestError

OPENALEX_RESPONSE = {
    "meta": {"count": 40},
    "results": [
        {
            "id": "https://openalex.org/W42",
            "title": "Attention Is All You Need",
            "publication_year": 2017,
            "cited_by_count": 5,
            "doi": "https://doi.org/10.5555/attention",
            "authorships": [
                {
                    "author": {"display_name": "A. Vaswani"},
                    "institutions": [{"display_name": "Google Brain"}],
                }
            ],
            "abstract_inverted_index": {"Transformers": [0], "rule": [1]},
            "open_access": {"is_oa": True, "oa_url": "https://example.org/attention.pdf"},
            "primary_location": {"source": {"display_name": "NeurIPS"}},
        }
    ],
}


@pytest.fixture
def app(db_url):
    return build_app(Settings(db_url=db_url))


@pytest.mark.asyncio
async def test_search_end_to_end_with_degraded_sources(app):
    adapters = app.aggregator.adapters
    openalex_get = AsyncMock(return_value=OPENALEX_RESPONSE)
    arxiv_get = AsyncMock(side_effect=SourceRequestError("arxiv", "HTTP 503", status=503))
    s2_get = AsyncMock(return_value="Too Many Requests")

    with patch.object(adapters["openalex"].client, "get_json", openalex_get), patch.object(
        adapters["arxiv"].client, "get_text", arxiv_get
    ), patch.object(adapters["semantic_scholar"].client, "get_text", s2_get):
        query = SearchQuery("transformer")
        first = await app.aggregator.search(query)
        second = await app.aggregator.search(query)

    assert [p.id for p in first.papers] == ["oa-W42"]
    assert first.papers[0].abstract == "Transformers rule"
    assert first.errors == [SourceError("arxiv", "HTTP 503")]
    assert first.per_source_counts == {"openalex": 1, "arxiv": 0, "semantic_scholar": 0}
    assert first.has_more is True
    assert first.from_cache is False

    assert second.from_cache is True
    assert second.papers == first.papers
    openalex_get.assert_awaited_once()

    await app.close()


@pytest.mark.asyncio
async def test_category_feed_is_cached(app):
    openalex_get = AsyncMock(return_value=OPENALEX_RESPONSE)

    with patch.object(app.aggregator.adapters["openalex"].client, "get_json", openalex_get):
        first = await app.aggregator.fetch_category_feed(TopicCategory.PHYSICS)
        second = await app.aggregator.fetch_category_feed(TopicCategory.PHYSICS)

    assert first.papers[0].category is TopicCategory.PHYSICS
    assert first.papers[0].keywords == ["Physics", "OpenAlex"]
    assert second.from_cache is True
    openalex_get.assert_awaited_once()

    await app.close()


@pytest.mark.asyncio
async def test_reading_flow_feeds_analytics(app):
    store = app.reading_store

    session_id = store.start_session("oa-W42", "Attention Is All You Need", TopicCategory.PHYSICS)
    store.end_session(session_id, 90, 120)

    overview = app.analytics.get_overview()

    assert overview.totals.total_papers == 1
    assert overview.totals.total_minutes == 2
    assert overview.streak.current == 1
    assert overview.category_breakdown == {TopicCategory.PHYSICS: 1}

    await app.close()


def test_translation_disabled_without_url(app):
    assert app.settings.translation_enabled is False
    assert app.aggregator._enricher is None
