from unittest.mock import AsyncMock, MagicMock

import pytest

from papercapsule.domain.paper import Paper
from papercapsule.errors import EnrichmentError, SourceRequestError
from papercapsule.infrastructure.enrichment.translation_client import (
    CONTINUATION_MARKER,
    TranslationClient,
)


def _client(response=None, error=None):
    client = MagicMock()
    client.post_json = AsyncMock(return_value=response, side_effect=error)
    client.close = AsyncMock()
    return client


def _papers():
    return [
        Paper(id="arxiv-1", title="Quantum Computing", abstract="x" * 800, keywords=["arXiv"]),
        Paper(id="ss-2", title="Protein Folding", abstract="Folding proteins."),
    ]


@pytest.mark.asyncio
async def test_sends_batch_with_truncated_abstracts():
    client = _client(response=[])
    translator = TranslationClient(client=client, target_language="Turkish")

    await translator.enrich(_papers())

    endpoint, payload = client.post_json.await_args.args
    assert endpoint == ""
    assert payload["target_language"] == "Turkish"
    assert [item["index"] for item in payload["items"]] == [0, 1]
    assert len(payload["items"][0]["abstract"]) == 500
    assert payload["items"][1] == {"index": 1, "title": "Protein Folding", "abstract": "Folding proteins."}


@pytest.mark.asyncio
async def test_merges_translations_by_index():
    client = _client(response=[{"index": 0, "title": "Kuantum Hesaplama", "abstract": "Özet"}])
    papers = _papers()

    result = await TranslationClient(client=client).enrich(papers)

    assert result[0].title == "Kuantum Hesaplama"
    assert result[0].abstract == "Özet" + CONTINUATION_MARKER
    assert result[0].original_title == "Quantum Computing"
    assert result[0].id == "arxiv-1"
    assert result[1] is papers[1]
    # inputs are left untouched
    assert papers[0].title == "Quantum Computing"


@pytest.mark.asyncio
async def test_accepts_items_envelope_and_ignores_bad_entries():
    client = _client(
        response={
            "items": [
                {"index": 1, "title": "Protein Katlanması", "abstract": ""},
                {"index": 7, "title": "out of range"},
                {"index": "0", "title": "wrong type"},
                "garbage",
            ]
        }
    )

    result = await TranslationClient(client=client).enrich(_papers())

    assert result[0].title == "Quantum Computing"
    assert result[1].title == "Protein Katlanması"
    assert result[1].abstract == "Folding proteins."


@pytest.mark.asyncio
async def test_malformed_response_keeps_originals():
    papers = _papers()

    result = await TranslationClient(client=_client(response="not a list")).enrich(papers)

    assert result == papers


@pytest.mark.asyncio
async def test_transport_failure_raises_enrichment_error():
    client = _client(error=SourceRequestError("translation", "HTTP 502", status=502))

    with pytest.raises(EnrichmentError, match="HTTP 502"):
        await TranslationClient(client=client).enrich(_papers())


@pytest.mark.asyncio
async def test_empty_batch_skips_request():
    client = _client(response=[])

    assert await TranslationClient(client=client).enrich([]) == []
    client.post_json.assert_not_awaited()


def test_requires_url_or_client():
    with pytest.raises(ValueError):
        TranslationClient()


def test_bearer_key_header():
    translator = TranslationClient("https://translate.example/batch", api_key="k")

    assert translator.client.api_key == "Bearer k"
    assert translator.client.api_key_header == "Authorization"
