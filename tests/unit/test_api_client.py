import asyncio
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import quote

import pytest

from papercapsule.errors import SourceRequestError, SourceTimeoutError
from papercapsule.infrastructure.api_clients.base import APIClient


def _response(status, text="", headers=None):
    response = MagicMock()
    response.status = status
    response.headers = headers or {}
    response.text = AsyncMock(return_value=text)
    response.read = AsyncMock(return_value=b"")
    return response


def _session(*responses):
    session = MagicMock()
    session.get = MagicMock(
        side_effect=[
            MagicMock(
                __aenter__=AsyncMock(return_value=r),
                __aexit__=AsyncMock(return_value=False),
            )
            for r in responses
        ]
    )
    return session


def test_build_url_encodes_params():
    client = APIClient("https://export.arxiv.org/api/query", source="arxiv")

    url = client.build_url("", {"search_query": "all:deep learning", "start": 0})

    assert url == "https://export.arxiv.org/api/query?search_query=all:deep%20learning&start=0"


def test_build_url_through_relay():
    client = APIClient(
        "https://export.arxiv.org/api/query",
        source="arxiv",
        relay_url="https://relay.example/raw?url=",
    )

    url = client.build_url("", {"start": 0})

    target = "https://export.arxiv.org/api/query?start=0"
    assert url == "https://relay.example/raw?url=" + quote(target, safe="")


@pytest.mark.asyncio
async def test_get_text_returns_body_on_200():
    client = APIClient("https://api.example.org", source="openalex")
    session = _session(_response(200, "hello"))

    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        assert await client.get_text("works", {"page": 1}) == "hello"

    session.get.assert_called_once_with("https://api.example.org/works?page=1")


@pytest.mark.asyncio
async def test_http_error_raises_source_request_error():
    client = APIClient("https://api.example.org", source="openalex")
    session = _session(_response(404, "missing"))

    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(SourceRequestError) as excinfo:
            await client.get_text("works")

    assert excinfo.value.status == 404
    assert excinfo.value.message == "HTTP 404"
    assert excinfo.value.source == "openalex"


@pytest.mark.asyncio
async def test_rate_limit_is_retried():
    client = APIClient("https://api.example.org", source="semantic_scholar", max_retries=1)
    session = _session(_response(429, headers={"Retry-After": "1"}), _response(200, "ok"))

    with patch.object(client, "_get_session", AsyncMock(return_value=session)), patch.object(
        APIClient, "_backoff_delay", return_value=0
    ):
        assert await client.get_text("paper/search") == "ok"

    assert session.get.call_count == 2


@pytest.mark.asyncio
async def test_rate_limit_without_retries_raises():
    client = APIClient("https://api.example.org", source="semantic_scholar")
    session = _session(_response(429))

    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(SourceRequestError) as excinfo:
            await client.get_text("paper/search")

    assert excinfo.value.status == 429
    assert excinfo.value.message == "Too many requests, please wait"


@pytest.mark.asyncio
async def test_timeout_raises_source_timeout_error():
    client = APIClient("https://api.example.org", source="openalex", timeout=15)
    session = MagicMock()
    session.get = MagicMock(side_effect=asyncio.TimeoutError())

    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(SourceTimeoutError) as excinfo:
            await client.get_text("works")

    assert str(excinfo.value) == "Connection timed out after 15s"


@pytest.mark.asyncio
async def test_get_json_rejects_malformed_body():
    client = APIClient("https://api.example.org", source="openalex")
    session = _session(_response(200, "<html>"))

    with patch.object(client, "_get_session", AsyncMock(return_value=session)):
        with pytest.raises(SourceRequestError, match="Malformed JSON response"):
            await client.get_json("works")


@pytest.mark.asyncio
async def test_close_without_session_is_safe():
    client = APIClient("https://api.example.org", source="openalex")

    await client.close()

    assert client._session is None
