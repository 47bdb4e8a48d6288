"""
Batch translation of paper titles and abstracts through a remote text service.

Request::

    {"target_language": "Turkish",
     "items": [{"index": 0, "title": "...", "abstract": "..."}]}

Response: a JSON array of ``{"index", "title", "abstract"}`` objects, or the
same array under ``"items"``. Entries that are missing or malformed leave the
corresponding paper untouched.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from papercapsule.domain.paper import Paper
from papercapsule.errors import EnrichmentError, SourceRequestError
from papercapsule.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

ABSTRACT_LIMIT = 500
CONTINUATION_MARKER = "... (continued in the original source)"


class TranslationClient:
    """EnrichmentPort backed by an HTTP translation endpoint."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        target_language: str = "Turkish",
        timeout: float = 30.0,
        client: Optional[APIClient] = None,
    ):
        if client is None and not url:
            raise ValueError("TranslationClient needs a service url or an APIClient")
        self.target_language = target_language
        self.client = client or APIClient(
            url,
            source="translation",
            timeout=timeout,
            api_key=f"Bearer {api_key}" if api_key else None,
            api_key_header="Authorization",
        )

    async def enrich(self, papers: List[Paper]) -> List[Paper]:
        if not papers:
            return []

        payload = {
            "target_language": self.target_language,
            "items": [
                {"index": i, "title": p.title, "abstract": (p.abstract or "")[:ABSTRACT_LIMIT]}
                for i, p in enumerate(papers)
            ],
        }
        try:
            data = await self.client.post_json("", payload)
        except SourceRequestError as exc:
            raise EnrichmentError(f"Translation failed: {exc.message}") from exc

        translations = self._index_translations(data, len(papers))
        if translations is None:
            logger.warning("Translation service returned an unexpected payload; keeping originals")
            return list(papers)

        result: List[Paper] = []
        for i, paper in enumerate(papers):
            item = translations.get(i)
            if item is None:
                result.append(paper)
                continue
            title = item.get("title")
            abstract = item.get("abstract")
            result.append(
                replace(
                    paper,
                    title=title if isinstance(title, str) and title.strip() else paper.title,
                    abstract=(
                        f"{abstract}{CONTINUATION_MARKER}"
                        if isinstance(abstract, str) and abstract.strip()
                        else paper.abstract
                    ),
                    original_title=paper.original_title or paper.title,
                    keywords=list(paper.keywords),
                    authors=list(paper.authors),
                    figures=list(paper.figures),
                )
            )
        logger.info("Translated %d/%d papers", len(translations), len(papers))
        return result

    @staticmethod
    def _index_translations(data: Any, size: int) -> Optional[Dict[int, Dict[str, Any]]]:
        items = data.get("items") if isinstance(data, dict) else data
        if not isinstance(items, list):
            return None
        indexed: Dict[int, Dict[str, Any]] = {}
        for item in items:
            if not isinstance(item, dict):
                continue
            index = item.get("index")
            if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < size:
                indexed[index] = item
        return indexed

    async def close(self) -> None:
        await self.client.close()
