# src/papercapsule/infrastructure/adapters/semantic_scholar_adapter.py
"""
Semantic Scholar source adapter.

API: https://api.semanticscholar.org/graph/v1/paper/search
The endpoint is rate limited aggressively; rate-limit pages and other
non-JSON bodies are treated as an empty page instead of an error.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

from papercapsule.domain.paper import DocumentType, Paper, PaperSource, SourcePage
from papercapsule.errors import SourceRequestError
from papercapsule.infrastructure.adapters.arxiv_adapter import truncate_abstract
from papercapsule.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

S2_API_URL = "https://api.semanticscholar.org/graph/v1"
MAX_AUTHORS = 3

FIELDS = [
    "title",
    "abstract",
    "authors",
    "year",
    "venue",
    "citationCount",
    "isOpenAccess",
    "openAccessPdf",
    "externalIds",
]

_SOFT_FAILURE_PREFIXES = ("Too Many", "<!", "<html")


def _is_soft_status(status: Optional[int]) -> bool:
    return status is not None and (status == 429 or status >= 500)


class SemanticScholarAdapter:
    """SourceAdapter over S2 paper search (offset-based paging)."""

    def __init__(
        self,
        client: Optional[APIClient] = None,
        *,
        api_key: Optional[str] = None,
        relay_url: Optional[str] = None,
        timeout: float = 20.0,
    ):
        self.client = client or APIClient(
            S2_API_URL,
            source=PaperSource.SEMANTIC_SCHOLAR.value,
            timeout=timeout,
            api_key=api_key,
            relay_url=relay_url,
        )

    @property
    def source_name(self) -> str:
        return PaperSource.SEMANTIC_SCHOLAR.value

    async def search(self, term: str, page: int, page_size: int) -> SourcePage:
        offset = (page - 1) * page_size
        params = {
            "query": term,
            "offset": offset,
            "limit": page_size,
            "fields": ",".join(FIELDS),
        }
        try:
            text = await self.client.get_text("paper/search", params)
        except SourceRequestError as exc:
            if not _is_soft_status(exc.status):
                raise
            logger.warning("Semantic Scholar unavailable (HTTP %s); returning empty page", exc.status)
            return SourcePage(papers=[], has_more=False)

        data = self._decode(text)
        if data is None:
            return SourcePage(papers=[], has_more=False)

        rows = data.get("data")
        if not isinstance(rows, list):
            return SourcePage(papers=[], has_more=False)

        papers = [self._to_paper(row) for row in rows if isinstance(row, dict)]
        total = int(data.get("total") or 0)
        logger.info("Semantic Scholar returned %d papers (total=%d) for %r", len(papers), total, term)
        return SourcePage(papers=papers, has_more=total > offset + page_size)

    @staticmethod
    def _decode(text: str) -> Optional[Dict[str, Any]]:
        body = (text or "").lstrip()
        if body.startswith(_SOFT_FAILURE_PREFIXES):
            logger.warning("Semantic Scholar rate limited or returned HTML")
            return None
        try:
            data = json.loads(body)
        except ValueError:
            logger.warning("Semantic Scholar returned a non-JSON body: %r", body[:80])
            return None
        return data if isinstance(data, dict) else None

    def _to_paper(self, row: Dict[str, Any]) -> Paper:
        paper_id = row.get("paperId") or uuid.uuid4().hex[:9]
        title = row.get("title") or "Untitled"
        authors = [a.get("name") for a in row.get("authors") or [] if a.get("name")]
        external_ids = row.get("externalIds") or {}
        doi = external_ids.get("DOI")

        pdf_url = (row.get("openAccessPdf") or {}).get("url")
        if not pdf_url and doi:
            pdf_url = f"https://doi.org/{doi}"

        abstract = row.get("abstract") or ""

        return Paper(
            id=f"{PaperSource.SEMANTIC_SCHOLAR.id_prefix}{paper_id}",
            title=title,
            original_title=title,
            authors=authors[:MAX_AUTHORS] or ["Unknown"],
            university="Semantic Scholar",
            publication_year=row.get("year"),
            journal=row.get("venue") or "Academic Journal",
            abstract=truncate_abstract(abstract) if abstract else "Abstract not available.",
            document_type=DocumentType.ARTICLE,
            keywords=["Semantic Scholar", "Search"],
            pdf_url=pdf_url or None,
            doi=doi,
            citation_count=row.get("citationCount", 0) or 0,
            is_open_access=bool(row.get("isOpenAccess", False)),
            read_time_minutes=12,
            is_external=True,
        )

    async def close(self) -> None:
        await self.client.close()
