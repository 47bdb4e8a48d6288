# src/papercapsule/infrastructure/adapters/openalex_adapter.py
"""
OpenAlex source adapter.

API: https://api.openalex.org/works
Docs: https://docs.openalex.org/
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from papercapsule.domain.paper import (
    DEFAULT_CATEGORY,
    DocumentType,
    Paper,
    PaperSource,
    SourcePage,
    TopicCategory,
)
from papercapsule.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

OPENALEX_API_URL = "https://api.openalex.org"
MAX_AUTHORS = 3

_SPACE_BEFORE_PUNCT_RX = re.compile(r"\s+([,.])")


def reconstruct_abstract(inverted_index: Optional[Mapping[str, Sequence[int]]]) -> str:
    """
    Rebuild prose from OpenAlex's ``{word: [positions]}`` abstract index.

    Words are laid out by position; missing positions are skipped rather than
    padded, and whitespace before ``,`` or ``.`` is removed.
    """
    if not inverted_index:
        return ""

    placed: Dict[int, str] = {}
    for word, positions in inverted_index.items():
        if not isinstance(positions, (list, tuple)):
            continue
        for pos in positions:
            if isinstance(pos, int) and pos >= 0:
                placed[pos] = word

    text = " ".join(placed[pos] for pos in sorted(placed))
    return _SPACE_BEFORE_PUNCT_RX.sub(r"\1", text)


class OpenAlexAdapter:
    """SourceAdapter over the OpenAlex works endpoint (page-based paging)."""

    def __init__(
        self,
        client: Optional[APIClient] = None,
        *,
        mailto: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self.client = client or APIClient(
            OPENALEX_API_URL, source=PaperSource.OPENALEX.value, timeout=timeout
        )
        self.mailto = mailto

    @property
    def source_name(self) -> str:
        return PaperSource.OPENALEX.value

    async def search(self, term: str, page: int, page_size: int) -> SourcePage:
        return await self.fetch_works(
            search=term,
            page=page,
            per_page=page_size,
            sort="cited_by_count:desc",
            keywords=["OpenAlex", "Search"],
            read_time_minutes=12,
        )

    async def fetch_works(
        self,
        *,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 12,
        sort: str = "cited_by_count:desc",
        from_publication_year: Optional[int] = None,
        category: TopicCategory = DEFAULT_CATEGORY,
        keywords: Optional[List[str]] = None,
        read_time_minutes: int = 12,
    ) -> SourcePage:
        """Fetch one page of works, optionally restricted to recent publications."""
        filters = []
        if from_publication_year:
            filters.append(f"from_publication_date:{from_publication_year}-01-01")
        filters.append("has_abstract:true")

        params: Dict[str, Any] = {}
        if search:
            params["search"] = search
        params["filter"] = ",".join(filters)
        params["sort"] = sort
        params["per_page"] = per_page
        params["page"] = page
        if self.mailto:
            params["mailto"] = self.mailto

        data = await self.client.get_json("works", params)
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.warning("OpenAlex response without results for %r", search)
            return SourcePage(papers=[], has_more=False)

        papers = [
            self._to_paper(
                work,
                category=category,
                keywords=keywords or [],
                read_time_minutes=read_time_minutes,
            )
            for work in results
            if isinstance(work, dict)
        ]
        total = (data.get("meta") or {}).get("count") or 0
        has_more = int(total) > page * per_page
        logger.info("OpenAlex returned %d papers (total=%s) for %r", len(papers), total, search)
        return SourcePage(papers=papers, has_more=has_more)

    def _to_paper(
        self,
        work: Dict[str, Any],
        *,
        category: TopicCategory,
        keywords: List[str],
        read_time_minutes: int,
    ) -> Paper:
        authorships = work.get("authorships") or []
        authors = [
            (a.get("author") or {}).get("display_name")
            for a in authorships
            if (a.get("author") or {}).get("display_name")
        ][:MAX_AUTHORS]

        university = "Unknown Institution"
        if authorships:
            institutions = authorships[0].get("institutions") or []
            if institutions and institutions[0].get("display_name"):
                university = institutions[0]["display_name"]

        source = (work.get("primary_location") or {}).get("source") or {}
        open_access = work.get("open_access") or {}
        doi = work.get("doi") or None
        openalex_id = str(work.get("id", "")).replace("https://openalex.org/", "")

        abstract = reconstruct_abstract(work.get("abstract_inverted_index"))
        title = work.get("title") or work.get("display_name") or "Untitled"

        return Paper(
            id=f"{PaperSource.OPENALEX.id_prefix}{openalex_id}",
            title=title,
            original_title=title,
            authors=authors or ["Unknown Author"],
            university=university,
            publication_year=work.get("publication_year") or datetime.now(timezone.utc).year,
            journal=source.get("display_name") or "OpenAlex",
            abstract=abstract or "Abstract not available.",
            document_type=DocumentType.ARTICLE,
            keywords=list(keywords),
            category=category,
            pdf_url=open_access.get("oa_url") or doi,
            doi=doi,
            citation_count=work.get("cited_by_count", 0) or 0,
            is_open_access=bool(open_access.get("is_oa", False)),
            read_time_minutes=read_time_minutes,
            is_external=True,
        )

    async def close(self) -> None:
        await self.client.close()
