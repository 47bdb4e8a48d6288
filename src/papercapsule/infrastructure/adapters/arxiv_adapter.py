# src/papercapsule/infrastructure/adapters/arxiv_adapter.py
"""
arXiv source adapter.

Uses the arXiv Atom API (https://arxiv.org/help/api), optionally through a
relay. Paging is offset-based: ``start = (page - 1) * page_size``.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional

from papercapsule.domain.paper import DocumentType, Paper, PaperSource, SourcePage
from papercapsule.infrastructure.api_clients.base import APIClient

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
ABSTRACT_LIMIT = 500
MAX_AUTHORS = 3

_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "opensearch": "http://a9.com/-/spec/opensearch/1.1/",
    "arxiv": "http://arxiv.org/schemas/atom",
}


def _clean(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def truncate_abstract(text: str, limit: int = ABSTRACT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class ArxivAdapter:
    """SourceAdapter over the arXiv Atom feed."""

    def __init__(
        self,
        client: Optional[APIClient] = None,
        *,
        relay_url: Optional[str] = None,
        timeout: float = 15.0,
    ):
        self.client = client or APIClient(
            ARXIV_API_URL,
            source=PaperSource.ARXIV.value,
            timeout=timeout,
            relay_url=relay_url,
        )

    @property
    def source_name(self) -> str:
        return PaperSource.ARXIV.value

    async def search(self, term: str, page: int, page_size: int) -> SourcePage:
        start = (page - 1) * page_size
        params = {
            "search_query": f"all:{term}",
            "start": start,
            "max_results": page_size,
            "sortBy": "relevance",
            "sortOrder": "descending",
        }
        xml_text = await self.client.get_text("", params)
        papers, total = self.parse_feed(xml_text, start=start)
        logger.info("arXiv returned %d papers (total=%d) for %r", len(papers), total, term)
        return SourcePage(papers=papers, has_more=total > start + page_size)

    def parse_feed(self, xml_text: str, *, start: int = 0) -> tuple[List[Paper], int]:
        """Parse an Atom feed into papers and the reported total result count."""
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as exc:
            logger.warning("arXiv returned unparseable XML: %s", exc)
            return [], 0

        try:
            total = int(_clean(root.findtext("opensearch:totalResults", default="0", namespaces=_NS)))
        except ValueError:
            total = 0

        papers = [
            self._entry_to_paper(entry, fallback_index=start + index)
            for index, entry in enumerate(root.findall("atom:entry", _NS))
        ]
        return papers, total

    def _entry_to_paper(self, entry: ET.Element, *, fallback_index: int) -> Paper:
        raw_id = _clean(entry.findtext("atom:id", default="", namespaces=_NS))
        arxiv_id = raw_id.split("/abs/")[-1] if "/abs/" in raw_id else ""
        paper_id = f"{PaperSource.ARXIV.id_prefix}{arxiv_id or fallback_index}"

        title = _clean(entry.findtext("atom:title", default="", namespaces=_NS)) or "Untitled"
        summary = _clean(entry.findtext("atom:summary", default="", namespaces=_NS))

        year = None
        published = _clean(entry.findtext("atom:published", default="", namespaces=_NS))
        if published[:4].isdigit():
            year = int(published[:4])

        authors = [
            _clean(a.findtext("atom:name", default="", namespaces=_NS))
            for a in entry.findall("atom:author", _NS)
        ]
        authors = [a for a in authors if a][:MAX_AUTHORS]

        pdf_url = ""
        for link in entry.findall("atom:link", _NS):
            if link.attrib.get("title") == "pdf":
                pdf_url = link.attrib.get("href", "")

        keywords = ["arXiv"]
        for category in entry.findall("atom:category", _NS):
            term = category.attrib.get("term")
            if term:
                keywords.append(term)

        return Paper(
            id=paper_id,
            title=title,
            original_title=title,
            authors=authors,
            university="arXiv Preprint",
            publication_year=year,
            journal="arXiv",
            abstract=truncate_abstract(summary),
            document_type=DocumentType.ARTICLE,
            keywords=keywords,
            pdf_url=pdf_url or f"https://arxiv.org/pdf/{arxiv_id or fallback_index}.pdf",
            citation_count=0,
            is_open_access=True,
            read_time_minutes=15,
            is_external=True,
        )

    async def close(self) -> None:
        await self.client.close()
