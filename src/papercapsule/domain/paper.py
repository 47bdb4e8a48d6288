# src/papercapsule/domain/paper.py
"""
Paper aggregation domain models.

- Paper: normalized record produced by every source adapter
- TopicCategory: closed set of 20 reading topics
- PaperSource / SearchScope: source discriminants
- SearchQuery: identifies one aggregate search (and its cache key)
- SourcePage / SourceError / AggregateResult / FeedResult: adapter and
  aggregator outputs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DocumentType(str, Enum):
    ARTICLE = "ARTICLE"
    PROJECT = "PROJECT"


class TopicCategory(str, Enum):
    """Reading topics; the value doubles as the English search term."""

    ARTIFICIAL_INTELLIGENCE = "Artificial Intelligence"
    MEDICINE = "Medicine"
    ECONOMICS = "Economics"
    PHYSICS = "Physics"
    PSYCHOLOGY = "Psychology"
    ENGINEERING = "Engineering"
    BIOLOGY = "Biology"
    HISTORY = "History"
    CHEMISTRY = "Chemistry"
    MATHEMATICS = "Mathematics"
    SOCIOLOGY = "Sociology"
    PHILOSOPHY = "Philosophy"
    LITERATURE = "Literature"
    LAW = "Law"
    POLITICAL_SCIENCE = "Political Science"
    ASTRONOMY = "Astronomy"
    ARCHITECTURE = "Architecture"
    EDUCATION = "Education"
    ENVIRONMENTAL_SCIENCE = "Environmental Science"
    ART_HISTORY = "Art History"

    @property
    def search_term(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "TopicCategory":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"Unknown topic category: {value!r}")


DEFAULT_CATEGORY = TopicCategory.ARTIFICIAL_INTELLIGENCE


class PaperSource(str, Enum):
    """Where a paper came from; encoded in the id prefix."""

    OPENALEX = "openalex"
    ARXIV = "arxiv"
    SEMANTIC_SCHOLAR = "semantic_scholar"
    CURATED = "curated"

    @property
    def id_prefix(self) -> str:
        return _ID_PREFIXES.get(self, "")

    @classmethod
    def from_paper_id(cls, paper_id: str) -> "PaperSource":
        for source, prefix in _ID_PREFIXES.items():
            if paper_id.startswith(prefix):
                return source
        return cls.CURATED


_ID_PREFIXES = {
    PaperSource.OPENALEX: "oa-",
    PaperSource.ARXIV: "arxiv-",
    PaperSource.SEMANTIC_SCHOLAR: "ss-",
}

# Adapter invocation order; also the first-seen order for deduplication.
LIVE_SOURCES = (PaperSource.OPENALEX, PaperSource.ARXIV, PaperSource.SEMANTIC_SCHOLAR)


class SearchScope(str, Enum):
    ALL = "all"
    OPENALEX = "openalex"
    ARXIV = "arxiv"
    SEMANTIC_SCHOLAR = "semantic_scholar"

    def sources(self) -> List[PaperSource]:
        if self is SearchScope.ALL:
            return list(LIVE_SOURCES)
        return [PaperSource(self.value)]


@dataclass
class Paper:
    """
    Normalized paper record.

    ``id`` carries the source prefix (``oa-``, ``arxiv-``, ``ss-``) and must be
    preserved verbatim for downstream routing.
    """

    id: str
    title: str
    original_title: str = ""
    authors: List[str] = field(default_factory=list)
    university: str = ""
    publication_year: Optional[int] = None
    journal: str = ""
    abstract: str = ""
    document_type: DocumentType = DocumentType.ARTICLE
    keywords: List[str] = field(default_factory=list)
    category: TopicCategory = DEFAULT_CATEGORY
    pdf_url: Optional[str] = None
    doi: Optional[str] = None
    citation_count: int = 0
    is_open_access: bool = False
    read_time_minutes: int = 10
    is_external: bool = True
    is_weekly_selection: bool = False
    figures: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.original_title:
            self.original_title = self.title
        self.citation_count = max(0, int(self.citation_count or 0))

    @property
    def source(self) -> PaperSource:
        return PaperSource.from_paper_id(self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "original_title": self.original_title,
            "authors": list(self.authors),
            "university": self.university,
            "publication_year": self.publication_year,
            "journal": self.journal,
            "abstract": self.abstract,
            "document_type": self.document_type.value,
            "keywords": list(self.keywords),
            "category": self.category.value,
            "pdf_url": self.pdf_url,
            "doi": self.doi,
            "citation_count": self.citation_count,
            "is_open_access": self.is_open_access,
            "read_time_minutes": self.read_time_minutes,
            "is_external": self.is_external,
            "is_weekly_selection": self.is_weekly_selection,
            "figures": list(self.figures),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Paper":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", "") or "",
            original_title=data.get("original_title", "") or "",
            authors=list(data.get("authors") or []),
            university=data.get("university", "") or "",
            publication_year=data.get("publication_year"),
            journal=data.get("journal", "") or "",
            abstract=data.get("abstract", "") or "",
            document_type=DocumentType(data.get("document_type") or DocumentType.ARTICLE.value),
            keywords=list(data.get("keywords") or []),
            category=TopicCategory.parse(data.get("category") or DEFAULT_CATEGORY),
            pdf_url=data.get("pdf_url"),
            doi=data.get("doi"),
            citation_count=data.get("citation_count", 0) or 0,
            is_open_access=bool(data.get("is_open_access", False)),
            read_time_minutes=int(data.get("read_time_minutes", 10) or 10),
            is_external=bool(data.get("is_external", True)),
            is_weekly_selection=bool(data.get("is_weekly_selection", False)),
            figures=list(data.get("figures") or []),
        )


@dataclass(frozen=True)
class SearchQuery:
    text: str
    scope: SearchScope = SearchScope.ALL
    page: int = 1
    page_size: int = 12

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page is 1-indexed")
        if self.page_size < 1:
            raise ValueError("page_size must be positive")

    def cache_key(self) -> str:
        return f"search:{self.text.strip()}|{self.scope.value}|{self.page}|{self.page_size}"


@dataclass
class SourcePage:
    """One page of results from a single adapter."""

    papers: List[Paper] = field(default_factory=list)
    has_more: bool = False


@dataclass(frozen=True)
class SourceError:
    source: str
    message: str
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "message": self.message, "code": self.code}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceError":
        return cls(
            source=str(data.get("source", "")),
            message=str(data.get("message", "")),
            code=data.get("code"),
        )


def _empty_counts() -> Dict[str, int]:
    return {source.value: 0 for source in LIVE_SOURCES}


@dataclass
class AggregateResult:
    """Merged, deduplicated, sorted result of a multi-source search."""

    papers: List[Paper] = field(default_factory=list)
    errors: List[SourceError] = field(default_factory=list)
    has_more: bool = False
    per_source_counts: Dict[str, int] = field(default_factory=_empty_counts)
    from_cache: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "papers": [p.to_dict() for p in self.papers],
            "errors": [e.to_dict() for e in self.errors],
            "has_more": self.has_more,
            "per_source_counts": dict(self.per_source_counts),
            "from_cache": self.from_cache,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateResult":
        counts = _empty_counts()
        counts.update({str(k): int(v) for k, v in (data.get("per_source_counts") or {}).items()})
        return cls(
            papers=[Paper.from_dict(p) for p in data.get("papers") or []],
            errors=[SourceError.from_dict(e) for e in data.get("errors") or []],
            has_more=bool(data.get("has_more", False)),
            per_source_counts=counts,
            from_cache=bool(data.get("from_cache", False)),
        )


@dataclass
class FeedResult:
    """Result of a category or trending feed fetch."""

    papers: List[Paper] = field(default_factory=list)
    errors: List[SourceError] = field(default_factory=list)
    from_cache: bool = False
