"""SourceAdapter registry."""

from __future__ import annotations

from typing import Dict, Optional

from papercapsule.application.ports.source_adapter_port import SourceAdapter
from papercapsule.config import Settings
from papercapsule.infrastructure.adapters.arxiv_adapter import ArxivAdapter
from papercapsule.infrastructure.adapters.openalex_adapter import OpenAlexAdapter
from papercapsule.infrastructure.adapters.semantic_scholar_adapter import SemanticScholarAdapter


def build_adapter_registry(settings: Optional[Settings] = None) -> Dict[str, SourceAdapter]:
    """Adapters keyed by source name, in invocation order."""
    settings = settings or Settings()
    return {
        "openalex": OpenAlexAdapter(
            mailto=settings.openalex_mailto,
            timeout=settings.openalex_timeout,
        ),
        "arxiv": ArxivAdapter(
            relay_url=settings.cors_relay_url,
            timeout=settings.arxiv_timeout,
        ),
        "semantic_scholar": SemanticScholarAdapter(
            api_key=settings.semantic_scholar_api_key,
            relay_url=settings.cors_relay_url,
            timeout=settings.semantic_scholar_timeout,
        ),
    }


__all__ = [
    "ArxivAdapter",
    "OpenAlexAdapter",
    "SemanticScholarAdapter",
    "build_adapter_registry",
]
