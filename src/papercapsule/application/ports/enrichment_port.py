"""EnrichmentPort: batch translation of paper titles and abstracts."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable

from papercapsule.domain.paper import Paper


@runtime_checkable
class EnrichmentPort(Protocol):
    """Remote text service that rewrites paper titles/abstracts."""

    async def enrich(self, papers: List[Paper]) -> List[Paper]:
        """Return enriched copies in input order; raise EnrichmentError on failure."""
        ...

    async def close(self) -> None: ...
