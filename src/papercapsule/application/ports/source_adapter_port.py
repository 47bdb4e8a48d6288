"""SourceAdapter: one external paper source behind a common paging contract."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from papercapsule.domain.paper import SourcePage


@runtime_checkable
class SourceAdapter(Protocol):
    """Single data-source search adapter."""

    @property
    def source_name(self) -> str: ...

    async def search(self, term: str, page: int, page_size: int) -> SourcePage:
        """
        Fetch one page of results.

        Args:
            term: Free-text query
            page: 1-indexed page number
            page_size: Results per page

        Returns:
            SourcePage with normalized papers and whether more pages exist.
            May raise on transport failures; callers treat every call as fallible.
        """
        ...

    async def close(self) -> None: ...
