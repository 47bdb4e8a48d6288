"""Exception hierarchy shared across the library."""

from __future__ import annotations

from typing import Optional


class PaperCapsuleError(Exception):
    """Base class for all library errors."""


class SourceRequestError(PaperCapsuleError):
    """A request to an external paper source failed (HTTP error, bad payload)."""

    def __init__(self, source: str, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.message = message
        self.status = status


class SourceTimeoutError(SourceRequestError):
    """A request to an external paper source exceeded its deadline."""

    def __init__(self, source: str, timeout: float):
        super().__init__(source, f"Connection timed out after {timeout:.0f}s")
        self.timeout = timeout


class EnrichmentError(PaperCapsuleError):
    """The remote translation service could not be reached or rejected the batch."""


class CacheQuotaExceeded(PaperCapsuleError):
    """The durable cache layer has no room for another entry."""


class ReadingStoreError(PaperCapsuleError):
    """A durable read/write against the reading-event store failed."""
