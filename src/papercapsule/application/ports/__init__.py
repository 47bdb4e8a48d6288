"""Application ports (interfaces) used by the application layer."""

from .enrichment_port import EnrichmentPort
from .source_adapter_port import SourceAdapter

__all__ = [
    "EnrichmentPort",
    "SourceAdapter",
]
