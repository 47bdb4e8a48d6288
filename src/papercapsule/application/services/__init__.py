from papercapsule.application.services.paper_aggregator import PaperAggregator
from papercapsule.application.services.paper_deduplicator import dedupe, title_key
from papercapsule.application.services.reading_analytics import ReadingAnalytics

__all__ = [
    "PaperAggregator",
    "ReadingAnalytics",
    "dedupe",
    "title_key",
]
