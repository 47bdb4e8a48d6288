from papercapsule.domain.paper import (
    AggregateResult,
    DocumentType,
    FeedResult,
    Paper,
    PaperSource,
    SearchQuery,
    SearchScope,
    SourceError,
    SourcePage,
    TopicCategory,
)
from papercapsule.domain.reading import (
    DailyBucket,
    Highlight,
    HighlightColor,
    MonthlyBucket,
    Note,
    ReadingOverview,
    ReadingSession,
    ReadingStreak,
    SavedPaper,
    TotalReadingStats,
    WeeklyBucket,
)

__all__ = [
    "AggregateResult",
    "DocumentType",
    "FeedResult",
    "Paper",
    "PaperSource",
    "SearchQuery",
    "SearchScope",
    "SourceError",
    "SourcePage",
    "TopicCategory",
    "DailyBucket",
    "Highlight",
    "HighlightColor",
    "MonthlyBucket",
    "Note",
    "ReadingOverview",
    "ReadingSession",
    "ReadingStreak",
    "SavedPaper",
    "TotalReadingStats",
    "WeeklyBucket",
]
