# src/papercapsule/domain/reading.py
"""
Reading-activity domain models.

Timestamps are epoch milliseconds; day keys are UTC ``YYYY-MM-DD`` strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from papercapsule.domain.paper import Paper, TopicCategory

COMPLETION_THRESHOLD = 80


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def day_key(epoch_ms: int) -> str:
    """UTC calendar day of an epoch-ms timestamp."""
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).date().isoformat()


def parse_day(key: str) -> date:
    return date.fromisoformat(key)


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


class HighlightColor(str, Enum):
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PINK = "pink"
    PURPLE = "purple"


@dataclass(frozen=True)
class ReadingSession:
    id: str
    paper_id: str
    title: str
    category: TopicCategory
    start_time: int
    end_time: int = 0
    duration_seconds: int = 0
    scroll_percentage: float = 0.0
    completed: bool = False

    @property
    def is_open(self) -> bool:
        return self.end_time == 0

    @property
    def end_day(self) -> Optional[str]:
        return day_key(self.end_time) if self.end_time else None


@dataclass
class DailyBucket:
    date: str
    papers_read: int = 0
    minutes: int = 0


@dataclass
class WeeklyBucket:
    week_start: str
    papers_read: int = 0
    total_minutes: int = 0


@dataclass
class MonthlyBucket:
    month: str
    papers_read: int = 0
    total_minutes: int = 0
    top_category: Optional[TopicCategory] = None


@dataclass(frozen=True)
class ReadingStreak:
    current: int = 0
    longest: int = 0


@dataclass(frozen=True)
class TotalReadingStats:
    total_papers: int = 0
    total_minutes: int = 0
    avg_minutes_per_paper: int = 0


@dataclass
class ReadingOverview:
    totals: TotalReadingStats
    streak: ReadingStreak
    category_breakdown: Dict[TopicCategory, int] = field(default_factory=dict)
    weekly: List[WeeklyBucket] = field(default_factory=list)
    monthly: List[MonthlyBucket] = field(default_factory=list)


@dataclass
class Note:
    id: str
    paper_id: str
    content: str
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "paper_id": self.paper_id,
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            id=str(data["id"]),
            paper_id=str(data["paper_id"]),
            content=data.get("content", ""),
            created_at=int(data.get("created_at", 0)),
            updated_at=int(data.get("updated_at", 0)),
        )


@dataclass
class Highlight:
    id: str
    paper_id: str
    text: str
    color: HighlightColor
    start_offset: int
    end_offset: int
    created_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "paper_id": self.paper_id,
            "text": self.text,
            "color": self.color.value,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Highlight":
        return cls(
            id=str(data["id"]),
            paper_id=str(data["paper_id"]),
            text=data.get("text", ""),
            color=HighlightColor(data.get("color", HighlightColor.YELLOW.value)),
            start_offset=int(data.get("start_offset", 0)),
            end_offset=int(data.get("end_offset", 0)),
            created_at=int(data.get("created_at", 0)),
        )


@dataclass
class SavedPaper:
    """A paper saved for offline reading, with its denormalized payload."""

    id: str
    paper: Paper
    saved_at: int
    notes: List[Note] = field(default_factory=list)
    highlights: List[Highlight] = field(default_factory=list)
    last_read_at: Optional[int] = None
    reading_progress: float = 0.0
