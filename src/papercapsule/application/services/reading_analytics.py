# src/papercapsule/application/services/reading_analytics.py
"""
Reading analytics derived from the reading-event store.

Daily buckets are maintained incrementally (one upsert per ended session);
every other figure is computed on demand from those buckets or, for category
figures, from the raw session log.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from papercapsule.domain.paper import TopicCategory
from papercapsule.domain.reading import (
    DailyBucket,
    MonthlyBucket,
    ReadingOverview,
    ReadingSession,
    ReadingStreak,
    TotalReadingStats,
    WeeklyBucket,
    day_key,
    parse_day,
    round_half_up,
)
from papercapsule.infrastructure.stores.reading_store import ReadingEventStore

logger = logging.getLogger(__name__)

CATEGORY_WINDOW = 500
TOTALS_WINDOW_DAYS = 365


class ReadingAnalytics:
    """
    Analytics over a ``ReadingEventStore``.

    Constructing one subscribes it to the store's session-end events, so every
    ``end_session`` feeds :meth:`upsert_daily_bucket`. A listener already set
    on the store keeps being called after the bucket update.
    """

    def __init__(self, store: ReadingEventStore, *, clock: Optional[Callable[[], int]] = None):
        self.store = store
        self._clock = clock or store.clock
        previous = store.on_session_end

        def _on_session_end(session: ReadingSession) -> None:
            self.upsert_daily_bucket(session)
            if previous is not None:
                previous(session)

        store.on_session_end = _on_session_end

    def today(self) -> date:
        return parse_day(day_key(self._clock()))

    def upsert_daily_bucket(self, session: ReadingSession) -> DailyBucket:
        """Add one ended session to the bucket of the day it ended."""
        day = session.end_day or day_key(self._clock())
        bucket = self.store.increment_daily_bucket(
            day,
            papers_read=1 if session.completed else 0,
            minutes=round_half_up(session.duration_seconds / 60),
        )
        logger.debug("Daily bucket %s -> %d papers, %d min", day, bucket.papers_read, bucket.minutes)
        return bucket

    def get_daily_stats(self, days: int = 30) -> List[DailyBucket]:
        cutoff = self.today() - timedelta(days=max(0, int(days)))
        return self.store.list_daily_buckets(since=cutoff.isoformat())

    def get_weekly_stats(self, weeks: int = 8) -> List[WeeklyBucket]:
        """Daily buckets summed per ISO week (weeks start on Monday)."""
        grouped: Dict[str, WeeklyBucket] = {}
        for day in self.get_daily_stats(max(0, int(weeks)) * 7):
            d = parse_day(day.date)
            week_start = (d - timedelta(days=d.weekday())).isoformat()
            bucket = grouped.setdefault(week_start, WeeklyBucket(week_start=week_start))
            bucket.papers_read += day.papers_read
            bucket.total_minutes += day.minutes
        return [grouped[k] for k in sorted(grouped)]

    def get_monthly_stats(self, months: int = 6) -> List[MonthlyBucket]:
        """Per-month totals with the month's most-completed category."""
        months = max(1, int(months))
        today = self.today()
        year, month = today.year, today.month - (months - 1)
        while month < 1:
            month += 12
            year -= 1
        first_day = date(year, month, 1)

        grouped: Dict[str, MonthlyBucket] = {}
        for day in self.store.list_daily_buckets(since=first_day.isoformat()):
            key = day.date[:7]
            bucket = grouped.setdefault(key, MonthlyBucket(month=key))
            bucket.papers_read += day.papers_read
            bucket.total_minutes += day.minutes

        since_ms = int(datetime(year, month, 1, tzinfo=timezone.utc).timestamp() * 1000)
        per_month: Dict[str, Counter] = defaultdict(Counter)
        for session in self.store.get_sessions(limit=None, since=since_ms):
            if session.completed and session.end_day:
                per_month[session.end_day[:7]][session.category] += 1

        for key, counts in per_month.items():
            bucket = grouped.setdefault(key, MonthlyBucket(month=key))
            bucket.top_category = max(counts.items(), key=lambda kv: (kv[1], -_category_rank(kv[0])))[0]

        return [grouped[k] for k in sorted(grouped)]

    def get_category_stats(self) -> Dict[TopicCategory, int]:
        """Completed sessions per category among the most recent 500 sessions."""
        counts: Dict[TopicCategory, int] = {}
        for session in self.store.get_sessions(CATEGORY_WINDOW):
            if session.completed:
                counts[session.category] = counts.get(session.category, 0) + 1
        return counts

    def get_reading_streak(self) -> ReadingStreak:
        buckets = self.store.list_daily_buckets()
        active = {b.date for b in buckets if b.papers_read > 0}
        if not active:
            return ReadingStreak(current=0, longest=0)

        # today may still be empty without breaking the streak
        cursor = self.today()
        if cursor.isoformat() not in active:
            cursor -= timedelta(days=1)
        current = 0
        while cursor.isoformat() in active:
            current += 1
            cursor -= timedelta(days=1)

        longest = run = 0
        previous: Optional[date] = None
        for key in sorted(active):
            d = parse_day(key)
            run = run + 1 if previous is not None and d - previous == timedelta(days=1) else 1
            longest = max(longest, run)
            previous = d

        return ReadingStreak(current=current, longest=longest)

    def get_total_reading_stats(self) -> TotalReadingStats:
        days = self.get_daily_stats(TOTALS_WINDOW_DAYS)
        total_papers = sum(d.papers_read for d in days)
        total_minutes = sum(d.minutes for d in days)
        avg = round_half_up(total_minutes / total_papers) if total_papers > 0 else 0
        return TotalReadingStats(
            total_papers=total_papers,
            total_minutes=total_minutes,
            avg_minutes_per_paper=avg,
        )

    def get_overview(self) -> ReadingOverview:
        return ReadingOverview(
            totals=self.get_total_reading_stats(),
            streak=self.get_reading_streak(),
            category_breakdown=self.get_category_stats(),
            weekly=self.get_weekly_stats(),
            monthly=self.get_monthly_stats(),
        )


def _category_rank(category: TopicCategory) -> int:
    return list(TopicCategory).index(category)
