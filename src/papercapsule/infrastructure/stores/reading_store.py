"""
Durable store for a reader's activity: saved-offline papers, notes,
highlights, reading sessions and per-day reading buckets.

Every public operation runs in its own transaction. Storage failures are
logged and re-raised as ``ReadingStoreError``; unknown ids are no-ops.
"""

from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from papercapsule.domain.paper import Paper, TopicCategory
from papercapsule.domain.reading import (
    COMPLETION_THRESHOLD,
    DailyBucket,
    Highlight,
    HighlightColor,
    Note,
    ReadingSession,
    SavedPaper,
    now_ms,
)
from papercapsule.errors import ReadingStoreError
from papercapsule.infrastructure.stores.models import (
    Base,
    DailyStatModel,
    HighlightModel,
    NoteModel,
    ReadingSessionModel,
    SavedPaperModel,
)
from papercapsule.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from papercapsule.utils.logging_config import LogFiles, Logger

SessionListener = Callable[[ReadingSession], None]


def _new_id(prefix: str, ts: int) -> str:
    return f"{prefix}-{ts}-{uuid.uuid4().hex[:9]}"


class ReadingEventStore:
    """Reading-activity persistence. Initialises itself on first use."""

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        on_session_end: Optional[SessionListener] = None,
    ):
        self.db_url = db_url or get_db_url()
        self.clock = clock or now_ms
        self.on_session_end = on_session_end
        self._provider: Optional[SessionProvider] = None

    def initialize(self) -> SessionProvider:
        """Create the engine and schema once; later calls return the same handle."""
        if self._provider is None:
            try:
                provider = SessionProvider(self.db_url)
                Base.metadata.create_all(provider.engine)
            except SQLAlchemyError as exc:
                Logger.error(f"Reading store init failed: {exc}", file=LogFiles.READING)
                raise ReadingStoreError("Reading store could not be initialised") from exc
            self._provider = provider
            Logger.info("Reading store initialised", file=LogFiles.READING)
        return self._provider

    @property
    def initialized(self) -> bool:
        return self._provider is not None

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        provider = self.initialize()
        try:
            with provider.session() as session:
                yield session
        except SQLAlchemyError as exc:
            Logger.error(f"{action} failed: {exc}", file=LogFiles.READING)
            raise ReadingStoreError(f"{action} failed") from exc

    # ------------------------------------------------------------------
    # Reading sessions
    # ------------------------------------------------------------------

    def start_session(
        self, paper_id: str, title: str, category: Union[TopicCategory, str]
    ) -> str:
        ts = self.clock()
        row = ReadingSessionModel(
            id=_new_id("session", ts),
            paper_id=paper_id,
            title=title or "",
            category=TopicCategory.parse(category).value,
            start_time=ts,
            end_time=0,
            duration_seconds=0,
            scroll_percentage=0.0,
            completed=False,
        )
        with self._session("start_session") as session:
            session.add(row)
            session.commit()
        return row.id

    def end_session(
        self, session_id: str, scroll_percentage: float, duration_seconds: int
    ) -> Optional[ReadingSession]:
        """Close an open session and feed the daily bucket; ``None`` if nothing to close."""
        scroll = min(100.0, max(0.0, float(scroll_percentage)))
        duration = max(0, int(duration_seconds))

        with self._session("end_session") as session:
            row = session.get(ReadingSessionModel, session_id)
            if row is None:
                Logger.warning(f"end_session: unknown session {session_id}", file=LogFiles.READING)
                return None
            if row.end_time:
                Logger.warning(f"end_session: {session_id} already ended", file=LogFiles.READING)
                return None
            row.end_time = self.clock()
            row.duration_seconds = duration
            row.scroll_percentage = scroll
            row.completed = scroll >= COMPLETION_THRESHOLD
            session.commit()
            ended = self._to_session(row)

        if self.on_session_end is not None:
            self.on_session_end(ended)
        return ended

    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        with self._session("get_session") as session:
            row = session.get(ReadingSessionModel, session_id)
            return self._to_session(row) if row else None

    def get_sessions(self, limit: Optional[int] = 50, *, since: Optional[int] = None) -> List[ReadingSession]:
        """Sessions with a recorded duration, newest start first."""
        stmt = (
            select(ReadingSessionModel)
            .where(ReadingSessionModel.duration_seconds > 0)
            .order_by(ReadingSessionModel.start_time.desc())
        )
        if since is not None:
            stmt = stmt.where(ReadingSessionModel.start_time >= since)
        if limit is not None:
            stmt = stmt.limit(max(0, int(limit)))
        with self._session("get_sessions") as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_session(r) for r in rows]

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def add_note(self, paper_id: str, content: str) -> Note:
        ts = self.clock()
        note = Note(id=_new_id("note", ts), paper_id=paper_id, content=content, created_at=ts, updated_at=ts)
        with self._session("add_note") as session:
            session.add(NoteModel(**note.to_dict()))
            session.commit()
        return note

    def update_note(self, note_id: str, content: str) -> Optional[Note]:
        with self._session("update_note") as session:
            row = session.get(NoteModel, note_id)
            if row is None:
                return None
            row.content = content
            row.updated_at = self.clock()
            session.commit()
            return self._to_note(row)

    def delete_note(self, note_id: str) -> bool:
        with self._session("delete_note") as session:
            result = session.execute(delete(NoteModel).where(NoteModel.id == note_id))
            session.commit()
            return bool(result.rowcount)

    def get_notes(self, paper_id: str) -> List[Note]:
        """Notes for a paper, newest first."""
        with self._session("get_notes") as session:
            rows = (
                session.execute(
                    select(NoteModel)
                    .where(NoteModel.paper_id == paper_id)
                    .order_by(NoteModel.created_at.desc())
                )
                .scalars()
                .all()
            )
            return [self._to_note(r) for r in rows]

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------

    def add_highlight(
        self,
        paper_id: str,
        text: str,
        color: Union[HighlightColor, str],
        start_offset: int,
        end_offset: int,
    ) -> Highlight:
        ts = self.clock()
        highlight = Highlight(
            id=_new_id("highlight", ts),
            paper_id=paper_id,
            text=text,
            color=HighlightColor(color),
            start_offset=int(start_offset),
            end_offset=int(end_offset),
            created_at=ts,
        )
        with self._session("add_highlight") as session:
            session.add(HighlightModel(**highlight.to_dict()))
            session.commit()
        return highlight

    def delete_highlight(self, highlight_id: str) -> bool:
        with self._session("delete_highlight") as session:
            result = session.execute(delete(HighlightModel).where(HighlightModel.id == highlight_id))
            session.commit()
            return bool(result.rowcount)

    def get_highlights(self, paper_id: str) -> List[Highlight]:
        with self._session("get_highlights") as session:
            rows = (
                session.execute(
                    select(HighlightModel)
                    .where(HighlightModel.paper_id == paper_id)
                    .order_by(HighlightModel.created_at.asc())
                )
                .scalars()
                .all()
            )
            return [self._to_highlight(r) for r in rows]

    # ------------------------------------------------------------------
    # Saved-offline papers
    # ------------------------------------------------------------------

    def save_offline(self, paper: Paper) -> SavedPaper:
        """Upsert the paper payload, keeping notes, highlights and progress already saved."""
        with self._session("save_offline") as session:
            row = session.get(SavedPaperModel, paper.id)
            if row is None:
                row = SavedPaperModel(
                    id=paper.id,
                    notes_json="[]",
                    highlights_json="[]",
                    last_read_at=None,
                    reading_progress=0.0,
                )
                session.add(row)
            row.paper_json = json.dumps(paper.to_dict(), ensure_ascii=False)
            row.saved_at = self.clock()
            session.commit()
            return self._to_saved(row)

    def remove_saved_paper(self, paper_id: str) -> bool:
        with self._session("remove_saved_paper") as session:
            result = session.execute(delete(SavedPaperModel).where(SavedPaperModel.id == paper_id))
            session.commit()
            return bool(result.rowcount)

    def get_saved_paper(self, paper_id: str) -> Optional[SavedPaper]:
        with self._session("get_saved_paper") as session:
            row = session.get(SavedPaperModel, paper_id)
            return self._to_saved(row) if row else None

    def list_saved_papers(self) -> List[SavedPaper]:
        with self._session("list_saved_papers") as session:
            rows = (
                session.execute(select(SavedPaperModel).order_by(SavedPaperModel.saved_at.desc()))
                .scalars()
                .all()
            )
            return [self._to_saved(r) for r in rows]

    def is_saved_offline(self, paper_id: str) -> bool:
        return self.get_saved_paper(paper_id) is not None

    def update_progress(self, paper_id: str, progress: float) -> Optional[SavedPaper]:
        """Raise stored progress to ``progress`` (never lowers it); no-op for unsaved papers."""
        with self._session("update_progress") as session:
            row = session.get(SavedPaperModel, paper_id)
            if row is None:
                return None
            value = min(100.0, max(0.0, float(progress)))
            row.reading_progress = max(float(row.reading_progress or 0.0), value)
            row.last_read_at = self.clock()
            session.commit()
            return self._to_saved(row)

    # ------------------------------------------------------------------
    # Daily buckets
    # ------------------------------------------------------------------

    def get_daily_bucket(self, date: str) -> Optional[DailyBucket]:
        with self._session("get_daily_bucket") as session:
            row = session.get(DailyStatModel, date)
            return self._to_bucket(row) if row else None

    def put_daily_bucket(self, bucket: DailyBucket) -> None:
        with self._session("put_daily_bucket") as session:
            row = session.get(DailyStatModel, bucket.date)
            if row is None:
                row = DailyStatModel(date=bucket.date)
                session.add(row)
            row.papers_read = int(bucket.papers_read)
            row.minutes = int(bucket.minutes)
            session.commit()

    def increment_daily_bucket(self, date: str, *, papers_read: int = 0, minutes: int = 0) -> DailyBucket:
        """Add to a day's bucket in one transaction, creating it when missing."""
        with self._session("increment_daily_bucket") as session:
            row = session.get(DailyStatModel, date)
            if row is None:
                row = DailyStatModel(date=date, papers_read=0, minutes=0)
                session.add(row)
            row.papers_read = int(row.papers_read or 0) + int(papers_read)
            row.minutes = int(row.minutes or 0) + int(minutes)
            session.commit()
            return self._to_bucket(row)

    def list_daily_buckets(self, since: Optional[str] = None) -> List[DailyBucket]:
        """Buckets in ascending date order, optionally from ``since`` (inclusive)."""
        stmt = select(DailyStatModel).order_by(DailyStatModel.date.asc())
        if since is not None:
            stmt = stmt.where(DailyStatModel.date >= since)
        with self._session("list_daily_buckets") as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_bucket(r) for r in rows]

    # ------------------------------------------------------------------

    def clear_all(self) -> None:
        with self._session("clear_all") as session:
            for model in (SavedPaperModel, NoteModel, HighlightModel, ReadingSessionModel, DailyStatModel):
                session.execute(delete(model))
            session.commit()
        Logger.info("Reading store cleared", file=LogFiles.READING)

    def close(self) -> None:
        if self._provider is not None:
            self._provider.engine.dispose()
            self._provider = None

    @staticmethod
    def _to_session(row: ReadingSessionModel) -> ReadingSession:
        return ReadingSession(
            id=row.id,
            paper_id=row.paper_id,
            title=row.title or "",
            category=TopicCategory.parse(row.category),
            start_time=int(row.start_time),
            end_time=int(row.end_time or 0),
            duration_seconds=int(row.duration_seconds or 0),
            scroll_percentage=float(row.scroll_percentage or 0.0),
            completed=bool(row.completed),
        )

    @staticmethod
    def _to_note(row: NoteModel) -> Note:
        return Note(
            id=row.id,
            paper_id=row.paper_id,
            content=row.content or "",
            created_at=int(row.created_at),
            updated_at=int(row.updated_at),
        )

    @staticmethod
    def _to_highlight(row: HighlightModel) -> Highlight:
        return Highlight(
            id=row.id,
            paper_id=row.paper_id,
            text=row.text or "",
            color=HighlightColor(row.color),
            start_offset=int(row.start_offset or 0),
            end_offset=int(row.end_offset or 0),
            created_at=int(row.created_at),
        )

    @staticmethod
    def _to_saved(row: SavedPaperModel) -> SavedPaper:
        return SavedPaper(
            id=row.id,
            paper=Paper.from_dict(row.get_paper()),
            saved_at=int(row.saved_at),
            notes=[Note.from_dict(n) for n in row.get_notes()],
            highlights=[Highlight.from_dict(h) for h in row.get_highlights()],
            last_read_at=int(row.last_read_at) if row.last_read_at is not None else None,
            reading_progress=float(row.reading_progress or 0.0),
        )

    @staticmethod
    def _to_bucket(row: DailyStatModel) -> DailyBucket:
        return DailyBucket(date=row.date, papers_read=int(row.papers_read or 0), minutes=int(row.minutes or 0))
