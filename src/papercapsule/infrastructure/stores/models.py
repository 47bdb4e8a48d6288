from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from sqlalchemy import BigInteger, Boolean, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _loads(raw: str, default: Any) -> Any:
    try:
        return json.loads(raw) if raw else default
    except ValueError:
        return default


class CacheEntryModel(Base):
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    payload_json: Mapped[str] = mapped_column(Text, default="null")
    created_at: Mapped[int] = mapped_column(BigInteger, index=True)
    ttl_ms: Mapped[int] = mapped_column(BigInteger)


class SavedPaperModel(Base):
    __tablename__ = "saved_papers"

    id: Mapped[str] = mapped_column(String(256), primary_key=True)
    paper_json: Mapped[str] = mapped_column(Text, default="{}")
    saved_at: Mapped[int] = mapped_column(BigInteger, index=True)

    # denormalized at save time, preserved across re-saves
    notes_json: Mapped[str] = mapped_column(Text, default="[]")
    highlights_json: Mapped[str] = mapped_column(Text, default="[]")

    last_read_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    reading_progress: Mapped[float] = mapped_column(Float, default=0.0)

    def get_paper(self) -> Dict[str, Any]:
        return _loads(self.paper_json, {})

    def get_notes(self) -> List[Dict[str, Any]]:
        return _loads(self.notes_json, [])

    def get_highlights(self) -> List[Dict[str, Any]]:
        return _loads(self.highlights_json, [])


class NoteModel(Base):
    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    paper_id: Mapped[str] = mapped_column(String(256), index=True)
    content: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[int] = mapped_column(BigInteger, index=True)
    updated_at: Mapped[int] = mapped_column(BigInteger)


class HighlightModel(Base):
    __tablename__ = "highlights"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    paper_id: Mapped[str] = mapped_column(String(256), index=True)
    text: Mapped[str] = mapped_column(Text, default="")
    color: Mapped[str] = mapped_column(String(16), default="yellow")
    start_offset: Mapped[int] = mapped_column(Integer, default=0)
    end_offset: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[int] = mapped_column(BigInteger)


class ReadingSessionModel(Base):
    __tablename__ = "reading_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    paper_id: Mapped[str] = mapped_column(String(256), index=True)
    title: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String(64), index=True)

    start_time: Mapped[int] = mapped_column(BigInteger, index=True)
    end_time: Mapped[int] = mapped_column(BigInteger, default=0)
    duration_seconds: Mapped[int] = mapped_column(Integer, default=0)
    scroll_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)


class DailyStatModel(Base):
    __tablename__ = "daily_stats"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)
    papers_read: Mapped[int] = mapped_column(Integer, default=0)
    minutes: Mapped[int] = mapped_column(Integer, default=0)
