"""SQLAlchemy models for checklist submissions and their sequence counters."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from modules._infra.base import Base


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_pair", "form_id", "staff_key", "date_key"),
        Index("ix_submissions_created", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    form_id: Mapped[str] = mapped_column(String(80), index=True)
    period: Mapped[str] = mapped_column(String(16))
    date_key: Mapped[str] = mapped_column(String(16))
    staff_a: Mapped[str] = mapped_column(String)
    staff_b: Mapped[str] = mapped_column(String)
    staff_key: Mapped[str] = mapped_column(String, index=True)
    sequence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    answers: Mapped[dict] = mapped_column(JSON, default=dict)
    # naive UTC
    created_at: Mapped[datetime] = mapped_column(DateTime)


class SequenceCounter(Base):
    __tablename__ = "submission_counters"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0)
