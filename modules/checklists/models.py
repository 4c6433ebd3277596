"""SQLAlchemy model for stored checklist form definitions."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from modules._infra.base import Base
from utils.timefmt import now_utc, to_naive_utc


def _utcnow() -> datetime:
    return to_naive_utc(now_utc())


class FormRecord(Base):
    __tablename__ = "checklist_forms"

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    title: Mapped[str] = mapped_column(String, default="")
    period: Mapped[str] = mapped_column(String(16), default="daily")
    body: Mapped[dict] = mapped_column(JSON, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)
