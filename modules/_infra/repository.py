"""Database routing helpers shared by the checklist, staff and submission modules."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from modules._infra.base import Base
# Import model modules so tables are registered on Base metadata
import modules.checklists.models  # noqa: F401
import modules.staff.models  # noqa: F401
import modules.submissions.models  # noqa: F401
from utils import app_settings

logger = logging.getLogger(__name__)

_engine_cache: Dict[str, Any] = {}


def get_engine() -> Engine:
    """Return an engine bound to the configured checklist database."""
    url = app_settings.database_url()
    engine = _engine_cache.get(url)
    if engine is None:
        app_settings.data_dir().mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, connect_args={"check_same_thread": False})
        Base.metadata.create_all(engine)
        logger.debug("[db] opened %s", url)
        _engine_cache[url] = engine
    return engine


@contextmanager
def with_session() -> Iterator[Session]:
    engine = get_engine()
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine_cache() -> None:
    """Dispose cached engines; used when the data directory changes."""
    for engine in _engine_cache.values():
        engine.dispose()
    _engine_cache.clear()


__all__ = ["get_engine", "with_session", "reset_engine_cache"]
