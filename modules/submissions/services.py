"""Submission storage: writes, pair lookups, sequence counters and queries."""

from __future__ import annotations

import csv
import io
import json
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Union

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from modules._infra.repository import with_session
from modules.checklists.runner import SubmissionRecord
from utils import app_settings
from utils.timefmt import to_naive_utc

from .models import SequenceCounter, Submission
from .schemas import SubmissionPage, SubmissionRead

logger = logging.getLogger(__name__)

CSV_BASE_COLUMNS = ("id", "createdAt", "formId", "period", "dateKey", "staffA", "staffB", "sequence")


class InvalidCursor(ValueError):
    """Raised when a page cursor does not name a stored submission."""


def _read(row: Submission) -> SubmissionRead:
    return SubmissionRead(
        id=row.id,
        form_id=row.form_id,
        period=row.period,
        date_key=row.date_key,
        staff=[row.staff_a, row.staff_b],
        staff_key=row.staff_key,
        sequence=row.sequence,
        answers=dict(row.answers or {}),
        created_at=row.created_at.replace(tzinfo=timezone.utc),
    )


def create_submission(record: Union[SubmissionRecord, Mapping[str, Any]]) -> SubmissionRead:
    """Store a submit record and return it with its generated id."""

    if not isinstance(record, SubmissionRecord):
        record = SubmissionRecord.model_validate(record)
    row = Submission(
        id=uuid.uuid4().hex,
        form_id=record.form_id,
        period=record.period,
        date_key=record.date_key,
        staff_a=record.staff[0],
        staff_b=record.staff[1],
        staff_key=record.staff_key,
        sequence=record.sequence,
        answers=record.answers,
        created_at=to_naive_utc(record.created_at),
    )
    with with_session() as session:
        session.add(row)
        session.flush()
        result = _read(row)
    logger.info(
        "[submissions] stored %s for %s %s (%s)",
        result.id,
        record.form_id,
        record.date_key,
        record.staff_key,
    )
    return result


def _pair_query(form_id: str, staff_key: str, date_key: str):
    return select(Submission).where(
        Submission.form_id == form_id,
        Submission.staff_key == staff_key,
        Submission.date_key == date_key,
    )


def find_existing_by_pair(form_id: str, staff_key: str, date_key: str) -> Optional[SubmissionRead]:
    with with_session() as session:
        row = session.scalars(
            _pair_query(form_id, staff_key, date_key).order_by(Submission.created_at, Submission.id).limit(1)
        ).first()
        return _read(row) if row is not None else None


def list_existing_by_pair(form_id: str, staff_key: str, date_key: str) -> List[SubmissionRead]:
    """Every submission for the pair and period, oldest first."""

    with with_session() as session:
        rows = session.scalars(
            _pair_query(form_id, staff_key, date_key).order_by(Submission.created_at, Submission.id)
        )
        return [_read(r) for r in rows]


def counter_id(form_id: str, date_key: str, staff_key: str) -> str:
    return f"{form_id}__{date_key}__{staff_key}"


def next_sequence(form_id: str, staff_key: str, date_key: str) -> int:
    """Allocate the next 1-based sequence number for the pair and period."""

    cid = counter_id(form_id, date_key, staff_key)
    for _attempt in range(2):
        try:
            with with_session() as session:
                result = session.execute(
                    update(SequenceCounter)
                    .where(SequenceCounter.id == cid)
                    .values(value=SequenceCounter.value + 1)
                )
                if result.rowcount:
                    value = session.scalar(select(SequenceCounter.value).where(SequenceCounter.id == cid))
                else:
                    session.add(SequenceCounter(id=cid, value=1))
                    session.flush()
                    value = 1
            return int(value)
        except IntegrityError:
            # another writer created the counter first
            logger.debug("[submissions] counter %s created concurrently; retrying", cid)
    raise RuntimeError(f"Could not allocate a sequence for {cid}")


def sequence_allocator(form_id: str, staff_key: str, date_key: str) -> Callable[[], Awaitable[int]]:
    """Bind :func:`next_sequence` for a runner's ``get_next_sequence`` hook."""

    async def allocate() -> int:
        return await run_in_threadpool(next_sequence, form_id, staff_key, date_key)

    return allocate


async def persist_record(record: SubmissionRecord) -> SubmissionRead:
    """Runner ``persist`` hook; the write runs in the worker threadpool."""
    return await run_in_threadpool(create_submission, record)


def query_submissions(
    *,
    form_id: Optional[str] = None,
    staff_key: Optional[str] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    page_size: Optional[int] = None,
    after: Optional[str] = None,
) -> SubmissionPage:
    """Newest-first page of submissions.

    ``created_from`` is inclusive and ``created_to`` exclusive.  ``after`` is
    the ``cursor`` of a previous page; the returned cursor is ``None`` when
    the page came back empty.
    """

    size = page_size if page_size and page_size > 0 else app_settings.page_size()
    stmt = select(Submission)
    if form_id:
        stmt = stmt.where(Submission.form_id == form_id)
    if staff_key:
        stmt = stmt.where(Submission.staff_key == staff_key)
    if created_from is not None:
        stmt = stmt.where(Submission.created_at >= to_naive_utc(created_from))
    if created_to is not None:
        stmt = stmt.where(Submission.created_at < to_naive_utc(created_to))

    with with_session() as session:
        if after:
            anchor = session.get(Submission, after)
            if anchor is None:
                raise InvalidCursor(after)
            stmt = stmt.where(
                or_(
                    Submission.created_at < anchor.created_at,
                    and_(Submission.created_at == anchor.created_at, Submission.id < anchor.id),
                )
            )
        stmt = stmt.order_by(Submission.created_at.desc(), Submission.id.desc()).limit(size)
        items = [_read(r) for r in session.scalars(stmt)]
    return SubmissionPage(items=items, cursor=items[-1].id if items else None)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def export_csv(rows: Iterable[SubmissionRead]) -> str:
    """CSV of ``rows`` with one column per answer key (sorted union)."""

    rows = list(rows)
    answer_keys = sorted({key for r in rows for key in (r.answers or {})})
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([*CSV_BASE_COLUMNS, *answer_keys])
    for r in rows:
        created = r.created_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        staff_a = r.staff[0] if len(r.staff) > 0 else ""
        staff_b = r.staff[1] if len(r.staff) > 1 else ""
        base = [r.id, created, r.form_id, r.period, r.date_key, staff_a, staff_b, _cell(r.sequence)]
        writer.writerow(base + [_cell((r.answers or {}).get(k)) for k in answer_keys])
    return buf.getvalue()


__all__ = [
    "CSV_BASE_COLUMNS",
    "InvalidCursor",
    "create_submission",
    "find_existing_by_pair",
    "list_existing_by_pair",
    "counter_id",
    "next_sequence",
    "sequence_allocator",
    "persist_record",
    "query_submissions",
    "export_csv",
]
