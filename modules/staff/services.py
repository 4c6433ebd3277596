"""Staff roster storage and the admin import/export helpers."""

from __future__ import annotations

import csv
import io
import json
import logging
import re
import uuid
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy import select, update

from modules._infra.repository import with_session

from .models import StaffMember
from .schemas import StaffImportRow, StaffRead

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9_]")
_TRUE = re.compile(r"^true$", re.IGNORECASE)


class StaffNotFound(KeyError):
    """Raised when a staff id has no row."""


class StaffImportError(ValueError):
    """Raised when pasted import text cannot be parsed."""


def staff_id_for(name: str) -> str:
    """Slug id derived from a name: ``"Pat O'Neil"`` -> ``"pat_oneil"``."""

    slug = _NON_SLUG.sub("", _WS.sub("_", name.lower().strip()))[:40]
    return slug or uuid.uuid4().hex


def _read(member: StaffMember) -> StaffRead:
    return StaffRead.model_validate(member)


def list_active_staff() -> List[StaffRead]:
    with with_session() as session:
        rows = session.scalars(
            select(StaffMember).where(StaffMember.active == True).order_by(StaffMember.name)  # noqa: E712
        )
        return [_read(m) for m in rows]


def list_all_staff() -> List[StaffRead]:
    with with_session() as session:
        rows = session.scalars(select(StaffMember).order_by(StaffMember.name))
        return [_read(m) for m in rows]


def get_staff(staff_id: str) -> Optional[StaffRead]:
    with with_session() as session:
        member = session.get(StaffMember, staff_id)
        return _read(member) if member is not None else None


def upsert_staff(staff_id: str, data: Mapping[str, Any]) -> StaffRead:
    """Create or merge ``data`` into the row ``staff_id``."""

    with with_session() as session:
        member = session.get(StaffMember, staff_id)
        if member is None:
            member = StaffMember(id=staff_id, name=str(data.get("name", "")), active=True)
            session.add(member)
        if "name" in data and data["name"] is not None:
            member.name = str(data["name"])
        if "active" in data and data["active"] is not None:
            member.active = bool(data["active"])
        session.flush()
        return _read(member)


def create_staff(name: str, active: bool = True) -> str:
    """Insert (or overwrite) the row for ``name`` and return its id."""

    staff_id = staff_id_for(name)
    with with_session() as session:
        session.merge(StaffMember(id=staff_id, name=name, active=active))
    logger.info("[staff] created %s (%s)", staff_id, name)
    return staff_id


def _require(session, staff_id: str) -> StaffMember:
    member = session.get(StaffMember, staff_id)
    if member is None:
        raise StaffNotFound(staff_id)
    return member


def rename_staff(staff_id: str, new_name: str) -> StaffRead:
    with with_session() as session:
        member = _require(session, staff_id)
        member.name = new_name
        session.flush()
        return _read(member)


def set_staff_active(staff_id: str, active: bool) -> StaffRead:
    with with_session() as session:
        member = _require(session, staff_id)
        member.active = active
        session.flush()
        return _read(member)


def set_all_active(active: bool = True) -> int:
    """Flip every member whose flag differs; returns the number changed."""

    with with_session() as session:
        result = session.execute(
            update(StaffMember).where(StaffMember.active != active).values(active=active)
        )
        changed = result.rowcount or 0
    logger.info("[staff] set %d member(s) active=%s", changed, active)
    return changed


def delete_staff(staff_id: str) -> bool:
    with with_session() as session:
        member = session.get(StaffMember, staff_id)
        if member is None:
            return False
        session.delete(member)
    logger.info("[staff] deleted %s", staff_id)
    return True


def import_staff(rows: Iterable[Union[StaffImportRow, Mapping[str, Any]]]) -> int:
    """Upsert each row by its name slug; returns the number of rows written."""

    count = 0
    with with_session() as session:
        for row in rows:
            item = row if isinstance(row, StaffImportRow) else StaffImportRow.model_validate(row)
            staff_id = staff_id_for(item.name)
            member = session.get(StaffMember, staff_id)
            if member is None:
                session.add(StaffMember(id=staff_id, name=item.name, active=item.active))
            else:
                member.name = item.name
                member.active = item.active
            session.flush()
            count += 1
    logger.info("[staff] imported %d row(s)", count)
    return count


def parse_import_text(text: str) -> List[StaffImportRow]:
    """Parse pasted import text.

    Accepts a JSON array of ``{name, active}`` objects (entries without a
    string name are dropped) or ``name,active`` lines where ``active`` is
    true unless it reads otherwise.  A leading ``name,active`` header line
    is skipped.
    """

    stripped = (text or "").strip()
    if stripped.startswith("["):
        try:
            data = json.loads(stripped)
        except ValueError as exc:
            raise StaffImportError(f"Invalid JSON: {exc}") from exc
        rows = []
        for entry in data:
            if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str) or not entry["name"]:
                continue
            try:
                rows.append(StaffImportRow.model_validate(entry))
            except ValidationError as exc:
                raise StaffImportError(str(exc)) from exc
        return rows

    rows = []
    for index, line in enumerate(stripped.splitlines()):
        line = line.strip()
        if not line:
            continue
        parts = [p.strip() for p in line.split(",")]
        name = parts[0]
        active_raw = parts[1] if len(parts) > 1 else "true"
        if index == 0 and name.lower() == "name" and active_raw.lower() == "active":
            continue
        if not name:
            continue
        rows.append(StaffImportRow(name=name, active=bool(_TRUE.match(active_raw))))
    return rows


def export_csv(items: Iterable[StaffRead]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["name", "active"])
    for s in items:
        writer.writerow([s.name, "true" if s.active else "false"])
    return buf.getvalue()


def search_staff(items: Iterable[StaffRead], q: str = "", only_active: bool = False) -> List[StaffRead]:
    needle = (q or "").strip().lower()
    return [
        s
        for s in items
        if (not only_active or s.active) and (not needle or needle in s.name.lower())
    ]


__all__ = [
    "StaffNotFound",
    "StaffImportError",
    "staff_id_for",
    "list_active_staff",
    "list_all_staff",
    "get_staff",
    "upsert_staff",
    "create_staff",
    "rename_staff",
    "set_staff_active",
    "set_all_active",
    "delete_staff",
    "import_staff",
    "parse_import_text",
    "export_csv",
    "search_staff",
]
