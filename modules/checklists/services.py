"""Storage of checklist form definitions."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import select

from modules._infra.repository import with_session

from .exceptions import FormNotFound, FormSchemaError
from .models import FormRecord
from .schema import FormDef
from .wire import dump_form, load_form

logger = logging.getLogger(__name__)


def _to_form(record: FormRecord) -> FormDef:
    return load_form(record.body or {}, form_id=record.id)


def fetch_form(form_id: str) -> Optional[FormDef]:
    """Return the stored form or ``None``.

    Stored bodies go through the same load pass as imports, so a corrupted
    row raises :class:`FormSchemaError` instead of reaching a runner.
    """

    with with_session() as session:
        record = session.get(FormRecord, form_id)
        if record is None:
            return None
        return _to_form(record)


def get_form(form_id: str) -> FormDef:
    form = fetch_form(form_id)
    if form is None:
        raise FormNotFound(form_id)
    return form


def list_forms() -> List[FormDef]:
    """All loadable forms ordered by id; unloadable rows are logged and skipped."""

    forms: List[FormDef] = []
    with with_session() as session:
        for record in session.scalars(select(FormRecord).order_by(FormRecord.id)):
            try:
                forms.append(_to_form(record))
            except FormSchemaError as exc:
                logger.warning("[checklists] skipping stored form %s: %s", record.id, exc)
    return forms


def upsert_form(form_id: str, data: Union[FormDef, Mapping[str, Any]]) -> FormDef:
    """Replace the stored definition for ``form_id`` as a whole."""

    if not form_id or not form_id.strip():
        raise FormSchemaError(["Form id is required"])
    form = data if isinstance(data, FormDef) else load_form(data, form_id=form_id)
    body = dump_form(form, include_id=False)
    with with_session() as session:
        record = session.get(FormRecord, form_id)
        if record is None:
            record = FormRecord(id=form_id)
            session.add(record)
        record.title = form.title
        record.period = form.period
        record.body = body
    logger.info("[checklists] saved form %s", form_id)
    return load_form(body, form_id=form_id)


def delete_form(form_id: str) -> bool:
    with with_session() as session:
        record = session.get(FormRecord, form_id)
        if record is None:
            return False
        session.delete(record)
    logger.info("[checklists] deleted form %s", form_id)
    return True


__all__ = ["fetch_form", "get_form", "list_forms", "upsert_form", "delete_form"]
