"""FastAPI routes for checklist forms, the builder preview and submits."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from modules._infra.auth import require_admin
from modules.submissions import services as submissions
from utils.keys import date_key_for, make_staff_key

from . import services
from .exceptions import FormSchemaError, SubmissionFailed, SubmissionInvalid
from .runner import FormRunner
from .wire import dump_form, export_json, import_json, load_form

router = APIRouter(prefix="/api/checklists", tags=["checklists"])


class ImportRequest(BaseModel):
    text: str
    form_id: Optional[str] = None


class PreviewRequest(BaseModel):
    form: Dict[str, Any]
    answers: Dict[str, Any] = Field(default_factory=dict)


class SubmitRequest(BaseModel):
    staff: List[str] = Field(min_length=2, max_length=2)
    answers: Dict[str, Any] = Field(default_factory=dict)
    on: Optional[date] = None


def _schema_error(exc: FormSchemaError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid_form", "messages": exc.messages},
    )


def _form_not_found(form_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "form_not_found", "id": form_id},
    )


def _pair(staff_a: str, staff_b: str) -> Optional[str]:
    a, b = (staff_a or "").strip(), (staff_b or "").strip()
    if not a or not b or a == b:
        return None
    return make_staff_key(a, b)


def _pair_error() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "staff_pair_required", "message": "Choose two different staff members."},
    )


def _stored_form(form_id: str):
    """Return (form, None) or (None, error response) for a stored form."""
    try:
        form = services.fetch_form(form_id)
    except FormSchemaError as exc:
        return None, _schema_error(exc)
    if form is None:
        return None, _form_not_found(form_id)
    return form, None


@router.get("/forms")
def list_forms() -> List[Dict[str, Any]]:
    return [dump_form(f) for f in services.list_forms()]


@router.get("/forms/{form_id}")
def get_form(form_id: str):
    form, error = _stored_form(form_id)
    if error is not None:
        return error
    return dump_form(form)


@router.put("/forms/{form_id}")
def put_form(form_id: str, payload: Dict[str, Any], _admin: dict = Depends(require_admin)):
    try:
        form = services.upsert_form(form_id, payload)
    except FormSchemaError as exc:
        return _schema_error(exc)
    return dump_form(form)


@router.delete("/forms/{form_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_form(form_id: str, _admin: dict = Depends(require_admin)) -> Response:
    if not services.delete_form(form_id):
        return _form_not_found(form_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/forms/{form_id}/export", response_class=PlainTextResponse)
def export_form(form_id: str, _admin: dict = Depends(require_admin)):
    form, error = _stored_form(form_id)
    if error is not None:
        return error
    return PlainTextResponse(
        export_json(form),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={form_id}.json"},
    )


@router.post("/forms/import")
def import_form(payload: ImportRequest, _admin: dict = Depends(require_admin)):
    """Validate pasted JSON; with ``form_id`` the form is also saved."""
    try:
        form = import_json(payload.text, form_id=payload.form_id)
        if payload.form_id:
            form = services.upsert_form(payload.form_id, form)
    except FormSchemaError as exc:
        return _schema_error(exc)
    return dump_form(form, include_id=bool(payload.form_id))


@router.post("/preview")
def preview(payload: PreviewRequest, _admin: dict = Depends(require_admin)):
    try:
        form = load_form(payload.form, form_id="preview")
    except FormSchemaError as exc:
        return _schema_error(exc)
    runner = FormRunner(form)
    skipped = runner.apply(payload.answers)
    return {
        "visible": [f.id for f in runner.visible_fields()],
        "answers": runner.snapshot(),
        "errors": runner.validate(),
        "skipped": skipped,
    }


@router.get("/forms/{form_id}/context")
def run_context(
    form_id: str,
    staff_a: str = Query(""),
    staff_b: str = Query(""),
    on: Optional[date] = Query(None),
):
    """Date key, staff key and earlier submissions for a pair."""
    form, error = _stored_form(form_id)
    if error is not None:
        return error
    staff_key = _pair(staff_a, staff_b)
    if staff_key is None:
        return _pair_error()
    date_key = date_key_for(form.period, on)
    existing = submissions.list_existing_by_pair(form_id, staff_key, date_key)
    return {
        "formId": form_id,
        "dateKey": date_key,
        "staffKey": staff_key,
        "existing": [s.model_dump(by_alias=True, mode="json") for s in existing],
    }


@router.post("/forms/{form_id}/submit", status_code=status.HTTP_201_CREATED)
async def submit_form(form_id: str, payload: SubmitRequest):
    form, error = _stored_form(form_id)
    if error is not None:
        return error
    staff_a, staff_b = (s.strip() for s in payload.staff)
    staff_key = _pair(staff_a, staff_b)
    if staff_key is None:
        return _pair_error()
    date_key = date_key_for(form.period, payload.on)

    stored: Dict[str, Any] = {}

    async def persist(record):
        stored["row"] = await submissions.persist_record(record)

    runner = FormRunner(
        form,
        staff=(staff_a, staff_b),
        staff_key=staff_key,
        date_key=date_key,
        persist=persist,
        get_next_sequence=submissions.sequence_allocator(form_id, staff_key, date_key),
    )
    skipped = runner.apply(payload.answers)
    try:
        record = await runner.submit()
    except SubmissionInvalid as exc:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "invalid_submission", "errors": exc.errors},
        )
    except SubmissionFailed as exc:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "submission_failed", "message": str(exc)},
        )
    body = record.to_document()
    body["id"] = stored["row"].id
    body["skipped"] = skipped
    return body
