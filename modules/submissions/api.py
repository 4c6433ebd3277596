"""FastAPI routes for browsing and exporting checklist submissions."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, PlainTextResponse

from modules._infra.auth import require_admin
from utils.keys import make_staff_key
from utils.timefmt import to_datetime, today_range, week_range

from . import services
from .schemas import SubmissionPage, SubmissionRead

router = APIRouter(prefix="/api/submissions", tags=["submissions"])

EXPORT_PAGE_SIZE = 500


def _staff_key(staff_key: Optional[str], staff_a: Optional[str], staff_b: Optional[str]) -> Optional[str]:
    if staff_key:
        return staff_key
    if not staff_a or not staff_b or staff_a == staff_b:
        return None
    return make_staff_key(staff_a, staff_b)


def _parse_when(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    parsed = to_datetime(value)
    if parsed is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{name}: expected an ISO date or timestamp",
        )
    return parsed


class SubmissionFilters:
    """Query parameters shared by the listing and the CSV export."""

    def __init__(
        self,
        form_id: Optional[str] = Query(None),
        staff_key: Optional[str] = Query(None),
        staff_a: Optional[str] = Query(None),
        staff_b: Optional[str] = Query(None),
        created_from: Optional[str] = Query(None, description="inclusive"),
        created_to: Optional[str] = Query(None, description="exclusive"),
        quick: Optional[str] = Query(None, pattern="^(today|week)$"),
    ) -> None:
        self.form_id = form_id or None
        self.staff_key = _staff_key(staff_key, staff_a, staff_b)
        window: Tuple[Optional[datetime], Optional[datetime]] = (None, None)
        if quick == "today":
            window = today_range()
        elif quick == "week":
            window = week_range()
        self.created_from = _parse_when(created_from, "created_from") or window[0]
        self.created_to = _parse_when(created_to, "created_to") or window[1]

    def query(self, page_size: Optional[int], after: Optional[str]) -> SubmissionPage:
        return services.query_submissions(
            form_id=self.form_id,
            staff_key=self.staff_key,
            created_from=self.created_from,
            created_to=self.created_to,
            page_size=page_size,
            after=after,
        )


def _bad_cursor(after: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid_cursor", "cursor": after},
    )


@router.get("", response_model=SubmissionPage)
def list_submissions(
    filters: SubmissionFilters = Depends(),
    page_size: Optional[int] = Query(None, ge=1, le=500),
    after: Optional[str] = Query(None),
    _admin: dict = Depends(require_admin),
):
    try:
        return filters.query(page_size, after)
    except services.InvalidCursor:
        return _bad_cursor(after or "")


@router.get("/by-pair", response_model=List[SubmissionRead])
def list_by_pair(
    form_id: str = Query(...),
    date_key: str = Query(...),
    staff_key: Optional[str] = Query(None),
    staff_a: Optional[str] = Query(None),
    staff_b: Optional[str] = Query(None),
) -> List[SubmissionRead]:
    key = _staff_key(staff_key, staff_a, staff_b)
    if not key:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Choose two different staff members",
        )
    return services.list_existing_by_pair(form_id, key, date_key)


@router.get("/export.csv", response_class=PlainTextResponse)
def export_submissions(
    filters: SubmissionFilters = Depends(),
    _admin: dict = Depends(require_admin),
) -> PlainTextResponse:
    rows: List[SubmissionRead] = []
    after: Optional[str] = None
    while True:
        page = filters.query(EXPORT_PAGE_SIZE, after)
        rows.extend(page.items)
        if len(page.items) < EXPORT_PAGE_SIZE or page.cursor is None:
            break
        after = page.cursor
    stamp = datetime.now().date().isoformat()
    return PlainTextResponse(
        services.export_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=submissions-{stamp}.csv"},
    )
