"""FastAPI routes for the staff roster."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from modules._infra.auth import require_admin

from . import services
from .schemas import ActiveToggle, ImportResult, StaffCreate, StaffRead, StaffUpdate

router = APIRouter(prefix="/api/staff", tags=["staff"])


def _not_found(staff_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "staff_not_found", "id": staff_id},
    )


@router.get("", response_model=List[StaffRead])
def list_staff(
    active: Optional[bool] = Query(None),
    q: str = Query(""),
) -> List[StaffRead]:
    items = services.list_active_staff() if active else services.list_all_staff()
    return services.search_staff(items, q=q, only_active=bool(active))


@router.post("", response_model=StaffRead, status_code=status.HTTP_201_CREATED)
def create_staff(payload: StaffCreate, _admin: dict = Depends(require_admin)) -> StaffRead:
    staff_id = services.create_staff(payload.name.strip(), payload.active)
    return services.get_staff(staff_id)


@router.patch("/{staff_id}", response_model=StaffRead)
def update_staff(staff_id: str, payload: StaffUpdate, _admin: dict = Depends(require_admin)):
    try:
        item = services.get_staff(staff_id)
        if item is None:
            raise services.StaffNotFound(staff_id)
        if payload.name is not None:
            item = services.rename_staff(staff_id, payload.name.strip())
        if payload.active is not None:
            item = services.set_staff_active(staff_id, payload.active)
    except services.StaffNotFound:
        return _not_found(staff_id)
    return item


@router.post("/activate-all")
def activate_all(payload: ActiveToggle, _admin: dict = Depends(require_admin)) -> dict:
    changed = services.set_all_active(payload.active)
    return {"changed": changed, "active": payload.active}


@router.delete("/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_staff(staff_id: str, _admin: dict = Depends(require_admin)) -> Response:
    if not services.delete_staff(staff_id):
        return _not_found(staff_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/import", response_model=ImportResult)
async def import_staff(request: Request, _admin: dict = Depends(require_admin)):
    """Import pasted ``name,active`` lines or a JSON array (raw request body)."""
    text = (await request.body()).decode("utf-8", errors="replace")
    try:
        rows = services.parse_import_text(text)
    except services.StaffImportError as exc:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "invalid_import", "message": str(exc)},
        )
    if not rows:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"error": "invalid_import", "message": "Nothing to import or invalid format."},
        )
    count = services.import_staff(rows)
    return ImportResult(imported=count, items=services.list_all_staff())


@router.get("/export", response_class=PlainTextResponse)
def export_staff(_admin: dict = Depends(require_admin)) -> PlainTextResponse:
    return PlainTextResponse(
        services.export_csv(services.list_all_staff()),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=staff.csv"},
    )
