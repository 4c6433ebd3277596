"""Load and dump form definitions in their JSON wire format.

:func:`load_form` is the single gate between stored / imported JSON and the
runner: it validates the shape with the pydantic models in
:mod:`.schema` and raises :class:`FormSchemaError` with readable messages.
Duplicate field ids and conditions that reference unknown fields are logged
but do not block loading.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from .conditions import referenced_fields
from .exceptions import FormSchemaError
from .schema import FormDef

logger = logging.getLogger(__name__)


def _format_errors(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def lint_form(form: FormDef) -> List[str]:
    """Return warnings about a structurally valid form."""

    warnings: List[str] = []
    seen: Dict[str, int] = {}
    for f in form.iter_fields():
        seen[f.id] = seen.get(f.id, 0) + 1
    for field_id, count in seen.items():
        if count > 1:
            warnings.append(f"duplicate field id {field_id!r} ({count} times)")
    for f in form.iter_fields():
        for ref in sorted(referenced_fields(f.condition())):
            if ref not in seen:
                warnings.append(f"field {f.id!r} shows on unknown field {ref!r}")
    return warnings


def load_form(data: Union[str, bytes, Mapping[str, Any]], form_id: Optional[str] = None) -> FormDef:
    """Validate ``data`` and return a :class:`FormDef`.

    ``form_id`` overrides any ``id`` carried in the payload; stored bodies
    are keyed externally.
    """

    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as exc:
            raise FormSchemaError([f"Invalid JSON: {exc}"]) from exc
    if not isinstance(data, Mapping):
        raise FormSchemaError(["Form definition must be a JSON object"])

    payload = dict(data)
    if form_id is not None:
        payload["id"] = form_id
    try:
        form = FormDef.model_validate(payload)
    except ValidationError as exc:
        raise FormSchemaError(_format_errors(exc)) from exc

    for message in lint_form(form):
        logger.warning("[checklists] form %s: %s", form.id or "<draft>", message)
    return form


def dump_form(form: FormDef, *, include_id: bool = True) -> Dict[str, Any]:
    return form.to_wire(include_id=include_id)


def export_json(form: FormDef, *, include_id: bool = False, indent: int = 2) -> str:
    """Serialise ``form`` for the admin export box."""
    return json.dumps(dump_form(form, include_id=include_id), indent=indent)


def import_json(text: str, form_id: Optional[str] = None) -> FormDef:
    return load_form(text, form_id=form_id)


__all__ = ["load_form", "lint_form", "dump_form", "export_json", "import_json"]
