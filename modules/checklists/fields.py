"""Per field-type behaviour table.

Each field type maps to one :class:`FieldContract` row describing

* the value a newly registered (visible) field starts with,
* how raw input is normalised before it enters the answer map,
* the "answered" predicate behind ``required``,
* any type-level check applied to present values.

Unanswered defaults are :data:`MISSING` for text, number, boolean and date
fields, ``""`` for selects and ``[]`` for checklists.  A field type the
table does not know uses the text row.  Adding a field type means adding a
row here; the condition evaluator and the runner do not change.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from .conditions import MISSING

REQUIRED = "Required"
DATE_FORMAT = "%Y-%m-%d"

_NUMBER = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")
_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class FieldContract:
    type: str
    widget: str
    default: Callable[[], Any]
    normalize: Callable[[Any, Any], Any]
    is_answered: Callable[[Any], bool]
    check: Callable[[Any, Any], Optional[str]]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _missing() -> Any:
    return MISSING


def _no_check(field: Any, value: Any) -> Optional[str]:
    return None


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


# text ----------------------------------------------------------------------

def _normalize_text(field: Any, raw: Any) -> Any:
    if raw is None or raw is MISSING:
        return MISSING
    if isinstance(raw, str):
        return raw
    if _is_number(raw):
        return str(raw)
    return ""


# number --------------------------------------------------------------------

def _normalize_number(field: Any, raw: Any) -> Any:
    if raw is None or raw is MISSING:
        return MISSING
    if isinstance(raw, bool):
        return math.nan
    if _is_number(raw):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return MISSING
        if not _NUMBER.fullmatch(text):
            return math.nan
        if _INTEGER.fullmatch(text):
            return int(text)
        return float(text)
    return math.nan


def _number_answered(value: Any) -> bool:
    return _is_number(value) and math.isfinite(value)


def _check_number(field: Any, value: Any) -> Optional[str]:
    if not _number_answered(value):
        return "Must be a number"
    return None


# boolean -------------------------------------------------------------------

def _normalize_boolean(field: Any, raw: Any) -> Any:
    if raw is None or raw is MISSING:
        return MISSING
    if isinstance(raw, str) and raw in ("true", "false"):
        return raw == "true"
    return raw


def _check_boolean(field: Any, value: Any) -> Optional[str]:
    if not isinstance(value, bool):
        return "Choose one option"
    return None


# select --------------------------------------------------------------------

def _normalize_select(field: Any, raw: Any) -> Any:
    if raw is None or raw is MISSING:
        return ""
    if isinstance(raw, str):
        return raw
    return str(raw)


def _check_select(field: Any, value: Any) -> Optional[str]:
    if value == "":
        return None
    if value not in options_for(field):
        return "Not a valid option"
    return None


# checklist -----------------------------------------------------------------

def _normalize_checklist(field: Any, raw: Any) -> Any:
    if raw is None or raw is MISSING:
        return []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return [raw]
    out: List[Any] = []
    for item in raw:
        if item not in out:
            out.append(item)
    return out


def _checklist_answered(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def _check_checklist(field: Any, value: Any) -> Optional[str]:
    allowed = options_for(field)
    unknown = [str(v) for v in value if not isinstance(v, str) or v not in allowed]
    if unknown:
        return "Unknown option(s): " + ", ".join(unknown)
    return None


def toggle_option(current: Any, option: str, checked: bool) -> List[Any]:
    """Add or remove ``option`` from a checklist value; order is insertion order."""

    selected = _normalize_checklist(None, current)
    if checked and option not in selected:
        selected.append(option)
    elif not checked and option in selected:
        selected.remove(option)
    return selected


# date ----------------------------------------------------------------------

def parse_iso_date(text: str) -> date:
    """Parse an extended ISO calendar date (``YYYY-MM-DD``) only.

    Raises ``ValueError`` for basic (``20240101``) and week forms, which
    ``date.fromisoformat`` accepts on newer interpreters.
    """

    if not isinstance(text, str) or len(text) != 10 or not text.isascii():
        raise ValueError(f"Not a YYYY-MM-DD date: {text!r}")
    return datetime.strptime(text, DATE_FORMAT).date()


def _normalize_date(field: Any, raw: Any) -> Any:
    if raw is None or raw is MISSING:
        return MISSING
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return MISSING
        try:
            return parse_iso_date(text).isoformat()
        except ValueError:
            return text
    return str(raw)


def _check_date(field: Any, value: Any) -> Optional[str]:
    if value == "":
        return None
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        return "Enter a valid date (YYYY-MM-DD)"
    lo = getattr(field, "min", None)
    hi = getattr(field, "max", None)
    if lo and parsed < parse_iso_date(lo):
        return f"Must be on or after {lo}"
    if hi and parsed > parse_iso_date(hi):
        return f"Must be on or before {hi}"
    return None


CONTRACTS: Dict[str, FieldContract] = {
    "text": FieldContract("text", "input", _missing, _normalize_text, _non_empty_str, _no_check),
    "number": FieldContract("number", "number", _missing, _normalize_number, _number_answered, _check_number),
    "boolean": FieldContract(
        "boolean", "radio", _missing, _normalize_boolean, lambda v: isinstance(v, bool), _check_boolean
    ),
    "select": FieldContract("select", "select", lambda: "", _normalize_select, _non_empty_str, _check_select),
    "checklist": FieldContract(
        "checklist", "checkboxes", list, _normalize_checklist, _checklist_answered, _check_checklist
    ),
    "date": FieldContract("date", "date", _missing, _normalize_date, _non_empty_str, _check_date),
}


def contract_for(field: Any) -> FieldContract:
    return CONTRACTS.get(getattr(field, "type", None), CONTRACTS["text"])


def options_for(field: Any) -> List[str]:
    options = getattr(field, "options", None)
    return list(options) if isinstance(options, (list, tuple)) else []


def default_value(field: Any) -> Any:
    return contract_for(field).default()


def normalize_value(field: Any, raw: Any) -> Any:
    return contract_for(field).normalize(field, raw)


def validate_value(field: Any, value: Any) -> Optional[str]:
    """Return an error message for ``value`` or ``None`` when it is acceptable."""

    contract = contract_for(field)
    answered = value is not MISSING and contract.is_answered(value)
    if not answered:
        if getattr(field, "required", False):
            return REQUIRED
        if value is MISSING:
            return None
    return contract.check(field, value)


def render_hints(field: Any) -> Dict[str, Any]:
    """Describe how a renderer should present ``field``."""

    contract = contract_for(field)
    hints: Dict[str, Any] = {
        "id": field.id,
        "type": contract.type,
        "widget": contract.widget,
        "label": field.label,
        "required": bool(getattr(field, "required", False)),
    }
    placeholder = getattr(field, "placeholder", None)
    if placeholder:
        hints["placeholder"] = placeholder
    if contract.type in ("select", "checklist"):
        hints["options"] = options_for(field)
        if not hints["options"]:
            hints["empty_text"] = "No options."
    elif contract.type == "boolean":
        hints["choices"] = [
            {"value": True, "label": getattr(field, "switch_label", None) or "Yes"},
            {"value": False, "label": getattr(field, "no_label", None) or "No"},
        ]
    elif contract.type == "date":
        for bound in ("min", "max"):
            if getattr(field, bound, None):
                hints[bound] = getattr(field, bound)
    return hints


__all__ = [
    "REQUIRED",
    "DATE_FORMAT",
    "parse_iso_date",
    "FieldContract",
    "CONTRACTS",
    "contract_for",
    "options_for",
    "default_value",
    "normalize_value",
    "validate_value",
    "toggle_option",
    "render_hints",
]
