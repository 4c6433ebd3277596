"""Editable drafts of checklist forms for the admin builder.

A :class:`FormDraft` mirrors the wire format but gives every field an
editor-only ``uid`` so that edits, renames and duplicates can be tracked
while the author changes ids.  Uids never leave the draft: :meth:`to_wire`
and :meth:`to_form` strip them.
"""

from __future__ import annotations

import copy
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from .conditions import GROUP_KEYS
from .exceptions import FormSchemaError
from .runner import FormRunner
from .schema import FormDef
from .wire import load_form

logger = logging.getLogger(__name__)

PREVIEW_FORM_ID = "preview"

_BASE_LABELS = {
    "text": "Text",
    "number": "Number",
    "boolean": "OK?",
    "select": "Select",
    "checklist": "Checklist",
    "date": "Date",
}
_DEFAULT_OPTIONS = ["Option A", "Option B"]
_NON_ID = re.compile(r"[^a-z0-9]+")


def _new_uid() -> str:
    return uuid.uuid4().hex


def idify(label: str) -> str:
    """Turn a label into a field id: ``"Fuel Level?"`` -> ``"fuel_level"``."""

    slug = _NON_ID.sub("_", (label or "").lower()).strip("_")
    return slug[:40] or "field"


# ---------------------------------------------------------------------------
# Condition editing helpers
# ---------------------------------------------------------------------------

def make_leaf(field_id: str = "", op: str = "eq", value: Any = "") -> Dict[str, Any]:
    return {"field": field_id, "op": op, "value": value}


def make_group(op: str, children: Optional[List[Any]] = None) -> Dict[str, Any]:
    if op not in GROUP_KEYS:
        raise ValueError(f"Unknown group operator: {op!r}")
    return {op: list(children or [])}


def change_leaf_op(leaf: Mapping[str, Any], op: str) -> Dict[str, Any]:
    """Switch a leaf's operator, reshaping the literal for ``in``."""

    value = leaf.get("value")
    if op == "in":
        value = list(value) if isinstance(value, list) else []
    elif isinstance(value, list):
        value = ""
    elif value is None:
        value = ""
    return {**leaf, "op": op, "value": value}


def parse_in_values(text: str) -> List[str]:
    """``"a | b ||c"`` -> ``["a", "b", "c"]``."""
    return [part.strip() for part in (text or "").split("|") if part.strip()]


def prune_condition(raw: Any) -> Any:
    """Drop empty groups; a group left with no children becomes ``None``."""

    if not raw:
        return None
    if isinstance(raw, Mapping):
        for key in GROUP_KEYS:
            if key in raw and isinstance(raw[key], list):
                children = [c for c in (prune_condition(c) for c in raw[key]) if c is not None]
                return {key: children} if children else None
    return copy.deepcopy(raw)


# ---------------------------------------------------------------------------
# Draft model
# ---------------------------------------------------------------------------

@dataclass
class DraftField:
    data: Dict[str, Any]
    uid: str = field(default_factory=_new_uid)

    @property
    def id(self) -> str:
        return str(self.data.get("id", ""))

    @property
    def type(self) -> str:
        return str(self.data.get("type", "text"))

    @property
    def label(self) -> str:
        return str(self.data.get("label", ""))

    def to_wire(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)


@dataclass
class DraftSection:
    title: str
    fields: List[DraftField] = field(default_factory=list)


def ensure_unique_field_id(section: DraftSection, base: str, ignore_uid: Optional[str] = None) -> str:
    """Return ``base`` or ``base_1``, ``base_2``... unused within ``section``."""

    used = {f.id for f in section.fields if f.uid != ignore_uid}
    candidate = base
    i = 1
    while candidate in used:
        candidate = f"{base}_{i}"
        i += 1
    return candidate


def _move(items: List[Any], index: int, direction: int) -> bool:
    target = index + direction
    if index < 0 or index >= len(items) or target < 0 or target >= len(items):
        return False
    items.insert(target, items.pop(index))
    return True


@dataclass
class FormDraft:
    title: str = "Untitled Checklist"
    period: str = "daily"
    sections: List[DraftSection] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)

    # -- conversion -----------------------------------------------------
    @classmethod
    def from_form(cls, form: FormDef) -> "FormDraft":
        wire = form.to_wire(include_id=False)
        sections = [
            DraftSection(
                title=sec.get("title", ""),
                fields=[DraftField(data=copy.deepcopy(f)) for f in sec.get("fields", [])],
            )
            for sec in wire.pop("sections", [])
        ]
        title = wire.pop("title", "")
        period = wire.pop("period", "daily")
        return cls(title=title, period=period, sections=sections, extras=wire)

    @classmethod
    def from_wire(cls, data: Union[str, Mapping[str, Any]]) -> "FormDraft":
        """Build a draft from stored JSON, falling back to the starter draft."""
        try:
            form = load_form(data)
        except FormSchemaError as exc:
            logger.warning("[builder] stored form is invalid, starting fresh: %s", exc)
            return default_draft()
        return cls.from_form(form)

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = copy.deepcopy(self.extras)
        out.pop("id", None)
        out["title"] = self.title
        out["period"] = self.period
        out["sections"] = [
            {"title": sec.title, "fields": [f.to_wire() for f in sec.fields]}
            for sec in self.sections
        ]
        return out

    def to_form(self, form_id: Optional[str] = None) -> FormDef:
        return load_form(self.to_wire(), form_id=form_id)

    def validation_errors(self) -> List[str]:
        try:
            self.to_form()
        except FormSchemaError as exc:
            return exc.messages
        return []

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors()

    def preview(self, **runner_kwargs: Any) -> FormRunner:
        """A fresh runner over the current draft; nothing is persisted."""
        runner_kwargs.pop("persist", None)
        return FormRunner(self.to_form(PREVIEW_FORM_ID), **runner_kwargs)

    # -- sections -------------------------------------------------------
    def add_section(self, title: Optional[str] = None) -> DraftSection:
        section = DraftSection(title=title or f"Section {len(self.sections) + 1}")
        self.sections.append(section)
        return section

    def rename_section(self, index: int, title: str) -> None:
        self.sections[index].title = title

    def remove_section(self, index: int) -> DraftSection:
        return self.sections.pop(index)

    def move_section(self, index: int, direction: int) -> bool:
        return _move(self.sections, index, direction)

    # -- fields ---------------------------------------------------------
    def add_field(self, section_index: int, field_type: str = "text") -> DraftField:
        section = self.sections[section_index]
        label = _BASE_LABELS.get(field_type, "Text")
        data: Dict[str, Any] = {
            "id": ensure_unique_field_id(section, idify(label)),
            "type": field_type,
            "label": label,
        }
        if field_type in ("select", "checklist"):
            data["options"] = list(_DEFAULT_OPTIONS)
        if field_type == "boolean":
            data["switchLabel"] = "Yes"
        draft_field = DraftField(data=data)
        section.fields.append(draft_field)
        return draft_field

    def duplicate_field(self, section_index: int, field_index: int) -> DraftField:
        section = self.sections[section_index]
        source = section.fields[field_index]
        data = source.to_wire()
        data["id"] = ensure_unique_field_id(section, source.id)
        dup = DraftField(data=data)
        section.fields.insert(field_index + 1, dup)
        return dup

    def remove_field(self, section_index: int, field_index: int) -> DraftField:
        return self.sections[section_index].fields.pop(field_index)

    def move_field(self, section_index: int, field_index: int, direction: int) -> bool:
        return _move(self.sections[section_index].fields, field_index, direction)

    def update_field(self, section_index: int, field_index: int, **changes: Any) -> DraftField:
        """Merge ``changes`` into a field; a ``None`` value removes the key."""

        draft_field = self.sections[section_index].fields[field_index]
        for key, value in changes.items():
            if value is None:
                draft_field.data.pop(key, None)
            else:
                draft_field.data[key] = copy.deepcopy(value)
        return draft_field

    def commit_field_id(self, section_index: int, field_index: int, text: str) -> str:
        """Normalise a typed id and make it unique within its section."""

        section = self.sections[section_index]
        draft_field = section.fields[field_index]
        normalized = idify(text) if (text or "").strip() else ""
        if normalized == draft_field.id:
            return normalized
        base = normalized or idify(draft_field.label or "field")
        new_id = ensure_unique_field_id(section, base, draft_field.uid)
        draft_field.data["id"] = new_id
        return new_id

    def set_options_text(self, section_index: int, field_index: int, text: str) -> List[str]:
        options = [part.strip() for part in (text or "").split(",") if part.strip()]
        self.update_field(section_index, field_index, options=options or None)
        return options

    def set_show_if(self, section_index: int, field_index: int, condition: Any) -> Any:
        pruned = prune_condition(condition)
        self.update_field(section_index, field_index, showIf=pruned)
        return pruned


def default_draft() -> FormDraft:
    return FormDraft(
        title="Untitled Checklist",
        period="daily",
        sections=[
            DraftSection(
                title="New Section",
                fields=[DraftField(data={"id": "example", "type": "text", "label": "Example field"})],
            )
        ],
    )


def draft_from_form(form: FormDef) -> FormDraft:
    return FormDraft.from_form(form)


__all__ = [
    "PREVIEW_FORM_ID",
    "idify",
    "make_leaf",
    "make_group",
    "change_leaf_op",
    "parse_in_values",
    "prune_condition",
    "DraftField",
    "DraftSection",
    "FormDraft",
    "ensure_unique_field_id",
    "default_draft",
    "draft_from_form",
]
