"""Pydantic models describing a checklist form definition.

The JSON wire format uses camelCase for a few attributes (``showIf``,
``switchLabel``, ``noLabel``); the models accept both spellings and dump
with the wire aliases.  Unknown attributes are preserved so that importing
and re-exporting a form keeps it intact.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, Iterator, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_validator

from .conditions import Condition, check_condition, parse_condition
from .fields import parse_iso_date

logger = logging.getLogger(__name__)

FIELD_TYPES = ("text", "number", "boolean", "select", "checklist", "date")
PERIODS = ("daily", "weekly")
Period = Literal["daily", "weekly"]


class _FieldBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    label: str
    required: bool = False
    show_if: Optional[Any] = Field(default=None, alias="showIf")

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Field id is required")
        return value

    @field_validator("show_if")
    @classmethod
    def condition_shape(cls, value: Any) -> Any:
        if not value:
            return value
        errors, warnings = check_condition(value)
        for message in warnings:
            logger.warning("[checklists] %s", message)
        if errors:
            raise ValueError("; ".join(errors))
        return value

    def condition(self) -> Optional[Condition]:
        return parse_condition(self.show_if)


class TextField(_FieldBase):
    type: Literal["text"]
    placeholder: Optional[str] = None


class NumberField(_FieldBase):
    type: Literal["number"]
    placeholder: Optional[str] = None


class BooleanField(_FieldBase):
    type: Literal["boolean"]
    switch_label: Optional[str] = Field(default=None, alias="switchLabel")
    no_label: Optional[str] = Field(default=None, alias="noLabel")

    @property
    def yes_text(self) -> str:
        return self.switch_label or "Yes"

    @property
    def no_text(self) -> str:
        return self.no_label or "No"


class SelectField(_FieldBase):
    type: Literal["select"]
    options: List[str] = Field(default_factory=list)


class ChecklistField(_FieldBase):
    type: Literal["checklist"]
    options: List[str] = Field(default_factory=list)


class DateField(_FieldBase):
    type: Literal["date"]
    placeholder: Optional[str] = None
    min: Optional[str] = None
    max: Optional[str] = None

    @field_validator("min", "max")
    @classmethod
    def validate_iso(cls, value: Optional[str]) -> Optional[str]:
        if value:
            return parse_iso_date(value).isoformat()
        return value


class OtherField(_FieldBase):
    """A field type this version does not know; it behaves like text."""

    type: str
    placeholder: Optional[str] = None


def _field_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return kind if kind in FIELD_TYPES else "other"


FieldDef = Annotated[
    Union[
        Annotated[TextField, Tag("text")],
        Annotated[NumberField, Tag("number")],
        Annotated[BooleanField, Tag("boolean")],
        Annotated[SelectField, Tag("select")],
        Annotated[ChecklistField, Tag("checklist")],
        Annotated[DateField, Tag("date")],
        Annotated[OtherField, Tag("other")],
    ],
    Discriminator(_field_tag),
]


class SectionDef(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    fields: List[FieldDef]


class ComputedDef(BaseModel):
    """Carried for round-trip fidelity; nothing evaluates ``expr``."""

    id: str
    expr: str


class ValidationRule(BaseModel):
    """Carried for round-trip fidelity; nothing evaluates ``rule``."""

    field: str
    rule: str
    message: str


class FormDef(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    title: str
    period: Period
    sections: List[SectionDef]
    computed: Optional[List[ComputedDef]] = None
    validation: Optional[List[ValidationRule]] = None

    def iter_fields(self) -> Iterator[FieldDef]:
        """Fields in document order: section order, then field order."""
        for section in self.sections:
            yield from section.fields

    def field_ids(self) -> List[str]:
        return [f.id for f in self.iter_fields()]

    def get_field(self, field_id: str) -> Optional[FieldDef]:
        for f in self.iter_fields():
            if f.id == field_id:
                return f
        return None

    def to_wire(self, *, include_id: bool = True) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_unset=True, mode="json")
        if include_id and self.id:
            data["id"] = self.id
        else:
            data.pop("id", None)
        return data


__all__ = [
    "FIELD_TYPES",
    "PERIODS",
    "Period",
    "TextField",
    "NumberField",
    "BooleanField",
    "SelectField",
    "ChecklistField",
    "DateField",
    "OtherField",
    "FieldDef",
    "SectionDef",
    "ComputedDef",
    "ValidationRule",
    "FormDef",
]
