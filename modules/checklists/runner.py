"""Answer state for one form-running session.

:class:`FormRunner` owns the answer map of a single session and is the only
place where answers change.  After every change it re-evaluates each field's
``showIf`` in document order and unregisters fields that became hidden: their
values are dropped, their errors cleared, and they are skipped by validation
and by the submitted snapshot.  A field that becomes visible again starts
from its unanswered default.

Submitting walks a small state machine::

    editing -> submitting -> submit_success -> editing (answers cleared)
                          -> submit_failed  -> editing (answers kept)

Validation failures never leave ``editing``.  The runner is used both by the
end-user runner and by the builder's live preview; each consumer creates its
own instance.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from utils.timefmt import now_utc

from .conditions import MISSING, evaluate
from .exceptions import (
    HiddenFieldError,
    SubmissionFailed,
    SubmissionInvalid,
    SubmitInProgress,
    UnknownFieldError,
)
from .fields import default_value, normalize_value, toggle_option, validate_value
from .schema import FieldDef, FormDef, Period

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMIT_SUCCESS = "submit_success"
    SUBMIT_FAILED = "submit_failed"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return str(self.value)


class SubmissionRecord(BaseModel):
    """Record handed to the persistence collaborator on submit."""

    model_config = ConfigDict(populate_by_name=True)

    form_id: str = Field(alias="formId")
    period: Period
    date_key: str = Field(alias="dateKey")
    staff: Tuple[str, str]
    staff_key: str = Field(alias="staffKey")
    sequence: Optional[int] = None
    answers: Dict[str, Any]
    created_at: datetime = Field(alias="createdAt")

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "formId": self.form_id,
            "period": self.period,
            "dateKey": self.date_key,
            "staff": list(self.staff),
            "staffKey": self.staff_key,
            "answers": copy.deepcopy(self.answers),
            "createdAt": self.created_at.isoformat(),
        }
        if self.sequence is not None:
            doc["sequence"] = self.sequence
        return doc


Persist = Callable[[SubmissionRecord], Awaitable[Any]]
NextSequence = Callable[[], Awaitable[int]]
TransitionListener = Callable[[SessionState, SessionState], None]


class FormRunner:
    """Reducer over the answers of one form session."""

    def __init__(
        self,
        form: FormDef,
        *,
        staff: Tuple[str, str] = ("", ""),
        staff_key: str = "",
        date_key: str = "",
        persist: Optional[Persist] = None,
        get_next_sequence: Optional[NextSequence] = None,
        on_transition: Optional[TransitionListener] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.form = form
        self.staff = (staff[0], staff[1])
        self.staff_key = staff_key
        self.date_key = date_key
        self._persist = persist
        self._get_next_sequence = get_next_sequence
        self._on_transition = on_transition
        self._clock = clock

        self._fields: List[Tuple[FieldDef, Any]] = [(f, f.condition()) for f in form.iter_fields()]
        self._by_id: Dict[str, FieldDef] = {}
        for f, _ in self._fields:
            self._by_id.setdefault(f.id, f)

        self._answers: Dict[str, Any] = {}
        self._visible: set[str] = set()
        self.errors: Dict[str, str] = {}
        self.state = SessionState.EDITING
        self.last_error: Optional[str] = None
        self.last_submission: Optional[SubmissionRecord] = None
        self._recompute()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def answers(self) -> Dict[str, Any]:
        return copy.deepcopy(self._answers)

    @property
    def can_submit(self) -> bool:
        return self.state is SessionState.EDITING

    def value(self, field_id: str) -> Any:
        return self._answers.get(field_id, MISSING)

    def is_visible(self, field_id: str) -> bool:
        return field_id in self._visible

    def visible_fields(self) -> List[FieldDef]:
        return [f for f, _ in self._fields if f.id in self._visible]

    def visible_sections(self) -> List[Tuple[str, List[FieldDef]]]:
        """Section titles with their visible fields, skipping empty sections."""
        out = []
        for section in self.form.sections:
            shown = [f for f in section.fields if f.id in self._visible]
            if shown:
                out.append((section.title, shown))
        return out

    def snapshot(self) -> Dict[str, Any]:
        """Answers of visible, registered fields in document order."""
        out: Dict[str, Any] = {}
        for f, _ in self._fields:
            if f.id in self._visible and f.id in self._answers and f.id not in out:
                out[f.id] = copy.deepcopy(self._answers[f.id])
        return out

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------
    def _field_for_edit(self, field_id: str) -> FieldDef:
        if self.state is not SessionState.EDITING:
            raise SubmitInProgress(f"Cannot edit while {self.state.value}")
        f = self._by_id.get(field_id)
        if f is None:
            raise UnknownFieldError(field_id)
        if field_id not in self._visible:
            raise HiddenFieldError(f"Field {field_id!r} is hidden")
        return f

    def _store(self, f: FieldDef, value: Any) -> None:
        if value is MISSING:
            self._answers.pop(f.id, None)
        else:
            self._answers[f.id] = value

    def set_answer(self, field_id: str, raw: Any) -> None:
        f = self._field_for_edit(field_id)
        self._store(f, normalize_value(f, raw))
        self.errors.pop(field_id, None)
        self._recompute()

    def clear_answer(self, field_id: str) -> None:
        """Return a field to its unanswered default."""
        self.set_answer(field_id, None)

    def toggle_option(self, field_id: str, option: str, checked: bool) -> None:
        f = self._field_for_edit(field_id)
        self._store(f, toggle_option(self._answers.get(field_id), option, checked))
        self.errors.pop(field_id, None)
        self._recompute()

    def apply(self, values: Mapping[str, Any]) -> List[str]:
        """Stage many answers at once, then settle visibility.

        Unknown ids are skipped and returned.  Values for fields that end up
        hidden are discarded like any other hidden answer.
        """

        if self.state is not SessionState.EDITING:
            raise SubmitInProgress(f"Cannot edit while {self.state.value}")
        skipped: List[str] = []
        for field_id, raw in values.items():
            f = self._by_id.get(field_id)
            if f is None:
                skipped.append(field_id)
                continue
            self._store(f, normalize_value(f, raw))
            self.errors.pop(field_id, None)
        if skipped:
            logger.info("[runner] ignoring unknown field(s) for %s: %s", self.form.id, skipped)
        self._recompute()
        return skipped

    def reset(self) -> None:
        self._answers.clear()
        self._visible = set()
        self.errors = {}
        self._recompute()

    def _evaluate_visibility(self) -> set[str]:
        return {f.id for f, cond in self._fields if evaluate(cond, self._answers)}

    def _recompute(self) -> None:
        for _ in range(len(self._fields) + 1):
            visible = self._evaluate_visibility()
            changed = False
            for field_id in [k for k in self._answers if k not in visible]:
                del self._answers[field_id]
                changed = True
            for field_id in [k for k in self.errors if k not in visible]:
                del self.errors[field_id]
            for f, _ in self._fields:
                if f.id in visible and f.id not in self._visible and f.id not in self._answers:
                    default = default_value(f)
                    if default is not MISSING:
                        self._answers[f.id] = default
                        changed = True
            if visible != self._visible:
                logger.debug(
                    "[runner] %s visibility: +%s -%s",
                    self.form.id,
                    sorted(visible - self._visible),
                    sorted(self._visible - visible),
                )
            self._visible = visible
            if not changed:
                return
        logger.warning("[runner] visibility for form %s did not settle", self.form.id)

    # ------------------------------------------------------------------
    # Validation and submit
    # ------------------------------------------------------------------
    def validate(self) -> Dict[str, str]:
        """Check every visible field against the current answers."""
        errors: Dict[str, str] = {}
        for f in self.visible_fields():
            if f.id in errors:
                continue
            message = validate_value(f, self._answers.get(f.id, MISSING))
            if message:
                errors[f.id] = message
        self.errors = errors
        return dict(errors)

    def _transition(self, new: SessionState) -> None:
        old = self.state
        self.state = new
        logger.debug("[runner] %s: %s -> %s", self.form.id, old.value, new.value)
        if self._on_transition is not None:
            self._on_transition(old, new)

    async def _allocate_sequence(self) -> Optional[int]:
        if self._get_next_sequence is None:
            return None
        try:
            return int(await self._get_next_sequence())
        except Exception as exc:
            logger.warning(
                "[runner] sequence allocation failed for %s; submitting without one: %s",
                self.form.id,
                exc,
            )
            return None

    async def submit(self) -> SubmissionRecord:
        if self.state is not SessionState.EDITING:
            raise SubmitInProgress("A submission is already in progress")
        errors = self.validate()
        if errors:
            logger.info("[runner] submit blocked for %s: %s", self.form.id, sorted(errors))
            raise SubmissionInvalid(errors)

        self._transition(SessionState.SUBMITTING)
        try:
            sequence = await self._allocate_sequence()
            record = SubmissionRecord(
                form_id=self.form.id,
                period=self.form.period,
                date_key=self.date_key,
                staff=self.staff,
                staff_key=self.staff_key,
                sequence=sequence,
                answers=self.snapshot(),
                created_at=self._clock(),
            )
            if self._persist is not None:
                await self._persist(record)
            else:
                logger.debug("[runner] preview submit for %s; nothing persisted", self.form.id)
        except Exception as exc:
            logger.exception("[runner] submission write failed for %s", self.form.id)
            self.last_error = str(exc) or exc.__class__.__name__
            self._transition(SessionState.SUBMIT_FAILED)
            self._transition(SessionState.EDITING)
            raise SubmissionFailed(self.last_error) from exc
        except BaseException:
            self._transition(SessionState.EDITING)
            raise

        self.last_submission = record
        self.last_error = None
        self._transition(SessionState.SUBMIT_SUCCESS)
        self.reset()
        self._transition(SessionState.EDITING)
        return record


__all__ = ["SessionState", "SubmissionRecord", "FormRunner"]
