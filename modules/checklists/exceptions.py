"""Custom exceptions for the checklist form engine."""
from __future__ import annotations

from typing import Dict, List


class ChecklistError(RuntimeError):
    """Base exception for checklist operations."""


class FormSchemaError(ChecklistError, ValueError):
    """Raised when a form definition fails the load-time shape validation."""

    def __init__(self, messages: List[str]) -> None:
        super().__init__("Form definition is invalid: " + "; ".join(messages))
        self.messages = list(messages)


class FormNotFound(ChecklistError, LookupError):
    """Raised when a form id has no stored definition."""


class UnknownFieldError(ChecklistError, KeyError):
    """Raised when an answer targets a field id the form does not define."""


class HiddenFieldError(ChecklistError):
    """Raised when an answer targets a field that is currently hidden."""


class SubmitInProgress(ChecklistError):
    """Raised when a submit is attempted while another one is in flight."""


class SubmissionInvalid(ChecklistError):
    """Raised when visible fields fail validation at submit time."""

    def __init__(self, errors: Dict[str, str]) -> None:
        super().__init__(f"{len(errors)} field(s) need attention")
        self.errors = dict(errors)


class SubmissionFailed(ChecklistError):
    """Raised when the persistence collaborator rejects the write."""


__all__ = [
    "ChecklistError",
    "FormSchemaError",
    "FormNotFound",
    "UnknownFieldError",
    "HiddenFieldError",
    "SubmitInProgress",
    "SubmissionInvalid",
    "SubmissionFailed",
]
