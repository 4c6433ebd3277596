from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[3]))

import pytest

from modules.checklists.conditions import MISSING
from modules.checklists.exceptions import (
    HiddenFieldError,
    SubmissionFailed,
    SubmissionInvalid,
    SubmitInProgress,
    UnknownFieldError,
)
from modules.checklists.runner import FormRunner, SessionState
from modules.checklists.wire import load_form


MODE_FORM = {
    "id": "daily",
    "title": "Daily",
    "period": "daily",
    "sections": [
        {
            "title": "Main",
            "fields": [
                {"id": "mode", "type": "select", "label": "Mode", "options": ["A", "B"]},
                {
                    "id": "detail",
                    "type": "text",
                    "label": "Detail",
                    "required": True,
                    "showIf": {"field": "mode", "op": "eq", "value": "B"},
                },
            ],
        }
    ],
}

KIT_FORM = {
    "id": "kit",
    "title": "Kit",
    "period": "weekly",
    "sections": [
        {
            "title": "Bags",
            "fields": [
                {"id": "bags", "type": "checklist", "label": "Bags", "options": ["Ox", "Trauma"], "required": True},
            ],
        }
    ],
}


class Recorder:
    def __init__(self, fail=False):
        self.records = []
        self.fail = fail

    async def __call__(self, record):
        if self.fail:
            raise IOError("disk full")
        self.records.append(record)


def make_runner(form=MODE_FORM, **kwargs):
    kwargs.setdefault("staff", ("Alice", "Bob"))
    kwargs.setdefault("staff_key", "alice__bob")
    kwargs.setdefault("date_key", "2025-01-02")
    return FormRunner(load_form(form), **kwargs)


def submit(runner):
    return asyncio.run(runner.submit())


def test_hidden_required_field_does_not_block_submit():
    persist = Recorder()
    runner = make_runner(persist=persist)
    runner.set_answer("mode", "A")
    assert not runner.is_visible("detail")
    record = submit(runner)
    assert record.answers == {"mode": "A"}
    assert persist.records[0].answers == {"mode": "A"}


def test_mode_detail_scenario():
    persist = Recorder()
    runner = make_runner(persist=persist)
    runner.set_answer("mode", "B")
    with pytest.raises(SubmissionInvalid) as err:
        submit(runner)
    assert err.value.errors == {"detail": "Required"}
    assert runner.state is SessionState.EDITING
    assert runner.errors == {"detail": "Required"}

    runner.set_answer("detail", "x")
    record = submit(runner)
    assert record.answers == {"mode": "B", "detail": "x"}
    assert [r.answers for r in persist.records] == [{"mode": "B", "detail": "x"}]


def test_checklist_scenario():
    persist = Recorder()
    runner = make_runner(KIT_FORM, persist=persist)
    assert runner.value("bags") == []
    with pytest.raises(SubmissionInvalid):
        submit(runner)
    runner.toggle_option("bags", "Ox", True)
    record = submit(runner)
    assert record.answers == {"bags": ["Ox"]}


def test_hiding_forgets_value_and_unhiding_starts_blank():
    runner = make_runner()
    runner.set_answer("mode", "B")
    runner.set_answer("detail", "old note")
    runner.set_answer("mode", "A")
    assert runner.value("detail") is MISSING
    assert "detail" not in runner.snapshot()
    runner.set_answer("mode", "B")
    assert runner.value("detail") is MISSING


def test_unhidden_field_gets_its_own_default_not_another_fields_value():
    form = {
        "title": "T",
        "period": "daily",
        "sections": [
            {
                "title": "S",
                "fields": [
                    {"id": "gate", "type": "boolean", "label": "Gate"},
                    {"id": "notes", "type": "text", "label": "Notes"},
                    {
                        "id": "pick",
                        "type": "select",
                        "label": "Pick",
                        "options": ["x", "y"],
                        "showIf": {"field": "gate", "op": "eq", "value": "true"},
                    },
                ],
            }
        ],
    }
    runner = make_runner(form)
    runner.set_answer("notes", "y")
    runner.set_answer("gate", True)
    assert runner.value("pick") == ""
    assert runner.snapshot() == {"gate": True, "notes": "y", "pick": ""}


def test_chained_visibility_settles():
    form = {
        "title": "T",
        "period": "daily",
        "sections": [
            {
                "title": "S",
                "fields": [
                    {"id": "a", "type": "boolean", "label": "A"},
                    {"id": "b", "type": "boolean", "label": "B", "showIf": {"field": "a", "op": "eq", "value": "true"}},
                    {"id": "c", "type": "text", "label": "C", "showIf": {"field": "b", "op": "eq", "value": "true"}},
                ],
            }
        ],
    }
    runner = make_runner(form)
    runner.set_answer("a", True)
    runner.set_answer("b", True)
    runner.set_answer("c", "deep")
    runner.set_answer("a", False)
    assert runner.answers == {"a": False}
    assert [f.id for f in runner.visible_fields()] == ["a"]


def test_edit_guards():
    runner = make_runner()
    with pytest.raises(UnknownFieldError):
        runner.set_answer("nope", 1)
    with pytest.raises(HiddenFieldError):
        runner.set_answer("detail", "x")


def test_apply_stages_values_then_settles():
    runner = make_runner()
    skipped = runner.apply({"mode": "B", "detail": "x", "extra": 1})
    assert skipped == ["extra"]
    assert runner.snapshot() == {"mode": "B", "detail": "x"}

    runner.apply({"mode": "A"})
    assert runner.snapshot() == {"mode": "A"}


def test_clear_answer_returns_boolean_to_unanswered():
    form = {
        "title": "T",
        "period": "daily",
        "sections": [{"title": "S", "fields": [{"id": "ok", "type": "boolean", "label": "OK", "required": True}]}],
    }
    runner = make_runner(form)
    runner.set_answer("ok", False)
    assert runner.validate() == {}
    runner.clear_answer("ok")
    assert runner.value("ok") is MISSING
    assert runner.validate() == {"ok": "Required"}


def test_successful_submit_resets_and_reports_transitions():
    seen = []
    persist = Recorder()
    runner = make_runner(persist=persist, on_transition=lambda old, new: seen.append(new))
    runner.apply({"mode": "B", "detail": "x"})
    submit(runner)
    assert seen == [
        SessionState.SUBMITTING,
        SessionState.SUBMIT_SUCCESS,
        SessionState.EDITING,
    ]
    assert runner.state is SessionState.EDITING
    assert runner.snapshot() == {"mode": ""}
    assert runner.last_submission.answers == {"mode": "B", "detail": "x"}


def test_failed_write_keeps_answers():
    seen = []
    runner = make_runner(persist=Recorder(fail=True), on_transition=lambda old, new: seen.append(new))
    runner.apply({"mode": "B", "detail": "x"})
    with pytest.raises(SubmissionFailed):
        submit(runner)
    assert seen == [SessionState.SUBMITTING, SessionState.SUBMIT_FAILED, SessionState.EDITING]
    assert runner.snapshot() == {"mode": "B", "detail": "x"}
    assert runner.last_error == "disk full"
    assert runner.can_submit


def test_sequence_failure_is_swallowed():
    async def broken():
        raise RuntimeError("counter offline")

    persist = Recorder()
    runner = make_runner(persist=persist, get_next_sequence=broken)
    runner.set_answer("mode", "A")
    record = submit(runner)
    assert record.sequence is None
    assert "sequence" not in record.to_document()
    assert len(persist.records) == 1


def test_sequence_is_attached_to_record():
    async def next_seq():
        return 3

    runner = make_runner(persist=Recorder(), get_next_sequence=next_seq)
    record = submit(runner)
    doc = record.to_document()
    assert doc["sequence"] == 3
    assert doc["staff"] == ["Alice", "Bob"]
    assert doc["staffKey"] == "alice__bob"
    assert doc["dateKey"] == "2025-01-02"
    assert doc["formId"] == "daily"
    assert doc["period"] == "daily"


def test_second_submit_while_submitting_is_refused():
    async def scenario():
        gate = asyncio.Event()
        persist = Recorder()

        async def slow_sequence():
            await gate.wait()
            return 1

        runner = make_runner(persist=persist, get_next_sequence=slow_sequence)
        first = asyncio.ensure_future(runner.submit())
        await asyncio.sleep(0)
        assert runner.state is SessionState.SUBMITTING
        assert not runner.can_submit
        with pytest.raises(SubmitInProgress):
            await runner.submit()
        with pytest.raises(SubmitInProgress):
            runner.set_answer("mode", "A")
        gate.set()
        await first
        return persist

    persist = asyncio.run(scenario())
    assert len(persist.records) == 1


def test_preview_runner_without_persistence():
    runner = make_runner()
    runner.set_answer("mode", "A")
    record = submit(runner)
    assert record.answers == {"mode": "A"}
    assert runner.snapshot() == {"mode": ""}


def test_instances_do_not_share_state():
    first = make_runner()
    second = make_runner()
    first.set_answer("mode", "B")
    assert second.value("mode") == ""
    assert not second.is_visible("detail")


SIGNATURE_FORM = {
    "title": "Handover",
    "period": "daily",
    "sections": [
        {
            "title": "Sign off",
            "fields": [
                {"id": "sig", "type": "signature", "label": "Sign", "required": True},
                {"id": "on", "type": "date", "label": "Checked on"},
            ],
        }
    ],
}


def test_unknown_field_type_behaves_like_required_text():
    persist = Recorder()
    runner = make_runner(SIGNATURE_FORM, persist=persist)
    assert runner.validate() == {"sig": "Required"}
    with pytest.raises(SubmissionInvalid) as err:
        submit(runner)
    assert err.value.errors == {"sig": "Required"}

    runner.set_answer("sig", "A. Smith")
    record = submit(runner)
    assert record.answers == {"sig": "A. Smith"}
    assert persist.records[0].answers == {"sig": "A. Smith"}


def test_date_answers_must_be_extended_iso():
    runner = make_runner(SIGNATURE_FORM)
    runner.set_answer("sig", "x")
    runner.set_answer("on", "20240101")
    assert runner.validate() == {"on": "Enter a valid date (YYYY-MM-DD)"}
    runner.set_answer("on", " 2024-01-01 ")
    assert runner.value("on") == "2024-01-01"
    assert runner.validate() == {}
