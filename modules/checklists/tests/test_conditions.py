from __future__ import annotations

import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[3]))

import pytest

from modules.checklists.conditions import (
    MISSING,
    AllOf,
    AnyOf,
    Leaf,
    Opaque,
    check_condition,
    evaluate,
    parse_condition,
    referenced_fields,
    to_wire,
)


def leaf(op, value, field="f"):
    return {"field": field, "op": op, "value": value}


def test_absent_condition_is_visible():
    assert evaluate(None, {}) is True
    assert evaluate(None, {"f": "x"}) is True
    assert evaluate({}, {"f": "x"}) is True


def test_empty_groups():
    assert evaluate({"and": []}, {}) is True
    assert evaluate({"or": []}, {}) is False


@pytest.mark.parametrize("answer", [True, False])
def test_boolean_answers_compare_against_string_sentinels(answer):
    assert evaluate(leaf("eq", "true"), {"f": answer}) is (answer is True)
    assert evaluate(leaf("eq", "false"), {"f": answer}) is (answer is False)


def test_boolean_eq_never_matches_real_booleans():
    assert evaluate(leaf("eq", True), {"f": True}) is False


def test_neq_has_no_boolean_sentinel_handling():
    # eq maps booleans onto "true"/"false"; neq compares strictly, so it
    # reports a mismatch for both answers.
    assert evaluate(leaf("neq", "true"), {"f": True}) is True
    assert evaluate(leaf("neq", "true"), {"f": False}) is True


def test_list_answers_use_membership():
    answers = {"f": ["x", "y"]}
    assert evaluate(leaf("eq", "x"), answers) is True
    assert evaluate(leaf("neq", "x"), answers) is False
    assert evaluate(leaf("eq", "z"), answers) is False
    assert evaluate(leaf("neq", "z"), answers) is True


def test_in_operator():
    assert evaluate(leaf("in", ["a", "b"]), {"f": "a"}) is True
    assert evaluate(leaf("in", ["a", "b"]), {"f": "c"}) is False
    assert evaluate(leaf("in", "not-an-array"), {"f": "a"}) is False
    assert evaluate(leaf("in", ["a", "b"]), {"f": ["c", "b"]}) is True
    assert evaluate(leaf("in", ["a", "b"]), {"f": []}) is False


def test_strict_equality():
    assert evaluate(leaf("eq", 1), {"f": True}) is False
    assert evaluate(leaf("eq", 1), {"f": 1.0}) is True
    assert evaluate(leaf("eq", "1"), {"f": 1}) is False
    assert evaluate(leaf("eq", None), {}) is False
    assert evaluate(leaf("neq", None), {}) is True
    assert evaluate(leaf("eq", ""), {}) is False


def test_missing_value_key_matches_unanswered_field():
    assert evaluate({"field": "f", "op": "eq"}, {}) is True
    assert evaluate({"field": "f", "op": "eq"}, {"f": "x"}) is False


def test_nan_answers_are_members_of_nan_lists():
    assert evaluate(leaf("in", [math.nan]), {"f": math.nan}) is True
    assert evaluate(leaf("eq", math.nan), {"f": math.nan}) is False


def test_unknown_operator_is_visible():
    assert evaluate(leaf("gt", 3), {"f": 1}) is True


def test_nested_groups():
    cond = {
        "and": [
            leaf("neq", "Full", field="fuel"),
            {"or": [leaf("in", ["Ox", "Trauma"], field="kit"), leaf("eq", "true", field="ok")]},
        ]
    }
    assert evaluate(cond, {"fuel": "Half", "kit": ["Trauma"]}) is True
    assert evaluate(cond, {"fuel": "Half", "ok": True}) is True
    assert evaluate(cond, {"fuel": "Full", "ok": True}) is False
    assert evaluate(cond, {"fuel": "Half", "ok": False, "kit": []}) is False


@pytest.mark.parametrize(
    "raw",
    [
        "junk",
        42,
        ["a"],
        {"and": "not-a-list"},
        {"or": {"field": "f"}},
        {"field": 3, "op": "eq", "value": 1},
        {"and": [None, 7]},
        {"op": "eq", "value": 1},
    ],
)
def test_malformed_nodes_fail_open(raw):
    assert evaluate(raw, {"f": "x"}) is True


def test_deep_nesting_does_not_raise():
    node = leaf("eq", "x")
    for _ in range(5000):
        node = {"and": [node]}
    assert evaluate(node, {"f": "y"}) in (True, False)


def test_parse_produces_tagged_nodes():
    node = parse_condition({"or": [leaf("eq", "x"), {"and": []}, "bad"]})
    assert isinstance(node, AnyOf)
    first, second, third = node.children
    assert first == Leaf("f", "eq", "x")
    assert second == AllOf(())
    assert isinstance(third, Opaque)
    assert parse_condition(None) is None
    assert parse_condition({"field": "f", "op": "eq"}).value is MISSING


def test_and_key_wins_when_both_group_keys_present():
    node = parse_condition({"and": [], "or": []})
    assert isinstance(node, AllOf)


def test_to_wire_round_trip():
    raw = {"and": [leaf("in", ["a"]), {"or": [leaf("eq", "true", field="g")]}]}
    assert to_wire(parse_condition(raw)) == raw
    assert to_wire(None) is None


def test_referenced_fields():
    raw = {"and": [leaf("eq", 1, field="a"), {"or": [leaf("eq", 2, field="b")]}]}
    assert referenced_fields(parse_condition(raw)) == {"a", "b"}


def test_check_condition_reports_errors_and_warnings():
    errors, warnings = check_condition({"and": [leaf("gt", 1), {"or": []}, leaf("in", "x")]})
    assert errors == []
    assert len(warnings) == 3

    errors, _ = check_condition({"field": "f", "op": "eq", "and": []})
    assert errors

    errors, _ = check_condition({"or": "nope"})
    assert errors == ["showIf.or: must be a list"]

    errors, _ = check_condition({"field": "", "op": "eq"})
    assert errors == ["showIf.field: must be a non-empty string"]
