from __future__ import annotations

import math
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[3]))

import pytest
from pydantic import TypeAdapter

from modules.checklists.conditions import MISSING
from modules.checklists.fields import (
    REQUIRED,
    contract_for,
    default_value,
    normalize_value,
    render_hints,
    toggle_option,
    validate_value,
)
from modules.checklists.schema import FieldDef

_field = TypeAdapter(FieldDef)


def make(**data):
    data.setdefault("id", "f")
    data.setdefault("label", "F")
    return _field.validate_python(data)


def test_defaults_per_type():
    assert default_value(make(type="text")) is MISSING
    assert default_value(make(type="number")) is MISSING
    assert default_value(make(type="boolean")) is MISSING
    assert default_value(make(type="date")) is MISSING
    assert default_value(make(type="select", options=["A"])) == ""
    assert default_value(make(type="checklist", options=["A"])) == []


def test_checklist_default_is_a_fresh_list():
    f = make(type="checklist", options=["A"])
    first = default_value(f)
    first.append("A")
    assert default_value(f) == []


def test_unknown_type_uses_text_contract():
    sig = make(type="signature", required=True)
    assert contract_for(sig).type == "text"
    assert default_value(sig) is MISSING
    assert normalize_value(sig, 5) == "5"
    assert validate_value(sig, "") == REQUIRED
    assert validate_value(sig, "me") is None
    assert render_hints(sig)["widget"] == "input"


def test_number_normalisation_and_check():
    f = make(type="number", required=True)
    assert normalize_value(f, "12") == 12
    assert normalize_value(f, " 2.5 ") == 2.5
    assert normalize_value(f, "") is MISSING
    assert math.isnan(normalize_value(f, "abc"))
    assert math.isnan(normalize_value(f, True))
    assert validate_value(f, MISSING) == REQUIRED
    assert validate_value(f, 3) is None

    optional = make(type="number")
    assert validate_value(optional, MISSING) is None
    assert validate_value(optional, math.nan) == "Must be a number"


@pytest.mark.parametrize("text", ["1_000", "\u0661\u0662", "0x10", "inf", "nan", "1e", "--1"])
def test_number_text_outside_decimal_grammar_is_not_a_number(text):
    assert math.isnan(normalize_value(make(type="number"), text))


def test_number_decimal_grammar():
    f = make(type="number")
    assert normalize_value(f, "-7") == -7
    assert normalize_value(f, "+.5") == 0.5
    assert normalize_value(f, "3.") == 3.0
    assert normalize_value(f, "1e3") == 1000.0


def test_boolean_is_three_valued():
    f = make(type="boolean", required=True)
    assert normalize_value(f, "true") is True
    assert normalize_value(f, "false") is False
    assert normalize_value(f, None) is MISSING
    assert validate_value(f, MISSING) == REQUIRED
    assert validate_value(f, False) is None
    assert validate_value(make(type="boolean"), "maybe") == "Choose one option"


def test_select_rules():
    f = make(type="select", options=["A", "B"], required=True)
    assert validate_value(f, "") == REQUIRED
    assert validate_value(f, "A") is None
    assert validate_value(make(type="select", options=["A"]), "") is None
    assert validate_value(make(type="select", options=["A"]), "Z") == "Not a valid option"


def test_checklist_rules():
    f = make(type="checklist", options=["Ox", "Trauma"], required=True)
    assert normalize_value(f, ["Ox", "Ox", "Trauma"]) == ["Ox", "Trauma"]
    assert normalize_value(f, "Ox") == ["Ox"]
    assert validate_value(f, []) == REQUIRED
    assert validate_value(f, ["Ox"]) is None
    assert validate_value(f, ["Ox", "Saw"]) == "Unknown option(s): Saw"


def test_toggle_option_keeps_insertion_order():
    value = toggle_option([], "Trauma", True)
    value = toggle_option(value, "Ox", True)
    value = toggle_option(value, "Ox", True)
    assert value == ["Trauma", "Ox"]
    assert toggle_option(value, "Trauma", False) == ["Ox"]
    assert toggle_option(None, "Ox", False) == []


def test_date_bounds_are_inclusive():
    f = make(type="date", min="2025-01-01", max="2025-01-31")
    assert normalize_value(f, date(2025, 1, 5)) == "2025-01-05"
    assert normalize_value(f, "  ") is MISSING
    assert validate_value(f, "2025-01-01") is None
    assert validate_value(f, "2025-01-31") is None
    assert validate_value(f, "2024-12-31") == "Must be on or after 2025-01-01"
    assert validate_value(f, "2025-02-01") == "Must be on or before 2025-01-31"
    assert validate_value(f, "01/05/2025") == "Enter a valid date (YYYY-MM-DD)"


@pytest.mark.parametrize("text", ["20250105", "2025-W01-1", "2025-005", "2025-1-5"])
def test_only_extended_calendar_dates_are_accepted(text):
    f = make(type="date")
    assert normalize_value(f, text) == text
    assert validate_value(f, text) == "Enter a valid date (YYYY-MM-DD)"


def test_date_strings_are_stored_trimmed():
    assert normalize_value(make(type="date"), " 2025-01-05 ") == "2025-01-05"


def test_date_bounds_must_be_iso():
    with pytest.raises(ValueError):
        make(type="date", min="January")
    with pytest.raises(ValueError):
        make(type="date", max="20250131")


def test_text_values():
    f = make(type="text", required=True)
    assert normalize_value(f, 5) == "5"
    assert validate_value(f, "") == REQUIRED
    assert validate_value(make(type="text"), "") is None


def test_render_hints():
    hints = render_hints(make(type="checklist", options=[]))
    assert hints["widget"] == "checkboxes"
    assert hints["empty_text"] == "No options."

    hints = render_hints(make(type="boolean", switchLabel="Done", noLabel="Not yet"))
    assert [c["label"] for c in hints["choices"]] == ["Done", "Not yet"]

    hints = render_hints(make(type="boolean"))
    assert [c["label"] for c in hints["choices"]] == ["Yes", "No"]
