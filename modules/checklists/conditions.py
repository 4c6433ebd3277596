"""Conditional visibility language used by checklist fields (``showIf``).

A condition is a small tree.  Leaves compare a single answer against a
literal and groups combine their children with AND / OR::

    {"field": "mode", "op": "eq", "value": "B"}
    {"and": [{"field": "fuel", "op": "neq", "value": "Full"},
             {"or": [{"field": "kit", "op": "in", "value": ["Ox", "Trauma"]}]}]}

The wire payload is parsed into tagged nodes (:class:`Leaf`, :class:`AllOf`,
:class:`AnyOf`) and anything structurally broken is kept as :class:`Opaque`.
:func:`evaluate` is total: it never raises and malformed nodes evaluate as
visible, so an authoring mistake can never hide a field.

Comparison rules
----------------
``eq``
    Boolean answers compare against the string sentinels ``"true"`` and
    ``"false"``.  List answers (checklists) test membership.  Everything
    else uses strict equality, where a boolean never equals a number and an
    unanswered field never equals ``None``.
``neq``
    Negation of the membership / strict-equality test.  Booleans are *not*
    compared against the string sentinels here, so ``neq "true"`` is true
    for every boolean answer.
``in``
    The literal must be a list.  A list answer matches when it shares at
    least one element with the literal, a scalar answer when it is a member.

Unknown operators evaluate as visible.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)

OPERATORS: Tuple[str, ...] = ("eq", "neq", "in")
GROUP_KEYS: Tuple[str, ...] = ("and", "or")


class _Missing:
    """Marker for an answer that was never set."""

    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass(frozen=True, slots=True)
class Leaf:
    field: str
    op: str
    value: Any = MISSING


@dataclass(frozen=True, slots=True)
class AllOf:
    children: Tuple["Condition", ...] = ()


@dataclass(frozen=True, slots=True)
class AnyOf:
    children: Tuple["Condition", ...] = ()


@dataclass(frozen=True, slots=True)
class Opaque:
    """A node that matches none of the known shapes; kept verbatim."""

    raw: Any


Condition = Union[Leaf, AllOf, AnyOf, Opaque]
_NODE_TYPES = (Leaf, AllOf, AnyOf, Opaque)


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _parse_node(raw: Any) -> Condition:
    if isinstance(raw, _NODE_TYPES):
        return raw
    if not raw or not isinstance(raw, Mapping):
        return Opaque(copy.deepcopy(raw))
    if "and" in raw:
        children = raw["and"]
        if not isinstance(children, (list, tuple)):
            return Opaque(copy.deepcopy(raw))
        return AllOf(tuple(_parse_node(c) for c in children))
    if "or" in raw:
        children = raw["or"]
        if not isinstance(children, (list, tuple)):
            return Opaque(copy.deepcopy(raw))
        return AnyOf(tuple(_parse_node(c) for c in children))
    field = raw.get("field")
    if not isinstance(field, str):
        return Opaque(copy.deepcopy(raw))
    value = copy.deepcopy(raw["value"]) if "value" in raw else MISSING
    return Leaf(field=field, op=str(raw.get("op", "")), value=value)


def parse_condition(raw: Any) -> Optional[Condition]:
    """Parse a ``showIf`` payload.  Empty payloads mean "no condition"."""

    if isinstance(raw, _NODE_TYPES):
        return raw
    if not raw:
        return None
    try:
        return _parse_node(raw)
    except RecursionError:
        logger.warning("[conditions] condition nested too deeply; treating as visible")
        return Opaque(None)


def to_wire(node: Optional[Condition]) -> Any:
    """Return the JSON shape for ``node`` (``None`` for no condition)."""

    if node is None:
        return None
    if isinstance(node, Leaf):
        out = {"field": node.field, "op": node.op}
        if node.value is not MISSING:
            out["value"] = copy.deepcopy(node.value)
        return out
    if isinstance(node, AllOf):
        return {"and": [to_wire(c) for c in node.children]}
    if isinstance(node, AnyOf):
        return {"or": [to_wire(c) for c in node.children]}
    return copy.deepcopy(node.raw)


def iter_leaves(node: Optional[Condition]) -> Iterator[Leaf]:
    if node is None:
        return
    if isinstance(node, Leaf):
        yield node
    elif isinstance(node, (AllOf, AnyOf)):
        for child in node.children:
            yield from iter_leaves(child)


def referenced_fields(node: Optional[Condition]) -> Set[str]:
    return {leaf.field for leaf in iter_leaves(node)}


def check_condition(raw: Any, path: str = "showIf") -> Tuple[List[str], List[str]]:
    """Structural check used by the form loader.

    Returns ``(errors, warnings)``.  Errors make the form unloadable; warnings
    describe shapes the evaluator tolerates (empty groups, unknown operators,
    ``in`` with a scalar literal).
    """

    errors: List[str] = []
    warnings: List[str] = []

    def walk(node: Any, where: str) -> None:
        if not isinstance(node, Mapping):
            errors.append(f"{where}: condition must be an object")
            return
        shapes = [k for k in GROUP_KEYS if k in node]
        if "field" in node or "op" in node:
            shapes.append("leaf")
        if len(shapes) != 1:
            errors.append(f"{where}: condition must be exactly one of and/or/leaf")
            return
        shape = shapes[0]
        if shape in GROUP_KEYS:
            children = node[shape]
            if not isinstance(children, list):
                errors.append(f"{where}.{shape}: must be a list")
                return
            if not children:
                warnings.append(f"{where}.{shape}: empty group")
            for i, child in enumerate(children):
                walk(child, f"{where}.{shape}[{i}]")
            return
        if not isinstance(node.get("field"), str) or not node.get("field"):
            errors.append(f"{where}.field: must be a non-empty string")
        op = node.get("op")
        if not isinstance(op, str):
            errors.append(f"{where}.op: must be a string")
        elif op not in OPERATORS:
            warnings.append(f"{where}.op: unknown operator {op!r} always matches")
        elif op == "in" and not isinstance(node.get("value"), list):
            warnings.append(f"{where}.value: 'in' expects a list and never matches otherwise")

    try:
        walk(raw, path)
    except RecursionError:
        errors.append(f"{path}: condition nested too deeply")
    return errors, warnings


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equals(a: Any, b: Any) -> bool:
    if a is MISSING or b is MISSING:
        return a is b
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def _includes(items: Any, needle: Any) -> bool:
    for item in items:
        if _strict_equals(item, needle):
            return True
        if _is_number(item) and _is_number(needle) and math.isnan(item) and math.isnan(needle):
            return True
    return False


def _eval_leaf(leaf: Leaf, answers: Mapping[str, Any]) -> bool:
    actual = answers.get(leaf.field, MISSING)
    expected = leaf.value
    op = leaf.op
    if op == "eq":
        if isinstance(actual, bool):
            return _strict_equals(expected, "true" if actual else "false")
        if _is_array(actual):
            return _includes(actual, expected)
        return _strict_equals(actual, expected)
    if op == "neq":
        if _is_array(actual):
            return not _includes(actual, expected)
        return not _strict_equals(actual, expected)
    if op == "in":
        if not _is_array(expected):
            return False
        if _is_array(actual):
            return any(_includes(expected, item) for item in actual)
        return _includes(expected, actual)
    return True


def _eval(node: Condition, answers: Mapping[str, Any]) -> bool:
    if isinstance(node, AllOf):
        return all(_eval(child, answers) for child in node.children)
    if isinstance(node, AnyOf):
        return any(_eval(child, answers) for child in node.children)
    if isinstance(node, Leaf):
        return _eval_leaf(node, answers)
    return True


def evaluate(condition: Any, answers: Mapping[str, Any]) -> bool:
    """Return whether ``condition`` holds for ``answers``.

    ``condition`` may be ``None``, a parsed node or a raw wire payload.
    """

    node = parse_condition(condition)
    if node is None:
        return True
    try:
        return _eval(node, answers)
    except RecursionError:
        return True


__all__ = [
    "OPERATORS",
    "MISSING",
    "Leaf",
    "AllOf",
    "AnyOf",
    "Opaque",
    "Condition",
    "parse_condition",
    "to_wire",
    "iter_leaves",
    "referenced_fields",
    "check_condition",
    "evaluate",
]
