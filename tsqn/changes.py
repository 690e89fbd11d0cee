"""
tsqn — Change Detection

has_changes(changes, detector) → bool

Answers "did anything matching this shape change" against a change record.
A detector mirrors the record's shape: a callable entry is invoked as
(key, record) and a True result ends the search; a dict entry descends
into record[key]. ALL applies its entry to every key of the record not
named explicitly. Evaluation is depth-first in detector order.

Two stock predicates:
  any_change   key is present in the record at all
  type_change  the undo entry's original and the new value differ in
               null-ness or type class (e.g. None → 3, "a" → {...})
"""

from __future__ import annotations

from collections.abc import Iterator
from numbers import Number
from typing import Any

from tsqn.types import ALL, META, MISSING, Operator, call_with, split_statement


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def has_changes(changes: dict | None, detector: dict) -> bool:
    if not isinstance(changes, dict):
        return False

    stack: list[Iterator[tuple[dict, Any, Any]]] = [_entries(changes, detector)]
    while stack:
        item = next(stack[-1], None)
        if item is None:
            stack.pop()
            continue

        record, key, entry = item
        if callable(entry):
            if call_with(entry, key, record):
                return True
        elif isinstance(entry, dict):
            nested = record.get(key)
            if isinstance(nested, dict):
                stack.append(_entries(nested, entry))

    return False


def any_change(key: Any, changes: dict | None) -> bool:
    return changes is not None and key in changes


def type_change(key: Any, changes: dict | None) -> bool:
    meta = changes.get(META) if changes else None
    if not meta or key not in changes or key not in meta:
        return False

    new = changes[key]
    old = meta[key].original
    if new is None:
        return old is not None
    if old is None:
        return True
    return _type_class(new) != _type_class(old)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _type_class(value: Any) -> str:
    if value is MISSING:
        return "missing"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, Number):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"


def _entries(record: dict, detector: dict) -> Iterator[tuple[dict, Any, Any]]:
    ops, entries = split_statement(detector)
    if ALL in ops:
        for key in record:
            if not isinstance(key, Operator) and key not in entries:
                entries[key] = ops[ALL]
    for key, entry in entries.items():
        yield record, key, entry
