"""
tsqn — Data Bindings

Declarative derived-state rules. A binding watches a path in the change
record and, when that path changed, produces further update statements
that are merged into the same record.

Path segments:
  "key" / 3        follow that key
  ALL              follow every changed key at this level
  ["key"], [ALL]   same, and capture the data value found there
  {detector}       trailing inline change detector (see tsqn.changes)

Arguments passed to Binding.update:
  with captures     the captured data values, in path order
  without captures  the root data, then each key matched by ALL

    Binding(
        on_change=["items", [ALL], {"qty": any_change}],
        update=lambda item: {"totals": {"dirty": True}},
    )

Bindings run once per update, in declaration order. They do not cascade
to a fixpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from tsqn.changes import has_changes
from tsqn.types import ALL, MISSING, Operator, get_key, node_keys
from tsqn.update import undo, update

logger = logging.getLogger(__name__)


@dataclass
class Binding:
    on_change: list[Any] | dict
    update: Callable[..., dict | list[dict] | None]
    init: bool = False

    def __post_init__(self) -> None:
        path = self.path
        if not path:
            raise ValueError("Binding.on_change must not be empty")
        for segment in path[:-1]:
            if isinstance(segment, dict):
                raise ValueError("Inline detectors are only allowed as the last on_change segment")
        for segment in path:
            if isinstance(segment, list) and len(segment) != 1:
                raise ValueError(f"Capture segments wrap exactly one key, got {segment!r}")

    @property
    def path(self) -> list[Any]:
        if isinstance(self.on_change, dict):
            return [self.on_change]
        return list(self.on_change)

    @property
    def captures(self) -> bool:
        return any(isinstance(segment, list) for segment in self.path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_binding(
    data: dict | list,
    changes: dict | None,
    binding: Binding,
    init: bool = False,
) -> dict | None:
    """
    Run one binding against `changes` and merge what it produces.

    In init mode the data itself stands in for the change record, so every
    existing path counts as changed.
    """
    source = data if init else changes
    if source is None:
        return changes

    args: list[Any] = [] if binding.captures else [data]
    statements = _extract(data, source, binding.path, binding, args)
    if statements:
        logger.debug("binding: %d statement(s) for %r", len(statements), binding.on_change)

    for statement in statements:
        if statement:
            changes = update(data, statement, changes)
    return changes


def apply_bindings(
    data: dict | list,
    changes: dict | None,
    bindings: Iterable[Binding],
    init: bool = False,
) -> dict | None:
    for binding in bindings:
        changes = apply_binding(data, changes, binding, init)
    return changes


class Model:
    """
    A data root with bindings attached.

    Bindings flagged init=True run once at construction. Every update()
    runs all bindings against the resulting record and returns the
    combined record.
    """

    def __init__(self, data: dict | list, bindings: Iterable[Binding] = ()) -> None:
        self.data = data
        self.bindings = list(bindings)
        initial = [b for b in self.bindings if b.init]
        if initial:
            apply_bindings(data, None, initial, init=True)

    def update(self, statement: dict | None) -> dict | None:
        changes = update(self.data, statement)
        if changes is not None:
            changes = apply_bindings(self.data, changes, self.bindings)
        return changes

    def undo(self, changes: dict | None) -> None:
        undo(self.data, changes)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _as_statements(result: Any) -> list[dict]:
    if result is None:
        return []
    if isinstance(result, list):
        return [s for s in result if s]
    return [result]


def _extract(data: Any, change: Any, path: list[Any], binding: Binding, args: list[Any]) -> list[dict]:
    head, tail = path[0], path[1:]

    if isinstance(head, dict):
        if not has_changes(change, head):
            return []
        return _as_statements(binding.update(*args))

    captured = isinstance(head, list)
    field = head[0] if captured else head

    def single(key: Any, from_wildcard: bool) -> list[dict]:
        key_change = get_key(change, key)
        if key_change is MISSING:
            return []

        key_args = args
        if from_wildcard and not binding.captures:
            key_args = [*key_args, key]
        key_data = get_key(data, key)
        key_data = None if key_data is MISSING else key_data
        if captured:
            key_args = [*key_args, key_data]

        if not tail:
            return _as_statements(binding.update(*key_args))
        return _extract(key_data, key_change, tail, binding, key_args)

    if field is ALL:
        statements: list[dict] = []
        for key in node_keys(change):
            if not isinstance(key, Operator):
                statements.extend(single(key, True))
        return statements

    return single(field, False)
