"""
tsqn — Select Engine

select(data, statement) → partial copy of data | None

Read-only mirror of the update traversal. A statement mirrors the data's
shape; each leaf is True (include the value wholesale) or a nested select
statement. WHERE prunes a whole subtree, ALL applies its leaf to every key
not named explicitly (so {ALL: True, "x": False} drops only "x").

Selections from lists come back as compacted lists in index order.
Absent keys are never included. "Nothing selected" is None at the top.
"""

from __future__ import annotations

from typing import Any, Sequence

from tsqn.config import settings
from tsqn.types import (
    ALL,
    MISSING,
    WHERE,
    call_with,
    get_key,
    is_container,
    is_list_index,
    node_keys,
    split_statement,
)
from tsqn.update import StatementTooDeep


class _NoResult:
    def __repr__(self) -> str:
        return "NO_RESULT"


# Distinct from None so legitimately selected None/0/""/[] values survive
NO_RESULT: Any = _NoResult()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def select(data: Any, statement: dict) -> Any:
    result = _select(data, statement, 0)
    return None if result is NO_RESULT else result


def select_by_path(data: Any, path: Sequence[Any]) -> Any:
    """
    Project `data` along a single path of keys and ALL.

    select_by_path(d, ["users", ALL, "name"]) → {"users": {"ann": {"name": ...}, ...}}

    Any non-dict value met along the way (lists included) ends the path and
    is returned as-is. Returns None when nothing matched.
    """
    result = _by_path(data, list(path))
    return None if result is MISSING else result


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _select(data: Any, statement: dict, depth: int) -> Any:
    if depth > settings.MAX_DEPTH:
        raise StatementTooDeep(f"Select statement nesting exceeds {settings.MAX_DEPTH}")

    ops, entries = split_statement(statement)

    where = ops.get(WHERE)
    if where is not None and not call_with(where, data):
        return NO_RESULT

    if not is_container(data):
        return data

    if ALL in ops:
        for key in node_keys(data):
            entries.setdefault(key, ops[ALL])

    is_list = isinstance(data, list)
    selected: list[tuple[Any, Any]] = []
    for key, leaf in entries.items():
        if is_list and not is_list_index(data, key):
            continue
        value = get_key(data, key)
        if value is MISSING:
            continue

        if leaf is True:
            picked = value
        elif isinstance(leaf, dict):
            picked = _select(value, leaf, depth + 1)
        else:
            continue

        if picked is not NO_RESULT:
            selected.append((key, picked))

    if not selected:
        return NO_RESULT
    if is_list:
        return [value for _, value in sorted(selected, key=lambda kv: kv[0])]
    return dict(selected)


def _by_path(data: Any, path: list[Any]) -> Any:
    if not path or not isinstance(data, dict):
        return data

    head, tail = path[0], path[1:]
    keys = list(data) if head is ALL else [head]

    result: dict = {}
    for key in keys:
        if key not in data:
            continue
        value = _by_path(data[key], tail)
        if value is not MISSING:
            result[key] = value
    return result if result else MISSING
