"""
tsqn — Shared Types

Operator markers, statement-node variants and undo metadata used across
update, select, change detection and bindings.

Markers are unique sentinel objects. They sit next to ordinary field names
as dict keys in statements and change records and can never collide with
a string or int key:

  ALL      (*)   wildcard: applies to every key not named explicitly
  WHERE    (?)   guard: predicate gating the current subtree
  DEFAULT  ({})  value materialised before a nested statement is applied
                 to an absent or non-object key
  CONTEXT  ($)   key-value bag threaded downward to guards and transforms
  META     (#)   undo metadata in change records
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable

# ---------------------------------------------------------------------------
# Operator markers
# ---------------------------------------------------------------------------


class Operator:
    """A distinguished statement key. Compared by identity only."""

    __slots__ = ("sigil", "name")

    def __init__(self, sigil: str, name: str) -> None:
        self.sigil = sigil
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.name} {self.sigil}>"

    def __reduce__(self) -> str:
        # Pickle/copy as the module-level singleton
        return self.name


ALL = Operator("*", "ALL")
WHERE = Operator("?", "WHERE")
DEFAULT = Operator("{}", "DEFAULT")
CONTEXT = Operator("$", "CONTEXT")
META = Operator("#", "META")

OPERATORS: tuple[Operator, ...] = (ALL, WHERE, DEFAULT, CONTEXT, META)


class _Missing:
    """Marks a key that is absent from its node."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


# ---------------------------------------------------------------------------
# Statement-node variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Replace:
    """Replace a key wholesale, bypassing merge semantics. `[value]` is shorthand."""

    value: Any


class _Delete:
    _instance: _Delete | None = None

    def __new__(cls) -> _Delete:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE"

    def __reduce__(self) -> str:
        return "DELETE"


DELETE: Any = _Delete()


# ---------------------------------------------------------------------------
# Undo metadata
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UndoEntry:
    """Pre-mutation value of a key that was replaced or deleted at its node."""

    original: Any

    @property
    def was_missing(self) -> bool:
        return self.original is MISSING


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_container(value: Any) -> bool:
    """True for the node types the engine can descend into."""
    return isinstance(value, (dict, list))


def is_list_index(node: list, key: Any) -> bool:
    return isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(node)


def get_key(node: Any, key: Any) -> Any:
    """Value at `key`, or MISSING. Never raises."""
    if isinstance(node, dict):
        return node.get(key, MISSING)
    if isinstance(node, list) and is_list_index(node, key):
        return node[key]
    return MISSING


def node_keys(node: Any) -> list[Any]:
    """Own enumerable keys of a node (indices for lists)."""
    if isinstance(node, dict):
        return list(node.keys())
    if isinstance(node, list):
        return list(range(len(node)))
    return []


def split_statement(statement: dict) -> tuple[dict, dict]:
    """Split a statement into ({operator: operand}, {key: operand})."""
    ops: dict = {}
    rest: dict = {}
    for key, operand in statement.items():
        if isinstance(key, Operator):
            ops[key] = operand
        else:
            rest[key] = operand
    return ops, rest


def _positional_arity(fn: Callable) -> int | None:
    """Number of positional args `fn` accepts, or None for *args/unknown."""
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return None

    arity = 0
    for p in params:
        if p.kind is p.VAR_POSITIONAL:
            return None
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD):
            arity += 1
    return arity


def call_with(fn: Callable, *args: Any) -> Any:
    """
    Call `fn` with as many leading positional args as it accepts.

    Transforms are documented as (value, data, key, context), guards as
    (value, context), detectors as (key, changes). Callers may declare
    fewer parameters.
    """
    arity = _positional_arity(fn)
    if arity is None:
        return fn(*args)
    return fn(*args[:arity])
