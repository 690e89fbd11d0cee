"""
tsqn — Update Engine

update(data, statement, changes) → changes | None
undo(data, changes) → None

Applies a declarative update statement to a dict/list tree in place and
returns a sparse change record: only mutated paths, each mutated leaf
holding its new value. A node whose keys were replaced or deleted
directly carries undo metadata under META:

    {"user": {"age": 31, META: {"age": UndoEntry(original=30)}},
     "active": False,
     META: {"active": UndoEntry(original=True)}}

Keys changed by merging into an existing nested object carry no entry at
their parent; their own nested record describes them.

Threading an existing record back in (as Transaction does) composes the
new changes into it. An undo entry is written only the first time a key is
touched, so it always holds the value from before the first call. When a
key that was merged into earlier is then replaced or deleted, the detached
old object is first restored in place from its nested record. A caller
still holding a reference to that object sees it revert.

At list nodes deletions run last, in descending index order, so every
index in a statement refers to the list as it was before the call. A list
record that already holds deletions is recorded wholesale the next time it
is updated.

Errors are caller programming errors and are raised synchronously. Work
done earlier in the same call is not rolled back.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from tsqn.config import settings
from tsqn.types import (
    ALL,
    CONTEXT,
    DEFAULT,
    DELETE,
    META,
    MISSING,
    WHERE,
    Operator,
    Replace,
    UndoEntry,
    call_with,
    get_key,
    is_container,
    node_keys,
    split_statement,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class UpdateError(Exception):
    """Base class for malformed update statements."""
    pass


class InvalidOperand(UpdateError):
    """A list wrapper with two or more elements was used as an operand."""
    pass


class InvalidPartialUpdate(UpdateError):
    """A nested statement targets a non-object value and supplies no DEFAULT."""
    pass


class InvalidIndex(UpdateError):
    """A list was addressed with a key that is not a usable index."""
    pass


class StatementTooDeep(UpdateError):
    """Statement nesting exceeded settings.MAX_DEPTH."""
    pass


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def update(
    data: dict | list,
    statement: dict | None = None,
    changes: dict | None = None,
) -> dict | None:
    """
    Apply `statement` to `data` in place.

    When `changes` is given it is extended in place and returned; entries
    for work done before an exception are already in it. Returns None when
    the resulting record is empty.
    """
    if statement is None:
        return None
    if not is_container(data):
        raise InvalidPartialUpdate(f"Can't partially update a non-object: {type(data).__name__}")
    if changes is None:
        changes = {}
    elif isinstance(data, list) and _has_deletions(changes):
        raise InvalidIndex("Can't extend a top-level list record that holds deletions; commit or revert first")
    _update(data, statement, changes, None, 0)
    return changes if changes else None


def undo(data: Any, changes: dict | None) -> None:
    """
    Revert `data` to its state before the updates recorded in `changes`.

    An undo entry at a node always wins for its key: it denotes a full
    replace or delete there. Keys without one were merged into and are
    reverted from their nested record. Never raises on mismatched shapes.
    """
    stack: list[tuple[Any, Any]] = [(data, changes)]
    while stack:
        node, record = stack.pop()
        if not is_container(node) or not isinstance(record, dict):
            continue

        meta = record.get(META) or {}
        if isinstance(node, list):
            keys = _undo_list_slots(node, record, meta)
        else:
            keys = [k for k in record if not isinstance(k, Operator)]

        for key in keys:
            entry = meta.get(key)
            if entry is not None:
                _restore(node, key, entry.original)
            else:
                stack.append((get_key(node, key), record[key]))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _plain(value: Any) -> Any:
    """Value as handed to user callables: absent reads as None."""
    return None if value is MISSING else value


def _same(old: Any, new: Any) -> bool:
    """Identity, or equal scalars of the same type."""
    if old is new:
        return True
    if is_container(old) or is_container(new) or old is MISSING:
        return False
    return type(old) is type(new) and old == new


def _clone(value: Any) -> Any:
    if callable(value) or not settings.CLONE_REPLACEMENTS:
        return value
    return copy.deepcopy(value)


def _check_index(node: list, key: Any) -> int:
    if not isinstance(key, int) or isinstance(key, bool):
        raise InvalidIndex(f"List keys must be int indices, got {key!r}")
    return key


def _assign(node: dict | list, key: Any, value: Any) -> None:
    if isinstance(node, dict):
        node[key] = value
        return
    index = _check_index(node, key)
    if 0 <= index < len(node):
        node[index] = value
    elif index == len(node):
        node.append(value)
    else:
        raise InvalidIndex(f"Index {index} out of range for list of length {len(node)}")


def _has_deletions(record: dict | None) -> bool:
    meta = record.get(META) if record else None
    return bool(meta) and any(record.get(key) is MISSING for key in meta)


def _reinsert(node: list, key: int, original: Any) -> None:
    if 0 <= key <= len(node):
        node.insert(key, original)
    else:
        logger.debug("undo: can't re-insert list index %r (len=%d)", key, len(node))


def _restore(node: dict | list, key: Any, original: Any) -> None:
    if isinstance(node, dict):
        if original is MISSING:
            node.pop(key, None)
        else:
            node[key] = original
        return

    if original is MISSING:
        if key == len(node) - 1:
            node.pop()
        else:
            logger.debug("undo: cannot remove non-trailing list index %r (len=%d)", key, len(node))
        return
    if 0 <= key < len(node):
        node[key] = original
    elif key == len(node):
        node.append(original)
    else:
        logger.debug("undo: list index %r out of range (len=%d)", key, len(node))


def _undo_list_slots(node: list, record: dict, meta: dict) -> list[int]:
    """
    Revert the structural edits of a list record, returning the keys left.

    Deleted slots go back in ascending order, which rebuilds the indices
    the record was written against. Appended slots then come off the end.
    A slot appended and later deleted is re-inserted as a placeholder and
    dropped with the other appended ones. What remains are in-place edits.
    """
    keys = sorted(k for k in record if isinstance(k, int) and not isinstance(k, bool))
    deleted = {k for k in keys if k in meta and record[k] is MISSING}
    appended = {k for k in keys if k in meta and meta[k].was_missing}

    for key in sorted(deleted):
        _reinsert(node, key, meta[key].original)
    for key in sorted(appended, reverse=True):
        _restore(node, key, MISSING)
    return [k for k in keys if k not in deleted and k not in appended]


def _normalize(operand: Any) -> Any:
    """Map list wrappers onto the tagged variants."""
    if not isinstance(operand, list):
        return operand
    if len(operand) == 0:
        return DELETE
    if len(operand) == 1:
        return Replace(operand[0])
    raise InvalidOperand(f"Multiple element lists are not allowed as operands (got {len(operand)})")


def _merge_context(context: dict | None, extra: dict | None) -> dict | None:
    if not extra:
        return context
    return {**context, **extra} if context else dict(extra)


def _update(
    data: dict | list,
    statement: dict,
    changes: dict,
    context: dict | None,
    depth: int,
) -> None:
    """Apply one statement level, recording into `changes` in place."""
    if depth > settings.MAX_DEPTH:
        raise StatementTooDeep(f"Statement nesting exceeds {settings.MAX_DEPTH}")

    ops, static = split_statement(statement)
    context = _merge_context(context, ops.get(CONTEXT))

    where = ops.get(WHERE)
    if where is not None and not call_with(where, data, context):
        return

    if ALL in ops:
        wildcard = ops[ALL]
        for key in node_keys(data):
            if key not in static:
                static[key] = wildcard

    def record(key: Any, old: Any, new: Any) -> None:
        meta = changes.get(META)
        if meta is None:
            meta = changes[META] = {}
        if key not in meta:
            prior = changes.get(key)
            if is_container(old) and isinstance(prior, dict):
                # Merged into earlier: record the object as it was before that
                undo(old, prior)
            meta[key] = UndoEntry(old)
        changes[key] = new

    deletions: list[tuple[int, Any]] = []
    for key, operand in static.items():
        old = get_key(data, key)
        if callable(operand):
            operand = call_with(operand, _plain(old), data, key, context)
            if old is MISSING and operand is None:
                continue
        if operand is old:
            continue
        operand = _normalize(operand)

        if operand is DELETE:
            if old is MISSING:
                continue
            if isinstance(data, list):
                deletions.append((key, old))
                continue
            del data[key]
            record(key, old, MISSING)
            continue

        if isinstance(operand, Replace):
            value = _clone(operand.value)
            if _same(old, value):
                continue
            _assign(data, key, value)
            record(key, old, value)
            continue

        if not isinstance(operand, dict):
            if _same(old, operand):
                continue
            _assign(data, key, operand)
            record(key, old, operand)
            continue

        # Nested statement
        if not is_container(old):
            nested_where = operand.get(WHERE)
            nested_context = _merge_context(context, operand.get(CONTEXT))
            if nested_where is not None and not call_with(nested_where, _plain(old), nested_context):
                continue
            if DEFAULT not in operand:
                raise InvalidPartialUpdate(f"Can't partially update a non-object: {key!r}")
            value = _clone(operand[DEFAULT])
            if not is_container(value):
                raise InvalidPartialUpdate(f"DEFAULT for {key!r} must be a dict or list")
            logger.debug("update: materialised default for key %r", key)
            _assign(data, key, value)
            record(key, old, value)
            # Only the replacement of `key` is recorded, not the edits to the fresh default
            _update(value, operand, {}, context, depth + 1)
            continue

        meta = changes.get(META)
        if meta and key in meta:
            # Already replaced wholesale; its undo entry covers this merge
            _update(old, operand, {}, context, depth + 1)
            continue

        nested = changes.get(key)
        if isinstance(old, list) and _has_deletions(nested):
            # Earlier deletions shifted the indices; record the whole list from here on
            original = copy.deepcopy(old)
            undo(original, nested)
            changes.setdefault(META, {})[key] = UndoEntry(original)
            changes[key] = old
            logger.debug("update: list %r recorded wholesale after earlier deletions", key)
            _update(old, operand, {}, context, depth + 1)
            continue

        if nested is None:
            # Linked before descending so partial work survives an exception
            nested = changes[key] = {}
        _update(old, operand, nested, context, depth + 1)
        if not nested:
            del changes[key]

    for key, old in sorted(deletions, key=lambda item: item[0], reverse=True):
        del data[key]
        record(key, old, MISSING)
