"""
tsqn — declarative tree update / undo / select engine.

Components:
  types        — operator markers (ALL, WHERE, DEFAULT, CONTEXT, META), Replace/DELETE, UndoEntry
  update       — (data, statement) → change record, mutating data in place; undo
  transaction  — cumulative updates with commit / revert
  select       — read-only partial projection of data
  changes      — "did anything matching this shape change" queries
  bindings     — derived-state rules reacting to change records
  codec        — JSON encoding of change records
"""

from tsqn.bindings import Binding, Model, apply_binding, apply_bindings
from tsqn.changes import any_change, has_changes, type_change
from tsqn.codec import CodecError, dump_changes, from_json, load_changes, to_json
from tsqn.select import select, select_by_path
from tsqn.transaction import Transaction, transaction
from tsqn.types import ALL, CONTEXT, DEFAULT, DELETE, META, MISSING, WHERE, Replace, UndoEntry
from tsqn.update import (
    InvalidIndex,
    InvalidOperand,
    InvalidPartialUpdate,
    StatementTooDeep,
    UpdateError,
    undo,
    update,
)

__all__ = [
    "ALL",
    "WHERE",
    "DEFAULT",
    "CONTEXT",
    "META",
    "MISSING",
    "DELETE",
    "Replace",
    "UndoEntry",
    "update",
    "undo",
    "transaction",
    "Transaction",
    "select",
    "select_by_path",
    "has_changes",
    "any_change",
    "type_change",
    "Binding",
    "Model",
    "apply_binding",
    "apply_bindings",
    "dump_changes",
    "load_changes",
    "to_json",
    "from_json",
    "UpdateError",
    "InvalidOperand",
    "InvalidPartialUpdate",
    "InvalidIndex",
    "StatementTooDeep",
    "CodecError",
]
