"""
tsqn — Transaction

Accumulates a sequence of updates against one data root into a single
cumulative change record whose undo entries reflect the state before the
first update.

    t = transaction(state)
    t.update({"a": 1}).update({"a": 2})
    changes = t.commit()     # caller owns the record, accumulator cleared

    with transaction(state) as t:
        t.update(stmt)       # reverted if the block raises
"""

from __future__ import annotations

import logging
from typing import Any

from tsqn.update import undo, update

logger = logging.getLogger(__name__)


class Transaction:
    """Single-writer accumulator bound to one data root."""

    __slots__ = ("data", "_changes")

    def __init__(self, data: dict | list) -> None:
        self.data = data
        self._changes: dict | None = None

    @property
    def changes(self) -> dict | None:
        """The record accumulated so far (not a copy)."""
        return self._changes

    def update(self, statement: dict | None) -> Transaction:
        """Apply `statement`. If it raises, what it already did stays revertable."""
        if self._changes is None:
            self._changes = {}
        try:
            update(self.data, statement, self._changes)
        finally:
            if not self._changes:
                self._changes = None
        return self

    def commit(self) -> dict | None:
        """Return the accumulated record and start over."""
        changes = self._changes
        self._changes = None
        logger.debug("transaction: commit (%s)", "changes" if changes else "empty")
        return changes

    def revert(self) -> None:
        """Undo everything accumulated so far and start over. Safe when empty."""
        if self._changes is not None:
            logger.debug("transaction: revert")
            undo(self.data, self._changes)
        self._changes = None

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None:
            self.revert()


def transaction(data: dict | list) -> Transaction:
    return Transaction(data)
