"""
tsqn configuration — environment variables in one place.

Read from the environment at import time.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Engine settings from environment variables."""

    # Maximum statement nesting for update/select. undo and has_changes
    # walk with explicit stacks and are not bounded by this.
    MAX_DEPTH: int = int(os.environ.get("TSQN_MAX_DEPTH", "512"))

    # Deep-copy Replace/[v] operands and DEFAULT values before storing them
    CLONE_REPLACEMENTS: bool = _env_bool("TSQN_CLONE_REPLACEMENTS", True)


# Singleton instance
settings = Settings()

if settings.MAX_DEPTH < 1:
    raise RuntimeError("TSQN_MAX_DEPTH must be a positive integer")
