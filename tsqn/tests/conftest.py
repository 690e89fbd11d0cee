"""
tsqn test configuration.

Shared fixtures: a small UI-state tree used across the update, select and
change-detection suites. Function-scoped, so each test gets a fresh tree
it may mutate.
"""

from __future__ import annotations

import pytest


@pytest.fixture
def state():
    return {
        "user": {"name": "Ann", "age": 30, "tags": ["a", "b"]},
        "active": True,
        "profile": None,
        "cart": {
            "items": [
                {"sku": "x1", "qty": 1, "price": 2.5},
                {"sku": "y2", "qty": 2, "price": 1.0},
            ],
            "total": 4.5,
        },
        "prefs": {"theme": "dark", "lang": "en"},
    }
