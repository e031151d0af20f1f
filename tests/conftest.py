"""Shared pytest fixtures for test modules."""

from __future__ import annotations

import os
import sqlite3
from typing import TYPE_CHECKING

import pytest

from softball_tracker.db.connection import create_connection
from softball_tracker.eventstore.memory import InMemoryEventStore

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all SOFTBALL__ env vars so tests are isolated from the shell."""
    for key in list(os.environ):
        if key.startswith("SOFTBALL__"):
            monkeypatch.delenv(key)


@pytest.fixture
def conn() -> Generator[sqlite3.Connection]:
    connection = create_connection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def memory_store() -> InMemoryEventStore:
    return InMemoryEventStore()
