from datetime import datetime
import itertools

import pytest

from taskpilot.domain.context.session_manager import ConversationSessionManager
from taskpilot.infrastructure.storage.key_value_store import InMemoryStore

NOW = datetime(2025, 8, 15, 10, 0)


def make_clock(start: float = 1_700_000_000.0):
    """Clock advancing one second per call, so conversation ids are predictable"""
    ticks = itertools.count()
    return lambda: start + next(ticks)


@pytest.fixture
def storage():
    return InMemoryStore()


@pytest.fixture
def session(storage):
    manager = ConversationSessionManager(storage, clock=make_clock(), now=lambda: NOW)
    manager.load()
    return manager
