import os
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from oche.config import reset_settings
from oche.context import EngineContext
from oche.models.match import MatchConfig, WinRule

# ============================================================================
# Deterministic engine context
# ============================================================================
# 1. IDs are "id-1", "id-2", ... in creation order
# 2. shuffle() returns the input order unchanged, so seat order == roster
#    order and seed order == registration order
# 3. now() starts at a fixed instant and advances one minute per call


class FixedClock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


def make_context(reverse: bool = False) -> EngineContext:
    counter = count(1)

    def shuffle(items):
        return list(reversed(items)) if reverse else list(items)

    return EngineContext(
        new_id=lambda: f"id-{next(counter)}",
        shuffle=shuffle,
        now=FixedClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)),
    )


@pytest.fixture(name="ctx")
def ctx_fixture():
    """Deterministic context: counter IDs, identity shuffle, stepping clock."""
    return make_context()


@pytest.fixture(name="short_config")
def short_config_fixture():
    """101 exact-zero game so scenarios stay short."""
    return MatchConfig(starting_score=101, win_rule=WinRule.EXACT_ZERO)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Keep OCHE_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("OCHE_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(name="reversed_ctx")
def reversed_ctx_fixture():
    """Deterministic context whose shuffle reverses the input."""
    return make_context(reverse=True)
