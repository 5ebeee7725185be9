"""
Engine context: the three collaborators the core consumes from its environment.

- new_id(): opaque unique identifier
- shuffle(items): permuted copy of a list
- now(): current timestamp

Every service accepts an optional context; when omitted, default_context()
is used. Tests pass a deterministic context instead.
"""
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, TypeVar

from oche.config import get_settings

T = TypeVar("T")


def uuid_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RandomShuffler:
    """Uniform random permutation backed by random.Random (seedable)."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def __call__(self, items: Sequence[T]) -> List[T]:
        permuted = list(items)
        self._rng.shuffle(permuted)
        return permuted


@dataclass
class EngineContext:
    new_id: Callable[[], str] = uuid_id
    shuffle: Callable[[Sequence], List] = field(default_factory=RandomShuffler)
    now: Callable[[], datetime] = utc_now


_default_context: Optional[EngineContext] = None


def default_context() -> EngineContext:
    """Process-wide context; seeded from OCHE_RANDOM_SEED when set."""
    global _default_context
    if _default_context is None:
        _default_context = EngineContext(shuffle=RandomShuffler(get_settings().random_seed))
    return _default_context


def resolve_context(context: Optional[EngineContext]) -> EngineContext:
    return context if context is not None else default_context()
