"""
Stale-result handling and rebuild coalescing.

Every request for a floor (a parse, a scene rebuild) is stamped with a
generation token. When the result arrives it is kept only if its token is
still the newest for that floor; anything older is dropped. There is no
queue of stale work.
"""

from __future__ import annotations

import logging
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GenerationTracker:
    """Monotonically increasing per-key generation counters."""

    def __init__(self):
        self._generations: dict[Hashable, int] = {}

    def next(self, key: Hashable) -> int:
        token = self._generations.get(key, 0) + 1
        self._generations[key] = token
        return token

    def current(self, key: Hashable) -> int:
        return self._generations.get(key, 0)

    def is_current(self, key: Hashable, token: int) -> bool:
        return self._generations.get(key, 0) == token


class RebuildCoalescer(Generic[T]):
    """
    Collapses any number of ``mark_dirty`` calls per tick into one rebuild
    per dirty key.

    ``flush`` runs the rebuilds. A rebuild whose key was marked dirty again
    while it ran is superseded: its result is discarded and the key stays
    dirty for the next tick.
    """

    def __init__(self, rebuild: Callable[[Hashable], T], tracker: Optional[GenerationTracker] = None):
        self._rebuild = rebuild
        self.tracker = tracker or GenerationTracker()
        self._dirty: dict[Hashable, int] = {}
        self.rebuild_count = 0
        self.discarded_count = 0

    def mark_dirty(self, key: Hashable) -> int:
        token = self.tracker.next(key)
        self._dirty[key] = token
        return token

    @property
    def pending(self) -> set:
        return set(self._dirty)

    def flush(self) -> dict[Hashable, T]:
        dirty, self._dirty = self._dirty, {}
        remaining = list(dirty)
        results: dict[Hashable, T] = {}
        try:
            for key in list(remaining):
                token = dirty[key]
                result = self._rebuild(key)
                remaining.remove(key)
                self.rebuild_count += 1
                if not self.tracker.is_current(key, token):
                    self.discarded_count += 1
                    logger.debug("Discarding superseded rebuild for %s (generation %d)", key, token)
                    continue
                results[key] = result
        finally:
            # A failed rebuild and everything after it stay dirty for the next tick
            for key in remaining:
                self._dirty.setdefault(key, dirty[key])
        return results
