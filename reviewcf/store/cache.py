"""Per-run read-through cache of user rating histories."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from .ratings import UserHistory


logger = logging.getLogger(__name__)


class UserHistoryCache:
    """Write-once-per-key cache of `user_id -> UserHistory`.

    Create one per run and drop it when the run ends; entries are never invalidated.
    Loads happen outside the lock, so two threads may load the same user; the first
    stored history wins and the other is discarded.
    """

    def __init__(self) -> None:
        self._histories: dict[str, UserHistory] = {}
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._histories)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._histories

    def get_or_load(self, user_id: str, loader: Callable[[str], UserHistory]) -> UserHistory:
        with self._lock:
            cached = self._histories.get(user_id)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1

        loaded = loader(user_id)
        with self._lock:
            return self._histories.setdefault(user_id, loaded)

    def clear(self) -> None:
        with self._lock:
            if self._histories:
                logger.debug("Dropping %d cached user histories (hits=%d misses=%d)", len(self._histories), self.hits, self.misses)
            self._histories.clear()
