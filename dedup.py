"""In-memory record of reactions that have already been handled."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from models import ReactionEvent

logger = logging.getLogger(__name__)


def dedup_key(event: ReactionEvent) -> str:
    return f"{event.channel_id}-{event.message_ts}-{event.user_id}-{event.reaction}"


class ReactionDedupStore:
    """Thread-safe key -> first-seen-time map with age and size eviction.

    ``ttl_seconds`` of 0 or ``None`` keeps entries regardless of age;
    ``max_entries`` of 0 or ``None`` keeps any number of entries. The store
    lives only as long as the process.
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = 86400.0,
        max_entries: Optional[int] = 10000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds or None
        self.max_entries = max_entries or None
        self._clock = clock
        self._entries: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._entries)

    def seen(self, key: str) -> bool:
        with self._lock:
            self._evict_expired(self._clock())
            return key in self._entries

    def check_and_record(self, key: str) -> bool:
        """Record ``key`` and return True, or return False if it is already present."""
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            if key in self._entries:
                return False
            self._entries[key] = now
            self._evict_overflow()
            return True

    def _evict_expired(self, now: float) -> None:
        if self.ttl_seconds is None:
            return
        cutoff = now - self.ttl_seconds
        # Entries are kept in insertion order, so the oldest are first.
        while self._entries:
            key, recorded_at = next(iter(self._entries.items()))
            if recorded_at > cutoff:
                break
            del self._entries[key]

    def _evict_overflow(self) -> None:
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            key, _recorded_at = self._entries.popitem(last=False)
            logger.debug("dedup_key_evicted", extra={"key": key, "reason": "capacity"})
