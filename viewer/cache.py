"""
Decoded image cache for the viewer.

Owned by a Gallery and passed by reference; never module-level state.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple


class ImageCache:
    """
    In-memory image_id -> bytes cache bounded by entry count and age.

    - Least recently used entries are evicted once `max_entries` is exceeded.
    - Entries older than `ttl` seconds are dropped on access (ttl=None keeps
      them until evicted).
    """

    def __init__(
        self,
        max_entries: int = 64,
        ttl: Optional[float] = 900.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be positive")
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, bytes]]" = OrderedDict()

    def _expired(self, stored_at: float) -> bool:
        return self.ttl is not None and self._clock() - stored_at >= self.ttl

    def get(self, image_id: str) -> Optional[bytes]:
        entry = self._entries.get(image_id)
        if entry is None:
            return None
        stored_at, data = entry
        if self._expired(stored_at):
            del self._entries[image_id]
            return None
        self._entries.move_to_end(image_id)
        return data

    def put(self, image_id: str, data: bytes) -> None:
        self._entries[image_id] = (self._clock(), data)
        self._entries.move_to_end(image_id)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def discard(self, image_id: str) -> None:
        self._entries.pop(image_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def prune(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        stale = [k for k, (stored_at, _) in self._entries.items() if self._expired(stored_at)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __contains__(self, image_id: object) -> bool:
        return isinstance(image_id, str) and self.get(image_id) is not None

    def __len__(self) -> int:
        return len(self._entries)
