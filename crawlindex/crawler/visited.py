"""
Bounded LRU cache of URLs that have already been queued or processed.
"""

import threading
from collections import OrderedDict


class VisitedSet:
    """
    Approximate "seen" filter with a fixed capacity.

    Membership is tracked in an OrderedDict used as a recency list: the most
    recently touched key sits at the end. When a new key arrives at capacity
    the least recently touched key is evicted, so an evicted URL is treated as
    a first sighting if it shows up again.
    """

    def __init__(self, capacity: int = 10000):
        if capacity < 1:
            raise ValueError("VisitedSet capacity must be at least 1")

        self._capacity = capacity
        self._entries: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()
        self.evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, key: str) -> bool:
        """
        Record a key.

        Returns True if the key was not present (first sighting), False if it
        was. Either way the key ends up most recently used.
        """
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return False

            if len(self._entries) >= self._capacity:
                self._entries.popitem(last=False)
                self.evictions += 1

            self._entries[key] = None
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            return {
                'size': len(self._entries),
                'capacity': self._capacity,
                'evictions': self.evictions
            }
