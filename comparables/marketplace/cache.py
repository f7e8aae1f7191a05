"""
In-memory TTL cache for marketplace search results.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """
    Key -> (stored_at, ttl, value) map with lazy expiry.

    Entries are checked on read and expired ones are dropped at that point.
    purge_expired() sweeps the whole map on demand.
    """

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self._entries: Dict[Hashable, Tuple[datetime, timedelta, Any]] = {}
        self._now = now or datetime.now

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, ttl, value = entry
        if self._now() - stored_at >= ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: Hashable, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = (self._now(), timedelta(seconds=ttl_seconds), value)

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._now()
        expired = [
            key for key, (stored_at, ttl, _) in self._entries.items()
            if now - stored_at >= ttl
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None
