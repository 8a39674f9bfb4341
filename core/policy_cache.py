"""In-process policy cache with a time-to-live and an injectable clock."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from core.policy import Policy

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class CacheEntry:
    policy: Policy
    expires_at: float


class PolicyCache:
    """Keyed by normalized ENS name.  Stale entries are only replaced, never purged."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, name: str) -> Policy | None:
        """Return the cached policy if it has not expired yet."""
        entry = self._entries.get(name)
        if entry is None or entry.expires_at <= self._clock():
            return None
        return entry.policy

    def put(self, name: str, policy: Policy) -> CacheEntry:
        entry = CacheEntry(policy=policy, expires_at=self._clock() + self.ttl_seconds)
        self._entries[name] = entry
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None
