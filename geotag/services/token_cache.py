"""
GeoTag Backend - Verified Token Cache
=======================================

What:  In-memory TTL + LRU cache mapping a verified token to its user id.
Why:   Skips repeated HMAC verification for a client that sends the same
       token on every request.
How:   OrderedDict keyed by a SHA-256 of the token (raw tokens are never kept),
       each entry expiring at min(now + ttl, token expiry).

Scope:
    Only the signature check is cached. The AccessGate still looks the user
    up on every request, so a deleted user is rejected immediately even while
    their token is cached.

    The cache is a plain object passed to the AccessGate; the app factory
    creates one per application, and tests build their own or pass None.
"""

import hashlib
import time
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Optional, Tuple


class TokenCache:
    """
    Args:
        ttl_seconds: upper bound on how long an entry is reused
        max_size:    entries kept before least-recently-used eviction
        clock:       monotonic-style "now" in seconds; injectable for tests
        wall_clock:  epoch seconds, used to honour the token's own expiry
    """

    def __init__(
        self,
        ttl_seconds: float = 60,
        max_size: int = 10_000,
        clock: Optional[Callable[[], float]] = None,
        wall_clock: Optional[Callable[[], float]] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock or time.monotonic
        self._wall_clock = wall_clock or time.time
        self._entries: "OrderedDict[str, Tuple[uuid.UUID, float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def get(self, token: str) -> Optional[uuid.UUID]:
        key = self._key(token)
        item = self._entries.get(key)
        if item is None:
            self.misses += 1
            return None

        user_id, deadline = item
        if self._clock() >= deadline:
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return user_id

    def put(self, token: str, user_id: uuid.UUID, expires_at: Optional[datetime] = None) -> None:
        if self.ttl_seconds <= 0:
            return

        lifetime = float(self.ttl_seconds)
        if expires_at is not None:
            # Never outlive the token itself
            lifetime = min(lifetime, expires_at.timestamp() - self._wall_clock())
        if lifetime <= 0:
            return

        key = self._key(token)
        self._entries[key] = (user_id, self._clock() + lifetime)
        self._entries.move_to_end(key)

        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
