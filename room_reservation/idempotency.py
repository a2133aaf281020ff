from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Hashable

from .errors import IdempotencyKeyReuseError
from .models import Reservation


@dataclass(frozen=True)
class _Entry:
    fingerprint: Hashable
    reservation: Reservation
    stored_at: float


class IdempotencyCache:
    """Token -> reservation cache bounded by age and by entry count.

    Entries are kept in insertion order, so both expiry and size eviction only
    ever drop from the front.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be greater than zero")
        if max_entries <= 0:
            raise ValueError("max_entries must be greater than zero")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = Lock()

    def _purge_expired(self, now: float) -> None:
        while self._entries:
            token, entry = next(iter(self._entries.items()))
            if now - entry.stored_at < self._ttl:
                break
            del self._entries[token]

    def lookup(self, token: str, fingerprint: Hashable) -> Reservation | None:
        """Return the reservation stored for ``token``.

        Raises IdempotencyKeyReuseError if the token was used for a different request.
        """
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            entry = self._entries.get(token)
            if entry is not None and now - entry.stored_at >= self._ttl:
                del self._entries[token]
                entry = None
        if entry is None:
            return None
        if entry.fingerprint != fingerprint:
            raise IdempotencyKeyReuseError(f"Idempotency token '{token}' was already used for a different request.")
        return entry.reservation

    def store(self, token: str, fingerprint: Hashable, reservation: Reservation, age_seconds: float = 0.0) -> None:
        """Remember ``reservation`` for ``token``.

        ``age_seconds`` backdates the entry, for results produced before the
        cache existed. Entries already older than the TTL are not stored.
        """
        if age_seconds >= self._ttl:
            return
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._entries.pop(token, None)
            self._entries[token] = _Entry(fingerprint=fingerprint, reservation=reservation, stored_at=now - age_seconds)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
