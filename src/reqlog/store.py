"""
reqlog.store

Process-wide, request-scoped store of in-flight aggregators.

Responsibilities:
- Map correlation ids to their `RequestAggregator` (get-or-create, clear, clear-all).
- Serialize handler invocations for one key without blocking other keys.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock, RLock

from reqlog.aggregator import RequestAggregator


@dataclass(slots=True)
class _KeyLock:
    # `users` counts callers inside or waiting in `locked`; guarded by the store lock.
    lock: RLock = field(default_factory=RLock)
    users: int = 0


class RequestContextStore:
    """
    Keyed by correlation id, never by thread: one thread (or one event loop)
    may interleave many requests, and each only ever sees its own aggregator.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: dict[str, RequestAggregator] = {}
        self._key_locks: dict[str, _KeyLock] = {}

    def get_or_create(self, key: str, *, started_at: float | None = None) -> RequestAggregator:
        with self._lock:
            agg = self._entries.get(key)
            if agg is None:
                agg = RequestAggregator(
                    correlation_id=key,
                    started_at=time.time() if started_at is None else started_at,
                )
                self._entries[key] = agg
            return agg

    def get(self, key: str) -> RequestAggregator | None:
        with self._lock:
            return self._entries.get(key)

    def clear(self, key: str) -> RequestAggregator | None:
        with self._lock:
            return self._entries.pop(key, None)

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()

    @contextmanager
    def locked(
        self, key: str, *, started_at: float | None = None
    ) -> Iterator[RequestAggregator]:
        """
        Get-or-create the aggregator for `key` and hold that key's lock while the
        caller mutates it. Reentrant, so a handler may call another handler.

        The key's lock outlives `clear`: it is only dropped once no caller holds or
        waits on it, so a late handler never gets a second lock for the same key.
        """

        with self._lock:
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield self.get_or_create(key, started_at=started_at)
        finally:
            with self._lock:
                key_lock.users -= 1
                if key_lock.users == 0 and self._key_locks.get(key) is key_lock:
                    del self._key_locks[key]

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# --- Module Notes -----------------------------------------------------------
# Entries whose request never completes stay resident until `clear`/`clear_all`;
# `keys()` and `len()` exist so an external sweep can find them.
