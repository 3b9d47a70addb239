"""Process-wide cache for dynamically acquired tokens."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

from ..config.settings import settings


@dataclass(frozen=True)
class TokenCacheEntry:
    token: str
    expires_at: float


class TokenCache:
    """Tokens keyed by (endpoint, client identity).

    Entries expire ``margin_seconds`` before the lifetime the issuer reported.
    Concurrent refreshes of the same key are not coalesced; the last writer
    wins, which is fine because any freshly fetched token is valid.
    """

    def __init__(
        self,
        margin_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.margin_seconds = (
            settings.token_expiry_margin_seconds if margin_seconds is None else margin_seconds
        )
        self.clock = clock
        self._entries: dict[tuple[str, str], TokenCacheEntry] = {}
        self._lock = Lock()

    def get(self, key: tuple[str, str]) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.expires_at <= self.clock():
            return None
        return entry.token

    def put(self, key: tuple[str, str], token: str, expires_in: float) -> TokenCacheEntry:
        entry = TokenCacheEntry(
            token=token,
            expires_at=self.clock() + float(expires_in) - self.margin_seconds,
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def invalidate(self, key: tuple[str, str]) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
