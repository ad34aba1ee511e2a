"""Cooldown tracking — pure time math, no I/O.

Keys are arbitrary hashables: the engine gates each strategy by name and
the wallet pool gates each ``(strategy, wallet_id)`` pair.
"""

from datetime import datetime, timedelta
from typing import Hashable


class CooldownTracker:
    """Remembers when each key last acted."""

    def __init__(self) -> None:
        self._last: dict[Hashable, datetime] = {}

    # ── Mutation ─────────────────────────────────────────────────────────

    def record(self, key: Hashable, at: datetime) -> None:
        """Start a new cooldown window for *key* at *at*."""
        self._last[key] = at

    def clear(self) -> None:
        self._last.clear()

    # ── Queries ──────────────────────────────────────────────────────────

    def last(self, key: Hashable) -> datetime | None:
        return self._last.get(key)

    def remaining(self, key: Hashable, now: datetime, seconds: float) -> float:
        """Seconds left before *key* may act again (0 when ready)."""
        last = self._last.get(key)
        if last is None or seconds <= 0:
            return 0.0
        left = (last + timedelta(seconds=seconds)) - now
        return max(0.0, left.total_seconds())

    def ready(self, key: Hashable, now: datetime, seconds: float) -> bool:
        return self.remaining(key, now, seconds) == 0.0
