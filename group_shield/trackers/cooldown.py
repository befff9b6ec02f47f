"""Keyed last-touch timestamps used to throttle repeated actions per subject."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from group_shield.core.utils import now_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def user_key(user_id: int, action: str) -> str:
    return f"user:{user_id}:{action}"


def user_group_key(user_id: int, chat_id: int, action: str) -> str:
    return f"usergroup:{user_id}:{chat_id}:{action}"


@dataclass(frozen=True, slots=True)
class CooldownStats:
    total: int
    oldest_ms: int | None
    newest_ms: int | None


class CooldownStore:
    """Process-wide cooldown map. Volatile: lost on restart."""

    def __init__(self, clock: Clock = now_ms) -> None:
        self._clock = clock
        self._last_touch: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._last_touch)

    def is_active(self, key: str, window_ms: int) -> bool:
        """True while fewer than *window_ms* have passed since the last touch."""
        last = self._last_touch.get(key)
        if last is None:
            return False
        return self._clock() - last < window_ms

    def touch(self, key: str) -> None:
        now = self._clock()
        # lastTouch only moves forward, even if the clock steps back
        previous = self._last_touch.get(key)
        if previous is None or now > previous:
            self._last_touch[key] = now

    def clear(self, key: str) -> None:
        self._last_touch.pop(key, None)

    def sweep(self, max_age_ms: int = 60 * 60 * 1000) -> int:
        """Drop entries older than *max_age_ms*. Returns count removed."""
        now = self._clock()
        removed = 0
        for key in list(self._last_touch):
            # re-read: the entry may have been refreshed since the snapshot
            if now - self._last_touch.get(key, now) > max_age_ms:
                del self._last_touch[key]
                removed += 1
        if removed:
            logger.info("Cleaned up %d old cooldowns", removed)
        return removed

    def stats(self) -> CooldownStats:
        if not self._last_touch:
            return CooldownStats(total=0, oldest_ms=None, newest_ms=None)
        values = self._last_touch.values()
        return CooldownStats(
            total=len(self._last_touch),
            oldest_ms=min(values),
            newest_ms=max(values),
        )
