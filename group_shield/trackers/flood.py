"""Sliding-window message counter per (chat, user) with a one-shot lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from group_shield.core.models import FloodResult
from group_shield.core.utils import now_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


@dataclass(slots=True)
class FloodEntry:
    timestamps: list[int] = field(default_factory=list)
    restricted_until_ms: int | None = None
    last_seen_ms: int = 0


class FloodTracker:
    """Counts messages per subject inside ``window_seconds``.

    A subject that exceeds ``max_messages`` triggers once, then stays locked
    for ``restrict_minutes``; after the lock elapses counting restarts from
    an empty window.
    """

    def __init__(
        self,
        window_seconds: int = 30,
        max_messages: int = 5,
        restrict_minutes: int = 10,
        clock: Clock = now_ms,
    ) -> None:
        self._window_ms = window_seconds * 1000
        self._max_messages = max_messages
        self._lock_ms = restrict_minutes * 60 * 1000
        self._clock = clock
        self._entries: dict[str, FloodEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @staticmethod
    def _key(chat_id: int, user_id: int) -> str:
        return f"{chat_id}:{user_id}"

    def observe(self, chat_id: int, user_id: int) -> FloodResult:
        """Record one message and report whether it tips the subject into flood."""
        try:
            return self._observe(chat_id, user_id)
        except Exception:
            logger.exception("Flood tracking failed chat=%d user=%d", chat_id, user_id)
            return FloodResult(is_flood=False, count=0)

    def _observe(self, chat_id: int, user_id: int) -> FloodResult:
        key = self._key(chat_id, user_id)
        now = self._clock()

        entry = self._entries.get(key)
        if entry is None:
            entry = FloodEntry()
            self._entries[key] = entry
        entry.last_seen_ms = now

        if entry.restricted_until_ms is not None:
            if now < entry.restricted_until_ms:
                return FloodResult(is_flood=False, count=len(entry.timestamps))
            entry.restricted_until_ms = None
            entry.timestamps.clear()

        entry.timestamps.append(now)
        cutoff = now - self._window_ms
        entry.timestamps = [ts for ts in entry.timestamps if ts > cutoff]
        count = len(entry.timestamps)

        if count > self._max_messages:
            entry.restricted_until_ms = now + self._lock_ms
            logger.info(
                "Flood detected chat=%d user=%d messages=%d window=%ds",
                chat_id,
                user_id,
                count,
                self._window_ms // 1000,
            )
            return FloodResult(is_flood=True, count=count)

        return FloodResult(is_flood=False, count=count)

    def is_locked(self, chat_id: int, user_id: int) -> bool:
        entry = self._entries.get(self._key(chat_id, user_id))
        if entry is None or entry.restricted_until_ms is None:
            return False
        return self._clock() < entry.restricted_until_ms

    def release(self, chat_id: int, user_id: int) -> None:
        """Drop the lock early, e.g. when the triggered action did not go through."""
        entry = self._entries.get(self._key(chat_id, user_id))
        if entry is not None:
            entry.restricted_until_ms = None

    def sweep(self, idle_ms: int = 60 * 60 * 1000) -> int:
        """Forget subjects idle for longer than *idle_ms* and not locked."""
        now = self._clock()
        removed = 0
        for key, entry in list(self._entries.items()):
            if self._entries.get(key) is not entry:
                continue
            if entry.restricted_until_ms is not None and now < entry.restricted_until_ms:
                continue
            if now - entry.last_seen_ms > idle_ms:
                del self._entries[key]
                removed += 1
        if removed:
            logger.debug("Flood sweep removed %d idle subjects", removed)
        return removed
