"""Duplicate-delivery suppression for messages and join events."""

from __future__ import annotations

import logging
from typing import Callable

from group_shield.core.utils import now_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], int]

DEFAULT_TTL_MS = 5 * 60 * 1000
JOIN_TTL_MS = 3 * 60 * 1000


class DedupGate:
    """Marks ``chat:message`` pairs as fully processed for a fixed TTL.

    Originals and edits share a message id, so whichever delivery is
    marked first wins and later variants are ignored until expiry.
    """

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, clock: Clock = now_ms) -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._expires_at: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._expires_at)

    @staticmethod
    def _key(chat_id: int, message_id: int) -> str:
        return f"{chat_id}:{message_id}"

    def is_processed(self, chat_id: int, message_id: int) -> bool:
        key = self._key(chat_id, message_id)
        expires = self._expires_at.get(key)
        if expires is None:
            return False
        if self._clock() >= expires:
            del self._expires_at[key]
            return False
        return True

    def mark_processed(self, chat_id: int, message_id: int) -> None:
        key = self._key(chat_id, message_id)
        # an unexpired marker keeps its original expiry
        if not self.is_processed(chat_id, message_id):
            self._expires_at[key] = self._clock() + self._ttl_ms

    def sweep(self) -> int:
        """Remove expired markers. Only needed to bound memory."""
        now = self._clock()
        expired = [k for k, v in list(self._expires_at.items()) if now >= v]
        for key in expired:
            self._expires_at.pop(key, None)
        if expired:
            logger.debug("Dedup sweep removed %d markers", len(expired))
        return len(expired)


class JoinDedup:
    """Collapses the several updates one join produces (service message + member update).

    Fingerprint is ``user:chat:minute`` so two deliveries of the same join
    inside the same minute bucket count once.
    """

    def __init__(self, ttl_ms: int = JOIN_TTL_MS, clock: Clock = now_ms) -> None:
        self._ttl_ms = ttl_ms
        self._clock = clock
        self._seen: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._seen)

    @staticmethod
    def fingerprint(user_id: int, chat_id: int, timestamp_ms: int) -> str:
        return f"{user_id}:{chat_id}:{timestamp_ms // 60_000}"

    def is_duplicate(
        self, user_id: int, chat_id: int, timestamp_ms: int | None = None
    ) -> bool:
        """Return True if already seen; otherwise record it and return False."""
        ts = self._clock() if timestamp_ms is None else timestamp_ms
        fp = self.fingerprint(user_id, chat_id, ts)
        if fp in self._seen:
            return True
        self._seen[fp] = ts
        return False

    def sweep(self) -> int:
        cutoff = self._clock() - self._ttl_ms
        stale = [fp for fp, ts in list(self._seen.items()) if ts < cutoff]
        for fp in stale:
            self._seen.pop(fp, None)
        if stale:
            logger.debug("Join dedup sweep removed %d fingerprints", len(stale))
        return len(stale)
