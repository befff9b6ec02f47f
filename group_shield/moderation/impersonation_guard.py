"""Audit warnings for members whose names imitate protected names."""

from __future__ import annotations

import logging
from html import escape
from typing import Iterable

from group_shield.core.models import Sender
from group_shield.notifier.audit_channel import AuditChannel, format_user
from group_shield.scoring.impersonation import ImpersonationMatch, check_impersonation
from group_shield.storage.base_store import BaseStore
from group_shield.trackers.cooldown import CooldownStore, user_key

logger = logging.getLogger(__name__)

IMPERSONATION_WINDOW_MS = 24 * 60 * 60 * 1000


class ImpersonationGuard:
    """Warn admins at most once per user per day; never acts on the member."""

    def __init__(
        self,
        cooldowns: CooldownStore,
        audit: AuditChannel,
        store: BaseStore,
        protected_names: Iterable[str],
        threshold: int,
        admin_ids: Iterable[int],
    ) -> None:
        self._cooldowns = cooldowns
        self._audit = audit
        self._store = store
        self._protected = tuple(protected_names)
        self._threshold = threshold
        self._admin_ids = frozenset(admin_ids)

    async def check(
        self,
        sender: Sender,
        chat_id: int,
        chat_title: str | None = None,
    ) -> ImpersonationMatch | None:
        """Return the match when *sender* looks like an impersonator."""
        try:
            return await self._check(sender, chat_id, chat_title)
        except Exception:
            logger.exception("Impersonation check failed user=%d", sender.user_id)
            return None

    async def _check(
        self,
        sender: Sender,
        chat_id: int,
        chat_title: str | None,
    ) -> ImpersonationMatch | None:
        if not self._protected or sender.is_bot or sender.user_id in self._admin_ids:
            return None
        match = check_impersonation(
            sender.first_name,
            sender.last_name,
            sender.username,
            self._protected,
            self._threshold,
        )
        if not match.is_impersonation:
            return None
        if await self._store.is_team_member(sender.user_id):
            return None

        key = user_key(sender.user_id, "impersonation")
        if self._cooldowns.is_active(key, IMPERSONATION_WINDOW_MS):
            logger.debug("Impersonation already reported user=%d", sender.user_id)
            return match
        self._cooldowns.touch(key)

        logger.warning(
            "[IMPERSONATION] user=%d chat=%d name=%r matches=%r similarity=%.0f",
            sender.user_id, chat_id, sender.display_name, match.matched_name, match.similarity,
        )
        await self._audit.send(
            "🎭 <b>Possible impersonation</b>\n\n"
            f"📋 Group: {escape(chat_title or 'Unknown')} (<code>{chat_id}</code>)\n"
            f"👤 User: {format_user(sender)} (<code>{sender.user_id}</code>)\n"
            f"🔍 Resembles: <b>{escape(match.matched_name or '')}</b> "
            f"({match.similarity:.0f}% similar)"
        )
        return match
