"""Join handling: duplicate suppression, blacklist rejoin block, name checks."""

from __future__ import annotations

import logging
from html import escape
from typing import Iterable

from group_shield.core.models import JoinEvent, ModerationOutcome
from group_shield.core.types import Severity
from group_shield.core.utils import now_ms
from group_shield.dispatch.actions import ModerationActions
from group_shield.moderation.impersonation_guard import ImpersonationGuard
from group_shield.notifier.audit_channel import AuditChannel, format_user
from group_shield.storage.base_store import BaseStore
from group_shield.trackers.dedup import JoinDedup

logger = logging.getLogger(__name__)

REJOIN_REASON = "Blacklisted user rejoined"


class JoinModerator:
    def __init__(
        self,
        join_dedup: JoinDedup,
        actions: ModerationActions,
        audit: AuditChannel,
        store: BaseStore,
        impersonation: ImpersonationGuard,
        admin_ids: Iterable[int],
    ) -> None:
        self._join_dedup = join_dedup
        self._actions = actions
        self._audit = audit
        self._store = store
        self._impersonation = impersonation
        self._admin_ids = frozenset(admin_ids)

    async def handle(self, event: JoinEvent) -> ModerationOutcome:
        try:
            return await self._handle(event)
        except Exception:
            logger.exception("Join handling failed chat=%d user=%d", event.chat_id, event.user_id)
            return ModerationOutcome.none()

    async def _handle(self, event: JoinEvent) -> ModerationOutcome:
        chat_id, user_id = event.chat_id, event.user_id
        if self._join_dedup.is_duplicate(user_id, chat_id, event.timestamp_ms or None):
            logger.debug("Duplicate join user=%d chat=%d", user_id, chat_id)
            return ModerationOutcome.none()
        if event.sender.is_bot or user_id in self._admin_ids:
            return ModerationOutcome.none()

        settings = await self._store.get_group_settings(chat_id)
        if settings is None or not settings.managed:
            return ModerationOutcome.none()
        if await self._store.is_team_member(user_id):
            return ModerationOutcome.none()
        await self._store.record_user(user_id, event.timestamp_ms or now_ms())

        if await self._store.is_blacklisted(user_id):
            result = await self._actions.ban(chat_id, user_id, REJOIN_REASON)
            logger.info(
                "[JOIN] blacklisted user=%d rejoined chat=%d, ban ok=%s", user_id, chat_id, result.success
            )
            await self._audit.send(
                "⛔ <b>Auto-rejoin block</b>\n\n"
                f"📋 Group: <code>{chat_id}</code>\n"
                f"👤 User: {format_user(event.sender)} (<code>{user_id}</code>)\n"
                f"🎯 Action: ban {'✅' if result.success else '❌'}"
                + (f"\n⚠️ Error: {escape(result.error)}" if result.error else "")
            )
            return ModerationOutcome(True, Severity.HIGH, "ban", ("blacklisted_rejoin",))

        await self._impersonation.check(event.sender, chat_id, event.chat_title)
        return ModerationOutcome.none()
