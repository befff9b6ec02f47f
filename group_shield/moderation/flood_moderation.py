"""Anti-flood policy: restrict (or kick) members who post too fast."""

from __future__ import annotations

import logging
from typing import Iterable

from group_shield.config import FloodConfig
from group_shield.core.models import MessageEvent, ModerationOutcome
from group_shield.core.types import FloodAction, Severity
from group_shield.dispatch.actions import ModerationActions
from group_shield.notifier.audit_channel import AuditChannel, format_user
from group_shield.storage.base_store import BaseStore
from group_shield.trackers.flood import FloodTracker

logger = logging.getLogger(__name__)


class FloodModerator:
    def __init__(
        self,
        tracker: FloodTracker,
        actions: ModerationActions,
        audit: AuditChannel,
        store: BaseStore,
        config: FloodConfig,
        admin_ids: Iterable[int],
    ) -> None:
        self._tracker = tracker
        self._actions = actions
        self._audit = audit
        self._store = store
        self._config = config
        self._admin_ids = frozenset(admin_ids)

    async def handle(self, event: MessageEvent) -> ModerationOutcome:
        try:
            return await self._handle(event)
        except Exception:
            logger.exception("Anti-flood failed chat=%d user=%d", event.chat_id, event.user_id)
            return ModerationOutcome.none()

    async def _handle(self, event: MessageEvent) -> ModerationOutcome:
        chat_id, user_id = event.chat_id, event.user_id
        if event.sender.is_bot or user_id in self._admin_ids:
            return ModerationOutcome.none()
        settings = await self._store.get_group_settings(chat_id)
        if settings is None or not settings.managed or not settings.antiflood_enabled:
            return ModerationOutcome.none()
        if await self._store.is_team_member(user_id):
            return ModerationOutcome.none()

        flood = self._tracker.observe(chat_id, user_id)
        if not flood.is_flood:
            return ModerationOutcome.none()

        reason = f"Anti-flood: {flood.count} messages in {self._config.window_seconds}s"
        if self._config.action is FloodAction.KICK:
            action = "kick"
            result = await self._actions.kick(chat_id, user_id, reason)
        else:
            action = "restrict"
            result = await self._actions.restrict(
                chat_id, user_id, reason, minutes=self._config.restrict_minutes
            )

        if not result.success:
            # let the next burst trigger again
            self._tracker.release(chat_id, user_id)
            logger.warning(
                "[ANTIFLOOD] %s not applied user=%d chat=%d: %s",
                action, user_id, chat_id, result.error,
            )
            return ModerationOutcome(False, Severity.NONE, None, (reason,))

        logger.info(
            "[ANTIFLOOD] %s user=%d chat=%d messages=%d window=%ds",
            action, user_id, chat_id, flood.count, self._config.window_seconds,
        )
        await self._audit.send(
            "🌊 <b>Anti-flood</b>\n\n"
            f"📋 Group: <code>{chat_id}</code>\n"
            f"👤 User: {format_user(event.sender)} (<code>{user_id}</code>)\n"
            f"🎯 Action: {action}"
            + (f" ({self._config.restrict_minutes} min)" if action == "restrict" else "")
            + f"\n📝 {flood.count} messages in {self._config.window_seconds}s"
        )
        return ModerationOutcome(True, Severity.NONE, action, (reason,))
