"""Per-chat message policies: links from new members, link lock, forward lock.

Each policy only ever deletes the offending message. Exemptions match the
action layer: configured admins and team members are never touched, and
live chat administrators are skipped by ``ModerationActions`` itself.
"""

from __future__ import annotations

import logging
from html import escape
from typing import Callable

from group_shield.config import DryRunSwitch, ModerationConfig
from group_shield.core.models import ActionResult, GroupSettings, MessageEvent, ModerationOutcome
from group_shield.core.types import Severity
from group_shield.core.utils import now_ms
from group_shield.dispatch.actions import ModerationActions
from group_shield.moderation.escalation import RiskEscalator
from group_shield.notifier.audit_channel import AuditChannel, format_user
from group_shield.scoring.urls import is_whitelisted
from group_shield.storage.base_store import BaseStore

logger = logging.getLogger(__name__)

NEW_USER_LINK = "new_user_link"
LINK_LOCKED = "link_locked"
FORWARD_LOCKED = "forward_locked"


class ContentPolicyModerator:
    def __init__(
        self,
        actions: ModerationActions,
        audit: AuditChannel,
        store: BaseStore,
        escalator: RiskEscalator,
        config: ModerationConfig,
        dry_run: DryRunSwitch,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._actions = actions
        self._audit = audit
        self._store = store
        self._escalator = escalator
        self._config = config
        self._dry_run = dry_run
        self._clock = clock
        self._admin_ids = frozenset(config.admin_ids)

    async def handle(self, event: MessageEvent) -> ModerationOutcome:
        """Never raises; returns whether the message was removed."""
        try:
            return await self._handle(event)
        except Exception:
            logger.exception(
                "Content policy failed chat=%d msg=%d", event.chat_id, event.message_id
            )
            return ModerationOutcome.none()

    async def _handle(self, event: MessageEvent) -> ModerationOutcome:
        user_id = event.user_id
        if event.sender.is_bot or user_id in self._admin_ids:
            return ModerationOutcome.none()
        settings = await self._store.get_group_settings(event.chat_id)
        if settings is None or not settings.managed:
            return ModerationOutcome.none()
        if await self._store.is_team_member(user_id):
            return ModerationOutcome.none()

        seen = event.timestamp_ms or self._clock()
        first_seen = await self._store.record_user(user_id, seen)

        if event.extracted_urls:
            if self._new_member_link(event, settings, seen - first_seen):
                return await self._remove_new_member_link(event)
            if self._locked(settings.links_locked, self._config.links_locked_default):
                return await self._remove_locked(
                    event, LINK_LOCKED, "🔗 <b>Link lock</b>", "Message with a link was deleted"
                )
        if event.is_forwarded and self._locked(
            settings.forwards_locked, self._config.forward_locked_default
        ):
            return await self._remove_locked(
                event, FORWARD_LOCKED, "↩️ <b>Forward lock</b>", "Forwarded message was deleted"
            )
        return ModerationOutcome.none()

    @staticmethod
    def _locked(setting: bool | None, default: bool) -> bool:
        return default if setting is None else setting

    def _new_member_link(self, event: MessageEvent, settings: GroupSettings, age_ms: int) -> bool:
        if not settings.link_policy_enabled:
            return False
        if age_ms >= settings.link_policy_window_minutes * 60 * 1000:
            return False
        whitelist = settings.link_whitelist or self._config.url_whitelist
        return any(not is_whitelisted(url, whitelist) for url in event.extracted_urls)

    async def _delete(self, event: MessageEvent) -> ActionResult:
        return await self._actions.delete_message(event.chat_id, event.message_id, event.user_id)

    async def _remove_new_member_link(self, event: MessageEvent) -> ModerationOutcome:
        result = await self._delete(event)
        if not result.success:
            logger.info(
                "[LINK] new-member link kept chat=%d user=%d: %s",
                event.chat_id, event.user_id, result.error,
            )
            return ModerationOutcome.none()
        logger.info(
            "[LINK] new-member link deleted chat=%d user=%d urls=%d",
            event.chat_id, event.user_id, len(event.extracted_urls),
        )
        try:
            await self._escalator.escalate(event.user_id, "Link posted by new member")
        except Exception:
            logger.exception("Risk escalation failed user=%d", event.user_id)
        return ModerationOutcome(True, Severity.NONE, "delete", (NEW_USER_LINK,))

    async def _remove_locked(
        self,
        event: MessageEvent,
        reason: str,
        title: str,
        summary: str,
    ) -> ModerationOutcome:
        result = await self._delete(event)
        if not result.success:
            logger.info(
                "[LOCK] %s not applied chat=%d user=%d: %s",
                reason, event.chat_id, event.user_id, result.error,
            )
            return ModerationOutcome.none()

        logger.info("[LOCK] %s deleted chat=%d user=%d", reason, event.chat_id, event.user_id)
        lines = [
            title,
            "",
            f"📋 Group: {escape(event.chat_title or 'Unknown')} (<code>{event.chat_id}</code>)",
            f"👤 User: {format_user(event.sender)} (<code>{event.user_id}</code>)",
            f"⚠️ {summary}",
        ]
        if self._dry_run.enabled:
            lines.insert(0, "[DRY-RUN]")
        await self._audit.send("\n".join(lines))
        return ModerationOutcome(True, Severity.NONE, "delete", (reason,))
