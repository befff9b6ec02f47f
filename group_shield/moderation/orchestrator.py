"""Severity-tiered scam response for group messages."""

from __future__ import annotations

import logging
from html import escape

from group_shield.config import DryRunSwitch, ModerationConfig
from group_shield.core.models import ActionResult, MessageEvent, ModerationOutcome, ScamScore
from group_shield.core.types import ActionMode, Severity
from group_shield.core.utils import truncate
from group_shield.dispatch.actions import ModerationActions
from group_shield.metrics import SCAM_DECISIONS_TOTAL
from group_shield.moderation.escalation import RiskEscalator
from group_shield.notifier.audit_channel import AuditChannel, format_user
from group_shield.scoring.scam_scorer import ScamScorer
from group_shield.scoring.urls import is_whitelisted
from group_shield.storage.base_store import BaseStore
from group_shield.trackers.cooldown import CooldownStore, user_group_key
from group_shield.trackers.dedup import DedupGate

logger = logging.getLogger(__name__)

SCAM_COOLDOWN_ACTION = "scam"


class ModerationOrchestrator:
    """Runs the scam pipeline for one message at a time.

    Gates (dedup, feature flags, exemptions) run first; the scorer decides
    the tier; LOW deletes only messages carrying a non-whitelisted URL,
    MEDIUM deletes and reports, HIGH additionally bans or restricts the
    author and escalates. MEDIUM/HIGH are throttled per user and chat by
    the scam cooldown.
    """

    def __init__(
        self,
        *,
        scorer: ScamScorer,
        dedup: DedupGate,
        cooldowns: CooldownStore,
        actions: ModerationActions,
        audit: AuditChannel,
        store: BaseStore,
        escalator: RiskEscalator,
        config: ModerationConfig,
        dry_run: DryRunSwitch,
    ) -> None:
        self._scorer = scorer
        self._dedup = dedup
        self._cooldowns = cooldowns
        self._actions = actions
        self._audit = audit
        self._store = store
        self._escalator = escalator
        self._config = config
        self._dry_run = dry_run
        self._admin_ids = frozenset(config.admin_ids)
        self._cooldown_ms = config.scam_cooldown_minutes * 60 * 1000

    async def handle_message(self, event: MessageEvent) -> ModerationOutcome:
        """Never raises; any failure yields a no-action outcome."""
        try:
            return await self._handle(event)
        except Exception:
            logger.exception(
                "Scam moderation failed chat=%d msg=%d", event.chat_id, event.message_id
            )
            return ModerationOutcome.none()

    async def _handle(self, event: MessageEvent) -> ModerationOutcome:
        chat_id, message_id, user_id = event.chat_id, event.message_id, event.user_id

        if self._dedup.is_processed(chat_id, message_id):
            return ModerationOutcome.none()
        if not self._config.scam_detection_enabled:
            return ModerationOutcome.none()
        if event.sender.is_bot or not (event.text.strip() or event.extracted_urls):
            return ModerationOutcome.none()
        if not await self._chat_enabled(chat_id):
            return ModerationOutcome.none()
        if user_id in self._admin_ids or await self._store.is_team_member(user_id):
            return ModerationOutcome.none()

        score = self._scorer.score(
            event.text,
            event.extracted_urls,
            is_forwarded=event.is_forwarded,
            has_entities=event.has_entities,
        )
        if score.severity is Severity.NONE:
            return ModerationOutcome.none()

        # no awaits from here until the decision is recorded in the trackers
        if self._dedup.is_processed(chat_id, message_id):
            return ModerationOutcome.none()
        self._dedup.mark_processed(chat_id, message_id)
        SCAM_DECISIONS_TOTAL.labels(severity=score.severity.value).inc()

        if score.severity is Severity.LOW:
            return await self._handle_low(event, score)

        key = user_group_key(user_id, chat_id, SCAM_COOLDOWN_ACTION)
        if self._cooldowns.is_active(key, self._cooldown_ms):
            logger.info(
                "[GUARD] cooldown active, scam skipped user=%d chat=%d severity=%s",
                user_id, chat_id, score.severity,
            )
            return ModerationOutcome(False, score.severity, None, score.reasons)
        self._cooldowns.touch(key)

        if score.severity is Severity.MEDIUM:
            return await self._handle_medium(event, score)
        return await self._handle_high(event, score)

    async def _chat_enabled(self, chat_id: int) -> bool:
        settings = await self._store.get_group_settings(chat_id)
        return settings is not None and settings.managed and settings.scam_enabled

    # ------------------------------------------------------------------
    # Severity branches
    # ------------------------------------------------------------------

    async def _handle_low(self, event: MessageEvent, score: ScamScore) -> ModerationOutcome:
        unapproved = [u for u in event.extracted_urls if not is_whitelisted(u, self._scorer.whitelist)]
        if not unapproved:
            logger.info(
                "[SCAM][LOW] log only chat=%d user=%d score=%d reasons=%s",
                event.chat_id, event.user_id, score.value, ",".join(score.reasons),
            )
            return ModerationOutcome(False, Severity.LOW, None, score.reasons)

        await self._actions.delete_message(event.chat_id, event.message_id, event.user_id)
        await self._persist(event, score, "delete")
        logger.info(
            "[SCAM][LOW] deleted chat=%d user=%d score=%d reasons=%s",
            event.chat_id, event.user_id, score.value, ",".join(score.reasons),
        )
        return ModerationOutcome(True, Severity.LOW, "delete", score.reasons)

    async def _handle_medium(self, event: MessageEvent, score: ScamScore) -> ModerationOutcome:
        await self._actions.delete_message(event.chat_id, event.message_id, event.user_id)
        await self._persist(event, score, "delete")
        await self._audit.send(self._report(event, score))
        logger.info(
            "[SCAM][MED] deleted chat=%d user=%d score=%d reasons=%s",
            event.chat_id, event.user_id, score.value, ",".join(score.reasons),
        )
        return ModerationOutcome(True, Severity.MEDIUM, "delete", score.reasons)

    async def _handle_high(self, event: MessageEvent, score: ScamScore) -> ModerationOutcome:
        chat_id, user_id = event.chat_id, event.user_id
        reason = f"Scam detected (score: {score.value}, severity: HIGH)"

        await self._actions.delete_message(chat_id, event.message_id, user_id)

        result: ActionResult
        if self._config.action_mode is ActionMode.BAN:
            action = "ban"
            result = await self._actions.ban(chat_id, user_id, reason)
            if result.success:
                await self._blacklist(user_id, f"Scam detected (score: {score.value})")
        else:
            action = "restrict"
            result = await self._actions.restrict(
                chat_id, user_id, reason, minutes=self._config.high_restrict_hours * 60
            )

        await self._persist(event, score, action)
        await self._audit.send(self._report(event, score, action=action, result=result))
        logger.info(
            "[SCAM][HIGH] deleted+%s chat=%d user=%d score=%d ok=%s reasons=%s",
            action, chat_id, user_id, score.value, result.success, ",".join(score.reasons),
        )
        try:
            await self._escalator.escalate(user_id, reason)
        except Exception:
            logger.exception("Risk escalation failed user=%d", user_id)
        return ModerationOutcome(True, Severity.HIGH, action, score.reasons)

    # ------------------------------------------------------------------
    # Side records
    # ------------------------------------------------------------------

    async def _persist(self, event: MessageEvent, score: ScamScore, action: str) -> None:
        try:
            await self._store.log_scam_event(
                event.chat_id, event.user_id, event.message_id, score.value, action, score.reasons
            )
        except Exception:
            logger.exception("Failed to persist scam event chat=%d msg=%d", event.chat_id, event.message_id)

    async def _blacklist(self, user_id: int, reason: str) -> None:
        try:
            await self._store.add_to_blacklist(user_id, 0, reason)
        except Exception:
            logger.exception("Failed to blacklist user=%d", user_id)

    def _report(
        self,
        event: MessageEvent,
        score: ScamScore,
        *,
        action: str | None = None,
        result: ActionResult | None = None,
    ) -> str:
        icon = "🔴" if score.severity is Severity.HIGH else "⚠️"
        lines = [
            "🚨 <b>Scam detected</b>",
            "",
            f"📋 Group: {escape(event.chat_title or 'Unknown')} (<code>{event.chat_id}</code>)",
            f"👤 User: {format_user(event.sender)} (<code>{event.user_id}</code>)",
            f"{icon} Severity: <b>{score.severity}</b> (score: {score.value})",
            f"📝 Reasons: {escape(', '.join(score.reasons))}",
        ]
        if action and result is not None:
            verb = "banned" if action == "ban" else "restricted"
            lines.append(f"🎯 Action: deleted + {verb} {'✅' if result.success else '❌'}")
        lines.append(f"💬 Message: <code>{escape(truncate(event.text, 100))}</code>")
        if result is not None and result.error:
            lines.append(f"⚠️ Error: {escape(result.error)}")
        if self._dry_run.enabled:
            lines.insert(0, "[DRY-RUN]")
        return "\n".join(lines)
