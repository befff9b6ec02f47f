"""Moderation actions issued through the serialized moderation queue.

Every public method returns an ``ActionResult`` and never raises. Each
action runs inside one queue task: skip-check, bot permission check,
dry-run short-circuit, platform call, then error classification with a
single retry on rate limiting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from group_shield.config import DryRunSwitch
from group_shield.core.models import ActionResult, GlobalActionResult
from group_shield.core.types import ActionKind
from group_shield.core.utils import now_ms
from group_shield.dispatch.errors import (
    AlreadySatisfiedError,
    PermissionDeniedError,
    RateLimitedError,
    translate_error,
)
from group_shield.dispatch.queues import ModerationQueue
from group_shield.metrics import ACTIONS_TOTAL
from group_shield.platform.base_client import PlatformClient
from group_shield.storage.base_store import BaseStore

logger = logging.getLogger(__name__)

Call = Callable[[], Awaitable[None]]


def _outcome(result: ActionResult) -> str:
    if result.success:
        return "success"
    return "skipped" if result.skipped else "failed"


class ModerationActions:
    """Restrict / unrestrict / ban / kick / unban / delete against one platform."""

    def __init__(
        self,
        client: PlatformClient,
        store: BaseStore,
        queue: ModerationQueue,
        admin_ids: Iterable[int],
        dry_run: DryRunSwitch,
    ) -> None:
        self._client = client
        self._store = store
        self._queue = queue
        self._admin_ids = frozenset(admin_ids)
        self._dry_run = dry_run
        self._bot_id: int | None = None

    # ------------------------------------------------------------------
    # Public actions
    # ------------------------------------------------------------------

    async def restrict(
        self,
        chat_id: int,
        user_id: int,
        reason: str,
        minutes: int | None = None,
    ) -> ActionResult:
        """Mute *user_id*; ``minutes=None`` restricts until lifted."""

        async def call() -> None:
            until = now_ms() // 1000 + minutes * 60 if minutes else None
            await self._client.restrict_member(chat_id, user_id, can_send=False, until_date=until)

        detail = f" ({minutes} min)" if minutes else ""
        return await self._execute(ActionKind.RESTRICT, chat_id, user_id, reason, call, detail)

    async def unrestrict(self, chat_id: int, user_id: int, reason: str) -> ActionResult:
        async def call() -> None:
            await self._client.restrict_member(chat_id, user_id, can_send=True)

        return await self._execute(ActionKind.UNRESTRICT, chat_id, user_id, reason, call)

    async def ban(self, chat_id: int, user_id: int, reason: str) -> ActionResult:
        async def call() -> None:
            await self._client.ban_member(chat_id, user_id)

        return await self._execute(ActionKind.BAN, chat_id, user_id, reason, call)

    async def kick(self, chat_id: int, user_id: int, reason: str) -> ActionResult:
        """Remove without a lasting ban: a one-second ban, then a lift."""

        async def call() -> None:
            await self._client.ban_member(chat_id, user_id, until_date=now_ms() // 1000 + 1)
            try:
                await self._client.unban_member(chat_id, user_id, only_if_banned=True)
            except Exception as exc:
                logger.debug("Post-kick unban failed user=%d chat=%d: %r", user_id, chat_id, exc)

        return await self._execute(ActionKind.KICK, chat_id, user_id, reason, call)

    async def unban(self, chat_id: int, user_id: int, reason: str) -> ActionResult:
        async def call() -> None:
            await self._client.unban_member(chat_id, user_id, only_if_banned=True)

        return await self._execute(ActionKind.UNBAN, chat_id, user_id, reason, call)

    async def delete_message(
        self,
        chat_id: int,
        message_id: int,
        user_id: int | None = None,
    ) -> ActionResult:
        """Delete one message; an already-deleted message counts as success."""

        async def call() -> None:
            await self._client.delete_message(chat_id, message_id)

        return await self._execute(
            ActionKind.DELETE, chat_id, user_id, f"message {message_id}", call
        )

    async def ban_in_all_groups(self, user_id: int, reason: str) -> GlobalActionResult:
        return await self._fan_out(ActionKind.BAN, user_id, reason)

    async def unban_in_all_groups(self, user_id: int, reason: str) -> GlobalActionResult:
        return await self._fan_out(ActionKind.UNBAN, user_id, reason)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _execute(
        self,
        kind: ActionKind,
        chat_id: int,
        user_id: int | None,
        reason: str,
        call: Call,
        detail: str = "",
    ) -> ActionResult:
        try:
            result = await self._queue.submit(
                lambda: self._run(kind, chat_id, user_id, reason, call, detail),
                label=f"{kind}:{chat_id}:{user_id}",
            )
        except Exception as exc:
            logger.exception("Action %s crashed user=%s chat=%d", kind, user_id, chat_id)
            result = ActionResult.fail(str(exc) or type(exc).__name__)
        ACTIONS_TOTAL.labels(kind=kind.value, outcome=_outcome(result)).inc()
        return result

    async def _run(
        self,
        kind: ActionKind,
        chat_id: int,
        user_id: int | None,
        reason: str,
        call: Call,
        detail: str,
    ) -> ActionResult:
        if user_id is not None:
            skip = await self._skip_reason(chat_id, user_id)
            if skip:
                logger.info("SKIP %s user=%d chat=%d: %s", kind, user_id, chat_id, skip)
                return ActionResult.skip(skip)

        denied = await self._permission_problem(chat_id, kind)
        if denied:
            logger.info("[PERMISSION] %s denied for bot in chat=%d: %s", kind, chat_id, denied)
            return ActionResult.skip(denied)

        if self._dry_run.enabled:
            logger.info(
                "[DRY-RUN] action=%s user=%s chat=%d reason=%r%s",
                kind, user_id, chat_id, reason, detail,
            )
            return ActionResult.ok()

        for attempt in (1, 2):
            try:
                await call()
            except Exception as exc:
                error = translate_error(exc, kind)
                if isinstance(error, AlreadySatisfiedError):
                    logger.debug("%s already satisfied chat=%d: %s", kind, chat_id, error)
                elif isinstance(error, RateLimitedError) and attempt == 1:
                    logger.warning(
                        "Rate-limited on %s user=%s chat=%d, retrying in %.1fs",
                        kind, user_id, chat_id, error.retry_after,
                    )
                    await asyncio.sleep(error.retry_after)
                    continue
                elif isinstance(error, PermissionDeniedError):
                    logger.info("SKIP %s user=%s chat=%d: %s", kind, user_id, chat_id, error)
                    return ActionResult.skip(str(error))
                else:
                    logger.error(
                        "%s failed user=%s chat=%d (attempt=%d): %s",
                        kind, user_id, chat_id, attempt, error,
                    )
                    return ActionResult.fail(str(error))
            break

        logger.info("%s user=%s chat=%d reason=%r%s", kind, user_id, chat_id, reason, detail)
        if user_id is not None:
            await self._record(user_id, chat_id, kind, reason)
        return ActionResult.ok()

    async def _record(self, user_id: int, chat_id: int, kind: ActionKind, reason: str) -> None:
        try:
            await self._store.log_action(user_id, chat_id, kind.value, reason)
        except Exception:
            logger.exception("Failed to persist %s user=%d chat=%d", kind, user_id, chat_id)

    async def _fan_out(self, kind: ActionKind, user_id: int, reason: str) -> GlobalActionResult:
        try:
            groups = await self._store.get_managed_groups()
        except Exception:
            logger.exception("Could not load managed groups for global %s", kind)
            return GlobalActionResult()

        action = self.ban if kind is ActionKind.BAN else self.unban
        success = failed = skipped = 0
        for group in groups:
            result = await action(group.chat_id, user_id, reason)
            if result.success:
                success += 1
            elif result.skipped:
                skipped += 1
            else:
                failed += 1
        logger.info(
            "[GLOBAL] %s user=%d: %d ok, %d failed, %d skipped",
            kind, user_id, success, failed, skipped,
        )
        return GlobalActionResult(success=success, failed=failed, skipped=skipped)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def bot_id(self) -> int | None:
        if self._bot_id is None:
            try:
                self._bot_id = (await self._client.get_me()).user_id
            except Exception as exc:
                logger.warning("Could not resolve bot identity: %s", translate_error(exc))
        return self._bot_id

    async def _skip_reason(self, chat_id: int, user_id: int) -> str | None:
        if user_id in self._admin_ids:
            return "configured admin"
        try:
            if await self._store.is_team_member(user_id):
                return "team member"
        except Exception:
            logger.warning("Team-member lookup failed for user=%d", user_id, exc_info=True)
        if user_id == await self.bot_id():
            return "bot itself"
        try:
            member = await self._client.get_member(chat_id, user_id)
        except Exception as exc:
            # not a participant any more, or lookup unavailable
            logger.debug("Member lookup failed user=%d chat=%d: %s", user_id, chat_id, translate_error(exc))
            return None
        if member.is_admin:
            return "chat admin"
        return None

    async def _permission_problem(self, chat_id: int, kind: ActionKind) -> str | None:
        bot_id = await self.bot_id()
        if bot_id is None:
            return "bot identity unavailable"
        try:
            me = await self._client.get_member(chat_id, bot_id)
        except Exception as exc:
            return f"permission check failed: {translate_error(exc)}"
        if not me.is_admin:
            return f"bot is not an administrator (status: {me.status})"
        if kind is ActionKind.DELETE:
            if not me.can_delete_messages:
                return "bot lacks can_delete_messages"
        elif not me.can_restrict_members:
            return "bot lacks can_restrict_members"
        return None
