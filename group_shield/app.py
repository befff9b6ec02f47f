"""Main application entry point: wires listener, pipeline, dispatch and storage.

Usage:
    python -m group_shield.app
    python -m group_shield.app --debug
    python -m group_shield.app --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import time
from typing import Any

from aiohttp import web

from group_shield.config import AppConfig, DryRunSwitch
from group_shield.core.models import (
    ChannelPostEvent,
    EditedMessageEvent,
    HealthStatus,
    InboundEvent,
    JoinEvent,
    LeaveEvent,
    MessageEvent,
    ServiceMessageEvent,
)
from group_shield.core.utils import setup_logging
from group_shield.dispatch.actions import ModerationActions
from group_shield.dispatch.queues import AuditQueue, ModerationQueue
from group_shield.listener import TelegramListener
from group_shield.metrics import EVENTS_TOTAL, TRACKER_SIZE, start_metrics_server
from group_shield.moderation import (
    AdminSync,
    ContentPolicyModerator,
    FloodModerator,
    ImpersonationGuard,
    JoinModerator,
    LoggingRiskEscalator,
    ModerationOrchestrator,
    RiskEscalator,
    ServiceCleanup,
)
from group_shield.moderation.impersonation_guard import IMPERSONATION_WINDOW_MS
from group_shield.notifier import AuditChannel
from group_shield.platform import BotApiClient, PlatformClient
from group_shield.scoring import ScamScorer
from group_shield.storage import BaseStore, PostgresStore
from group_shield.trackers import CooldownStore, DedupGate, FloodTracker, JoinDedup

logger = logging.getLogger(__name__)


class ShieldApp:
    """Top-level orchestrator: listener -> moderators -> dispatch -> platform/store."""

    def __init__(
        self,
        config: AppConfig,
        dry_run: bool = False,
        *,
        client: PlatformClient | None = None,
        store: BaseStore | None = None,
        escalator: RiskEscalator | None = None,
    ) -> None:
        self._config = config
        self._start_time = time.monotonic()
        mod = config.moderation
        disp = config.dispatch

        self.dry_run = DryRunSwitch(mod.dry_run or dry_run)
        self.escalator = escalator or LoggingRiskEscalator()
        self._client = client or BotApiClient(config.telegram)
        self._store = store or PostgresStore(config.database)

        # In-memory trackers
        self.cooldowns = CooldownStore()
        self.dedup = DedupGate(ttl_ms=disp.dedup_ttl_seconds * 1000)
        self.join_dedup = JoinDedup()
        self.flood = FloodTracker(
            window_seconds=config.flood.window_seconds,
            max_messages=config.flood.max_messages,
            restrict_minutes=config.flood.restrict_minutes,
        )

        # Dispatch
        self.moderation_queue = ModerationQueue(disp.moderation_delay_ms)
        self.audit_queue = AuditQueue(disp.audit_interval_ms)
        self.actions = ModerationActions(
            self._client,
            self._store,
            self.moderation_queue,
            mod.admin_ids,
            self.dry_run,
        )
        self.audit = AuditChannel(
            self._client,
            self.audit_queue,
            mod.admin_log_chat,
            mod.admin_ids,
        )

        # Policies
        self.orchestrator = ModerationOrchestrator(
            scorer=ScamScorer(mod.url_whitelist),
            dedup=self.dedup,
            cooldowns=self.cooldowns,
            actions=self.actions,
            audit=self.audit,
            store=self._store,
            escalator=self.escalator,
            config=mod,
            dry_run=self.dry_run,
        )
        self.flood_moderator = FloodModerator(
            self.flood, self.actions, self.audit, self._store, config.flood, mod.admin_ids
        )
        self.impersonation = ImpersonationGuard(
            self.cooldowns,
            self.audit,
            self._store,
            mod.protected_names,
            mod.impersonation_threshold,
            mod.admin_ids,
        )
        self.join_moderator = JoinModerator(
            self.join_dedup, self.actions, self.audit, self._store, self.impersonation, mod.admin_ids
        )
        self.content_policy = ContentPolicyModerator(
            self.actions, self.audit, self._store, self.escalator, mod, self.dry_run
        )
        self.service_cleanup = ServiceCleanup(self.actions, self._store)
        self.admin_sync = AdminSync(self._client, self._store)

        self._listener: TelegramListener | None = None
        self._tasks: list[asyncio.Task[Any]] = []
        self._stopped = False

        # Counters for health
        self._events_processed = 0
        self._actions_taken = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Initialize all components and begin processing."""
        logger.info(
            "Starting Group Shield (dry_run=%s, action_mode=%s)",
            self.dry_run.enabled,
            self._config.moderation.action_mode,
        )
        # 1. Database
        await self._store.connect()

        # 2. Telegram listener
        self._listener = TelegramListener(self._config.telegram, self.dispatch)
        await self._listener.start()

        # 3. Prometheus metrics endpoint
        if self._config.metrics.enabled:
            start_metrics_server(self._config.metrics.port)
            logger.info("Prometheus metrics on :%d/metrics", self._config.metrics.port)

        # 4. Health check endpoint
        if self._config.health.enabled:
            self._tasks.append(asyncio.create_task(self._health_server(), name="health"))

        # 5. Periodic tracker sweep
        self._tasks.append(asyncio.create_task(self._sweep_loop(), name="sweep"))

        # 6. Chat admins -> team members
        if self._config.dispatch.admin_sync_interval_minutes > 0:
            self._tasks.append(asyncio.create_task(self._admin_sync_loop(), name="admin-sync"))

        logger.info("Group Shield fully started")

        # Block until disconnect
        await self._listener.run_until_disconnected()

    async def shutdown(self) -> None:
        """Graceful shutdown: cancel tasks, close connections."""
        if self._stopped:
            return
        self._stopped = True
        logger.info("Shutting down Group Shield...")

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._listener:
            await self._listener.stop()

        # queued actions run before audit entries they may still enqueue
        await self.moderation_queue.join()
        await self.audit_queue.join()

        await self._client.close()
        await self._store.close()
        logger.info("Shutdown complete")

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def dispatch(self, event: InboundEvent) -> None:
        """Route one inbound event by variant. Never raises."""
        self._events_processed += 1
        try:
            if isinstance(event, EditedMessageEvent):
                EVENTS_TOTAL.labels(kind="edited_message").inc()
                await self._moderate_message(event, new=False)
            elif isinstance(event, MessageEvent):
                EVENTS_TOTAL.labels(kind="message").inc()
                await self._moderate_message(event, new=True)
                await self.impersonation.check(event.sender, event.chat_id, event.chat_title)
            elif isinstance(event, JoinEvent):
                EVENTS_TOTAL.labels(kind="join").inc()
                outcome = await self.join_moderator.handle(event)
                self._count(outcome.action_taken)
                if event.service_message_id is not None:
                    await self.service_cleanup.handle(event.chat_id, event.service_message_id, "join")
            elif isinstance(event, LeaveEvent):
                EVENTS_TOTAL.labels(kind="leave").inc()
                logger.debug("Member left user=%d chat=%d", event.user_id, event.chat_id)
                if event.service_message_id is not None:
                    await self.service_cleanup.handle(event.chat_id, event.service_message_id, "leave")
            elif isinstance(event, ServiceMessageEvent):
                EVENTS_TOTAL.labels(kind="service").inc()
                await self.service_cleanup.handle(event.chat_id, event.message_id, event.kind)
            elif isinstance(event, ChannelPostEvent):
                EVENTS_TOTAL.labels(kind="channel_post").inc()
            else:
                logger.warning("Unhandled event type %s", type(event).__name__)
        except Exception:
            logger.exception("Event dispatch failed for %s", type(event).__name__)

    async def _moderate_message(self, event: MessageEvent, *, new: bool) -> None:
        """Scam pipeline, then chat policies, then flood; stop once the message is gone."""
        outcome = await self.orchestrator.handle_message(event)
        self._count(outcome.action_taken)
        if outcome.action_taken:
            return
        policy = await self.content_policy.handle(event)
        self._count(policy.action_taken)
        if policy.action_taken or not new:
            return
        flood = await self.flood_moderator.handle(event)
        self._count(flood.action_taken)

    def _count(self, action_taken: bool) -> None:
        if action_taken:
            self._actions_taken += 1

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    def sweep_trackers(self) -> dict[str, int]:
        """Drop expired tracker entries; return how many each tracker removed."""
        removed = {
            "cooldowns": self.cooldowns.sweep(
                max_age_ms=max(
                    IMPERSONATION_WINDOW_MS,
                    self._config.moderation.scam_cooldown_minutes * 60 * 1000,
                )
            ),
            "dedup": self.dedup.sweep(),
            "join_dedup": self.join_dedup.sweep(),
            "flood": self.flood.sweep(idle_ms=self._config.dispatch.flood_idle_seconds * 1000),
        }
        for name, size in self.tracker_sizes().items():
            TRACKER_SIZE.labels(tracker=name).set(size)
        if any(removed.values()):
            logger.info(
                "Sweep removed cooldowns=%d dedup=%d joins=%d flood=%d",
                removed["cooldowns"], removed["dedup"], removed["join_dedup"], removed["flood"],
            )
        return removed

    def tracker_sizes(self) -> dict[str, int]:
        return {
            "cooldowns": len(self.cooldowns),
            "dedup": len(self.dedup),
            "join_dedup": len(self.join_dedup),
            "flood": len(self.flood),
        }

    async def _sweep_loop(self) -> None:
        interval = self._config.dispatch.sweep_interval_seconds
        while True:
            try:
                await asyncio.sleep(interval)
                self.sweep_trackers()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in sweep loop")
                await asyncio.sleep(60)

    async def _admin_sync_loop(self) -> None:
        interval = self._config.dispatch.admin_sync_interval_minutes * 60
        while True:
            try:
                results = await self.admin_sync.sync_all()
                logger.info(
                    "Admin sync: %d chats, %d added",
                    len(results), sum(r.synced for r in results),
                )
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in admin sync loop")
                await asyncio.sleep(60)

    # ------------------------------------------------------------------
    # Health check HTTP server
    # ------------------------------------------------------------------

    async def _health_server(self) -> None:
        """Minimal HTTP health check endpoint on configured port."""

        async def handle_health(_request: web.Request) -> web.Response:
            status = await self.get_health()
            code = 200 if status.db_connected and status.telegram_connected else 503
            return web.json_response(
                {
                    "status": "ok" if code == 200 else "degraded",
                    "uptime_seconds": round(status.uptime_seconds, 1),
                    "events_processed": status.events_processed,
                    "actions_taken": status.actions_taken,
                    "audit_messages_sent": status.audit_messages_sent,
                    "db_connected": status.db_connected,
                    "telegram_connected": status.telegram_connected,
                    "dry_run": status.dry_run,
                    "trackers": status.tracker_sizes,
                },
                status=code,
            )

        app = web.Application()
        app.router.add_get("/health", handle_health)
        app.router.add_get("/", handle_health)

        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, "0.0.0.0", self._config.health.port)
        await site.start()
        logger.info("Health endpoint on :%d/health", self._config.health.port)

        # Keep running until cancelled
        try:
            while True:
                await asyncio.sleep(3600)
        except asyncio.CancelledError:
            await runner.cleanup()

    async def get_health(self) -> HealthStatus:
        return HealthStatus(
            uptime_seconds=time.monotonic() - self._start_time,
            events_processed=self._events_processed,
            actions_taken=self._actions_taken,
            audit_messages_sent=self.audit.sent,
            db_connected=await self._store.is_connected(),
            telegram_connected=self._listener is not None and self._listener.connected,
            dry_run=self.dry_run.enabled,
            tracker_sizes=self.tracker_sizes(),
        )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Group Shield: scam, flood and impersonation moderation for Telegram groups"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Decide and log actions without issuing them",
    )
    return parser.parse_args(argv)


async def _main() -> None:
    args = parse_args()

    config = AppConfig()

    # Override log level if --debug
    log_level = "DEBUG" if args.debug else config.log_level
    setup_logging(level=log_level, json_format=config.log_json)

    config.validate()

    app = ShieldApp(config=config, dry_run=args.dry_run)

    # Graceful shutdown on SIGINT / SIGTERM
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(app.shutdown()))

    try:
        await app.start()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        await app.shutdown()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
