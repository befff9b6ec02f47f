"""Audit-log delivery to the admin log chat, with an admin DM failsafe."""

from __future__ import annotations

import logging
from html import escape
from typing import Iterable

from group_shield.core.models import Sender
from group_shield.dispatch.errors import translate_error
from group_shield.dispatch.queues import AuditQueue
from group_shield.metrics import AUDIT_SENDS_TOTAL
from group_shield.platform.base_client import ChatRef, PlatformClient

logger = logging.getLogger(__name__)

FAILSAFE_PREFIX = "[Failsafe] "


def format_user(sender: Sender) -> str:
    """HTML mention for *sender*, with the @username when known."""
    link = f'<a href="tg://user?id={sender.user_id}">{escape(sender.display_name)}</a>'
    if sender.username:
        return f"{link} (@{escape(sender.username)})"
    return link


class AuditChannel:
    """Sends every audit entry through the audit queue.

    If the log chat rejects a message for any reason other than rate
    limiting (which the queue retries itself), the same text is sent as a
    direct message to each configured admin id, also via the queue.
    """

    def __init__(
        self,
        client: PlatformClient,
        queue: AuditQueue,
        log_chat: ChatRef,
        admin_ids: Iterable[int],
    ) -> None:
        self._client = client
        self._queue = queue
        self._log_chat = log_chat
        self._admin_ids = tuple(admin_ids)
        self.sent = 0

    async def send(self, text: str, *, html: bool = True) -> bool:
        """Deliver *text*; return True if the log chat accepted it."""
        try:
            await self._queue.submit(
                lambda: self._client.send_message(self._log_chat, text, html=html),
                label="audit",
            )
        except Exception as exc:
            error = translate_error(exc)
            logger.error("Audit log chat unreachable: %s", error)
            AUDIT_SENDS_TOTAL.labels(route="failed").inc()
            await self._failsafe(text)
            return False
        self.sent += 1
        AUDIT_SENDS_TOTAL.labels(route="log_chat").inc()
        return True

    async def _failsafe(self, text: str) -> None:
        # queued independently so the DMs never wait on the failed send
        for admin_id in self._admin_ids:
            try:
                await self._queue.submit(
                    lambda admin_id=admin_id: self._client.send_message(
                        admin_id, FAILSAFE_PREFIX + text, html=False
                    ),
                    label=f"failsafe:{admin_id}",
                )
            except Exception as exc:
                logger.error("Failsafe DM to admin=%d failed: %s", admin_id, translate_error(exc))
            else:
                AUDIT_SENDS_TOTAL.labels(route="failsafe").inc()
