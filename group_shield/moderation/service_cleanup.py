"""Removal of join, leave, pin and title-change notices."""

from __future__ import annotations

import logging

from group_shield.dispatch.actions import ModerationActions
from group_shield.storage.base_store import BaseStore

logger = logging.getLogger(__name__)


class ServiceCleanup:
    def __init__(self, actions: ModerationActions, store: BaseStore) -> None:
        self._actions = actions
        self._store = store

    async def handle(self, chat_id: int, message_id: int, kind: str) -> bool:
        """Delete one service message when the chat opted in. Never raises."""
        try:
            settings = await self._store.get_group_settings(chat_id)
            if settings is None or not settings.managed or not settings.service_cleanup_enabled:
                return False
            result = await self._actions.delete_message(chat_id, message_id)
        except Exception:
            logger.exception("Service cleanup failed chat=%d msg=%d", chat_id, message_id)
            return False
        if result.success:
            logger.info("[CLEANUP] %s notice deleted chat=%d msg=%d", kind, chat_id, message_id)
            return True
        logger.debug("[CLEANUP] %s notice kept chat=%d: %s", kind, chat_id, result.error)
        return False
