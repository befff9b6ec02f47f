"""Copy chat administrators of managed chats into the team list."""

from __future__ import annotations

import logging

from group_shield.core.models import AdminSyncResult
from group_shield.dispatch.errors import translate_error
from group_shield.platform.base_client import PlatformClient
from group_shield.storage.base_store import BaseStore

logger = logging.getLogger(__name__)

AUTO_SYNC_SOURCE = "auto_admin_sync"


class AdminSync:
    """Adds every human administrator as a team member; never removes anyone."""

    def __init__(self, client: PlatformClient, store: BaseStore) -> None:
        self._client = client
        self._store = store

    async def sync_group(self, chat_id: int) -> AdminSyncResult:
        try:
            admins = await self._client.get_administrators(chat_id)
        except Exception as exc:
            logger.warning("[ADMIN_SYNC] chat=%d unavailable: %s", chat_id, translate_error(exc))
            return AdminSyncResult(chat_id, errors=1)

        synced = errors = 0
        for member in admins:
            if member.is_bot:
                continue
            try:
                if await self._store.is_team_member(member.user_id):
                    continue
                await self._store.add_team_member(member.user_id, 0, AUTO_SYNC_SOURCE)
                synced += 1
            except Exception:
                logger.exception("[ADMIN_SYNC] could not add user=%d", member.user_id)
                errors += 1

        logger.info("[ADMIN_SYNC] chat=%d synced=%d errors=%d", chat_id, synced, errors)
        return AdminSyncResult(chat_id, synced=synced, errors=errors)

    async def sync_all(self) -> list[AdminSyncResult]:
        try:
            groups = await self._store.get_managed_groups()
        except Exception:
            logger.exception("[ADMIN_SYNC] could not load managed groups")
            return []
        return [await self.sync_group(group.chat_id) for group in groups]
