"""PostgreSQL storage backend using asyncpg."""

from __future__ import annotations

import logging
from typing import Sequence

import asyncpg

from group_shield.config import DatabaseConfig
from group_shield.core.models import GroupSettings
from group_shield.storage.base_store import BaseStore

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS moderation_actions (
    id              BIGSERIAL       PRIMARY KEY,
    user_id         BIGINT          NOT NULL,
    chat_id         BIGINT          NOT NULL,
    action          TEXT            NOT NULL,
    reason          TEXT            NOT NULL DEFAULT '',
    created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_actions_user_time
    ON moderation_actions (user_id, created_at);

CREATE TABLE IF NOT EXISTS scam_events (
    id              BIGSERIAL       PRIMARY KEY,
    chat_id         BIGINT          NOT NULL,
    user_id         BIGINT          NOT NULL,
    message_id      BIGINT          NOT NULL,
    score           INTEGER         NOT NULL,
    action          TEXT            NOT NULL,
    reasons         TEXT[]          NOT NULL DEFAULT '{}',
    created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_scam_events_chat_time
    ON scam_events (chat_id, created_at);

CREATE TABLE IF NOT EXISTS team_members (
    user_id         BIGINT          PRIMARY KEY,
    added_by        BIGINT          NOT NULL DEFAULT 0,
    source          TEXT            NOT NULL DEFAULT 'manual',
    added_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS users (
    user_id         BIGINT          PRIMARY KEY,
    first_seen_ms   BIGINT          NOT NULL,
    last_seen_ms    BIGINT          NOT NULL
);

CREATE TABLE IF NOT EXISTS blacklist (
    user_id         BIGINT          PRIMARY KEY,
    actor_id        BIGINT          NOT NULL,
    reason          TEXT            NOT NULL DEFAULT '',
    added_at        TIMESTAMPTZ     NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS group_settings (
    chat_id             BIGINT      PRIMARY KEY,
    title               TEXT,
    managed             BOOLEAN     NOT NULL DEFAULT TRUE,
    scam_enabled        BOOLEAN     NOT NULL DEFAULT TRUE,
    antiflood_enabled   BOOLEAN     NOT NULL DEFAULT TRUE,
    service_cleanup_enabled     BOOLEAN NOT NULL DEFAULT TRUE,
    link_policy_enabled         BOOLEAN NOT NULL DEFAULT TRUE,
    link_policy_window_minutes  INTEGER NOT NULL DEFAULT 30,
    link_whitelist              TEXT[]  NOT NULL DEFAULT '{}',
    links_locked                BOOLEAN,
    forwards_locked             BOOLEAN
);

ALTER TABLE team_members ADD COLUMN IF NOT EXISTS added_by BIGINT NOT NULL DEFAULT 0;
ALTER TABLE team_members ADD COLUMN IF NOT EXISTS source TEXT NOT NULL DEFAULT 'manual';
ALTER TABLE group_settings
    ADD COLUMN IF NOT EXISTS service_cleanup_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    ADD COLUMN IF NOT EXISTS link_policy_enabled BOOLEAN NOT NULL DEFAULT TRUE,
    ADD COLUMN IF NOT EXISTS link_policy_window_minutes INTEGER NOT NULL DEFAULT 30,
    ADD COLUMN IF NOT EXISTS link_whitelist TEXT[] NOT NULL DEFAULT '{}',
    ADD COLUMN IF NOT EXISTS links_locked BOOLEAN,
    ADD COLUMN IF NOT EXISTS forwards_locked BOOLEAN;
"""

_SETTINGS_COLUMNS = """
    chat_id, title, managed, scam_enabled, antiflood_enabled,
    service_cleanup_enabled, link_policy_enabled, link_policy_window_minutes,
    link_whitelist, links_locked, forwards_locked
"""


def _settings(row: asyncpg.Record) -> GroupSettings:
    return GroupSettings(
        chat_id=row["chat_id"],
        managed=row["managed"],
        scam_enabled=row["scam_enabled"],
        antiflood_enabled=row["antiflood_enabled"],
        title=row["title"],
        service_cleanup_enabled=row["service_cleanup_enabled"],
        link_policy_enabled=row["link_policy_enabled"],
        link_policy_window_minutes=row["link_policy_window_minutes"],
        link_whitelist=tuple(row["link_whitelist"] or ()),
        links_locked=row["links_locked"],
        forwards_locked=row["forwards_locked"],
    )


class PostgresStore(BaseStore):
    """asyncpg-backed storage with connection pooling."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(
            dsn=self._config.dsn,
            min_size=self._config.pool_min,
            max_size=self._config.pool_max,
        )
        async with self._pool.acquire() as conn:
            await conn.execute(_SCHEMA_SQL)
        logger.info(
            "PostgreSQL pool created (%d-%d) and schema ensured",
            self._config.pool_min,
            self._config.pool_max,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            logger.info("PostgreSQL pool closed")

    async def is_connected(self) -> bool:
        if not self._pool:
            return False
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False

    async def log_action(self, user_id: int, chat_id: int, action: str, reason: str) -> None:
        assert self._pool is not None
        sql = """
            INSERT INTO moderation_actions (user_id, chat_id, action, reason)
            VALUES ($1, $2, $3, $4)
        """
        async with self._pool.acquire() as conn:
            await conn.execute(sql, user_id, chat_id, action, reason)

    async def log_scam_event(
        self,
        chat_id: int,
        user_id: int,
        message_id: int,
        score: int,
        action: str,
        reasons: Sequence[str],
    ) -> None:
        assert self._pool is not None
        sql = """
            INSERT INTO scam_events
                (chat_id, user_id, message_id, score, action, reasons)
            VALUES ($1, $2, $3, $4, $5, $6)
        """
        async with self._pool.acquire() as conn:
            await conn.execute(sql, chat_id, user_id, message_id, score, action, list(reasons))

    async def is_team_member(self, user_id: int) -> bool:
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            row = await conn.fetchval(
                "SELECT 1 FROM team_members WHERE user_id = $1", user_id
            )
        return row is not None

    async def is_blacklisted(self, user_id: int) -> bool:
        assert self._pool is not None
        async with self._pool.acquire() as conn:
            row = await conn.fetchval(
                "SELECT 1 FROM blacklist WHERE user_id = $1", user_id
            )
        return row is not None

    async def add_to_blacklist(self, user_id: int, actor_id: int, reason: str) -> None:
        assert self._pool is not None
        sql = """
            INSERT INTO blacklist (user_id, actor_id, reason)
            VALUES ($1, $2, $3)
            ON CONFLICT (user_id) DO NOTHING
        """
        async with self._pool.acquire() as conn:
            await conn.execute(sql, user_id, actor_id, reason)
        logger.info("Blacklisted user=%d actor=%d", user_id, actor_id)

    async def add_team_member(self, user_id: int, added_by: int, source: str) -> None:
        assert self._pool is not None
        sql = """
            INSERT INTO team_members (user_id, added_by, source)
            VALUES ($1, $2, $3)
            ON CONFLICT (user_id) DO NOTHING
        """
        async with self._pool.acquire() as conn:
            await conn.execute(sql, user_id, added_by, source)

    async def record_user(self, user_id: int, seen_ms: int) -> int:
        assert self._pool is not None
        sql = """
            INSERT INTO users (user_id, first_seen_ms, last_seen_ms)
            VALUES ($1, $2, $2)
            ON CONFLICT (user_id) DO UPDATE
                SET last_seen_ms = GREATEST(users.last_seen_ms, EXCLUDED.last_seen_ms)
            RETURNING first_seen_ms
        """
        async with self._pool.acquire() as conn:
            return await conn.fetchval(sql, user_id, seen_ms)

    async def get_group_settings(self, chat_id: int) -> GroupSettings | None:
        assert self._pool is not None
        sql = f"""
            SELECT {_SETTINGS_COLUMNS}
            FROM group_settings
            WHERE chat_id = $1
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(sql, chat_id)
        return _settings(row) if row else None

    async def get_managed_groups(self) -> list[GroupSettings]:
        assert self._pool is not None
        sql = f"""
            SELECT {_SETTINGS_COLUMNS}
            FROM group_settings
            WHERE managed
            ORDER BY chat_id
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql)
        return [_settings(r) for r in rows]
