"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from group_shield.config import (
    AppConfig,
    DryRunSwitch,
    FloodConfig,
    ModerationConfig,
)
from group_shield.core.types import ActionMode, FloodAction

_KEYS = (
    "ADMIN_IDS",
    "ACTION_MODE",
    "URL_WHITELIST",
    "SCAM_COOLDOWN_MINUTES",
    "ANTI_FLOOD_ACTION",
    "ANTI_FLOOD_WINDOW_SECONDS",
    "BOT_TOKEN",
    "TELEGRAM_API_ID",
    "TELEGRAM_API_HASH",
    "ADMIN_LOG_CHAT",
    "DB_PASSWORD",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestModerationConfig:
    @pytest.mark.asyncio
    async def test_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        config = ModerationConfig()
        assert config.action_mode is ActionMode.RESTRICT
        assert config.url_whitelist == ("geldhelden.org", "staatenlos.ch")
        assert config.scam_cooldown_minutes == 10
        assert config.admin_ids == ()

    @pytest.mark.asyncio
    async def test_parses_lists_and_enums(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("ADMIN_IDS", "11, 22,abc,-5")
        clean_env.setenv("ACTION_MODE", "BAN")
        clean_env.setenv("URL_WHITELIST", "Example.ORG, foo.io")
        config = ModerationConfig()
        assert config.admin_ids == (11, 22)
        assert config.action_mode is ActionMode.BAN
        assert config.url_whitelist == ("example.org", "foo.io")

    @pytest.mark.asyncio
    async def test_invalid_values_fall_back(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("ACTION_MODE", "nuke")
        clean_env.setenv("SCAM_COOLDOWN_MINUTES", "ten")
        config = ModerationConfig()
        assert config.action_mode is ActionMode.RESTRICT
        assert config.scam_cooldown_minutes == 10


class TestFloodConfig:
    @pytest.mark.asyncio
    async def test_kick_action(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("ANTI_FLOOD_ACTION", "kick")
        assert FloodConfig().action is FloodAction.KICK
        clean_env.setenv("ANTI_FLOOD_ACTION", "whatever")
        assert FloodConfig().action is FloodAction.RESTRICT


class TestAppConfig:
    @pytest.mark.asyncio
    async def test_validate_exits_on_missing_credentials(self, clean_env: pytest.MonkeyPatch) -> None:
        with pytest.raises(SystemExit):
            AppConfig().validate()

    @pytest.mark.asyncio
    async def test_validate_passes_when_complete(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("BOT_TOKEN", "123456:ABCDEFGHIJKLMNOP")
        clean_env.setenv("TELEGRAM_API_ID", "12345")
        clean_env.setenv("TELEGRAM_API_HASH", "deadbeef")
        clean_env.setenv("ADMIN_LOG_CHAT", "-100123")
        clean_env.setenv("ADMIN_IDS", "1")
        clean_env.setenv("DB_PASSWORD", "secret")
        AppConfig().validate()

    @pytest.mark.asyncio
    async def test_warnings(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("ANTI_FLOOD_WINDOW_SECONDS", "0")
        assert any("ANTI_FLOOD_WINDOW_SECONDS" in w for w in AppConfig().warnings())


class TestDryRunSwitch:
    @pytest.mark.asyncio
    async def test_override_and_reset(self) -> None:
        switch = DryRunSwitch(False)
        switch.set(True)
        assert switch.enabled
        switch.set(None)
        assert not switch.enabled
