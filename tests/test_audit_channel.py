"""Tests for audit-log delivery and the admin DM failsafe."""

from __future__ import annotations

import pytest

from conftest import ADMIN_ID, LOG_CHAT, FakePlatform
from group_shield.core.models import Sender
from group_shield.dispatch.errors import PlatformError
from group_shield.notifier.audit_channel import AuditChannel, format_user


class TestAuditChannel:
    @pytest.mark.asyncio
    async def test_delivers_to_log_chat(self, audit: AuditChannel, platform: FakePlatform) -> None:
        assert await audit.send("<b>hello</b>")
        assert platform.sent == [(LOG_CHAT, "<b>hello</b>", True)]
        assert audit.sent == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried_not_failed_over(
        self, audit: AuditChannel, platform: FakePlatform
    ) -> None:
        platform.errors["send_message"] = [PlatformError(429, "Too Many Requests", retry_after=0.01)]
        assert await audit.send("hello")
        assert platform.sent == [(LOG_CHAT, "hello", True)]

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_admin_dms(
        self, audit: AuditChannel, platform: FakePlatform
    ) -> None:
        platform.errors["send_message"] = [PlatformError(400, "Bad Request: chat not found")]
        delivered = await audit.send("alert")
        assert not delivered
        assert platform.sent == [
            (ADMIN_ID, "[Failsafe] alert", False),
            (2, "[Failsafe] alert", False),
        ]

    @pytest.mark.asyncio
    async def test_failed_dm_does_not_stop_the_rest(
        self, audit: AuditChannel, platform: FakePlatform
    ) -> None:
        platform.errors["send_message"] = [
            PlatformError(403, "Forbidden: bot was kicked"),
            PlatformError(403, "Forbidden: bot was blocked by the user"),
        ]
        await audit.send("alert")
        assert platform.sent == [(2, "[Failsafe] alert", False)]


class TestFormatting:
    @pytest.mark.asyncio
    async def test_format_user_escapes(self) -> None:
        sender = Sender(5, username="eve", first_name="<Eve>")
        assert format_user(sender) == '<a href="tg://user?id=5">&lt;Eve&gt;</a> (@eve)'
