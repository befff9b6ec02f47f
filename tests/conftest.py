"""Shared fakes: a controllable clock, an in-memory store and a recording platform client."""

from __future__ import annotations

from typing import Sequence

import pytest

from group_shield.config import DryRunSwitch, FloodConfig, ModerationConfig
from group_shield.core.models import ChatMember, GroupSettings, MessageEvent, Sender
from group_shield.core.types import ActionMode, FloodAction
from group_shield.dispatch.actions import ModerationActions
from group_shield.dispatch.queues import AuditQueue, ModerationQueue
from group_shield.notifier.audit_channel import AuditChannel
from group_shield.platform.base_client import ChatRef, PlatformClient
from group_shield.storage.base_store import BaseStore

BOT_ID = 999
ADMIN_ID = 1
LOG_CHAT = -100500
CHAT_ID = -100777


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeStore(BaseStore):
    def __init__(self) -> None:
        self.actions: list[tuple[int, int, str, str]] = []
        self.scam_events: list[tuple[int, int, int, int, str, tuple[str, ...]]] = []
        self.team: set[int] = set()
        self.blacklist: dict[int, str] = {}
        self.groups: dict[int, GroupSettings] = {CHAT_ID: GroupSettings(CHAT_ID, title="Test Group")}
        self.first_seen: dict[int, int] = {}
        self.team_sources: dict[int, str] = {}
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def is_connected(self) -> bool:
        return self.connected

    async def log_action(self, user_id: int, chat_id: int, action: str, reason: str) -> None:
        self.actions.append((user_id, chat_id, action, reason))

    async def log_scam_event(
        self,
        chat_id: int,
        user_id: int,
        message_id: int,
        score: int,
        action: str,
        reasons: Sequence[str],
    ) -> None:
        self.scam_events.append((chat_id, user_id, message_id, score, action, tuple(reasons)))

    async def is_team_member(self, user_id: int) -> bool:
        return user_id in self.team

    async def is_blacklisted(self, user_id: int) -> bool:
        return user_id in self.blacklist

    async def add_to_blacklist(self, user_id: int, actor_id: int, reason: str) -> None:
        self.blacklist[user_id] = reason

    async def add_team_member(self, user_id: int, added_by: int, source: str) -> None:
        self.team.add(user_id)
        self.team_sources[user_id] = source

    async def record_user(self, user_id: int, seen_ms: int) -> int:
        return self.first_seen.setdefault(user_id, seen_ms)

    async def get_group_settings(self, chat_id: int) -> GroupSettings | None:
        return self.groups.get(chat_id)

    async def get_managed_groups(self) -> list[GroupSettings]:
        return [g for g in self.groups.values() if g.managed]


class FakePlatform(PlatformClient):
    """Records every call; ``errors[method]`` is a list of exceptions raised in order."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.errors: dict[str, list[Exception]] = {}
        self.members: dict[tuple[int, int], ChatMember] = {}
        self.bot_status = ChatMember(BOT_ID, "administrator", True, True, is_bot=True)
        self.sent: list[tuple[ChatRef, str, bool]] = []
        self.closed = False
        self.sent_after_close = 0

    def _maybe_fail(self, method: str) -> None:
        pending = self.errors.get(method)
        if pending:
            raise pending.pop(0)

    def action_calls(self) -> list[tuple]:
        lookups = ("get_me", "get_member", "get_administrators", "send_message")
        return [c for c in self.calls if c[0] not in lookups]

    async def get_me(self) -> Sender:
        self.calls.append(("get_me",))
        return Sender(BOT_ID, username="shield_bot", is_bot=True)

    async def send_message(self, chat: ChatRef, text: str, *, html: bool = True) -> int:
        self.calls.append(("send_message", chat))
        self._maybe_fail("send_message")
        if self.closed:
            self.sent_after_close += 1
        self.sent.append((chat, text, html))
        return len(self.sent)

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        self.calls.append(("delete_message", chat_id, message_id))
        self._maybe_fail("delete_message")

    async def restrict_member(
        self,
        chat_id: int,
        user_id: int,
        *,
        can_send: bool,
        until_date: int | None = None,
    ) -> None:
        self.calls.append(("restrict_member", chat_id, user_id, can_send, until_date))
        self._maybe_fail("restrict_member")

    async def ban_member(self, chat_id: int, user_id: int, until_date: int | None = None) -> None:
        self.calls.append(("ban_member", chat_id, user_id, until_date))
        self._maybe_fail("ban_member")

    async def unban_member(self, chat_id: int, user_id: int, *, only_if_banned: bool = True) -> None:
        self.calls.append(("unban_member", chat_id, user_id, only_if_banned))
        self._maybe_fail("unban_member")

    async def get_member(self, chat_id: int, user_id: int) -> ChatMember:
        self.calls.append(("get_member", chat_id, user_id))
        if user_id == BOT_ID:
            return self.bot_status
        return self.members.get((chat_id, user_id), ChatMember(user_id, "member"))

    async def get_administrators(self, chat_id: int) -> list[ChatMember]:
        self.calls.append(("get_administrators", chat_id))
        self._maybe_fail("get_administrators")
        return [self.bot_status] + [m for (c, _), m in self.members.items() if c == chat_id and m.is_admin]

    async def close(self) -> None:
        self.closed = True


def make_message(
    text: str,
    *,
    user_id: int = 42,
    message_id: int = 10,
    chat_id: int = CHAT_ID,
    urls: tuple[str, ...] = (),
    first_name: str = "Alice",
    is_forwarded: bool = False,
    has_entities: bool = False,
) -> MessageEvent:
    return MessageEvent(
        chat_id=chat_id,
        message_id=message_id,
        sender=Sender(user_id, username=None, first_name=first_name),
        text=text,
        extracted_urls=urls,
        is_forwarded=is_forwarded,
        has_entities=has_entities,
        chat_title="Test Group",
    )


def moderation_config(**overrides) -> ModerationConfig:
    values = dict(
        admin_ids=(ADMIN_ID,),
        admin_log_chat=str(LOG_CHAT),
        action_mode=ActionMode.RESTRICT,
        url_whitelist=("geldhelden.org", "staatenlos.ch"),
        dry_run=False,
        scam_detection_enabled=True,
        scam_cooldown_minutes=10,
        high_restrict_hours=24,
        protected_names=("Geldhelden Support", "McLac2000"),
        impersonation_threshold=80,
        links_locked_default=False,
        forward_locked_default=False,
    )
    values.update(overrides)
    return ModerationConfig(**values)


def flood_config(**overrides) -> FloodConfig:
    values = dict(window_seconds=30, max_messages=5, restrict_minutes=10, action=FloodAction.RESTRICT)
    values.update(overrides)
    return FloodConfig(**values)


# ---------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def dry_run() -> DryRunSwitch:
    return DryRunSwitch(False)


@pytest.fixture
def actions(platform: FakePlatform, store: FakeStore, dry_run: DryRunSwitch) -> ModerationActions:
    return ModerationActions(platform, store, ModerationQueue(delay_ms=1), [ADMIN_ID], dry_run)


@pytest.fixture
def audit(platform: FakePlatform) -> AuditChannel:
    return AuditChannel(platform, AuditQueue(interval_ms=1), LOG_CHAT, [ADMIN_ID, 2])
