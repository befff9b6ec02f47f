"""Domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field

from group_shield.core.types import Severity

# ---------------------------------------------------------------------------
# Inbound events (one variant per update shape)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Sender:
    """The account behind an inbound update."""

    user_id: int
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    is_bot: bool = False

    @property
    def display_name(self) -> str:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or self.username or f"User {self.user_id}"


@dataclass(frozen=True, slots=True)
class MessageEvent:
    """A new group message."""

    chat_id: int
    message_id: int
    sender: Sender
    text: str
    extracted_urls: tuple[str, ...] = ()
    is_forwarded: bool = False
    has_entities: bool = False
    timestamp_ms: int = 0
    chat_title: str | None = None

    @property
    def user_id(self) -> int:
        return self.sender.user_id


@dataclass(frozen=True, slots=True)
class EditedMessageEvent(MessageEvent):
    """An edit of an existing group message (same message id as the original)."""


@dataclass(frozen=True, slots=True)
class JoinEvent:
    """A member joined or was added to a chat."""

    chat_id: int
    sender: Sender
    timestamp_ms: int = 0
    chat_title: str | None = None
    service_message_id: int | None = None

    @property
    def user_id(self) -> int:
        return self.sender.user_id


@dataclass(frozen=True, slots=True)
class LeaveEvent:
    """A member left or was removed from a chat."""

    chat_id: int
    user_id: int
    timestamp_ms: int = 0
    service_message_id: int | None = None


@dataclass(frozen=True, slots=True)
class ChannelPostEvent:
    """A broadcast channel post; never moderated."""

    chat_id: int
    message_id: int
    timestamp_ms: int = 0


@dataclass(frozen=True, slots=True)
class ServiceMessageEvent:
    """A pin or title change notice posted by the platform into a group."""

    chat_id: int
    message_id: int
    kind: str
    timestamp_ms: int = 0


InboundEvent = (
    MessageEvent
    | EditedMessageEvent
    | JoinEvent
    | LeaveEvent
    | ChannelPostEvent
    | ServiceMessageEvent
)

# ---------------------------------------------------------------------------
# Pipeline results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScamScore:
    """Scored abuse signals for one message; immutable once produced."""

    value: int
    severity: Severity
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Terminal outcome of one moderation action attempt."""

    success: bool
    skipped: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if self.success and self.skipped:
            raise ValueError("ActionResult cannot be both successful and skipped")

    @classmethod
    def ok(cls) -> ActionResult:
        return cls(success=True)

    @classmethod
    def skip(cls, reason: str) -> ActionResult:
        return cls(success=False, skipped=True, error=reason)

    @classmethod
    def fail(cls, error: str) -> ActionResult:
        return cls(success=False, skipped=False, error=error)


@dataclass(frozen=True, slots=True)
class GlobalActionResult:
    """Tally of one action fanned out over every managed chat."""

    success: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass(frozen=True, slots=True)
class AdminSyncResult:
    """Chat administrators copied into the team list for one chat."""

    chat_id: int
    synced: int = 0
    errors: int = 0


@dataclass(frozen=True, slots=True)
class FloodResult:
    is_flood: bool
    count: int


@dataclass(frozen=True, slots=True)
class ModerationOutcome:
    """What the orchestrator decided for one event."""

    action_taken: bool = False
    severity: Severity = Severity.NONE
    action: str | None = None
    reasons: tuple[str, ...] = ()

    @classmethod
    def none(cls) -> ModerationOutcome:
        return cls()


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ChatMember:
    """Membership snapshot returned by the platform."""

    user_id: int
    status: str
    can_restrict_members: bool = False
    can_delete_messages: bool = False
    is_bot: bool = False

    @property
    def is_admin(self) -> bool:
        return self.status in ("administrator", "creator")


@dataclass(frozen=True, slots=True)
class GroupSettings:
    """Per-chat feature flags."""

    chat_id: int
    managed: bool = True
    scam_enabled: bool = True
    antiflood_enabled: bool = True
    title: str | None = None
    service_cleanup_enabled: bool = True
    link_policy_enabled: bool = True
    link_policy_window_minutes: int = 30
    link_whitelist: tuple[str, ...] = ()
    # None falls back to the configured default
    links_locked: bool | None = None
    forwards_locked: bool | None = None


@dataclass(slots=True)
class HealthStatus:
    """Application health snapshot."""

    uptime_seconds: float = 0.0
    events_processed: int = 0
    actions_taken: int = 0
    audit_messages_sent: int = 0
    db_connected: bool = False
    telegram_connected: bool = False
    dry_run: bool = False
    tracker_sizes: dict[str, int] = field(default_factory=dict)
