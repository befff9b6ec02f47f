"""Core models, types, and utilities."""

from group_shield.core.models import (
    ActionResult,
    ChannelPostEvent,
    EditedMessageEvent,
    InboundEvent,
    JoinEvent,
    LeaveEvent,
    MessageEvent,
    ScamScore,
    Sender,
)
from group_shield.core.types import ActionKind, ActionMode, FloodAction, Severity

__all__ = [
    "ActionResult",
    "ChannelPostEvent",
    "EditedMessageEvent",
    "InboundEvent",
    "JoinEvent",
    "LeaveEvent",
    "MessageEvent",
    "ScamScore",
    "Sender",
    "ActionKind",
    "ActionMode",
    "FloodAction",
    "Severity",
]
