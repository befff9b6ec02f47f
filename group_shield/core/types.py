"""Shared enumerations."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Abuse strength of a scored message."""

    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    def __str__(self) -> str:
        return self.value


class ActionKind(str, Enum):
    """Moderation actions issued to the platform."""

    DELETE = "delete"
    RESTRICT = "restrict"
    UNRESTRICT = "unrestrict"
    BAN = "ban"
    UNBAN = "unban"
    KICK = "kick"

    def __str__(self) -> str:
        return self.value


class ActionMode(str, Enum):
    """What a HIGH severity escalation does to the sender."""

    BAN = "ban"
    RESTRICT = "restrict"

    def __str__(self) -> str:
        return self.value


class FloodAction(str, Enum):
    """What a flood trigger does to the sender."""

    RESTRICT = "RESTRICT"
    KICK = "KICK"

    def __str__(self) -> str:
        return self.value
